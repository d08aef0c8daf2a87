from typing import Optional
from pydantic import Field
from .base import Money, TimeStampedModel

class WishlistItem(TimeStampedModel):
    """Product saved by a user for later"""
    wishlist_item_id: int
    user_id: int
    product_id: int
    note: str = ""
    price_at_add: Optional[Money] = Field(None, ge=0)
    is_active: bool = True
