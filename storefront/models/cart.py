from decimal import Decimal
from typing import List
from pydantic import BaseModel, Field
from .base import Money, TimeStampedModel

class CartLine(BaseModel):
    """Point-in-time copy of a cart line"""
    product_id: int
    price: Money = Field(..., ge=0)
    quantity: int = Field(..., gt=0)

class CartItem(TimeStampedModel):
    cart_item_id: int
    user_id: int
    product_id: int
    quantity: int
    price_at_time: Money

    @property
    def item_total(self) -> Decimal:
        return self.price_at_time * self.quantity

class CartSummary(BaseModel):
    items: List[CartItem]
    total_items: int
    subtotal: Money

def cart_subtotal(lines: List[CartLine]) -> Decimal:
    return sum((line.price * line.quantity for line in lines), Decimal(0))
