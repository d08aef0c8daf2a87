from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from .base import Money, TimeStampedModel

class ProductDraft(BaseModel):
    """Catalog fields supplied when a product is created"""
    name: str = Field(..., min_length=1, max_length=180)
    description: Optional[str] = None
    sku: str = Field(..., min_length=1, max_length=64)
    category_id: Optional[int] = None
    price: Money = Field(..., ge=0)
    discount_price: Optional[Money] = Field(None, ge=0)
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: str) -> str:
        return v.strip().upper()

class Product(TimeStampedModel, ProductDraft):
    """Product as stored in the catalog"""
    product_id: int

    @property
    def unit_price(self) -> Decimal:
        """Price a buyer pays right now"""
        return self.discount_price if self.discount_price is not None else self.price
