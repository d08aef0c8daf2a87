from typing import Optional, List
from pydantic import BaseModel, Field
from .base import TimeStampedModel

class CategoryDraft(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    parent_id: Optional[int] = None
    description: Optional[str] = None
    is_active: bool = True

class Category(TimeStampedModel, CategoryDraft):
    """Category model for product categorization"""
    category_id: int

    # Not stored in DB, populated when needed
    subcategories: List['Category'] = []
