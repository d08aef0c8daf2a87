from typing import Optional
from .base import TimeStampedModel

class User(TimeStampedModel):
    """Registered customer or administrator"""
    user_id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    is_admin: bool = False
    is_blocked: bool = False
