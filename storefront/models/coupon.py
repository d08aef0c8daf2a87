from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from .base import Money, TimeStampedModel
from .cart import CartLine
from ..utils.formatters import ensure_utc

class CouponType(str, Enum):
    """Discount kinds"""
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"
    BOGO = "bogo"

class CouponReason(str, Enum):
    """Why a coupon does not apply"""
    INVALID_COUPON = "InvalidCoupon"
    NOT_STARTED = "NotStarted"
    EXPIRED = "Expired"
    USAGE_LIMIT_REACHED = "UsageLimitReached"
    USER_LIMIT_REACHED = "UserLimitReached"
    MIN_CART_NOT_MET = "MinCartNotMet"

class BogoRule(BaseModel):
    """Buy buy_quantity of get_product_id, get get_quantity of them free"""
    buy_quantity: int = Field(1, gt=0)
    get_quantity: int = Field(1, gt=0)
    get_product_id: int

class CouponDraft(BaseModel):
    """Coupon fields supplied by an administrator"""
    code: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: CouponType
    value: Money = Field(..., ge=0)
    max_discount_amount: Optional[Money] = Field(None, ge=0)
    min_cart_value: Optional[Money] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    usage_per_user: Optional[int] = Field(1, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True
    bogo: Optional[BogoRule] = None
    created_by: Optional[int] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_rules(self):
        if self.type == CouponType.PERCENTAGE and not (0 < self.value <= 100):
            raise ValueError("percentage value must be in (0, 100]")
        if self.type == CouponType.BOGO and self.bogo is None:
            raise ValueError("bogo coupons need a bogo rule")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date is before start_date")
        return self

class Coupon(TimeStampedModel, CouponDraft):
    """Discount rule as stored"""
    coupon_id: int
    used_count: int = 0
    is_deleted: bool = False

    @property
    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and self.used_count >= self.usage_limit

class CouponUsage(BaseModel):
    """Ledger entry written each time a coupon is applied"""
    usage_id: int
    coupon_id: int
    user_id: Optional[int] = None
    order_id: Optional[int] = None
    amount_discounted: Money
    cart_snapshot: List[CartLine]
    applied_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

class CouponEvaluation(BaseModel):
    """Outcome of checking a coupon against a cart"""
    valid: bool
    reason: Optional[CouponReason] = None
    discount: Money = Decimal(0)
    subtotal: Optional[Money] = None
    new_total: Optional[Money] = None
    coupon: Optional[Coupon] = None

    @classmethod
    def rejected(cls, reason: CouponReason) -> "CouponEvaluation":
        return cls(valid=False, reason=reason)

class CouponUsageStats(BaseModel):
    coupon_id: int
    code: str
    total_used: int
    total_discount: Money
