# storefront/api/schemas.py
"""Request bodies accepted by the HTTP API"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field
from ..models.base import Money
from ..models.cart import CartLine
from ..models.coupon import BogoRule, CouponType
from ..models.order import OrderStatus, PaymentMethod, PaymentStatus, ShippingAddress
from ..models.pending import OtpPurpose

class RegisterRequest(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    phone: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr

class VerifyRequest(BaseModel):
    email: EmailStr
    purpose: OtpPurpose
    otp: str = Field(..., min_length=1)

class ProductUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, min_length=1)
    category_id: Optional[int] = None
    price: Optional[Money] = Field(None, ge=0)
    discount_price: Optional[Money] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

class CategoryUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    parent_id: Optional[int] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

class CartItemRequest(BaseModel):
    product_id: int
    quantity: int = 1

class CartQuantityRequest(BaseModel):
    quantity: int

class WishlistAddRequest(BaseModel):
    product_id: int
    note: Optional[str] = Field(None, max_length=500)

class WishlistToggleRequest(BaseModel):
    product_id: int

class OrderLineBody(BaseModel):
    # quantity is checked by the order service so bad values get a 400
    product_id: int
    quantity: int

class PlaceOrderRequest(BaseModel):
    items: List[OrderLineBody] = []
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    shipping_fee: Money = Decimal(0)
    discount: Money = Decimal(0)
    notes: Optional[str] = None
    coupon: Optional[str] = None

class OrderStatusRequest(BaseModel):
    status: OrderStatus

class PaymentStatusRequest(BaseModel):
    payment_status: PaymentStatus

class CouponCartRequest(BaseModel):
    code: str = Field(..., min_length=1)
    cart_items: List[CartLine]

class ApplyCouponRequest(CouponCartRequest):
    order_id: Optional[int] = None

class CouponUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    type: Optional[CouponType] = None
    value: Optional[Money] = Field(None, ge=0)
    max_discount_amount: Optional[Money] = Field(None, ge=0)
    min_cart_value: Optional[Money] = Field(None, ge=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    usage_per_user: Optional[int] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    bogo: Optional[BogoRule] = None
