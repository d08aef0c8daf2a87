from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from .base import Money

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"

class PaymentMethod(str, Enum):
    COD = "COD"
    CARD = "Card"
    WALLET = "Wallet"
    PAYPAL = "PayPal"

class AddressType(str, Enum):
    HOME = "Home"
    OFFICE = "Office"
    OTHER = "Other"

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED, PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

def statuses_leading_to(target: OrderStatus) -> List[OrderStatus]:
    """Order statuses from which target can be reached in one step"""
    return [status for status, allowed in ORDER_TRANSITIONS.items() if target in allowed]

class ShippingAddress(BaseModel):
    """Address snapshot stored on the order"""
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    apartment: Optional[str] = None
    area: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    address_type: AddressType = AddressType.HOME

    model_config = ConfigDict(frozen=True)

class OrderLineRequest(BaseModel):
    """A product and quantity the buyer asks for"""
    product_id: int
    quantity: int = Field(..., gt=0)

class OrderItem(BaseModel):
    """Immutable snapshot of an ordered product"""
    product_id: int
    name: str
    sku: str
    unit_price: Money
    quantity: int = Field(..., gt=0)
    item_total: Money

    model_config = ConfigDict(frozen=True, from_attributes=True)

class OrderMeta(BaseModel):
    notes: Optional[str] = None
    coupon: Optional[str] = None

class OrderDraft(BaseModel):
    """Order contents before the row exists"""
    user_id: int
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    subtotal: Money
    shipping_fee: Money = Decimal(0)
    discount: Money = Decimal(0)
    total_amount: Money
    meta: OrderMeta = Field(default_factory=OrderMeta)
    placed_at: datetime
    delivered_at: Optional[datetime] = None

class Order(OrderDraft):
    """Order model for purchases"""
    order_id: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_cancellable(self) -> bool:
        return OrderStatus.CANCELLED in ORDER_TRANSITIONS[self.order_status]

class OrderFilter(BaseModel):
    status: Optional[OrderStatus] = None
    user_id: Optional[int] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

class Restock(BaseModel):
    """Pending stock restoration left behind by a cancelled order"""
    restock_id: int
    order_id: int
    product_id: int
    quantity: int
