# storefront/errors.py
from typing import Optional

class StorefrontError(Exception):
    """Base exception for all storefront errors"""

class BusinessRuleError(StorefrontError):
    """A request that breaks a business rule. The client has to fix the request"""
    status_code = 400
    code = "BAD_REQUEST"

class InfrastructureError(StorefrontError):
    """The data store failed. The client may retry later"""
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Data store failure during {operation}")

class InvalidOrderRequest(BusinessRuleError):
    code = "INVALID_ORDER"

class ProductNotFound(BusinessRuleError):
    status_code = 404
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")

class InsufficientStock(BusinessRuleError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Insufficient stock for SKU {sku}")

class OrderNotFound(BusinessRuleError):
    status_code = 404
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")

class Forbidden(BusinessRuleError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)

class InvalidTransition(BusinessRuleError):
    status_code = 409
    code = "INVALID_TRANSITION"

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current} to {target}")

class CheckoutTimeout(BusinessRuleError):
    status_code = 408
    code = "CHECKOUT_TIMEOUT"

    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Order placement did not finish within {seconds}s")

class CouponRejected(BusinessRuleError):
    """A coupon named at checkout does not apply to the order"""
    code = "COUPON_REJECTED"

    def __init__(self, coupon_code: str, reason: str):
        self.coupon_code = coupon_code
        self.reason = reason
        super().__init__(f"Coupon {coupon_code} rejected: {reason}")

class CouponNotFound(BusinessRuleError):
    status_code = 404
    code = "COUPON_NOT_FOUND"

    def __init__(self, coupon_id: int):
        self.coupon_id = coupon_id
        super().__init__(f"Coupon not found: {coupon_id}")

class DuplicateCoupon(BusinessRuleError):
    status_code = 409
    code = "DUPLICATE_COUPON"

    def __init__(self, coupon_code: str):
        self.coupon_code = coupon_code
        super().__init__(f"Coupon code already exists: {coupon_code}")

class CategoryNotFound(BusinessRuleError):
    status_code = 404
    code = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Category not found: {category_id}")

class CircularCategory(BusinessRuleError):
    code = "CIRCULAR_CATEGORY"

    def __init__(self, category_id: int, parent_id: int):
        self.category_id = category_id
        self.parent_id = parent_id
        super().__init__(f"Category {parent_id} cannot be the parent of {category_id}")

class AuthenticationError(BusinessRuleError):
    status_code = 401
    code = "UNAUTHORIZED"

class EmailAlreadyRegistered(BusinessRuleError):
    status_code = 409
    code = "EMAIL_REGISTERED"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}")

class OtpError(BusinessRuleError):
    code = "OTP_INVALID"

    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason or self.code
        super().__init__(message)

class DuplicateProduct(BusinessRuleError):
    status_code = 409
    code = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU already exists: {sku}")

class InvalidCoupon(BusinessRuleError):
    code = "INVALID_COUPON"

class WishlistItemNotFound(BusinessRuleError):
    status_code = 404
    code = "WISHLIST_ITEM_NOT_FOUND"

    def __init__(self, message: str = "Wishlist item not found"):
        super().__init__(message)
