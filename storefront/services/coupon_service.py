import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional
from pydantic import ValidationError
from ..errors import CouponNotFound, Forbidden, InvalidCoupon, OrderNotFound
from ..models.cart import CartLine, cart_subtotal
from ..models.coupon import (
    Coupon, CouponDraft, CouponEvaluation, CouponReason, CouponType, CouponUsageStats
)
from ..repositories.coupon_repository import CouponRepository
from ..repositories.order_repository import OrderRepository
from ..utils.formatters import to_money, utcnow

class CouponService:
    """Coupon evaluation, application and administration"""

    def __init__(self, db, coupons: Optional[CouponRepository] = None,
                 orders: Optional[OrderRepository] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.coupons = coupons or CouponRepository(db)
        self.orders = orders or OrderRepository(db)
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    async def evaluate(self, code: str, cart_items: List[CartLine], user_id: Optional[int] = None,
                       conn=None, for_update: bool = False) -> CouponEvaluation:
        """Check whether a coupon applies to a cart and what it takes off.

        Nothing is written. Every rejection comes back as a CouponEvaluation
        with valid=False and a reason; callers must check valid before
        trusting the discount.
        """
        coupon = await self.coupons.find_active_by_code(code, conn=conn, for_update=for_update)
        if not coupon:
            return CouponEvaluation.rejected(CouponReason.INVALID_COUPON)
        return await self._evaluate_coupon(coupon, cart_items, user_id, conn)

    async def apply_coupon(self, code: str, cart_items: List[CartLine], user_id: Optional[int],
                           order_id: Optional[int] = None, conn=None) -> CouponEvaluation:
        """Evaluate and, when valid, record the use of a coupon.

        The used_count increment and the usage entry happen in one
        transaction: the caller's when conn is given, a new one otherwise.
        With an order_id the call is idempotent, a repeat returns the
        discount recorded the first time.
        """
        if conn is None:
            async with self.db.transaction() as conn:
                return await self._apply(code, cart_items, user_id, order_id, conn)
        return await self._apply(code, cart_items, user_id, order_id, conn)

    async def _apply(self, code, cart_items, user_id, order_id, conn) -> CouponEvaluation:
        coupon = await self.coupons.find_active_by_code(code, conn=conn, for_update=True)
        if not coupon:
            return CouponEvaluation.rejected(CouponReason.INVALID_COUPON)

        if order_id is not None:
            order = await self.orders.get(order_id, conn=conn)
            if not order:
                raise OrderNotFound(order_id)
            if order.user_id != user_id:
                raise Forbidden("Coupons can only be applied to your own orders")

            existing = await self.coupons.find_usage_for_order(coupon.coupon_id, order_id, conn=conn)
            if existing:
                subtotal = to_money(cart_subtotal(existing.cart_snapshot))
                return CouponEvaluation(
                    valid=True,
                    discount=existing.amount_discounted,
                    subtotal=subtotal,
                    new_total=subtotal - existing.amount_discounted,
                    coupon=coupon
                )

        result = await self._evaluate_coupon(coupon, cart_items, user_id, conn)
        if not result.valid:
            self.logger.info(f"Coupon {coupon.code} not applied for user {user_id}: {result.reason.value}")
            return result

        if not await self.coupons.increment_used_count(coupon.coupon_id, conn=conn):
            self.logger.warning(f"Coupon {coupon.code} hit its usage limit while applying")
            return CouponEvaluation.rejected(CouponReason.USAGE_LIMIT_REACHED)

        await self.coupons.append_usage(
            coupon_id=coupon.coupon_id,
            user_id=user_id,
            order_id=order_id,
            amount_discounted=result.discount,
            cart_snapshot=cart_items,
            conn=conn
        )

        self.logger.info(
            f"Coupon {coupon.code} applied for user {user_id}"
            f"{f' on order {order_id}' if order_id else ''}: -{result.discount}"
        )
        return result

    async def _evaluate_coupon(self, coupon: Coupon, cart_items: List[CartLine],
                               user_id: Optional[int], conn) -> CouponEvaluation:
        now = self.clock()
        if coupon.start_date and now < coupon.start_date:
            return CouponEvaluation.rejected(CouponReason.NOT_STARTED)

        if coupon.end_date and now > coupon.end_date:
            return CouponEvaluation.rejected(CouponReason.EXPIRED)

        if coupon.is_exhausted:
            return CouponEvaluation.rejected(CouponReason.USAGE_LIMIT_REACHED)

        if user_id is not None and coupon.usage_per_user:
            used_by_user = await self.coupons.count_usage(coupon.coupon_id, user_id, conn=conn)
            if used_by_user >= coupon.usage_per_user:
                return CouponEvaluation.rejected(CouponReason.USER_LIMIT_REACHED)

        subtotal = to_money(cart_subtotal(cart_items))
        if coupon.min_cart_value is not None and subtotal < coupon.min_cart_value:
            return CouponEvaluation.rejected(CouponReason.MIN_CART_NOT_MET)

        discount = self.compute_discount(coupon, cart_items, subtotal)
        return CouponEvaluation(
            valid=True,
            discount=discount,
            subtotal=subtotal,
            new_total=subtotal - discount,
            coupon=coupon
        )

    @staticmethod
    def compute_discount(coupon: Coupon, cart_items: List[CartLine], subtotal: Decimal) -> Decimal:
        """Discount for a coupon that passed every eligibility check"""
        discount = Decimal(0)
        if coupon.type == CouponType.PERCENTAGE:
            discount = subtotal * coupon.value / 100
        elif coupon.type == CouponType.FIXED:
            discount = coupon.value
        elif coupon.type == CouponType.BOGO and coupon.bogo:
            # first matching line only
            line = next(
                (i for i in cart_items if i.product_id == coupon.bogo.get_product_id),
                None
            )
            if line and line.quantity >= coupon.bogo.buy_quantity:
                discount = line.price * coupon.bogo.get_quantity
        # free shipping is waived by the caller, not discounted here

        if coupon.max_discount_amount is not None and discount > coupon.max_discount_amount:
            discount = coupon.max_discount_amount

        return to_money(min(discount, subtotal))

    async def create_coupon(self, draft: CouponDraft) -> Coupon:
        coupon = await self.coupons.create(draft)
        self.logger.info(f"Coupon {coupon.code} created")
        return coupon

    async def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = await self.coupons.get(coupon_id)
        if not coupon:
            raise CouponNotFound(coupon_id)
        return coupon

    async def list_coupons(self, code: Optional[str] = None, status: Optional[str] = None) -> List[Coupon]:
        """Search by code fragment; status is 'active', 'inactive' or None for both"""
        is_active = {"active": True, "inactive": False}.get(status)
        return await self.coupons.search(code=code, is_active=is_active)

    async def update_coupon(self, coupon_id: int, changes: dict) -> Coupon:
        """Apply partial changes, re-checking the coupon rules on the merged result"""
        current = await self.get_coupon(coupon_id)
        try:
            merged = CouponDraft.model_validate({**current.model_dump(), **changes, "code": current.code})
        except ValidationError as e:
            raise InvalidCoupon(str(e))
        if merged.usage_limit is not None and merged.usage_limit < current.used_count:
            raise InvalidCoupon(f"usage_limit is below the {current.used_count} uses already recorded")

        fields = {}
        for key in changes:
            if key not in self.coupons.UPDATABLE_FIELDS:
                continue
            value = getattr(merged, key)
            if key == "type":
                value = value.value
            elif key == "bogo":
                value = value.model_dump() if value else None
            fields[key] = value

        coupon = await self.coupons.update(coupon_id, fields)
        if not coupon:
            raise CouponNotFound(coupon_id)
        return coupon

    async def toggle_coupon(self, coupon_id: int) -> Coupon:
        coupon = await self.coupons.toggle_active(coupon_id)
        if not coupon:
            raise CouponNotFound(coupon_id)
        self.logger.info(f"Coupon {coupon.code} is now {'active' if coupon.is_active else 'inactive'}")
        return coupon

    async def delete_coupon(self, coupon_id: int):
        """Soft delete; the coupon never applies again"""
        if not await self.coupons.soft_delete(coupon_id):
            raise CouponNotFound(coupon_id)
        self.logger.info(f"Coupon {coupon_id} deleted")

    async def usage_report(self) -> List[CouponUsageStats]:
        return await self.coupons.usage_report()
