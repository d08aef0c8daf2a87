import asyncio
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple, Union
from ..config import Config
from ..errors import (
    CheckoutTimeout, CouponRejected, Forbidden, InfrastructureError, InsufficientStock,
    InvalidOrderRequest, InvalidTransition, OrderNotFound, ProductNotFound
)
from ..models.cart import CartLine
from ..models.coupon import CouponType
from ..models.order import (
    ORDER_TRANSITIONS, PAYMENT_TRANSITIONS, Order, OrderDraft, OrderFilter, OrderItem,
    OrderLineRequest, OrderMeta, OrderStatus, PaymentMethod, PaymentStatus,
    ShippingAddress, statuses_leading_to
)
from ..repositories.cart_repository import CartRepository
from ..repositories.order_repository import OrderRepository
from ..repositories.product_repository import ProductRepository
from ..services.coupon_service import CouponService
from ..utils.formatters import to_money, utcnow
from ..utils.messages import Messages

class OrderService:
    """Order placement, cancellation and status tracking"""

    def __init__(self, db, products: Optional[ProductRepository] = None,
                 orders: Optional[OrderRepository] = None,
                 carts: Optional[CartRepository] = None,
                 coupon_service: Optional[CouponService] = None,
                 timeout: Optional[float] = None):
        self.db = db
        self.products = products or ProductRepository(db)
        self.orders = orders or OrderRepository(db)
        self.carts = carts or CartRepository(db)
        self.coupon_service = coupon_service or CouponService(db)
        self.timeout = timeout if timeout is not None else Config.ORDER_TIMEOUT_SECONDS
        self.logger = logging.getLogger(__name__)

    async def place_order(self, user_id: int, items: Sequence[OrderLineRequest],
                          shipping_address: ShippingAddress, payment_method: PaymentMethod,
                          shipping_fee: Union[Decimal, int, str] = 0,
                          discount: Union[Decimal, int, str] = 0,
                          meta: Optional[OrderMeta] = None) -> Order:
        """Create an order and take its items out of stock.

        Stock decrements, the order insert and, when meta.coupon is set, the
        coupon usage all commit together or not at all. Each decrement is
        conditional on enough stock being left, so two orders racing for the
        last units cannot both succeed. The cart is cleared afterwards on a
        best-effort basis.
        """
        lines = self._validate_lines(items)
        shipping_fee = to_money(shipping_fee)
        discount = to_money(discount)
        if shipping_fee < 0 or discount < 0:
            raise InvalidOrderRequest("shipping_fee and discount must not be negative")
        meta = meta or OrderMeta()

        try:
            order = await asyncio.wait_for(
                self._place_order(user_id, lines, shipping_address, payment_method,
                                  shipping_fee, discount, meta),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            self.logger.warning(f"Order placement for user {user_id} timed out and was rolled back")
            raise CheckoutTimeout(self.timeout)

        self.logger.info(f"Placed {Messages.order_summary(order)}")
        await self._clear_cart(user_id)
        return order

    async def _place_order(self, user_id: int, lines: List[OrderLineRequest],
                           shipping_address: ShippingAddress, payment_method: PaymentMethod,
                           shipping_fee: Decimal, discount: Decimal, meta: OrderMeta) -> Order:
        async with self.db.transaction() as conn:
            order_items, subtotal = await self._build_order_items(lines, conn)

            cart_snapshot = None
            if meta.coupon:
                cart_snapshot = [
                    CartLine(product_id=i.product_id, price=i.unit_price, quantity=i.quantity)
                    for i in order_items
                ]
                evaluation = await self.coupon_service.evaluate(
                    meta.coupon, cart_snapshot, user_id, conn=conn, for_update=True
                )
                if not evaluation.valid:
                    raise CouponRejected(meta.coupon, evaluation.reason.value)
                discount = evaluation.discount
                if evaluation.coupon.type == CouponType.FREE_SHIPPING:
                    shipping_fee = Decimal("0.00")

            total_amount = subtotal + shipping_fee - discount
            if total_amount < 0:
                raise InvalidOrderRequest("discount exceeds the order value")

            # submission order keeps lock acquisition deterministic
            for item in order_items:
                if not await self.products.decrement_stock(item.product_id, item.quantity, conn=conn):
                    self.logger.warning(
                        f"Stock for SKU {item.sku} was taken by a concurrent order"
                    )
                    raise InsufficientStock(item.sku)

            order = await self.orders.insert(OrderDraft(
                user_id=user_id,
                items=order_items,
                shipping_address=shipping_address,
                payment_method=payment_method,
                payment_status=PaymentStatus.PENDING,
                order_status=OrderStatus.PENDING,
                subtotal=subtotal,
                shipping_fee=shipping_fee,
                discount=discount,
                total_amount=total_amount,
                meta=meta,
                placed_at=utcnow()
            ), conn=conn)

            if meta.coupon:
                applied = await self.coupon_service.apply_coupon(
                    meta.coupon, cart_snapshot, user_id, order_id=order.order_id, conn=conn
                )
                if not applied.valid:
                    raise CouponRejected(meta.coupon, applied.reason.value)

            return order

    async def _build_order_items(self, lines: List[OrderLineRequest], conn) -> Tuple[List[OrderItem], Decimal]:
        """Snapshot current prices and check stock before anything is written"""
        products = {}
        requested: Dict[int, int] = {}

        for line in lines:
            if line.product_id not in products:
                product = await self.products.get(line.product_id, conn=conn)
                if not product:
                    raise ProductNotFound(line.product_id)
                products[line.product_id] = product
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        for product_id, quantity in requested.items():
            if products[product_id].stock_quantity < quantity:
                raise InsufficientStock(products[product_id].sku)

        order_items = []
        for line in lines:
            product = products[line.product_id]
            unit_price = to_money(product.unit_price)
            order_items.append(OrderItem(
                product_id=product.product_id,
                name=product.name,
                sku=product.sku,
                unit_price=unit_price,
                quantity=line.quantity,
                item_total=unit_price * line.quantity
            ))

        subtotal = sum((item.item_total for item in order_items), Decimal("0.00"))
        return order_items, subtotal

    @staticmethod
    def _validate_lines(items: Sequence[Union[OrderLineRequest, dict]]) -> List[OrderLineRequest]:
        if not items:
            raise InvalidOrderRequest("items must be a non-empty list")
        lines = []
        for item in items:
            if isinstance(item, dict):
                product_id, quantity = item.get("product_id"), item.get("quantity")
            else:
                product_id, quantity = item.product_id, item.quantity
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                raise InvalidOrderRequest(f"quantity must be a positive integer (product {product_id})")
            if not isinstance(product_id, int):
                raise InvalidOrderRequest("product_id must be an integer")
            lines.append(OrderLineRequest(product_id=product_id, quantity=quantity))
        return lines

    async def _clear_cart(self, user_id: int):
        try:
            await self.carts.clear_for_user(user_id)
        except Exception as e:
            self.logger.error(f"Could not clear cart of user {user_id}: {e}")

    async def cancel_order(self, order_id: int, requester_id: int, requester_is_admin: bool = False) -> Order:
        """Cancel an order that has not shipped and put its items back in stock.

        The status change and the restock intents commit together. Restocks
        are then applied one by one; one that fails stays pending for
        process_pending_restocks and does not undo the cancellation.
        """
        order = await self.orders.get(order_id)
        if not order:
            raise OrderNotFound(order_id)

        if order.user_id != requester_id and not requester_is_admin:
            raise Forbidden("Only the owner or an admin can cancel this order")

        if not order.is_cancellable:
            raise InvalidTransition(order.order_status.value, OrderStatus.CANCELLED.value)

        async with self.db.transaction() as conn:
            cancelled = await self.orders.transition_status(
                order_id, OrderStatus.CANCELLED,
                from_statuses=statuses_leading_to(OrderStatus.CANCELLED),
                conn=conn
            )
            if not cancelled:
                current = await self.orders.get(order_id, conn=conn)
                raise InvalidTransition(
                    current.order_status.value if current else order.order_status.value,
                    OrderStatus.CANCELLED.value
                )
            await self.orders.enqueue_restocks(order_id, cancelled.items, conn=conn)

        self.logger.info(f"Order {order_id} cancelled by user {requester_id}")
        try:
            await self.process_pending_restocks(order_id=order_id)
        except InfrastructureError as e:
            self.logger.error(f"Restocks for order {order_id} left pending for retry: {e}")
        return cancelled

    async def process_pending_restocks(self, order_id: Optional[int] = None) -> int:
        """Apply outstanding restocks; returns how many were applied"""
        restocks = await self.orders.list_pending_restocks(order_id=order_id)
        applied = 0

        for restock in restocks:
            try:
                async with self.db.transaction() as conn:
                    if not await self.orders.mark_restock_done(restock.restock_id, conn=conn):
                        continue
                    if not await self.products.increment_stock(restock.product_id, restock.quantity, conn=conn):
                        self.logger.warning(
                            f"Product {restock.product_id} no longer exists; "
                            f"restock {restock.restock_id} dropped"
                        )
                applied += 1
            except InfrastructureError as e:
                self.logger.error(
                    f"Restock {restock.restock_id} for order {restock.order_id} failed, "
                    f"will retry: {e}"
                )

        return applied

    async def update_order_status(self, order_id: int, new_status: OrderStatus,
                                  requester_id: int, requester_is_admin: bool) -> Order:
        """Admin transition along pending -> processing -> shipped -> delivered"""
        if not requester_is_admin:
            raise Forbidden("Only admins can change order status")

        if new_status == OrderStatus.CANCELLED:
            return await self.cancel_order(order_id, requester_id, requester_is_admin=True)

        order = await self.orders.get(order_id)
        if not order:
            raise OrderNotFound(order_id)

        if new_status not in ORDER_TRANSITIONS[order.order_status]:
            raise InvalidTransition(order.order_status.value, new_status.value)

        updated = await self.orders.transition_status(
            order_id, new_status,
            from_statuses=[order.order_status],
            delivered_at=utcnow() if new_status == OrderStatus.DELIVERED else None
        )
        if not updated:
            raise InvalidTransition(order.order_status.value, new_status.value)

        self.logger.info(f"Order {order_id}: {order.order_status.value} -> {new_status.value}")
        return updated

    async def update_payment_status(self, order_id: int, new_status: PaymentStatus,
                                    requester_is_admin: bool) -> Order:
        """Admin transition on the payment track"""
        if not requester_is_admin:
            raise Forbidden("Only admins can change payment status")

        order = await self.orders.get(order_id)
        if not order:
            raise OrderNotFound(order_id)

        if new_status not in PAYMENT_TRANSITIONS[order.payment_status]:
            raise InvalidTransition(order.payment_status.value, new_status.value)

        updated = await self.orders.transition_payment_status(
            order_id, new_status, from_statuses=[order.payment_status]
        )
        if not updated:
            raise InvalidTransition(order.payment_status.value, new_status.value)

        self.logger.info(f"Order {order_id} payment: {order.payment_status.value} -> {new_status.value}")
        return updated

    async def get_order(self, order_id: int, requester_id: int, requester_is_admin: bool = False) -> Order:
        order = await self.orders.get(order_id)
        if not order:
            raise OrderNotFound(order_id)
        if order.user_id != requester_id and not requester_is_admin:
            raise Forbidden()
        return order

    async def list_user_orders(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[Order], int]:
        return await self.orders.search(OrderFilter(user_id=user_id), page=page, limit=limit)

    async def search_orders(self, order_filter: OrderFilter, page: int = 1,
                            limit: int = 20) -> Tuple[List[Order], int]:
        return await self.orders.search(order_filter, page=page, limit=limit)
