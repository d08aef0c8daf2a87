"""Tests for order placement, cancellation and status tracking."""

import asyncio
from decimal import Decimal

import pytest

from storefront.errors import (
    CheckoutTimeout, CouponRejected, Forbidden, InsufficientStock, InvalidOrderRequest,
    InvalidTransition, OrderNotFound, ProductNotFound
)
from storefront.models.coupon import CouponType
from storefront.models.order import OrderFilter, OrderMeta, OrderStatus, PaymentMethod, PaymentStatus
from storefront.services.order_service import OrderService


async def place(order_service, address, *lines, user_id=1, **kwargs):
    return await order_service.place_order(
        user_id=user_id,
        items=[{"product_id": product_id, "quantity": quantity} for product_id, quantity in lines],
        shipping_address=address,
        payment_method=PaymentMethod.COD,
        **kwargs
    )


class TestPlaceOrder:
    async def test_totals_are_exact(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "19.99", stock=10)
        pen = products.add("Pen", "PEN-1", "5.05", stock=10)

        order = await place(
            order_service, address, (mug.product_id, 3), (pen.product_id, 2),
            shipping_fee="4.99", discount="2.50"
        )

        assert order.subtotal == Decimal("70.07")
        assert order.total_amount == Decimal("72.56")
        assert order.total_amount == order.subtotal + order.shipping_fee - order.discount
        assert order.subtotal == sum(i.unit_price * i.quantity for i in order.items)
        assert [i.item_total for i in order.items] == [Decimal("59.97"), Decimal("10.10")]
        assert order.order_status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING

    async def test_decrements_stock(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)

        await place(order_service, address, (mug.product_id, 2))

        assert products.stock(mug.product_id) == 3

    async def test_snapshots_discount_price(self, order_service, products, address):
        lamp = products.add("Lamp", "LAMP-1", "100.00", stock=5, discount_price="80.00")

        order = await place(order_service, address, (lamp.product_id, 1))
        await products.update(lamp.product_id, {"discount_price": None, "price": Decimal("120.00")})

        stored = await order_service.get_order(order.order_id, requester_id=1)
        assert stored.items[0].unit_price == Decimal("80.00")
        assert stored.items[0].name == "Lamp"
        assert stored.items[0].sku == "LAMP-1"

    async def test_insufficient_stock_leaves_stock_alone(self, order_service, products, orders, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=3)

        with pytest.raises(InsufficientStock) as exc_info:
            await place(order_service, address, (mug.product_id, 5))

        assert exc_info.value.sku == "MUG-1"
        assert products.stock(mug.product_id) == 3
        assert orders.orders == {}

    async def test_repeated_product_lines_are_checked_together(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=3)

        with pytest.raises(InsufficientStock):
            await place(order_service, address, (mug.product_id, 2), (mug.product_id, 2))

        assert products.stock(mug.product_id) == 3

    async def test_failed_line_rolls_back_earlier_decrements(self, order_service, products, orders, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        pen = products.add("Pen", "PEN-1", "2.00", stock=5)

        original = products.decrement_stock

        async def pen_sold_out(product_id, quantity, conn=None):
            if product_id == pen.product_id:
                return False
            return await original(product_id, quantity, conn=conn)

        products.decrement_stock = pen_sold_out

        with pytest.raises(InsufficientStock) as exc_info:
            await place(order_service, address, (mug.product_id, 2), (pen.product_id, 1))

        assert exc_info.value.sku == "PEN-1"
        assert products.stock(mug.product_id) == 5
        assert orders.orders == {}

    async def test_concurrent_orders_never_oversell(self, order_service, products, orders, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)

        results = await asyncio.gather(
            place(order_service, address, (mug.product_id, 3), user_id=1),
            place(order_service, address, (mug.product_id, 3), user_id=2),
            return_exceptions=True
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientStock)
        assert products.stock(mug.product_id) == 2
        assert len(orders.orders) == 1

    async def test_unknown_product(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)

        with pytest.raises(ProductNotFound):
            await place(order_service, address, (mug.product_id, 1), (999, 1))

        assert products.stock(mug.product_id) == 5

    async def test_inactive_product_cannot_be_ordered(self, order_service, products, address):
        old = products.add("Old", "OLD-1", "10.00", stock=5, is_active=False)

        with pytest.raises(ProductNotFound):
            await place(order_service, address, (old.product_id, 1))

    @pytest.mark.parametrize("items", [
        [],
        [{"product_id": 1, "quantity": 0}],
        [{"product_id": 1, "quantity": -2}],
        [{"product_id": 1, "quantity": 1.5}],
        [{"product_id": 1}],
    ])
    async def test_rejects_malformed_items(self, order_service, products, address, items):
        products.add("Mug", "MUG-1", "10.00", stock=5)

        with pytest.raises(InvalidOrderRequest):
            await order_service.place_order(
                user_id=1, items=items, shipping_address=address, payment_method=PaymentMethod.CARD
            )

        assert products.stock(1) == 5

    async def test_discount_above_order_value(self, order_service, products, address):
        pen = products.add("Pen", "PEN-1", "2.00", stock=5)

        with pytest.raises(InvalidOrderRequest):
            await place(order_service, address, (pen.product_id, 1), discount="10.00")

        assert products.stock(pen.product_id) == 5

    async def test_clears_cart(self, order_service, products, carts, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        await carts.add_item(1, mug.product_id, 2, Decimal("10.00"))

        await place(order_service, address, (mug.product_id, 2))

        assert await carts.list_items(1) == []

    async def test_cart_clear_failure_keeps_order(self, order_service, products, carts, orders, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        carts.fail_clear = True

        order = await place(order_service, address, (mug.product_id, 1))

        assert order.order_id in orders.orders
        assert products.stock(mug.product_id) == 4

    async def test_timeout_rolls_back(self, db, products, orders, carts, coupon_service, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        orders.insert_delay = 1
        service = OrderService(
            db, products=products, orders=orders, carts=carts,
            coupon_service=coupon_service, timeout=0.05
        )

        with pytest.raises(CheckoutTimeout):
            await place(service, address, (mug.product_id, 2))

        assert products.stock(mug.product_id) == 5
        assert orders.orders == {}
        assert db.rollbacks == 1


class TestCheckoutCoupons:
    async def test_coupon_discount_and_usage(self, order_service, products, coupons, address):
        chair = products.add("Chair", "CHAIR-1", "100.00", stock=5)
        coupon = coupons.add(code="SAVE10", type=CouponType.PERCENTAGE, value=Decimal("10"))

        order = await place(
            order_service, address, (chair.product_id, 2),
            meta=OrderMeta(coupon="save10")
        )

        assert order.discount == Decimal("20.00")
        assert order.total_amount == Decimal("180.00")
        assert coupons.coupons[coupon.coupon_id].used_count == 1
        assert [u.order_id for u in coupons.usages] == [order.order_id]

    async def test_free_shipping_waives_fee(self, order_service, products, coupons, address):
        chair = products.add("Chair", "CHAIR-1", "100.00", stock=5)
        coupons.add(code="SHIPFREE", type=CouponType.FREE_SHIPPING, value=Decimal("0"))

        order = await place(
            order_service, address, (chair.product_id, 1),
            shipping_fee="9.99", meta=OrderMeta(coupon="SHIPFREE")
        )

        assert order.shipping_fee == Decimal("0.00")
        assert order.discount == Decimal("0.00")
        assert order.total_amount == Decimal("100.00")

    async def test_rejected_coupon_aborts_order(self, order_service, products, coupons, orders, address):
        chair = products.add("Chair", "CHAIR-1", "100.00", stock=5)
        coupons.add(code="BIG", type=CouponType.FIXED, value=Decimal("50"), min_cart_value=Decimal("500"))

        with pytest.raises(CouponRejected) as exc_info:
            await place(order_service, address, (chair.product_id, 1), meta=OrderMeta(coupon="BIG"))

        assert exc_info.value.reason == "MinCartNotMet"
        assert products.stock(chair.product_id) == 5
        assert orders.orders == {}
        assert coupons.usages == []

    async def test_exhausted_coupon_aborts_order(self, order_service, products, coupons, address):
        chair = products.add("Chair", "CHAIR-1", "100.00", stock=5)
        coupons.add(code="ONCE", type=CouponType.FIXED, value=Decimal("5"), usage_limit=1, used_count=1)

        with pytest.raises(CouponRejected) as exc_info:
            await place(order_service, address, (chair.product_id, 1), meta=OrderMeta(coupon="ONCE"))

        assert exc_info.value.reason == "UsageLimitReached"
        assert products.stock(chair.product_id) == 5


class TestCancelOrder:
    async def test_cancel_pending_restores_stock(self, order_service, products, orders, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 3))

        cancelled = await order_service.cancel_order(order.order_id, requester_id=1)

        assert cancelled.order_status == OrderStatus.CANCELLED
        assert products.stock(mug.product_id) == 5
        assert await orders.list_pending_restocks() == []

    async def test_cancel_processing(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1))
        await order_service.update_order_status(order.order_id, OrderStatus.PROCESSING, 99, True)

        cancelled = await order_service.cancel_order(order.order_id, requester_id=1)

        assert cancelled.order_status == OrderStatus.CANCELLED
        assert products.stock(mug.product_id) == 5

    async def test_cancel_shipped_is_rejected(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 2))
        await order_service.update_order_status(order.order_id, OrderStatus.PROCESSING, 99, True)
        await order_service.update_order_status(order.order_id, OrderStatus.SHIPPED, 99, True)

        with pytest.raises(InvalidTransition):
            await order_service.cancel_order(order.order_id, requester_id=1)

        assert products.stock(mug.product_id) == 3

    async def test_cancel_twice(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 2))
        await order_service.cancel_order(order.order_id, requester_id=1)

        with pytest.raises(InvalidTransition):
            await order_service.cancel_order(order.order_id, requester_id=1)

        assert products.stock(mug.product_id) == 5

    async def test_only_owner_or_admin(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1), user_id=1)

        with pytest.raises(Forbidden):
            await order_service.cancel_order(order.order_id, requester_id=2)

        cancelled = await order_service.cancel_order(order.order_id, requester_id=2, requester_is_admin=True)
        assert cancelled.order_status == OrderStatus.CANCELLED

    async def test_unknown_order(self, order_service):
        with pytest.raises(OrderNotFound):
            await order_service.cancel_order(404, requester_id=1)

    async def test_failed_restock_is_retried(self, order_service, products, orders, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        pen = products.add("Pen", "PEN-1", "2.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 2), (pen.product_id, 1))
        products.fail_increments = 1

        cancelled = await order_service.cancel_order(order.order_id, requester_id=1)

        assert cancelled.order_status == OrderStatus.CANCELLED
        assert products.stock(mug.product_id) == 3
        assert products.stock(pen.product_id) == 5
        assert len(await orders.list_pending_restocks()) == 1

        assert await order_service.process_pending_restocks() == 1
        assert products.stock(mug.product_id) == 5
        assert await order_service.process_pending_restocks() == 0

    async def test_unreadable_restock_queue_keeps_cancellation(self, order_service, products, orders, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 2))
        orders.fail_restock_listing = True

        cancelled = await order_service.cancel_order(order.order_id, requester_id=1)

        assert cancelled.order_status == OrderStatus.CANCELLED
        assert products.stock(mug.product_id) == 3

        orders.fail_restock_listing = False
        assert await order_service.process_pending_restocks() == 1
        assert products.stock(mug.product_id) == 5


class TestStatusTracking:
    async def test_forward_path(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1))

        for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            order = await order_service.update_order_status(order.order_id, status, 99, True)

        assert order.order_status == OrderStatus.DELIVERED
        assert order.delivered_at is not None

    @pytest.mark.parametrize("target", [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.PENDING])
    async def test_illegal_jump(self, order_service, products, address, target):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1))

        with pytest.raises(InvalidTransition):
            await order_service.update_order_status(order.order_id, target, 99, True)

    async def test_admin_only(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1))

        with pytest.raises(Forbidden):
            await order_service.update_order_status(order.order_id, OrderStatus.PROCESSING, 1, False)

    async def test_cancel_through_status_update(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 4))

        cancelled = await order_service.update_order_status(order.order_id, OrderStatus.CANCELLED, 99, True)

        assert cancelled.order_status == OrderStatus.CANCELLED
        assert products.stock(mug.product_id) == 5

    async def test_payment_track(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1))

        order = await order_service.update_payment_status(order.order_id, PaymentStatus.FAILED, True)
        order = await order_service.update_payment_status(order.order_id, PaymentStatus.PAID, True)
        order = await order_service.update_payment_status(order.order_id, PaymentStatus.REFUNDED, True)

        assert order.payment_status == PaymentStatus.REFUNDED
        assert order.order_status == OrderStatus.PENDING
        with pytest.raises(InvalidTransition):
            await order_service.update_payment_status(order.order_id, PaymentStatus.PAID, True)

    async def test_payment_admin_only(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1))

        with pytest.raises(Forbidden):
            await order_service.update_payment_status(order.order_id, PaymentStatus.PAID, False)


class TestOrderQueries:
    async def test_get_order_visibility(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=5)
        order = await place(order_service, address, (mug.product_id, 1), user_id=1)

        assert (await order_service.get_order(order.order_id, 1)).order_id == order.order_id
        assert (await order_service.get_order(order.order_id, 2, requester_is_admin=True)).user_id == 1
        with pytest.raises(Forbidden):
            await order_service.get_order(order.order_id, 2)
        with pytest.raises(OrderNotFound):
            await order_service.get_order(404, 1)

    async def test_user_orders_newest_first(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=10)
        first = await place(order_service, address, (mug.product_id, 1), user_id=1)
        await place(order_service, address, (mug.product_id, 1), user_id=2)
        second = await place(order_service, address, (mug.product_id, 1), user_id=1)

        mine, total = await order_service.list_user_orders(1)

        assert total == 2
        assert [o.order_id for o in mine] == [second.order_id, first.order_id]

    async def test_search_by_status(self, order_service, products, address):
        mug = products.add("Mug", "MUG-1", "10.00", stock=10)
        kept = await place(order_service, address, (mug.product_id, 1))
        dropped = await place(order_service, address, (mug.product_id, 1))
        await order_service.cancel_order(dropped.order_id, requester_id=1)

        found, total = await order_service.search_orders(OrderFilter(status=OrderStatus.PENDING))

        assert total == 1
        assert found[0].order_id == kept.order_id
