import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from ..models.order import (
    Order, OrderDraft, OrderFilter, OrderItem, OrderStatus, PaymentStatus, Restock
)

class OrderRepository:
    """Orders, their line snapshots and pending restocks"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def insert(self, draft: OrderDraft, conn=None) -> Order:
        """Insert an order with its items"""
        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow("""
                INSERT INTO orders (
                    user_id, shipping_address, payment_method, payment_status,
                    order_status, subtotal, shipping_fee, discount,
                    total_amount, meta, placed_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                RETURNING *
            """,
                draft.user_id,
                draft.shipping_address.model_dump(mode="json"),
                draft.payment_method.value,
                draft.payment_status.value,
                draft.order_status.value,
                draft.subtotal,
                draft.shipping_fee,
                draft.discount,
                draft.total_amount,
                draft.meta.model_dump(mode="json"),
                draft.placed_at
            )

            await conn.executemany("""
                INSERT INTO order_items (
                    order_id, position, product_id, name, sku,
                    unit_price, quantity, item_total
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """, [
                (row['order_id'], position, item.product_id, item.name, item.sku,
                 item.unit_price, item.quantity, item.item_total)
                for position, item in enumerate(draft.items)
            ])

            return self._to_order(row, draft.items)

    async def get(self, order_id: int, conn=None) -> Optional[Order]:
        """Fetch an order with its items"""
        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow("SELECT * FROM orders WHERE order_id = $1", order_id)
            if not row:
                return None
            items = await self._fetch_items(conn, [order_id])
            return self._to_order(row, items.get(order_id, []))

    async def transition_status(self, order_id: int, status: OrderStatus,
                                from_statuses: Sequence[OrderStatus], conn=None,
                                delivered_at: Optional[datetime] = None) -> Optional[Order]:
        """Move the order to status only while it is still in one of from_statuses"""
        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow("""
                UPDATE orders
                SET order_status = $1,
                    delivered_at = COALESCE($2, delivered_at),
                    updated_at = NOW()
                WHERE order_id = $3 AND order_status = ANY($4::varchar[])
                RETURNING *
            """, status.value, delivered_at, order_id, [s.value for s in from_statuses])
            if not row:
                return None
            items = await self._fetch_items(conn, [order_id])
            return self._to_order(row, items.get(order_id, []))

    async def transition_payment_status(self, order_id: int, status: PaymentStatus,
                                        from_statuses: Sequence[PaymentStatus],
                                        conn=None) -> Optional[Order]:
        """Move the payment track to status only from one of from_statuses"""
        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow("""
                UPDATE orders
                SET payment_status = $1, updated_at = NOW()
                WHERE order_id = $2 AND payment_status = ANY($3::varchar[])
                RETURNING *
            """, status.value, order_id, [s.value for s in from_statuses])
            if not row:
                return None
            items = await self._fetch_items(conn, [order_id])
            return self._to_order(row, items.get(order_id, []))

    async def search(self, order_filter: OrderFilter, page: int = 1,
                     limit: int = 20) -> Tuple[List[Order], int]:
        """Orders matching the filter, newest first"""
        conditions = ["1=1"]
        params: List[Any] = []

        if order_filter.status is not None:
            params.append(order_filter.status.value)
            conditions.append(f"order_status = ${len(params)}")

        if order_filter.user_id is not None:
            params.append(order_filter.user_id)
            conditions.append(f"user_id = ${len(params)}")

        if order_filter.date_from is not None:
            params.append(order_filter.date_from)
            conditions.append(f"created_at >= ${len(params)}")

        if order_filter.date_to is not None:
            params.append(order_filter.date_to)
            conditions.append(f"created_at <= ${len(params)}")

        where = " AND ".join(conditions)

        async with self.db.connection() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM orders WHERE {where}", *params)
            rows = await conn.fetch(f"""
                SELECT *
                FROM orders
                WHERE {where}
                ORDER BY created_at DESC, order_id DESC
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
            """, *params, limit, (page - 1) * limit)

            items = await self._fetch_items(conn, [r['order_id'] for r in rows])
            orders = [self._to_order(r, items.get(r['order_id'], [])) for r in rows]
            return orders, total

    async def enqueue_restocks(self, order_id: int, items: Sequence[OrderItem], conn=None):
        """Record one stock restoration per order line"""
        async with self.db.connection(conn) as conn:
            await conn.executemany("""
                INSERT INTO order_restocks (order_id, product_id, quantity)
                VALUES ($1, $2, $3)
            """, [(order_id, item.product_id, item.quantity) for item in items])

    async def list_pending_restocks(self, order_id: Optional[int] = None,
                                    limit: int = 100) -> List[Restock]:
        """Restocks that have not been applied yet, oldest first"""
        async with self.db.connection() as conn:
            rows = await conn.fetch("""
                SELECT restock_id, order_id, product_id, quantity
                FROM order_restocks
                WHERE restored_at IS NULL AND ($1::bigint IS NULL OR order_id = $1)
                ORDER BY restock_id
                LIMIT $2
            """, order_id, limit)
            return [Restock.model_validate(dict(r)) for r in rows]

    async def mark_restock_done(self, restock_id: int, conn=None) -> bool:
        """Claim a pending restock; False when it was already applied"""
        async with self.db.connection(conn) as conn:
            result = await conn.execute("""
                UPDATE order_restocks
                SET restored_at = NOW()
                WHERE restock_id = $1 AND restored_at IS NULL
            """, restock_id)
            return result == "UPDATE 1"

    async def _fetch_items(self, conn, order_ids: List[int]) -> Dict[int, List[OrderItem]]:
        if not order_ids:
            return {}
        rows = await conn.fetch("""
            SELECT order_id, product_id, name, sku, unit_price, quantity, item_total
            FROM order_items
            WHERE order_id = ANY($1::bigint[])
            ORDER BY order_id, position
        """, order_ids)

        items: Dict[int, List[OrderItem]] = {}
        for r in rows:
            items.setdefault(r['order_id'], []).append(OrderItem.model_validate(dict(r)))
        return items

    @staticmethod
    def _to_order(row, items: Sequence[OrderItem]) -> Order:
        data = dict(row)
        data['items'] = list(items)
        return Order.model_validate(data)
