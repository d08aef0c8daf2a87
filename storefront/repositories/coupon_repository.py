import asyncpg
import logging
from typing import Any, Dict, List, Optional
from ..errors import DuplicateCoupon
from ..models.cart import CartLine
from ..models.coupon import Coupon, CouponDraft, CouponUsage, CouponUsageStats

class CouponRepository:
    """Coupons and the append-only usage ledger"""

    UPDATABLE_FIELDS = {
        "title", "description", "type", "value", "max_discount_amount",
        "min_cart_value", "usage_limit", "usage_per_user", "start_date",
        "end_date", "is_active", "bogo"
    }

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def create(self, draft: CouponDraft) -> Coupon:
        """Store a new coupon"""
        async with self.db.connection() as conn:
            try:
                row = await conn.fetchrow("""
                    INSERT INTO coupons (
                        code, title, description, type, value,
                        max_discount_amount, min_cart_value, usage_limit,
                        usage_per_user, start_date, end_date, is_active,
                        bogo, created_by
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                    RETURNING *
                """,
                    draft.code,
                    draft.title,
                    draft.description,
                    draft.type.value,
                    draft.value,
                    draft.max_discount_amount,
                    draft.min_cart_value,
                    draft.usage_limit,
                    draft.usage_per_user,
                    draft.start_date,
                    draft.end_date,
                    draft.is_active,
                    draft.bogo.model_dump() if draft.bogo else None,
                    draft.created_by
                )
            except asyncpg.UniqueViolationError:
                raise DuplicateCoupon(draft.code)
            return Coupon.model_validate(dict(row))

    async def get(self, coupon_id: int) -> Optional[Coupon]:
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                SELECT * FROM coupons
                WHERE coupon_id = $1 AND is_deleted = false
            """, coupon_id)
            return Coupon.model_validate(dict(row)) if row else None

    async def find_active_by_code(self, code: str, conn=None, for_update: bool = False) -> Optional[Coupon]:
        """Active, non-deleted coupon by code; for_update locks the row for the transaction"""
        query = """
            SELECT * FROM coupons
            WHERE code = $1 AND is_active = true AND is_deleted = false
        """
        if for_update:
            query += " FOR UPDATE"

        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow(query, code.strip().upper())
            return Coupon.model_validate(dict(row)) if row else None

    async def search(self, code: Optional[str] = None, is_active: Optional[bool] = None) -> List[Coupon]:
        """Non-deleted coupons, optionally filtered by code fragment and state"""
        async with self.db.connection() as conn:
            rows = await conn.fetch("""
                SELECT * FROM coupons
                WHERE is_deleted = false
                AND ($1::text IS NULL OR code ILIKE '%' || $1 || '%')
                AND ($2::boolean IS NULL OR is_active = $2)
                ORDER BY created_at DESC
            """, code, is_active)
            return [Coupon.model_validate(dict(r)) for r in rows]

    async def update(self, coupon_id: int, fields: Dict[str, Any]) -> Optional[Coupon]:
        """Update coupon fields"""
        query_parts = []
        params = []
        param_count = 1

        for key, value in fields.items():
            if key not in self.UPDATABLE_FIELDS:
                raise ValueError(f"Unknown coupon field: {key}")
            query_parts.append(f"{key} = ${param_count}")
            params.append(value)
            param_count += 1

        if not query_parts:
            return await self.get(coupon_id)

        params.append(coupon_id)
        query = f"""
            UPDATE coupons
            SET {', '.join(query_parts)}, updated_at = NOW()
            WHERE coupon_id = ${param_count} AND is_deleted = false
            RETURNING *
        """

        async with self.db.connection() as conn:
            row = await conn.fetchrow(query, *params)
            return Coupon.model_validate(dict(row)) if row else None

    async def toggle_active(self, coupon_id: int) -> Optional[Coupon]:
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                UPDATE coupons
                SET is_active = NOT is_active, updated_at = NOW()
                WHERE coupon_id = $1 AND is_deleted = false
                RETURNING *
            """, coupon_id)
            return Coupon.model_validate(dict(row)) if row else None

    async def soft_delete(self, coupon_id: int) -> bool:
        async with self.db.connection() as conn:
            result = await conn.execute("""
                UPDATE coupons
                SET is_deleted = true, updated_at = NOW()
                WHERE coupon_id = $1 AND is_deleted = false
            """, coupon_id)
            return result == "UPDATE 1"

    async def increment_used_count(self, coupon_id: int, conn=None) -> bool:
        """Count one more use unless the usage limit is already reached"""
        async with self.db.connection(conn) as conn:
            result = await conn.execute("""
                UPDATE coupons
                SET used_count = used_count + 1, updated_at = NOW()
                WHERE coupon_id = $1
                AND (usage_limit IS NULL OR used_count < usage_limit)
            """, coupon_id)
            return result == "UPDATE 1"

    async def count_usage(self, coupon_id: int, user_id: int, conn=None) -> int:
        async with self.db.connection(conn) as conn:
            count = await conn.fetchval("""
                SELECT COUNT(*) FROM coupon_usages
                WHERE coupon_id = $1 AND user_id = $2
            """, coupon_id, user_id)
            return count or 0

    async def find_usage_for_order(self, coupon_id: int, order_id: int, conn=None) -> Optional[CouponUsage]:
        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow("""
                SELECT * FROM coupon_usages
                WHERE coupon_id = $1 AND order_id = $2
            """, coupon_id, order_id)
            return CouponUsage.model_validate(dict(row)) if row else None

    async def append_usage(self, coupon_id: int, user_id: Optional[int], order_id: Optional[int],
                           amount_discounted, cart_snapshot: List[CartLine], conn=None) -> CouponUsage:
        """Write a ledger entry"""
        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow("""
                INSERT INTO coupon_usages (
                    coupon_id, user_id, order_id, amount_discounted, cart_snapshot
                ) VALUES ($1, $2, $3, $4, $5)
                RETURNING *
            """,
                coupon_id,
                user_id,
                order_id,
                amount_discounted,
                [line.model_dump(mode="json") for line in cart_snapshot]
            )
            return CouponUsage.model_validate(dict(row))

    async def usage_report(self) -> List[CouponUsageStats]:
        """Times used and total discount per coupon"""
        async with self.db.connection() as conn:
            rows = await conn.fetch("""
                SELECT
                    c.coupon_id,
                    c.code,
                    COUNT(u.usage_id) as total_used,
                    COALESCE(SUM(u.amount_discounted), 0) as total_discount
                FROM coupons c
                JOIN coupon_usages u ON u.coupon_id = c.coupon_id
                GROUP BY c.coupon_id, c.code
                ORDER BY total_used DESC
            """)
            return [CouponUsageStats.model_validate(dict(r)) for r in rows]
