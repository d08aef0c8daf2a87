import logging
from decimal import Decimal
from typing import List, Optional, Tuple
from ..models.wishlist import WishlistItem

class WishlistRepository:
    """One row per (user, product) on the wishlist"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _with_inserted(row) -> Tuple[WishlistItem, bool]:
        data = dict(row)
        inserted = data.pop("inserted")
        return WishlistItem.model_validate(data), inserted

    async def add_item(self, user_id: int, product_id: int, note: Optional[str],
                       price: Decimal) -> Tuple[WishlistItem, bool]:
        """Save a product, or reactivate and refresh an existing entry.

        Returns the row and whether it was newly created. A note of None
        keeps the stored one.
        """
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                INSERT INTO wishlist_items (user_id, product_id, note, price_at_add)
                VALUES ($1, $2, COALESCE($3::text, ''), $4)
                ON CONFLICT (user_id, product_id)
                DO UPDATE SET
                    note = COALESCE($3::text, wishlist_items.note),
                    price_at_add = EXCLUDED.price_at_add,
                    is_active = true,
                    updated_at = NOW()
                RETURNING *, (xmax = 0) AS inserted
            """, user_id, product_id, note, price)
            return self._with_inserted(row)

    async def toggle(self, user_id: int, product_id: int, price: Decimal) -> Tuple[WishlistItem, bool]:
        """Create an active entry or flip is_active on the existing one"""
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                INSERT INTO wishlist_items (user_id, product_id, price_at_add)
                VALUES ($1, $2, $3)
                ON CONFLICT (user_id, product_id)
                DO UPDATE SET
                    is_active = NOT wishlist_items.is_active,
                    updated_at = NOW()
                RETURNING *, (xmax = 0) AS inserted
            """, user_id, product_id, price)
            return self._with_inserted(row)

    async def list_items(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[WishlistItem], int]:
        """Active entries, newest first"""
        async with self.db.connection() as conn:
            total = await conn.fetchval("""
                SELECT COUNT(*) FROM wishlist_items
                WHERE user_id = $1 AND is_active = true
            """, user_id)
            rows = await conn.fetch("""
                SELECT * FROM wishlist_items
                WHERE user_id = $1 AND is_active = true
                ORDER BY created_at DESC, wishlist_item_id DESC
                LIMIT $2 OFFSET $3
            """, user_id, limit, (page - 1) * limit)
            return [WishlistItem.model_validate(dict(r)) for r in rows], total

    async def get_item(self, user_id: int, wishlist_item_id: int) -> Optional[WishlistItem]:
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                SELECT * FROM wishlist_items
                WHERE wishlist_item_id = $1 AND user_id = $2
            """, wishlist_item_id, user_id)
            return WishlistItem.model_validate(dict(row)) if row else None

    async def remove_item(self, user_id: int, wishlist_item_id: int) -> bool:
        async with self.db.connection() as conn:
            result = await conn.execute("""
                DELETE FROM wishlist_items
                WHERE wishlist_item_id = $1 AND user_id = $2
            """, wishlist_item_id, user_id)
            return result == "DELETE 1"

    async def remove_product(self, user_id: int, product_id: int) -> bool:
        async with self.db.connection() as conn:
            result = await conn.execute("""
                DELETE FROM wishlist_items
                WHERE user_id = $1 AND product_id = $2
            """, user_id, product_id)
            return result == "DELETE 1"

    async def clear_for_user(self, user_id: int):
        async with self.db.connection() as conn:
            await conn.execute("DELETE FROM wishlist_items WHERE user_id = $1", user_id)
