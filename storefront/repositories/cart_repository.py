import logging
from decimal import Decimal
from typing import List, Optional
from ..models.cart import CartItem

class CartRepository:
    """One row per (user, product) in the shopping cart"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def list_items(self, user_id: int) -> List[CartItem]:
        async with self.db.connection() as conn:
            rows = await conn.fetch("""
                SELECT * FROM cart_items
                WHERE user_id = $1
                ORDER BY created_at
            """, user_id)
            return [CartItem.model_validate(dict(r)) for r in rows]

    async def add_item(self, user_id: int, product_id: int, quantity: int, price: Decimal) -> CartItem:
        """Add quantity to the line, refreshing its price"""
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                INSERT INTO cart_items (user_id, product_id, quantity, price_at_time)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id, product_id)
                DO UPDATE SET
                    quantity = cart_items.quantity + EXCLUDED.quantity,
                    price_at_time = EXCLUDED.price_at_time,
                    updated_at = NOW()
                RETURNING *
            """, user_id, product_id, quantity, price)
            return CartItem.model_validate(dict(row))

    async def set_quantity(self, user_id: int, product_id: int, quantity: int) -> Optional[CartItem]:
        async with self.db.connection() as conn:
            row = await conn.fetchrow("""
                UPDATE cart_items
                SET quantity = $1, updated_at = NOW()
                WHERE user_id = $2 AND product_id = $3
                RETURNING *
            """, quantity, user_id, product_id)
            return CartItem.model_validate(dict(row)) if row else None

    async def remove_item(self, user_id: int, product_id: int) -> bool:
        async with self.db.connection() as conn:
            result = await conn.execute("""
                DELETE FROM cart_items
                WHERE user_id = $1 AND product_id = $2
            """, user_id, product_id)
            return result == "DELETE 1"

    async def clear_for_user(self, user_id: int):
        """Empty the user's cart"""
        async with self.db.connection() as conn:
            await conn.execute("DELETE FROM cart_items WHERE user_id = $1", user_id)
