import asyncpg
import logging
from typing import Any, Dict, List, Optional, Tuple
from ..errors import CategoryNotFound, DuplicateProduct
from ..models.product import Product, ProductDraft

class ProductRepository:
    """Catalog rows and the stock counter"""

    UPDATABLE_FIELDS = {
        "name", "description", "sku", "category_id",
        "price", "discount_price", "stock_quantity", "is_active"
    }

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def create(self, draft: ProductDraft) -> Product:
        """Add a product to the catalog"""
        async with self.db.connection() as conn:
            try:
                row = await conn.fetchrow("""
                    INSERT INTO products (
                        category_id, name, description, sku, price,
                        discount_price, stock_quantity, is_active
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    RETURNING *
                """,
                    draft.category_id,
                    draft.name,
                    draft.description,
                    draft.sku,
                    draft.price,
                    draft.discount_price,
                    draft.stock_quantity,
                    draft.is_active
                )
            except asyncpg.UniqueViolationError:
                raise DuplicateProduct(draft.sku)
            except asyncpg.ForeignKeyViolationError:
                raise CategoryNotFound(draft.category_id)
            return Product.model_validate(dict(row))

    async def update(self, product_id: int, fields: Dict[str, Any]) -> Optional[Product]:
        """Update catalog fields"""
        query_parts = []
        params = []
        param_count = 1

        for key, value in fields.items():
            if key not in self.UPDATABLE_FIELDS:
                raise ValueError(f"Unknown product field: {key}")
            query_parts.append(f"{key} = ${param_count}")
            params.append(value)
            param_count += 1

        if not query_parts:
            return await self.get(product_id, include_inactive=True)

        params.append(product_id)
        query = f"""
            UPDATE products
            SET {', '.join(query_parts)}, updated_at = NOW()
            WHERE product_id = ${param_count}
            RETURNING *
        """

        async with self.db.connection() as conn:
            try:
                row = await conn.fetchrow(query, *params)
            except asyncpg.UniqueViolationError:
                raise DuplicateProduct(fields.get("sku", ""))
            except asyncpg.ForeignKeyViolationError:
                raise CategoryNotFound(fields.get("category_id"))
            return Product.model_validate(dict(row)) if row else None

    async def get(self, product_id: int, conn=None, include_inactive: bool = False) -> Optional[Product]:
        """Fetch a product; inactive products are hidden unless asked for"""
        async with self.db.connection(conn) as conn:
            row = await conn.fetchrow("""
                SELECT *
                FROM products
                WHERE product_id = $1 AND (is_active = true OR $2)
            """, product_id, include_inactive)
            return Product.model_validate(dict(row)) if row else None

    async def search(self, search: Optional[str] = None, category_id: Optional[int] = None,
                     page: int = 1, limit: int = 20) -> Tuple[List[Product], int]:
        """Active products matching a name/SKU fragment and category"""
        conditions = ["is_active = true"]
        params: List[Any] = []

        if search:
            params.append(f"%{search}%")
            conditions.append(f"(name ILIKE ${len(params)} OR sku ILIKE ${len(params)})")

        if category_id is not None:
            params.append(category_id)
            conditions.append(f"category_id = ${len(params)}")

        where = " AND ".join(conditions)

        async with self.db.connection() as conn:
            total = await conn.fetchval(f"SELECT COUNT(*) FROM products WHERE {where}", *params)
            rows = await conn.fetch(f"""
                SELECT *
                FROM products
                WHERE {where}
                ORDER BY name
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
            """, *params, limit, (page - 1) * limit)
            return [Product.model_validate(dict(r)) for r in rows], total

    async def decrement_stock(self, product_id: int, quantity: int, conn=None) -> bool:
        """Take quantity out of stock only if that much is left"""
        async with self.db.connection(conn) as conn:
            result = await conn.execute("""
                UPDATE products
                SET stock_quantity = stock_quantity - $1, updated_at = NOW()
                WHERE product_id = $2 AND stock_quantity >= $1
            """, quantity, product_id)
            return result == "UPDATE 1"

    async def increment_stock(self, product_id: int, quantity: int, conn=None) -> bool:
        """Put quantity back into stock"""
        async with self.db.connection(conn) as conn:
            result = await conn.execute("""
                UPDATE products
                SET stock_quantity = stock_quantity + $1, updated_at = NOW()
                WHERE product_id = $2
            """, quantity, product_id)
            return result == "UPDATE 1"
