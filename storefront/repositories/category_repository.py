import asyncpg
from typing import Any, Dict, List, Optional
from ..errors import CategoryNotFound
from ..models.category import Category, CategoryDraft

class CategoryRepository:
    def __init__(self, db):
        self.db = db

    async def create(self, draft: CategoryDraft) -> Category:
        async with self.db.connection() as conn:
            try:
                row = await conn.fetchrow("""
                    INSERT INTO categories (name, description, parent_id, is_active)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                """,
                    draft.name,
                    draft.description,
                    draft.parent_id,
                    draft.is_active
                )
            except asyncpg.ForeignKeyViolationError:
                raise CategoryNotFound(draft.parent_id)
            return Category.model_validate(dict(row))

    async def get(self, category_id: int) -> Optional[Category]:
        async with self.db.connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM categories WHERE category_id = $1", category_id
            )
            return Category.model_validate(dict(row)) if row else None

    async def list_all(self) -> List[Category]:
        async with self.db.connection() as conn:
            rows = await conn.fetch("""
                SELECT * FROM categories
                ORDER BY parent_id NULLS FIRST, name
            """)
            return [Category.model_validate(dict(r)) for r in rows]

    async def get_parent_id(self, category_id: int) -> Optional[int]:
        async with self.db.connection() as conn:
            return await conn.fetchval(
                "SELECT parent_id FROM categories WHERE category_id = $1", category_id
            )

    async def update(self, category_id: int, fields: Dict[str, Any]) -> Optional[Category]:
        query_parts = []
        params = []
        param_count = 1

        for key, value in fields.items():
            query_parts.append(f"{key} = ${param_count}")
            params.append(value)
            param_count += 1

        if not query_parts:
            return await self.get(category_id)

        params.append(category_id)
        query = f"""
            UPDATE categories
            SET {', '.join(query_parts)}, updated_at = NOW()
            WHERE category_id = ${param_count}
            RETURNING *
        """

        async with self.db.connection() as conn:
            try:
                row = await conn.fetchrow(query, *params)
            except asyncpg.ForeignKeyViolationError:
                raise CategoryNotFound(fields.get("parent_id"))
            return Category.model_validate(dict(row)) if row else None

    async def delete(self, category_id: int) -> bool:
        """Delete a category; subcategories cascade, products are detached"""
        async with self.db.connection() as conn:
            result = await conn.execute(
                "DELETE FROM categories WHERE category_id = $1", category_id
            )
            return result == "DELETE 1"
