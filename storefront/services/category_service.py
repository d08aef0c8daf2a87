from typing import Any, Dict, List, Optional
from ..errors import CategoryNotFound, CircularCategory
from ..models.category import Category, CategoryDraft
from ..repositories.category_repository import CategoryRepository

class CategoryService:
    """Category taxonomy management"""

    def __init__(self, db, categories: Optional[CategoryRepository] = None):
        self.db = db
        self.categories = categories or CategoryRepository(db)

    async def add_category(self, draft: CategoryDraft) -> Category:
        """Create a category"""
        if draft.parent_id is not None and not await self.categories.get(draft.parent_id):
            raise CategoryNotFound(draft.parent_id)
        return await self.categories.create(draft)

    async def get_category_tree(self) -> List[Category]:
        """Root categories with their subcategories nested"""
        categories = await self.categories.list_all()
        by_id = {c.category_id: c for c in categories}
        roots = []
        for category in categories:
            parent = by_id.get(category.parent_id) if category.parent_id is not None else None
            if parent:
                parent.subcategories.append(category)
            else:
                roots.append(category)
        return roots

    async def update_category(self, category_id: int, update_data: Dict[str, Any]) -> Category:
        """Update a category, refusing parent changes that would form a loop"""
        if not await self.categories.get(category_id):
            raise CategoryNotFound(category_id)

        new_parent_id = update_data.get("parent_id")
        if new_parent_id is not None:
            if not await self.categories.get(new_parent_id):
                raise CategoryNotFound(new_parent_id)
            if await self.check_circular_dependency(category_id, new_parent_id):
                raise CircularCategory(category_id, new_parent_id)

        category = await self.categories.update(category_id, update_data)
        if not category:
            raise CategoryNotFound(category_id)
        return category

    async def delete_category(self, category_id: int):
        """Delete a category with its subcategories"""
        if not await self.categories.delete(category_id):
            raise CategoryNotFound(category_id)

    async def check_circular_dependency(self, category_id: int, new_parent_id: int) -> bool:
        """Whether category_id is new_parent_id itself or one of its ancestors"""
        current_id = new_parent_id
        while current_id is not None:
            if current_id == category_id:
                return True
            current_id = await self.categories.get_parent_id(current_id)
        return False
