# storefront/api/categories.py
from fastapi import APIRouter, Depends
from .dependencies import get_category_service, require_admin
from .schemas import CategoryUpdateRequest
from ..models.category import CategoryDraft
from ..services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])

@router.get("")
async def list_categories(categories: CategoryService = Depends(get_category_service)):
    """Category tree"""
    return {"success": True, "data": await categories.get_category_tree()}

@router.post("", status_code=201, dependencies=[Depends(require_admin)])
async def create_category(body: CategoryDraft, categories: CategoryService = Depends(get_category_service)):
    return {"success": True, "data": await categories.add_category(body)}

@router.patch("/{category_id}", dependencies=[Depends(require_admin)])
async def update_category(category_id: int, body: CategoryUpdateRequest,
                          categories: CategoryService = Depends(get_category_service)):
    category = await categories.update_category(category_id, body.model_dump(exclude_unset=True))
    return {"success": True, "data": category}

@router.delete("/{category_id}", dependencies=[Depends(require_admin)])
async def delete_category(category_id: int, categories: CategoryService = Depends(get_category_service)):
    await categories.delete_category(category_id)
    return {"success": True, "message": "Category deleted"}
