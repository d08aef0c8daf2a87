# storefront/api/products.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from .dependencies import get_product_repository, require_admin
from .schemas import ProductUpdateRequest
from ..errors import ProductNotFound
from ..models.product import ProductDraft
from ..repositories.product_repository import ProductRepository

router = APIRouter(prefix="/products", tags=["products"])

@router.get("")
async def list_products(search: Optional[str] = None,
                        category_id: Optional[int] = None,
                        page: int = Query(1, ge=1),
                        limit: int = Query(20, ge=1, le=100),
                        products: ProductRepository = Depends(get_product_repository)):
    items, total = await products.search(search=search, category_id=category_id, page=page, limit=limit)
    return {"success": True, "data": {"products": items, "total": total, "page": page, "limit": limit}}

@router.get("/{product_id}")
async def get_product(product_id: int, products: ProductRepository = Depends(get_product_repository)):
    product = await products.get(product_id)
    if not product:
        raise ProductNotFound(product_id)
    return {"success": True, "data": product}

@router.post("", status_code=201, dependencies=[Depends(require_admin)])
async def create_product(body: ProductDraft, products: ProductRepository = Depends(get_product_repository)):
    return {"success": True, "data": await products.create(body)}

@router.patch("/{product_id}", dependencies=[Depends(require_admin)])
async def update_product(product_id: int, body: ProductUpdateRequest,
                         products: ProductRepository = Depends(get_product_repository)):
    fields = body.model_dump(exclude_unset=True)
    if "sku" in fields:
        fields["sku"] = fields["sku"].strip().upper()
    product = await products.update(product_id, fields)
    if not product:
        raise ProductNotFound(product_id)
    return {"success": True, "data": product}
