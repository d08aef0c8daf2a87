# storefront/api/wishlist.py
from fastapi import APIRouter, Depends, Query, Response
from .dependencies import get_current_user, get_wishlist_service
from .schemas import WishlistAddRequest, WishlistToggleRequest
from ..services.wishlist_service import WishlistService
from ..utils.security import TokenClaims

router = APIRouter(prefix="/wishlist", tags=["wishlist"])

@router.post("")
async def add_item(body: WishlistAddRequest, response: Response,
                   user: TokenClaims = Depends(get_current_user),
                   wishlist: WishlistService = Depends(get_wishlist_service)):
    """Save a product; saving it again refreshes the entry"""
    item, created = await wishlist.add_item(user.user_id, body.product_id, note=body.note)
    response.status_code = 201 if created else 200
    return {"success": True, "data": item}

@router.post("/toggle")
async def toggle_item(body: WishlistToggleRequest, response: Response,
                      user: TokenClaims = Depends(get_current_user),
                      wishlist: WishlistService = Depends(get_wishlist_service)):
    item, created = await wishlist.toggle(user.user_id, body.product_id)
    response.status_code = 201 if created else 200
    return {"success": True, "data": item}

@router.get("")
async def list_items(page: int = Query(1, ge=1),
                     limit: int = Query(20, ge=1, le=100),
                     user: TokenClaims = Depends(get_current_user),
                     wishlist: WishlistService = Depends(get_wishlist_service)):
    items, total = await wishlist.list_items(user.user_id, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": -(-total // limit)
        }
    }

@router.get("/{wishlist_item_id}")
async def get_item(wishlist_item_id: int, user: TokenClaims = Depends(get_current_user),
                   wishlist: WishlistService = Depends(get_wishlist_service)):
    return {"success": True, "data": await wishlist.get_item(user.user_id, wishlist_item_id)}

@router.delete("/product/{product_id}")
async def remove_product(product_id: int, user: TokenClaims = Depends(get_current_user),
                         wishlist: WishlistService = Depends(get_wishlist_service)):
    await wishlist.remove_product(user.user_id, product_id)
    return {"success": True, "message": "Item removed"}

@router.delete("/{wishlist_item_id}")
async def remove_item(wishlist_item_id: int, user: TokenClaims = Depends(get_current_user),
                      wishlist: WishlistService = Depends(get_wishlist_service)):
    await wishlist.remove_item(user.user_id, wishlist_item_id)
    return {"success": True, "message": "Item removed"}

@router.delete("")
async def clear_wishlist(user: TokenClaims = Depends(get_current_user),
                         wishlist: WishlistService = Depends(get_wishlist_service)):
    await wishlist.clear(user.user_id)
    return {"success": True, "message": "Wishlist cleared"}
