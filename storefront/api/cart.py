# storefront/api/cart.py
from fastapi import APIRouter, Depends
from .dependencies import get_cart_service, get_current_user
from .schemas import CartItemRequest, CartQuantityRequest
from ..services.cart_service import CartService
from ..utils.security import TokenClaims

router = APIRouter(prefix="/cart", tags=["cart"])

@router.get("")
async def get_cart(user: TokenClaims = Depends(get_current_user),
                   carts: CartService = Depends(get_cart_service)):
    return {"success": True, "data": await carts.get_cart(user.user_id)}

@router.post("/items", status_code=201)
async def add_item(body: CartItemRequest, user: TokenClaims = Depends(get_current_user),
                   carts: CartService = Depends(get_cart_service)):
    item = await carts.add_item(user.user_id, body.product_id, body.quantity)
    return {"success": True, "data": item}

@router.patch("/items/{product_id}")
async def update_item(product_id: int, body: CartQuantityRequest,
                      user: TokenClaims = Depends(get_current_user),
                      carts: CartService = Depends(get_cart_service)):
    item = await carts.update_item(user.user_id, product_id, body.quantity)
    return {"success": True, "data": item}

@router.delete("/items/{product_id}")
async def remove_item(product_id: int, user: TokenClaims = Depends(get_current_user),
                      carts: CartService = Depends(get_cart_service)):
    await carts.remove_item(user.user_id, product_id)
    return {"success": True, "message": "Item removed"}

@router.delete("")
async def clear_cart(user: TokenClaims = Depends(get_current_user),
                     carts: CartService = Depends(get_cart_service)):
    await carts.clear(user.user_id)
    return {"success": True, "message": "Cart cleared"}
