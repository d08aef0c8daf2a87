# storefront/api/dependencies.py
from typing import Optional
from fastapi import Depends, Header, Request
from ..errors import AuthenticationError, Forbidden
from ..repositories.product_repository import ProductRepository
from ..repositories.user_repository import UserRepository
from ..services.auth_service import AuthService
from ..services.cart_service import CartService
from ..services.category_service import CategoryService
from ..services.coupon_service import CouponService
from ..services.order_service import OrderService
from ..services.wishlist_service import WishlistService
from ..utils.security import TokenClaims, verify_access_token

def get_db(request: Request):
    return request.app.state.db

def get_auth_service(db=Depends(get_db)) -> AuthService:
    return AuthService(db)

def get_cart_service(db=Depends(get_db)) -> CartService:
    return CartService(db)

def get_category_service(db=Depends(get_db)) -> CategoryService:
    return CategoryService(db)

def get_coupon_service(db=Depends(get_db)) -> CouponService:
    return CouponService(db)

def get_order_service(db=Depends(get_db)) -> OrderService:
    return OrderService(db)

def get_wishlist_service(db=Depends(get_db)) -> WishlistService:
    return WishlistService(db)

def get_product_repository(db=Depends(get_db)) -> ProductRepository:
    return ProductRepository(db)

def get_user_repository(db=Depends(get_db)) -> UserRepository:
    return UserRepository(db)

def _claims_from_header(authorization: Optional[str]) -> Optional[TokenClaims]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return verify_access_token(token.strip())

async def _active_claims(claims: TokenClaims, users: UserRepository) -> Optional[TokenClaims]:
    """Claims with the admin flag as stored now; None for blocked or deleted accounts"""
    user = await users.get(claims.user_id)
    if not user or user.is_blocked:
        return None
    return claims._replace(is_admin=user.is_admin)

async def get_current_user(authorization: Optional[str] = Header(None),
                           users: UserRepository = Depends(get_user_repository)) -> TokenClaims:
    """Claims of the signed-in caller"""
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    claims = _claims_from_header(authorization)
    if not claims:
        raise AuthenticationError("Invalid or expired token")
    active = await _active_claims(claims, users)
    if not active:
        raise AuthenticationError("Account is no longer active")
    return active

async def get_optional_user(authorization: Optional[str] = Header(None),
                            users: UserRepository = Depends(get_user_repository)) -> Optional[TokenClaims]:
    claims = _claims_from_header(authorization)
    return await _active_claims(claims, users) if claims else None

def require_admin(user: TokenClaims = Depends(get_current_user)) -> TokenClaims:
    if not user.is_admin:
        raise Forbidden("Admin only")
    return user
