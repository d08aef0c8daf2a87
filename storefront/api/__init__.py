# storefront/api/__init__.py
"""HTTP routers of the storefront"""
from .app import create_app
from .auth import router as auth_router
from .cart import router as cart_router
from .categories import router as categories_router
from .coupons import router as coupons_router
from .orders import router as orders_router
from .products import router as products_router
from .wishlist import router as wishlist_router

__all__ = [
    'create_app',
    'auth_router',
    'cart_router',
    'categories_router',
    'coupons_router',
    'orders_router',
    'products_router',
    'wishlist_router'
]
