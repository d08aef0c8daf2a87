import logging
from typing import List, Optional, Tuple
from ..errors import ProductNotFound, WishlistItemNotFound
from ..models.wishlist import WishlistItem
from ..repositories.product_repository import ProductRepository
from ..repositories.wishlist_repository import WishlistRepository
from ..utils.formatters import to_money

class WishlistService:
    """Products a user saved for later"""

    def __init__(self, db, wishlist: Optional[WishlistRepository] = None,
                 products: Optional[ProductRepository] = None):
        self.db = db
        self.wishlist = wishlist or WishlistRepository(db)
        self.products = products or ProductRepository(db)
        self.logger = logging.getLogger(__name__)

    async def add_item(self, user_id: int, product_id: int,
                       note: Optional[str] = None) -> Tuple[WishlistItem, bool]:
        """Save a product at its current price.

        Adding the same product again is not an error: the entry is
        reactivated and its note and price refreshed. The flag tells
        whether a new entry was created.
        """
        product = await self.products.get(product_id)
        if not product:
            raise ProductNotFound(product_id)
        item, created = await self.wishlist.add_item(
            user_id, product_id, note.strip() if note is not None else None, to_money(product.unit_price)
        )
        if created:
            self.logger.info(f"User {user_id} saved product {product_id} to wishlist")
        return item, created

    async def toggle(self, user_id: int, product_id: int) -> Tuple[WishlistItem, bool]:
        product = await self.products.get(product_id)
        if not product:
            raise ProductNotFound(product_id)
        return await self.wishlist.toggle(user_id, product_id, to_money(product.unit_price))

    async def list_items(self, user_id: int, page: int = 1, limit: int = 20) -> Tuple[List[WishlistItem], int]:
        return await self.wishlist.list_items(user_id, page=page, limit=limit)

    async def get_item(self, user_id: int, wishlist_item_id: int) -> WishlistItem:
        item = await self.wishlist.get_item(user_id, wishlist_item_id)
        if not item:
            raise WishlistItemNotFound()
        return item

    async def remove_item(self, user_id: int, wishlist_item_id: int):
        if not await self.wishlist.remove_item(user_id, wishlist_item_id):
            raise WishlistItemNotFound()

    async def remove_product(self, user_id: int, product_id: int):
        if not await self.wishlist.remove_product(user_id, product_id):
            raise WishlistItemNotFound()

    async def clear(self, user_id: int):
        await self.wishlist.clear_for_user(user_id)
