from decimal import Decimal
from typing import Optional
from ..errors import InvalidOrderRequest, ProductNotFound
from ..models.cart import CartItem, CartSummary
from ..repositories.cart_repository import CartRepository
from ..repositories.product_repository import ProductRepository
from ..utils.formatters import to_money

class CartService:
    def __init__(self, db, carts: Optional[CartRepository] = None,
                 products: Optional[ProductRepository] = None):
        self.db = db
        self.carts = carts or CartRepository(db)
        self.products = products or ProductRepository(db)

    async def get_cart(self, user_id: int) -> CartSummary:
        """Cart lines with item count and subtotal"""
        items = await self.carts.list_items(user_id)
        return CartSummary(
            items=items,
            total_items=sum(item.quantity for item in items),
            subtotal=to_money(sum((item.item_total for item in items), Decimal(0)))
        )

    async def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
        """Add a product at its current price"""
        if quantity <= 0:
            raise InvalidOrderRequest("quantity must be a positive integer")
        product = await self.products.get(product_id)
        if not product:
            raise ProductNotFound(product_id)
        return await self.carts.add_item(user_id, product_id, quantity, to_money(product.unit_price))

    async def update_item(self, user_id: int, product_id: int, quantity: int) -> CartItem:
        if quantity <= 0:
            raise InvalidOrderRequest("quantity must be a positive integer")
        item = await self.carts.set_quantity(user_id, product_id, quantity)
        if not item:
            raise ProductNotFound(product_id)
        return item

    async def remove_item(self, user_id: int, product_id: int):
        if not await self.carts.remove_item(user_id, product_id):
            raise ProductNotFound(product_id)

    async def clear(self, user_id: int):
        await self.carts.clear_for_user(user_id)
