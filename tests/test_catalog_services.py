"""Tests for the cart, wishlist and catalog services."""

from contextlib import asynccontextmanager
from decimal import Decimal

import asyncpg
import pytest

from storefront.errors import (
    CategoryNotFound, CircularCategory, InvalidOrderRequest, ProductNotFound, WishlistItemNotFound
)
from storefront.models.category import CategoryDraft
from storefront.models.product import ProductDraft
from storefront.repositories.category_repository import CategoryRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.services.cart_service import CartService
from storefront.services.category_service import CategoryService
from storefront.services.wishlist_service import WishlistService


@pytest.fixture
def cart_service(db, carts, products):
    return CartService(db, carts=carts, products=products)


@pytest.fixture
def wishlist_service(db, wishlist, products):
    return WishlistService(db, wishlist=wishlist, products=products)


@pytest.fixture
def category_service(db, categories):
    return CategoryService(db, categories=categories)


class TestCart:
    async def test_add_merges_quantities(self, cart_service, products):
        mug = products.add("Mug", "MUG-1", "12.50", stock=10, discount_price="10.00")

        await cart_service.add_item(1, mug.product_id, 2)
        item = await cart_service.add_item(1, mug.product_id, 1)

        assert item.quantity == 3
        assert item.price_at_time == Decimal("10.00")

    async def test_summary(self, cart_service, products):
        mug = products.add("Mug", "MUG-1", "12.50", stock=10)
        pen = products.add("Pen", "PEN-1", "1.25", stock=10)
        await cart_service.add_item(1, mug.product_id, 2)
        await cart_service.add_item(1, pen.product_id, 3)
        await cart_service.add_item(2, pen.product_id, 1)

        summary = await cart_service.get_cart(1)

        assert summary.total_items == 5
        assert summary.subtotal == Decimal("28.75")

    async def test_unknown_product(self, cart_service):
        with pytest.raises(ProductNotFound):
            await cart_service.add_item(1, 404, 1)

    async def test_bad_quantity(self, cart_service, products):
        mug = products.add("Mug", "MUG-1", "12.50", stock=10)

        with pytest.raises(InvalidOrderRequest):
            await cart_service.add_item(1, mug.product_id, 0)

    async def test_update_remove_clear(self, cart_service, products):
        mug = products.add("Mug", "MUG-1", "12.50", stock=10)
        pen = products.add("Pen", "PEN-1", "1.25", stock=10)
        await cart_service.add_item(1, mug.product_id, 1)
        await cart_service.add_item(1, pen.product_id, 1)

        assert (await cart_service.update_item(1, mug.product_id, 4)).quantity == 4
        await cart_service.remove_item(1, pen.product_id)
        assert [i.product_id for i in (await cart_service.get_cart(1)).items] == [mug.product_id]

        with pytest.raises(ProductNotFound):
            await cart_service.remove_item(1, pen.product_id)

        await cart_service.clear(1)
        assert (await cart_service.get_cart(1)).total_items == 0


class TestWishlist:
    async def test_add_is_idempotent(self, wishlist_service, products):
        mug = products.add("Mug", "MUG-1", "12.50", stock=10, discount_price="10.00")

        item, created = await wishlist_service.add_item(1, mug.product_id, note=" for mom ")
        again, created_again = await wishlist_service.add_item(1, mug.product_id)

        assert created and not created_again
        assert again.wishlist_item_id == item.wishlist_item_id
        assert again.note == "for mom"
        assert again.price_at_add == Decimal("10.00")
        assert (await wishlist_service.list_items(1))[1] == 1

    async def test_unknown_product(self, wishlist_service):
        with pytest.raises(ProductNotFound):
            await wishlist_service.add_item(1, 404)

    async def test_toggle_hides_and_restores(self, wishlist_service, products):
        mug = products.add("Mug", "MUG-1", "12.50", stock=10)

        item, created = await wishlist_service.toggle(1, mug.product_id)
        assert created and item.is_active

        item, created = await wishlist_service.toggle(1, mug.product_id)
        assert not created and not item.is_active
        assert (await wishlist_service.list_items(1))[1] == 0

        item, _ = await wishlist_service.add_item(1, mug.product_id)
        assert item.is_active

    async def test_pagination(self, wishlist_service, products):
        for n in range(5):
            product = products.add(f"Item {n}", f"SKU-{n}", "1.00", stock=1)
            await wishlist_service.add_item(1, product.product_id)

        items, total = await wishlist_service.list_items(1, page=2, limit=2)

        assert total == 5
        assert len(items) == 2

    async def test_remove_and_clear(self, wishlist_service, products):
        mug = products.add("Mug", "MUG-1", "12.50", stock=10)
        pen = products.add("Pen", "PEN-1", "1.25", stock=10)
        mug_item, _ = await wishlist_service.add_item(1, mug.product_id)
        await wishlist_service.add_item(1, pen.product_id)
        await wishlist_service.add_item(2, pen.product_id)

        with pytest.raises(WishlistItemNotFound):
            await wishlist_service.get_item(2, mug_item.wishlist_item_id)
        with pytest.raises(WishlistItemNotFound):
            await wishlist_service.remove_item(2, mug_item.wishlist_item_id)

        await wishlist_service.remove_item(1, mug_item.wishlist_item_id)
        await wishlist_service.remove_product(1, pen.product_id)
        with pytest.raises(WishlistItemNotFound):
            await wishlist_service.remove_product(1, pen.product_id)

        await wishlist_service.clear(2)
        assert (await wishlist_service.list_items(2))[1] == 0

class TestCategories:
    async def test_tree(self, category_service):
        home = await category_service.add_category(CategoryDraft(name="Home"))
        kitchen = await category_service.add_category(CategoryDraft(name="Kitchen", parent_id=home.category_id))
        await category_service.add_category(CategoryDraft(name="Garden"))

        tree = await category_service.get_category_tree()

        assert [c.name for c in tree] == ["Home", "Garden"]
        assert [c.category_id for c in tree[0].subcategories] == [kitchen.category_id]

    async def test_missing_parent(self, category_service):
        with pytest.raises(CategoryNotFound):
            await category_service.add_category(CategoryDraft(name="Orphan", parent_id=99))

    async def test_circular_parent(self, category_service):
        a = await category_service.add_category(CategoryDraft(name="A"))
        b = await category_service.add_category(CategoryDraft(name="B", parent_id=a.category_id))
        c = await category_service.add_category(CategoryDraft(name="C", parent_id=b.category_id))

        with pytest.raises(CircularCategory):
            await category_service.update_category(a.category_id, {"parent_id": c.category_id})
        with pytest.raises(CircularCategory):
            await category_service.update_category(a.category_id, {"parent_id": a.category_id})

        moved = await category_service.update_category(c.category_id, {"parent_id": a.category_id})
        assert moved.parent_id == a.category_id

    async def test_delete_cascades(self, category_service, categories):
        a = await category_service.add_category(CategoryDraft(name="A"))
        await category_service.add_category(CategoryDraft(name="B", parent_id=a.category_id))

        await category_service.delete_category(a.category_id)

        assert categories.categories == {}
        with pytest.raises(CategoryNotFound):
            await category_service.delete_category(a.category_id)


class RejectingConnection:
    """Connection whose writes fail on a foreign key"""

    async def fetchrow(self, query, *args):
        raise asyncpg.ForeignKeyViolationError("insert or update violates foreign key constraint")


class RejectingDatabase:
    @asynccontextmanager
    async def connection(self, conn=None):
        yield RejectingConnection()


class TestMissingCategoryReferences:
    async def test_product_create(self):
        repository = ProductRepository(RejectingDatabase())

        with pytest.raises(CategoryNotFound) as excinfo:
            await repository.create(ProductDraft(name="Mug", sku="mug-1", price=Decimal("5"), category_id=42))

        assert excinfo.value.category_id == 42

    async def test_product_update(self):
        repository = ProductRepository(RejectingDatabase())

        with pytest.raises(CategoryNotFound):
            await repository.update(1, {"category_id": 42})

    async def test_category_parent(self):
        repository = CategoryRepository(RejectingDatabase())

        with pytest.raises(CategoryNotFound):
            await repository.create(CategoryDraft(name="Orphan", parent_id=42))
        with pytest.raises(CategoryNotFound):
            await repository.update(1, {"parent_id": 42})
