# Overview: Pytest coverage for product and category management.

import pytest
from shopdesk.models import InventoryLog, Product
from shopdesk.services import products_service
from shopdesk.services.products_service import CategoryNotFoundError
from shopdesk.services.inventory_service import ProductNotFoundError
from shopdesk.validation import ConflictError, ValidationError


class TestProducts:
    def test_create_with_opening_stock_logs_restock(self, db_session, owner_a, shop_a, category_a):
        created = products_service.create_product(
            shop_id=shop_a.id,
            user_id=owner_a.id,
            patch={"sku": "NEW-1", "name": "New", "price_cents": 250, "stock_quantity": 12, "category_id": category_a.id},
        )

        assert created["stock_quantity"] == 12
        assert created["category"]["name"] == "Snacks"
        log = db_session.query(InventoryLog).filter_by(product_id=created["id"]).one()
        assert (log.action, log.quantity_before, log.quantity_after) == ("restock", 0, 12)

    def test_create_without_stock_writes_no_log(self, db_session, owner_a, shop_a):
        created = products_service.create_product(
            shop_id=shop_a.id, user_id=owner_a.id, patch={"sku": "NEW-2", "name": "Empty", "price_cents": 100},
        )
        assert created["stock_quantity"] == 0
        assert db_session.query(InventoryLog).count() == 0

    def test_duplicate_sku_in_shop_conflicts(self, db_session, owner_a, shop_a, product_a):
        with pytest.raises(ConflictError):
            products_service.create_product(
                shop_id=shop_a.id, user_id=owner_a.id, patch={"sku": product_a.sku, "name": "Dup", "price_cents": 1},
            )

    def test_foreign_category_rejected(self, db_session, owner_b, shop_b, category_a):
        with pytest.raises(CategoryNotFoundError):
            products_service.create_product(
                shop_id=shop_b.id,
                user_id=owner_b.id,
                patch={"sku": "X", "name": "X", "price_cents": 1, "category_id": category_a.id},
            )

    def test_update_cannot_touch_stock(self, db_session, shop_a, product_a):
        with pytest.raises(ValidationError):
            products_service.update_product(shop_id=shop_a.id, product_id=product_a.id, patch={"stock_quantity": 99})

    def test_update_fields(self, db_session, shop_a, product_a, product_a2):
        updated = products_service.update_product(
            shop_id=shop_a.id, product_id=product_a.id, patch={"name": "Better A", "price_cents": 1100},
        )
        assert (updated["name"], updated["price_cents"]) == ("Better A", 1100)

        with pytest.raises(ConflictError):
            products_service.update_product(shop_id=shop_a.id, product_id=product_a.id, patch={"sku": product_a2.sku})

    def test_soft_delete(self, db_session, shop_a, product_a, product_a2):
        assert products_service.delete_product(shop_id=shop_a.id, product_id=product_a.id) is True
        assert products_service.delete_product(shop_id=shop_a.id, product_id=product_a.id) is False

        listed = products_service.list_products(shop_a.id)
        assert [p["id"] for p in listed] == [product_a2.id]
        assert len(products_service.list_products(shop_a.id, include_inactive=True)) == 2
        assert db_session.get(Product, product_a.id) is not None

    def test_foreign_product_not_found(self, db_session, shop_a, product_b):
        with pytest.raises(ProductNotFoundError):
            products_service.update_product(shop_id=shop_a.id, product_id=product_b.id, patch={"name": "Mine"})


class TestCategories:
    def test_crud(self, db_session, shop_a):
        created = products_service.create_category(shop_id=shop_a.id, patch={"name": "Drinks"})
        updated = products_service.update_category(
            shop_id=shop_a.id, category_id=created["id"], patch={"description": "Cold"},
        )
        assert updated["description"] == "Cold"
        assert [c["name"] for c in products_service.list_categories(shop_a.id)] == ["Drinks"]

    def test_duplicate_name_conflicts(self, db_session, shop_a, shop_b, category_a):
        with pytest.raises(ConflictError):
            products_service.create_category(shop_id=shop_a.id, patch={"name": category_a.name})
        # Same name is fine in another shop
        products_service.create_category(shop_id=shop_b.id, patch={"name": category_a.name})

    def test_delete_detaches_products(self, db_session, shop_a, category_a, product_factory):
        product = product_factory(shop_a, sku="CAT", name="In Category", price_cents=100, category=category_a)

        assert products_service.delete_category(shop_id=shop_a.id, category_id=category_a.id) == 1

        db_session.expire_all()
        kept = db_session.get(Product, product.id)
        assert kept is not None
        assert kept.category_id is None
        assert products_service.list_categories(shop_a.id) == []

    def test_foreign_category_not_found(self, db_session, shop_b, category_a):
        with pytest.raises(CategoryNotFoundError):
            products_service.delete_category(shop_id=shop_b.id, category_id=category_a.id)
