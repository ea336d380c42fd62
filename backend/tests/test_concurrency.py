# Overview: Threaded sales against a file-backed SQLite database.

"""
Concurrency tests for the sale path.

An in-memory database cannot be shared across threads, so these tests build
their own app over a temporary file and run each sale in its own thread with
its own app context and session.
"""
import os
import tempfile
import threading

import pytest

from shopdesk import create_app
from shopdesk.extensions import db
from shopdesk.models import Product, Sale, InventoryLog
from shopdesk.services import sales_service
from shopdesk.services.auth_service import register_shop_owner
from shopdesk.services.inventory_service import InsufficientStockError


@pytest.fixture()
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "BCRYPT_ROUNDS": 4,
        "LOG_LEVEL": "ERROR",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    tmpdir.cleanup()


@pytest.fixture()
def seeded(file_app):
    owner, shop = register_shop_owner(
        email="concurrent@shop.test",
        password="Password123!",
        full_name="Con Current",
        shop_name="Concurrency Shop",
    )
    product = Product(
        shop_id=shop.id,
        sku="CONCUR-1",
        name="Concurrent Product",
        price_cents=1000,
        stock_quantity=1,
        low_stock_threshold=0,
    )
    db.session.add(product)
    db.session.commit()
    return {"shop_id": shop.id, "user_id": owner.id, "product_id": product.id}


def _run_sales(app, seeded, count, quantity):
    barrier = threading.Barrier(count)
    results = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            try:
                barrier.wait()
                sale = sales_service.record_sale(
                    shop_id=seeded["shop_id"],
                    user_id=seeded["user_id"],
                    items=[{
                        "product_id": seeded["product_id"],
                        "quantity": quantity,
                        "unit_price_cents": 1000,
                    }],
                    payment_method="cash",
                )
                outcome = ("ok", sale.invoice_number)
            except InsufficientStockError as e:
                outcome = ("insufficient", e.available)
            except sales_service.SaleError as e:
                outcome = ("error", e.details)
            finally:
                db.session.remove()
            with lock:
                results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


class TestConcurrentSales:
    def test_last_unit_is_sold_once(self, file_app, seeded):
        results = _run_sales(file_app, seeded, count=8, quantity=1)

        assert len(results) == 8
        assert [r for r in results if r[0] == "ok"] == [("ok", "INV-000001")]
        # Every loser queued behind the winner and saw the empty shelf
        assert sorted(r for r in results if r[0] != "ok") == [("insufficient", 0)] * 7

        db.session.expire_all()
        product = db.session.get(Product, seeded["product_id"])
        assert product.stock_quantity == 0
        assert db.session.query(Sale).count() == 1
        assert db.session.query(InventoryLog).filter_by(action="sale").count() == 1

    def test_invoice_numbers_stay_unique(self, file_app, seeded):
        product = db.session.get(Product, seeded["product_id"])
        product.stock_quantity = 50
        db.session.commit()

        results = _run_sales(file_app, seeded, count=4, quantity=1)

        assert [r[0] for r in results] == ["ok"] * 4
        invoices = sorted(r[1] for r in results)

        db.session.expire_all()
        stored = sorted(s.invoice_number for s in db.session.query(Sale).all())
        assert stored == invoices
        # Numbers come from one per-shop counter with no gaps
        assert stored == ["INV-000001", "INV-000002", "INV-000003", "INV-000004"]
        assert db.session.get(Product, seeded["product_id"]).stock_quantity == 46
