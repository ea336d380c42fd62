# Overview: End-to-end API flows through the Flask test client.

import pytest

from shopdesk.models import Product, Sale


def _sale_body(product, quantity, unit_price_cents=None, **extra):
    body = {
        "items": [{
            "product_id": product.id,
            "quantity": quantity,
            "unit_price_cents": product.price_cents if unit_price_cents is None else unit_price_cents,
        }],
        "payment_method": "cash",
    }
    body.update(extra)
    return body


class TestAuthFlow:
    def test_register_login_me_logout(self, client, db_session):
        resp = client.post("/api/auth/register", json={
            "email": "fresh@shop.test",
            "password": "Password123!",
            "full_name": "Fresh Owner",
            "shop_name": "Fresh Shop",
        })
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["shop"]["slug"] == "fresh-shop"
        assert data["role"] == "admin"
        assert "CREATE_SALE" in data["permissions"]

        resp = client.post("/api/auth/login", json={"email": "fresh@shop.test", "password": "Password123!"})
        assert resp.status_code == 200
        headers = {"Authorization": f"Bearer {resp.get_json()['token']}"}

        me = client.get("/api/auth/me", headers=headers).get_json()
        assert me["user"]["email"] == "fresh@shop.test"
        assert {p["code"] for p in me["permissions"]} >= {"MANAGE_SETTINGS", "VIEW_ANALYTICS"}

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_register_validation(self, client, db_session, owner_a):
        resp = client.post("/api/auth/register", json={
            "email": "x@shop.test", "password": "weak", "shop_name": "X",
        })
        assert resp.status_code == 400

        resp = client.post("/api/auth/register", json={
            "email": owner_a.email, "password": "Password123!", "shop_name": "Again",
        })
        assert resp.status_code == 409

    def test_bad_login(self, client, db_session, owner_a):
        resp = client.post("/api/auth/login", json={"email": owner_a.email, "password": "Wrong123!"})
        assert resp.status_code == 401
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_switch_shop(self, client, db_session, owner_a, shop_b, admin_headers):
        from shopdesk.services.auth_service import add_shop_member

        add_shop_member(shop_id=shop_b.id, user_id=owner_a.id, role="cashier")

        resp = client.post("/api/auth/switch-shop", json={"shop_id": shop_b.id}, headers=admin_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["shop"]["id"] == shop_b.id
        assert data["role"] == "cashier"

        # Old token is revoked; the new one acts in shop B only
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401
        new_headers = {"Authorization": f"Bearer {data['token']}"}
        assert client.get("/api/analytics/dashboard", headers=new_headers).status_code == 403

    def test_change_password(self, client, db_session, owner_a, admin_headers):
        resp = client.put(
            "/api/auth/password",
            json={"current_password": "Password123!", "new_password": "Changed123!"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401

        fresh = {"Authorization": f"Bearer {resp.get_json()['token']}"}
        assert client.get("/api/auth/me", headers=fresh).status_code == 200


class TestProductRoutes:
    def test_product_lifecycle(self, client, db_session, admin_headers):
        resp = client.post("/api/products", json={
            "sku": "API-1", "name": "Api Product", "price_cents": 450, "stock_quantity": 8,
        }, headers=admin_headers)
        assert resp.status_code == 201
        product = resp.get_json()
        assert product["low_stock_threshold"] == 10

        resp = client.put(f"/api/products/{product['id']}", json={"price_cents": 500}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["price_cents"] == 500

        resp = client.put(f"/api/products/{product['id']}", json={"stock_quantity": 100}, headers=admin_headers)
        assert resp.status_code == 400

        assert client.delete(f"/api/products/{product['id']}", headers=admin_headers).status_code == 200
        listed = client.get("/api/products", headers=admin_headers).get_json()
        assert listed["count"] == 0

    def test_validation_errors(self, client, db_session, admin_headers, product_a):
        assert client.post("/api/products", json={"name": "No SKU", "price_cents": 1},
                           headers=admin_headers).status_code == 400
        assert client.post("/api/products", json={"sku": "N", "name": "Neg", "price_cents": -1},
                           headers=admin_headers).status_code == 400
        assert client.post("/api/products", json={"sku": "F", "name": "Float", "price_cents": 1.25},
                           headers=admin_headers).status_code == 400
        assert client.post("/api/products", json={"sku": product_a.sku, "name": "Dup", "price_cents": 1},
                           headers=admin_headers).status_code == 409

    def test_categories(self, client, db_session, admin_headers):
        resp = client.post("/api/categories", json={"name": "Tools"}, headers=admin_headers)
        assert resp.status_code == 201
        category_id = resp.get_json()["id"]

        assert client.post("/api/categories", json={"name": "Tools"}, headers=admin_headers).status_code == 409

        resp = client.delete(f"/api/categories/{category_id}", headers=admin_headers)
        assert resp.get_json() == {"ok": True, "products_detached": 0}
        assert client.delete(f"/api/categories/{category_id}", headers=admin_headers).status_code == 404


class TestInventoryRoutes:
    def test_adjust_and_read(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": product_a.id, "quantity_change": -5, "notes": "Damaged",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.get_json()["stock_quantity"] == 15
        assert resp.get_json()["log"]["action"] == "adjustment"

        stock = client.get(f"/api/inventory/{product_a.id}/stock", headers=admin_headers).get_json()
        assert stock["stock_quantity"] == 15

        logs = client.get(f"/api/inventory/logs?product_id={product_a.id}", headers=admin_headers).get_json()
        assert logs["count"] == 1

    def test_adjust_below_zero_is_409(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": product_a.id, "quantity_change": -21,
        }, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.get_json()["details"]["available"] == 20

    def test_adjust_requires_integer(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/inventory/adjust", json={
            "product_id": product_a.id, "quantity_change": 2.5,
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_low_stock(self, client, db_session, admin_headers, product_factory, shop_a):
        product_factory(shop_a, sku="L", name="Low", price_cents=1, stock=1, threshold=3)
        data = client.get("/api/inventory/low-stock", headers=admin_headers).get_json()
        assert [p["sku"] for p in data["items"]] == ["L"]


class TestSaleRoutes:
    def test_record_and_read_sale(self, client, db_session, admin_headers, product_a, product_a2):
        body = {
            "items": [
                {"product_id": product_a.id, "quantity": 2, "unit_price_cents": 1000},
                {"product_id": product_a2.id, "quantity": 1, "unit_price_cents": 500},
            ],
            "payment_method": "card",
            "tax_amount_cents": 150,
            "customer_name": "Dana",
        }
        resp = client.post("/api/sales", json=body, headers=admin_headers)
        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["invoice_number"] == "INV-000001"
        assert sale["subtotal_cents"] == 2500
        assert sale["total_amount_cents"] == 2650
        assert len(sale["items"]) == 2

        fetched = client.get(f"/api/sales/{sale['id']}", headers=admin_headers).get_json()["sale"]
        assert fetched["customer_name"] == "Dana"

        listed = client.get("/api/sales", headers=admin_headers).get_json()
        assert listed["count"] == 1

        today = client.get("/api/sales/today", headers=admin_headers).get_json()
        assert today["total_revenue_cents"] == 2650

    def test_insufficient_stock_is_409_and_persists_nothing(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/sales", json=_sale_body(product_a, 21), headers=admin_headers)
        assert resp.status_code == 409
        data = resp.get_json()
        assert data["error"] == "Insufficient stock for Product A. Available: 20"
        assert data["details"]["requested"] == 21

        db_session.expire_all()
        assert db_session.query(Sale).count() == 0
        assert db_session.get(Product, product_a.id).stock_quantity == 20

    def test_validation_is_400(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/sales", json={"items": [], "payment_method": "cash"}, headers=admin_headers)
        assert resp.status_code == 400
        resp = client.post("/api/sales", json=_sale_body(product_a, 1, payment_method="cheque"), headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_product_is_404(self, client, db_session, admin_headers):
        resp = client.post("/api/sales", json={
            "items": [{"product_id": 123456, "quantity": 1, "unit_price_cents": 1}],
            "payment_method": "cash",
        }, headers=admin_headers)
        assert resp.status_code == 404

    def test_foreign_sale_is_404(self, client, db_session, admin_headers, owner_b_headers, product_b):
        resp = client.post("/api/sales", json=_sale_body(product_b, 1), headers=owner_b_headers)
        assert resp.status_code == 201
        sale_id = resp.get_json()["sale"]["id"]

        assert client.get(f"/api/sales/{sale_id}", headers=admin_headers).status_code == 404

    def test_date_range_listing(self, client, db_session, admin_headers, product_a):
        client.post("/api/sales", json=_sale_body(product_a, 1), headers=admin_headers)

        resp = client.get("/api/sales?start=2000-01-01&end=2000-12-31", headers=admin_headers)
        assert resp.get_json()["count"] == 0
        assert client.get("/api/sales?start=2000-01-01", headers=admin_headers).status_code == 400


class TestAnalyticsAndSettingsRoutes:
    def test_dashboard_and_chart(self, client, db_session, admin_headers, product_a):
        client.post("/api/sales", json=_sale_body(product_a, 2), headers=admin_headers)

        stats = client.get("/api/analytics/dashboard", headers=admin_headers).get_json()
        assert stats["today_revenue_cents"] == 2000
        assert stats["today_sales_count"] == 1

        chart = client.get("/api/analytics/sales-chart?days=3", headers=admin_headers).get_json()
        assert len(chart["items"]) == 3
        assert chart["items"][-1]["revenue_cents"] == 2000

        top = client.get("/api/analytics/top-products", headers=admin_headers).get_json()
        assert top["items"][0]["total_quantity"] == 2

        recent = client.get("/api/analytics/recent-sales", headers=admin_headers).get_json()
        assert len(recent["items"]) == 1

        assert client.get("/api/analytics/top-products?limit=0", headers=admin_headers).status_code == 400

    def test_settings(self, client, db_session, admin_headers, cashier_headers):
        resp = client.put("/api/settings", json={"currency": "gbp", "address": "2 High St"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["currency"] == "GBP"

        assert client.get("/api/settings", headers=cashier_headers).get_json()["address"] == "2 High St"
        assert client.put("/api/settings", json={"currency": "ZZZ"}, headers=admin_headers).status_code == 400

    def test_cors_header_for_allowed_origin(self, client, db_session):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:3000"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
        resp = client.get("/api/health", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestRequestBodies:
    @pytest.mark.parametrize("body", [[1], [1, 2], "text", 5])
    def test_non_object_bodies_are_400(self, client, db_session, admin_headers, body):
        for path in ("/api/sales", "/api/products", "/api/inventory/adjust"):
            resp = client.post(path, json=body, headers=admin_headers)
            assert resp.status_code == 400, path
            assert resp.get_json() == {"error": "Invalid JSON payload"}

        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 400
        resp = client.put("/api/settings", json=body, headers=admin_headers)
        assert resp.status_code == 400

    def test_non_object_body_records_nothing(self, client, db_session, admin_headers, product_a):
        client.post("/api/sales", json=[{"product_id": product_a.id, "quantity": 1}], headers=admin_headers)

        db_session.expire_all()
        assert db_session.query(Sale).count() == 0
        assert db_session.get(Product, product_a.id).stock_quantity == 20

    @pytest.mark.parametrize("name", [{"a": 1}, ["x"], 42, True])
    def test_text_fields_must_be_strings(self, client, db_session, admin_headers, name):
        resp = client.post("/api/products", json={
            "sku": "TXT-1", "name": name, "price_cents": 100,
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "name must be a string"

        db_session.expire_all()
        assert db_session.query(Product).filter_by(sku="TXT-1").count() == 0
