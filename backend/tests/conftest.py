"""
Pytest fixtures for ShopDesk backend tests.

Provides test database setup, two-tenant fixtures, and test client.
"""

import pytest
from shopdesk import create_app
from shopdesk.extensions import db
from shopdesk.models import Product, Category
from shopdesk.services.auth_service import register_shop_owner, create_user, add_shop_member


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def owner_a(db_session):
    """Owner of Shop A (first tenant)."""
    user, _shop = register_shop_owner(
        email="owner_a@acme.test",
        password=PASSWORD,
        full_name="Alice Acme",
        shop_name="Acme Corner Store",
    )
    return user


@pytest.fixture(scope='function')
def shop_a(owner_a):
    return owner_a.owned_shops[0]


@pytest.fixture(scope='function')
def owner_b(db_session):
    """Owner of Shop B (second tenant)."""
    user, _shop = register_shop_owner(
        email="owner_b@beta.test",
        password=PASSWORD,
        full_name="Bob Beta",
        shop_name="Beta Market",
    )
    return user


@pytest.fixture(scope='function')
def shop_b(owner_b):
    return owner_b.owned_shops[0]


@pytest.fixture(scope='function')
def cashier_a(db_session, shop_a):
    """Cashier member of Shop A."""
    user = create_user("cashier_a@acme.test", PASSWORD, "Carl Cashier")
    add_shop_member(shop_id=shop_a.id, user_id=user.id, role="cashier")
    return user


def make_product(db_session, shop, *, sku, name, price_cents, stock=0, threshold=10, category=None):
    product = Product(
        shop_id=shop.id,
        sku=sku,
        name=name,
        price_cents=price_cents,
        stock_quantity=stock,
        low_stock_threshold=threshold,
        category_id=category.id if category else None,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def category_a(db_session, shop_a):
    category = Category(shop_id=shop_a.id, name="Snacks")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product_a(db_session, shop_a):
    """Product A: $10.00, 20 in stock."""
    return make_product(db_session, shop_a, sku="A-001", name="Product A", price_cents=1000, stock=20)


@pytest.fixture(scope='function')
def product_a2(db_session, shop_a):
    """Product B in Shop A: $5.00, 20 in stock."""
    return make_product(db_session, shop_a, sku="A-002", name="Product B", price_cents=500, stock=20)


@pytest.fixture(scope='function')
def product_b(db_session, shop_b):
    """Product in Shop B."""
    return make_product(db_session, shop_b, sku="B-001", name="Beta Product", price_cents=2000, stock=5)


def get_auth_token(client, email: str, password: str = PASSWORD, shop_id: int | None = None) -> str:
    """Helper to get auth token for a user."""
    body = {'email': email, 'password': password}
    if shop_id is not None:
        body['shop_id'] = shop_id
    response = client.post('/api/auth/login', json=body)
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def product_factory(db_session):
    """Callable that creates a product: product_factory(shop, sku=..., name=..., price_cents=..., stock=...)."""
    def _make(shop, **kwargs):
        return make_product(db_session, shop, **kwargs)
    return _make


@pytest.fixture(scope='function')
def admin_headers(client, owner_a):
    return auth_headers(get_auth_token(client, owner_a.email))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_a):
    return auth_headers(get_auth_token(client, cashier_a.email))


@pytest.fixture(scope='function')
def inventory_manager_headers(client, shop_a):
    user = create_user("stock_a@acme.test", PASSWORD, "Ivy Inventory")
    add_shop_member(shop_id=shop_a.id, user_id=user.id, role="inventory_manager")
    return auth_headers(get_auth_token(client, user.email))


@pytest.fixture(scope='function')
def owner_b_headers(client, owner_b):
    return auth_headers(get_auth_token(client, owner_b.email))
