"""
Pytest fixtures for retailpos backend tests.

Provides test database setup, two-tenant fixtures (A and B), credentials and
the test client.
"""

import pytest
from sqlalchemy import func, select

from retailpos import create_app
from retailpos.extensions import db
from retailpos.models import Category, Product, ProductVariant, Role, StockMovement, Store, User
from retailpos.services.auth_service import hash_password
from retailpos.services.catalog_service import create_variant
from retailpos.services.token_service import TenantContext, issue_credential


TEST_PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'JWT_SECRET_KEY': 'test-jwt-secret',
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'WARNING',
    # Throttle tests lower this themselves
    'REGISTER_MAX_ATTEMPTS': 100,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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


def make_user(db_session, *, email, role, owner=None, store=None):
    user = User(
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        first_name=role.title(),
        last_name="Tester",
        role=role,
        owner_id=owner.id if owner is not None else None,
        store_id=store.id if store is not None else None,
    )
    db_session.add(user)
    db_session.commit()
    return user


def ctx_for(user: User) -> TenantContext:
    """TenantContext as the resolver would build it for user."""
    return TenantContext(user_id=user.id, email=user.email, role=user.role, owner_id=user.tenant_id)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    return auth_headers(issue_credential(user))


def stock_of(variant_id: int) -> int:
    """Current stock straight from the database, bypassing the identity map."""
    return db.session.execute(
        select(ProductVariant.stock_quantity).where(ProductVariant.id == variant_id)
    ).scalar_one()


def movement_count(variant_id: int) -> int:
    return db.session.execute(
        select(func.count(StockMovement.id)).where(StockMovement.variant_id == variant_id)
    ).scalar_one()


# -- Tenant A --


@pytest.fixture(scope='function')
def owner_a(db_session):
    """Owner A: tenant root of the first tenant."""
    return make_user(db_session, email="owner_a@acme.test", role=Role.OWNER)


@pytest.fixture(scope='function')
def store_a(db_session, owner_a):
    store = Store(owner_id=owner_a.id, name="Acme Main Street")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def manager_a(db_session, owner_a, store_a):
    return make_user(db_session, email="manager_a@acme.test", role=Role.MANAGER, owner=owner_a, store=store_a)


@pytest.fixture(scope='function')
def cashier_a(db_session, owner_a, store_a):
    return make_user(db_session, email="cashier_a@acme.test", role=Role.CASHIER, owner=owner_a, store=store_a)


@pytest.fixture(scope='function')
def product_a(db_session, owner_a, store_a):
    category = Category(owner_id=owner_a.id, name="Shirts")
    db_session.add(category)
    db_session.commit()

    product = Product(owner_id=owner_a.id, category_id=category.id, store_id=store_a.id, name="Oxford Shirt")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_a(db_session, owner_a, product_a):
    """Variant priced 10.00 with 5 units in stock."""
    return create_variant(ctx_for(owner_a), product_a.id, {
        "sku": "OXF-M-BLU",
        "size": "M",
        "color": "Blue",
        "barcode": "1234567890123",
        "cost_price_cents": 400,
        "selling_price_cents": 1000,
        "stock_quantity": 5,
    })


@pytest.fixture(scope='function')
def variant_a2(db_session, owner_a, product_a):
    """Second variant priced 25.00 with 2 units in stock."""
    return create_variant(ctx_for(owner_a), product_a.id, {
        "sku": "OXF-L-WHT",
        "size": "L",
        "color": "White",
        "cost_price_cents": 900,
        "selling_price_cents": 2500,
        "stock_quantity": 2,
    })


# -- Tenant B --


@pytest.fixture(scope='function')
def owner_b(db_session):
    """Owner B: tenant root of the second tenant."""
    return make_user(db_session, email="owner_b@beta.test", role=Role.OWNER)


@pytest.fixture(scope='function')
def store_b(db_session, owner_b):
    store = Store(owner_id=owner_b.id, name="Beta Outlet")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def cashier_b(db_session, owner_b, store_b):
    return make_user(db_session, email="cashier_b@beta.test", role=Role.CASHIER, owner=owner_b, store=store_b)


@pytest.fixture(scope='function')
def product_b(db_session, owner_b, store_b):
    category = Category(owner_id=owner_b.id, name="Shoes")
    db_session.add(category)
    db_session.commit()

    product = Product(owner_id=owner_b.id, category_id=category.id, store_id=store_b.id, name="Runner")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_b(db_session, owner_b, product_b):
    return create_variant(ctx_for(owner_b), product_b.id, {
        "sku": "RUN-42",
        "barcode": "9990001112223",
        "cost_price_cents": 3000,
        "selling_price_cents": 7000,
        "stock_quantity": 8,
    })
