"""
Pytest fixtures for tillcore backend tests.

Provides an in-memory database per test, a store with pricing
configuration, stocked products, and identity headers for the API.
"""

import pytest
from tillcore import create_app
from tillcore.extensions import db
from tillcore.models import Product, Store
from tillcore.services import stock_ledger


@pytest.fixture(scope='function')
def app():
    """Create application for testing (fresh in-memory database per test)."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    """Store with the default 7% VAT, cash by default."""
    store = Store(name="Main Street", code="MAIN", tax_rate_bps=700, vat_enabled=True,
                  default_payment_method="CASH")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(name="Harbour", code="HARB", tax_rate_bps=0, vat_enabled=False)
    db_session.add(store)
    db_session.commit()
    return store


def make_product(store, *, sku, name, price_cents, stock=0, **extra):
    """Create a product and book its opening stock through the ledger."""
    product = Product(store_id=store.id, sku=sku, name=name, price_cents=price_cents, stock=0, **extra)
    db.session.add(product)
    db.session.commit()
    if stock:
        stock_ledger.restock(
            store_id=store.id,
            product_id=product.id,
            user_id=None,
            quantity=stock,
            notes="Seed stock",
        )
    return product


@pytest.fixture(scope='function')
def tea(store):
    """500.00 per unit, 10 on hand."""
    return make_product(store, sku="TEA-01", name="Tea", price_cents=50000, stock=10)


@pytest.fixture(scope='function')
def cake(store):
    """2.50 per unit, 3 on hand."""
    return make_product(store, sku="CAKE-01", name="Cake", price_cents=250, stock=3)


@pytest.fixture(scope='function')
def headers(store):
    """Identity headers as forwarded by the terminal."""
    return {'X-User-Id': '7', 'X-Store-Id': str(store.id)}


@pytest.fixture(scope='function')
def product_factory(store):
    """make_product bound to the default store."""
    def factory(**kwargs):
        return make_product(kwargs.pop('store', store), **kwargs)
    return factory
