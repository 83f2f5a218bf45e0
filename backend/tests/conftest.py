"""
Pytest fixtures for Ombor backend tests.

Provides an in-memory app, a test client, a per-test clean database and a
small catalog (one category, two products) plus a debtor.

Fixture rows are committed before the test body runs: every service write
opens its own write transaction and would refuse to start on top of
uncommitted changes.
"""

import pytest

from ombor import create_app
from ombor.extensions import db
from ombor.services import catalog_service, debtor_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_THRESHOLD': 10,
        'WRITE_RETRY_ATTEMPTS': 1,
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
def category(db_session):
    """Create a category with no products."""
    return catalog_service.create_category({"name": "Ichimliklar", "color": "#3b82f6"})


@pytest.fixture(scope='function')
def product(db_session, category):
    """Product with 10 on hand, price 1000, cost 600."""
    return catalog_service.create_product({
        "name": "Cola 1L",
        "barcode": "4780000000011",
        "category_id": category.id,
        "price": 1000,
        "cost": 600,
        "quantity": 10,
    })


@pytest.fixture(scope='function')
def second_product(db_session, category):
    """Product with 3 on hand, price 500, cost 200."""
    return catalog_service.create_product({
        "name": "Suv 0.5L",
        "barcode": "4780000000028",
        "category_id": category.id,
        "price": 500,
        "cost": 200,
        "quantity": 3,
    })


@pytest.fixture(scope='function')
def debtor(db_session):
    """Debtor with a zero balance."""
    return debtor_service.create_debtor({"name": "Ali Valiyev", "phone": "+998901234567"})
