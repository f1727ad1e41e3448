"""
Pytest fixtures for back-office ledger tests.

Provides an isolated database, a per-test table wipe, the test client,
a CLI runner and small factories for stock items and suppliers.
"""

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.services import inventory_service, supplier_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
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
def runner(app):
    """Click runner bound to the app's CLI."""
    return app.test_cli_runner()


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
def make_item(db_session):
    """Factory: create a menu item through the service."""
    def _make(name="Cola", *, stock=0, tracked=True, **extra):
        payload = {"name": name, "track_stock": tracked, **extra}
        if tracked:
            payload["stock_quantity"] = stock
        return inventory_service.create_menu_item(payload)
    return _make


@pytest.fixture(scope='function')
def make_supplier(db_session):
    """Factory: create an active supplier through the service."""
    def _make(name="Fresh Farms", **extra):
        return supplier_service.create_supplier({"name": name, **extra})
    return _make
