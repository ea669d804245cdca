"""
Pytest fixtures for stockbook backend tests.

Provides an in-memory database per test, catalog/lot fixtures, users for
each role and their bearer headers.
"""

from datetime import date
from decimal import Decimal

import pytest

from stockbook import create_app
from stockbook.extensions import db
from stockbook.models import Customer, Product
from stockbook.pack_utils import parse_pack_size
from stockbook.services import lot_service
from stockbook.services import session_service
from stockbook.services.auth_service import create_user
from stockbook.services.lot_service import LotDraft, LOT_SOURCE_BATCH


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app():
    """Create application with a fresh in-memory database."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'DEFAULT_TAX_RATE': '0.10',
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
    return db.session


def make_product(sku="PARA-500", name="Paracetamol 500mg", price="12.50", **extra):
    product = Product(
        sku=sku,
        name=name,
        price=Decimal(price),
        discount=Decimal("0"),
        quantity_on_hand=0,
        **extra,
    )
    db.session.add(product)
    db.session.commit()
    return product


def make_lot(sku, quantity, *, expiry=None, batch=None, pack_size="", unit_price="12.50", unit_cost=None):
    """Batch receipt of `quantity` packs; commits."""
    draft = LotDraft(
        sku=sku,
        source=LOT_SOURCE_BATCH,
        quantity=quantity * parse_pack_size(pack_size),
        pack_size=pack_size,
        batch_number=batch,
        expiry_date=expiry,
        unit_price=Decimal(unit_price),
        unit_cost=Decimal(unit_cost) if unit_cost is not None else None,
    )
    return lot_service.create_lot(draft)


@pytest.fixture(scope='function')
def product(db_session):
    """Product with no stock."""
    return make_product()


@pytest.fixture(scope='function')
def stocked_product(product):
    """
    Product with three lots (base units):
    - lot_late:   10 units, expires 2027-06-30
    - lot_early:   5 units, expires 2026-12-31
    - lot_none:    8 units, no expiry
    FIFO order is lot_early, lot_late, lot_none.
    """
    lot_late = make_lot(product.sku, 10, expiry=date(2027, 6, 30), batch="B-LATE")
    lot_early = make_lot(product.sku, 5, expiry=date(2026, 12, 31), batch="B-EARLY")
    lot_none = make_lot(product.sku, 8, batch="B-NONE")
    return {
        "product": product,
        "lot_late": lot_late,
        "lot_early": lot_early,
        "lot_none": lot_none,
    }


@pytest.fixture(scope='function')
def directory_customer(db_session):
    customer = Customer(name="Acme Pharmacy", address="1 Main St", vat_number="VAT-1", is_directory=True)
    db_session.add(customer)
    db_session.commit()
    return customer


def _user(role):
    return create_user(
        username=f"{role}_user",
        email=f"{role}@stockbook.test",
        password=TEST_PASSWORD,
        role=role,
    )


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _user("admin")


@pytest.fixture(scope='function')
def manager_user(db_session):
    return _user("manager")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return _user("cashier")


def auth_headers(user) -> dict:
    """Helper to create Authorization headers."""
    _, token = session_service.create_session(user_id=user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return auth_headers(manager_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return auth_headers(cashier_user)
