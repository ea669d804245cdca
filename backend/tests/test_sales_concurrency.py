"""
Concurrent sale tests against a file-backed SQLite database.

Verifies:
- Parallel sales against one lot never take more than it holds
- Exactly as many sales commit as the lot can cover
- Invoice numbers stay unique and gap-free under contention
"""

import threading

import pytest

from conftest import make_lot, make_product
from stockbook import create_app
from stockbook.extensions import db
from stockbook.models import Invoice, Lot, Product, StockLedgerEvent
from stockbook.services import sales_service
from stockbook.services.errors import InsufficientStock
from stockbook.services.ledger_service import EVENT_LOT_DEBITED
from stockbook.services.sales_service import SaleRequest


THREADS = 8
LOT_UNITS = 10
UNITS_PER_SALE = 3


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """Application on a SQLite file so every thread gets its own connection."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'stockbook.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'check_same_thread': False, 'timeout': 30}},
        'BCRYPT_ROUNDS': 4,
        'DEFAULT_TAX_RATE': '0.10',
        'SALE_RETRY_ATTEMPTS': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_parallel_sales(app, sale_request):
    barrier = threading.Barrier(THREADS, timeout=30)
    committed, rejected, failed = [], [], []

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                result = sales_service.create_sale(sale_request)
            except InsufficientStock as exc:
                rejected.append(exc)
            except Exception as exc:
                failed.append(exc)
            else:
                committed.append(result.invoice_number)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(THREADS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert not any(t.is_alive() for t in threads)
    return committed, rejected, failed


class TestConcurrentSales:

    def test_parallel_sales_never_oversell(self, file_app):
        product = make_product()
        lot = make_lot(product.sku, LOT_UNITS, batch="B-RACE")
        lot_id, product_id = lot.id, product.id
        sale_request = SaleRequest.from_payload({
            "customer": "Counter Sale",
            "invoice_date": "2025-06-15",
            "items": [{"sku": product.sku, "quantity": UNITS_PER_SALE}],
        })
        db.session.remove()

        committed, rejected, failed = _run_parallel_sales(file_app, sale_request)

        assert failed == []
        expected = LOT_UNITS // UNITS_PER_SALE
        assert len(committed) == expected
        assert len(rejected) == THREADS - expected

        remaining = db.session.get(Lot, lot_id).quantity_remaining
        assert remaining == LOT_UNITS - expected * UNITS_PER_SALE
        assert remaining >= 0
        assert db.session.get(Product, product_id).quantity_on_hand == remaining

        debited = (
            db.session.query(db.func.sum(StockLedgerEvent.quantity_delta))
            .filter_by(event_type=EVENT_LOT_DEBITED, lot_id=lot_id)
            .scalar()
        )
        assert -debited == expected * UNITS_PER_SALE

    def test_parallel_sales_get_unique_sequential_numbers(self, file_app):
        product = make_product()
        make_lot(product.sku, THREADS, batch="B-PLENTY")
        sale_request = SaleRequest.from_payload({
            "customer": "Counter Sale",
            "invoice_date": "2025-06-15",
            "items": [{"sku": product.sku, "quantity": 1}],
        })
        db.session.remove()

        committed, rejected, failed = _run_parallel_sales(file_app, sale_request)

        assert failed == [] and rejected == []
        assert len(set(committed)) == THREADS
        assert sorted(committed) == [f"2526-{n:02d}" for n in range(1, THREADS + 1)]

        stored = [number for (number,) in db.session.query(Invoice.invoice_number)]
        assert sorted(stored) == sorted(committed)
