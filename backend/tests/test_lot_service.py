"""
Lot ledger tests.

Verifies:
- Conditional debit never takes a lot below zero
- Credits and receipts move the Product cache with the lot
- Retire vs hard delete depends on whether the lot was sold against
- Every mutation leaves a ledger event
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import make_lot
from stockbook.extensions import db
from stockbook.models import Lot, StockLedgerEvent
from stockbook.services import lot_service
from stockbook.services.errors import InsufficientStock
from stockbook.services.ledger_service import append_ledger_event, EVENT_LOT_DEBITED
from stockbook.services.lot_service import LotDraft, LotNotFoundError, LotValidationError


class TestLotDraft:

    def test_batch_payload_expands_packs(self):
        draft = LotDraft.from_batch({
            "sku": "PARA-500",
            "batch_number": "B1",
            "pack_size": "10",
            "quantity": 3,
            "unit_price": "12.50",
            "expiry_date": "2027-01-31",
        })

        assert draft.quantity == 30
        assert draft.packs == 3
        assert draft.unit_price == Decimal("12.50")
        assert draft.expiry_date == date(2027, 1, 31)

    def test_batch_allows_zero_quantity(self):
        draft = LotDraft.from_batch({"sku": "X", "batch_number": "B", "quantity": 0, "unit_price": 1})
        assert draft.quantity == 0

    @pytest.mark.parametrize(
        "payload",
        [
            {"batch_number": "B", "quantity": 1, "unit_price": 1},
            {"sku": "X", "quantity": 1, "unit_price": 1},
            {"sku": "X", "batch_number": "B", "quantity": 1},
            {"sku": "X", "batch_number": "B", "quantity": -1, "unit_price": 1},
            {"sku": "X", "batch_number": "B", "quantity": "3", "unit_price": 1},
            {"sku": "X", "batch_number": "B", "quantity": 1, "unit_price": -1},
            {"sku": "X", "batch_number": "B", "quantity": 1, "unit_price": 1, "pack_size": "0x5"},
            {"sku": "X", "batch_number": "B", "quantity": 1, "unit_price": 1, "expiry_date": "31/01/2027"},
            {
                "sku": "X", "batch_number": "B", "quantity": 1, "unit_price": 1,
                "mfg_date": "2026-05-01", "expiry_date": "2026-01-01",
            },
        ],
    )
    def test_batch_rejects(self, payload):
        with pytest.raises(LotValidationError):
            LotDraft.from_batch(payload)

    def test_purchase_item_requires_positive_quantity_and_cost(self):
        with pytest.raises(LotValidationError):
            LotDraft.from_purchase_item(
                {"sku": "X", "pack_size": "10", "quantity": 0, "unit_cost": 1, "unit_price": 2},
                batch_number="PB",
            )
        with pytest.raises(LotValidationError):
            LotDraft.from_purchase_item(
                {"sku": "X", "pack_size": "10", "quantity": 1, "unit_price": 2},
                batch_number="PB",
            )

    def test_purchase_item_inherits_batch_number(self):
        draft = LotDraft.from_purchase_item(
            {"sku": "X", "pack_size": "6x10", "quantity": 2, "unit_cost": "30", "unit_price": "45"},
            batch_number="PB-7",
        )
        assert draft.batch_number == "PB-7"
        assert draft.quantity == 120


class TestCreateLot:

    def test_credits_product_cache_and_logs(self, product):
        lot = make_lot(product.sku, 12, batch="B1")

        assert lot.quantity_remaining == 12
        assert lot.quantity_received == 12
        assert lot.source == "BATCH"
        assert product.quantity_on_hand == 12

        events = db.session.query(StockLedgerEvent).filter_by(lot_id=lot.id).all()
        assert [(e.event_type, e.quantity_delta) for e in events] == [("lot.credited", 12)]

    def test_unknown_sku(self, db_session):
        with pytest.raises(LotValidationError):
            make_lot("NOPE", 1)

    def test_inactive_product(self, product):
        product.is_active = False
        db.session.commit()

        with pytest.raises(LotValidationError):
            make_lot(product.sku, 1)


class TestDebit:

    def test_debit_decrements(self, stocked_product):
        lot = stocked_product["lot_late"]

        remaining = lot_service.debit(lot.id, 4, sku=lot.sku)

        assert remaining == 6
        assert lot.quantity_remaining == 6

    def test_debit_exact_remaining_reaches_zero(self, stocked_product):
        lot = stocked_product["lot_early"]
        assert lot_service.debit(lot.id, 5) == 0

    def test_overdraw_leaves_lot_untouched(self, stocked_product):
        lot = stocked_product["lot_early"]

        with pytest.raises(InsufficientStock) as exc:
            lot_service.debit(lot.id, 6)

        assert exc.value.available == 5
        assert exc.value.lot_id == lot.id
        assert db.session.get(Lot, lot.id).quantity_remaining == 5

    def test_debit_rechecks_after_stale_plan(self, stocked_product):
        """A debit planned against 5 units fails once another sale took them."""
        lot = stocked_product["lot_early"]
        lot_service.debit(lot.id, 3)

        with pytest.raises(InsufficientStock):
            lot_service.debit(lot.id, 5)
        assert lot.quantity_remaining == 2

    def test_wrong_sku_is_not_found(self, stocked_product):
        lot = stocked_product["lot_early"]
        with pytest.raises(LotNotFoundError):
            lot_service.debit(lot.id, 1, sku="OTHER")

    def test_retired_lot_has_nothing_available(self, stocked_product):
        lot = stocked_product["lot_early"]
        lot.status = "RETIRED"
        db.session.commit()

        with pytest.raises(InsufficientStock) as exc:
            lot_service.debit(lot.id, 1)
        assert exc.value.available == 0

    @pytest.mark.parametrize("units", [0, -1, 1.0, True])
    def test_rejects_non_positive_units(self, stocked_product, units):
        with pytest.raises(LotValidationError):
            lot_service.debit(stocked_product["lot_early"].id, units)


class TestCredit:

    def test_credit_moves_lot_and_cache(self, stocked_product):
        lot = stocked_product["lot_early"]
        product = stocked_product["product"]

        lot_service.credit(lot.id, 7, note="Recount")

        assert lot.quantity_remaining == 12
        assert lot.quantity_received == 12
        assert product.quantity_on_hand == 30

        event = (
            db.session.query(StockLedgerEvent)
            .filter_by(lot_id=lot.id)
            .order_by(StockLedgerEvent.id.desc())
            .first()
        )
        assert event.note == "Recount"
        assert event.quantity_delta == 7

    def test_credit_unknown_lot(self, db_session):
        with pytest.raises(LotNotFoundError):
            lot_service.credit(404, 1)

    def test_credit_retired_lot(self, stocked_product):
        lot = stocked_product["lot_early"]
        lot.status = "RETIRED"
        db.session.commit()

        with pytest.raises(LotValidationError):
            lot_service.credit(lot.id, 1)


class TestRetireOrDelete:

    def test_unsold_lot_is_deleted(self, stocked_product):
        lot_id = stocked_product["lot_none"].id
        product = stocked_product["product"]

        assert lot_service.retire_or_delete_lot(lot_id) == "deleted"

        assert db.session.get(Lot, lot_id) is None
        assert product.quantity_on_hand == 15

    def test_sold_lot_is_retired(self, stocked_product):
        lot = stocked_product["lot_late"]
        lot_service.debit(lot.id, 2)
        append_ledger_event(
            event_type=EVENT_LOT_DEBITED,
            entity_type="invoice",
            entity_id=1,
            sku=lot.sku,
            lot_id=lot.id,
            quantity_delta=-2,
        )
        db.session.commit()

        assert lot_service.retire_or_delete_lot(lot.id) == "retired"

        assert lot.status == "RETIRED"
        assert lot.retired_at is not None
        assert lot.quantity_remaining == 8
        assert stocked_product["product"].quantity_on_hand == 23 - 8
        assert lot not in lot_service.list_lots_for_sku(lot.sku)
        assert lot in lot_service.list_all_lots_for_sku(lot.sku)

    def test_retiring_twice_is_rejected(self, stocked_product):
        lot = stocked_product["lot_late"]
        lot.status = "RETIRED"
        db.session.commit()

        with pytest.raises(LotValidationError):
            lot_service.retire_or_delete_lot(lot.id)


class TestListing:

    def test_exhausted_lots_drop_out_of_allocation_view(self, stocked_product):
        lot = stocked_product["lot_early"]
        lot_service.debit(lot.id, 5)
        db.session.commit()

        ids = [l.id for l in lot_service.list_lots_for_sku(lot.sku)]
        assert ids == [stocked_product["lot_late"].id, stocked_product["lot_none"].id]

    def test_find_lot_by_batch(self, stocked_product):
        lot = lot_service.find_lot_by_batch(stocked_product["product"].sku, "B-NONE")
        assert lot.id == stocked_product["lot_none"].id
