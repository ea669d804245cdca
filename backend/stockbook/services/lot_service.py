# Overview: Service-layer operations for the lot ledger; encapsulates business logic and database work.

"""
Lot Ledger Invariants (authoritative)

- Lot.quantity_remaining (base units) is the source of truth for stock.
- quantity_remaining >= 0 at all times. A debit is a conditional UPDATE
  (... WHERE quantity_remaining >= :units); if no row matches nothing is
  mutated and InsufficientStock is raised.
- Allocation order is FIFO-by-expiry: expiry_date ascending, lots without
  an expiry last, lot id ascending as tie-break.
- RETIRED lots never take part in allocation.
- Product.quantity_on_hand is a cache. credit()/create_lot()/retire adjust
  it here; the sale orchestrator adjusts it once per SKU for its debits.
- Every credit, retirement and sale debit appends a StockLedgerEvent in the
  same transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import update

from ..extensions import db
from ..models import Lot, Product
from ..number_utils import to_decimal
from ..pack_utils import parse_pack_size
from ..time_utils import parse_iso_date, utcnow
from .concurrency import lock_for_update
from .errors import InsufficientStock
from .ledger_service import (
    append_ledger_event,
    lot_was_sold_against,
    EVENT_LOT_CREDITED,
    EVENT_LOT_RETIRED,
)

logger = logging.getLogger(__name__)

LOT_SOURCE_BATCH = "BATCH"
LOT_SOURCE_PURCHASE = "PURCHASE"
LOT_SOURCES = {LOT_SOURCE_BATCH, LOT_SOURCE_PURCHASE}

LOT_STATUS_ACTIVE = "ACTIVE"
LOT_STATUS_RETIRED = "RETIRED"


class LotNotFoundError(Exception):
    """Raised when a lot is not found."""
    pass


class LotValidationError(Exception):
    """Raised when lot data or a ledger operation fails validation."""
    pass


def _required_str(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None or str(value).strip() == "":
        raise LotValidationError(f"{key} is required")
    return str(value).strip()


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _amount(payload: dict, key: str, *, required: bool = False) -> Decimal | None:
    value = payload.get(key)
    if value is None:
        if required:
            raise LotValidationError(f"{key} is required")
        return None
    try:
        amount = to_decimal(value, field=key)
    except ValueError as e:
        raise LotValidationError(str(e))
    if amount < 0:
        raise LotValidationError(f"{key} must be >= 0")
    return amount


def _date(payload: dict, key: str) -> date | None:
    try:
        return parse_iso_date(payload.get(key))
    except ValueError:
        raise LotValidationError(f"{key} must be a YYYY-MM-DD date")


def _base_units(payload: dict, pack_size: str, *, allow_zero: bool) -> int:
    """quantity (packs) from the payload, expanded to base units."""
    value = payload.get("quantity")
    if isinstance(value, bool) or not isinstance(value, int):
        raise LotValidationError("quantity must be an integer")
    if value < 0 or (value == 0 and not allow_zero):
        raise LotValidationError(f"quantity must be {'>= 0' if allow_zero else '> 0'}")
    units = parse_pack_size(pack_size)
    if units <= 0:
        raise LotValidationError(f"Pack size {pack_size!r} has zero units")
    return value * units


@dataclass(frozen=True)
class LotDraft:
    """
    Input to create_lot(). Two population mechanisms share this shape:

    - LotDraft.from_batch(): direct batch receipt (source=BATCH)
    - LotDraft.from_purchase_item(): one item of a purchase receipt (source=PURCHASE)

    Payload quantities are in packs; quantity here is in base units
    (packs * units per pack). unit_cost and unit_price are per pack.
    """
    sku: str
    source: str
    quantity: int
    pack_size: str = ""
    batch_number: str | None = None
    mfg_date: date | None = None
    expiry_date: date | None = None
    unit_cost: Decimal | None = None
    unit_price: Decimal | None = None
    purchase_receipt_id: int | None = None

    def __post_init__(self):
        if self.source not in LOT_SOURCES:
            raise LotValidationError(f"Invalid lot source: {self.source}")
        if self.quantity < 0:
            raise LotValidationError("quantity must be >= 0")
        if self.mfg_date and self.expiry_date and self.expiry_date < self.mfg_date:
            raise LotValidationError("expiry_date cannot be before mfg_date")

    @property
    def packs(self) -> int:
        return self.quantity // (parse_pack_size(self.pack_size) or 1)

    @classmethod
    def from_batch(cls, payload: dict) -> "LotDraft":
        pack_size = _optional_str(payload, "pack_size") or ""
        return cls(
            sku=_required_str(payload, "sku"),
            source=LOT_SOURCE_BATCH,
            batch_number=_required_str(payload, "batch_number"),
            mfg_date=_date(payload, "mfg_date"),
            expiry_date=_date(payload, "expiry_date"),
            pack_size=pack_size,
            unit_cost=_amount(payload, "unit_cost"),
            unit_price=_amount(payload, "unit_price", required=True),
            quantity=_base_units(payload, pack_size, allow_zero=True),
        )

    @classmethod
    def from_purchase_item(cls, payload: dict, *, batch_number: str, purchase_receipt_id: int | None = None) -> "LotDraft":
        pack_size = _required_str(payload, "pack_size")
        return cls(
            sku=_required_str(payload, "sku"),
            source=LOT_SOURCE_PURCHASE,
            batch_number=_optional_str(payload, "batch_number") or batch_number,
            mfg_date=_date(payload, "mfg_date"),
            expiry_date=_date(payload, "expiry_date"),
            pack_size=pack_size,
            unit_cost=_amount(payload, "unit_cost", required=True),
            unit_price=_amount(payload, "unit_price", required=True),
            quantity=_base_units(payload, pack_size, allow_zero=False),
            purchase_receipt_id=purchase_receipt_id,
        )


def _fifo_order(query):
    return query.order_by(
        Lot.expiry_date.is_(None),
        Lot.expiry_date.asc(),
        Lot.id.asc(),
    )


def adjust_product_quantity(product_id: int, delta: int) -> None:
    """Move the Product.quantity_on_hand cache by delta base units."""
    if not delta:
        return
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(
            quantity_on_hand=Product.quantity_on_hand + delta,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )


def get_product_by_sku(sku: str) -> Product | None:
    return db.session.query(Product).filter_by(sku=sku).first()


def get_lot(lot_id: int, *, lock: bool = False) -> Lot:
    query = db.session.query(Lot).filter_by(id=lot_id)
    if lock:
        query = lock_for_update(query)
    lot = query.first()
    if lot is None:
        raise LotNotFoundError(f"Lot {lot_id} not found")
    return lot


def find_lot_by_batch(sku: str, batch_number: str) -> Lot | None:
    """Active lot of a SKU carrying the given batch number (earliest expiry first)."""
    query = db.session.query(Lot).filter(
        Lot.sku == sku,
        Lot.batch_number == batch_number,
        Lot.status == LOT_STATUS_ACTIVE,
    )
    return _fifo_order(query).first()


def list_lots_for_sku(sku: str, *, lock: bool = False) -> list[Lot]:
    """
    Active lots with remaining stock, FIFO-by-expiry.

    lock=True adds SELECT ... FOR UPDATE so the quantities read stay valid
    until the surrounding transaction ends.
    """
    query = db.session.query(Lot).filter(
        Lot.sku == sku,
        Lot.status == LOT_STATUS_ACTIVE,
        Lot.quantity_remaining > 0,
    )
    if lock:
        query = lock_for_update(query)
    return _fifo_order(query).all()


def list_all_lots_for_sku(sku: str) -> list[Lot]:
    """All lots including exhausted and retired ones (audit view), FIFO order."""
    return _fifo_order(db.session.query(Lot).filter(Lot.sku == sku)).all()


def debit(lot_id: int, base_units: int, *, sku: str | None = None) -> int:
    """
    Atomically subtract base_units from a lot's remaining quantity.

    The sufficiency check and the decrement are one statement, so two
    concurrent debits can never take the lot below zero. Returns the new
    remaining quantity.

    Does NOT touch Product.quantity_on_hand (see module notes).

    Raises:
        LotValidationError: base_units is not positive
        LotNotFoundError: no such lot (or it belongs to another SKU)
        InsufficientStock: lot is retired or holds fewer than base_units
    """
    if isinstance(base_units, bool) or not isinstance(base_units, int) or base_units <= 0:
        raise LotValidationError("base_units must be a positive integer")

    conditions = [
        Lot.id == lot_id,
        Lot.status == LOT_STATUS_ACTIVE,
        Lot.quantity_remaining >= base_units,
    ]
    if sku is not None:
        conditions.append(Lot.sku == sku)

    result = db.session.execute(
        update(Lot)
        .where(*conditions)
        .values(
            quantity_remaining=Lot.quantity_remaining - base_units,
            version_id=Lot.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )

    lot = db.session.query(Lot).populate_existing().filter_by(id=lot_id).first()
    if result.rowcount != 1:
        if lot is None or (sku is not None and lot.sku != sku):
            raise LotNotFoundError(f"Lot {lot_id} not found for SKU {sku}")
        available = lot.quantity_remaining if lot.status == LOT_STATUS_ACTIVE else 0
        raise InsufficientStock(lot.sku, base_units, available, lot_id=lot_id)

    return lot.quantity_remaining


def debit_specific(lot_id: int, base_units: int, *, sku: str) -> int:
    """Debit a caller-pinned lot, bypassing FIFO order. Same contract as debit()."""
    logger.debug("Pinned debit of %d units from lot %s (%s)", base_units, lot_id, sku)
    return debit(lot_id, base_units, sku=sku)


def credit(
    lot_id: int,
    base_units: int,
    *,
    actor_user_id: int | None = None,
    note: str | None = None,
    commit: bool = True,
) -> Lot:
    """
    Increase a lot's remaining quantity and the Product cache by the same amount.
    Inverse of a debit; used for adjustments and receipts into an existing lot.
    """
    if isinstance(base_units, bool) or not isinstance(base_units, int) or base_units <= 0:
        raise LotValidationError("base_units must be a positive integer")

    lot = get_lot(lot_id, lock=True)
    if lot.status != LOT_STATUS_ACTIVE:
        raise LotValidationError(f"Lot {lot_id} is retired")

    lot.quantity_remaining = lot.quantity_remaining + base_units
    lot.quantity_received = lot.quantity_received + base_units
    db.session.flush()
    adjust_product_quantity(lot.product_id, base_units)

    append_ledger_event(
        event_type=EVENT_LOT_CREDITED,
        entity_type="lot",
        entity_id=lot.id,
        sku=lot.sku,
        lot_id=lot.id,
        quantity_delta=base_units,
        actor_user_id=actor_user_id,
        note=note or f"Credit {base_units} units to {lot.reference}",
    )

    if commit:
        db.session.commit()
    return lot


def create_lot(draft: LotDraft, *, actor_user_id: int | None = None, commit: bool = True) -> Lot:
    """
    Record a new lot (batch receipt or purchase item) and credit the Product cache.

    Raises:
        LotValidationError: unknown or inactive SKU
    """
    product = get_product_by_sku(draft.sku)
    if product is None:
        raise LotValidationError(f"Unknown SKU: {draft.sku}")
    if not product.is_active:
        raise LotValidationError(f"Product {draft.sku} is inactive")

    lot = Lot(
        product_id=product.id,
        sku=product.sku,
        source=draft.source,
        batch_number=draft.batch_number,
        purchase_receipt_id=draft.purchase_receipt_id,
        mfg_date=draft.mfg_date,
        expiry_date=draft.expiry_date,
        pack_size=draft.pack_size,
        unit_cost=draft.unit_cost,
        unit_price=draft.unit_price,
        quantity_received=draft.quantity,
        quantity_remaining=draft.quantity,
        status=LOT_STATUS_ACTIVE,
    )
    db.session.add(lot)
    db.session.flush()

    adjust_product_quantity(product.id, draft.quantity)

    append_ledger_event(
        event_type=EVENT_LOT_CREDITED,
        entity_type="lot",
        entity_id=lot.id,
        sku=lot.sku,
        lot_id=lot.id,
        quantity_delta=draft.quantity,
        actor_user_id=actor_user_id,
        note=f"{draft.source.title()} receipt {lot.batch_number or lot.reference}",
        payload={"source": draft.source, "purchase_receipt_id": draft.purchase_receipt_id},
    )

    if commit:
        db.session.commit()
    return lot


def retire_or_delete_lot(lot_id: int, *, actor_user_id: int | None = None, commit: bool = True) -> str:
    """
    Remove a lot from stock.

    A lot that was ever sold against is kept for invoice history and only
    retired; otherwise the row is deleted. Both reduce the Product cache by
    the lot's remaining quantity. Returns "retired" or "deleted".
    """
    lot = get_lot(lot_id, lock=True)
    if lot.status == LOT_STATUS_RETIRED:
        raise LotValidationError(f"Lot {lot_id} is already retired")

    remaining = lot.quantity_remaining
    adjust_product_quantity(lot.product_id, -remaining)

    if lot_was_sold_against(lot.id):
        lot.status = LOT_STATUS_RETIRED
        lot.retired_at = utcnow()
        append_ledger_event(
            event_type=EVENT_LOT_RETIRED,
            entity_type="lot",
            entity_id=lot.id,
            sku=lot.sku,
            lot_id=lot.id,
            quantity_delta=-remaining,
            actor_user_id=actor_user_id,
            note=f"Retired {lot.reference}",
        )
        outcome = "retired"
    else:
        db.session.delete(lot)
        outcome = "deleted"

    if commit:
        db.session.commit()
    logger.info("Lot %s %s (%d units removed from stock)", lot_id, outcome, remaining)
    return outcome
