# Overview: Service-layer operations for purchase receipts; each item becomes a PURCHASE lot.

"""
Purchase Receipt Service

IMMUTABLE: receipts are written once; corrections are new receipts or
lot credits.

One receipt is one transaction: the header, every item's lot, the
Product cache credits and the ledger events commit together or not at all.

Item quantities are in packs, costs and prices per pack.
sub_total = total = sum(packs * unit_cost). Receiving also refreshes the
product's list price and cost from the item.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PurchaseReceipt
from ..number_utils import ZERO
from ..time_utils import utcnow
from .concurrency import begin_write_transaction
from .lot_service import LotDraft, LotValidationError, create_lot, get_product_by_sku
from .supplier_service import SupplierNotFoundError, get_supplier

logger = logging.getLogger(__name__)


class PurchaseError(Exception):
    """Raised when a purchase receipt fails validation."""
    pass


def get_purchase(purchase_id: int) -> PurchaseReceipt | None:
    return db.session.query(PurchaseReceipt).filter_by(id=purchase_id).first()


def list_purchases(*, limit: int = 100) -> list[PurchaseReceipt]:
    return (
        db.session.query(PurchaseReceipt)
        .order_by(PurchaseReceipt.received_at.desc(), PurchaseReceipt.id.desc())
        .limit(limit)
        .all()
    )


def receive_purchase(payload: dict, *, user_id: int | None = None) -> PurchaseReceipt:
    """
    Record a purchase receipt and create one lot per item.

    Raises:
        PurchaseError: malformed header, unknown supplier, duplicate ref_no
            or an invalid item (message names the item index)
    """
    if not isinstance(payload, dict):
        raise PurchaseError("Invalid JSON payload")

    batch_number = (payload.get("batch_number") or "").strip()
    if not batch_number:
        raise PurchaseError("batch_number is required")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise PurchaseError("At least one item is required")

    ref_no = (payload.get("ref_no") or "").strip() or f"PO-{utcnow():%Y%m%d%H%M%S%f}"

    supplier_id = payload.get("supplier_id")
    supplier_name = (payload.get("supplier") or "").strip() or None
    if supplier_id is not None:
        try:
            supplier = get_supplier(int(supplier_id))
        except (SupplierNotFoundError, TypeError, ValueError):
            raise PurchaseError(f"Supplier {supplier_id} not found")
        supplier_id = supplier.id
        supplier_name = supplier.name

    # Validate every item before touching the database
    drafts = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise PurchaseError(f"Item {index}: must be an object")
        try:
            drafts.append(LotDraft.from_purchase_item(item, batch_number=batch_number))
        except LotValidationError as e:
            raise PurchaseError(f"Item {index}: {e}")

    try:
        begin_write_transaction()
        if db.session.query(PurchaseReceipt.id).filter_by(ref_no=ref_no).first():
            raise PurchaseError(f"Purchase reference '{ref_no}' already exists")

        receipt = PurchaseReceipt(
            ref_no=ref_no,
            supplier_id=supplier_id,
            supplier_name=supplier_name,
            batch_number=batch_number,
            created_by_user_id=user_id,
        )
        db.session.add(receipt)
        db.session.flush()

        sub_total = ZERO
        for index, draft in enumerate(drafts, start=1):
            product = get_product_by_sku(draft.sku)
            if product is None:
                raise PurchaseError(f"Item {index}: unknown SKU {draft.sku}")

            lot_draft = LotDraft(
                sku=draft.sku,
                source=draft.source,
                quantity=draft.quantity,
                pack_size=draft.pack_size,
                batch_number=draft.batch_number,
                mfg_date=draft.mfg_date,
                expiry_date=draft.expiry_date,
                unit_cost=draft.unit_cost,
                unit_price=draft.unit_price,
                purchase_receipt_id=receipt.id,
            )
            try:
                create_lot(lot_draft, actor_user_id=user_id, commit=False)
            except LotValidationError as e:
                raise PurchaseError(f"Item {index}: {e}")

            product.price = draft.unit_price
            product.cost = draft.unit_cost
            sub_total += draft.packs * draft.unit_cost

        receipt.sub_total = sub_total
        receipt.total = sub_total
        db.session.commit()
    except PurchaseError:
        db.session.rollback()
        raise
    except IntegrityError:
        db.session.rollback()
        raise PurchaseError(f"Purchase reference '{ref_no}' already exists")
    except Exception:
        db.session.rollback()
        raise

    logger.info("Purchase %s received: %d item(s), total %s", receipt.ref_no, len(drafts), receipt.total)
    return receipt
