# Overview: Service-layer operations for reporting; read-only stock views and cache reconciliation.

"""
Reporting Service

Stock figures come from the lot ledger (sum of quantity_remaining over
ACTIVE lots). Product.quantity_on_hand is shown next to it so drift in the
cache is visible; reconcile_quantity_cache() repairs it.

Stock value is valued per lot: remaining packs * lot unit_cost, falling
back to the product cost when the lot has none.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, update

from ..extensions import db
from ..models import Lot, Product
from ..number_utils import ZERO, money_str
from ..pack_utils import parse_pack_size
from .lot_service import LOT_STATUS_ACTIVE

logger = logging.getLogger(__name__)


def _lot_sums() -> dict[int, int]:
    rows = (
        db.session.query(Lot.product_id, func.coalesce(func.sum(Lot.quantity_remaining), 0))
        .filter(Lot.status == LOT_STATUS_ACTIVE)
        .group_by(Lot.product_id)
        .all()
    )
    return {product_id: int(total) for product_id, total in rows}


def stock_report(*, include_inactive: bool = False) -> list[dict]:
    """One row per product, ordered by name."""
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    products = query.order_by(Product.name.asc(), Product.id.asc()).all()

    values: dict[int, Decimal] = {}
    lots = (
        db.session.query(Lot)
        .filter(Lot.status == LOT_STATUS_ACTIVE, Lot.quantity_remaining > 0)
        .all()
    )
    for lot in lots:
        units = parse_pack_size(lot.pack_size) or 1
        cost = lot.unit_cost
        if cost is None:
            cost = lot.product.cost if lot.product is not None else None
        if cost is None:
            continue
        values[lot.product_id] = values.get(lot.product_id, ZERO) + Decimal(lot.quantity_remaining) / units * Decimal(cost)

    sums = _lot_sums()
    rows = []
    for p in products:
        lot_quantity = sums.get(p.id, 0)
        rows.append({
            "id": p.id,
            "sku": p.sku,
            "name": p.name,
            "quantity_on_hand": p.quantity_on_hand,
            "lot_quantity": lot_quantity,
            "drift": p.quantity_on_hand != lot_quantity,
            "cost": money_str(p.cost) if p.cost is not None else None,
            "price": money_str(p.price),
            "stock_value": money_str(values.get(p.id, ZERO)),
        })
    return rows


def reconcile_quantity_cache(*, fix: bool = False) -> list[dict]:
    """
    Compare Product.quantity_on_hand with lot sums.

    Returns one entry per drifting product. With fix=True the cache is
    overwritten with the lot sum and committed.
    """
    sums = _lot_sums()
    drift = []
    for p in db.session.query(Product).order_by(Product.id.asc()).all():
        expected = sums.get(p.id, 0)
        if p.quantity_on_hand != expected:
            drift.append({
                "product_id": p.id,
                "sku": p.sku,
                "cached": p.quantity_on_hand,
                "lot_sum": expected,
            })

    if fix and drift:
        for entry in drift:
            db.session.execute(
                update(Product)
                .where(Product.id == entry["product_id"])
                .values(quantity_on_hand=entry["lot_sum"], version_id=Product.version_id + 1)
                .execution_options(synchronize_session="fetch")
            )
        db.session.commit()
        logger.warning("Reconciled quantity cache for %d product(s)", len(drift))

    return drift
