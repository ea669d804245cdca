# Overview: Service-layer operations for the stock ledger; append-only audit events.

from __future__ import annotations

import json
from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import StockLedgerEvent
"""
Stock Ledger Invariants (authoritative)

- Append-only audit log for lot and sale events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the change they record.
- occurred_at is business time; created_at is system time (DB default).
"""

EVENT_LOT_CREDITED = "lot.credited"
EVENT_LOT_DEBITED = "lot.debited"
EVENT_LOT_RETIRED = "lot.retired"
EVENT_SALE_POSTED = "sale.posted"


def append_ledger_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    sku: str | None = None,
    lot_id: int | None = None,
    invoice_id: int | None = None,
    quantity_delta: int | None = None,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: dict | None = None,
) -> StockLedgerEvent:
    """
    Append-only ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    """
    ev = StockLedgerEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        sku=sku,
        lot_id=lot_id,
        invoice_id=invoice_id,
        quantity_delta=quantity_delta,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note,
        payload=json.dumps(payload, sort_keys=True, default=str) if payload else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def lot_was_sold_against(lot_id: int) -> bool:
    return (
        db.session.query(StockLedgerEvent.id)
        .filter_by(lot_id=lot_id, event_type=EVENT_LOT_DEBITED)
        .first()
        is not None
    )


def list_events(*, lot_id: int | None = None, invoice_id: int | None = None, limit: int = 200) -> list[StockLedgerEvent]:
    q = db.session.query(StockLedgerEvent)
    if lot_id is not None:
        q = q.filter(StockLedgerEvent.lot_id == lot_id)
    if invoice_id is not None:
        q = q.filter(StockLedgerEvent.invoice_id == invoice_id)
    return q.order_by(StockLedgerEvent.id.asc()).limit(limit).all()
