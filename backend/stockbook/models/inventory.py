from __future__ import annotations

from ..extensions import db
from ..number_utils import money_str
from stockbook.time_utils import to_iso_date, to_utc_z


class Lot(db.Model):
    """
    A batch of physical stock received together (purchase item or batch row).

    Remaining quantity is held in BASE UNITS (pack size already expanded) and
    is the source of truth for stock. It never goes below zero: debits are
    conditional updates and the check constraint is the backstop.

    source tags how the lot was populated:
    - BATCH: direct batch receipt (batch number, dates, quantity)
    - PURCHASE: one item of a PurchaseReceipt

    A lot that has been sold against is never hard-deleted; it is retired
    (status=RETIRED) and drops out of allocation.
    """
    __tablename__ = "lots"
    __table_args__ = (
        db.CheckConstraint("quantity_remaining >= 0", name="ck_lots_remaining_nonnegative"),
        db.Index("ix_lots_sku_expiry", "sku", "expiry_date", "id"),
        db.Index("ix_lots_sku_batch", "sku", "batch_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    sku = db.Column(db.String(64), nullable=False)

    source = db.Column(db.String(16), nullable=False, default="BATCH")
    batch_number = db.Column(db.String(64), nullable=True)
    purchase_receipt_id = db.Column(db.Integer, db.ForeignKey("purchase_receipts.id"), nullable=True, index=True)

    mfg_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    # e.g. "6x10" = 60 units per pack
    pack_size = db.Column(db.String(32), nullable=False, default="")

    unit_cost = db.Column(db.Numeric(14, 4), nullable=True)
    unit_price = db.Column(db.Numeric(14, 4), nullable=True)

    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    quantity_remaining = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)
    retired_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("lots", lazy=True))
    purchase_receipt = db.relationship("PurchaseReceipt", backref=db.backref("lots", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Lot id={self.id} sku={self.sku!r} remaining={self.quantity_remaining}>"

    @property
    def reference(self) -> str:
        return f"PI#{self.id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference": self.reference,
            "product_id": self.product_id,
            "sku": self.sku,
            "source": self.source,
            "batch_number": self.batch_number,
            "purchase_receipt_id": self.purchase_receipt_id,
            "mfg_date": to_iso_date(self.mfg_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "pack_size": self.pack_size,
            "unit_cost": money_str(self.unit_cost) if self.unit_cost is not None else None,
            "unit_price": money_str(self.unit_price) if self.unit_price is not None else None,
            "quantity_received": self.quantity_received,
            "quantity_remaining": self.quantity_remaining,
            "status": self.status,
            "retired_at": to_utc_z(self.retired_at) if self.retired_at else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseReceipt(db.Model):
    """
    Purchase (stock-in) document. Each item becomes a Lot with source=PURCHASE.

    IMMUTABLE: receipts are written once; corrections are new receipts or lot credits.
    """
    __tablename__ = "purchase_receipts"
    __table_args__ = (
        db.UniqueConstraint("ref_no", name="uq_purchase_receipts_ref_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ref_no = db.Column(db.String(64), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    batch_number = db.Column(db.String(64), nullable=False)

    sub_total = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    supplier = db.relationship("Supplier", backref=db.backref("purchase_receipts", lazy=True))

    def to_dict(self, include_lots: bool = False) -> dict:
        data = {
            "id": self.id,
            "ref_no": self.ref_no,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "batch_number": self.batch_number,
            "sub_total": money_str(self.sub_total),
            "total": money_str(self.total),
            "received_at": to_utc_z(self.received_at),
            "created_by_user_id": self.created_by_user_id,
        }
        if include_lots:
            data["lots"] = [lot.to_dict() for lot in self.lots]
        return data


class StockLedgerEvent(db.Model):
    """
    Append-only audit trail for stock and sale events.

    Written in the same transaction as the change it records, so a rolled
    back sale leaves no events behind.
    """
    __tablename__ = "stock_ledger_events"
    __table_args__ = (
        db.Index("ix_stock_ledger_lot_type", "lot_id", "event_type"),
        db.Index("ix_stock_ledger_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)

    sku = db.Column(db.String(64), nullable=True, index=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("lots.id", ondelete="SET NULL"), nullable=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    quantity_delta = db.Column(db.Integer, nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "sku": self.sku,
            "lot_id": self.lot_id,
            "invoice_id": self.invoice_id,
            "quantity_delta": self.quantity_delta,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "note": self.note,
            "payload": self.payload,
        }
