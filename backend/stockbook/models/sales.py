from __future__ import annotations

from ..extensions import db
from ..number_utils import money_str
from stockbook.time_utils import to_iso_date, to_utc_z


class Invoice(db.Model):
    """
    Sale invoice (header + footer totals).

    IMMUTABLE: written once by the sale orchestrator inside a single
    transaction; lines and totals never change after commit.

    invoice_number is "{fiscal_code}-{sequence}" (e.g. "2526-07"). The unique
    constraint is the backstop against two concurrent sales minting the
    same number.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.Index("ix_invoices_date", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)
    fiscal_code = db.Column(db.String(8), nullable=False, index=True)
    invoice_date = db.Column(db.Date, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    # Customer snapshot at sale time
    customer_name = db.Column(db.String(255), nullable=False)
    customer_address = db.Column(db.String(512), nullable=True)
    customer_vat = db.Column(db.String(64), nullable=True)

    payment_type = db.Column(db.String(32), nullable=True)
    route_rep_code = db.Column(db.String(32), nullable=True)
    sales_rep_id = db.Column(db.Integer, nullable=True)
    sales_rep_name = db.Column(db.String(128), nullable=True)
    batch_reference = db.Column(db.String(128), nullable=True)

    # Totals, unrounded (see totals_service)
    sub_total = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    line_discount_total = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(7, 4), nullable=True)
    tax_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="POSTED")
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    lines = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        order_by="InvoiceLine.line_number",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} total={self.grand_total}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "fiscal_code": self.fiscal_code,
            "invoice_date": to_iso_date(self.invoice_date),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_address": self.customer_address,
            "customer_vat": self.customer_vat,
            "payment_type": self.payment_type,
            "route_rep_code": self.route_rep_code,
            "sales_rep_id": self.sales_rep_id,
            "sales_rep_name": self.sales_rep_name,
            "batch_reference": self.batch_reference,
            "sub_total": money_str(self.sub_total),
            "line_discount_total": money_str(self.line_discount_total),
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "tax_amount": money_str(self.tax_amount),
            "grand_total": money_str(self.grand_total),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    One line per requested product, not per lot: a line whose allocation
    spans several lots still records the aggregate quantity.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "line_number", name="uq_invoice_lines_invoice_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    sku = db.Column(db.String(64), nullable=False, index=True)
    # Snapshot; must not follow later product renames
    product_name = db.Column(db.String(255), nullable=False)

    pack_size = db.Column(db.String(32), nullable=False, default="")
    units_per_pack = db.Column(db.Integer, nullable=False, default=1)
    quantity = db.Column(db.Integer, nullable=False)  # packs
    base_units = db.Column(db.Integer, nullable=False)

    unit_price = db.Column(db.Numeric(14, 4), nullable=False)
    unit_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    line_total = db.Column(db.Numeric(14, 4), nullable=False)

    lot_reference = db.Column(db.Text, nullable=True)

    invoice = db.relationship("Invoice", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "pack_size": self.pack_size,
            "units_per_pack": self.units_per_pack,
            "quantity": self.quantity,
            "base_units": self.base_units,
            "unit_price": money_str(self.unit_price),
            "unit_discount": money_str(self.unit_discount),
            "line_total": money_str(self.line_total),
            "lot_reference": self.lot_reference,
        }
