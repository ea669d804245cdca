# Overview: Service-layer operations for printable invoices; builds and renders the print document.

"""
Printing never writes. The final bill-level discount exists only on the
printed document: printed total = stored net - final discount + stored tax,
while the stored grand total stays as committed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal

from flask import current_app, render_template

from ..models import Invoice
from ..number_utils import ZERO, money_str, to_decimal
from ..time_utils import to_iso_date
from .totals_service import printed_totals

PRINT_LAYOUTS = ("standard", "dot", "overlay")


class PrintOptionsError(Exception):
    """Raised when print parameters are invalid."""
    pass


def _float_arg(args, key: str, default: float | None = None, *, minimum: float | None = None) -> float | None:
    raw = args.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise PrintOptionsError(f"{key} must be a number")
    if not math.isfinite(value):
        raise PrintOptionsError(f"{key} must be a finite number")
    if minimum is not None and value < minimum:
        raise PrintOptionsError(f"{key} must be >= {minimum}")
    return value


@dataclass(frozen=True)
class PrintOptions:
    layout: str = "standard"
    offset_x: float = 0.0
    offset_y: float = 0.0
    font_size: float | None = None
    line_height: float | None = None
    scale: float = 1.0
    final_discount: Decimal = ZERO

    @classmethod
    def from_args(cls, args) -> "PrintOptions":
        """Parse query-string parameters (layout, offsets in mm, font_size in pt)."""
        layout = (args.get("layout") or args.get("format") or "standard").strip().lower()
        if layout in ("html", ""):
            layout = "standard"
        if layout not in PRINT_LAYOUTS:
            raise PrintOptionsError(f"layout must be one of {', '.join(PRINT_LAYOUTS)}")

        final_discount = ZERO
        raw_discount = args.get("final_discount")
        if raw_discount not in (None, ""):
            try:
                final_discount = to_decimal(raw_discount, field="final_discount")
            except ValueError as e:
                raise PrintOptionsError(str(e))
            if final_discount < 0:
                raise PrintOptionsError("final_discount cannot be negative")

        return cls(
            layout=layout,
            offset_x=_float_arg(args, "offset_x", 0.0),
            offset_y=_float_arg(args, "offset_y", 0.0),
            font_size=_float_arg(args, "font_size", minimum=1),
            line_height=_float_arg(args, "line_height", minimum=0.5),
            scale=_float_arg(args, "scale", 1.0, minimum=0.1),
            final_discount=final_discount,
        )


def build_print_document(invoice: Invoice, options: PrintOptions) -> dict:
    """
    Everything a template needs, already formatted.

    Raises:
        PrintOptionsError: final discount exceeds the invoice net amount
    """
    totals = printed_totals(invoice, options.final_discount)
    if options.final_discount > totals.net_total:
        raise PrintOptionsError("final_discount cannot exceed the invoice net amount")

    customer = invoice.customer
    return {
        "company": {
            "name": current_app.config.get("COMPANY_NAME", ""),
            "address": current_app.config.get("COMPANY_ADDRESS", ""),
            "phone": current_app.config.get("COMPANY_PHONE", ""),
        },
        "invoice_number": invoice.invoice_number,
        "invoice_date": to_iso_date(invoice.invoice_date),
        "customer": {
            "code": customer.code if customer is not None else "",
            "name": invoice.customer_name,
            "phone": (customer.phone if customer is not None else None) or "",
            "address": invoice.customer_address or "",
            "vat": invoice.customer_vat or "",
        },
        "sales_rep": invoice.sales_rep_name or "",
        "payment_type": invoice.payment_type or "",
        "route_rep_code": invoice.route_rep_code or "",
        "batch_reference": invoice.batch_reference or "",
        "lines": [
            {
                "line_number": line.line_number,
                "sku": line.sku,
                "name": line.product_name,
                "pack_size": line.pack_size,
                "quantity": line.quantity,
                "unit_price": money_str(line.unit_price),
                "unit_discount": money_str(line.unit_discount),
                "gross": money_str(line.quantity * Decimal(line.unit_price)),
                "line_total": money_str(line.line_total),
                "lot_reference": line.lot_reference or "",
            }
            for line in invoice.lines
        ],
        "totals": totals.to_dict(),
    }


def render_invoice(invoice: Invoice, options: PrintOptions) -> str:
    doc = build_print_document(invoice, options)
    return render_template(f"invoices/{options.layout}.html", doc=doc, options=options)
