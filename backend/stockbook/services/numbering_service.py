# Overview: Service-layer operations for invoice numbering; fiscal-year scoped sequences.

from __future__ import annotations

import re
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import Invoice


def fiscal_code(ref_date: date, start_month: int = 4) -> str:
    """
    Fiscal year code for a date: last two digits of the start year and of
    the following year. With an April start, 2025-04-01..2026-03-31 -> "2526".
    """
    start_year = ref_date.year if ref_date.month >= start_month else ref_date.year - 1
    return f"{start_year % 100:02d}{(start_year + 1) % 100:02d}"


def parse_sequence(invoice_number: str, fiscal: str) -> int | None:
    """
    Sequence suffix of an invoice number issued under this fiscal code.

    Legacy prefixes are tolerated: "2526-07", "INV-2526-41" and "LH/2526-3"
    all match fiscal "2526". Returns None for numbers of other fiscal years.
    """
    m = re.search(rf"(?:^|\D){re.escape(fiscal)}-(\d+)$", invoice_number or "")
    if not m:
        return None
    return int(m.group(1))


def current_max_sequence(fiscal: str) -> int:
    """Highest sequence already used for this fiscal code (0 if none)."""
    rows = (
        db.session.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"%{fiscal}-%"))
        .all()
    )
    best = 0
    for (number,) in rows:
        seq = parse_sequence(number, fiscal)
        if seq is not None and seq > best:
            best = seq
    return best


def format_invoice_number(fiscal: str, sequence: int, min_digits: int = 2) -> str:
    return f"{fiscal}-{sequence:0{min_digits}d}"


def next_invoice_number(ref_date: date) -> tuple[str, str]:
    """
    Next invoice number for the fiscal year containing ref_date.

    Returns (fiscal_code, invoice_number). Must run inside the sale
    transaction; the unique constraint on invoices.invoice_number catches
    a concurrent sale that read the same maximum.
    """
    start_month = current_app.config.get("FISCAL_YEAR_START_MONTH", 4)
    min_digits = current_app.config.get("INVOICE_SEQUENCE_MIN_DIGITS", 2)

    fiscal = fiscal_code(ref_date, start_month)
    sequence = current_max_sequence(fiscal) + 1
    return fiscal, format_invoice_number(fiscal, sequence, min_digits)
