# Overview: Pure invoice totals computation; no database access.

"""
Totals Rules (authoritative)

- line_total          = quantity * (unit_price - unit_discount)
- sub_total           = sum(quantity * unit_price)          (gross)
- line_discount_total = sum(quantity * unit_discount)
- tax_amount          = (sub_total - line_discount_total) * tax_rate,
                        unless an explicit tax amount is supplied
- grand_total         = sub_total - line_discount_total + tax_amount

All values are Decimal and unrounded. Rounding to cents happens only when
presenting (number_utils.money).

A final bill-level discount is applied to the printed document only
(printed_totals); it never changes the stored invoice.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..number_utils import ZERO, money_str


@dataclass(frozen=True)
class LineAmounts:
    quantity: int
    unit_price: Decimal
    unit_discount: Decimal = ZERO

    @property
    def gross(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def discount(self) -> Decimal:
        return self.quantity * self.unit_discount

    @property
    def line_total(self) -> Decimal:
        return self.quantity * (self.unit_price - self.unit_discount)


@dataclass(frozen=True)
class InvoiceTotals:
    sub_total: Decimal
    line_discount_total: Decimal
    tax_rate: Decimal | None
    tax_amount: Decimal
    grand_total: Decimal
    line_totals: tuple[Decimal, ...] = ()

    @property
    def net_total(self) -> Decimal:
        return self.sub_total - self.line_discount_total

    def to_dict(self) -> dict:
        return {
            "sub_total": money_str(self.sub_total),
            "line_discount_total": money_str(self.line_discount_total),
            "tax_rate": str(self.tax_rate) if self.tax_rate is not None else None,
            "tax_amount": money_str(self.tax_amount),
            "grand_total": money_str(self.grand_total),
        }


def compute_totals(
    lines: Iterable[LineAmounts],
    *,
    tax_rate: Decimal | None = None,
    tax_amount: Decimal | None = None,
) -> InvoiceTotals:
    """
    Compute invoice totals from line amounts.

    Exactly one of tax_rate / tax_amount is expected; with neither, no tax
    is charged.
    """
    lines = list(lines)
    sub_total = sum((line.gross for line in lines), ZERO)
    line_discount_total = sum((line.discount for line in lines), ZERO)

    if tax_amount is None:
        tax_amount = (sub_total - line_discount_total) * tax_rate if tax_rate is not None else ZERO
    else:
        tax_rate = None

    return InvoiceTotals(
        sub_total=sub_total,
        line_discount_total=line_discount_total,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        grand_total=sub_total - line_discount_total + tax_amount,
        line_totals=tuple(line.line_total for line in lines),
    )


@dataclass(frozen=True)
class PrintedTotals:
    """Figures shown on a printed invoice; may diverge from the stored total."""
    sub_total: Decimal
    line_discount_total: Decimal
    net_total: Decimal
    final_discount: Decimal
    tax_amount: Decimal
    stored_grand_total: Decimal
    printed_total: Decimal

    def to_dict(self) -> dict:
        return {
            "sub_total": money_str(self.sub_total),
            "line_discount_total": money_str(self.line_discount_total),
            "net_total": money_str(self.net_total),
            "final_discount": money_str(self.final_discount),
            "tax_amount": money_str(self.tax_amount),
            "stored_grand_total": money_str(self.stored_grand_total),
            "printed_total": money_str(self.printed_total),
        }


def printed_totals(invoice, final_discount: Decimal = ZERO) -> PrintedTotals:
    """
    Totals for the printed document: stored net minus the final discount,
    plus the stored tax. The tax is not recomputed on the discounted net.
    """
    sub_total = Decimal(invoice.sub_total or 0)
    line_discount_total = Decimal(invoice.line_discount_total or 0)
    tax_amount = Decimal(invoice.tax_amount or 0)
    net_total = sub_total - line_discount_total
    return PrintedTotals(
        sub_total=sub_total,
        line_discount_total=line_discount_total,
        net_total=net_total,
        final_discount=final_discount,
        tax_amount=tax_amount,
        stored_grand_total=Decimal(invoice.grand_total or 0),
        printed_total=net_total - final_discount + tax_amount,
    )
