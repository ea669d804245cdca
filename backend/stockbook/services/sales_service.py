# Overview: Service-layer operations for sales; the atomic sale transaction.

"""
Sale Transaction Invariants (authoritative)

One sale request is one database transaction:

    STARTED -> CUSTOMER_RESOLVED -> ITEMS_ALLOCATED -> NUMBERED -> PERSISTED -> COMMITTED
                        any non-terminal state -> ROLLED_BACK

- Customer resolution (including a new walk-in) is part of the transaction.
- Every line is allocated before anything is debited. One failing line
  aborts the whole sale.
- The invoice number is minted inside the transaction. The header insert
  runs in a SAVEPOINT so a unique-constraint collision can be retried with
  a fresh number without losing the rest of the work.
- Lot debits are conditional updates; a debit that no longer fits at write
  time raises InsufficientStock and rolls everything back.
- Product.quantity_on_hand is adjusted once per product by the total base
  units sold.
- One InvoiceLine per requested line, not per lot.
- A rolled back attempt leaves no rows behind; the WARNING log line is its
  only trace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Invoice, InvoiceLine, Product
from ..number_utils import ZERO, money_str, to_decimal
from ..time_utils import parse_iso_date, today
from .allocation_service import allocate, resolve_lot_reference, Allocation
from .concurrency import begin_write_transaction, run_with_retry
from .customer_service import CustomerInfo, CustomerError, resolve_customer
from .errors import (
    InsufficientStock,
    InvalidLineItem,
    NumberingConflict,
    PersistenceFailure,
    SaleError,
)
from .ledger_service import append_ledger_event, EVENT_LOT_DEBITED, EVENT_SALE_POSTED
from .lot_service import adjust_product_quantity, debit, debit_specific, LotNotFoundError
from .numbering_service import next_invoice_number
from .totals_service import compute_totals, InvoiceTotals, LineAmounts

logger = logging.getLogger(__name__)


class InvoiceNotFoundError(Exception):
    """Raised when an invoice is not found."""
    pass


class SaleState(str, Enum):
    STARTED = "STARTED"
    CUSTOMER_RESOLVED = "CUSTOMER_RESOLVED"
    ITEMS_ALLOCATED = "ITEMS_ALLOCATED"
    NUMBERED = "NUMBERED"
    PERSISTED = "PERSISTED"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"


_NEXT_STATE = {
    SaleState.STARTED: SaleState.CUSTOMER_RESOLVED,
    SaleState.CUSTOMER_RESOLVED: SaleState.ITEMS_ALLOCATED,
    SaleState.ITEMS_ALLOCATED: SaleState.NUMBERED,
    SaleState.NUMBERED: SaleState.PERSISTED,
    SaleState.PERSISTED: SaleState.COMMITTED,
}

TERMINAL_STATES = {SaleState.COMMITTED, SaleState.ROLLED_BACK}


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _line_amount(payload: dict, key: str, line_number: int, sku: str | None) -> Decimal | None:
    value = payload.get(key)
    if value is None:
        return None
    try:
        amount = to_decimal(value, field=key)
    except ValueError as e:
        raise InvalidLineItem(str(e), line_number=line_number, sku=sku)
    if amount < 0:
        raise InvalidLineItem(f"{key} cannot be negative", line_number=line_number, sku=sku)
    return amount


@dataclass(frozen=True)
class SaleLineRequest:
    """
    One requested line. quantity is in packs; unit_price and unit_discount
    are per pack and absolute (percentages are converted by the client).
    unit_price None means "use the product list price".
    """
    line_number: int
    sku: str
    quantity: int
    unit_price: Decimal | None = None
    unit_discount: Decimal | None = None
    pack_size: str | None = None
    lot_ref: object = None

    @classmethod
    def from_payload(cls, payload: dict, line_number: int) -> "SaleLineRequest":
        if not isinstance(payload, dict):
            raise InvalidLineItem("Line item must be an object", line_number=line_number)

        sku = _optional_str(payload, "sku")
        if not sku:
            raise InvalidLineItem("sku is required", line_number=line_number)

        quantity = payload.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidLineItem("quantity must be an integer", line_number=line_number, sku=sku)
        if quantity < 0:
            raise InvalidLineItem("quantity cannot be negative", line_number=line_number, sku=sku)

        lot_ref = payload.get("lot_id")
        if lot_ref is None:
            lot_ref = payload.get("lot_ref")
        if lot_ref is not None and quantity <= 0:
            raise InvalidLineItem("Pinned lot requires a positive quantity", line_number=line_number, sku=sku)

        return cls(
            line_number=line_number,
            sku=sku,
            quantity=quantity,
            unit_price=_line_amount(payload, "unit_price", line_number, sku),
            unit_discount=_line_amount(payload, "unit_discount", line_number, sku),
            pack_size=_optional_str(payload, "pack_size"),
            lot_ref=lot_ref,
        )


@dataclass(frozen=True)
class SaleRequest:
    customer: CustomerInfo
    lines: tuple[SaleLineRequest, ...]
    invoice_date: date
    tax_rate: Decimal | None = None
    tax_amount: Decimal | None = None
    payment_type: str | None = None
    route_rep_code: str | None = None
    sales_rep_id: int | None = None
    sales_rep_name: str | None = None
    batch_reference: str | None = None

    @classmethod
    def from_payload(cls, payload: dict, *, default_tax_rate=None) -> "SaleRequest":
        """
        Build a request from a JSON body.

        Raises:
            SaleError: malformed header (customer, date, tax)
            InvalidLineItem: malformed line
        """
        if not isinstance(payload, dict):
            raise SaleError("Request body must be a JSON object")

        try:
            customer = CustomerInfo.from_payload(payload.get("customer"))
        except CustomerError as e:
            raise SaleError(str(e), details={"field": "customer"})

        raw_lines = payload.get("items") or payload.get("lines") or []
        if not isinstance(raw_lines, list) or not raw_lines:
            raise InvalidLineItem("Sale must contain at least one line item")
        lines = tuple(SaleLineRequest.from_payload(item, i) for i, item in enumerate(raw_lines, start=1))

        try:
            invoice_date = parse_iso_date(payload.get("invoice_date")) or today()
        except ValueError:
            raise SaleError("invoice_date must be a YYYY-MM-DD date", details={"field": "invoice_date"})

        tax_rate = tax_amount = None
        try:
            if payload.get("tax_rate") is not None:
                tax_rate = to_decimal(payload["tax_rate"], field="tax_rate")
            if payload.get("tax_amount") is not None:
                tax_amount = to_decimal(payload["tax_amount"], field="tax_amount")
        except ValueError as e:
            raise SaleError(str(e), details={"field": "tax"})
        if tax_rate is not None and tax_amount is not None:
            raise SaleError("Provide either tax_rate or tax_amount, not both", details={"field": "tax"})
        if tax_rate is None and tax_amount is None and default_tax_rate is not None:
            tax_rate = to_decimal(default_tax_rate, field="DEFAULT_TAX_RATE")
        if tax_rate is not None and not (ZERO <= tax_rate <= 1):
            raise SaleError("tax_rate must be a fraction between 0 and 1", details={"field": "tax_rate"})
        if tax_amount is not None and tax_amount < 0:
            raise SaleError("tax_amount cannot be negative", details={"field": "tax_amount"})

        sales_rep_id = payload.get("sales_rep_id")
        if sales_rep_id is not None:
            try:
                sales_rep_id = int(sales_rep_id)
            except (TypeError, ValueError):
                raise SaleError("sales_rep_id must be an integer", details={"field": "sales_rep_id"})

        return cls(
            customer=customer,
            lines=lines,
            invoice_date=invoice_date,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            payment_type=_optional_str(payload, "payment_type"),
            route_rep_code=_optional_str(payload, "route_rep_code"),
            sales_rep_id=sales_rep_id,
            sales_rep_name=_optional_str(payload, "sales_rep_name"),
            batch_reference=_optional_str(payload, "batch_reference"),
        )


@dataclass(frozen=True)
class PlannedLine:
    request: SaleLineRequest
    product: Product
    unit_price: Decimal
    unit_discount: Decimal
    allocation: Allocation

    @property
    def amounts(self) -> LineAmounts:
        return LineAmounts(self.request.quantity, self.unit_price, self.unit_discount)


@dataclass(frozen=True)
class SaleResult:
    invoice_id: int
    invoice_number: str
    fiscal_code: str
    customer_id: int
    customer_created: bool
    totals: InvoiceTotals
    line_count: int

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice_number,
            "fiscal_code": self.fiscal_code,
            "customer_id": self.customer_id,
            "customer_created": self.customer_created,
            "line_count": self.line_count,
            "totals": self.totals.to_dict(),
        }


@dataclass
class SaleAttempt:
    """State tracker for one attempt of a sale transaction."""
    request: SaleRequest
    state: SaleState = SaleState.STARTED
    history: list = field(default_factory=lambda: [SaleState.STARTED])
    invoice_number: str | None = None

    def advance(self, to_state: SaleState) -> None:
        expected = _NEXT_STATE.get(self.state)
        if to_state != expected:
            raise RuntimeError(f"Illegal sale transition {self.state.value} -> {to_state.value}")
        logger.debug(
            "Sale %s: %s -> %s",
            self.invoice_number or self.request.customer.name,
            self.state.value,
            to_state.value,
        )
        self.state = to_state
        self.history.append(to_state)

    def roll_back(self, exc: BaseException) -> None:
        if self.state in TERMINAL_STATES:
            return
        logger.warning(
            "Sale rolled back at %s (customer=%r, invoice=%s): %s %s",
            self.state.value,
            self.request.customer.name,
            self.invoice_number,
            getattr(exc, "code", type(exc).__name__),
            exc,
        )
        self.state = SaleState.ROLLED_BACK
        self.history.append(SaleState.ROLLED_BACK)


def _plan_lines(request: SaleRequest) -> list[PlannedLine]:
    """Allocate every line against the ledger; nothing is written here."""
    reserved: dict[int, int] = {}
    planned = []
    products: dict[str, Product] = {}

    for line in request.lines:
        product = products.get(line.sku)
        if product is None:
            product = db.session.query(Product).filter_by(sku=line.sku).first()
            if product is None:
                raise InvalidLineItem(f"Unknown SKU: {line.sku}", line_number=line.line_number, sku=line.sku)
            if not product.is_active:
                raise InvalidLineItem(f"Product {line.sku} is inactive", line_number=line.line_number, sku=line.sku)
            products[line.sku] = product

        unit_price = line.unit_price if line.unit_price is not None else Decimal(product.price or 0)
        unit_discount = line.unit_discount if line.unit_discount is not None else ZERO
        if unit_discount > unit_price:
            raise InvalidLineItem(
                "unit_discount cannot exceed unit_price",
                line_number=line.line_number,
                sku=line.sku,
            )

        pinned = None
        if line.lot_ref is not None:
            pinned = resolve_lot_reference(line.sku, line.lot_ref, line_number=line.line_number)

        allocation = allocate(
            line.sku,
            line.quantity,
            line.pack_size,
            pinned_lot=pinned,
            reserved=reserved,
            line_number=line.line_number,
        )
        planned.append(PlannedLine(line, product, unit_price, unit_discount, allocation))

    return planned


def _insert_invoice_header(request: SaleRequest, customer, totals: InvoiceTotals, user_id: int | None) -> Invoice:
    """
    Mint the next invoice number and insert the header under a SAVEPOINT.

    A collision on uq_invoices_invoice_number rolls back to the savepoint
    only; the number is recomputed, up to NUMBERING_MAX_ATTEMPTS times.
    """
    max_attempts = current_app.config.get("NUMBERING_MAX_ATTEMPTS", 3)
    tried = []
    for attempt in range(1, max_attempts + 1):
        fiscal, number = next_invoice_number(request.invoice_date)
        tried.append(number)
        invoice = Invoice(
            invoice_number=number,
            fiscal_code=fiscal,
            invoice_date=request.invoice_date,
            customer_id=customer.id,
            customer_name=customer.name,
            customer_address=customer.address,
            customer_vat=customer.vat_number,
            payment_type=request.payment_type,
            route_rep_code=request.route_rep_code,
            sales_rep_id=request.sales_rep_id if request.sales_rep_id is not None else customer.sales_rep_id,
            sales_rep_name=request.sales_rep_name,
            batch_reference=request.batch_reference,
            sub_total=totals.sub_total,
            line_discount_total=totals.line_discount_total,
            tax_rate=totals.tax_rate,
            tax_amount=totals.tax_amount,
            grand_total=totals.grand_total,
            status="POSTED",
            created_by_user_id=user_id,
        )
        try:
            with db.session.begin_nested():
                db.session.add(invoice)
        except IntegrityError:
            logger.info("Invoice number %s already taken (attempt %d/%d)", number, attempt, max_attempts)
            continue
        return invoice

    raise NumberingConflict(
        f"Could not assign a unique invoice number after {max_attempts} attempts",
        details={"tried": tried},
    )


def _persist(invoice: Invoice, planned: list[PlannedLine], totals: InvoiceTotals, user_id: int | None) -> None:
    sold_per_product: dict[int, int] = {}

    for item, line_total in zip(planned, totals.line_totals):
        line = item.request
        allocation = item.allocation
        for d in allocation.debits:
            try:
                if allocation.pinned:
                    debit_specific(d.lot_id, d.base_units, sku=line.sku)
                else:
                    debit(d.lot_id, d.base_units, sku=line.sku)
            except LotNotFoundError:
                raise InsufficientStock(line.sku, d.base_units, 0, lot_id=d.lot_id)
            append_ledger_event(
                event_type=EVENT_LOT_DEBITED,
                entity_type="invoice",
                entity_id=invoice.id,
                sku=line.sku,
                lot_id=d.lot_id,
                invoice_id=invoice.id,
                quantity_delta=-d.base_units,
                actor_user_id=user_id,
                note=f"Sale {invoice.invoice_number} line {line.line_number}",
                payload={
                    "invoice_number": invoice.invoice_number,
                    "line_number": line.line_number,
                    "base_units": d.base_units,
                },
            )

        db.session.add(InvoiceLine(
            invoice_id=invoice.id,
            line_number=line.line_number,
            product_id=item.product.id,
            sku=line.sku,
            product_name=item.product.name,
            pack_size=line.pack_size or "",
            units_per_pack=allocation.units_per_pack,
            quantity=line.quantity,
            base_units=allocation.base_units,
            unit_price=item.unit_price,
            unit_discount=item.unit_discount,
            line_total=line_total,
            lot_reference=allocation.lot_reference,
        ))
        if allocation.base_units:
            sold_per_product[item.product.id] = sold_per_product.get(item.product.id, 0) + allocation.base_units

    for product_id, units in sold_per_product.items():
        adjust_product_quantity(product_id, -units)

    append_ledger_event(
        event_type=EVENT_SALE_POSTED,
        entity_type="invoice",
        entity_id=invoice.id,
        invoice_id=invoice.id,
        actor_user_id=user_id,
        note=f"Sale {invoice.invoice_number} posted",
        payload={
            "invoice_number": invoice.invoice_number,
            "lines": len(planned),
            "grand_total": money_str(totals.grand_total),
        },
    )
    db.session.flush()


def _create_sale_once(request: SaleRequest, user_id: int | None) -> SaleResult:
    attempt = SaleAttempt(request)
    try:
        begin_write_transaction()

        customer, created = resolve_customer(request.customer)
        attempt.advance(SaleState.CUSTOMER_RESOLVED)

        planned = _plan_lines(request)
        attempt.advance(SaleState.ITEMS_ALLOCATED)

        totals = compute_totals(
            (item.amounts for item in planned),
            tax_rate=request.tax_rate,
            tax_amount=request.tax_amount,
        )
        invoice = _insert_invoice_header(request, customer, totals, user_id)
        attempt.invoice_number = invoice.invoice_number
        attempt.advance(SaleState.NUMBERED)

        _persist(invoice, planned, totals, user_id)
        attempt.advance(SaleState.PERSISTED)

        db.session.commit()
        attempt.advance(SaleState.COMMITTED)
    except Exception as exc:
        db.session.rollback()
        attempt.roll_back(exc)
        raise

    logger.info(
        "Sale %s committed: %d line(s), grand total %s",
        invoice.invoice_number,
        len(planned),
        money_str(totals.grand_total),
    )
    return SaleResult(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        fiscal_code=invoice.fiscal_code,
        customer_id=customer.id,
        customer_created=created,
        totals=totals,
        line_count=len(planned),
    )


def create_sale(request: SaleRequest, *, user_id: int | None = None) -> SaleResult:
    """
    Run a sale as one all-or-nothing transaction.

    Lock and deadlock errors retry the whole attempt (SALE_RETRY_ATTEMPTS).

    Raises:
        InsufficientStock / InvalidLineItem: the request must change (4xx)
        NumberingConflict / PersistenceFailure: retry later (5xx)
    """
    attempts = current_app.config.get("SALE_RETRY_ATTEMPTS", 3)
    try:
        return run_with_retry(lambda: _create_sale_once(request, user_id), attempts=attempts)
    except SaleError:
        raise
    except (OperationalError, StaleDataError) as exc:
        raise PersistenceFailure(
            "Sale could not be completed due to concurrent activity; please retry",
            details={"cause": type(exc).__name__},
        ) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceFailure(
            "Sale could not be saved",
            details={"cause": type(exc).__name__},
        ) from exc


def get_invoice(invoice_number: str) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(invoice_number=invoice_number).first()
    if invoice is None:
        raise InvoiceNotFoundError(f"Invoice {invoice_number} not found")
    return invoice


def list_invoices(
    *,
    fiscal: str | None = None,
    customer_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[dict]:
    """Invoice headers with their line count, newest first."""
    item_count = (
        db.session.query(InvoiceLine.invoice_id, func.count(InvoiceLine.id).label("item_count"))
        .group_by(InvoiceLine.invoice_id)
        .subquery()
    )
    query = (
        db.session.query(Invoice, func.coalesce(item_count.c.item_count, 0))
        .outerjoin(item_count, item_count.c.invoice_id == Invoice.id)
    )
    if fiscal:
        query = query.filter(Invoice.fiscal_code == fiscal)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)

    rows = (
        query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    results = []
    for invoice, count in rows:
        data = invoice.to_dict()
        data["item_count"] = int(count)
        results.append(data)
    return results
