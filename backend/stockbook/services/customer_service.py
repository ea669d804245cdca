# Overview: Service-layer operations for customers; directory management and walk-in resolution.

"""
Customer Service

Two kinds of customer share one table:
- directory customers (is_directory=True), managed explicitly
- walk-in customers (is_directory=False), materialized by a sale

resolve_customer() is called inside the sale transaction and never
commits: a new walk-in disappears again if the sale rolls back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..extensions import db
from ..models import Customer

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = ("phone", "email", "address", "vat_number", "route", "sales_rep_id")


class CustomerNotFoundError(Exception):
    """Raised when a customer is not found."""
    pass


class CustomerError(Exception):
    """Raised when customer data fails validation."""
    pass


@dataclass(frozen=True)
class CustomerInfo:
    """Customer descriptor carried by a sale request."""
    name: str
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    vat_number: str | None = None
    route: str | None = None
    sales_rep_id: int | None = None

    @classmethod
    def from_payload(cls, payload) -> "CustomerInfo":
        if isinstance(payload, str):
            payload = {"name": payload}
        if not isinstance(payload, dict):
            raise CustomerError("customer must be an object")
        name = payload.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            raise CustomerError("Customer name is required")

        def _clean(key):
            value = payload.get(key)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        rep = payload.get("sales_rep_id")
        if rep is not None:
            try:
                rep = int(rep)
            except (TypeError, ValueError):
                raise CustomerError("sales_rep_id must be an integer")

        return cls(
            name=name,
            phone=_clean("phone"),
            email=_clean("email"),
            address=_clean("address"),
            vat_number=_clean("vat_number") or _clean("vat"),
            route=_clean("route"),
            sales_rep_id=rep,
        )


def _refresh(customer: Customer, info: CustomerInfo) -> None:
    for field in _MUTABLE_FIELDS:
        value = getattr(info, field)
        if value is not None and getattr(customer, field) != value:
            setattr(customer, field, value)


def find_by_name(name: str, *, is_directory: bool) -> Customer | None:
    return (
        db.session.query(Customer)
        .filter(
            Customer.name == name,
            Customer.is_directory.is_(is_directory),
            Customer.is_active.is_(True),
        )
        .order_by(Customer.id.asc())
        .first()
    )


def resolve_customer(info: CustomerInfo) -> tuple[Customer, bool]:
    """
    Customer for a sale, matched by exact name.

    Order: directory customer -> existing walk-in -> new walk-in.
    A match has its contact fields refreshed from the request.

    Returns (customer, created). Flushes, does not commit.
    """
    customer = find_by_name(info.name, is_directory=True)
    if customer is None:
        customer = find_by_name(info.name, is_directory=False)

    if customer is not None:
        _refresh(customer, info)
        db.session.flush()
        return customer, False

    customer = Customer(name=info.name, is_directory=False, is_active=True)
    _refresh(customer, info)
    db.session.add(customer)
    db.session.flush()
    logger.debug("Created walk-in customer %s (%s)", customer.id, customer.name)
    return customer, True


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers(*, include_walk_in: bool = False, include_inactive: bool = False, search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if not include_walk_in:
        query = query.filter(Customer.is_directory.is_(True))
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        query = query.filter(Customer.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(payload: dict) -> Customer:
    """
    Create a directory customer. A walk-in customer with the same name is
    promoted to the directory instead of being duplicated.

    Raises:
        CustomerError: missing name or a directory customer with that name exists
    """
    info = CustomerInfo.from_payload(payload)
    if find_by_name(info.name, is_directory=True) is not None:
        raise CustomerError(f"Customer '{info.name}' already exists")

    customer = find_by_name(info.name, is_directory=False)
    if customer is None:
        customer = Customer(name=info.name, is_active=True)
        db.session.add(customer)
    customer.is_directory = True
    _refresh(customer, info)

    db.session.commit()
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    customer = get_customer(customer_id)
    if not customer.is_active:
        raise CustomerError("Cannot update inactive customer")

    if "name" in payload:
        name = payload.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            raise CustomerError("Customer name cannot be empty")
        if name != customer.name and customer.is_directory and find_by_name(name, is_directory=True):
            raise CustomerError(f"Customer '{name}' already exists")
        customer.name = name

    for field in _MUTABLE_FIELDS:
        if field in payload:
            value = payload.get(field)
            if field == "sales_rep_id" and value is not None:
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    raise CustomerError("sales_rep_id must be an integer")
            elif isinstance(value, str):
                value = value.strip() or None
            setattr(customer, field, value)

    db.session.commit()
    return customer


def deactivate_customer(customer_id: int) -> Customer:
    """Soft delete; invoices keep referencing the row."""
    customer = get_customer(customer_id)
    customer.is_active = False
    db.session.commit()
    return customer
