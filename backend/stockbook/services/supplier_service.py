# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers are referenced by purchase receipts. The receipt also stores the
supplier name as a snapshot, so renaming a supplier never rewrites
history. Suppliers are deactivated, never deleted.
"""

from ..extensions import db
from ..models import Supplier


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found."""
    pass


class SupplierError(Exception):
    """Raised when supplier data fails validation."""
    pass


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def list_suppliers(*, include_inactive: bool = False) -> list[Supplier]:
    query = db.session.query(Supplier)
    if not include_inactive:
        query = query.filter(Supplier.is_active.is_(True))
    return query.order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id).first()
    if not supplier:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def create_supplier(
    *,
    name: str,
    phone: str | None = None,
    email: str | None = None,
    address: str | None = None,
) -> Supplier:
    """
    Create a new supplier.

    Raises:
        SupplierError: If the name is missing or already used by an active supplier
    """
    name = _clean(name)
    if not name:
        raise SupplierError("Supplier name is required")

    existing = db.session.query(Supplier).filter(
        Supplier.name == name,
        Supplier.is_active.is_(True),
    ).first()
    if existing:
        raise SupplierError(f"Supplier '{name}' already exists")

    supplier = Supplier(
        name=name,
        phone=_clean(phone),
        email=_clean(email),
        address=_clean(address),
        is_active=True,
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, payload: dict) -> Supplier:
    """
    Update an existing supplier. Only keys present in payload change.

    Raises:
        SupplierNotFoundError: If supplier not found
        SupplierError: If validation fails
    """
    supplier = get_supplier(supplier_id)

    if "name" in payload:
        name = _clean(payload.get("name"))
        if not name:
            raise SupplierError("Supplier name cannot be empty")
        duplicate = db.session.query(Supplier).filter(
            Supplier.name == name,
            Supplier.id != supplier_id,
            Supplier.is_active.is_(True),
        ).first()
        if duplicate:
            raise SupplierError(f"Supplier '{name}' already exists")
        supplier.name = name

    for field in ("phone", "email", "address"):
        if field in payload:
            setattr(supplier, field, _clean(payload.get(field)))

    if "is_active" in payload:
        supplier.is_active = bool(payload.get("is_active"))

    db.session.commit()
    return supplier
