# backend/stockbook/services/products_service.py
"""
Products Service

SKU is unique and immutable once issued: lots, invoice lines and ledger
events carry it as a denormalized key. update_product() therefore never
accepts a sku change.

quantity_on_hand is never written here; it moves only with lot credits
and debits (lot_service, sales_service).
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import ConflictError

PRODUCT_MUTABLE_FIELDS = {
    "name", "category", "generic_name", "brand",
    "price", "discount", "cost", "is_active",
}


class ProductError(ValueError):
    """Raised when a product change is not allowed."""
    pass


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product | None:
    return db.session.query(Product).filter(Product.id == product_id).first()


def list_products(
    *,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        base_query = base_query.filter(
            db.or_(
                Product.name.ilike(term),
                Product.sku.ilike(term),
                Product.generic_name.ilike(term),
            )
        )
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists
    """
    sku = patch.get("sku")
    if sku is None:
        raise ValueError("sku is required")

    existing = db.session.query(Product).filter(Product.sku == sku).first()
    if existing:
        raise ConflictError("SKU already exists.")

    p = Product(sku=sku, quantity_on_hand=0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict | None:
    """
    Update a product. Returns None if not found.

    Raises:
        ProductError: attempt to change the SKU
    """
    p = get_product(product_id)
    if not p:
        return None

    if "sku" in patch and patch["sku"] != p.sku:
        raise ProductError("SKU cannot be changed once issued")

    apply_product_patch(p, patch)
    db.session.commit()
    return p.to_dict()


def delete_product(*, product_id: int) -> bool:
    """
    Soft-delete a product (is_active=False). Lots and invoices keep
    referencing it. Returns False if not found.
    """
    p = get_product(product_id)
    if not p:
        return False

    if p.is_active:
        p.is_active = False

    db.session.commit()
    return True
