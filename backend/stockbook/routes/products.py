# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockbook/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request

from ..services.products_service import (
    list_products as list_products_service,
    create_product,
    update_product,
    delete_product,
    get_product,
    ProductError,
)
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "category", "generic_name", "brand",
        "price", "discount", "cost", "is_active",
    },
    required_on_create={"sku", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List products with optional pagination.

    Query params:
    - q: str (optional) - search name, SKU or generic name
    - include_inactive: 1 to include deactivated products
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return list_products_service(
        search=request.args.get("q"),
        include_inactive=request.args.get("include_inactive") in ("1", "true"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """Create a new product. quantity_on_hand starts at 0 and moves only with lots."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValueError as e:
        return {"error": str(e)}, 400

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """Update a product. The SKU cannot change."""
    payload = request.get_json(silent=True) or {}

    existing = get_product(product_id)
    if existing is None:
        return {"error": "Product not found"}, 404

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        if "discount" not in patch and "price" in patch:
            patch_for_rules = {**patch, "discount": existing.discount}
        else:
            patch_for_rules = patch
        enforce_rules_product(patch_for_rules, current_price=existing.price)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = update_product(product_id=product_id, patch=patch)
    except ProductError as e:
        return {"error": str(e)}, 409

    if not updated:
        return {"error": "Product not found"}, 404

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Deactivate a product (soft delete)."""
    deleted = delete_product(product_id=product_id)
    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200
