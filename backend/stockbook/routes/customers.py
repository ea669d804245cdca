# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import customer_service
from ..services.customer_service import CustomerError, CustomerNotFoundError
from ..decorators import require_auth, require_permission

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("CREATE_SALE")
def list_customers_route():
    """
    Directory customers (for the sale screen lookup).

    Query params: q (name search), include_walk_in=1, include_inactive=1
    """
    customers = customer_service.list_customers(
        include_walk_in=request.args.get("include_walk_in") in ("1", "true"),
        include_inactive=request.args.get("include_inactive") in ("1", "true"),
        search=request.args.get("q"),
    )
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(payload)
    except CustomerError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(customer_id, payload)
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CustomerError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def delete_customer_route(customer_id: int):
    """Deactivate; invoices keep pointing at the record."""
    try:
        customer_service.deactivate_customer(customer_id)
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"ok": True}), 200
