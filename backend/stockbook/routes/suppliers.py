# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import supplier_service
from ..services.supplier_service import SupplierError, SupplierNotFoundError
from ..decorators import require_auth, require_permission

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers(
        include_inactive=request.args.get("include_inactive") in ("1", "true"),
    )
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}), 200


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.create_supplier(
            name=payload.get("name"),
            phone=payload.get("phone"),
            email=payload.get("email"),
            address=payload.get("address"),
        )
    except SupplierError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"supplier": supplier.to_dict()}), 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.update_supplier(supplier_id, payload)
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SupplierError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"supplier": supplier.to_dict()}), 200
