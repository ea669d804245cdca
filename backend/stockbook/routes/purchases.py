# Overview: Flask API routes for purchase receipts; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import purchase_service
from ..services.purchase_service import PurchaseError
from ..decorators import require_auth, require_permission

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.get("")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def list_purchases_route():
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    receipts = purchase_service.list_purchases(limit=limit)
    return jsonify({"items": [r.to_dict() for r in receipts], "count": len(receipts)}), 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def get_purchase_route(purchase_id: int):
    receipt = purchase_service.get_purchase(purchase_id)
    if receipt is None:
        return jsonify({"error": "Purchase not found"}), 404
    return jsonify({"purchase": receipt.to_dict(include_lots=True)}), 200


@purchases_bp.post("")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def create_purchase_route():
    """
    Record a purchase receipt; each item becomes a lot (source=PURCHASE).

    Body: ref_no?, supplier_id? | supplier?, batch_number,
    items: [{sku, pack_size, quantity (packs), unit_cost, unit_price, mfg_date?, expiry_date?}]
    """
    payload = request.get_json(silent=True) or {}
    try:
        receipt = purchase_service.receive_purchase(payload, user_id=g.current_user.id)
    except PurchaseError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record purchase")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"purchase": receipt.to_dict(include_lots=True)}), 201
