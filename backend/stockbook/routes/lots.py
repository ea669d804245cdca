# Overview: Flask API routes for lot operations; parses input and returns JSON responses.

# backend/stockbook/routes/lots.py
"""
Lot ledger routes.

- Read operations require VIEW_INVENTORY permission
- Receipts, credits and retirement require RECEIVE_INVENTORY permission
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..services import lot_service
from ..services.ledger_service import list_events
from ..services.lot_service import LotDraft, LotNotFoundError, LotValidationError
from ..decorators import require_auth, require_permission

lots_bp = Blueprint("lots", __name__, url_prefix="/api/lots")


@lots_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_lots_route():
    """
    Lots of a SKU in allocation (FIFO-by-expiry) order.

    Query params:
    - sku: str (required)
    - all: 1 to include exhausted and retired lots (audit view)
    """
    sku = (request.args.get("sku") or "").strip()
    if not sku:
        return jsonify({"error": "sku is required"}), 400

    if request.args.get("all") in ("1", "true"):
        lots = lot_service.list_all_lots_for_sku(sku)
    else:
        lots = lot_service.list_lots_for_sku(sku)

    return jsonify({
        "sku": sku,
        "items": [lot.to_dict() for lot in lots],
        "count": len(lots),
    }), 200


@lots_bp.get("/<int:lot_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_lot_route(lot_id: int):
    """Lot with its ledger events."""
    try:
        lot = lot_service.get_lot(lot_id)
    except LotNotFoundError as e:
        return jsonify({"error": str(e)}), 404

    data = lot.to_dict()
    data["events"] = [ev.to_dict() for ev in list_events(lot_id=lot_id)]
    return jsonify({"lot": data}), 200


@lots_bp.post("")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def create_lot_route():
    """
    Direct batch receipt (source=BATCH).

    Body: sku, batch_number, quantity (packs), pack_size, unit_price,
    optional unit_cost, mfg_date, expiry_date.
    """
    payload = request.get_json(silent=True) or {}
    try:
        draft = LotDraft.from_batch(payload)
        lot = lot_service.create_lot(draft, actor_user_id=g.current_user.id)
    except LotValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"lot": lot.to_dict()}), 201


@lots_bp.post("/<int:lot_id>/credit")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def credit_lot_route(lot_id: int):
    """Body: base_units (int > 0), optional note."""
    payload = request.get_json(silent=True) or {}
    try:
        lot = lot_service.credit(
            lot_id,
            payload.get("base_units"),
            actor_user_id=g.current_user.id,
            note=payload.get("note"),
        )
    except LotNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except LotValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"lot": lot.to_dict()}), 200


@lots_bp.delete("/<int:lot_id>")
@require_auth
@require_permission("RECEIVE_INVENTORY")
def delete_lot_route(lot_id: int):
    """Hard delete a never-sold lot; soft-retire one that has been sold against."""
    try:
        outcome = lot_service.retire_or_delete_lot(lot_id, actor_user_id=g.current_user.id)
    except LotNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except LotValidationError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to remove lot %s", lot_id)
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"ok": True, "lot_id": lot_id, "outcome": outcome}), 200
