# Overview: Flask API routes for reports; read-only JSON views.

from flask import Blueprint, request, jsonify

from ..services.reporting_service import stock_report
from ..decorators import require_auth, require_permission

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/stock")
@require_auth
@require_permission("VIEW_REPORTS")
def stock_report_route():
    """
    Per-product stock: cached quantity, lot quantity, drift flag, stock value.

    Query params: include_inactive=1
    """
    rows = stock_report(include_inactive=request.args.get("include_inactive") in ("1", "true"))
    return jsonify({
        "items": rows,
        "count": len(rows),
        "drifting": sum(1 for r in rows if r["drift"]),
    }), 200
