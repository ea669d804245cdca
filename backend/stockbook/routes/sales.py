# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/stockbook/routes/sales.py
"""
Sales API routes with permission enforcement.

Error contract for POST /api/sales:
- 400 + {"error", "code", "details"}: the request must change
  (INSUFFICIENT_STOCK, INVALID_LINE_ITEM, SALE_ERROR)
- 500 + {"error", "code", "details"}: retry later
  (NUMBERING_CONFLICT, PERSISTENCE_FAILURE); details.retryable is true
"""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..services import sales_service
from ..services.errors import SaleError
from ..services.invoice_service import PrintOptions, PrintOptionsError, build_print_document, render_invoice
from ..services.sales_service import InvoiceNotFoundError, SaleRequest
from ..decorators import require_auth, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Create a sale: resolve customer, allocate lots, number, persist, commit.

    Requires: CREATE_SALE permission
    Available to: admin, manager, cashier
    """
    try:
        payload = request.get_json(silent=True)
        sale_request = SaleRequest.from_payload(
            payload,
            default_tax_rate=current_app.config.get("DEFAULT_TAX_RATE"),
        )
        result = sales_service.create_sale(sale_request, user_id=g.current_user.id)
        return jsonify(result.to_dict()), 201

    except SaleError as e:
        if e.status_code >= 500:
            current_app.logger.error("Sale failed: %s (%s)", e, e.code)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    List invoice headers, newest first.

    Query params: fiscal, customer_id, limit (default 100, max 500), offset
    """
    limit = min(request.args.get("limit", default=100, type=int) or 100, 500)
    offset = max(request.args.get("offset", default=0, type=int) or 0, 0)
    invoices = sales_service.list_invoices(
        fiscal=request.args.get("fiscal"),
        customer_id=request.args.get("customer_id", type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({"items": invoices, "count": len(invoices)}), 200


@sales_bp.get("/<invoice_number>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(invoice_number: str):
    try:
        invoice = sales_service.get_invoice(invoice_number)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"invoice": invoice.to_dict(include_lines=True)}), 200


@sales_bp.get("/<invoice_number>/invoice")
@require_auth
@require_permission("VIEW_SALES")
def print_invoice_route(invoice_number: str):
    """
    Printable invoice.

    Query params:
    - layout: standard | dot | overlay
    - offset_x, offset_y (mm), font_size (pt), line_height, scale
    - final_discount: bill-level discount shown on the print only
    - as=json: return the computed document instead of HTML

    The stored invoice is never modified by printing.
    """
    try:
        invoice = sales_service.get_invoice(invoice_number)
    except InvoiceNotFoundError as e:
        return jsonify({"error": str(e)}), 404

    try:
        options = PrintOptions.from_args(request.args)
        if request.args.get("as") == "json":
            return jsonify(build_print_document(invoice, options)), 200
        html = render_invoice(invoice, options)
    except PrintOptionsError as e:
        return jsonify({"error": str(e)}), 400

    return Response(html, mimetype="text/html")
