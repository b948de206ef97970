# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/clinicpos/routes/sales.py
"""
Sales API routes (invoices and receipts)

Bodies are parsed into a SaleDraft at the boundary; totals in the body are
ignored and recomputed. Every response carries the fully resolved sale so
the client can replace its copy instead of patching it.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DOMAIN_ERRORS, error_response
from ..services import sales_service
from ..services.billing_service import parse_sale_draft, parse_target_status
from ..validation import coerce_bool, coerce_int
from ..decorators import require_auth, require_permission


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _record(sale_id: int | None):
    payload = request.get_json(silent=True) or {}
    target_status = parse_target_status(payload.get("target_status"))
    draft = parse_sale_draft(payload)
    return sales_service.record_sale(
        g.tenant_id,
        draft,
        target_status,
        g.current_user,
        sale_id=sale_id,
    )


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Create a sale as Draft, Pending (invoice) or Paid (receipt).

    Body: items[{inventory_item_id, quantity}], discount_cents, client_id or
    client_name, pay_method, pay_amount_cents, target_status, and the
    confirmation flags allow_oversell / confirm_underpayment /
    confirm_walk_in_invoice.
    """
    try:
        sale = _record(None)
        return jsonify({"sale": sale.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_permission("CREATE_SALE")
def update_sale_route(sale_id: int):
    """Edit a Draft or Pending sale; same body as create. Paid sales are locked."""
    try:
        sale = _record(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_permission("VOID_SALE")
def delete_sale_route(sale_id: int):
    """
    Delete (void) a sale. Body: {"reason": "..."} (required).

    Reverses the sale's stock debits; the record stays as Void.
    """
    try:
        payload = request.get_json(silent=True) or {}
        sales_service.delete_sale(g.tenant_id, sale_id, payload.get("reason"), g.current_user)
        return "", 204

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    List sales newest first.

    Query params:
    - status: Draft | Pending | Paid | Void (optional)
    - limit: int (optional, capped at SALES_LIST_LIMIT)
    """
    try:
        sales = sales_service.list_sales(
            g.tenant_id,
            status=request.args.get("status"),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"sales": [sale.to_dict(include_lines=False) for sale in sales]}), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.tenant_id, sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@sales_bp.post("/<int:sale_id>/payments")
@require_auth
@require_permission("TAKE_PAYMENT")
def add_payment_route(sale_id: int):
    """
    Append a payment. Body: {method, amount_cents, allow_oversell?}

    Completing the balance of a Pending invoice turns it into a Paid receipt.
    """
    try:
        payload = request.get_json(silent=True) or {}
        sale = sales_service.add_payment(
            g.tenant_id,
            sale_id,
            payload.get("method"),
            payload.get("amount_cents"),
            g.current_user,
            allow_oversell=coerce_bool(payload.get("allow_oversell"), "allow_oversell"),
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/quote")
@require_auth
@require_permission("VIEW_SALES")
def quote_route():
    """
    Server-side totals for a cart, nothing persisted.

    Body: same as create (target_status optional); sale_id to price against
    an existing sale's snapshots.
    """
    try:
        payload = dict(request.get_json(silent=True) or {})
        sale_id = payload.pop("sale_id", None)
        if sale_id is not None:
            sale_id = coerce_int(sale_id, "sale_id")
        draft = parse_sale_draft(payload)
        totals, lines = sales_service.preview_totals(g.tenant_id, draft, sale_id=sale_id)
        return jsonify({
            "totals": totals.to_dict(),
            "items": [
                {
                    "inventory_item_id": line.inventory_item_id,
                    "quantity": line.quantity,
                    "unit_price_cents": line.unit_price_cents,
                    "line_total_cents": line.line_total_cents,
                }
                for line in lines
            ],
        }), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
