# Overview: Flask API routes for inventory items and stock; parses input and returns JSON responses.

# backend/clinicpos/routes/inventory.py
"""
Inventory routes.

MULTI-TENANT: every operation is scoped to g.tenant_id (set by @require_auth).

- Read operations require VIEW_INVENTORY
- Write operations require MANAGE_INVENTORY
- Stock only changes through /adjust or sales; PATCH never touches it
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DOMAIN_ERRORS, error_response
from ..models import InventoryItem
from ..services import inventory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_inventory_item,
    coerce_int,
    coerce_bool,
)
from ..decorators import require_auth, require_permission


ITEM_FIELDS = {
    "sku",
    "name",
    "category",
    "type",
    "purchase_price_cents",
    "retail_price_cents",
    "wholesale_price_cents",
    "reorder_level",
    "expiry_date",
    "is_active",
}

ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=ITEM_FIELDS | {"stock"},
    required_on_create={"sku", "name", "retail_price_cents"},
)

ITEM_UPDATE_POLICY = ModelValidationPolicy(writable_fields=ITEM_FIELDS)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_items_route():
    """
    Query params:
    - q: name/SKU substring (optional)
    - include_inactive: bool (optional)
    """
    try:
        items = inventory_service.list_items(
            g.tenant_id,
            search=request.args.get("q"),
            include_inactive=coerce_bool(request.args.get("include_inactive"), "include_inactive"),
        )
        return jsonify({"items": [item.to_dict() for item in items]}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@inventory_bp.post("")
@require_auth
@require_permission("MANAGE_INVENTORY")
def create_item_route():
    """
    Create an item. A similar existing name does not block creation; it is
    reported in the response's `warnings` list.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_CREATE_POLICY, partial=False)
        enforce_rules_inventory_item(patch)
        item, warnings = inventory_service.create_item(g.tenant_id, patch, g.current_user)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "item": item.to_dict(),
        "warnings": [warning.to_dict() for warning in warnings],
    }), 201


@inventory_bp.get("/check-duplicate")
@require_auth
@require_permission("VIEW_INVENTORY")
def check_duplicate_route():
    """Query params: name (required), exclude_id (optional)."""
    name = request.args.get("name", "")
    try:
        exclude_id = request.args.get("exclude_id")
        if exclude_id is not None:
            exclude_id = coerce_int(exclude_id, "exclude_id")
        match = inventory_service.check_duplicate_name(g.tenant_id, name, exclude_id=exclude_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return jsonify({
        "exists": match is not None,
        "item": match.to_dict() if match else None,
    }), 200


@inventory_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    items = inventory_service.list_low_stock(g.tenant_id)
    return jsonify({"items": [item.to_dict() for item in items]}), 200


@inventory_bp.get("/<int:item_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(g.tenant_id, item_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.patch("/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_UPDATE_POLICY, partial=True)
        enforce_rules_inventory_item(patch)
        item = inventory_service.update_item(g.tenant_id, item_id, patch, g.current_user)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.delete("/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def delete_item_route(item_id: int):
    """Items referenced by sales or stock movements are deactivated instead of deleted."""
    try:
        deleted = inventory_service.delete_item(g.tenant_id, item_id, g.current_user)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete inventory item")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"ok": True, "deleted": deleted, "deactivated": not deleted}), 200


@inventory_bp.post("/<int:item_id>/adjust")
@require_auth
@require_permission("MANAGE_INVENTORY")
def adjust_stock_route(item_id: int):
    """
    Manual stock correction.

    Body: {"mode": "add" | "set", "value": int, "note": str?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        value = coerce_int(payload.get("value"), "value")
        item = inventory_service.adjust(
            g.tenant_id,
            item_id,
            payload.get("mode"),
            value,
            actor=g.current_user,
            note=(payload.get("note") or None),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.get("/<int:item_id>/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route(item_id: int):
    try:
        movements = inventory_service.list_movements(g.tenant_id, item_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"movements": [movement.to_dict() for movement in movements]}), 200
