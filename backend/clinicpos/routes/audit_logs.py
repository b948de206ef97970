# Overview: Flask API routes for the clinic activity log (read-only).

from flask import Blueprint, request, jsonify, g

from ..errors import DOMAIN_ERRORS, error_response
from ..services.audit_service import list_audit_entries, AUDIT_CATEGORIES
from ..validation import ValidationError
from ..decorators import require_auth, require_permission


audit_logs_bp = Blueprint("audit_logs", __name__, url_prefix="/api/audit-logs")


@audit_logs_bp.get("")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_audit_logs_route():
    """
    Clinic Logs feed, newest first.

    Query params:
    - category: clinical | financial | admin | system (optional)
    - entity_type, entity_id (optional)
    - limit (default 200, max 500), offset
    """
    try:
        category = request.args.get("category")
        if category and category not in AUDIT_CATEGORIES:
            raise ValidationError(f"category must be one of {list(AUDIT_CATEGORIES)}")

        rows, total = list_audit_entries(
            g.tenant_id,
            category=category,
            entity_type=request.args.get("entity_type"),
            entity_id=request.args.get("entity_id", type=int),
            limit=request.args.get("limit", 200, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return jsonify({"entries": [row.to_dict() for row in rows], "total": total}), 200
