# Overview: Flask API routes for numbering sequences; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DOMAIN_ERRORS, error_response
from ..services import numbering_service
from ..decorators import require_auth, require_permission


numbering_bp = Blueprint("numbering", __name__, url_prefix="/api/numbering")


@numbering_bp.get("")
@require_auth
def list_sequences_route():
    """Every sequence of the clinic with its pattern, counter and next-number preview."""
    sequences = numbering_service.get_sequences(g.tenant_id)
    return jsonify({
        "sequences": [
            {**seq.to_dict(), "preview": numbering_service.format_number(seq.pattern, seq.counter + 1)}
            for seq in sequences
        ]
    }), 200


@numbering_bp.get("/preview")
@require_auth
def preview_route():
    """Query params: pattern. Pure; never touches a counter."""
    pattern = request.args.get("pattern", "")
    return jsonify({"pattern": pattern, "preview": numbering_service.preview(pattern)}), 200


@numbering_bp.put("/<kind>")
@require_auth
@require_permission("MANAGE_SETTINGS")
def set_pattern_route(kind: str):
    """Body: {"pattern": "HH/INV/0000"}"""
    payload = request.get_json(silent=True) or {}
    try:
        seq = numbering_service.set_pattern(g.tenant_id, kind, payload.get("pattern"), g.current_user)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update numbering pattern")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sequence": seq.to_dict()}), 200


@numbering_bp.post("/<kind>/issue")
@require_auth
@require_permission("MANAGE_SETTINGS")
def issue_route(kind: str):
    """Consume the next number of a sequence (e.g. patient numbers)."""
    try:
        number = numbering_service.issue_number(g.tenant_id, kind)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to issue number")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"kind": kind, "number": number}), 201
