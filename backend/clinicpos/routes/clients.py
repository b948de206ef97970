# Overview: Flask API routes for registered clients; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DOMAIN_ERRORS, error_response
from ..models import Client
from ..services import client_service
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_auth, require_permission


CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "email", "phone"},
    required_on_create={"name"},
)

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    clients = client_service.list_clients(g.tenant_id, search=request.args.get("q"))
    return jsonify({"clients": [client.to_dict() for client in clients]}), 200


@clients_bp.post("")
@require_auth
@require_permission("MANAGE_CLIENTS")
def create_client_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
        client = client_service.create_client(g.tenant_id, patch, g.current_user)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"client": client.to_dict()}), 201
