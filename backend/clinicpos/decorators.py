# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .permissions import role_has_permission, validate_permission_code
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'tenant_id')


def require_auth(f):
    """
    Require a bearer token and establish tenant context.

    Sets:
    - g.current_user: the authenticated User
    - g.tenant_id: the clinic the session was issued for
    - g.session_context: the full SessionContext

    Returns 401 if the header is missing, or the token is invalid, expired
    or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.tenant_id = context.tenant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require the current user's role to grant `permission_code`. Use after @require_auth."""
    validate_permission_code(permission_code)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if not role_has_permission(user.role, permission_code):
                current_app.logger.warning(
                    "Permission denied: user %s (%s) tenant %s lacks %s for %s %s",
                    user.id, user.role, g.tenant_id, permission_code, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
