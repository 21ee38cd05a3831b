# Overview: Request decorators for API routes (authentication, tenant context, owner-only).

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'tenant_id')


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.tenant_id: The tenant ID captured by the session - REQUIRED
    - g.session_context: The full SessionContext object

    Routes pass tenant_id=g.tenant_id explicitly into every service call.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired, or revoked token
    - User account deactivated
    - Tenant deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.tenant_id = context.tenant_id
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_owner(f):
    """
    Restrict a route to the tenant's OWNER users.

    Must be stacked below @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        if not g.current_user.is_owner:
            return jsonify({
                "error": "Permission denied",
                "message": "Only the store owner can perform this action",
            }), 403

        return f(*args, **kwargs)

    return decorated_function
