from functools import wraps

from flask import g, jsonify, request

from .services import auth_service
from .services.auth_service import AuthError


def require_auth(f):
    """
    Require a valid provider session token.

    Sets the following Flask g attributes:
    - g.claims: the verified SessionClaims
    - g.user_id: provider user id
    - g.org_id: active organization id (may be None; see require_org)
    - g.user_name: display name recorded on created rows
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Unauthorized"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        try:
            claims = auth_service.verify_session_token(token)
        except AuthError:
            return jsonify({"error": "Unauthorized"}), 401

        g.claims = claims
        g.user_id = claims.user_id
        g.org_id = claims.org_id
        g.user_name = auth_service.get_current_user_name(claims)

        return f(*args, **kwargs)

    return decorated_function


def require_org(f):
    """Require an active organization in the session. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not getattr(g, "user_id", None):
            return jsonify({"error": "Unauthorized"}), 401
        if not getattr(g, "org_id", None):
            return jsonify({"error": "Organization not found"}), 404
        return f(*args, **kwargs)

    return decorated_function


def require_admin(action: str):
    """
    Require the admin role for a write.

    Implies require_org. Returns 403 "Only administrators can <action>".
    """
    def decorator(f):
        @wraps(f)
        @require_org
        def decorated_function(*args, **kwargs):
            if not auth_service.is_admin(g.claims):
                return jsonify({"error": f"Only administrators can {action}"}), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator
