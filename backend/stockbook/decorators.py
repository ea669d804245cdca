# Overview: Bearer-session and role-permission guards for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import has_permission
from .services import session_service


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def require_auth(f):
    """
    Resolve the bearer token to an active session.

    On success g.current_user and g.session_context are set; a missing,
    unknown, expired or revoked token, or a deactivated user, gets 401.
    """
    @wraps(f)
    def guarded(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if context is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        return f(*args, **kwargs)

    return guarded


def require_permission(permission_code: str):
    """Deny with 403 unless the caller's role grants permission_code. Stack under @require_auth."""
    def decorator(f):
        @wraps(f)
        def guarded(*args, **kwargs):
            user = g.get("current_user")
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if not has_permission(user.role, permission_code):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return guarded
    return decorator
