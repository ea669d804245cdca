# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockbook/routes/auth.py
"""
Authentication API routes.

Self-registration does not exist; users are created by an administrator
(`flask users create` or POST /api/auth/users with MANAGE_USERS).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..permissions import role_permissions
from ..decorators import require_auth, require_permission


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included as "Authorization: Bearer <token>" on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
            "permissions": sorted(role_permissions(user.role)),
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers.get("Authorization", "").split(" ", 1)[1]
    session_service.revoke_session(token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(role_permissions(user.role)),
    }), 200


@auth_bp.post("/users")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_user(
            username=data.get("username"),
            email=data.get("email"),
            password=data.get("password") or "",
            role=data.get("role") or "cashier",
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 409
    return jsonify({"user": user.to_dict()}), 201
