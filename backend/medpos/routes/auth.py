# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/medpos/routes/auth.py
"""
Authentication API routes

- Registration creates a store (tenant) and its owner, and logs the owner in
- Login issues a bearer session token
- Owners can add staff logins to their store
- Owners can edit their store details (profile)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthError, PasswordValidationError
from ..decorators import require_auth, require_owner
from ..validation import ValidationError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _login_payload(user, session, token) -> dict:
    return {
        "user": user.to_dict(),
        "tenant": user.tenant.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "tenant_id": session.tenant_id,
    }


@auth_bp.post("/register")
def register_route():
    """
    Register a new store and its owner account.

    Body: store_name, name, email, password, and optional store_address,
    phone, gst_number, timezone.
    """
    data = request.get_json(silent=True) or {}
    try:
        tenant, user = auth_service.register_owner(
            store_name=data.get("store_name"),
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            store_address=data.get("store_address"),
            phone=data.get("phone"),
            gst_number=data.get("gst_number"),
            timezone=data.get("timezone") or "UTC",
        )
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        payload = _login_payload(user, session, token)
        payload["message"] = "Registration successful"
        return jsonify(payload), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register tenant")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        payload = _login_payload(user, session, token)
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return jsonify({"error": "Authorization header required"}), 401

    token = auth_header.split(" ", 1)[1].strip()

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "tenant": user.tenant.to_dict(),
        "tenant_id": g.tenant_id,
    }), 200


@auth_bp.get("/staff")
@require_auth
@require_owner
def list_staff_route():
    users = auth_service.list_users(g.tenant_id)
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@auth_bp.post("/staff")
@require_auth
@require_owner
def create_staff_route():
    """Owner adds a STAFF login to their own store."""
    data = request.get_json(silent=True) or {}
    try:
        user = auth_service.create_staff_user(
            g.tenant_id,
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
        )
        return jsonify({"user": user.to_dict()}), 201
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create staff user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.put("/profile")
@require_auth
@require_owner
def update_profile_route():
    """
    Owner updates the store's details and their own name.

    Body (all optional): name, store_name, store_address, phone,
    gst_number, timezone.
    """
    data = request.get_json(silent=True)
    try:
        user = auth_service.update_profile(g.current_user, data)
        return jsonify({
            "user": user.to_dict(),
            "tenant": user.tenant.to_dict(),
            "message": "Profile updated",
        }), 200
    except (AuthError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update profile")
        return jsonify({"error": "Internal server error"}), 500
