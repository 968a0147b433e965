# backend/bizdesk/routes/auth.py
"""
Authentication API routes

- Self-registration with password strength validation
- Token-based sessions (Authorization: Bearer <token>)
- Password reset by emailed link; confirming a reset ends every session
"""

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from ..services import auth_service
from ..services import session_service
from ..services import password_reset_service
from ..services.auth_service import (
    PasswordValidationError,
    RegistrationError,
    EmailAlreadyRegisteredError,
)
from ..services.password_reset_service import PasswordResetError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _issue_session(user):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return {
        "user": user.to_dict(),
        "profile": user.profile.to_dict() if user.profile else None,
        "token": token,
        "session": session.to_dict(),
    }


@auth_bp.post("/register")
def register_route():
    """Create an account (and its profile) and log it in."""
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.register_user(
            email,
            password,
            business_name=data.get("business_name"),
            full_name=data.get("full_name"),
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except EmailAlreadyRegisteredError as e:
        return jsonify({"error": str(e)}), 409
    except RegistrationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        return jsonify({**_issue_session(user), "message": "Registration successful"}), 201
    except SQLAlchemyError:
        raise
    except Exception:
        current_app.logger.exception("Failed to create session after registration")
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
            return jsonify({"error": "Invalid credentials"}), 401

        return jsonify({**_issue_session(user), "message": "Login successful"}), 200

    except SQLAlchemyError:

        raise

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "profile": user.profile.to_dict() if user.profile else None,
        "session": g.session_context.session.to_dict(),
    }), 200


@auth_bp.post("/password-reset")
def request_password_reset_route():
    """Always answers 202 so the response does not reveal whether the email is registered."""
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    if not email:
        return jsonify({"error": "email required"}), 400

    try:
        password_reset_service.request_password_reset(email)
    except SQLAlchemyError:
        raise
    except Exception:
        current_app.logger.exception("Failed to issue password reset")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"message": "If the account exists, a reset link has been sent"}), 202


@auth_bp.post("/password-reset/confirm")
def confirm_password_reset_route():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    password = data.get("password")
    if not all([token, password]):
        return jsonify({"error": "token and password required"}), 400

    try:
        password_reset_service.confirm_password_reset(token, password)
    except PasswordResetError as e:
        return jsonify({"error": str(e)}), 400
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"message": "Password updated; please log in again"}), 200
