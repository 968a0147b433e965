# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def require_auth(f):
    """
    Require a valid bearer token and establish the caller's identity.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.user_id: Owner id every service call is scoped to
    - g.session_context: The full SessionContext object
    - g.token: The plaintext bearer token (used by logout)

    Returns 401 if the header is missing, or the token is invalid,
    expired, revoked, or belongs to a deactivated account.
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
        g.user_id = context.user_id
        g.session_context = context
        g.token = token

        return f(*args, **kwargs)

    return decorated_function
