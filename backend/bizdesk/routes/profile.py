# backend/bizdesk/routes/profile.py
"""Business profile of the logged-in user."""
from flask import Blueprint, request, g
from ..services import profile_service
from ..validation import ValidationError
from ..decorators import require_auth

profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    return profile_service.get_profile(g.user_id).to_dict()


@profile_bp.put("")
@require_auth
def update_profile_route():
    payload = request.get_json(silent=True) or {}
    try:
        profile = profile_service.update_profile(g.user_id, payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return profile.to_dict(), 200
