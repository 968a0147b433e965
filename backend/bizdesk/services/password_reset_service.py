# Overview: Password reset by emailed link; one-hour single-use tokens.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import PasswordResetToken, User
from ..time_utils import utcnow
from .auth_service import normalize_email, set_password
from .session_service import generate_token, hash_token, revoke_all_user_sessions

RESET_TOKEN_TTL = timedelta(hours=1)


class PasswordResetError(Exception):
    """Raised when a reset token is unknown, expired or already used."""
    pass


def request_password_reset(email: str) -> str | None:
    """
    Issue a reset token for an active account and deliver the link.

    Delivery goes through the application logger. Returns the plaintext
    token, or None when no active account has this email; callers must not
    reveal which case happened.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()
    if user is None:
        return None

    token = generate_token()
    now = utcnow()
    db.session.add(PasswordResetToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=now,
        expires_at=now + RESET_TOKEN_TTL,
    ))
    db.session.commit()

    link = f"{current_app.config['PASSWORD_RESET_URL']}?token={token}"
    current_app.logger.info("Password reset link for user %s: %s", user.id, link)
    return token


def confirm_password_reset(token: str, new_password: str) -> User:
    """
    Set a new password with a valid reset token.

    The token is consumed and every session of the user is revoked.

    Raises:
        PasswordResetError: token unknown, expired or already used
        PasswordValidationError: new password too weak (token stays usable)
    """
    now = utcnow()
    record = db.session.query(PasswordResetToken).filter_by(
        token_hash=hash_token(token or "")
    ).first()

    if record is None or record.used_at is not None or record.expires_at < now:
        raise PasswordResetError("Invalid or expired reset token")

    user = record.user
    set_password(user, new_password)
    record.used_at = now
    revoke_all_user_sessions(user.id, commit=False)
    db.session.commit()
    return user
