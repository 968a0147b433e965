# Overview: Business profile read/update; one row per user, created lazily if missing.

from __future__ import annotations

from ..extensions import db
from ..models import Profile
from ..money import to_decimal
from ..validation import ModelValidationPolicy, ValidationError, validate_payload

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={
        "business_name", "full_name", "email", "phone", "country", "currency_code",
    },
)


def get_profile(user_id: int) -> Profile:
    profile = db.session.query(Profile).filter_by(user_id=user_id).first()
    if profile is None:
        profile = Profile(user_id=user_id)
        db.session.add(profile)
        db.session.commit()
    return profile


def _parse_exchange_rate(value):
    # Numeric(12, 4): four decimals, unlike money fields
    try:
        rate = to_decimal(value)
    except ValueError:
        raise ValidationError("exchange_rate must be a number")
    if rate <= 0:
        raise ValidationError("exchange_rate must be > 0")
    return round(rate, 4)


def update_profile(user_id: int, payload: dict) -> Profile:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = dict(payload)
    has_rate = "exchange_rate" in payload
    raw_rate = payload.pop("exchange_rate", None)

    patch = validate_payload(model=Profile, payload=payload, policy=PROFILE_POLICY, partial=True)

    if "currency_code" in patch:
        code = patch["currency_code"].upper()
        if len(code) != 3 or not code.isalpha():
            raise ValidationError("currency_code must be a 3-letter ISO code")
        patch["currency_code"] = code

    if has_rate:
        patch["exchange_rate"] = _parse_exchange_rate(raw_rate)

    profile = get_profile(user_id)
    for k, v in patch.items():
        setattr(profile, k, v)
    db.session.commit()
    return profile
