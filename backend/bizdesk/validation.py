from __future__ import annotations
from datetime import datetime
from decimal import Decimal

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .money import MAX_AMOUNT, ZERO, quantize_cents, to_decimal
from .time_utils import parse_iso_datetime


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


@dataclass(frozen=True)
class LineEntry:
    """One validated line of a sale or restock order."""
    product_id: int
    quantity: int
    unit_amount: Decimal | None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_amount(key: str, value: Any, *, allow_negative: bool = False) -> Decimal:
    """Parse a monetary input and round it to the cent."""
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number")
    if not allow_negative and amount < ZERO:
        raise ValidationError(f"{key} must be >= 0")
    amount = quantize_cents(amount)
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
    return amount


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Numeric):
        return coerce_amount(col.key, value, allow_negative=True)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("price", "cost"):
        if field in patch and patch[field] is not None and patch[field] < ZERO:
            raise ValidationError(f"{field} must be >= 0")

    for field in ("stock_quantity", "low_stock_threshold"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")

    if "product_type" in patch and patch["product_type"] not in {"product", "service"}:
        raise ValidationError("product_type must be 'product' or 'service'")


def enforce_rules_customer(patch: dict) -> None:
    email = patch.get("email")
    if email and "@" not in email:
        raise ValidationError("email must be a valid email address")


def parse_line_items(
    raw_items: Any,
    *,
    amount_field: str,
    error_cls: type[ValidationError] = ValidationError,
) -> list[LineEntry]:
    """
    Validate a list of line item dicts before anything is written.

    Each entry needs a product_id and a positive integer quantity. The unit
    amount (unit_price / unit_cost) is optional; None means "snapshot the
    product's current value".
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise error_cls("At least one line item is required")

    entries: list[LineEntry] = []
    problems: list[dict] = []

    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            problems.append({"index": index, "error": "line item must be an object"})
            continue

        product_id = raw.get("product_id")
        if product_id in (None, ""):
            problems.append({"index": index, "error": "product_id is required"})
            continue
        try:
            product_id = _coerce_int("product_id", product_id)
        except ValidationError as e:
            problems.append({"index": index, "error": str(e)})
            continue

        try:
            quantity = _coerce_int("quantity", raw.get("quantity"))
        except ValidationError as e:
            problems.append({"index": index, "error": str(e)})
            continue
        if quantity <= 0:
            problems.append({"index": index, "error": "quantity must be > 0"})
            continue

        unit_amount = None
        if raw.get(amount_field) is not None:
            try:
                unit_amount = coerce_amount(amount_field, raw[amount_field])
            except ValidationError as e:
                problems.append({"index": index, "error": str(e)})
                continue

        entries.append(LineEntry(product_id=product_id, quantity=quantity, unit_amount=unit_amount))

    if problems:
        raise error_cls("Invalid line items", details={"items": problems})

    return entries
