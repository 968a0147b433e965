"""
Currency helpers.

All monetary values are Decimal with two-decimal (cent) semantics. Storage is
Numeric(12, 2); arithmetic happens on Decimal and is rounded half-up to the
cent only where a derived amount is produced (tax) or persisted.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Numeric(12, 2) upper bound
MAX_AMOUNT = Decimal("9999999999.99")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce JSON input to Decimal.

    Floats go through str() so 10.1 becomes Decimal("10.1"), not the binary
    expansion. Booleans are rejected even though they are ints.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"invalid number: {value!r}")
    else:
        raise ValueError(f"invalid number: {value!r}")
    if not result.is_finite():
        raise ValueError("number must be finite")
    return result


def quantize_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Decimal | float | int | None) -> str | None:
    """Serialize an amount for JSON/CSV as a fixed two-decimal string."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return str(quantize_cents(value))
