# Overview: Human-readable document numbers for sales (invoices) and restock orders.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..time_utils import epoch_millis

"""
Document numbers are "<PREFIX>-<last 6 digits of epoch ms>", e.g. INV-482913.

The time-derived part repeats every 1000 seconds and collides when two
documents are created within the same millisecond, so uniqueness is enforced
per user: if the base number is taken, "-2", "-3", ... is appended. The
(user_id, number) unique constraint on each table backs this up.
"""


class DocumentNumberError(Exception):
    """Raised when no free document number can be found."""
    pass


def _time_component(now: datetime | None) -> str:
    return str(epoch_millis(now))[-6:]


def next_document_number(
    *,
    model,
    number_attr: str,
    user_id: int,
    prefix: str,
    now: datetime | None = None,
    max_suffix: int = 1000,
) -> str:
    """Allocate a free, time-derived document number for model.number_attr within user_id."""
    column = getattr(model, number_attr)
    base = f"{prefix}-{_time_component(now)}"

    taken = {
        row[0]
        for row in db.session.query(column)
        .filter(model.user_id == user_id, column.like(f"{base}%"))
        .all()
    }
    if base not in taken:
        return base

    for suffix in range(2, max_suffix + 1):
        candidate = f"{base}-{suffix}"
        if candidate not in taken:
            return candidate

    raise DocumentNumberError(f"No free document number for {base}")
