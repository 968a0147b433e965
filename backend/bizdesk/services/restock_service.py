# Overview: Service-layer operations for restock (purchase) orders; records receipts into stock.

"""
Restock Order Service

LIFECYCLE:
1. pending: created with its items; no stock effect
2. received: Receive increments stock for every item (one transaction)
3. cancelled: closed without stock effect

No transition back out of received or cancelled. Deleting an order never
reverses stock that was already received.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import RestockOrder, RestockItem
from ..money import ZERO, quantize_cents
from ..validation import ValidationError, parse_line_items
from ..time_utils import utcnow
from .products_service import get_owned_products
from .document_service import next_document_number
from .stock_service import apply_stock_change, TRANSACTION_RESTOCK, REFERENCE_RESTOCK_ORDER
from .concurrency import atomic, lock_for_update


STATUS_PENDING = "pending"
STATUS_RECEIVED = "received"
STATUS_CANCELLED = "cancelled"

RESTOCK_STATUSES = {STATUS_PENDING, STATUS_RECEIVED, STATUS_CANCELLED}


class RestockValidationError(ValidationError):
    """Raised when restock order data fails validation."""


class RestockError(Exception):
    """Raised for restock order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RestockNotFoundError(RestockError):
    """Raised when a restock order is not found."""


class RestockStateError(RestockError):
    """Raised when an operation is invalid for the current order state."""


def _clean_text(value, field: str, *, required: bool = False, max_length: int | None = None) -> str | None:
    if value is None:
        if required:
            raise RestockValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if required and not text:
        raise RestockValidationError(f"{field} is required")
    if max_length and len(text) > max_length:
        raise RestockValidationError(f"{field} exceeds max length {max_length}")
    return text or None


def create_restock_order(
    *,
    user_id: int,
    supplier_name,
    items,
    supplier_contact=None,
    notes=None,
) -> RestockOrder:
    """
    Create a pending restock order with its items.

    unit_cost defaults to the product's current cost. Service products
    cannot be restocked.

    Raises:
        RestockValidationError: input rejected; nothing was written
    """
    supplier = _clean_text(supplier_name, "supplier_name", required=True, max_length=255)
    contact = _clean_text(supplier_contact, "supplier_contact", max_length=255)
    entries = parse_line_items(items, amount_field="unit_cost", error_cls=RestockValidationError)

    def _op() -> RestockOrder:
        products = get_owned_products(user_id, [e.product_id for e in entries])
        missing = sorted({e.product_id for e in entries if e.product_id not in products})
        if missing:
            raise RestockValidationError("Unknown products", details={"product_ids": missing})

        services = sorted({e.product_id for e in entries if products[e.product_id].is_service})
        if services:
            raise RestockValidationError(
                "Service products cannot be restocked",
                details={"product_ids": services},
            )

        lines = []
        for e in entries:
            unit_cost = e.unit_amount
            if unit_cost is None:
                unit_cost = quantize_cents(Decimal(products[e.product_id].cost or 0))
            lines.append((e, unit_cost, quantize_cents(unit_cost * e.quantity)))

        total_cost = sum((line_total for _, _, line_total in lines), ZERO)

        order = RestockOrder(
            user_id=user_id,
            order_number=next_document_number(
                model=RestockOrder,
                number_attr="order_number",
                user_id=user_id,
                prefix="RO",
            ),
            supplier_name=supplier,
            supplier_contact=contact,
            total_cost=total_cost,
            status=STATUS_PENDING,
            order_date=utcnow(),
            notes=notes,
        )
        db.session.add(order)
        db.session.flush()

        for e, unit_cost, line_total in lines:
            db.session.add(RestockItem(
                restock_order_id=order.id,
                product_id=e.product_id,
                quantity=e.quantity,
                unit_cost=unit_cost,
                total_cost=line_total,
            ))

        return order

    return atomic(_op)


def get_restock_order(user_id: int, order_id: int) -> RestockOrder:
    order = (
        db.session.query(RestockOrder)
        .options(joinedload(RestockOrder.items))
        .filter_by(id=order_id, user_id=user_id)
        .first()
    )
    if order is None:
        raise RestockNotFoundError("Restock order not found")
    return order


def _get_order_for_update(user_id: int, order_id: int) -> RestockOrder:
    query = db.session.query(RestockOrder).filter_by(id=order_id, user_id=user_id)
    order = lock_for_update(query).first()
    if order is None:
        raise RestockNotFoundError("Restock order not found")
    return order


def list_restock_orders(user_id: int, *, status: str | None = None) -> list[RestockOrder]:
    q = db.session.query(RestockOrder).filter(RestockOrder.user_id == user_id)
    if status:
        if status not in RESTOCK_STATUSES:
            raise RestockValidationError(
                f"status must be one of: {', '.join(sorted(RESTOCK_STATUSES))}"
            )
        q = q.filter(RestockOrder.status == status)
    return q.order_by(RestockOrder.created_at.desc(), RestockOrder.id.desc()).all()


def receive_restock_order(*, user_id: int, order_id: int) -> RestockOrder:
    """
    Receive a pending order: increment stock and append a restock
    transaction per item, then mark the order received.

    Raises:
        RestockNotFoundError: order does not exist for this user
        RestockStateError: order is not pending
    """
    def _op() -> RestockOrder:
        order = _get_order_for_update(user_id, order_id)
        if order.status != STATUS_PENDING:
            raise RestockStateError(
                f"Cannot receive order in {order.status} status",
                details={"status": order.status},
            )

        for item in order.items:
            apply_stock_change(
                user_id=user_id,
                product=item.product,
                quantity_change=item.quantity,
                transaction_type=TRANSACTION_RESTOCK,
                reference_type=REFERENCE_RESTOCK_ORDER,
                reference_id=order.id,
                notes="Restock order received",
                unit_cost=item.unit_cost,
                total_cost=item.total_cost,
            )

        order.status = STATUS_RECEIVED
        order.received_date = utcnow()
        return order

    return atomic(_op)


def cancel_restock_order(*, user_id: int, order_id: int) -> RestockOrder:
    """Cancel a pending order. No stock effect."""
    def _op() -> RestockOrder:
        order = _get_order_for_update(user_id, order_id)
        if order.status != STATUS_PENDING:
            raise RestockStateError(
                f"Cannot cancel order in {order.status} status",
                details={"status": order.status},
            )
        order.status = STATUS_CANCELLED
        return order

    return atomic(_op)


def delete_restock_order(*, user_id: int, order_id: int) -> None:
    def _op():
        order = _get_order_for_update(user_id, order_id)
        db.session.delete(order)

    atomic(_op)
