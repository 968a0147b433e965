"""
Sales Service - invoice recording

A sale is recorded in one shot: header, line items, stock decrements and
audit rows are written in a single database transaction. Either all of it
becomes visible or none of it does.

Totals:
    subtotal        = sum(quantity * unit_price)
    tax_amount      = subtotal * tax_rate / 100   (half-up to the cent)
    total_amount    = subtotal + tax_amount - discount_amount
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Sale, SaleItem, Customer, Product
from ..money import ZERO, quantize_cents, money_str
from ..validation import ValidationError, LineEntry, coerce_amount, parse_line_items
from ..time_utils import utcnow
from .products_service import get_owned_products
from .document_service import next_document_number
from .stock_service import (
    apply_stock_change,
    read_stock_for_update,
    TRANSACTION_SALE,
    REFERENCE_SALE,
)
from .concurrency import atomic


PAYMENT_METHODS = {"cash", "card", "check", "digital"}
SALE_STATUSES = {"completed", "pending", "cancelled", "refunded"}

MAX_TAX_RATE = Decimal("100")


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleValidationError(ValidationError):
    """Sale input rejected before anything was written."""


class SaleNotFoundError(SaleError):
    """Raised when a sale does not exist or belongs to another user."""


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": money_str(self.subtotal),
            "tax_amount": money_str(self.tax_amount),
            "discount_amount": money_str(self.discount_amount),
            "total_amount": money_str(self.total_amount),
        }


@dataclass(frozen=True)
class PricedLine:
    product: Product
    quantity: int
    unit_price: Decimal

    @property
    def total_price(self) -> Decimal:
        return quantize_cents(self.unit_price * self.quantity)


def compute_sale_totals(
    lines: list[tuple[int, Decimal]],
    tax_rate: Decimal,
    discount_amount: Decimal,
) -> SaleTotals:
    """Pure totals calculation from (quantity, unit_price) pairs."""
    subtotal = quantize_cents(sum((unit_price * quantity for quantity, unit_price in lines), ZERO))
    tax_amount = quantize_cents(subtotal * tax_rate / Decimal("100"))
    discount_amount = quantize_cents(discount_amount)
    total_amount = subtotal + tax_amount - discount_amount
    return SaleTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total_amount=total_amount,
    )


def _parse_tax_rate(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        rate = coerce_amount("tax_rate", value)
    except ValidationError as e:
        raise SaleValidationError(str(e))
    if rate > MAX_TAX_RATE:
        raise SaleValidationError("tax_rate cannot exceed 100")
    return rate


def _parse_discount(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        return coerce_amount("discount_amount", value)
    except ValidationError as e:
        raise SaleValidationError(str(e))


def _parse_payment_method(value) -> str:
    method = (value or "cash").strip().lower() if isinstance(value, str) or value is None else value
    if method not in PAYMENT_METHODS:
        raise SaleValidationError(
            f"payment_method must be one of: {', '.join(sorted(PAYMENT_METHODS))}"
        )
    return method


def _parse_customer_id(value) -> int | None:
    # "walk-in" is what the dashboard sends for a sale without a customer
    if value in (None, "", "walk-in"):
        return None
    if isinstance(value, bool):
        raise SaleValidationError("customer_id must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SaleValidationError("customer_id must be an integer")


def _require_customer(user_id: int, customer_id: int | None) -> None:
    if customer_id is None:
        return
    exists = db.session.query(Customer.id).filter_by(id=customer_id, user_id=user_id).first()
    if exists is None:
        raise SaleValidationError("Customer not found", details={"customer_id": customer_id})


def _price_lines(user_id: int, entries: list[LineEntry]) -> list[PricedLine]:
    products = get_owned_products(user_id, [e.product_id for e in entries])
    missing = sorted({e.product_id for e in entries if e.product_id not in products})
    if missing:
        raise SaleValidationError("Unknown products", details={"product_ids": missing})

    return [
        PricedLine(
            product=products[e.product_id],
            quantity=e.quantity,
            unit_price=e.unit_amount if e.unit_amount is not None else quantize_cents(Decimal(products[e.product_id].price)),
        )
        for e in entries
    ]


def _validate_on_hand(user_id: int, lines: list[PricedLine]) -> None:
    product_totals: dict[int, int] = {}
    for line in lines:
        if line.product.is_service:
            continue
        product_totals[line.product.id] = product_totals.get(line.product.id, 0) + line.quantity

    insufficient = []
    for product_id, qty in product_totals.items():
        on_hand = read_stock_for_update(user_id, product_id)
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise SaleValidationError(
            "Insufficient stock to record sale",
            details={"items": insufficient},
        )


def _totals_for(lines: list[PricedLine], tax_rate: Decimal, discount: Decimal) -> SaleTotals:
    totals = compute_sale_totals([(l.quantity, l.unit_price) for l in lines], tax_rate, discount)
    if totals.total_amount < ZERO:
        raise SaleValidationError(
            "discount_amount cannot exceed subtotal plus tax",
            details=totals.to_dict(),
        )
    return totals


def preview_sale(
    *,
    user_id: int,
    items,
    tax_rate=None,
    discount_amount=None,
) -> dict:
    """Price a draft sale without writing anything."""
    entries = parse_line_items(items, amount_field="unit_price", error_cls=SaleValidationError)
    rate = _parse_tax_rate(tax_rate)
    discount = _parse_discount(discount_amount)

    lines = _price_lines(user_id, entries)
    totals = _totals_for(lines, rate, discount)

    return {
        "items": [
            {
                "product_id": l.product.id,
                "product_name": l.product.name,
                "quantity": l.quantity,
                "unit_price": money_str(l.unit_price),
                "total_price": money_str(l.total_price),
            }
            for l in lines
        ],
        **totals.to_dict(),
    }


def record_sale(
    *,
    user_id: int,
    items,
    customer_id=None,
    payment_method: str | None = "cash",
    tax_rate=None,
    discount_amount=None,
    notes: str | None = None,
    sale_date: datetime | None = None,
    allow_negative_stock: bool | None = None,
) -> Sale:
    """
    Record a sale: header, line items, stock decrements, audit rows.

    Every input check runs before the first write. Service products are
    priced and itemized but their stock is never touched.

    Raises:
        SaleValidationError: input rejected; nothing was written
    """
    entries = parse_line_items(items, amount_field="unit_price", error_cls=SaleValidationError)
    method = _parse_payment_method(payment_method)
    rate = _parse_tax_rate(tax_rate)
    discount = _parse_discount(discount_amount)
    customer = _parse_customer_id(customer_id)

    if allow_negative_stock is None:
        allow_negative_stock = current_app.config.get("ALLOW_NEGATIVE_STOCK", True)

    def _op() -> Sale:
        _require_customer(user_id, customer)
        lines = _price_lines(user_id, entries)
        totals = _totals_for(lines, rate, discount)

        if not allow_negative_stock:
            _validate_on_hand(user_id, lines)

        invoice_number = next_document_number(
            model=Sale,
            number_attr="invoice_number",
            user_id=user_id,
            prefix="INV",
        )

        sale = Sale(
            user_id=user_id,
            invoice_number=invoice_number,
            customer_id=customer,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            payment_method=method,
            status="completed",
            sale_date=sale_date or utcnow(),
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product.id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
            ))
        db.session.flush()

        for line in lines:
            apply_stock_change(
                user_id=user_id,
                product=line.product,
                quantity_change=-line.quantity,
                transaction_type=TRANSACTION_SALE,
                reference_type=REFERENCE_SALE,
                reference_id=sale.id,
                notes=f"Sale: {invoice_number}",
            )

        return sale

    return atomic(_op)


def get_sale(user_id: int, sale_id: int) -> Sale:
    sale = (
        db.session.query(Sale)
        .options(joinedload(Sale.customer))
        .filter_by(id=sale_id, user_id=user_id)
        .first()
    )
    if sale is None:
        raise SaleNotFoundError("Sale not found")
    return sale


def list_sales(
    user_id: int,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: int | None = None,
) -> list[Sale]:
    q = (
        db.session.query(Sale)
        .options(joinedload(Sale.customer))
        .filter(Sale.user_id == user_id)
    )
    if start is not None:
        q = q.filter(Sale.sale_date >= start)
    if end is not None:
        q = q.filter(Sale.sale_date <= end)
    if customer_id is not None:
        q = q.filter(Sale.customer_id == customer_id)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()


SALE_HEADER_FIELDS = {"customer_id", "payment_method", "status", "notes", "tax_rate", "discount_amount"}


def update_sale(*, user_id: int, sale_id: int, patch: dict) -> Sale:
    """
    Edit header fields of a recorded sale.

    Line items and stock are never touched. When tax_rate and/or
    discount_amount are supplied, tax_amount and total_amount are re-derived
    from the stored subtotal so the total invariant keeps holding.
    """
    if not isinstance(patch, dict):
        raise SaleValidationError("Invalid JSON payload")
    unknown = sorted(set(patch) - SALE_HEADER_FIELDS)
    if unknown:
        raise SaleValidationError(f"Field not allowed: {', '.join(unknown)}")

    def _op() -> Sale:
        sale = get_sale(user_id, sale_id)

        if "customer_id" in patch:
            customer = _parse_customer_id(patch["customer_id"])
            _require_customer(user_id, customer)
            sale.customer_id = customer

        if "payment_method" in patch:
            sale.payment_method = _parse_payment_method(patch["payment_method"])

        if "status" in patch:
            status = str(patch["status"] or "").strip().lower()
            if status not in SALE_STATUSES:
                raise SaleValidationError(
                    f"status must be one of: {', '.join(sorted(SALE_STATUSES))}"
                )
            sale.status = status

        if "notes" in patch:
            sale.notes = patch["notes"]

        if "tax_rate" in patch or "discount_amount" in patch:
            subtotal = Decimal(sale.subtotal)
            if "tax_rate" in patch:
                tax_amount = quantize_cents(subtotal * _parse_tax_rate(patch["tax_rate"]) / Decimal("100"))
            else:
                tax_amount = Decimal(sale.tax_amount)
            if "discount_amount" in patch:
                discount = _parse_discount(patch["discount_amount"])
            else:
                discount = Decimal(sale.discount_amount)

            total = subtotal + tax_amount - discount
            if total < ZERO:
                raise SaleValidationError("discount_amount cannot exceed subtotal plus tax")

            sale.tax_amount = tax_amount
            sale.discount_amount = discount
            sale.total_amount = total

        return sale

    return atomic(_op)


def delete_sale(*, user_id: int, sale_id: int) -> None:
    """
    Remove a sale and its line items.

    Stock is not restored and the stock transactions written when the sale
    was recorded stay in the audit trail.
    """
    def _op():
        sale = get_sale(user_id, sale_id)
        db.session.delete(sale)

    atomic(_op)
