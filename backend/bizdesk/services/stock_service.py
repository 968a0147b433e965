# Overview: Stock counter updates and the append-only stock transaction audit trail.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select, update

from ..extensions import db
from ..models import Product, StockTransaction
from .concurrency import lock_for_update
"""
Stock Invariants (authoritative)

- Product.stock_quantity is a counter, changed only through apply_stock_change()
  by the recording services (plus direct product edits).
- Changes are server-side arithmetic (stock_quantity = stock_quantity + delta)
  on a row read FOR UPDATE, never a client-computed absolute value, so two
  concurrent sales cannot both write back the same stale quantity.
- Every change appends exactly one StockTransaction in the same DB transaction,
  with quantity_before/quantity_after bracketing the update.
- Service products (is_service=True) are never touched; stock is unbounded.
- No commit happens here; callers own the transaction boundary.
"""

TRANSACTION_SALE = "sale"
TRANSACTION_RESTOCK = "restock"

REFERENCE_SALE = "sale"
REFERENCE_RESTOCK_ORDER = "restock_order"


class StockError(Exception):
    """Raised when a stock change cannot be applied."""
    pass


def read_stock_for_update(user_id: int, product_id: int) -> int:
    """Current stock for an owned product, with the row locked for the rest of the transaction."""
    query = db.session.query(Product.stock_quantity).filter(
        Product.id == product_id,
        Product.user_id == user_id,
    )
    quantity = lock_for_update(query).scalar()
    if quantity is None:
        raise StockError(f"Product {product_id} not found")
    return int(quantity)


def apply_stock_change(
    *,
    user_id: int,
    product: Product,
    quantity_change: int,
    transaction_type: str,
    reference_type: str,
    reference_id: int,
    notes: str | None = None,
    unit_cost: Decimal | None = None,
    total_cost: Decimal | None = None,
) -> StockTransaction | None:
    """
    Move a product's stock by quantity_change and append the audit row.

    Returns None (and writes nothing) for service products.
    """
    if product.is_service:
        return None
    if quantity_change == 0:
        raise StockError("quantity_change must be non-zero")

    before = read_stock_for_update(user_id, product.id)

    db.session.execute(
        update(Product)
        .where(Product.id == product.id, Product.user_id == user_id)
        .values(
            stock_quantity=Product.stock_quantity + quantity_change,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )

    after = db.session.execute(
        select(Product.stock_quantity).where(Product.id == product.id)
    ).scalar_one()

    tx = StockTransaction(
        user_id=user_id,
        product_id=product.id,
        transaction_type=transaction_type,
        quantity_change=quantity_change,
        quantity_before=before,
        quantity_after=int(after),
        unit_cost=unit_cost,
        total_cost=total_cost,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def list_stock_transactions(
    *,
    user_id: int,
    product_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    limit: int = 200,
) -> list[StockTransaction]:
    q = db.session.query(StockTransaction).filter(StockTransaction.user_id == user_id)
    if product_id is not None:
        q = q.filter(StockTransaction.product_id == product_id)
    if reference_type is not None:
        q = q.filter(StockTransaction.reference_type == reference_type)
    if reference_id is not None:
        q = q.filter(StockTransaction.reference_id == reference_id)

    q = q.order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
    return q.limit(min(max(limit, 1), 1000)).all()
