# backend/bizdesk/services/products_service.py
"""
Products Service

All product operations are scoped to the owning user_id, which callers pass
explicitly (routes take it from the authenticated session).
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Product, SaleItem, RestockItem, StockTransaction
from ..validation import ConflictError

PRODUCT_MUTABLE_FIELDS = {
    "name", "sku", "barcode", "description", "category",
    "price", "cost", "stock_quantity", "low_stock_threshold",
    "product_type", "is_service",
}


class ProductNotFoundError(Exception):
    """Raised when a product does not exist or belongs to another user."""
    pass


def _normalize_service_fields(patch: dict, current: Product | None = None) -> dict:
    """
    Keep product_type and is_service in agreement, and pin stock fields of
    services to zero.
    """
    patch = dict(patch)
    if "is_service" in patch and "product_type" not in patch:
        patch["product_type"] = "service" if patch["is_service"] else "product"
    elif "product_type" in patch:
        patch["is_service"] = patch["product_type"] == "service"

    is_service = patch.get("is_service", current.is_service if current else False)
    if is_service:
        patch["stock_quantity"] = 0
        patch["low_stock_threshold"] = 0
    return patch


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(user_id: int, sku: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.user_id == user_id, Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SKU {sku!r} already exists")


def get_product(user_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, user_id=user_id).first()
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found")
    return product


def get_owned_products(user_id: int, product_ids) -> dict[int, Product]:
    """Load the user's products for the given ids; ids owned by someone else are simply absent."""
    ids = set(product_ids)
    if not ids:
        return {}
    rows = db.session.query(Product).filter(Product.user_id == user_id, Product.id.in_(ids)).all()
    return {p.id: p for p in rows}


def list_products(
    user_id: int,
    *,
    search: str | None = None,
    category: str | None = None,
    low_stock_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    User-scoped product listing, newest first, with optional pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product).filter(Product.user_id == user_id)

    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(
            or_(Product.name.ilike(like), Product.sku.ilike(like), Product.barcode.ilike(like))
        )
    if category:
        base_query = base_query.filter(Product.category == category)
    if low_stock_only:
        base_query = base_query.filter(
            Product.is_service.is_(False),
            Product.stock_quantity <= Product.low_stock_threshold,
        )

    base_query = base_query.order_by(Product.created_at.desc(), Product.id.desc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, user_id: int, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists for this user
    """
    patch = _normalize_service_fields(patch)
    _ensure_sku_available(user_id, patch["sku"])

    product = Product(user_id=user_id)
    apply_product_patch(product, patch)

    db.session.add(product)
    db.session.commit()
    return product


def update_product(*, user_id: int, product_id: int, patch: dict) -> Product:
    """
    Direct edit of a product row. stock_quantity may be set here; this is the
    only stock change that does not go through the audit trail.
    """
    product = get_product(user_id, product_id)
    patch = _normalize_service_fields(patch, current=product)

    if "sku" in patch and patch["sku"] != product.sku:
        _ensure_sku_available(user_id, patch["sku"], exclude_id=product.id)

    apply_product_patch(product, patch)
    db.session.commit()
    return product


def delete_product(*, user_id: int, product_id: int) -> None:
    """
    Delete a product that no sale, restock order, or stock transaction references.

    Raises:
        ConflictError: If the product is referenced
    """
    product = get_product(user_id, product_id)

    referenced = (
        db.session.query(SaleItem.id).filter_by(product_id=product.id).first()
        or db.session.query(RestockItem.id).filter_by(product_id=product.id).first()
        or db.session.query(StockTransaction.id).filter_by(product_id=product.id).first()
    )
    if referenced:
        raise ConflictError("Product is referenced by sales, restock orders, or stock history")

    db.session.delete(product)
    db.session.commit()
