# backend/bizdesk/routes/products.py
"""
Product and service catalogue routes.

All operations are scoped to the caller (g.user_id, set by @require_auth).
A product owned by someone else is reported as not found.
"""
from flask import Blueprint, request, g
from ..services import products_service
from ..services.products_service import ProductNotFoundError, PRODUCT_MUTABLE_FIELDS
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create={"name", "sku", "price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - search: matches name, SKU or barcode
    - category: exact category
    - low_stock: "true" for physical products at or below their alert level
    - page / per_page: optional pagination (default 20, max 100)
    """
    return products_service.list_products(
        g.user_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        low_stock_only=request.args.get("low_stock", "").lower() in {"1", "true", "yes"},
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return products_service.get_product(g.user_id, product_id).to_dict()
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(user_id=g.user_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(user_id=g.user_id, product_id=product_id, patch=patch)
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(user_id=g.user_id, product_id=product_id)
    except ProductNotFoundError:
        return {"error": "Product not found"}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return {"ok": True}, 200
