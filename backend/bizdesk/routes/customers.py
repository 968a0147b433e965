# backend/bizdesk/routes/customers.py
"""Customer routes, scoped to the caller."""
from flask import Blueprint, request, g
from ..services import customers_service
from ..services.customers_service import CustomerNotFoundError, CUSTOMER_MUTABLE_FIELDS
from ..models import Customer
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_customer,
    ValidationError,
)
from ..decorators import require_auth

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=CUSTOMER_MUTABLE_FIELDS,
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
def list_customers():
    customers = customers_service.list_customers(g.user_id, search=request.args.get("search"))
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return customers_service.get_customer(g.user_id, customer_id).to_dict()
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404


@customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    created = customers_service.create_customer(user_id=g.user_id, patch=patch)
    return created.to_dict(), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = customers_service.update_customer(user_id=g.user_id, customer_id=customer_id, patch=patch)
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404

    return updated.to_dict(), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    """Past sales of the customer stay and become walk-in sales."""
    try:
        detached = customers_service.delete_customer(user_id=g.user_id, customer_id=customer_id)
    except CustomerNotFoundError:
        return {"error": "Customer not found"}, 404

    return {"ok": True, "detached_sales": detached}, 200
