# backend/bizdesk/routes/sales.py
"""
Sales (invoice) API routes

POST /api/sales records a complete sale in one transaction: header, line
items, stock decrements and stock audit rows.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.sales_service import SaleValidationError, SaleNotFoundError
from ..time_utils import parse_iso_datetime
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Body:
    - items: [{product_id, quantity, unit_price?}] (unit_price defaults to the product price)
    - customer_id: optional; omitted or null means walk-in
    - payment_method: cash | card | check | digital
    - tax_rate: percent, default 0
    - discount_amount: default 0
    - notes: optional
    """
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.record_sale(
            user_id=g.user_id,
            items=data.get("items"),
            customer_id=data.get("customer_id"),
            payment_method=data.get("payment_method"),
            tax_rate=data.get("tax_rate"),
            discount_amount=data.get("discount_amount"),
            notes=data.get("notes"),
        )
    except SaleValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400

    current_app.logger.info(
        "Recorded sale %s for user %s: total %s",
        sale.invoice_number, g.user_id, sale.total_amount,
    )
    return jsonify({"sale": sale.to_dict(include_items=True)}), 201


@sales_bp.post("/preview")
@require_auth
def preview_sale_route():
    """Price a draft sale; nothing is written."""
    data = request.get_json(silent=True) or {}

    try:
        preview = sales_service.preview_sale(
            user_id=g.user_id,
            items=data.get("items"),
            tax_rate=data.get("tax_rate"),
            discount_amount=data.get("discount_amount"),
        )
    except SaleValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400

    return jsonify(preview), 200


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params:
    - start / end: ISO-8601 bounds on sale_date
    - customer_id: only this customer's sales
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 datetimes"}), 400

    sales = sales_service.list_sales(
        g.user_id,
        start=start,
        end=end,
        customer_id=request.args.get("customer_id", type=int),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.user_id, sale_id)
    except SaleNotFoundError:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200


@sales_bp.put("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    """Header-only edit; line items and stock are left as recorded."""
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.update_sale(user_id=g.user_id, sale_id=sale_id, patch=data)
    except SaleNotFoundError:
        return jsonify({"error": "Sale not found"}), 404
    except SaleValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400

    return jsonify({"sale": sale.to_dict(include_items=True)}), 200


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """Stock is not restored; the stock audit trail keeps the original movements."""
    try:
        sales_service.delete_sale(user_id=g.user_id, sale_id=sale_id)
    except SaleNotFoundError:
        return jsonify({"error": "Sale not found"}), 404

    return jsonify({"ok": True}), 200
