# backend/bizdesk/routes/restocks.py
"""
Restock order routes

Orders are created pending; Receive moves stock in, Cancel closes the order
without touching stock.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import restock_service
from ..services.restock_service import (
    RestockValidationError,
    RestockNotFoundError,
    RestockStateError,
)
from ..decorators import require_auth


restocks_bp = Blueprint("restocks", __name__, url_prefix="/api/restocks")


@restocks_bp.post("")
@require_auth
def create_restock_route():
    """
    Body:
    - supplier_name: required
    - supplier_contact, notes: optional
    - items: [{product_id, quantity, unit_cost?}] (unit_cost defaults to the product cost)
    """
    data = request.get_json(silent=True) or {}

    try:
        order = restock_service.create_restock_order(
            user_id=g.user_id,
            supplier_name=data.get("supplier_name"),
            supplier_contact=data.get("supplier_contact"),
            notes=data.get("notes"),
            items=data.get("items"),
        )
    except RestockValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400

    return jsonify({"restock_order": order.to_dict(include_items=True)}), 201


@restocks_bp.get("")
@require_auth
def list_restocks_route():
    try:
        orders = restock_service.list_restock_orders(g.user_id, status=request.args.get("status"))
    except RestockValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)}), 200


@restocks_bp.get("/<int:order_id>")
@require_auth
def get_restock_route(order_id: int):
    try:
        order = restock_service.get_restock_order(g.user_id, order_id)
    except RestockNotFoundError:
        return jsonify({"error": "Restock order not found"}), 404
    return jsonify({"restock_order": order.to_dict(include_items=True)}), 200


@restocks_bp.post("/<int:order_id>/receive")
@require_auth
def receive_restock_route(order_id: int):
    try:
        order = restock_service.receive_restock_order(user_id=g.user_id, order_id=order_id)
    except RestockNotFoundError:
        return jsonify({"error": "Restock order not found"}), 404
    except RestockStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409

    current_app.logger.info("Received restock order %s for user %s", order.order_number, g.user_id)
    return jsonify({"restock_order": order.to_dict(include_items=True)}), 200


@restocks_bp.post("/<int:order_id>/cancel")
@require_auth
def cancel_restock_route(order_id: int):
    try:
        order = restock_service.cancel_restock_order(user_id=g.user_id, order_id=order_id)
    except RestockNotFoundError:
        return jsonify({"error": "Restock order not found"}), 404
    except RestockStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409

    return jsonify({"restock_order": order.to_dict(include_items=True)}), 200


@restocks_bp.delete("/<int:order_id>")
@require_auth
def delete_restock_route(order_id: int):
    """Deleting a received order does not take the received stock back out."""
    try:
        restock_service.delete_restock_order(user_id=g.user_id, order_id=order_id)
    except RestockNotFoundError:
        return jsonify({"error": "Restock order not found"}), 404

    return jsonify({"ok": True}), 200
