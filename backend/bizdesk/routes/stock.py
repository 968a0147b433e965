# backend/bizdesk/routes/stock.py
"""Read-only access to the stock transaction audit trail."""
from flask import Blueprint, request, g

from ..services.stock_service import list_stock_transactions
from ..decorators import require_auth

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock-transactions")


@stock_bp.get("")
@require_auth
def list_stock_transactions_route():
    """
    Query params:
    - product_id: only this product's movements
    - reference_type / reference_id: movements caused by one sale or restock order
    - limit: default 200, max 1000
    """
    transactions = list_stock_transactions(
        user_id=g.user_id,
        product_id=request.args.get("product_id", type=int),
        reference_type=request.args.get("reference_type"),
        reference_id=request.args.get("reference_id", type=int),
        limit=request.args.get("limit", default=200, type=int),
    )
    return {"items": [t.to_dict() for t in transactions], "count": len(transactions)}
