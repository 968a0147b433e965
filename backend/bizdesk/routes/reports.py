# backend/bizdesk/routes/reports.py
from flask import Blueprint, jsonify, request, g

from ..decorators import require_auth
from ..services.reporting_service import ReportError, sales_report, dashboard_summary

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
def sales_report_route():
    """?days=7|30|90|365 (default 30)"""
    days = request.args.get("days", default=30, type=int)
    try:
        return jsonify(sales_report(user_id=g.user_id, days=days))
    except ReportError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    return jsonify(dashboard_summary(user_id=g.user_id))
