# backend/bizdesk/routes/exports.py
"""CSV downloads: /api/exports/products.csv, sales.csv, restocks.csv"""
from flask import Blueprint, Response, g

from ..decorators import require_auth
from ..services.export_service import ExportError, export_csv

exports_bp = Blueprint("exports", __name__, url_prefix="/api/exports")


@exports_bp.get("/<kind>.csv")
@require_auth
def export_route(kind: str):
    try:
        filename, content = export_csv(user_id=g.user_id, kind=kind)
    except ExportError as exc:
        return {"error": str(exc)}, 404

    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
