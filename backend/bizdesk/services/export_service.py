# Overview: CSV exports of the user's products, sales and restock orders; built per request, never stored.

from __future__ import annotations

import csv
import io
from datetime import datetime

from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Product, Sale, RestockOrder
from ..money import money_str
from ..time_utils import utcnow, day_key

PRODUCT_HEADERS = [
    "Product Name", "Type", "Category", "SKU", "Barcode", "Price", "Cost",
    "Stock Quantity", "Low Stock Alert", "Description",
]

SALE_HEADERS = [
    "Invoice Number", "Customer", "Date", "Subtotal", "Tax", "Discount",
    "Total", "Payment Method", "Status",
]

RESTOCK_HEADERS = [
    "Order Number", "Supplier", "Contact", "Order Date", "Received Date",
    "Status", "Total Cost", "Notes",
]

EXPORT_KINDS = ("products", "sales", "restocks")


class ExportError(Exception):
    """Raised for an unknown export kind."""
    pass


def export_filename(kind: str, now: datetime | None = None) -> str:
    return f"{kind}-export-{day_key(now or utcnow())}.csv"


def _render(headers: list[str], rows) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def _date(value: datetime | None) -> str:
    return day_key(value) if value else ""


def _product_rows(user_id: int):
    products = (
        db.session.query(Product)
        .filter(Product.user_id == user_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    for p in products:
        yield [
            p.name,
            "Service" if p.is_service else "Product",
            p.category or "",
            p.sku,
            p.barcode or "",
            money_str(p.price),
            money_str(p.cost) or "",
            "N/A" if p.is_service else p.stock_quantity,
            "N/A" if p.is_service else p.low_stock_threshold,
            p.description or "",
        ]


def _sale_rows(user_id: int):
    sales = (
        db.session.query(Sale)
        .options(joinedload(Sale.customer))
        .filter(Sale.user_id == user_id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )
    for s in sales:
        yield [
            s.invoice_number,
            s.customer_name,
            _date(s.sale_date),
            money_str(s.subtotal),
            money_str(s.tax_amount),
            money_str(s.discount_amount),
            money_str(s.total_amount),
            s.payment_method,
            s.status,
        ]


def _restock_rows(user_id: int):
    orders = (
        db.session.query(RestockOrder)
        .filter(RestockOrder.user_id == user_id)
        .order_by(RestockOrder.order_date.desc(), RestockOrder.id.desc())
        .all()
    )
    for o in orders:
        yield [
            o.order_number,
            o.supplier_name,
            o.supplier_contact or "",
            _date(o.order_date),
            _date(o.received_date),
            o.status,
            money_str(o.total_cost),
            o.notes or "",
        ]


_EXPORTS = {
    "products": (PRODUCT_HEADERS, _product_rows),
    "sales": (SALE_HEADERS, _sale_rows),
    "restocks": (RESTOCK_HEADERS, _restock_rows),
}


def export_csv(*, user_id: int, kind: str, now: datetime | None = None) -> tuple[str, str]:
    """
    Render one export.

    Returns:
        (filename, csv_text)
    """
    if kind not in _EXPORTS:
        raise ExportError(f"Unknown export: {kind}")
    headers, rows = _EXPORTS[kind]
    return export_filename(kind, now), _render(headers, rows(user_id))
