# Overview: Read-only sales reporting; bucketed revenue, top products, dashboard counters.

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

from ..extensions import db
from ..models import Sale, SaleItem, Product, Customer
from ..money import ZERO, quantize_cents, money_str
from ..time_utils import utcnow, to_utc_z, start_of_day, day_key, month_key

"""
Sales report windows

- days <= 30: one bucket per calendar day (YYYY-MM-DD) for the `days` days
  ending today. The window opens at midnight of the first bucket day.
- otherwise: window opens at now - days, one bucket per calendar month
  (YYYY-MM) from the opening month through the current month.

The window always closes at `now`, and every sale inside it lands in exactly
one bucket, so bucket revenue adds up to the report total.
"""

VALID_WINDOWS = (7, 30, 90, 365)
DAILY_MAX_DAYS = 30
TOP_PRODUCTS_LIMIT = 5


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


def _month_starts(first: date, last: date) -> list[date]:
    months = []
    current = date(first.year, first.month, 1)
    while current <= last:
        months.append(current)
        if current.month == 12:
            current = date(current.year + 1, 1, 1)
        else:
            current = date(current.year, current.month + 1, 1)
    return months


def report_window(days: int, now: datetime) -> tuple[datetime, str, list[str]]:
    """Return (window_start, granularity, bucket keys) for a report over `days` ending at `now`."""
    if days <= DAILY_MAX_DAYS:
        today = now.date()
        first = today - timedelta(days=days - 1)
        keys = [day_key(first + timedelta(days=i)) for i in range(days)]
        return start_of_day(first), "day", keys

    window_start = now - timedelta(days=days)
    keys = [month_key(m) for m in _month_starts(window_start.date(), now.date())]
    return window_start, "month", keys


def sales_report(*, user_id: int, days: int, now: datetime | None = None) -> dict:
    """
    Revenue per bucket, top products and totals for the user's sales in the window.

    Raises:
        ReportError: days is not one of VALID_WINDOWS
    """
    if days not in VALID_WINDOWS:
        raise ReportError(f"days must be one of: {', '.join(str(d) for d in VALID_WINDOWS)}")

    now = now or utcnow()
    window_start, granularity, keys = report_window(days, now)
    key_for = day_key if granularity == "day" else month_key

    sales = (
        db.session.query(Sale.id, Sale.sale_date, Sale.total_amount)
        .filter(
            Sale.user_id == user_id,
            Sale.sale_date >= window_start,
            Sale.sale_date <= now,
        )
        .all()
    )

    buckets = {key: {"period": key, "sales": 0, "revenue": ZERO} for key in keys}
    total_revenue = ZERO
    for row in sales:
        amount = Decimal(row.total_amount)
        bucket = buckets[key_for(row.sale_date)]
        bucket["sales"] += 1
        bucket["revenue"] += amount
        total_revenue += amount

    top_products = _top_products(user_id, window_start, now)

    total_sales = len(sales)
    average = quantize_cents(total_revenue / total_sales) if total_sales else ZERO

    return {
        "days": days,
        "granularity": granularity,
        "start": to_utc_z(window_start),
        "end": to_utc_z(now),
        "buckets": [
            {"period": b["period"], "sales": b["sales"], "revenue": money_str(b["revenue"])}
            for b in (buckets[key] for key in keys)
        ],
        "top_products": top_products,
        "totals": {
            "total_revenue": money_str(total_revenue),
            "total_sales": total_sales,
            "average_order_value": money_str(average),
            "top_selling_product": top_products[0]["product_name"] if top_products else "N/A",
        },
    }


def _top_products(user_id: int, window_start: datetime, now: datetime) -> list[dict]:
    rows = (
        db.session.query(SaleItem.product_id, Product.name, SaleItem.quantity, SaleItem.total_price)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id)
        .filter(
            Sale.user_id == user_id,
            Sale.sale_date >= window_start,
            Sale.sale_date <= now,
        )
        .all()
    )

    grouped: dict[int, dict] = {}
    for product_id, name, quantity, total_price in rows:
        entry = grouped.setdefault(product_id, {
            "product_id": product_id,
            "product_name": name,
            "quantity": 0,
            "revenue": ZERO,
        })
        entry["quantity"] += quantity
        entry["revenue"] += Decimal(total_price)

    ranked = sorted(
        grouped.values(),
        key=lambda e: (-e["revenue"], -e["quantity"], e["product_id"]),
    )[:TOP_PRODUCTS_LIMIT]

    return [{**e, "revenue": money_str(e["revenue"])} for e in ranked]


def _revenue_since(user_id: int, since: datetime | None, now: datetime) -> Decimal:
    q = db.session.query(Sale.total_amount).filter(Sale.user_id == user_id, Sale.sale_date <= now)
    if since is not None:
        q = q.filter(Sale.sale_date >= since)
    return sum((Decimal(amount) for (amount,) in q.all()), ZERO)


def dashboard_summary(*, user_id: int, now: datetime | None = None) -> dict:
    now = now or utcnow()

    product_count = db.session.query(Product.id).filter(Product.user_id == user_id).count()
    customer_count = db.session.query(Customer.id).filter(Customer.user_id == user_id).count()
    sale_count = db.session.query(Sale.id).filter(Sale.user_id == user_id).count()

    low_stock_count = (
        db.session.query(Product.id)
        .filter(
            Product.user_id == user_id,
            Product.is_service.is_(False),
            Product.stock_quantity <= Product.low_stock_threshold,
        )
        .count()
    )

    recent = (
        db.session.query(Sale)
        .filter(Sale.user_id == user_id)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .limit(5)
        .all()
    )

    return {
        "product_count": product_count,
        "customer_count": customer_count,
        "sale_count": sale_count,
        "low_stock_count": low_stock_count,
        "total_revenue": money_str(_revenue_since(user_id, None, now)),
        "revenue_today": money_str(_revenue_since(user_id, start_of_day(now.date()), now)),
        "revenue_last_7_days": money_str(_revenue_since(user_id, now - timedelta(days=7), now)),
        "revenue_last_30_days": money_str(_revenue_since(user_id, now - timedelta(days=30), now)),
        "recent_sales": [s.to_dict() for s in recent],
        "generated_at": to_utc_z(now),
    }
