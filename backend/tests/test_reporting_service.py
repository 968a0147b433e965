"""
Reporting tests: window bucketing, totals, top products, dashboard counters.

All reports are generated against a fixed `now` so bucket keys are stable.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from bizdesk.services import sales_service, reporting_service
from bizdesk.services.reporting_service import ReportError, report_window

NOW = datetime(2026, 10, 19, 15, 0, 0)


def _sell(user, product, quantity, when, **kwargs):
    return sales_service.record_sale(
        user_id=user.id,
        items=[{"product_id": product.id, "quantity": quantity}],
        sale_date=when,
        **kwargs,
    )


@pytest.fixture
def sales_history(owner, product_a, product_b):
    """
    20.00 today, 15.00 on the first day of the 7-day window, 10.00 just
    before it, 10.00 in August, and one sale after NOW.
    """
    _sell(owner, product_a, 2, datetime(2026, 10, 19, 10, 0))
    _sell(owner, product_b, 3, datetime(2026, 10, 13, 0, 0))
    _sell(owner, product_a, 1, datetime(2026, 10, 12, 23, 0))
    _sell(owner, product_b, 2, datetime(2026, 8, 5, 12, 0))
    _sell(owner, product_a, 1, datetime(2026, 10, 20, 9, 0))


class TestReportWindow:

    def test_daily_window_opens_at_midnight(self):
        start, granularity, keys = report_window(7, NOW)
        assert start == datetime(2026, 10, 13, 0, 0)
        assert granularity == "day"
        assert keys == [
            "2026-10-13", "2026-10-14", "2026-10-15", "2026-10-16",
            "2026-10-17", "2026-10-18", "2026-10-19",
        ]

    def test_thirty_days_is_daily(self):
        start, granularity, keys = report_window(30, NOW)
        assert granularity == "day"
        assert len(keys) == 30
        assert keys[0] == "2026-09-20"
        assert keys[-1] == "2026-10-19"

    def test_longer_windows_are_monthly(self):
        start, granularity, keys = report_window(90, NOW)
        assert start == datetime(2026, 7, 21, 15, 0)
        assert granularity == "month"
        assert keys == ["2026-07", "2026-08", "2026-09", "2026-10"]

        _, _, year_keys = report_window(365, NOW)
        assert year_keys[0] == "2025-10"
        assert year_keys[-1] == "2026-10"
        assert len(year_keys) == 13


class TestSalesReport:

    def test_seven_day_report(self, owner, sales_history):
        report = reporting_service.sales_report(user_id=owner.id, days=7, now=NOW)

        assert report["granularity"] == "day"
        assert report["start"] == "2026-10-13T00:00:00Z"
        assert report["end"] == "2026-10-19T15:00:00Z"
        assert len(report["buckets"]) == 7

        by_period = {b["period"]: b for b in report["buckets"]}
        assert by_period["2026-10-13"] == {"period": "2026-10-13", "sales": 1, "revenue": "15.00"}
        assert by_period["2026-10-19"] == {"period": "2026-10-19", "sales": 1, "revenue": "20.00"}
        assert by_period["2026-10-16"] == {"period": "2026-10-16", "sales": 0, "revenue": "0.00"}

        assert report["totals"] == {
            "total_revenue": "35.00",
            "total_sales": 2,
            "average_order_value": "17.50",
            "top_selling_product": "Product A",
        }

    def test_bucket_revenue_adds_up_to_total(self, owner, sales_history):
        for days in reporting_service.VALID_WINDOWS:
            report = reporting_service.sales_report(user_id=owner.id, days=days, now=NOW)
            bucket_sum = sum(Decimal(b["revenue"]) for b in report["buckets"])
            assert bucket_sum == Decimal(report["totals"]["total_revenue"])
            assert sum(b["sales"] for b in report["buckets"]) == report["totals"]["total_sales"]

    def test_thirty_day_report_excludes_outside_sales(self, owner, sales_history):
        report = reporting_service.sales_report(user_id=owner.id, days=30, now=NOW)

        # August and post-NOW sales are out of the window
        assert report["totals"]["total_revenue"] == "45.00"
        assert report["totals"]["total_sales"] == 3
        assert report["totals"]["average_order_value"] == "15.00"

        assert report["top_products"] == [
            {"product_id": report["top_products"][0]["product_id"], "product_name": "Product A",
             "quantity": 3, "revenue": "30.00"},
            {"product_id": report["top_products"][1]["product_id"], "product_name": "Product B",
             "quantity": 3, "revenue": "15.00"},
        ]

    def test_ninety_day_report_buckets_by_month(self, owner, sales_history):
        report = reporting_service.sales_report(user_id=owner.id, days=90, now=NOW)

        by_period = {b["period"]: b for b in report["buckets"]}
        assert list(by_period) == ["2026-07", "2026-08", "2026-09", "2026-10"]
        assert by_period["2026-08"]["revenue"] == "10.00"
        assert by_period["2026-10"]["sales"] == 3
        assert report["totals"]["total_revenue"] == "55.00"

    def test_top_products_limited_and_ranked(self, db_session, owner):
        from conftest import make_product

        products = [
            make_product(db_session, owner, name=f"Item {i}", sku=f"IT-{i}", price=Decimal("1.00"))
            for i in range(1, 8)
        ]
        # Item n sells n units, so revenue ranks Item 7 first
        for i, product in enumerate(products, start=1):
            _sell(owner, product, i, datetime(2026, 10, 18, 12, 0))

        report = reporting_service.sales_report(user_id=owner.id, days=7, now=NOW)

        names = [p["product_name"] for p in report["top_products"]]
        assert names == ["Item 7", "Item 6", "Item 5", "Item 4", "Item 3"]
        assert report["top_products"][0]["revenue"] == "7.00"
        assert report["totals"]["top_selling_product"] == "Item 7"

    def test_empty_report(self, owner):
        report = reporting_service.sales_report(user_id=owner.id, days=7, now=NOW)
        assert all(b["sales"] == 0 for b in report["buckets"])
        assert report["top_products"] == []
        assert report["totals"] == {
            "total_revenue": "0.00",
            "total_sales": 0,
            "average_order_value": "0.00",
            "top_selling_product": "N/A",
        }

    def test_other_users_sales_excluded(self, other_owner, sales_history):
        report = reporting_service.sales_report(user_id=other_owner.id, days=30, now=NOW)
        assert report["totals"]["total_sales"] == 0

    @pytest.mark.parametrize("days", [0, 1, 14, 60, 366, -7])
    def test_rejects_unsupported_windows(self, owner, days):
        with pytest.raises(ReportError):
            reporting_service.sales_report(user_id=owner.id, days=days, now=NOW)


class TestDashboard:

    def test_summary_counters(self, owner, product_a, product_b, service_product, customer, sales_history):
        summary = reporting_service.dashboard_summary(user_id=owner.id, now=NOW)

        assert summary["product_count"] == 3
        assert summary["customer_count"] == 1
        assert summary["sale_count"] == 5
        # Product B: 10 - 3 - 2 = 5 at threshold 5; services never count
        assert summary["low_stock_count"] == 1
        # Everything up to NOW; the post-NOW sale is left out
        assert summary["total_revenue"] == "55.00"
        assert summary["revenue_today"] == "20.00"
        assert summary["revenue_last_7_days"] == "45.00"
        assert summary["revenue_last_30_days"] == "45.00"
        assert summary["generated_at"] == "2026-10-19T15:00:00Z"

        recent = summary["recent_sales"]
        assert len(recent) == 5
        assert recent[0]["sale_date"] == "2026-10-20T09:00:00Z"
