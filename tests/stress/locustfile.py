"""
BizDesk Load Testing with Locust

Run with:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001

Or headless:
    locust -f tests/stress/locustfile.py --host http://127.0.0.1:5001 \
           --users 10 --spawn-rate 2 --run-time 60s --headless

Each simulated user registers its own account on start, so runs need no
seed data.

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Error rate < 1%
"""

import time
import random
import uuid
from typing import Optional, Dict, List

from locust import HttpUser, task, between, events


TEST_PASSWORD = "LoadTest123!"


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}

    def record(self, name: str, response_time: float, success: bool):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p95_idx = int(count * 0.95)
            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class BizDeskUser(HttpUser):
    """
    Business owner that signs up, stocks a few products, then works.
    """
    wait_time = between(0.5, 2)
    abstract = True

    token: Optional[str] = None

    def on_start(self):
        self.token = None
        self.product_ids: List[int] = []
        self.sale_ids: List[int] = []
        self.register()
        for _ in range(3):
            self.create_product()

    def register(self):
        response = self.client.post(
            "/api/auth/register",
            json={
                "email": f"load-{uuid.uuid4().hex[:12]}@bizdesk.test",
                "password": TEST_PASSWORD,
                "business_name": "Load Test Shop",
            },
            name="auth/register"
        )
        if response.status_code == 201:
            self.token = response.json().get("token")

    def get_headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _timed(self, name: str, method: str, path: str, ok=(200,), **kwargs):
        start = time.time()
        response = self.client.request(method, path, headers=self.get_headers(), name=name, **kwargs)
        metrics.record(name, (time.time() - start) * 1000, response.status_code in ok)
        return response

    def create_product(self):
        response = self._timed(
            "products/create", "POST", "/api/products", ok=(201,),
            json={
                "name": f"Load Product {uuid.uuid4().hex[:6]}",
                "sku": f"LD-{uuid.uuid4().hex[:10]}",
                "price": f"{random.randint(100, 5000) / 100:.2f}",
                "cost": "1.00",
                "stock_quantity": 1000,
            },
        )
        if response.status_code == 201:
            self.product_ids.append(response.json()["id"])


class BrowsingUser(BizDeskUser):
    """Reads catalogue, reports and dashboard."""
    weight = 3

    @task(5)
    def list_products(self):
        self._timed("products/list", "GET", "/api/products")

    @task(3)
    def dashboard(self):
        self._timed("reports/dashboard", "GET", "/api/reports/dashboard")

    @task(2)
    def sales_report(self):
        days = random.choice([7, 30, 90, 365])
        self._timed("reports/sales", "GET", f"/api/reports/sales?days={days}")

    @task(1)
    def health_check(self):
        self._timed("system/health", "GET", "/api/health")


class SalesUser(BizDeskUser):
    """Records sales, mostly against the same few products."""
    weight = 2

    @task(4)
    def record_sale(self):
        if not self.product_ids:
            return
        chosen = random.sample(self.product_ids, k=min(2, len(self.product_ids)))
        response = self._timed(
            "sales/create", "POST", "/api/sales", ok=(201,),
            json={
                "items": [{"product_id": pid, "quantity": random.randint(1, 3)} for pid in chosen],
                "payment_method": random.choice(["cash", "card", "digital"]),
                "tax_rate": "8.25",
            },
        )
        if response.status_code == 201:
            self.sale_ids.append(response.json()["sale"]["id"])

    @task(2)
    def preview_sale(self):
        if not self.product_ids:
            return
        self._timed(
            "sales/preview", "POST", "/api/sales/preview",
            json={"items": [{"product_id": random.choice(self.product_ids), "quantity": 1}]},
        )

    @task(1)
    def list_sales(self):
        self._timed("sales/list", "GET", "/api/sales")


class InventoryUser(BizDeskUser):
    """Creates and receives restock orders."""
    weight = 1

    @task(3)
    def restock_and_receive(self):
        if not self.product_ids:
            return
        response = self._timed(
            "restocks/create", "POST", "/api/restocks", ok=(201,),
            json={
                "supplier_name": "Load Supplier",
                "items": [{
                    "product_id": random.choice(self.product_ids),
                    "quantity": random.randint(1, 10),
                    "unit_cost": f"{random.randint(100, 1000) / 100:.2f}",
                }],
            },
        )
        if response.status_code != 201:
            return
        order_id = response.json()["restock_order"]["id"]
        self._timed("restocks/receive", "POST", f"/api/restocks/{order_id}/receive")

    @task(5)
    def list_transactions(self):
        self._timed("stock/transactions", "GET", "/api/stock-transactions")

    @task(1)
    def export_products(self):
        self._timed("exports/products", "GET", "/api/exports/products.csv")


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    total_requests = 0
    total_errors = 0
    all_pass = True

    for name, stats in sorted(summary.items()):
        total_requests += stats["count"]
        total_errors += stats["errors"]

        p95_threshold = 1000 if any(w in name for w in ("create", "receive", "register")) else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1

        status = "PASS" if passed else "FAIL"
        if not passed:
            all_pass = False

        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    print("-" * 80)
    print(f"{'TOTAL':<30} {total_requests:>8} {total_errors:>8} {total_errors/max(total_requests,1)*100:>7.2f}%")
    print("=" * 80)

    if all_pass:
        print("\n[PASS] All endpoints within thresholds")
    else:
        print("\n[FAIL] Some endpoints exceeded thresholds")
        print("  - Reads (list/report): P95 < 500ms, Error rate < 1%")
        print("  - Writes (create/receive): P95 < 1000ms, Error rate < 1%")

    print("=" * 80)
