# BizDesk API Tests - End-to-end business workflow
#
# Tests for:
# - Catalogue setup (products and services)
# - Recording a sale (stock decrement, audit trail)
# - Receiving a restock order (stock increment)
# - Reports and CSV export reflecting the above
# - Isolation between accounts

import uuid

import pytest

from tests.conftest import APIClient, TestFailure, assert_response


def _sku(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def _create_product(client: APIClient, **fields) -> dict:
    payload = {"name": "Live Widget", "sku": _sku("LW"), "price": "10.00", "cost": "4.00",
               "stock_quantity": 20, "low_stock_threshold": 5}
    payload.update(fields)
    response = client.post("/api/products", json=payload)
    assert_response(
        response, 201,
        scenario="Create product",
        code_location="backend/bizdesk/routes/products.py:create_product_route"
    )
    return response.json()


@pytest.mark.smoke
def test_health(client: APIClient):
    assert_response(
        client.get("/api/health"), 200,
        scenario="Health check on a fresh server",
        code_location="backend/bizdesk/routes/system.py:health"
    )


@pytest.mark.smoke
@pytest.mark.sales
def test_sale_moves_stock(owner_client: APIClient):
    """
    SCENARIO: Sell 2 of a product stocked at 20 and 1 service
    EXPECTED: HTTP 201, stock 18, one sale transaction, service untouched
    """
    product = _create_product(owner_client)
    service = _create_product(owner_client, name="Live Service", product_type="service", price="50.00")

    response = owner_client.post("/api/sales", json={
        "items": [
            {"product_id": product["id"], "quantity": 2},
            {"product_id": service["id"], "quantity": 1},
        ],
        "payment_method": "cash",
        "tax_rate": "10",
    })
    assert_response(
        response, 201,
        scenario="Record sale",
        code_location="backend/bizdesk/routes/sales.py:create_sale_route"
    )
    sale = response.json()["sale"]
    if sale["total_amount"] != "77.00":
        raise TestFailure(
            scenario="Sale total = (2 x 10.00 + 50.00) * 1.10",
            expected="77.00",
            actual=sale["total_amount"],
            likely_cause="Tax or subtotal arithmetic changed",
            code_location="backend/bizdesk/services/sales_service.py:compute_sale_totals",
            response=response
        )

    stock = owner_client.get(f"/api/products/{product['id']}").json()["stock_quantity"]
    assert stock == 18

    txns = owner_client.get("/api/stock-transactions", params={
        "reference_type": "sale", "reference_id": sale["id"],
    }).json()
    assert txns["count"] == 1
    assert txns["items"][0]["quantity_after"] == 18


@pytest.mark.restocks
def test_restock_receive(owner_client: APIClient):
    product = _create_product(owner_client, stock_quantity=10)

    response = owner_client.post("/api/restocks", json={
        "supplier_name": "Live Supplier",
        "items": [{"product_id": product["id"], "quantity": 5, "unit_cost": "3.00"}],
    })
    assert_response(
        response, 201,
        scenario="Create restock order",
        code_location="backend/bizdesk/routes/restocks.py:create_restock_route"
    )
    order_id = response.json()["restock_order"]["id"]

    assert_response(
        owner_client.post(f"/api/restocks/{order_id}/receive"), 200,
        scenario="Receive pending restock order",
        code_location="backend/bizdesk/routes/restocks.py:receive_restock_route"
    )
    assert_response(
        owner_client.post(f"/api/restocks/{order_id}/receive"), 409,
        scenario="Receive the same order twice",
        code_location="backend/bizdesk/services/restock_service.py:receive_restock_order"
    )

    assert owner_client.get(f"/api/products/{product['id']}").json()["stock_quantity"] == 15


def test_reports_and_export(owner_client: APIClient):
    report = owner_client.get("/api/reports/sales", params={"days": 7}).json()
    assert len(report["buckets"]) == 7

    response = owner_client.get("/api/exports/sales.csv")
    assert_response(
        response, 200,
        scenario="Download sales CSV",
        code_location="backend/bizdesk/routes/exports.py:export_route",
        expected_body_contains="Invoice Number,Customer,Date"
    )
    assert response.headers["content-disposition"].startswith('attachment; filename="sales-export-')


@pytest.mark.tenant
def test_accounts_are_isolated(owner_client: APIClient, other_client: APIClient):
    product = _create_product(owner_client)

    assert_response(
        other_client.get(f"/api/products/{product['id']}"), 404,
        scenario="Read another account's product",
        code_location="backend/bizdesk/services/products_service.py:get_product"
    )
    assert_response(
        other_client.post("/api/sales", json={"items": [{"product_id": product["id"], "quantity": 1}]}), 400,
        scenario="Sell another account's product",
        code_location="backend/bizdesk/services/sales_service.py:_price_lines"
    )
