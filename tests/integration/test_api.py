"""
Integration Tests - HTTP Surface
"""
from unittest.mock import AsyncMock, patch

import pytest

TENANT = "company-acme"
ANALYTICS = "/api/v1/analytics"


class TestEnvelope:
    """Tests for the analytics response envelope"""

    async def test_store_analytics(self, client, seeded, tenant_headers):
        response = await client.get(f"{ANALYTICS}/store", headers=tenant_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total_visits"] == 4
        assert body["data"]["store_conversion_rate"] == 25.0
        assert set(body["period"]) == {"start", "end"}
        assert "error" not in body

    async def test_all_time_routes_omit_period(self, client, seeded, tenant_headers):
        response = await client.get(f"{ANALYTICS}/profit", headers=tenant_headers)

        body = response.json()
        assert "period" not in body
        assert body["data"]["summary"]["net_profit"] == 100

    async def test_period_parameter_bounds_the_window(self, client, seeded, tenant_headers):
        response = await client.get(f"{ANALYTICS}/coupons", params={"period": "7"}, headers=tenant_headers)

        body = response.json()
        assert "period" in body
        assert body["data"]["coupons"][0]["usage_count"] == 1

    async def test_malformed_dates_fall_back(self, client, seeded, tenant_headers):
        response = await client.get(
            f"{ANALYTICS}/store", params={"startDate": "not-a-date"}, headers=tenant_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["total_visits"] == 4

    @pytest.mark.parametrize("params", [{"startDate": "20240101"}, {"period": "1000000"}])
    async def test_out_of_range_day_counts_fall_back(self, client, seeded, tenant_headers, params):
        response = await client.get(f"{ANALYTICS}/funnel", params=params, headers=tenant_headers)

        assert response.status_code == 200
        body = response.json()
        assert "error" not in body
        assert set(body["period"]) == {"start", "end"}

    @pytest.mark.parametrize(
        "path",
        [
            "/conversion-rate", "/products/top", "/products", "/daily", "/variations", "/categories",
            "/payment-methods", "/regions", "/coupons", "/cod-performance", "/abandoned-carts",
            "/customer-quality", "/profit", "/delivery-rate", "/order-status-time", "/product-health",
            "/returns", "/team-performance", "/funnel", "/stock-forecast",
        ],
    )
    async def test_every_dashboard_route_answers(self, client, seeded, tenant_headers, path):
        response = await client.get(f"{ANALYTICS}{path}", headers=tenant_headers)

        assert response.status_code == 200
        assert response.json()["success"] is True

    async def test_top_products_limit(self, client, seeded, tenant_headers):
        response = await client.get(f"{ANALYTICS}/products/top", params={"limit": 1}, headers=tenant_headers)

        (top,) = response.json()["data"]
        assert top["product_id"] == "prod-runner"


class TestErrors:
    """Tests for error statuses"""

    async def test_missing_tenant_is_forbidden(self, client, seeded):
        response = await client.get(f"{ANALYTICS}/store")

        assert response.status_code == 403
        assert response.json() == {"success": False, "message": "Company id is required"}

    async def test_foreign_product_is_not_found(self, client, seeded, tenant_headers):
        response = await client.get(f"{ANALYTICS}/products/prod-foreign/conversion", headers=tenant_headers)

        assert response.status_code == 404
        assert response.json()["success"] is False

    async def test_own_product_conversion(self, client, seeded, tenant_headers):
        response = await client.get(f"{ANALYTICS}/products/prod-runner/conversion", headers=tenant_headers)

        data = response.json()["data"]
        assert data["product"]["id"] == "prod-runner"
        assert data["views"] == 3
        assert data["add_to_carts"] == 2

    async def test_degrading_analyzer_answers_zero_payload(self, client, seeded, tenant_headers):
        with patch("src.analytics.funnel.funnel_analysis", AsyncMock(side_effect=RuntimeError("db down"))):
            response = await client.get(f"{ANALYTICS}/funnel", headers=tenant_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["error"] == "db down"
        assert [s["count"] for s in body["data"]["funnel_steps"]] == [0] * 6

    async def test_non_degrading_analyzer_answers_500(self, client, seeded, tenant_headers):
        with patch("src.analytics.operational.coupons", AsyncMock(side_effect=RuntimeError("db down"))):
            response = await client.get(f"{ANALYTICS}/coupons", headers=tenant_headers)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Failed to compute analytics", "error": "db down"}


class TestTrackingRoutes:
    """Tests for storefront tracking endpoints"""

    async def test_store_visit_with_query_tenant(self, client, seeded):
        response = await client.post(
            f"{ANALYTICS}/track/store-visit",
            params={"companyId": TENANT},
            json={"sessionId": "s-web", "landingPage": "/"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["id"]

    async def test_missing_fields(self, client, seeded):
        response = await client.post(f"{ANALYTICS}/track/store-visit", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "Missing required fields: companyId, sessionId"

    async def test_missing_body(self, client, seeded, tenant_headers):
        response = await client.post(f"{ANALYTICS}/track/conversion", headers=tenant_headers)

        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_unknown_company_is_accepted_silently(self, client, seeded):
        response = await client.post(
            f"{ANALYTICS}/track/store-visit",
            headers={"X-Company-Id": "ghost-company"},
            json={"sessionId": "s1"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["id"] is None

    async def test_foreign_product_view_is_not_found(self, client, seeded, tenant_headers):
        response = await client.post(
            f"{ANALYTICS}/track/product-view",
            headers=tenant_headers,
            json={"sessionId": "s1", "productId": "prod-foreign"},
        )

        assert response.status_code == 404

    async def test_conversion_event(self, client, seeded, tenant_headers):
        response = await client.post(
            f"{ANALYTICS}/track/conversion",
            headers=tenant_headers,
            json={"sessionId": "s1", "eventType": "checkout", "value": 12.5},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Conversion event recorded"


class TestPublicAndHealth:
    """Tests for public reads and health endpoints"""

    async def test_public_store_requires_header(self, client, seeded):
        response = await client.get(f"{ANALYTICS}/public/store", params={"companyId": TENANT})

        assert response.status_code == 403

    async def test_public_daily(self, client, seeded, tenant_headers):
        response = await client.get(f"{ANALYTICS}/public/daily", params={"period": "7"}, headers=tenant_headers)

        days = response.json()["data"]
        assert len(days) == 8
        assert sum(d["visits"] for d in days) == 4

    async def test_liveness(self, client):
        response = await client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    async def test_request_id_header(self, client):
        response = await client.get("/api/v1/health/live", headers={"X-Request-ID": "req-1"})

        assert response.headers["X-Request-ID"] == "req-1"
        assert "X-Response-Time" in response.headers
