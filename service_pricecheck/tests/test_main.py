"""
Unit tests for the price-check HTTP service.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from service_pricecheck.app.main import PriceCheckService, _is_truthy, create_app
from shared.config import PriceCheckConfig
from shared.errors import UpstreamError


def make_config(**overrides):
    settings = {
        "marketplace_api_token": "test-token",
        "dedup_grace_seconds": 0.0,
        "enable_docs": False,
    }
    settings.update(overrides)
    return PriceCheckConfig(**settings)


class TestPriceCheckService:
    """Test cases for PriceCheckService."""

    @pytest.fixture
    def mock_items(self):
        """Mock marketplace item summaries."""
        return [
            {"title": "Apple iPhone 12", "price": {"value": "410.00"}, "lastSoldDate": "2024-05-30"},
            {"title": "iPhone 12 64GB", "price": {"value": "390.00"}, "lastSoldDate": "2024-05-29"},
            {"title": "iPhone 12 Black", "price": {"value": "400.00"}, "lastSoldDate": "2024-05-27"},
        ]

    @pytest.fixture
    def service(self, mock_items):
        """Create PriceCheckService with a stubbed marketplace search."""
        svc = PriceCheckService(make_config())
        svc.marketplace_client.search_sales = AsyncMock(return_value=mock_items)
        return svc

    @pytest.fixture
    def client(self, service):
        """Create test client; the context keeps one event loop across requests."""
        with TestClient(service.app) as test_client:
            yield test_client

    def test_create_app(self):
        """Test app creation."""
        app = create_app(make_config())
        assert app.title == "Pricecheck Service"

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("1", True), ("YES", True), ("false", False), ("", False), (None, False),
    ])
    def test_is_truthy(self, value, expected):
        assert _is_truthy(value) is expected

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "pricecheck"
        assert "rate_limiting" in data["capabilities"]

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {
            "marketplace_token": "configured",
            "marketplace_circuit": "closed",
        }

    def test_health_check_reports_missing_token(self):
        service = PriceCheckService(make_config(marketplace_api_token=None))

        with TestClient(service.app) as client:
            response = client.get("/health")

        assert response.json()["dependencies"]["marketplace_token"] == "missing"

    def test_price_check_requires_item_name(self, client, service):
        """Missing or blank itemName is rejected before any upstream work."""
        for params in ({}, {"itemName": "   "}):
            response = client.get("/api/price-check", params=params)

            assert response.status_code == 400
            assert response.json()["code"] == "VALIDATION_ERROR"

        service.marketplace_client.search_sales.assert_not_called()

    def test_price_check_rejects_out_of_range_priority(self, client):
        response = client.get("/api/price-check", params={"itemName": "iPhone 12", "priority": 500})

        assert response.status_code == 422

    def test_price_check_success_then_cached(self, client, service):
        """A repeated lookup is served from the cache without a second upstream call."""
        params = {"itemName": "iPhone 12", "brand": "Apple", "condition": "used"}

        first = client.get("/api/price-check", params=params)
        second = client.get("/api/price-check", params=params)

        assert first.status_code == 200
        data = first.json()
        assert data["average_price"] == 400.0
        assert data["item_count"] == 3
        assert data["cached"] is False
        assert second.json()["cached"] is True
        assert second.json()["average_price"] == 400.0

        service.marketplace_client.search_sales.assert_called_once_with(
            "iPhone 12", model=None, brand="Apple", condition="used"
        )

    def test_fingerprint_ignores_case_and_whitespace(self, client, service):
        client.get("/api/price-check", params={"itemName": "iPhone 12"})
        response = client.get("/api/price-check", params={"itemName": "  IPHONE 12 "})

        assert response.json()["cached"] is True
        assert service.marketplace_client.search_sales.call_count == 1

    def test_quota_exceeded_for_standard_tier(self, mock_items):
        """Standard callers get 429 once the daily quota is spent; premium callers do not."""
        service = PriceCheckService(make_config(daily_call_limit=0))
        service.marketplace_client.search_sales = AsyncMock(return_value=mock_items)

        with TestClient(service.app) as client:
            rejected = client.get("/api/price-check", params={"itemName": "iPhone 12"})
            premium = client.get(
                "/api/price-check", params={"itemName": "Galaxy S21", "premium": "true"}
            )

        assert rejected.status_code == 429
        body = rejected.json()
        assert body["code"] == "QUOTA_EXCEEDED"
        assert body["details"] == {"daily_limit": 0, "daily_call_count": 0}
        assert premium.status_code == 200
        assert service.marketplace_client.search_sales.call_count == 1

    def test_upstream_error(self, client, service):
        """Marketplace failures surface as 502 with the caller's request ID."""
        service.marketplace_client.search_sales.side_effect = UpstreamError(
            "marketplace", "Failed to fetch sales data: 503", details={"status_code": 503}
        )

        response = client.get(
            "/api/price-check",
            params={"itemName": "iPhone 12"},
            headers={"X-Request-ID": "req-123"},
        )

        assert response.status_code == 502
        body = response.json()
        assert body["code"] == "UPSTREAM_ERROR"
        assert body["request_id"] == "req-123"
        assert body["details"] == {"status_code": 503}
        assert response.headers["X-Request-ID"] == "req-123"

    def test_stats(self, client):
        """Stats expose cache, pooling and rate limiter state."""
        client.get("/api/price-check", params={"itemName": "iPhone 12"})

        response = client.get("/api/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["cache"]["entry_count"] == 1
        assert data["cache"]["miss_count"] == 1
        assert data["rate_limiter"]["daily_call_count"] == 1
        assert data["rate_limiter"]["daily_limit_remaining"] == 4999
        assert "active_count" in data["pooling"]
        assert "timestamp" in data
        assert "cache_cleared" not in data

    def test_stats_clear_cache(self, client, service):
        client.get("/api/price-check", params={"itemName": "iPhone 12"})

        response = client.get("/api/stats", params={"clearCache": "true"})

        assert response.json()["cache_cleared"] is True
        assert response.json()["cache"]["entry_count"] == 0

        again = client.get("/api/price-check", params={"itemName": "iPhone 12"})
        assert again.json()["cached"] is False
        assert service.marketplace_client.search_sales.call_count == 2

    def test_metrics_endpoint(self, client):
        """Test Prometheus metrics endpoint."""
        client.get("/api/price-check", params={"itemName": "iPhone 12"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cache_misses_total" in response.text
        assert "upstream_calls_total" in response.text

    def test_request_id_generated(self, client):
        response = client.get("/")

        assert response.headers["X-Request-ID"]
