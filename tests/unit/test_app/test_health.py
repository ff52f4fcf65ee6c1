"""Tests for the health and metrics endpoints."""

from __future__ import annotations

import pytest

from spott_service.core.settings import clear_all_settings_caches


@pytest.mark.unit
class TestHealth:
    """Liveness always answers; readiness needs the gateway key."""

    @pytest.mark.asyncio
    async def test_liveness(self, client):
        response = await client.get("/health/")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["service"] == "spott-service"
        assert body["version"] == "0.1.0"

    @pytest.mark.asyncio
    async def test_not_ready_without_gateway_key(self, client):
        response = await client.get("/health/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["type"] == "service-unavailable"
        assert body["checks"] == {"gateway": False, "assistant": False}

    @pytest.mark.asyncio
    async def test_ready_with_gateway_key(self, client, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GATEWAY_ANON_KEY", "anon-key")
        clear_all_settings_caches()

        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "checks": {"gateway": True, "assistant": False}}

    @pytest.mark.asyncio
    async def test_responses_carry_request_id(self, client):
        response = await client.get("/health/", headers={"X-Request-ID": "probe-1"})

        assert response.headers["X-Request-ID"] == "probe-1"
        assert "X-Process-Time" in response.headers


@pytest.mark.unit
@pytest.mark.asyncio
async def test_metrics_exposes_request_counters(client):
    await client.get("/health/")

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'http_requests_total{method="GET",endpoint="/health/",status="200"}' in response.text
