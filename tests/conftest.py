"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated environment and settings caches
    - Gateway Fixtures: in-memory gateway and the realtime bus on top of it
    - Application Fixtures: FastAPI app and HTTP client
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from spott_service.core.settings import clear_all_settings_caches
from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.core.settings.state import StateSettings
from spott_service.infra.realtime.bus import RealtimeBus
from tests.fixtures import FakeGateway

# Tests never talk to a real backend or LLM gateway
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.pop("GATEWAY_ANON_KEY", None)
os.environ.pop("AI_API_KEY", None)

PRINCIPAL_ID = "user-me"


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Point local state at a temp dir and reload settings around every test."""
    monkeypatch.setenv("STATE_DIRECTORY", str(tmp_path / "state"))
    clear_all_settings_caches()
    yield
    clear_all_settings_caches()


@pytest.fixture
def realtime_settings() -> RealtimeSettings:
    """Realtime settings with every backstop poll disabled.

    Tests drive refreshes explicitly, so no timers run in the background.
    """
    return RealtimeSettings(
        notifications_poll_interval=0,
        engagement_poll_interval=0,
        pin_engagement_poll_interval=0,
        location_stats_poll_interval=0,
        city_engagement_poll_interval=0,
        saved_cities_poll_interval=0,
        location_shares_poll_interval=0,
        messages_poll_interval=0,
        engagement_chunk_size=2,
    )


@pytest.fixture
def state_settings(tmp_path) -> StateSettings:
    return StateSettings(directory=tmp_path / "recent", recent_searches_limit=5)


# ============================================================================
# Gateway Fixtures
# ============================================================================


@pytest.fixture
def gateway() -> FakeGateway:
    """Empty in-memory gateway; tests seed ``gateway.tables`` as needed."""
    return FakeGateway()


@pytest.fixture
async def bus(gateway, realtime_settings) -> AsyncGenerator[RealtimeBus]:
    """Realtime bus over the fake gateway, closed after the test."""
    realtime_bus = RealtimeBus(gateway, realtime_settings)
    yield realtime_bus
    await realtime_bus.close()


@pytest.fixture
async def live_bus(bus) -> RealtimeBus:
    """Bus with a live session for ``PRINCIPAL_ID``."""
    await bus.ensure_session_for_principal(PRINCIPAL_ID)
    return bus


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app():
    """Fresh FastAPI application; lifespan does not run under ASGITransport."""
    from spott_service.app.main import create_app

    return create_app()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client bound to ``app``."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
