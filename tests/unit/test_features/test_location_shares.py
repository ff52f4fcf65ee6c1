"""Unit tests for active location shares."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from spott_service.features.shares import LocationSharesSlice
from spott_service.infra.gateway.protocol import ChangeOperation
from tests.conftest import PRINCIPAL_ID

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _at(minutes: int) -> str:
    return (NOW + timedelta(minutes=minutes)).isoformat()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def shares_gateway(gateway):
    gateway.tables["user_location_shares"] = [
        {"id": "sh1", "user_id": "amy", "location_name": "Cafe", "created_at": _at(-30), "expires_at": _at(30)},
        {"id": "sh2", "user_id": "bob", "location_name": "Park", "created_at": _at(-10), "expires_at": _at(5)},
        {"id": "sh3", "user_id": "amy", "location_name": "Old", "created_at": _at(-90), "expires_at": _at(-1)},
        {"id": "sh4", "user_id": "ghost", "location_name": "Gone", "created_at": _at(-5), "expires_at": _at(60)},
    ]
    gateway.tables["profiles"] = [
        {"id": "amy", "username": "amy"},
        {"id": "bob", "username": "bob"},
    ]
    return gateway


@pytest.mark.unit
class TestLocationShares:
    """Unexpired shares with a sharer profile, newest first."""

    @pytest.mark.asyncio
    async def test_load_filters_and_orders(self, shares_gateway, bus, realtime_settings, clock):
        shares = LocationSharesSlice(shares_gateway, bus, PRINCIPAL_ID, settings=realtime_settings, clock=clock)

        async with shares:
            assert [s.id for s in shares.state.shares] == ["sh2", "sh1"]
            assert shares.state.shares[0].user.username == "bob"

    @pytest.mark.asyncio
    async def test_prune_expired_is_local(self, shares_gateway, bus, realtime_settings, clock):
        shares = LocationSharesSlice(shares_gateway, bus, PRINCIPAL_ID, settings=realtime_settings, clock=clock)

        async with shares:
            selects = shares_gateway.call_count("select", "user_location_shares")
            clock.now = NOW + timedelta(minutes=10)

            assert shares.prune_expired() == 1
            assert [s.id for s in shares.state.shares] == ["sh1"]
            assert shares.prune_expired() == 0
            assert shares_gateway.call_count("select", "user_location_shares") == selects

    @pytest.mark.asyncio
    async def test_backstop_prunes_then_reloads(self, shares_gateway, bus, realtime_settings, clock):
        shares = LocationSharesSlice(shares_gateway, bus, PRINCIPAL_ID, settings=realtime_settings, clock=clock)

        async with shares:
            clock.now = NOW + timedelta(minutes=45)
            await shares.backstop()

            assert shares.state.shares == ()

    @pytest.mark.asyncio
    async def test_share_change_reloads(self, shares_gateway, live_bus, realtime_settings, clock):
        shares = LocationSharesSlice(
            shares_gateway, live_bus, PRINCIPAL_ID, settings=realtime_settings, clock=clock
        )

        async with shares:
            row = {"id": "sh5", "user_id": "amy", "location_name": "Bar", "created_at": _at(0), "expires_at": _at(15)}
            shares_gateway.tables["user_location_shares"].append(row)
            shares_gateway.last_channel.emit("user_location_shares", ChangeOperation.INSERT, row)
            await shares.wait_idle()

            assert shares.state.shares[0].id == "sh5"

    @pytest.mark.asyncio
    async def test_signed_out_is_empty(self, shares_gateway, bus, realtime_settings, clock):
        shares = LocationSharesSlice(shares_gateway, bus, None, settings=realtime_settings, clock=clock)

        async with shares:
            assert shares.state.shares == ()

        assert shares_gateway.calls == []
