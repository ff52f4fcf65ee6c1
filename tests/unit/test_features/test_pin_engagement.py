"""Unit tests for pin engagement (save totals and followed savers)."""

from __future__ import annotations

import pytest

from spott_service.features.engagement import PinEngagementSlice
from spott_service.infra.gateway.protocol import ChangeOperation
from tests.conftest import PRINCIPAL_ID


@pytest.fixture
def pin_gateway(gateway):
    gateway.tables["user_saved_locations"] = [
        {"id": "s1", "user_id": "amy", "location_id": "L1"},
        {"id": "s2", "user_id": "bob", "location_id": "L1"},
        {"id": "s3", "user_id": "amy", "location_id": "L2"},
    ]
    gateway.tables["saved_places"] = [
        {"id": "sp1", "user_id": "cat", "place_id": "ChIJ1"},
        {"id": "sp2", "user_id": "dan", "place_id": "ChIJ2"},
    ]
    gateway.tables["follows"] = [
        {"id": "f1", "follower_id": PRINCIPAL_ID, "following_id": "cat"},
        {"id": "f2", "follower_id": PRINCIPAL_ID, "following_id": "amy"},
        {"id": "f3", "follower_id": "bob", "following_id": PRINCIPAL_ID},
    ]
    gateway.tables["profiles"] = [
        {"id": "amy", "username": "zed_amy"},
        {"id": "bob", "username": "bob"},
        {"id": "cat", "username": "alpha_cat"},
    ]
    return gateway


@pytest.mark.unit
class TestPinEngagement:
    """Totals pool both collections; followed savers are profile rows."""

    def test_counts_unknown_before_load(self, pin_gateway, bus, realtime_settings):
        pin = PinEngagementSlice(pin_gateway, bus, "L1", "ChIJ1", PRINCIPAL_ID, settings=realtime_settings)

        assert pin.state.total_saves is None

    @pytest.mark.asyncio
    async def test_totals_and_followed_savers(self, pin_gateway, bus, realtime_settings):
        pin = PinEngagementSlice(pin_gateway, bus, "L1", "ChIJ1", PRINCIPAL_ID, settings=realtime_settings)

        async with pin:
            assert pin.state.total_saves == 3
            assert [p.username for p in pin.state.followed_users] == ["alpha_cat", "zed_amy"]

    @pytest.mark.asyncio
    async def test_place_only_pin(self, pin_gateway, bus, realtime_settings):
        pin = PinEngagementSlice(pin_gateway, bus, None, "ChIJ2", settings=realtime_settings)

        async with pin:
            assert pin.state.total_saves == 1
            assert pin.state.followed_users == ()

    @pytest.mark.asyncio
    async def test_no_ids_is_unscoped(self, pin_gateway, bus, realtime_settings):
        pin = PinEngagementSlice(pin_gateway, bus, None, settings=realtime_settings)

        async with pin:
            assert pin.state.total_saves == 0

        assert pin_gateway.calls == []

    @pytest.mark.asyncio
    async def test_count_failure_gives_zero(self, pin_gateway, bus, realtime_settings):
        pin_gateway.fail("count", "user_saved_locations")
        pin = PinEngagementSlice(pin_gateway, bus, "L1", settings=realtime_settings)

        async with pin:
            assert pin.state.total_saves == 0

    @pytest.mark.asyncio
    async def test_save_for_this_pin_refreshes(self, pin_gateway, live_bus, realtime_settings):
        pin = PinEngagementSlice(pin_gateway, live_bus, "L1", settings=realtime_settings)

        async with pin:
            row = {"id": "s9", "user_id": PRINCIPAL_ID, "location_id": "L1"}
            pin_gateway.tables["user_saved_locations"].append(row)
            pin_gateway.last_channel.emit("user_saved_locations", ChangeOperation.INSERT, row)
            await pin.wait_idle()

            assert pin.state.total_saves == 3

    @pytest.mark.asyncio
    async def test_save_for_other_pin_is_ignored(self, pin_gateway, live_bus, realtime_settings):
        pin = PinEngagementSlice(pin_gateway, live_bus, "L1", settings=realtime_settings)

        async with pin:
            counts = pin_gateway.call_count("count")
            pin_gateway.last_channel.emit(
                "user_saved_locations",
                ChangeOperation.INSERT,
                {"id": "s9", "user_id": PRINCIPAL_ID, "location_id": "L2"},
            )
            await pin.wait_idle()

            assert pin_gateway.call_count("count") == counts

    @pytest.mark.asyncio
    async def test_follow_change_refreshes_savers(self, pin_gateway, live_bus, realtime_settings):
        pin = PinEngagementSlice(pin_gateway, live_bus, "L1", viewer_id=PRINCIPAL_ID, settings=realtime_settings)

        async with pin:
            row = {"id": "f9", "follower_id": PRINCIPAL_ID, "following_id": "bob"}
            pin_gateway.tables["follows"].append(row)
            pin_gateway.last_channel.emit("follows", ChangeOperation.INSERT, row)
            await pin.wait_idle()

            assert {p.id for p in pin.state.followed_users} == {"amy", "bob"}
