"""Unit tests for live post like, comment and share counters."""

from __future__ import annotations

import pytest

from spott_service.features.engagement import EngagementKind, SocialEngagementSlice
from spott_service.infra.gateway.protocol import ChangeOperation
from tests.conftest import PRINCIPAL_ID


@pytest.fixture
def engagement_gateway(gateway):
    gateway.tables["post_likes"] = [
        {"id": "l1", "post_id": "p1", "user_id": "a"},
        {"id": "l2", "post_id": "p1", "user_id": PRINCIPAL_ID},
        {"id": "l3", "post_id": "p2", "user_id": "b"},
    ]
    gateway.tables["post_comments"] = [{"id": "c1", "post_id": "p2", "user_id": "a"}]
    gateway.tables["post_shares"] = []
    return gateway


@pytest.fixture
async def engagement(engagement_gateway, live_bus, realtime_settings):
    slice_ = SocialEngagementSlice(
        engagement_gateway, live_bus, ["p1", "p2", "p3"], PRINCIPAL_ID, settings=realtime_settings
    )
    async with slice_:
        yield slice_


@pytest.mark.unit
class TestCounts:
    """Counts load per post, chunked, and track the viewer's like."""

    @pytest.mark.asyncio
    async def test_initial_counts(self, engagement, engagement_gateway):
        state = engagement.state

        assert state.count("p1", EngagementKind.LIKES) == 2
        assert state.count("p2", EngagementKind.COMMENTS) == 1
        assert state.count("p3", EngagementKind.SHARES) == 0
        assert state.get("p1").liked
        assert not state.get("p2").liked
        # three posts in chunks of two, three collections each
        assert engagement_gateway.call_count("select") == 6

    @pytest.mark.asyncio
    async def test_unknown_post_is_not_yet_known(self, engagement):
        assert engagement.state.count("p9", EngagementKind.LIKES) is None

    @pytest.mark.asyncio
    async def test_no_posts_is_unscoped(self, engagement_gateway, bus, realtime_settings):
        slice_ = SocialEngagementSlice(engagement_gateway, bus, [], settings=realtime_settings)

        async with slice_:
            assert slice_.state.posts == {}

        assert engagement_gateway.calls == []


@pytest.mark.unit
class TestEvents:
    """Insert and delete events move exactly the tracked post's counter."""

    @pytest.mark.asyncio
    async def test_insert_for_tracked_post(self, engagement, engagement_gateway):
        engagement_gateway.last_channel.emit(
            "post_likes", ChangeOperation.INSERT, {"id": "l9", "post_id": "p1", "user_id": "c"}
        )
        engagement_gateway.last_channel.emit(
            "post_likes", ChangeOperation.INSERT, {"id": "l10", "post_id": "p7", "user_id": "c"}
        )

        assert engagement.state.count("p1", EngagementKind.LIKES) == 3
        assert engagement.state.count("p2", EngagementKind.LIKES) == 1
        assert engagement.state.get("p7") is None

    @pytest.mark.asyncio
    async def test_duplicate_insert_counts_once(self, engagement, engagement_gateway):
        row = {"id": "c9", "post_id": "p3", "user_id": "c"}
        engagement_gateway.last_channel.emit("post_comments", ChangeOperation.INSERT, row)
        engagement_gateway.last_channel.emit("post_comments", ChangeOperation.INSERT, row)

        assert engagement.state.count("p3", EngagementKind.COMMENTS) == 1

    @pytest.mark.asyncio
    async def test_delete_with_only_id(self, engagement, engagement_gateway):
        engagement_gateway.last_channel.emit("post_likes", ChangeOperation.DELETE, {"id": "l3"})

        assert engagement.state.count("p2", EngagementKind.LIKES) == 0

    @pytest.mark.asyncio
    async def test_delete_never_goes_negative(self, engagement, engagement_gateway):
        for _ in range(3):
            engagement_gateway.last_channel.emit(
                "post_comments", ChangeOperation.DELETE, {"id": "c1", "post_id": "p2"}
            )

        assert engagement.state.count("p2", EngagementKind.COMMENTS) == 0

    @pytest.mark.asyncio
    async def test_event_then_refresh_converges(self, engagement, engagement_gateway):
        """An event already reflected by the next refresh is not counted twice."""
        engagement_gateway.tables["post_shares"].append({"id": "s1", "post_id": "p1", "user_id": "a"})
        engagement_gateway.last_channel.emit(
            "post_shares", ChangeOperation.INSERT, {"id": "s1", "post_id": "p1", "user_id": "a"}
        )

        await engagement.refresh()

        assert engagement.state.count("p1", EngagementKind.SHARES) == 1


@pytest.mark.unit
class TestToggleLike:
    """toggle_like is optimistic and reconciles with the server echo."""

    @pytest.mark.asyncio
    async def test_like_then_echo(self, engagement, engagement_gateway):
        result = await engagement.toggle_like("p2")

        assert result.success
        post = engagement.state.get("p2")
        assert post.likes == 2
        assert post.liked

        engagement_gateway.last_channel.emit(
            "post_likes", ChangeOperation.INSERT, {"id": result.data["id"], "post_id": "p2", "user_id": PRINCIPAL_ID}
        )

        assert engagement.state.get("p2").likes == 2

    @pytest.mark.asyncio
    async def test_unlike(self, engagement, engagement_gateway):
        result = await engagement.toggle_like("p1")

        assert result.success
        assert engagement.state.get("p1").likes == 1
        assert not engagement.state.get("p1").liked
        assert all(r["user_id"] != PRINCIPAL_ID for r in engagement_gateway.tables["post_likes"])

    @pytest.mark.asyncio
    async def test_failed_like_reverts(self, engagement, engagement_gateway):
        engagement_gateway.fail("insert", "post_likes")

        result = await engagement.toggle_like("p3")

        assert not result.success
        assert engagement.state.get("p3").likes == 0
        assert not engagement.state.get("p3").liked

    @pytest.mark.asyncio
    async def test_untracked_post(self, engagement):
        result = await engagement.toggle_like("p9")

        assert not result.success
        assert "not tracked" in result.error
