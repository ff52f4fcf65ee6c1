"""Live save count and followed savers for one map pin."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice
from spott_service.features.queries import fetch_column_in, fetch_following_ids, fetch_profiles
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import EventType, Row
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PinEngagementState:
    total_saves: int | None = None
    followed_users: tuple[Row, ...] = ()


class PinEngagementSlice(LiveSlice[PinEngagementState]):
    """Total saves of a pin and the followed users who saved it.

    A pin is a catalogued location (``location_id``), an external place
    (``place_id``, the Google place id) or both.
    """

    name = "pin_engagement"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        location_id: str | None,
        place_id: str | None = None,
        viewer_id: str | None = None,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self.location_id = location_id
        self.place_id = place_id
        self.viewer_id = viewer_id
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return self.location_id is not None or self.place_id is not None

    @property
    def poll_interval(self) -> float:
        return self._settings.pin_engagement_poll_interval

    def initial_state(self) -> PinEngagementState:
        return PinEngagementState(total_saves=None)

    def empty_state(self) -> PinEngagementState:
        return PinEngagementState(total_saves=0)

    async def load(self) -> PinEngagementState:
        total = 0
        if self.location_id:
            total += await self._gateway.count(
                "user_saved_locations", Query().eq("location_id", self.location_id)
            )
        if self.place_id:
            total += await self._gateway.count("saved_places", Query().eq("place_id", self.place_id))

        followed: tuple[Row, ...] = ()
        if self.viewer_id:
            following = await fetch_following_ids(self._gateway, self.viewer_id)
            savers = await self._followed_savers(following)
            profiles = await fetch_profiles(
                self._gateway, savers, chunk_size=self._settings.engagement_chunk_size
            )
            followed = tuple(sorted(profiles.values(), key=lambda p: (p.username or "", p.id)))

        return PinEngagementState(total_saves=total, followed_users=followed)

    async def _followed_savers(self, following: set[str]) -> set[str]:
        if not following:
            return set()
        chunk_size = self._settings.engagement_chunk_size
        savers: set[str] = set()
        if self.location_id:
            rows = await fetch_column_in(
                self._gateway,
                "user_saved_locations",
                "user_id",
                following,
                columns="user_id",
                chunk_size=chunk_size,
                extra=Query().eq("location_id", self.location_id),
            )
            savers.update(str(r["user_id"]) for r in rows)
        if self.place_id:
            rows = await fetch_column_in(
                self._gateway,
                "saved_places",
                "user_id",
                following,
                columns="user_id",
                chunk_size=chunk_size,
                extra=Query().eq("place_id", self.place_id),
            )
            savers.update(str(r["user_id"]) for r in rows)
        return savers

    def subscribe_events(self) -> list[EventSubscription]:
        return [
            on_events(
                self._bus,
                (EventType.SAVED_LOCATION_INSERT, EventType.SAVED_PLACE_INSERT),
                self._on_save_inserted,
            ),
            on_events(
                self._bus,
                (
                    EventType.SAVED_LOCATION_DELETE,
                    EventType.SAVED_PLACE_DELETE,
                    EventType.FOLLOW_INSERT,
                    EventType.FOLLOW_DELETE,
                ),
                lambda _row: self._schedule_refresh(),
            ),
        ]

    def _on_save_inserted(self, row: Row) -> None:
        location_id = getattr(row, "location_id", None)
        place_id = getattr(row, "place_id", None)
        if location_id is not None and location_id != self.location_id:
            return
        if place_id is not None and place_id != self.place_id:
            return
        logger.debug("Save for tracked pin, refreshing", extra={"row_id": row.id})
        self._schedule_refresh()
