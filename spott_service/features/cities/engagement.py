"""Live pin count and followed savers for a city."""

from __future__ import annotations

from dataclasses import dataclass

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice
from spott_service.features.queries import fetch_column_in, fetch_following_ids, fetch_profiles
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import EventType, ProfileRow
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events


@dataclass(frozen=True, slots=True)
class CityEngagementState:
    total_pins: int | None = None
    followed_users: tuple[ProfileRow, ...] = ()


class CityEngagementSlice(LiveSlice[CityEngagementState]):
    """Saves of places in ``city`` plus the followed users among the savers.

    The city is matched case-insensitively against ``locations.city`` and
    ``saved_places.city``.
    """

    name = "city_engagement"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        city: str | None,
        viewer_id: str | None = None,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self.city = city.strip() if city else None
        self.viewer_id = viewer_id
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return bool(self.city)

    @property
    def poll_interval(self) -> float:
        return self._settings.city_engagement_poll_interval

    def initial_state(self) -> CityEngagementState:
        return CityEngagementState(total_pins=None)

    def empty_state(self) -> CityEngagementState:
        return CityEngagementState(total_pins=0)

    async def load(self) -> CityEngagementState:
        assert self.city is not None
        chunk_size = self._settings.engagement_chunk_size

        locations = await self._gateway.select(
            "locations", Query().ilike("city", self.city), columns="id"
        )
        location_saves = await fetch_column_in(
            self._gateway,
            "user_saved_locations",
            "location_id",
            [str(r["id"]) for r in locations],
            columns="id, user_id",
            chunk_size=chunk_size,
        )
        place_saves = await self._gateway.select(
            "saved_places", Query().ilike("city", self.city), columns="id, user_id"
        )

        followed: tuple[ProfileRow, ...] = ()
        if self.viewer_id:
            following = await fetch_following_ids(self._gateway, self.viewer_id)
            savers = {str(r["user_id"]) for r in (*location_saves, *place_saves) if r.get("user_id")}
            profiles = await fetch_profiles(self._gateway, savers & following, chunk_size=chunk_size)
            followed = tuple(sorted(profiles.values(), key=lambda p: (p.username or "", p.id)))

        return CityEngagementState(
            total_pins=len(location_saves) + len(place_saves),
            followed_users=followed,
        )

    def subscribe_events(self) -> list[EventSubscription]:
        return [
            on_events(
                self._bus,
                (
                    EventType.SAVED_LOCATION_INSERT,
                    EventType.SAVED_LOCATION_DELETE,
                    EventType.SAVED_PLACE_INSERT,
                    EventType.SAVED_PLACE_DELETE,
                    EventType.FOLLOW_INSERT,
                    EventType.FOLLOW_DELETE,
                ),
                lambda _row: self._schedule_refresh(),
            )
        ]
