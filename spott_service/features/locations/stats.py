"""Live save count and pooled average rating for a location."""

from __future__ import annotations

from dataclasses import dataclass

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice
from spott_service.features.locations.grouping import mean_rating
from spott_service.features.queries import fetch_column_in
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import EventType
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events


@dataclass(frozen=True, slots=True)
class LocationStats:
    total_saves: int | None = None
    average_rating: float | None = None


class LocationStatsSlice(LiveSlice[LocationStats]):
    """Saves across both save collections and the mean of every positive rating.

    Ratings pool ``interactions.weight`` of ``review`` actions and
    ``posts.rating``. When the location itself has none and a place id is
    known, every location sharing that place id is pooled instead.
    """

    name = "location_stats"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        location_id: str | None,
        place_id: str | None = None,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self.location_id = location_id
        self.place_id = place_id
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return self.location_id is not None or self.place_id is not None

    @property
    def poll_interval(self) -> float:
        return self._settings.location_stats_poll_interval

    def initial_state(self) -> LocationStats:
        return LocationStats(total_saves=None, average_rating=None)

    def empty_state(self) -> LocationStats:
        return LocationStats(total_saves=0, average_rating=None)

    async def load(self) -> LocationStats:
        total = 0
        if self.place_id:
            total += await self._gateway.count("saved_places", Query().eq("place_id", self.place_id))
        if self.location_id:
            total += await self._gateway.count(
                "user_saved_locations", Query().eq("location_id", self.location_id)
            )

        ratings = await self._ratings([self.location_id] if self.location_id else [])
        if not ratings and self.place_id:
            siblings = await self._gateway.select(
                "locations",
                Query().eq("google_place_id", self.place_id),
                columns="id",
            )
            ratings = await self._ratings([str(r["id"]) for r in siblings])

        return LocationStats(total_saves=total, average_rating=mean_rating(ratings))

    async def _ratings(self, location_ids: list[str]) -> list[float]:
        if not location_ids:
            return []
        chunk_size = self._settings.engagement_chunk_size
        reviews = await fetch_column_in(
            self._gateway,
            "interactions",
            "location_id",
            location_ids,
            columns="weight",
            chunk_size=chunk_size,
            extra=Query().eq("action_type", "review").gt("weight", 0),
        )
        posts = await fetch_column_in(
            self._gateway,
            "posts",
            "location_id",
            location_ids,
            columns="rating",
            chunk_size=chunk_size,
            extra=Query().gt("rating", 0),
        )
        values = [r.get("weight") for r in reviews] + [p.get("rating") for p in posts]
        return [float(v) for v in values if v is not None and float(v) > 0]

    def subscribe_events(self) -> list[EventSubscription]:
        return [
            on_events(
                self._bus,
                (
                    EventType.SAVED_LOCATION_INSERT,
                    EventType.SAVED_LOCATION_DELETE,
                    EventType.SAVED_PLACE_INSERT,
                    EventType.SAVED_PLACE_DELETE,
                ),
                lambda _row: self._schedule_refresh(),
            )
        ]
