"""Per-city histogram of a profile's saved locations."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice
from spott_service.features.queries import fetch_column_in, fetch_profiles
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import EventType, Row
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SavedCity:
    city: str
    count: int


@dataclass(frozen=True, slots=True)
class CommonLocations:
    count: int = 0
    my_avatar: str | None = None
    their_avatar: str | None = None


@dataclass(frozen=True, slots=True)
class SavedCitiesState:
    cities: tuple[SavedCity, ...] = ()
    all_places_count: int | None = None
    common: CommonLocations = CommonLocations()


class UserSavedCitiesSlice(LiveSlice[SavedCitiesState]):
    """Cities a profile has saved locations in, most saved first.

    When a different viewer is looking at the profile, the slice also counts
    the locations both of them saved and carries both avatars.
    """

    name = "saved_cities"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        profile_id: str | None,
        viewer_id: str | None = None,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self.profile_id = profile_id
        self.viewer_id = viewer_id
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return self.profile_id is not None

    @property
    def compares(self) -> bool:
        return self.viewer_id is not None and self.viewer_id != self.profile_id

    @property
    def poll_interval(self) -> float:
        return self._settings.saved_cities_poll_interval

    def initial_state(self) -> SavedCitiesState:
        return SavedCitiesState(all_places_count=None)

    def empty_state(self) -> SavedCitiesState:
        return SavedCitiesState(all_places_count=0)

    async def load(self) -> SavedCitiesState:
        assert self.profile_id is not None
        theirs = await self._saved_location_ids(self.profile_id)

        locations = await fetch_column_in(
            self._gateway,
            "locations",
            "id",
            set(theirs),
            columns="id, city",
            chunk_size=self._settings.engagement_chunk_size,
        )
        city_by_location = {str(r["id"]): r.get("city") for r in locations}
        counts = Counter(city for lid in theirs if (city := city_by_location.get(lid)))
        cities = tuple(
            SavedCity(city=city, count=count)
            for city, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        )

        common = CommonLocations()
        if self.compares:
            assert self.viewer_id is not None
            mine = set(await self._saved_location_ids(self.viewer_id))
            profiles = await fetch_profiles(
                self._gateway, {self.viewer_id, self.profile_id}, columns="id, avatar_url"
            )
            my_profile = profiles.get(self.viewer_id)
            their_profile = profiles.get(self.profile_id)
            common = CommonLocations(
                count=sum(1 for lid in theirs if lid in mine),
                my_avatar=my_profile.avatar_url if my_profile else None,
                their_avatar=their_profile.avatar_url if their_profile else None,
            )

        return SavedCitiesState(cities=cities, all_places_count=len(theirs), common=common)

    async def _saved_location_ids(self, user_id: str) -> list[str]:
        rows = await self._gateway.select(
            "user_saved_locations", Query().eq("user_id", user_id), columns="location_id"
        )
        return [str(r["location_id"]) for r in rows if r.get("location_id")]

    def subscribe_events(self) -> list[EventSubscription]:
        return [
            on_events(
                self._bus,
                (EventType.SAVED_LOCATION_INSERT, EventType.SAVED_LOCATION_DELETE),
                lambda _row: self._schedule_refresh(),
            ),
            on_events(self._bus, EventType.PROFILE_UPDATE, self._on_profile_updated),
        ]

    def _on_profile_updated(self, row: Row) -> None:
        if self.compares and row.id in (self.viewer_id, self.profile_id):
            logger.debug("Avatar owner updated, refreshing", extra={"profile_id": row.id})
            self._schedule_refresh()
