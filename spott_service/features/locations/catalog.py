"""Location search: read both place collections, group and aggregate."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from spott_service.core.exceptions import GatewayError
from spott_service.core.settings import get_realtime_settings
from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.locations.grouping import (
    UNKNOWN_CITY,
    GroupingOverrides,
    PlaceGroup,
    PlaceRecord,
    RecordSource,
    aggregate_groups,
    group_places,
    normalize_city,
)
from spott_service.features.queries import fetch_column_in
from spott_service.infra.gateway.protocol import Gateway, Query, ilike_contains
from spott_service.utils.sequencing import RequestSequencer

logger = logging.getLogger(__name__)

DEFAULT_SAVE_TAG = "general"

LOCATION_COLUMNS = "id, name, category, city, address, google_place_id, latitude, longitude"
SAVED_PLACE_COLUMNS = "id, place_id, place_name, place_category, city, coordinates"


@dataclass(frozen=True, slots=True)
class CatalogResult:
    """Grouped places plus which of them the principal saved, keyed by group key."""

    query: str = ""
    category: str | None = None
    groups: tuple[PlaceGroup, ...] = ()
    saved_keys: frozenset[str] = frozenset()
    save_tags: dict[str, str] = field(default_factory=dict)

    def is_saved(self, group: PlaceGroup) -> bool:
        return group.key in self.saved_keys


def _search_terms(query: str) -> list[str]:
    term = query.strip()
    city = normalize_city(term)
    return [term] if city in (term, UNKNOWN_CITY) else [term, city]


class LocationCatalog:
    """Reads catalogued locations and saved places matching a search, grouped per place."""

    def __init__(
        self,
        gateway: Gateway,
        *,
        settings: RealtimeSettings | None = None,
        overrides: GroupingOverrides | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings or get_realtime_settings()
        self.overrides = overrides or GroupingOverrides()

    async def search(
        self,
        query: str = "",
        category: str | None = None,
        principal_id: str | None = None,
    ) -> CatalogResult:
        """Search both collections. Read failures resolve to an empty result."""
        try:
            return await self._search(query, category, principal_id)
        except (GatewayError, ValidationError) as e:
            logger.warning(
                "Location search failed, returning no results",
                extra={"query": query, "category": category, "error": str(e)},
            )
            return CatalogResult(query=query, category=category)

    async def _search(
        self, query: str, category: str | None, principal_id: str | None
    ) -> CatalogResult:
        records = [
            *await self._read_locations(query, category),
            *await self._read_saved_places(query, category),
        ]
        groups = group_places(records, self.overrides)

        location_ids = {lid for g in groups for lid in g.location_ids}
        place_ids = {pid for g in groups for pid in g.place_ids}
        chunk_size = self._settings.engagement_chunk_size

        location_saves = await fetch_column_in(
            self._gateway,
            "user_saved_locations",
            "location_id",
            location_ids,
            columns="location_id, user_id, save_tag",
            chunk_size=chunk_size,
        )
        place_saves = await fetch_column_in(
            self._gateway,
            "saved_places",
            "place_id",
            place_ids,
            columns="place_id, user_id, save_tag",
            chunk_size=chunk_size,
        )
        posts = await fetch_column_in(
            self._gateway,
            "posts",
            "location_id",
            location_ids,
            columns="id, location_id",
            chunk_size=chunk_size,
        )
        reviews = await fetch_column_in(
            self._gateway,
            "interactions",
            "location_id",
            location_ids,
            columns="location_id, weight",
            chunk_size=chunk_size,
            extra=Query().eq("action_type", "review").not_is("weight", None),
        )

        ratings: dict[str, list[float]] = defaultdict(list)
        for review in reviews:
            if review.get("weight") is not None:
                ratings[str(review["location_id"])].append(float(review["weight"]))

        aggregated = aggregate_groups(
            groups,
            location_saves=Counter(str(s["location_id"]) for s in location_saves),
            place_saves=Counter(str(s["place_id"]) for s in place_saves),
            posts=Counter(str(p["location_id"]) for p in posts),
            ratings=ratings,
        )

        saved_keys: set[str] = set()
        save_tags: dict[str, str] = {}
        if principal_id is not None:
            mine_by_location = {
                str(s["location_id"]): s.get("save_tag") or DEFAULT_SAVE_TAG
                for s in location_saves
                if s.get("user_id") == principal_id
            }
            mine_by_place = {
                str(s["place_id"]): s.get("save_tag") or DEFAULT_SAVE_TAG
                for s in place_saves
                if s.get("user_id") == principal_id
            }
            for group in aggregated:
                tags = [mine_by_location[lid] for lid in group.location_ids if lid in mine_by_location]
                tags += [mine_by_place[pid] for pid in group.place_ids if pid in mine_by_place]
                if tags:
                    # a saved-place tag wins over a saved-location tag
                    saved_keys.add(group.key)
                    save_tags[group.key] = tags[-1]

        logger.debug(
            "Location search complete",
            extra={"query": query, "records": len(records), "groups": len(aggregated)},
        )
        return CatalogResult(
            query=query,
            category=category,
            groups=tuple(aggregated),
            saved_keys=frozenset(saved_keys),
            save_tags=save_tags,
        )

    async def _read_locations(self, query: str, category: str | None) -> list[PlaceRecord]:
        q = Query().limit(self._settings.catalog_limit)
        if query.strip():
            terms = _search_terms(query)
            q.or_(
                ilike_contains("name", terms[0]),
                *(ilike_contains("city", t) for t in terms),
                ilike_contains("address", terms[0]),
            )
        if category:
            q.eq("category", category)

        rows = await self._gateway.select("locations", q, columns=LOCATION_COLUMNS)
        return [
            PlaceRecord(
                id=str(row["id"]),
                source=RecordSource.LOCATION,
                name=row.get("name"),
                category=row.get("category"),
                city=row.get("city"),
                address=row.get("address"),
                google_place_id=row.get("google_place_id") or None,
                latitude=_as_float(row.get("latitude")),
                longitude=_as_float(row.get("longitude")),
            )
            for row in rows
        ]

    async def _read_saved_places(self, query: str, category: str | None) -> list[PlaceRecord]:
        q = Query().limit(self._settings.catalog_limit)
        if query.strip():
            terms = _search_terms(query)
            q.or_(
                ilike_contains("place_name", terms[0]),
                *(ilike_contains("city", t) for t in terms),
            )
        if category:
            q.eq("place_category", category)

        rows = await self._gateway.select("saved_places", q, columns=SAVED_PLACE_COLUMNS)
        records = []
        for row in rows:
            name, city = row.get("place_name"), row.get("city")
            # low quality rows without a usable name or city are skipped
            if not name or name == "Unknown" or not city or city == UNKNOWN_CITY:
                continue
            coordinates = row.get("coordinates") or {}
            records.append(
                PlaceRecord(
                    id=str(row["id"]),
                    source=RecordSource.SAVED_PLACE,
                    name=name,
                    category=row.get("place_category") or "place",
                    city=normalize_city(city),
                    google_place_id=row.get("place_id") or None,
                    latitude=_as_float(coordinates.get("lat")),
                    longitude=_as_float(coordinates.get("lng")),
                )
            )
        return records


def _as_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


SearchListener = Callable[[CatalogResult], None]


class LocationSearch:
    """Publishes the result of the newest search only.

    A search that completes after a newer one was issued is discarded, so a
    slow response for an old query never replaces the current results.
    """

    def __init__(self, catalog: LocationCatalog) -> None:
        self._catalog = catalog
        self._sequencer = RequestSequencer()
        self._listeners: list[SearchListener] = []
        self.result = CatalogResult()
        self.loading = False

    def watch(self, listener: SearchListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unwatch() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unwatch

    async def search(
        self,
        query: str = "",
        category: str | None = None,
        principal_id: str | None = None,
    ) -> CatalogResult | None:
        """Run a search; returns None when a newer search superseded it."""
        ticket = self._sequencer.next()
        self.loading = True
        result = await self._catalog.search(query, category, principal_id)
        if not self._sequencer.is_current(ticket):
            logger.debug("Discarding superseded search", extra={"query": query, "ticket": ticket})
            return None

        self.loading = False
        self.result = result
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Search listener failed")
        return result
