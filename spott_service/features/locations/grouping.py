"""Location identity grouping.

Place records come from two loosely linked collections: catalogued
``locations`` and ``saved_places`` rows keyed by an external (Google) place
id. This module folds records that describe the same real-world place into
one ``PlaceGroup`` and aggregates saves, posts and ratings across every
folded row.

Linking rules:

- Records sharing an external place id are the same place.
- A record without an external id links to records with the same
  normalised name and city whose address fragment is compatible (equal, or
  missing on either side). If any of those carry an external id it attaches
  only to the smallest one, so two distinct external places are never
  joined through an id-less record.
- ``GroupingOverrides`` force merges of record pairs and force records to
  stand alone.

Links form a union-find over an edge set that depends only on the input
set, so grouping is idempotent and independent of input order.
"""

from __future__ import annotations

import math
import re
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum

UNKNOWN_CITY = "Unknown"
ADDRESS_FRAGMENT_LENGTH = 20

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_POSTAL_DISTRICT = re.compile(r"\s+\d+$")
_COUNTY_PREFIX = re.compile(r"^County\s+", re.IGNORECASE)
_STREET_WORDS = re.compile(
    r"(street|st\.|avenue|ave\.|road|rd\.|square|lane|ln\.|drive|dr\.|court|ct\.)", re.IGNORECASE
)
_EIRCODE = re.compile(r"^[A-Z]\d{2}")

DUBLIN_NEIGHBOURHOODS = frozenset(
    n.lower()
    for n in (
        "Rathmines", "Ranelagh", "Ballsbridge", "Donnybrook", "Sandymount",
        "Sandymount Village", "Ringsend", "Irishtown", "Ballybough", "Drumcondra",
        "Glasnevin", "Cabra", "Phibsborough", "Stoneybatter", "Smithfield",
        "Arbour Hill", "Inchicore", "Kilmainham", "Islandbridge", "Crumlin",
        "Kimmage", "Terenure", "Rathgar", "Milltown", "Clonskeagh", "Dundrum",
        "Stillorgan", "Blackrock", "Dun Laoghaire", "Dalkey", "Killiney",
        "Shankill", "Bray", "Greystones", "Howth", "Malahide", "Swords",
        "Portmarnock", "Clontarf", "Raheny", "Coolock", "Artane", "Whitehall",
        "Santry", "Ballymun", "Finglas", "Blanchardstown", "Castleknock", "Lucan",
        "Clondalkin", "Tallaght", "Rathfarnham", "Templeogue", "Firhouse",
        "Ballinteer", "Churchtown", "Windy Arbour", "Leopardstown", "Sandyford",
        "Stepaside", "Foxrock", "Cabinteely", "Loughlinstown", "Cherrywood",
        "Carrickmines", "Cornelscourt", "Donabate", "Rush", "Skerries",
        "Balbriggan", "Baldoyle", "Saint James", "St James", "The Coombe",
        "Liberties", "Thomas Street", "Christchurch", "Temple Bar", "Ballyboden",
        "Knocklyon", "Brittas",
    )
)  # fmt: skip


# ──────────────────────────────────────────────────────────────
# Normalisation
# ──────────────────────────────────────────────────────────────


def norm(value: str | None) -> str:
    """Lowercase ``value`` and strip everything but ASCII letters and digits."""
    return _NON_ALNUM.sub("", (value or "").lower())


def normalize_city(city: str | None) -> str:
    """Canonical display form of a city name.

    Drops postal district numbers ("Dublin 2") and a "County" prefix, maps
    Dublin neighbourhoods to "Dublin", and returns ``"Unknown"`` for empty,
    numeric or too-short values.
    """
    if not city or not city.strip():
        return UNKNOWN_CITY
    normalized = city.strip()
    if normalized in (UNKNOWN_CITY, "Unknown City"):
        return UNKNOWN_CITY

    normalized = _POSTAL_DISTRICT.sub("", normalized)
    normalized = _COUNTY_PREFIX.sub("", normalized).strip()
    if normalized.isdigit() or len(normalized) <= 2:
        return UNKNOWN_CITY
    if normalized.lower() in DUBLIN_NEIGHBOURHOODS:
        return "Dublin"
    return normalized


def extract_city_from_address(address: str | None) -> str | None:
    """Best guess at the city in a comma separated address, scanning from the end."""
    if not address or not address.strip():
        return None
    parts = [p.strip() for p in address.split(",") if p.strip()]
    for part in reversed(parts):
        if len(part) <= 2 or part.isdigit():
            continue
        if _STREET_WORDS.search(part) or _EIRCODE.match(part):
            continue
        city = normalize_city(part)
        if city != UNKNOWN_CITY:
            return city
    return None


def mean_rating(values: Iterable[float]) -> float | None:
    """Mean of ``values`` rounded half-up to one decimal, or None when empty."""
    pooled = [float(v) for v in values]
    if not pooled:
        return None
    return math.floor(sum(pooled) / len(pooled) * 10 + 0.5) / 10


# ──────────────────────────────────────────────────────────────
# Records and groups
# ──────────────────────────────────────────────────────────────


class RecordSource(StrEnum):
    LOCATION = "location"
    SAVED_PLACE = "saved_place"


@dataclass(frozen=True, slots=True)
class PlaceRecord:
    """One place row from either collection."""

    id: str
    source: RecordSource
    name: str | None = None
    category: str | None = None
    city: str | None = None
    address: str | None = None
    google_place_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    @property
    def resolved_city(self) -> str:
        if self.city and normalize_city(self.city) != UNKNOWN_CITY:
            return normalize_city(self.city)
        return extract_city_from_address(self.address) or UNKNOWN_CITY

    @property
    def name_city_key(self) -> str:
        city = self.resolved_city
        return f"{norm(self.name)}|{norm(city) if city != UNKNOWN_CITY else ''}"

    @property
    def address_fragment(self) -> str:
        return norm(self.address)[:ADDRESS_FRAGMENT_LENGTH]

    @property
    def fallback_key(self) -> str:
        return f"nc:{self.name_city_key}|{self.address_fragment}"

    def sort_key(self) -> tuple[int, int, str]:
        # external id first, catalogued locations before saved places
        return (
            0 if self.google_place_id else 1,
            0 if self.source is RecordSource.LOCATION else 1,
            self.id,
        )


@dataclass(frozen=True, slots=True)
class GroupingOverrides:
    """Manual corrections to automatic linking, by record id.

    ``merge`` pairs are always folded together. Records in ``split`` take
    part in no automatic link, only in explicit merges.
    """

    merge: frozenset[tuple[str, str]] = frozenset()
    split: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class PlaceGroup:
    key: str
    id: str
    name: str | None
    category: str | None
    city: str
    address: str | None
    google_place_id: str | None
    latitude: float | None
    longitude: float | None
    records: tuple[PlaceRecord, ...] = field(default=(), repr=False)
    saves_count: int = 0
    posts_count: int = 0
    average_rating: float | None = None

    @property
    def location_ids(self) -> tuple[str, ...]:
        return tuple(sorted({r.id for r in self.records if r.source is RecordSource.LOCATION}))

    @property
    def place_ids(self) -> tuple[str, ...]:
        return tuple(sorted({r.google_place_id for r in self.records if r.google_place_id}))

    @property
    def record_ids(self) -> tuple[str, ...]:
        return tuple(r.id for r in self.records)


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))

    def find(self, i: int) -> int:
        while self.parent[i] != i:
            self.parent[i] = self.parent[self.parent[i]]
            i = self.parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self.parent[max(ra, rb)] = min(ra, rb)


def _compatible(a: PlaceRecord, b: PlaceRecord) -> bool:
    fa, fb = a.address_fragment, b.address_fragment
    return not fa or not fb or fa == fb


def _link(records: Sequence[PlaceRecord], overrides: GroupingOverrides) -> _DisjointSet:
    links = _DisjointSet(len(records))
    linkable = [i for i, r in enumerate(records) if r.id not in overrides.split]

    by_place: dict[str, list[int]] = defaultdict(list)
    by_name_city: dict[str, list[int]] = defaultdict(list)
    for i in linkable:
        record = records[i]
        if record.google_place_id:
            by_place[record.google_place_id].append(i)
        if norm(record.name):
            by_name_city[record.name_city_key].append(i)

    for members in by_place.values():
        for i in members[1:]:
            links.union(members[0], i)

    for bucket in by_name_city.values():
        loose = [i for i in bucket if not records[i].google_place_id]
        anchored = [i for i in bucket if records[i].google_place_id]
        unattached: list[int] = []
        for i in loose:
            candidates = [j for j in anchored if _compatible(records[i], records[j])]
            if candidates:
                target = min(candidates, key=lambda j: (records[j].google_place_id, records[j].id))
                links.union(i, target)
            else:
                unattached.append(i)
        for n, i in enumerate(unattached):
            for j in unattached[n + 1 :]:
                if _compatible(records[i], records[j]):
                    links.union(i, j)

    index_by_id: dict[str, list[int]] = defaultdict(list)
    for i, record in enumerate(records):
        index_by_id[record.id].append(i)
    for a, b in sorted(overrides.merge):
        for i in index_by_id.get(a, []):
            for j in index_by_id.get(b, []):
                links.union(i, j)
    return links


def _first(values: Iterable[str | float | None], *, unknown: str | None = None):
    for value in values:
        if value is None or value == "" or (unknown is not None and value == unknown):
            continue
        return value
    return None


def _merge(members: Sequence[PlaceRecord]) -> PlaceGroup:
    ordered = sorted(members, key=PlaceRecord.sort_key)
    representative = ordered[0]
    place_ids = sorted({r.google_place_id for r in ordered if r.google_place_id})
    key = f"gp:{place_ids[0]}" if place_ids else min(r.fallback_key for r in ordered)
    return PlaceGroup(
        key=key,
        id=representative.id,
        name=_first((r.name for r in ordered), unknown="Unknown"),
        category=_first(r.category for r in ordered),
        city=_first((r.resolved_city for r in ordered), unknown=UNKNOWN_CITY) or UNKNOWN_CITY,
        address=_first(r.address for r in ordered),
        google_place_id=place_ids[0] if place_ids else None,
        latitude=_first(r.latitude for r in ordered),
        longitude=_first(r.longitude for r in ordered),
        records=tuple(ordered),
    )


def group_places(
    records: Iterable[PlaceRecord],
    overrides: GroupingOverrides | None = None,
) -> list[PlaceGroup]:
    """Fold ``records`` into one group per real-world place, sorted by key."""
    unique = sorted(set(records), key=lambda r: (r.source, r.id, r.sort_key(), repr(r)))
    links = _link(unique, overrides or GroupingOverrides())

    components: dict[int, list[PlaceRecord]] = defaultdict(list)
    for i, record in enumerate(unique):
        components[links.find(i)].append(record)
    return sorted((_merge(members) for members in components.values()), key=lambda g: g.key)


def aggregate_groups(
    groups: Iterable[PlaceGroup],
    *,
    location_saves: Mapping[str, int],
    place_saves: Mapping[str, int],
    posts: Mapping[str, int],
    ratings: Mapping[str, Sequence[float]],
) -> list[PlaceGroup]:
    """Sum saves and posts and pool ratings across every row folded into each group.

    Returns the groups sorted by save count, most saved first, ties by key.
    """
    aggregated = []
    for group in groups:
        location_ids = group.location_ids
        pooled = [r for lid in location_ids for r in ratings.get(lid, ())]
        aggregated.append(
            replace(
                group,
                saves_count=sum(location_saves.get(lid, 0) for lid in location_ids)
                + sum(place_saves.get(pid, 0) for pid in group.place_ids),
                posts_count=sum(posts.get(lid, 0) for lid in location_ids),
                average_rating=mean_rating(pooled),
            )
        )
    return sorted(aggregated, key=lambda g: (-g.saves_count, g.key))
