"""Unit tests for location catalog search."""

from __future__ import annotations

import asyncio

import pytest

from spott_service.features.locations import LocationCatalog, LocationSearch
from tests.conftest import PRINCIPAL_ID


@pytest.fixture
def catalog_gateway(gateway):
    gateway.tables["locations"] = [
        {"id": "L1", "name": "Cafe Roma", "city": "Paris", "google_place_id": "ChIJabc", "category": "cafe"},
        {"id": "L2", "name": "cafe roma ", "city": "Paris", "category": "cafe"},
        {"id": "L3", "name": "Louvre", "city": "Paris", "category": "museum", "latitude": "48.86"},
        {"id": "L4", "name": "The Pub", "city": "Dublin", "category": "bar"},
    ]
    gateway.tables["saved_places"] = [
        {
            "id": "sp1",
            "user_id": PRINCIPAL_ID,
            "place_id": "ChIJabc",
            "place_name": "Cafe Roma",
            "city": "Paris",
            "save_tag": "date",
            "coordinates": {"lat": 48.85, "lng": 2.35},
        },
        {"id": "sp2", "user_id": "amy", "place_id": None, "place_name": "Unknown", "city": "Paris"},
    ]
    gateway.tables["user_saved_locations"] = [
        {"id": "s1", "user_id": PRINCIPAL_ID, "location_id": "L2", "save_tag": "food"},
        {"id": "s2", "user_id": "amy", "location_id": "L1"},
        {"id": "s3", "user_id": "amy", "location_id": "L3"},
        {"id": "s4", "user_id": PRINCIPAL_ID, "location_id": "L4"},
    ]
    gateway.tables["posts"] = [{"id": "p1", "location_id": "L1"}]
    gateway.tables["interactions"] = [
        {"id": "i1", "location_id": "L1", "action_type": "review", "weight": 4},
        {"id": "i2", "location_id": "L2", "action_type": "review", "weight": 5},
        {"id": "i3", "location_id": "L3", "action_type": "like", "weight": 1},
    ]
    return gateway


@pytest.fixture
def catalog(catalog_gateway, realtime_settings) -> LocationCatalog:
    return LocationCatalog(catalog_gateway, settings=realtime_settings)


@pytest.mark.unit
class TestLocationCatalog:
    """search() groups both collections and marks the principal's saves."""

    @pytest.mark.asyncio
    async def test_search_groups_and_aggregates(self, catalog):
        result = await catalog.search("paris", principal_id=PRINCIPAL_ID)

        cafe, louvre = result.groups
        assert cafe.key == "gp:ChIJabc"
        assert set(cafe.record_ids) == {"L1", "L2", "sp1"}
        assert (cafe.saves_count, cafe.posts_count, cafe.average_rating) == (3, 1, 4.5)
        assert louvre.saves_count == 1
        assert louvre.average_rating is None
        assert louvre.latitude == 48.86

    @pytest.mark.asyncio
    async def test_saved_keys_and_tags(self, catalog):
        result = await catalog.search("Paris", principal_id=PRINCIPAL_ID)

        cafe, louvre = result.groups
        assert result.is_saved(cafe)
        assert not result.is_saved(louvre)
        assert result.save_tags == {"gp:ChIJabc": "date"}

    @pytest.mark.asyncio
    async def test_no_principal_marks_nothing(self, catalog):
        result = await catalog.search("Paris")

        assert result.saved_keys == frozenset()

    @pytest.mark.asyncio
    async def test_category_filter(self, catalog):
        result = await catalog.search(category="museum")

        assert [g.name for g in result.groups] == ["Louvre"]
        assert result.category == "museum"

    @pytest.mark.asyncio
    async def test_neighbourhood_search_matches_city(self, catalog, catalog_gateway):
        result = await catalog.search("Rathmines")

        assert [g.name for g in result.groups] == ["The Pub"]

    @pytest.mark.asyncio
    async def test_read_failure_gives_empty_result(self, catalog, catalog_gateway):
        catalog_gateway.fail("select", "locations")

        result = await catalog.search("Paris")

        assert result.groups == ()
        assert result.query == "Paris"


@pytest.mark.unit
class TestLocationSearch:
    """Only the newest search publishes its result."""

    @pytest.mark.asyncio
    async def test_superseded_search_is_discarded(self, catalog, catalog_gateway):
        search = LocationSearch(catalog)
        published = []
        search.watch(published.append)
        gate = catalog_gateway.hold("select", "locations")

        slow = asyncio.create_task(search.search("Dublin"))
        await asyncio.sleep(0)
        latest = await search.search("Paris")
        gate.set()

        assert await slow is None
        assert latest is not None
        assert search.result.query == "Paris"
        assert [r.query for r in published] == ["Paris"]
        assert not search.loading

    @pytest.mark.asyncio
    async def test_failing_listener_is_isolated(self, catalog):
        search = LocationSearch(catalog)
        published = []

        def broken(result):
            raise RuntimeError("listener bug")

        search.watch(broken)
        unwatch = search.watch(published.append)
        await search.search("Paris")
        unwatch()
        await search.search("Dublin")

        assert [r.query for r in published] == ["Paris"]
