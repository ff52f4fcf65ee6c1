"""Unit tests for location identity grouping and aggregation."""

from __future__ import annotations

import itertools

import pytest

from spott_service.features.locations import (
    GroupingOverrides,
    PlaceRecord,
    RecordSource,
    aggregate_groups,
    extract_city_from_address,
    group_places,
    mean_rating,
    normalize_city,
)


def location(id_: str, name: str | None, city: str | None = "Paris", **kwargs) -> PlaceRecord:
    return PlaceRecord(id=id_, source=RecordSource.LOCATION, name=name, city=city, **kwargs)


@pytest.fixture
def cafe_records() -> list[PlaceRecord]:
    return [
        location("L1", "Cafe Roma", google_place_id="ChIJabc", latitude=48.85),
        location("L2", "cafe roma ", category="cafe"),
        location("L3", "Louvre", category="museum"),
    ]


# ──────────────────────────────────────────────────────────────
# Normalisation
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
class TestNormalizeCity:
    """normalize_city maps variants onto one display name."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Paris", "Paris"),
            ("  Paris  ", "Paris"),
            ("Dublin 2", "Dublin"),
            ("County Cork", "Cork"),
            ("Rathmines", "Dublin"),
            ("temple bar", "Dublin"),
            ("", "Unknown"),
            (None, "Unknown"),
            ("Unknown City", "Unknown"),
            ("12", "Unknown"),
            ("NY", "Unknown"),
        ],
    )
    def test_normalize_city(self, raw, expected):
        assert normalize_city(raw) == expected

    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            ("5 Rue de Rivoli, Paris", "Paris"),
            ("12 Main Street, Rathmines, Dublin 6, D06 X123", "Dublin"),
            ("Via Roma 1, 00100, Rome", "Rome"),
            ("12, AB", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract_city_from_address(self, address, expected):
        assert extract_city_from_address(address) == expected

    def test_city_falls_back_to_address(self):
        record = location("L9", "Pier", city=None, address="1 Quay, Galway")

        assert record.resolved_city == "Galway"


@pytest.mark.unit
class TestMeanRating:
    """Ratings average to one decimal, rounding half up."""

    def test_empty_is_none(self):
        assert mean_rating([]) is None

    @pytest.mark.parametrize(
        ("values", "expected"),
        [([4, 5], 4.5), ([1, 2, 2], 1.7), ([4.25], 4.3), ([3], 3.0)],
    )
    def test_rounding(self, values, expected):
        assert mean_rating(values) == expected


# ──────────────────────────────────────────────────────────────
# Grouping
# ──────────────────────────────────────────────────────────────


@pytest.mark.unit
class TestGroupPlaces:
    """Records describing the same place fold into one group."""

    def test_loose_record_joins_place_group(self, cafe_records):
        groups = group_places(cafe_records)

        cafe = next(g for g in groups if g.key == "gp:ChIJabc")
        assert cafe.record_ids == ("L1", "L2")
        assert cafe.id == "L1"
        assert cafe.name == "Cafe Roma"
        assert cafe.category == "cafe"
        assert cafe.latitude == 48.85
        assert [g.key for g in groups] == ["gp:ChIJabc", "nc:louvre|paris|"]

    def test_order_independent(self, cafe_records):
        assert group_places(cafe_records) == group_places(reversed(cafe_records))

    @pytest.mark.parametrize(
        "records",
        [
            pytest.param(
                [
                    location("L1", "Cafe Roma", google_place_id="ChIJbbb"),
                    location("L2", "Cafe Roma"),
                    location("L3", "Cafe Roma", google_place_id="ChIJaaa"),
                    location("L4", "Cafe Roma", address="12 Rue X"),
                ],
                id="loose-records-between-two-places",
            ),
            pytest.param(
                [
                    location("L1", "Cafe Roma", address="12 Rue X"),
                    location("L2", "Cafe Roma"),
                    location("L3", "Cafe Roma", address="99 Other Street"),
                    location("L4", "Louvre"),
                ],
                id="linked-through-missing-address",
            ),
        ],
    )
    def test_every_input_order_groups_alike(self, records):
        expected = group_places(records)

        for ordering in itertools.permutations(records):
            assert group_places(ordering) == expected

    def test_missing_address_links_incompatible_neighbours(self):
        records = [
            location("L1", "Cafe Roma", address="12 Rue X"),
            location("L2", "Cafe Roma"),
            location("L3", "Cafe Roma", address="99 Other Street"),
        ]

        (group,) = group_places(records)

        assert set(group.record_ids) == {"L1", "L2", "L3"}
        assert group.key == "nc:caferoma|paris|"

    def test_idempotent(self, cafe_records):
        grouped = group_places(cafe_records)
        regrouped = group_places(r for g in grouped for r in g.records)

        assert regrouped == grouped

    def test_shared_place_id_links_across_collections(self):
        records = [
            location("L1", "Cafe Roma", google_place_id="ChIJabc"),
            PlaceRecord(
                id="sp1",
                source=RecordSource.SAVED_PLACE,
                name="Roma Coffee",
                city="Paris",
                google_place_id="ChIJabc",
            ),
        ]

        (group,) = group_places(records)

        assert group.record_ids == ("L1", "sp1")
        assert group.place_ids == ("ChIJabc",)
        assert group.location_ids == ("L1",)

    def test_loose_record_never_bridges_two_places(self):
        records = [
            location("L1", "Cafe Roma", google_place_id="ChIJbbb"),
            location("L2", "Cafe Roma"),
            location("L3", "Cafe Roma", google_place_id="ChIJaaa"),
        ]

        groups = {g.key: g.record_ids for g in group_places(records)}

        assert groups == {"gp:ChIJaaa": ("L3", "L2"), "gp:ChIJbbb": ("L1",)}

    def test_incompatible_addresses_stay_apart(self):
        records = [
            location("L1", "Cafe Roma", address="12 Rue X"),
            location("L2", "Cafe Roma", address="99 Other Street"),
        ]

        groups = group_places(records)

        assert [g.key for g in groups] == ["nc:caferoma|paris|12ruex", "nc:caferoma|paris|99otherstreet"]

    def test_missing_address_is_compatible(self):
        records = [
            location("L1", "Cafe Roma", address="12 Rue X"),
            location("L2", "Cafe Roma"),
        ]

        (group,) = group_places(records)

        assert group.key == "nc:caferoma|paris|"
        assert group.address == "12 Rue X"

    def test_same_name_other_city_stays_apart(self):
        records = [location("L1", "Cafe Roma"), location("L2", "Cafe Roma", city="Rome")]

        assert len(group_places(records)) == 2


@pytest.mark.unit
class TestOverrides:
    """Manual merges and splits correct automatic linking."""

    def test_split_keeps_record_alone(self, cafe_records):
        groups = group_places(cafe_records, GroupingOverrides(split=frozenset({"L2"})))

        assert {g.key: g.record_ids for g in groups} == {
            "gp:ChIJabc": ("L1",),
            "nc:caferoma|paris|": ("L2",),
            "nc:louvre|paris|": ("L3",),
        }

    def test_merge_joins_unrelated_records(self, cafe_records):
        groups = group_places(cafe_records, GroupingOverrides(merge=frozenset({("L3", "L1")})))

        (group,) = groups
        assert group.key == "gp:ChIJabc"
        assert set(group.record_ids) == {"L1", "L2", "L3"}

    def test_merge_applies_to_split_record(self, cafe_records):
        overrides = GroupingOverrides(merge=frozenset({("L2", "L3")}), split=frozenset({"L2"}))

        groups = {g.key: set(g.record_ids) for g in group_places(cafe_records, overrides)}

        assert groups == {"gp:ChIJabc": {"L1"}, "nc:caferoma|paris|": {"L2", "L3"}}


@pytest.mark.unit
class TestAggregateGroups:
    """Counts sum and ratings pool over every folded row."""

    def test_sums_across_folded_rows(self, cafe_records):
        groups = aggregate_groups(
            group_places(cafe_records),
            location_saves={"L1": 2, "L2": 1, "L3": 5},
            place_saves={"ChIJabc": 1},
            posts={"L1": 1, "L2": 2},
            ratings={"L1": [4.0], "L2": [5.0]},
        )

        louvre, cafe = groups
        assert (cafe.key, cafe.saves_count, cafe.posts_count, cafe.average_rating) == (
            "gp:ChIJabc",
            4,
            3,
            4.5,
        )
        assert louvre.saves_count == 5
        assert louvre.average_rating is None

    def test_ties_sort_by_key(self, cafe_records):
        groups = aggregate_groups(
            group_places(cafe_records), location_saves={}, place_saves={}, posts={}, ratings={}
        )

        assert [g.key for g in groups] == ["gp:ChIJabc", "nc:louvre|paris|"]
