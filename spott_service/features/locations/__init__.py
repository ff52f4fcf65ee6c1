"""Location stats, identity grouping and catalog search."""

from spott_service.features.locations.catalog import CatalogResult, LocationCatalog, LocationSearch
from spott_service.features.locations.grouping import (
    GroupingOverrides,
    PlaceGroup,
    PlaceRecord,
    RecordSource,
    aggregate_groups,
    extract_city_from_address,
    group_places,
    mean_rating,
    normalize_city,
)
from spott_service.features.locations.stats import LocationStats, LocationStatsSlice

__all__ = [
    "CatalogResult",
    "GroupingOverrides",
    "LocationCatalog",
    "LocationSearch",
    "LocationStats",
    "LocationStatsSlice",
    "PlaceGroup",
    "PlaceRecord",
    "RecordSource",
    "aggregate_groups",
    "extract_city_from_address",
    "group_places",
    "mean_rating",
    "normalize_city",
]
