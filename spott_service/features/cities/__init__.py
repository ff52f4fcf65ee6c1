"""City-level slices and the recent city search store."""

from spott_service.features.cities.engagement import CityEngagementSlice, CityEngagementState
from spott_service.features.cities.recent import RecentSearches
from spott_service.features.cities.saved import (
    CommonLocations,
    SavedCitiesState,
    SavedCity,
    UserSavedCitiesSlice,
)

__all__ = [
    "CityEngagementSlice",
    "CityEngagementState",
    "CommonLocations",
    "RecentSearches",
    "SavedCitiesState",
    "SavedCity",
    "UserSavedCitiesSlice",
]
