from spott_service.features.shares.slice import LocationShare, LocationSharesSlice, LocationSharesState

__all__ = ["LocationShare", "LocationSharesSlice", "LocationSharesState"]
