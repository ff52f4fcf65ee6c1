"""Notifications slice."""

from spott_service.features.notifications.slice import NotificationsSlice, NotificationsState

__all__ = ["NotificationsSlice", "NotificationsState"]
