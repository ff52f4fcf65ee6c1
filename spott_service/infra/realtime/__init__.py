"""Realtime fan-out bus, typed events and variant subscriptions."""

from spott_service.infra.realtime.bindings import DEFAULT_BINDINGS, ChangeBinding
from spott_service.infra.realtime.bus import RealtimeBus, SessionState
from spott_service.infra.realtime.events import (
    EVENT_OPERATIONS,
    EVENT_PAYLOADS,
    DirectMessageRow,
    EventType,
    FollowRow,
    LocationShareRow,
    NotificationRow,
    PostCommentRow,
    PostLikeRow,
    PostShareRow,
    ProfileRow,
    RealtimeEvent,
    Row,
    SavedLocationRow,
    SavedPlaceRow,
    make_event,
)
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events

__all__ = [
    "DEFAULT_BINDINGS",
    "EVENT_OPERATIONS",
    "EVENT_PAYLOADS",
    "ChangeBinding",
    "DirectMessageRow",
    "EventSubscription",
    "EventType",
    "FollowRow",
    "LocationShareRow",
    "NotificationRow",
    "PostCommentRow",
    "PostLikeRow",
    "PostShareRow",
    "ProfileRow",
    "RealtimeBus",
    "RealtimeEvent",
    "Row",
    "SavedLocationRow",
    "SavedPlaceRow",
    "SessionState",
    "make_event",
    "on_events",
]
