"""Typed realtime events.

Every raw row change the bus accepts becomes exactly one ``RealtimeEvent``.
The event's ``type`` tag fully determines both its operation and the model
of its payload, so handlers can rely on ``event.payload`` having the columns
of the collection that changed.

Row models keep every column optional except ``id``: delete notifications
usually carry the primary key and nothing else. Unknown columns are kept.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, field_validator, model_validator

from spott_service.infra.gateway.protocol import ChangeOperation


class EventType(StrEnum):
    """Closed set of event variants delivered by the realtime bus."""

    NOTIFICATION_INSERT = "notification_insert"
    NOTIFICATION_UPDATE = "notification_update"
    NOTIFICATION_DELETE = "notification_delete"
    SAVED_LOCATION_INSERT = "saved_location_insert"
    SAVED_LOCATION_DELETE = "saved_location_delete"
    SAVED_PLACE_INSERT = "saved_place_insert"
    SAVED_PLACE_DELETE = "saved_place_delete"
    FOLLOW_INSERT = "follow_insert"
    FOLLOW_DELETE = "follow_delete"
    POST_LIKE_INSERT = "post_like_insert"
    POST_LIKE_DELETE = "post_like_delete"
    POST_COMMENT_INSERT = "post_comment_insert"
    POST_COMMENT_DELETE = "post_comment_delete"
    POST_SHARE_INSERT = "post_share_insert"
    POST_SHARE_DELETE = "post_share_delete"
    MESSAGE_INSERT = "message_insert"
    PROFILE_UPDATE = "profile_update"
    LOCATION_SHARE_INSERT = "location_share_insert"
    LOCATION_SHARE_UPDATE = "location_share_update"
    LOCATION_SHARE_DELETE = "location_share_delete"


# ──────────────────────────────────────────────────────────────
# Row payloads
# ──────────────────────────────────────────────────────────────


class Row(BaseModel):
    """Base for collection rows. Naive timestamps are read as UTC."""

    id: str

    model_config = ConfigDict(frozen=True, extra="allow", coerce_numbers_to_str=True)

    @field_validator("*", mode="after")
    @classmethod
    def _assume_utc(cls, value: Any) -> Any:
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class NotificationRow(Row):
    user_id: str | None = None
    type: str | None = None
    title: str | None = None
    message: str | None = None
    data: dict[str, Any] | None = None
    is_read: bool | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None


class SavedLocationRow(Row):
    """Row of ``user_saved_locations``: a principal saving a catalogued location."""

    user_id: str | None = None
    location_id: str | None = None
    save_tag: str | None = None
    created_at: datetime | None = None


class SavedPlaceRow(Row):
    """Row of ``saved_places``: a principal saving an external (Google) place."""

    user_id: str | None = None
    place_id: str | None = None
    place_name: str | None = None
    place_category: str | None = None
    city: str | None = None
    coordinates: dict[str, Any] | None = None
    save_tag: str | None = None
    created_at: datetime | None = None


class FollowRow(Row):
    follower_id: str | None = None
    following_id: str | None = None
    created_at: datetime | None = None


class PostLikeRow(Row):
    post_id: str | None = None
    user_id: str | None = None
    created_at: datetime | None = None


class PostCommentRow(Row):
    post_id: str | None = None
    user_id: str | None = None
    content: str | None = None
    created_at: datetime | None = None


class PostShareRow(Row):
    post_id: str | None = None
    user_id: str | None = None
    created_at: datetime | None = None


class DirectMessageRow(Row):
    sender_id: str | None = None
    receiver_id: str | None = None
    content: str | None = None
    is_read: bool | None = None
    created_at: datetime | None = None


class ProfileRow(Row):
    username: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None
    current_city: str | None = None
    cities_visited: int | None = None
    places_visited: int | None = None


class LocationShareRow(Row):
    user_id: str | None = None
    location_id: str | None = None
    location_name: str | None = None
    location_address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    share_type: str | None = None
    created_at: datetime | None = None
    expires_at: datetime | None = None


EVENT_PAYLOADS: dict[EventType, type[Row]] = {
    EventType.NOTIFICATION_INSERT: NotificationRow,
    EventType.NOTIFICATION_UPDATE: NotificationRow,
    EventType.NOTIFICATION_DELETE: NotificationRow,
    EventType.SAVED_LOCATION_INSERT: SavedLocationRow,
    EventType.SAVED_LOCATION_DELETE: SavedLocationRow,
    EventType.SAVED_PLACE_INSERT: SavedPlaceRow,
    EventType.SAVED_PLACE_DELETE: SavedPlaceRow,
    EventType.FOLLOW_INSERT: FollowRow,
    EventType.FOLLOW_DELETE: FollowRow,
    EventType.POST_LIKE_INSERT: PostLikeRow,
    EventType.POST_LIKE_DELETE: PostLikeRow,
    EventType.POST_COMMENT_INSERT: PostCommentRow,
    EventType.POST_COMMENT_DELETE: PostCommentRow,
    EventType.POST_SHARE_INSERT: PostShareRow,
    EventType.POST_SHARE_DELETE: PostShareRow,
    EventType.MESSAGE_INSERT: DirectMessageRow,
    EventType.PROFILE_UPDATE: ProfileRow,
    EventType.LOCATION_SHARE_INSERT: LocationShareRow,
    EventType.LOCATION_SHARE_UPDATE: LocationShareRow,
    EventType.LOCATION_SHARE_DELETE: LocationShareRow,
}


def _operation_for(event_type: EventType) -> ChangeOperation:
    suffix = event_type.value.rsplit("_", 1)[1].upper()
    return ChangeOperation(suffix)


EVENT_OPERATIONS: dict[EventType, ChangeOperation] = {t: _operation_for(t) for t in EventType}


class RealtimeEvent(BaseModel):
    """A typed change delivered to bus handlers.

    Attributes:
        type: Event variant.
        operation: Row operation implied by the variant.
        payload: Row model matching the variant.
        event_id: Unique id of this delivery.
        received_at: When the bus received the underlying change (UTC).
    """

    type: EventType
    operation: ChangeOperation
    payload: SerializeAsAny[Row]
    event_id: str = Field(default_factory=lambda: uuid4().hex)
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _coerce_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        try:
            event_type = EventType(data.get("type"))
        except ValueError:
            return data
        data = dict(data)
        payload = data.get("payload")
        if isinstance(payload, dict):
            data["payload"] = EVENT_PAYLOADS[event_type].model_validate(payload)
        data.setdefault("operation", EVENT_OPERATIONS[event_type])
        return data

    @model_validator(mode="after")
    def _check_variant(self) -> RealtimeEvent:
        expected_payload = EVENT_PAYLOADS[self.type]
        if type(self.payload) is not expected_payload:
            raise ValueError(
                f"{self.type} requires a {expected_payload.__name__} payload, "
                f"got {type(self.payload).__name__}"
            )
        if self.operation is not EVENT_OPERATIONS[self.type]:
            raise ValueError(f"{self.type} is an {EVENT_OPERATIONS[self.type]} event")
        return self


def make_event(event_type: EventType, record: dict[str, Any] | Row) -> RealtimeEvent:
    """Build the event for ``record``; raises ``pydantic.ValidationError`` if it does not fit."""
    return RealtimeEvent(type=event_type, payload=record)
