"""Change bindings attached to every principal's realtime channel."""

from __future__ import annotations

from dataclasses import dataclass

from spott_service.infra.gateway.protocol import ChangeOperation
from spott_service.infra.realtime.events import EventType


@dataclass(frozen=True, slots=True)
class ChangeBinding:
    """One ``(table, operation, principal filter)`` subscription and the event it produces.

    ``filter_column`` restricts the binding to rows whose column equals the
    principal id; ``None`` subscribes to every row of the table.
    """

    table: str
    operation: ChangeOperation
    filter_column: str | None
    event_type: EventType

    def row_filter(self, principal_id: str) -> str | None:
        if self.filter_column is None:
            return None
        return f"{self.filter_column}=eq.{principal_id}"


_I = ChangeOperation.INSERT
_U = ChangeOperation.UPDATE
_D = ChangeOperation.DELETE

DEFAULT_BINDINGS: tuple[ChangeBinding, ...] = (
    # Principal-scoped collections
    ChangeBinding("notifications", _I, "user_id", EventType.NOTIFICATION_INSERT),
    ChangeBinding("notifications", _U, "user_id", EventType.NOTIFICATION_UPDATE),
    ChangeBinding("notifications", _D, "user_id", EventType.NOTIFICATION_DELETE),
    ChangeBinding("user_saved_locations", _I, "user_id", EventType.SAVED_LOCATION_INSERT),
    ChangeBinding("user_saved_locations", _D, "user_id", EventType.SAVED_LOCATION_DELETE),
    ChangeBinding("saved_places", _I, "user_id", EventType.SAVED_PLACE_INSERT),
    ChangeBinding("saved_places", _D, "user_id", EventType.SAVED_PLACE_DELETE),
    ChangeBinding("follows", _I, "following_id", EventType.FOLLOW_INSERT),
    ChangeBinding("follows", _D, "following_id", EventType.FOLLOW_DELETE),
    ChangeBinding("follows", _I, "follower_id", EventType.FOLLOW_INSERT),
    ChangeBinding("follows", _D, "follower_id", EventType.FOLLOW_DELETE),
    ChangeBinding("direct_messages", _I, "receiver_id", EventType.MESSAGE_INSERT),
    ChangeBinding("profiles", _U, "id", EventType.PROFILE_UPDATE),
    # Shared collections; slices filter by the post ids they track
    ChangeBinding("post_likes", _I, None, EventType.POST_LIKE_INSERT),
    ChangeBinding("post_likes", _D, None, EventType.POST_LIKE_DELETE),
    ChangeBinding("post_comments", _I, None, EventType.POST_COMMENT_INSERT),
    ChangeBinding("post_comments", _D, None, EventType.POST_COMMENT_DELETE),
    ChangeBinding("post_shares", _I, None, EventType.POST_SHARE_INSERT),
    ChangeBinding("post_shares", _D, None, EventType.POST_SHARE_DELETE),
    ChangeBinding("user_location_shares", _I, None, EventType.LOCATION_SHARE_INSERT),
    ChangeBinding("user_location_shares", _U, None, EventType.LOCATION_SHARE_UPDATE),
    ChangeBinding("user_location_shares", _D, None, EventType.LOCATION_SHARE_DELETE),
)
