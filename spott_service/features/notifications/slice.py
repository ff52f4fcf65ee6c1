"""Live notifications for the signed-in principal."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice, MutationResult, OptimisticPatch
from spott_service.infra.gateway.protocol import Gateway
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import EventType, NotificationRow
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events

NOT_AUTHENTICATED = "Not authenticated"


@dataclass(frozen=True, slots=True)
class NotificationsState:
    items: tuple[NotificationRow, ...] = ()

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.items if not n.is_read)

    @property
    def unread_ids(self) -> list[str]:
        return [n.id for n in self.items if not n.is_read]


def _with_read_flag(state: NotificationsState, ids: set[str], is_read: bool) -> NotificationsState:
    return replace(
        state,
        items=tuple(
            n.model_copy(update={"is_read": is_read}) if n.id in ids else n for n in state.items
        ),
    )


def _newest_first(items: Iterable[NotificationRow], limit: int) -> tuple[NotificationRow, ...]:
    # A row without created_at has just been inserted
    ordered = sorted(
        items,
        key=lambda n: n.created_at.timestamp() if n.created_at else float("inf"),
        reverse=True,
    )
    return tuple(ordered[:limit])


class NotificationsSlice(LiveSlice[NotificationsState]):
    """Newest-first notifications with unread count and read/send mutations.

    Inserts are merged newest first and capped at the page size, the same
    window a refresh returns (an id already present is replaced instead).
    Updates replace by id and deletes remove by id.
    """

    name = "notifications"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        principal_id: str | None,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self.principal_id = principal_id
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return self.principal_id is not None

    @property
    def poll_interval(self) -> float:
        return self._settings.notifications_poll_interval

    def empty_state(self) -> NotificationsState:
        return NotificationsState()

    async def load(self) -> NotificationsState:
        result = await self._gateway.invoke("notifications/user")
        rows = result.get("data") if isinstance(result, dict) else result
        items = [NotificationRow.model_validate(row) for row in rows or []]
        return NotificationsState(_newest_first(items, self._settings.notifications_page_size))

    def subscribe_events(self) -> list[EventSubscription]:
        return [
            on_events(self._bus, EventType.NOTIFICATION_INSERT, self._on_insert),
            on_events(self._bus, EventType.NOTIFICATION_UPDATE, self._on_update),
            on_events(self._bus, EventType.NOTIFICATION_DELETE, self._on_delete),
        ]

    # ──────────────────────────────────────────────────────────────
    # Event handlers
    # ──────────────────────────────────────────────────────────────

    def _on_insert(self, row: NotificationRow) -> None:
        if row.user_id is not None and row.user_id != self.principal_id:
            return
        items = self._state.items
        if any(n.id == row.id for n in items):
            self._set_state(NotificationsState(tuple(row if n.id == row.id else n for n in items)))
            return
        limit = self._settings.notifications_page_size
        self._set_state(NotificationsState(_newest_first((row, *items), limit)))

    def _on_update(self, row: NotificationRow) -> None:
        items = self._state.items
        if not any(n.id == row.id for n in items):
            return
        self._set_state(NotificationsState(tuple(row if n.id == row.id else n for n in items)))

    def _on_delete(self, row: NotificationRow) -> None:
        items = self._state.items
        remaining = tuple(n for n in items if n.id != row.id)
        if len(remaining) != len(items):
            self._set_state(NotificationsState(remaining))

    # ──────────────────────────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────────────────────────

    async def mark_as_read(self, notification_ids: Iterable[str]) -> MutationResult:
        if not self.scoped:
            return MutationResult(success=False, error=NOT_AUTHENTICATED)

        ids = list(dict.fromkeys(notification_ids))
        if not ids:
            return MutationResult(success=True)

        previously_unread = {n.id for n in self._state.items if n.id in ids and not n.is_read}
        patch = OptimisticPatch(
            forward=lambda s: _with_read_flag(s, previously_unread, True),
            inverse=lambda s: _with_read_flag(s, previously_unread, False),
        )

        async def persist() -> Any:
            result = await self._gateway.invoke("notifications/read", {"notificationIds": ids})
            return result.get("data") if isinstance(result, dict) else result

        return await self._mutate("mark_as_read", persist, patch)

    async def mark_all_as_read(self) -> MutationResult:
        unread = self._state.unread_ids
        if not unread:
            return MutationResult(success=True)
        return await self.mark_as_read(unread)

    async def send_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> MutationResult:
        if not self.scoped:
            return MutationResult(success=False, error=NOT_AUTHENTICATED)

        async def persist() -> Any:
            result = await self._gateway.invoke(
                "notifications/send",
                {"userId": user_id, "type": type, "title": title, "message": message, "data": data or {}},
            )
            return result.get("data") if isinstance(result, dict) else result

        return await self._mutate("send_notification", persist)
