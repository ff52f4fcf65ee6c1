"""Live direct-message thread between the principal and one partner."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice, MutationResult, OptimisticPatch
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import DirectMessageRow, EventType, Row
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events

PENDING_PREFIX = "pending:"

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _chronological(messages: list[DirectMessageRow]) -> tuple[DirectMessageRow, ...]:
    return tuple(sorted(messages, key=lambda m: (m.created_at or _EPOCH, m.id)))


@dataclass(frozen=True, slots=True)
class ConversationState:
    messages: tuple[DirectMessageRow, ...] = ()

    def unread_from(self, sender_id: str) -> list[str]:
        return [m.id for m in self.messages if m.sender_id == sender_id and not m.is_read]

    def without(self, message_id: str) -> ConversationState:
        return ConversationState(tuple(m for m in self.messages if m.id != message_id))


class ConversationSlice(LiveSlice[ConversationState]):
    """Messages exchanged with ``partner_id``, oldest first."""

    name = "conversation"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        principal_id: str | None,
        partner_id: str | None,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self.principal_id = principal_id
        self.partner_id = partner_id
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return self.principal_id is not None and self.partner_id is not None

    @property
    def poll_interval(self) -> float:
        return self._settings.messages_poll_interval

    def empty_state(self) -> ConversationState:
        return ConversationState()

    async def load(self) -> ConversationState:
        sent = await self._gateway.select(
            "direct_messages",
            Query().eq("sender_id", self.principal_id).eq("receiver_id", self.partner_id),
        )
        received = await self._gateway.select(
            "direct_messages",
            Query().eq("sender_id", self.partner_id).eq("receiver_id", self.principal_id),
        )
        return ConversationState(
            _chronological([DirectMessageRow.model_validate(r) for r in (*sent, *received)])
        )

    def subscribe_events(self) -> list[EventSubscription]:
        return [on_events(self._bus, EventType.MESSAGE_INSERT, self._on_message)]

    def _on_message(self, row: Row) -> None:
        assert isinstance(row, DirectMessageRow)
        if row.sender_id != self.partner_id or row.receiver_id != self.principal_id:
            return
        if any(m.id == row.id for m in self._state.messages):
            return
        self._set_state(ConversationState(_chronological([*self._state.messages, row])))

    # ──────────────────────────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────────────────────────

    async def send_message(self, content: str) -> MutationResult:
        if not self.scoped:
            return MutationResult(success=False, error="Not authenticated")
        text = content.strip()
        if not text:
            return MutationResult(success=False, error="Message is empty")

        placeholder = DirectMessageRow(
            id=f"{PENDING_PREFIX}{uuid4().hex}",
            sender_id=self.principal_id,
            receiver_id=self.partner_id,
            content=text,
            is_read=False,
            created_at=datetime.now(UTC),
        )

        async def persist() -> Any:
            rows = await self._gateway.insert(
                "direct_messages",
                {
                    "sender_id": self.principal_id,
                    "receiver_id": self.partner_id,
                    "content": text,
                    "is_read": False,
                },
            )
            return rows[0] if rows else None

        patch = OptimisticPatch(
            forward=lambda s: ConversationState(_chronological([*s.messages, placeholder])),
            inverse=lambda s: s.without(placeholder.id),
        )
        result = await self._mutate("send_message", persist, patch)
        if result.success and isinstance(result.data, dict):
            self._confirm_sent(placeholder.id, DirectMessageRow.model_validate(result.data))
        return result

    def _confirm_sent(self, placeholder_id: str, stored: DirectMessageRow) -> None:
        state = self._state.without(placeholder_id)
        if not any(m.id == stored.id for m in state.messages):
            state = ConversationState(_chronological([*state.messages, stored]))
        self._set_state(state)

    async def mark_read(self) -> MutationResult:
        """Mark every unread message from the partner as read."""
        if not self.scoped:
            return MutationResult(success=False, error="Not authenticated")
        assert self.partner_id is not None
        unread = set(self._state.unread_from(self.partner_id))
        if not unread:
            return MutationResult(success=True, data=[])

        def set_read(value: bool):
            def patch(state: ConversationState) -> ConversationState:
                return ConversationState(
                    tuple(
                        m.model_copy(update={"is_read": value}) if m.id in unread else m
                        for m in state.messages
                    )
                )

            return patch

        async def persist() -> Any:
            return await self._gateway.update(
                "direct_messages",
                {"is_read": True},
                Query()
                .eq("sender_id", self.partner_id)
                .eq("receiver_id", self.principal_id)
                .eq("is_read", False),
            )

        return await self._mutate("mark_read", persist, OptimisticPatch(set_read(True), set_read(False)))
