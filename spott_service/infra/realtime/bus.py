"""Realtime fan-out bus.

Holds at most one change channel, for the active principal, and broadcasts
every change on it as a typed ``RealtimeEvent`` to any number of local
handlers. Feature slices subscribe here instead of opening their own
channels, so a signed-in client keeps exactly one live subscription.

Session state machine:

    UNINITIALIZED -> ESTABLISHING(p) -> LIVE(p) -> UNINITIALIZED

A channel error, timeout or close drops back to UNINITIALIZED while
remembering the principal; the next ``ensure_session_for_principal`` call
for that principal subscribes again. There is no automatic retry loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Iterable
from enum import StrEnum
from functools import partial

from pydantic import ValidationError

from spott_service.core.settings import get_realtime_settings
from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.infra.gateway.protocol import (
    ChangeChannel,
    ChangeNotification,
    ChannelStatus,
    Gateway,
)
from spott_service.infra.metrics.prometheus import (
    realtime_events_broadcast_total,
    realtime_events_dropped_total,
    realtime_handler_failures_total,
    realtime_handlers_registered,
    realtime_session_failures_total,
    realtime_sessions_established_total,
)
from spott_service.infra.realtime.bindings import DEFAULT_BINDINGS, ChangeBinding
from spott_service.infra.realtime.events import RealtimeEvent, make_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[RealtimeEvent], None]
Unsubscribe = Callable[[], None]


class SessionState(StrEnum):
    UNINITIALIZED = "uninitialized"
    ESTABLISHING = "establishing"
    LIVE = "live"


class RealtimeBus:
    """Single shared change subscription fanned out to local handlers.

    Example:
        bus = RealtimeBus(gateway)
        unsubscribe = bus.subscribe(lambda event: print(event.type))
        await bus.ensure_session_for_principal(user_id)
        ...
        unsubscribe()
        await bus.ensure_session_for_principal(None)  # sign-out
    """

    def __init__(
        self,
        gateway: Gateway,
        settings: RealtimeSettings | None = None,
        *,
        bindings: Iterable[ChangeBinding] = DEFAULT_BINDINGS,
    ) -> None:
        self._gateway = gateway
        self._settings = settings or get_realtime_settings()
        self._bindings = tuple(bindings)

        self._handlers: dict[int, EventHandler] = {}
        self._tokens = itertools.count(1)

        self._lock = asyncio.Lock()
        self._state = SessionState.UNINITIALIZED
        self._principal_id: str | None = None
        self._channel: ChangeChannel | None = None

    # ──────────────────────────────────────────────────────────────
    # Introspection
    # ──────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def principal_id(self) -> str | None:
        return self._principal_id

    @property
    def channel(self) -> ChangeChannel | None:
        return self._channel

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def channel_name(self, principal_id: str) -> str:
        return f"{self._settings.channel_prefix}{principal_id}"

    # ──────────────────────────────────────────────────────────────
    # Handlers
    # ──────────────────────────────────────────────────────────────

    def subscribe(self, handler: EventHandler) -> Unsubscribe:
        """Register ``handler`` for every event; returns an idempotent unsubscribe."""
        token = next(self._tokens)
        self._handlers[token] = handler
        realtime_handlers_registered.set(len(self._handlers))

        def unsubscribe() -> None:
            if self._handlers.pop(token, None) is not None:
                realtime_handlers_registered.set(len(self._handlers))

        return unsubscribe

    def broadcast(self, event: RealtimeEvent) -> None:
        """Deliver ``event`` to every handler registered at call time.

        A handler that raises is logged and skipped; the rest still run.
        """
        realtime_events_broadcast_total.labels(event_type=event.type.value).inc()
        for handler in list(self._handlers.values()):
            try:
                handler(event)
            except Exception:
                realtime_handler_failures_total.inc()
                logger.exception(
                    "Realtime handler failed",
                    extra={"event_type": event.type.value, "event_id": event.event_id},
                )

    # ──────────────────────────────────────────────────────────────
    # Session
    # ──────────────────────────────────────────────────────────────

    async def ensure_session_for_principal(self, principal_id: str | None) -> None:
        """Make the bus's channel match ``principal_id``.

        Same principal with a live or establishing session is a no-op. A
        different principal closes the current channel before requesting the
        new one. ``None`` closes the channel and forgets the principal, keeping
        registered handlers.
        """
        async with self._lock:
            if principal_id is None:
                await self._teardown()
                return

            if principal_id == self._principal_id and self._state in (
                SessionState.ESTABLISHING,
                SessionState.LIVE,
            ):
                return

            await self._teardown()
            await self._establish(principal_id)

    async def close(self) -> None:
        """Close the channel and drop every handler."""
        async with self._lock:
            await self._teardown()
        self._handlers.clear()
        realtime_handlers_registered.set(0)

    async def _establish(self, principal_id: str) -> None:
        self._principal_id = principal_id
        self._state = SessionState.ESTABLISHING

        channel = self._gateway.channel(self.channel_name(principal_id))
        for binding in self._bindings:
            channel.on_change(
                binding.table,
                binding.operation,
                binding.row_filter(principal_id),
                partial(self._handle_change, channel, binding),
            )
        self._channel = channel
        realtime_sessions_established_total.inc()

        logger.info(
            "Requesting realtime session",
            extra={
                "principal_id": principal_id,
                "channel": channel.name,
                "bindings": len(self._bindings),
            },
        )
        try:
            await channel.subscribe(partial(self._handle_status, channel))
        except Exception:
            realtime_session_failures_total.labels(status="subscribe_failed").inc()
            logger.exception(
                "Realtime subscribe failed, session reset",
                extra={"principal_id": principal_id, "channel": channel.name},
            )
            if self._channel is channel:
                self._channel = None
                self._state = SessionState.UNINITIALIZED
            await channel.close()
            raise

        if self._channel is channel and self._state is SessionState.ESTABLISHING:
            self._state = SessionState.LIVE

    async def _teardown(self) -> None:
        channel = self._channel
        previous = self._principal_id
        self._channel = None
        self._principal_id = None
        self._state = SessionState.UNINITIALIZED
        if channel is not None:
            await channel.close()
            logger.info(
                "Realtime session closed",
                extra={"principal_id": previous, "channel": channel.name},
            )

    def _handle_status(
        self,
        channel: ChangeChannel,
        status: ChannelStatus,
        error: Exception | None,
    ) -> None:
        if channel is not self._channel:
            return

        if status is ChannelStatus.SUBSCRIBED:
            self._state = SessionState.LIVE
            logger.info(
                "Realtime session live",
                extra={"principal_id": self._principal_id, "channel": channel.name},
            )
            return

        realtime_session_failures_total.labels(status=status.value).inc()
        self._state = SessionState.UNINITIALIZED
        logger.warning(
            "Realtime channel %s, session reset",
            status.value,
            extra={
                "principal_id": self._principal_id,
                "channel": channel.name,
                "error": str(error) if error else None,
            },
        )

    def _handle_change(
        self,
        channel: ChangeChannel,
        binding: ChangeBinding,
        notification: ChangeNotification,
    ) -> None:
        if channel is not self._channel:
            realtime_events_dropped_total.labels(reason="stale_channel").inc()
            return

        if notification.operation is not binding.operation:
            realtime_events_dropped_total.labels(reason="operation_mismatch").inc()
            logger.debug(
                "Dropping change with mismatched operation",
                extra={
                    "table": notification.table,
                    "operation": notification.operation.value,
                    "expected": binding.operation.value,
                },
            )
            return

        try:
            event = make_event(binding.event_type, notification.record)
        except ValidationError as e:
            realtime_events_dropped_total.labels(reason="invalid_payload").inc()
            logger.warning(
                "Dropping malformed change payload",
                extra={
                    "table": notification.table,
                    "event_type": binding.event_type.value,
                    "errors": e.error_count(),
                },
            )
            return

        self.broadcast(event)
