"""Live slice base class.

A slice owns one piece of domain state for a scope (a principal, a post
list, a location...). It is filled by a bulk read, kept current by typed
bus events, and corrected by a periodic backstop refresh that catches
anything the event stream missed.

Contract shared by every slice:

- Without a scope the slice sits in its empty state, ``loaded`` is true and
  no reads, subscriptions or timers are started.
- Every refresh takes a sequence ticket; a response older than the newest
  issued refresh is discarded.
- Read failures are logged and resolve to the empty state.
- Optimistic mutations are ``OptimisticPatch`` objects: the forward patch is
  applied before the write and the inverse is applied if the write fails.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import ValidationError

from spott_service.core.exceptions import GatewayError
from spott_service.core.settings import get_realtime_settings
from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.infra.gateway.protocol import Gateway
from spott_service.infra.metrics.prometheus import slice_mutations_total, slice_refreshes_total
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.subscriptions import EventSubscription
from spott_service.utils.sequencing import RequestSequencer

logger = logging.getLogger(__name__)

StateListener = Callable[[Any], None]


@dataclass(frozen=True, slots=True)
class MutationResult:
    """Outcome of an imperative slice mutation."""

    success: bool
    error: str | None = None
    data: Any = None


@dataclass(frozen=True, slots=True)
class OptimisticPatch[S]:
    """A reversible state change: ``forward`` before the write, ``inverse`` if it fails.

    Both are applied to whatever the state is at that moment, so events that
    arrived in between are preserved.
    """

    forward: Callable[[S], S]
    inverse: Callable[[S], S]


def chunked[T](items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class LiveSlice[S](ABC):
    """Base for live feature slices; see the module docstring for the contract."""

    name: ClassVar[str] = "slice"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self._gateway = gateway
        self._bus = bus
        self._settings = settings or get_realtime_settings()

        self._state: S = self.initial_state()
        self._loading = False
        self._loaded = False
        self._started = False

        self._listeners: dict[int, StateListener] = {}
        self._listener_ids = itertools.count(1)
        self._subscriptions: list[EventSubscription] = []
        self._sequencer = RequestSequencer()

        self._poll_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._refresh_again = False

    # ──────────────────────────────────────────────────────────────
    # Hooks for subclasses
    # ──────────────────────────────────────────────────────────────

    @property
    @abstractmethod
    def scoped(self) -> bool:
        """True when every identifier the slice needs is known."""

    @property
    @abstractmethod
    def poll_interval(self) -> float:
        """Backstop interval in seconds; 0 disables polling."""

    @abstractmethod
    def empty_state(self) -> S:
        """State of an unscoped slice, or after a failed read."""

    def initial_state(self) -> S:
        """State before the first load completes (defaults to the empty state)."""
        return self.empty_state()

    @abstractmethod
    async def load(self) -> S:
        """Bulk read the full state from the gateway."""

    def subscribe_events(self) -> list[EventSubscription]:
        return []

    async def backstop(self) -> None:
        await self.refresh()

    # ──────────────────────────────────────────────────────────────
    # Public surface
    # ──────────────────────────────────────────────────────────────

    @property
    def state(self) -> S:
        return self._state

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def started(self) -> bool:
        return self._started

    def watch(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(state)`` on every change; returns an idempotent unwatch."""
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = listener

        def unwatch() -> None:
            self._listeners.pop(listener_id, None)

        return unwatch

    async def start(self) -> None:
        if self._started:
            return
        self._started = True

        if not self.scoped:
            self._loaded = True
            self._set_state(self.empty_state())
            return

        self._subscriptions = self.subscribe_events()
        await self.refresh()
        if self.poll_interval > 0:
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        self._started = False
        self._sequencer.invalidate()
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []

        for task in (self._poll_task, self._refresh_task):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._poll_task = None
        self._refresh_task = None
        self._loading = False

    async def refresh(self) -> None:
        """Reload the full state; stale responses are discarded."""
        if not self.scoped:
            return

        ticket = self._sequencer.next()
        self._loading = True
        self._notify()

        try:
            state = await self.load()
        except (GatewayError, ValidationError) as e:
            if not self._sequencer.is_current(ticket):
                return
            slice_refreshes_total.labels(slice=self.name, outcome="error").inc()
            logger.warning(
                "%s refresh failed, using empty state",
                self.name,
                extra={"slice": self.name, "error": str(e)},
            )
            state = self.empty_state()
        else:
            if not self._sequencer.is_current(ticket):
                slice_refreshes_total.labels(slice=self.name, outcome="stale").inc()
                logger.debug("Discarding stale %s response", self.name, extra={"ticket": ticket})
                return
            slice_refreshes_total.labels(slice=self.name, outcome="ok").inc()

        self._state = state
        self._loading = False
        self._loaded = True
        self._notify()

    async def wait_idle(self) -> None:
        """Wait for any scheduled refresh to finish."""
        while self._refresh_task is not None and not self._refresh_task.done():
            await asyncio.shield(self._refresh_task)

    async def __aenter__(self) -> LiveSlice[S]:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    # ──────────────────────────────────────────────────────────────
    # Helpers for subclasses
    # ──────────────────────────────────────────────────────────────

    def _set_state(self, state: S) -> None:
        self._state = state
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(self._state)
            except Exception:
                logger.exception("%s listener failed", self.name, extra={"slice": self.name})

    def _schedule_refresh(self) -> None:
        """Queue a full refresh; bursts of events collapse into at most one follow-up."""
        if not self._started or not self.scoped:
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_again = True
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._run_scheduled_refresh())

    async def _run_scheduled_refresh(self) -> None:
        while True:
            self._refresh_again = False
            await self.refresh()
            if not self._refresh_again:
                return

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.backstop()

    async def _mutate(
        self,
        action: str,
        persist: Callable[[], Awaitable[Any]],
        patch: OptimisticPatch[S] | None = None,
    ) -> MutationResult:
        """Apply ``patch`` optimistically, run ``persist``, revert on failure."""
        if patch is not None:
            self._set_state(patch.forward(self._state))

        try:
            data = await persist()
        except GatewayError as e:
            if patch is not None:
                self._set_state(patch.inverse(self._state))
            slice_mutations_total.labels(slice=self.name, outcome="error").inc()
            logger.warning(
                "%s %s failed",
                self.name,
                action,
                extra={"slice": self.name, "action": action, "error": e.message},
            )
            return MutationResult(success=False, error=e.message)

        slice_mutations_total.labels(slice=self.name, outcome="ok").inc()
        return MutationResult(success=True, data=data)
