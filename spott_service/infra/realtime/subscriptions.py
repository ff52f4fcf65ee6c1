"""Variant-filtered subscriptions on top of the realtime bus."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from spott_service.infra.realtime.events import EventType, RealtimeEvent, Row

if TYPE_CHECKING:
    from spott_service.infra.realtime.bus import RealtimeBus

PayloadCallback = Callable[[Any], None]


class EventSubscription:
    """One bus registration that forwards payloads of selected variants.

    The callback can be swapped with ``update`` without touching the bus
    registration, which is what a slice does when its scope changes.
    """

    def __init__(
        self,
        bus: RealtimeBus,
        types: Iterable[EventType],
        callback: Callable[[Row], None],
    ) -> None:
        self._types = frozenset(types)
        self._callback = callback
        self._closed = False
        self._unsubscribe = bus.subscribe(self._dispatch)

    @property
    def types(self) -> frozenset[EventType]:
        return self._types

    @property
    def closed(self) -> bool:
        return self._closed

    def _dispatch(self, event: RealtimeEvent) -> None:
        if self._closed or event.type not in self._types:
            return
        self._callback(event.payload)

    def update(self, callback: Callable[[Row], None]) -> None:
        """Route future events to ``callback`` instead."""
        self._callback = callback

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe()

    def __enter__(self) -> EventSubscription:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def on_events(
    bus: RealtimeBus,
    types: EventType | Iterable[EventType],
    callback: Callable[[Row], None],
) -> EventSubscription:
    """Subscribe ``callback`` to the payloads of one or more event variants.

    Example:
        with on_events(bus, EventType.NOTIFICATION_INSERT, prepend) as sub:
            ...
    """
    selected = (types,) if isinstance(types, EventType) else tuple(types)
    return EventSubscription(bus, selected, callback)
