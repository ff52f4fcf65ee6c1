"""Monotonic request tagging so late responses never overwrite newer ones."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RequestSequencer:
    """Issues increasing tickets and tells whether a ticket is still current.

    Example:
        ticket = sequencer.next()
        rows = await gateway.select(...)
        if sequencer.is_current(ticket):
            self._state = rows
    """

    _issued: int = field(default=0, init=False)

    def next(self) -> int:
        self._issued += 1
        return self._issued

    def is_current(self, ticket: int) -> bool:
        return ticket == self._issued

    def invalidate(self) -> None:
        """Make every outstanding ticket stale."""
        self._issued += 1

    @property
    def latest(self) -> int:
        return self._issued
