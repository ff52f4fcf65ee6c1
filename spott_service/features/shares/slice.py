"""Active ephemeral location shares, newest first."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice
from spott_service.features.queries import fetch_profiles
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import EventType, LocationShareRow, ProfileRow
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class LocationShare:
    share: LocationShareRow
    user: ProfileRow

    @property
    def id(self) -> str:
        return self.share.id

    def expired(self, now: datetime) -> bool:
        expires_at = self.share.expires_at
        return expires_at is None or expires_at <= now


@dataclass(frozen=True, slots=True)
class LocationSharesState:
    shares: tuple[LocationShare, ...] = ()


class LocationSharesSlice(LiveSlice[LocationSharesState]):
    """Unexpired shares of every user, each joined to its sharer's profile.

    Shares whose sharer has no profile are dropped. Each backstop tick first
    prunes expired shares locally, then reloads. Any share change reloads.
    """

    name = "location_shares"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        principal_id: str | None,
        *,
        settings: RealtimeSettings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.principal_id = principal_id
        self._clock = clock
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return self.principal_id is not None

    @property
    def poll_interval(self) -> float:
        return self._settings.location_shares_poll_interval

    def empty_state(self) -> LocationSharesState:
        return LocationSharesState()

    async def load(self) -> LocationSharesState:
        now = self._clock()
        rows = await self._gateway.select(
            "user_location_shares",
            Query().gt("expires_at", now.isoformat()).order("created_at", desc=True),
        )
        shares = [LocationShareRow.model_validate(row) for row in rows]
        profiles = await fetch_profiles(
            self._gateway,
            {s.user_id for s in shares if s.user_id},
            chunk_size=self._settings.engagement_chunk_size,
            columns="id, username, avatar_url",
        )
        joined = tuple(
            LocationShare(share=s, user=profiles[s.user_id])
            for s in shares
            if s.user_id in profiles
        )
        return LocationSharesState(shares=joined)

    def prune_expired(self) -> int:
        """Drop expired shares from local state; returns how many were removed."""
        now = self._clock()
        kept = tuple(s for s in self._state.shares if not s.expired(now))
        removed = len(self._state.shares) - len(kept)
        if removed:
            logger.debug("Pruned expired location shares", extra={"removed": removed})
            self._set_state(LocationSharesState(shares=kept))
        return removed

    async def backstop(self) -> None:
        self.prune_expired()
        await self.refresh()

    def subscribe_events(self) -> list[EventSubscription]:
        return [
            on_events(
                self._bus,
                (
                    EventType.LOCATION_SHARE_INSERT,
                    EventType.LOCATION_SHARE_UPDATE,
                    EventType.LOCATION_SHARE_DELETE,
                ),
                lambda _row: self._schedule_refresh(),
            )
        ]
