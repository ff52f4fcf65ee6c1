"""Composition root for client-side use of the SPOTT backend.

``SpottClient`` builds the gateway and the realtime bus once and hands them
to every feature slice it creates, so all slices of one client share a
single change subscription.

Example:
    ```python
    async with SpottClient(access_token=token) as spott:
        await spott.sign_in()
        async with spott.notifications() as notifications:
            print(notifications.state.unread_count)
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from spott_service.core.settings import get_realtime_settings
from spott_service.core.settings.gateway import GatewaySettings
from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.core.settings.state import StateSettings
from spott_service.features.cities import CityEngagementSlice, RecentSearches, UserSavedCitiesSlice
from spott_service.features.engagement import PinEngagementSlice, SocialEngagementSlice
from spott_service.features.locations import (
    GroupingOverrides,
    LocationCatalog,
    LocationSearch,
    LocationStatsSlice,
)
from spott_service.features.messages import ConversationSlice
from spott_service.features.notifications import NotificationsSlice
from spott_service.features.shares import LocationSharesSlice
from spott_service.infra.gateway.protocol import Gateway
from spott_service.infra.gateway.rest import RestGateway
from spott_service.infra.logging.context import set_log_context
from spott_service.infra.realtime.bus import RealtimeBus

logger = logging.getLogger(__name__)


class SpottClient:
    """Owns the gateway and the realtime bus, and builds slices bound to them."""

    def __init__(
        self,
        gateway: Gateway | None = None,
        *,
        access_token: str | None = None,
        gateway_settings: GatewaySettings | None = None,
        realtime_settings: RealtimeSettings | None = None,
        state_settings: StateSettings | None = None,
    ) -> None:
        self._owns_gateway = gateway is None
        self.gateway: Gateway = gateway or RestGateway(gateway_settings, access_token=access_token)
        self.realtime_settings = realtime_settings or get_realtime_settings()
        self.bus = RealtimeBus(self.gateway, self.realtime_settings)
        self.recent_searches = RecentSearches(state_settings)
        self._principal_id: str | None = None

    @property
    def principal_id(self) -> str | None:
        return self._principal_id

    # ──────────────────────────────────────────────────────────────
    # Session
    # ──────────────────────────────────────────────────────────────

    async def sign_in(self) -> str | None:
        """Resolve the principal behind the access token and open its bus session."""
        user = await self.gateway.get_user()
        await self.set_principal(str(user["id"]) if user else None)
        return self._principal_id

    async def set_principal(self, principal_id: str | None) -> None:
        self._principal_id = principal_id
        set_log_context(principal_id=principal_id)
        logger.info("Active principal changed", extra={"principal_id": principal_id})
        await self.bus.ensure_session_for_principal(principal_id)

    async def sign_out(self) -> None:
        await self.set_principal(None)

    async def close(self) -> None:
        await self.bus.close()
        if self._owns_gateway and isinstance(self.gateway, RestGateway):
            await self.gateway.close()

    async def __aenter__(self) -> SpottClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ──────────────────────────────────────────────────────────────
    # Slices
    # ──────────────────────────────────────────────────────────────

    def notifications(self) -> NotificationsSlice:
        return NotificationsSlice(
            self.gateway, self.bus, self._principal_id, settings=self.realtime_settings
        )

    def social_engagement(self, post_ids: Iterable[str]) -> SocialEngagementSlice:
        return SocialEngagementSlice(
            self.gateway, self.bus, post_ids, self._principal_id, settings=self.realtime_settings
        )

    def pin_engagement(
        self, location_id: str | None, place_id: str | None = None
    ) -> PinEngagementSlice:
        return PinEngagementSlice(
            self.gateway,
            self.bus,
            location_id,
            place_id,
            self._principal_id,
            settings=self.realtime_settings,
        )

    def location_stats(
        self, location_id: str | None, place_id: str | None = None
    ) -> LocationStatsSlice:
        return LocationStatsSlice(
            self.gateway, self.bus, location_id, place_id, settings=self.realtime_settings
        )

    def city_engagement(self, city: str | None) -> CityEngagementSlice:
        return CityEngagementSlice(
            self.gateway, self.bus, city, self._principal_id, settings=self.realtime_settings
        )

    def saved_cities(self, profile_id: str | None) -> UserSavedCitiesSlice:
        return UserSavedCitiesSlice(
            self.gateway, self.bus, profile_id, self._principal_id, settings=self.realtime_settings
        )

    def location_shares(self) -> LocationSharesSlice:
        return LocationSharesSlice(
            self.gateway, self.bus, self._principal_id, settings=self.realtime_settings
        )

    def conversation(self, partner_id: str | None) -> ConversationSlice:
        return ConversationSlice(
            self.gateway, self.bus, self._principal_id, partner_id, settings=self.realtime_settings
        )

    def location_search(self, overrides: GroupingOverrides | None = None) -> LocationSearch:
        catalog = LocationCatalog(self.gateway, settings=self.realtime_settings, overrides=overrides)
        return LocationSearch(catalog)
