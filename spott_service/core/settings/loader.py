"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the process.

Usage:
    from spott_service.core.settings.loader import get_gateway_settings

    settings = get_gateway_settings()  # First call: loads and validates
    settings = get_gateway_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    get_gateway_settings.cache_clear()
"""

from __future__ import annotations

from functools import lru_cache

from .ai import AssistantSettings
from .app import AppSettings
from .gateway import GatewaySettings
from .logs import LoggingSettings
from .realtime import RealtimeSettings
from .state import StateSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_gateway_settings() -> GatewaySettings:
    """Get cached backend gateway settings.

    Returns:
        Validated and frozen GatewaySettings instance.
    """
    return GatewaySettings()


@lru_cache(maxsize=1)
def get_realtime_settings() -> RealtimeSettings:
    """Get cached realtime bus and slice settings.

    Returns:
        Validated and frozen RealtimeSettings instance.
    """
    return RealtimeSettings()


@lru_cache(maxsize=1)
def get_assistant_settings() -> AssistantSettings:
    """Get cached AI assistant settings.

    Returns:
        Validated and frozen AssistantSettings instance.
    """
    return AssistantSettings()


@lru_cache(maxsize=1)
def get_state_settings() -> StateSettings:
    """Get cached local state settings.

    Returns:
        Validated and frozen StateSettings instance.
    """
    return StateSettings()


def clear_all_settings_caches() -> None:
    """Clear every cached settings instance (tests, reload)."""
    get_app_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_gateway_settings.cache_clear()
    get_realtime_settings.cache_clear()
    get_assistant_settings.cache_clear()
    get_state_settings.cache_clear()
