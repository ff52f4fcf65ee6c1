"""Modular Pydantic Settings v2 configuration.

One frozen settings model per concern, each read from its own environment
prefix (APP_, LOG_, GATEWAY_, REALTIME_, AI_, STATE_) with optional `.env`
support. Import settings via the cached loaders:

    from spott_service.core.settings import get_gateway_settings
"""

from __future__ import annotations

from .loader import (
    clear_all_settings_caches,
    get_app_settings,
    get_assistant_settings,
    get_gateway_settings,
    get_logging_settings,
    get_realtime_settings,
    get_state_settings,
)

__all__ = [
    "clear_all_settings_caches",
    "get_app_settings",
    "get_assistant_settings",
    "get_gateway_settings",
    "get_logging_settings",
    "get_realtime_settings",
    "get_state_settings",
]
