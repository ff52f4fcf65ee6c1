"""Realtime bus and live slice settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RealtimeSettings(BaseSettings):
    """Realtime bus and backstop poll configuration.

    Environment variables use REALTIME_ prefix.
    Example: REALTIME_NOTIFICATIONS_POLL_INTERVAL=45
    """

    # ──────────────────────────────────────────────────────────────
    # Bus
    # ──────────────────────────────────────────────────────────────

    channel_prefix: str = Field(
        default="unified-user-",
        max_length=50,
        description="Prefix of the per-principal change channel name",
    )

    # ──────────────────────────────────────────────────────────────
    # Backstop polls (seconds, 0 disables)
    # ──────────────────────────────────────────────────────────────

    notifications_poll_interval: float = Field(default=30.0, ge=0, le=3600)
    engagement_poll_interval: float = Field(default=15.0, ge=0, le=3600)
    pin_engagement_poll_interval: float = Field(default=60.0, ge=0, le=3600)
    location_stats_poll_interval: float = Field(default=60.0, ge=0, le=3600)
    city_engagement_poll_interval: float = Field(default=60.0, ge=0, le=3600)
    saved_cities_poll_interval: float = Field(default=60.0, ge=0, le=3600)
    location_shares_poll_interval: float = Field(default=15.0, ge=0, le=3600)
    messages_poll_interval: float = Field(default=30.0, ge=0, le=3600)

    # ──────────────────────────────────────────────────────────────
    # Query shaping
    # ──────────────────────────────────────────────────────────────

    engagement_chunk_size: int = Field(
        default=25,
        ge=1,
        le=200,
        description="Post ids per `in` filter when loading engagement counts",
    )
    notifications_page_size: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Notifications loaded per refresh",
    )
    catalog_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Rows read from each place collection per catalog search",
    )

    model_config = SettingsConfigDict(
        env_prefix="REALTIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
