"""Backend gateway (table store, auth, functions, realtime) settings."""

from __future__ import annotations

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """Connection settings for the managed backend.

    Environment variables use GATEWAY_ prefix.
    Example: GATEWAY_URL=https://project.example.co GATEWAY_ANON_KEY=...
    """

    url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the backend project",
    )
    anon_key: SecretStr | None = Field(
        default=None,
        description="Public (anon) API key sent as the apikey header",
    )
    db_schema: str = Field(
        default="public",
        alias="schema",
        description="Database schema for table and change-feed requests",
    )

    rest_path: str = Field(default="/rest/v1", description="Table API path")
    auth_path: str = Field(default="/auth/v1", description="Auth API path")
    functions_path: str = Field(default="/functions/v1", description="Edge functions path")
    realtime_path: str = Field(
        default="/realtime/v1/websocket",
        description="Realtime websocket path",
    )

    timeout: float = Field(default=15.0, ge=1.0, le=120.0, description="HTTP timeout in seconds")
    max_retries: int = Field(
        default=3, ge=1, le=10, description="Attempts for transient transport failures",
    )

    heartbeat_interval: float = Field(
        default=25.0,
        ge=1.0,
        le=120.0,
        description="Seconds between realtime heartbeats",
    )
    join_timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Seconds to wait for a channel join reply before TIMED_OUT",
    )

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_configured(self) -> bool:
        """True when an API key is available."""
        return self.anon_key is not None

    @property
    def realtime_url(self) -> str:
        """Websocket URL derived from the HTTP base URL."""
        base = self.url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base.removeprefix("https://")
        elif base.startswith("http://"):
            base = "ws://" + base.removeprefix("http://")
        return f"{base}{self.realtime_path}"
