"""Local persisted client state settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StateSettings(BaseSettings):
    """Where small client-side state (recent searches) is kept.

    Environment variables use STATE_ prefix.
    """

    directory: Path = Field(
        default=Path(".spott"),
        description="Directory holding local state files",
    )
    recent_searches_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum recent city searches kept",
    )

    model_config = SettingsConfigDict(
        env_prefix="STATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def recent_searches_path(self) -> Path:
        return self.directory / "recent_city_searches.json"
