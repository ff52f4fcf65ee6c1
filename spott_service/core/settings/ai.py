"""AI travel assistant settings."""

from __future__ import annotations

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AssistantSettings(BaseSettings):
    """LLM gateway and prompt-context configuration.

    Environment variables use AI_ prefix.
    Example: AI_API_KEY=sk-..., AI_MODEL=google/gemini-2.5-flash
    """

    gateway_url: str = Field(
        default="https://ai.gateway.lovable.dev/v1/chat/completions",
        description="OpenAI-compatible chat completions endpoint",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Bearer key for the LLM gateway",
    )
    model: str = Field(
        default="google/gemini-2.5-flash",
        description="Model identifier forwarded to the gateway",
    )
    timeout: float = Field(
        default=120.0,
        ge=1.0,
        le=600.0,
        description="Upstream timeout in seconds (streams can be long)",
    )

    saved_places_limit: int = Field(default=20, ge=0, le=200)
    saved_locations_limit: int = Field(default=20, ge=0, le=200)
    liked_posts_limit: int = Field(default=20, ge=0, le=200)

    model_config = SettingsConfigDict(
        env_prefix="AI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_configured(self) -> bool:
        """True when an API key is available."""
        return self.api_key is not None
