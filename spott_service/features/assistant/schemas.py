"""Request and response schemas for the AI travel assistant."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """One turn of the conversation, forwarded to the LLM gateway as-is."""

    role: str = Field(..., description="system, user or assistant")
    content: str


class CurrentLocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AssistantRequest(BaseModel):
    """Body of ``POST /ai-travel-assistant/``.

    Field aliases follow the camelCase names the mobile and web clients send.
    """

    messages: list[ChatMessage]
    user_language: str | None = Field(default=None, alias="userLanguage")
    current_location: CurrentLocation | None = Field(default=None, alias="currentLocation")
    current_time: str | None = Field(default=None, alias="currentTime")
    timezone: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AssistantError(BaseModel):
    error: str
