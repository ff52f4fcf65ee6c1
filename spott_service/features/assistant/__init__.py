"""AI travel assistant: context-injected streaming chat over an LLM gateway."""

from spott_service.features.assistant.client import CompletionClient
from spott_service.features.assistant.schemas import AssistantRequest, ChatMessage, CurrentLocation
from spott_service.features.assistant.service import AssistantService

__all__ = [
    "AssistantRequest",
    "AssistantService",
    "ChatMessage",
    "CompletionClient",
    "CurrentLocation",
]
