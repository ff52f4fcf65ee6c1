"""Fixtures for the travel assistant tests."""

from __future__ import annotations

import httpx
import pytest

from spott_service.core.settings.ai import AssistantSettings
from spott_service.features.assistant import AssistantService, CompletionClient
from tests.fixtures import FakeGateway

SSE_BODY = (
    b'data: {"choices":[{"delta":{"content":"Try "}}]}\n\n'
    b'data: {"choices":[{"delta":{"content":"Montmartre"}}]}\n\n'
    b"data: [DONE]\n\n"
)


class UpstreamRecorder:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(self, status_code: int = 200, content: bytes = SSE_BODY) -> None:
        self.status_code = status_code
        self.content = content
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self.status_code,
            content=self.content,
            headers={"content-type": "text/event-stream"},
        )


@pytest.fixture
def assistant_settings() -> AssistantSettings:
    return AssistantSettings(
        gateway_url="https://llm.test/v1/chat/completions",
        api_key="sk-test",
        model="test/model",
    )


@pytest.fixture
def upstream() -> UpstreamRecorder:
    return UpstreamRecorder()


@pytest.fixture
async def completions(assistant_settings, upstream):
    client = CompletionClient(assistant_settings, transport=httpx.MockTransport(upstream))
    yield client
    await client.close()


@pytest.fixture
def assistant_gateway() -> FakeGateway:
    return FakeGateway(
        {
            "profiles": [
                {
                    "id": "traveler-1",
                    "username": "wanderer",
                    "bio": "Coffee first",
                    "current_city": "Paris",
                    "cities_visited": 4,
                    "places_visited": 12,
                }
            ],
            "saved_places": [
                {
                    "id": "sp1",
                    "user_id": "traveler-1",
                    "place_name": "Cafe Roma",
                    "place_category": "cafe",
                    "city": "Paris",
                    "created_at": "2026-02-01T00:00:00Z",
                },
                {
                    "id": "sp2",
                    "user_id": "traveler-1",
                    "place_name": "Shakespeare and Company",
                    "place_category": "bookstore",
                    "city": "Paris",
                    "created_at": "2026-03-01T00:00:00Z",
                },
            ],
            "user_saved_locations": [
                {"id": "s1", "user_id": "traveler-1", "location_id": "L1", "created_at": "2026-01-01T00:00:00Z"},
            ],
            "locations": [{"id": "L1", "name": "Louvre", "category": "museum", "city": "Paris"}],
            "post_likes": [{"id": "pl1", "user_id": "traveler-1", "post_id": "p1"}],
            "posts": [{"id": "p1", "caption": "Sunset view", "location_id": "L1"}],
        },
        user={"id": "traveler-1"},
    )


@pytest.fixture
def assistant_service(assistant_gateway, completions, assistant_settings) -> AssistantService:
    tokens: list[str | None] = []

    def gateway_for(token: str | None) -> FakeGateway:
        tokens.append(token)
        return assistant_gateway

    service = AssistantService(gateway_for, completions, assistant_settings)
    service.tokens = tokens
    return service
