"""Unit tests for assistant system prompt assembly."""

from __future__ import annotations

import pytest

from spott_service.features.assistant import AssistantRequest
from spott_service.features.assistant.context import LikedPost, SavedSpot, UserContext
from spott_service.features.assistant.prompt import (
    build_system_prompt,
    render_session_context,
    render_user_context,
)
from spott_service.infra.realtime.events import ProfileRow


def _request(**fields) -> AssistantRequest:
    return AssistantRequest.model_validate({"messages": [{"role": "user", "content": "hi"}], **fields})


@pytest.mark.unit
class TestUserContext:
    """The user section lists profile facts and recent activity."""

    def test_full_context(self):
        context = UserContext(
            profile=ProfileRow(id="u1", username="wanderer", current_city="Paris", cities_visited=4, bio="Coffee"),
            saved_places=[SavedSpot("Cafe Roma", "cafe", "Paris")],
            saved_locations=[SavedSpot("Louvre", None, "Paris")],
            liked_posts=[LikedPost("Sunset", SavedSpot("Pont Neuf")), LikedPost("  ")],
        )

        text = render_user_context(context)

        assert "- Username: wanderer" in text
        assert "- Cities Visited: 4" in text
        assert "- Places Visited: 0" in text
        assert "- Bio: Coffee" in text
        assert "- Saved Places: Cafe Roma (cafe) in Paris" in text
        assert "- Saved Locations: Louvre in Paris" in text
        assert "- Liked Posts: Sunset at Pont Neuf, Untitled post" in text

    def test_missing_profile_uses_defaults(self):
        text = render_user_context(UserContext())

        assert "- Username: Traveler" in text
        assert "- Current City: Unknown" in text
        assert "- Saved Places: None yet" in text
        assert "Bio" not in text


@pytest.mark.unit
class TestSessionContext:
    """The session section appears only when the client sent session details."""

    def test_empty_without_details(self):
        assert render_session_context(_request()) == ""

    def test_all_details(self):
        text = render_session_context(
            _request(
                userLanguage="fr",
                currentLocation={"latitude": 48.8566, "longitude": 2.3522},
                currentTime="18:30",
                timezone="Europe/Paris",
            )
        )

        assert text.splitlines() == [
            "Session Context:",
            "- Respond in this language: fr",
            "- Current Location: 48.85660, 2.35220",
            "- Local Time: 18:30 (Europe/Paris)",
        ]


@pytest.mark.unit
class TestBuildSystemPrompt:
    def test_anonymous_prompt_has_brief_only(self):
        prompt = build_system_prompt(_request())

        assert prompt.startswith("You are a friendly AI Travel Assistant for Spott")
        assert "User Context" not in prompt
        assert "{context}" not in prompt

    def test_sections_are_injected(self):
        prompt = build_system_prompt(_request(userLanguage="es"), UserContext())

        assert "User Context:" in prompt
        assert prompt.index("User Context:") < prompt.index("Session Context:")
