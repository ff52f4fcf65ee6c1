"""System prompt assembly for the travel assistant."""

from __future__ import annotations

from spott_service.features.assistant.context import SavedSpot, UserContext
from spott_service.features.assistant.schemas import AssistantRequest

ASSISTANT_BRIEF = """You are a friendly AI Travel Assistant for Spott, a location discovery and travel planning app.

{context}

Your role is to help users:
- Discover amazing places to visit based on their interests
- Plan trips and create itineraries
- Get personalized recommendations based on their saved places and travel history
- Find hidden gems in cities they're interested in
- Connect travel experiences with friends

Be conversational, enthusiastic about travel, and provide specific, actionable suggestions. When recommending places, mention the type of place (restaurant, cafe, attraction, etc.) and what makes it special. Keep responses concise but helpful.

If the user hasn't saved many places yet, encourage them to explore and save places they're interested in."""


def _spot(spot: SavedSpot) -> str:
    text = spot.name
    if spot.category:
        text += f" ({spot.category})"
    if spot.city:
        text += f" in {spot.city}"
    return text


def _join(items: list[str]) -> str:
    return ", ".join(items) if items else "None yet"


def render_user_context(context: UserContext) -> str:
    profile = context.profile
    lines = [
        "User Context:",
        f"- Username: {(profile.username if profile else None) or 'Traveler'}",
        f"- Current City: {(profile.current_city if profile else None) or 'Unknown'}",
        f"- Cities Visited: {(profile.cities_visited if profile else None) or 0}",
        f"- Places Visited: {(profile.places_visited if profile else None) or 0}",
    ]
    if profile and profile.bio:
        lines.append(f"- Bio: {profile.bio}")
    lines.append(f"- Saved Places: {_join([_spot(s) for s in context.saved_places])}")
    lines.append(f"- Saved Locations: {_join([_spot(s) for s in context.saved_locations])}")

    liked = []
    for post in context.liked_posts:
        caption = (post.caption or "").strip() or "Untitled post"
        liked.append(f"{caption} at {_spot(post.location)}" if post.location else caption)
    lines.append(f"- Liked Posts: {_join(liked)}")
    return "\n".join(lines)


def render_session_context(request: AssistantRequest) -> str:
    lines = []
    if request.user_language:
        lines.append(f"- Respond in this language: {request.user_language}")
    if request.current_location:
        loc = request.current_location
        lines.append(f"- Current Location: {loc.latitude:.5f}, {loc.longitude:.5f}")
    if request.current_time:
        zone = f" ({request.timezone})" if request.timezone else ""
        lines.append(f"- Local Time: {request.current_time}{zone}")
    return "Session Context:\n" + "\n".join(lines) if lines else ""


def build_system_prompt(request: AssistantRequest, context: UserContext | None = None) -> str:
    sections = [
        render_user_context(context) if context is not None else "",
        render_session_context(request),
    ]
    return ASSISTANT_BRIEF.format(context="\n\n".join(s for s in sections if s))
