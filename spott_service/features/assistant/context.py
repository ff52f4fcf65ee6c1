"""Per-user history injected into the assistant's system prompt."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any

from spott_service.core.exceptions import GatewayError
from spott_service.core.settings.ai import AssistantSettings
from spott_service.features.queries import fetch_column_in
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.events import ProfileRow

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "id, username, bio, current_city, cities_visited, places_visited"


@dataclass(frozen=True, slots=True)
class SavedSpot:
    name: str
    category: str | None = None
    city: str | None = None


@dataclass(frozen=True, slots=True)
class LikedPost:
    caption: str | None
    location: SavedSpot | None = None


@dataclass(frozen=True, slots=True)
class UserContext:
    profile: ProfileRow | None = None
    saved_places: list[SavedSpot] = field(default_factory=list)
    saved_locations: list[SavedSpot] = field(default_factory=list)
    liked_posts: list[LikedPost] = field(default_factory=list)


async def _or_default[T](section: str, read: Awaitable[T], default: T) -> T:
    try:
        return await read
    except GatewayError as e:
        logger.warning(
            "Assistant context read failed", extra={"section": section, "error": e.message}
        )
        return default


async def _profile(gateway: Gateway, user_id: str) -> ProfileRow | None:
    rows = await gateway.select(
        "profiles", Query().eq("id", user_id).limit(1), columns=PROFILE_COLUMNS
    )
    return ProfileRow.model_validate(rows[0]) if rows else None


async def _saved_places(gateway: Gateway, user_id: str, limit: int) -> list[SavedSpot]:
    rows = await gateway.select(
        "saved_places",
        Query().eq("user_id", user_id).order("created_at", desc=True).limit(limit),
        columns="place_name, place_category, city",
    )
    return [
        SavedSpot(name=r["place_name"], category=r.get("place_category"), city=r.get("city"))
        for r in rows
        if r.get("place_name")
    ]


async def _locations_by_id(gateway: Gateway, ids: list[str]) -> dict[str, SavedSpot]:
    rows = await fetch_column_in(gateway, "locations", "id", ids, columns="id, name, category, city")
    return {
        str(r["id"]): SavedSpot(name=r["name"], category=r.get("category"), city=r.get("city"))
        for r in rows
        if r.get("name")
    }


async def _saved_locations(gateway: Gateway, user_id: str, limit: int) -> list[SavedSpot]:
    saves = await gateway.select(
        "user_saved_locations",
        Query().eq("user_id", user_id).order("created_at", desc=True).limit(limit),
        columns="location_id",
    )
    ids = [str(s["location_id"]) for s in saves if s.get("location_id")]
    locations = await _locations_by_id(gateway, ids)
    return [locations[i] for i in ids if i in locations]


async def _liked_posts(gateway: Gateway, user_id: str, limit: int) -> list[LikedPost]:
    likes = await gateway.select(
        "post_likes",
        Query().eq("user_id", user_id).order("created_at", desc=True).limit(limit),
        columns="post_id",
    )
    post_ids = [str(like["post_id"]) for like in likes if like.get("post_id")]
    posts: dict[str, dict[str, Any]] = {
        str(p["id"]): p
        for p in await fetch_column_in(
            gateway, "posts", "id", post_ids, columns="id, caption, location_id"
        )
    }
    locations = await _locations_by_id(
        gateway, [str(p["location_id"]) for p in posts.values() if p.get("location_id")]
    )
    return [
        LikedPost(
            caption=posts[pid].get("caption"),
            location=locations.get(str(posts[pid].get("location_id"))),
        )
        for pid in post_ids
        if pid in posts
    ]


async def load_user_context(
    gateway: Gateway, user_id: str, settings: AssistantSettings
) -> UserContext:
    """Read the profile and recent activity of ``user_id``.

    Each section degrades to empty on a gateway failure so the assistant can
    still answer.
    """
    return UserContext(
        profile=await _or_default("profile", _profile(gateway, user_id), None),
        saved_places=await _or_default(
            "saved_places", _saved_places(gateway, user_id, settings.saved_places_limit), []
        ),
        saved_locations=await _or_default(
            "saved_locations",
            _saved_locations(gateway, user_id, settings.saved_locations_limit),
            [],
        ),
        liked_posts=await _or_default(
            "liked_posts", _liked_posts(gateway, user_id, settings.liked_posts_limit), []
        ),
    )
