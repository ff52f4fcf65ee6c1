"""Gateway reads shared by several slices."""

from __future__ import annotations

from collections.abc import Iterable

from spott_service.features.base import chunked
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.events import ProfileRow

PROFILE_COLUMNS = "id, username, full_name, avatar_url"


async def fetch_following_ids(gateway: Gateway, viewer_id: str) -> set[str]:
    rows = await gateway.select(
        "follows",
        Query().eq("follower_id", viewer_id),
        columns="following_id",
    )
    return {str(r["following_id"]) for r in rows if r.get("following_id")}


async def fetch_profiles(
    gateway: Gateway,
    user_ids: Iterable[str],
    *,
    chunk_size: int = 25,
    columns: str = PROFILE_COLUMNS,
) -> dict[str, ProfileRow]:
    ids = sorted(set(user_ids))
    profiles: dict[str, ProfileRow] = {}
    for chunk in chunked(ids, chunk_size):
        for row in await gateway.select("profiles", Query().in_("id", chunk), columns=columns):
            profile = ProfileRow.model_validate(row)
            profiles[profile.id] = profile
    return profiles


async def fetch_column_in(
    gateway: Gateway,
    table: str,
    column: str,
    values: Iterable[str],
    *,
    columns: str,
    chunk_size: int = 25,
    extra: Query | None = None,
) -> list[dict]:
    """Select ``table`` rows whose ``column`` is in ``values``, chunking the ``in`` list."""
    items = sorted(set(values))
    rows: list[dict] = []
    for chunk in chunked(items, chunk_size):
        query = Query().in_(column, chunk)
        if extra is not None:
            query.conditions.extend(extra.conditions)
        rows.extend(await gateway.select(table, query, columns=columns))
    return rows
