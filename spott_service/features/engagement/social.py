"""Live like/comment/share counters for a set of posts.

Counters are backed by the sets of row ids seen for each post, not bare
integers, so an event that arrives twice, or an event followed by a full
refresh that already includes the row, never double counts. A count can
therefore never drop below zero.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any
from uuid import uuid4

from spott_service.core.settings.realtime import RealtimeSettings
from spott_service.features.base import LiveSlice, MutationResult, OptimisticPatch, chunked
from spott_service.infra.gateway.protocol import Gateway, Query
from spott_service.infra.realtime.bus import RealtimeBus
from spott_service.infra.realtime.events import EventType, Row
from spott_service.infra.realtime.subscriptions import EventSubscription, on_events

PENDING_PREFIX = "pending:"


class EngagementKind(StrEnum):
    LIKES = "post_likes"
    COMMENTS = "post_comments"
    SHARES = "post_shares"


@dataclass(frozen=True, slots=True)
class PostEngagement:
    like_ids: frozenset[str] = frozenset()
    comment_ids: frozenset[str] = frozenset()
    share_ids: frozenset[str] = frozenset()
    my_like_id: str | None = None

    @property
    def likes(self) -> int:
        return len(self.like_ids)

    @property
    def comments(self) -> int:
        return len(self.comment_ids)

    @property
    def shares(self) -> int:
        return len(self.share_ids)

    @property
    def liked(self) -> bool:
        return self.my_like_id is not None

    def ids(self, kind: EngagementKind) -> frozenset[str]:
        match kind:
            case EngagementKind.LIKES:
                return self.like_ids
            case EngagementKind.COMMENTS:
                return self.comment_ids
            case EngagementKind.SHARES:
                return self.share_ids

    def with_ids(self, kind: EngagementKind, ids: frozenset[str]) -> PostEngagement:
        match kind:
            case EngagementKind.LIKES:
                return replace(self, like_ids=ids)
            case EngagementKind.COMMENTS:
                return replace(self, comment_ids=ids)
            case EngagementKind.SHARES:
                return replace(self, share_ids=ids)


@dataclass(frozen=True, slots=True)
class SocialEngagementState:
    posts: Mapping[str, PostEngagement] = field(default_factory=dict)

    def get(self, post_id: str) -> PostEngagement | None:
        """Engagement for ``post_id``, or None while it is not yet known."""
        return self.posts.get(post_id)

    def count(self, post_id: str, kind: EngagementKind) -> int | None:
        engagement = self.posts.get(post_id)
        return None if engagement is None else len(engagement.ids(kind))

    def with_post(self, post_id: str, engagement: PostEngagement) -> SocialEngagementState:
        return SocialEngagementState(posts={**self.posts, post_id: engagement})


_EVENT_KINDS: dict[EventType, tuple[EngagementKind, bool]] = {
    EventType.POST_LIKE_INSERT: (EngagementKind.LIKES, True),
    EventType.POST_LIKE_DELETE: (EngagementKind.LIKES, False),
    EventType.POST_COMMENT_INSERT: (EngagementKind.COMMENTS, True),
    EventType.POST_COMMENT_DELETE: (EngagementKind.COMMENTS, False),
    EventType.POST_SHARE_INSERT: (EngagementKind.SHARES, True),
    EventType.POST_SHARE_DELETE: (EngagementKind.SHARES, False),
}


class SocialEngagementSlice(LiveSlice[SocialEngagementState]):
    """Like, comment and share counts for the tracked posts, plus the viewer's likes."""

    name = "social_engagement"

    def __init__(
        self,
        gateway: Gateway,
        bus: RealtimeBus,
        post_ids: Iterable[str],
        principal_id: str | None = None,
        *,
        settings: RealtimeSettings | None = None,
    ) -> None:
        self.post_ids = tuple(dict.fromkeys(p for p in post_ids if p))
        self.principal_id = principal_id
        super().__init__(gateway, bus, settings=settings)

    @property
    def scoped(self) -> bool:
        return bool(self.post_ids)

    @property
    def poll_interval(self) -> float:
        return self._settings.engagement_poll_interval

    def empty_state(self) -> SocialEngagementState:
        return SocialEngagementState()

    async def load(self) -> SocialEngagementState:
        collected: dict[str, dict[EngagementKind, set[str]]] = {
            post_id: {kind: set() for kind in EngagementKind} for post_id in self.post_ids
        }
        my_likes: dict[str, str] = {}

        for chunk in chunked(self.post_ids, self._settings.engagement_chunk_size):
            for kind in EngagementKind:
                rows = await self._gateway.select(
                    kind.value,
                    Query().in_("post_id", chunk),
                    columns="id, post_id, user_id",
                )
                for row in rows:
                    post_id = str(row.get("post_id"))
                    if post_id not in collected:
                        continue
                    collected[post_id][kind].add(str(row["id"]))
                    if (
                        kind is EngagementKind.LIKES
                        and self.principal_id is not None
                        and str(row.get("user_id")) == self.principal_id
                    ):
                        my_likes[post_id] = str(row["id"])

        return SocialEngagementState(
            posts={
                post_id: PostEngagement(
                    like_ids=frozenset(sets[EngagementKind.LIKES]),
                    comment_ids=frozenset(sets[EngagementKind.COMMENTS]),
                    share_ids=frozenset(sets[EngagementKind.SHARES]),
                    my_like_id=my_likes.get(post_id),
                )
                for post_id, sets in collected.items()
            }
        )

    def subscribe_events(self) -> list[EventSubscription]:
        subscriptions = []
        for event_type, (kind, inserted) in _EVENT_KINDS.items():
            handler = self._make_handler(kind, inserted)
            subscriptions.append(on_events(self._bus, event_type, handler))
        return subscriptions

    # ──────────────────────────────────────────────────────────────
    # Event handlers
    # ──────────────────────────────────────────────────────────────

    def _make_handler(self, kind: EngagementKind, inserted: bool) -> Callable[[Row], None]:
        def handle(row: Row) -> None:
            if inserted:
                self._apply_insert(kind, row)
            else:
                self._apply_delete(kind, row)

        return handle

    def _apply_insert(self, kind: EngagementKind, row: Any) -> None:
        post_id = row.post_id
        engagement = self._state.get(post_id) if post_id else None
        if engagement is None:
            return
        ids = engagement.ids(kind)
        if row.id in ids:
            return

        updated = engagement.with_ids(kind, ids | {row.id})
        if kind is EngagementKind.LIKES and self.principal_id and row.user_id == self.principal_id:
            # the server echo of our own optimistic like replaces its placeholder
            pending = engagement.my_like_id
            like_ids = updated.like_ids
            if pending and pending.startswith(PENDING_PREFIX):
                like_ids = like_ids - {pending}
            updated = replace(updated, like_ids=like_ids, my_like_id=row.id)
        self._set_state(self._state.with_post(post_id, updated))

    def _apply_delete(self, kind: EngagementKind, row: Any) -> None:
        candidates = [row.post_id] if row.post_id in self._state.posts else list(self._state.posts)
        for post_id in candidates:
            engagement = self._state.posts[post_id]
            ids = engagement.ids(kind)
            if row.id not in ids:
                continue
            updated = engagement.with_ids(kind, ids - {row.id})
            if kind is EngagementKind.LIKES and engagement.my_like_id == row.id:
                updated = replace(updated, my_like_id=None)
            self._set_state(self._state.with_post(post_id, updated))
            return

    # ──────────────────────────────────────────────────────────────
    # Mutations
    # ──────────────────────────────────────────────────────────────

    async def toggle_like(self, post_id: str) -> MutationResult:
        """Like or unlike ``post_id`` as the principal, optimistically."""
        if self.principal_id is None:
            return MutationResult(success=False, error="Not authenticated")
        engagement = self._state.get(post_id)
        if engagement is None:
            return MutationResult(success=False, error=f"Post {post_id} is not tracked")

        if engagement.liked:
            return await self._unlike(post_id, engagement.my_like_id or "")
        return await self._like(post_id)

    async def _like(self, post_id: str) -> MutationResult:
        placeholder = f"{PENDING_PREFIX}{uuid4().hex}"

        def forward(state: SocialEngagementState) -> SocialEngagementState:
            current = state.posts[post_id]
            return state.with_post(
                post_id,
                replace(current, like_ids=current.like_ids | {placeholder}, my_like_id=placeholder),
            )

        def inverse(state: SocialEngagementState) -> SocialEngagementState:
            current = state.posts[post_id]
            my_like = None if current.my_like_id == placeholder else current.my_like_id
            return state.with_post(
                post_id,
                replace(current, like_ids=current.like_ids - {placeholder}, my_like_id=my_like),
            )

        async def persist() -> Any:
            rows = await self._gateway.insert(
                EngagementKind.LIKES.value,
                {"post_id": post_id, "user_id": self.principal_id},
            )
            return rows[0] if rows else None

        result = await self._mutate("like", persist, OptimisticPatch(forward, inverse))
        if result.success and isinstance(result.data, dict) and result.data.get("id"):
            self._confirm_like(post_id, placeholder, str(result.data["id"]))
        return result

    def _confirm_like(self, post_id: str, placeholder: str, row_id: str) -> None:
        current = self._state.posts.get(post_id)
        if current is None:
            return
        like_ids = current.like_ids - {placeholder}
        my_like = current.my_like_id
        if my_like in (placeholder, None):
            like_ids = like_ids | {row_id}
            my_like = row_id
        self._set_state(self._state.with_post(post_id, replace(current, like_ids=like_ids, my_like_id=my_like)))

    async def _unlike(self, post_id: str, like_id: str) -> MutationResult:
        def forward(state: SocialEngagementState) -> SocialEngagementState:
            current = state.posts[post_id]
            return state.with_post(
                post_id,
                replace(current, like_ids=current.like_ids - {like_id}, my_like_id=None),
            )

        def inverse(state: SocialEngagementState) -> SocialEngagementState:
            current = state.posts[post_id]
            return state.with_post(
                post_id,
                replace(current, like_ids=current.like_ids | {like_id}, my_like_id=like_id),
            )

        async def persist() -> Any:
            return await self._gateway.delete(
                EngagementKind.LIKES.value,
                Query().eq("post_id", post_id).eq("user_id", self.principal_id),
            )

        return await self._mutate("unlike", persist, OptimisticPatch(forward, inverse))
