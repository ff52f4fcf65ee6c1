"""Engagement slices: post counters and pin savers."""

from spott_service.features.engagement.pins import PinEngagementSlice, PinEngagementState
from spott_service.features.engagement.social import (
    EngagementKind,
    PostEngagement,
    SocialEngagementSlice,
    SocialEngagementState,
)

__all__ = [
    "EngagementKind",
    "PinEngagementSlice",
    "PinEngagementState",
    "PostEngagement",
    "SocialEngagementSlice",
    "SocialEngagementState",
]
