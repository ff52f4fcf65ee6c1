"""Prometheus scrape endpoint.

Exposes the service's private registry: HTTP request counts and latency,
realtime bus delivery and session counters, slice refresh and mutation
outcomes, assistant request outcomes and gateway call latency.
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from spott_service.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
