"""Health check endpoints.

- ``/health/`` liveness: the process is up
- ``/health/ready`` readiness: the backend gateway is configured
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from spott_service.core.exceptions import ServiceUnavailableException
from spott_service.core.settings import (
    get_app_settings,
    get_assistant_settings,
    get_gateway_settings,
)

router = APIRouter(prefix="/health", tags=["health"])


class LivenessResponse(BaseModel):
    status: str = "ok"
    service: str
    version: str
    timestamp: datetime


class ReadinessResponse(BaseModel):
    status: str = "ready"
    checks: dict[str, bool] = Field(default_factory=dict)


@router.get("/", response_model=LivenessResponse, summary="Liveness probe")
async def liveness() -> LivenessResponse:
    settings = get_app_settings()
    return LivenessResponse(
        service=settings.service_name,
        version=settings.version,
        timestamp=datetime.now(UTC),
    )


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness probe")
async def readiness() -> ReadinessResponse:
    """Ready when the gateway is configured; the assistant key is reported but optional."""
    checks = {
        "gateway": get_gateway_settings().is_configured,
        "assistant": get_assistant_settings().is_configured,
    }
    if not checks["gateway"]:
        raise ServiceUnavailableException(
            "Gateway anon key is not configured", extra={"checks": checks}
        )
    return ReadinessResponse(checks=checks)
