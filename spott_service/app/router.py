"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from spott_service.features.assistant.router import router as assistant_router
from spott_service.features.health.router import router as health_router
from spott_service.features.metrics.router import router as metrics_router

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI) -> None:
    """Register all feature routers with the application."""
    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(assistant_router)
    logger.info("Routers configured", extra={"routes": len(app.routes)})
