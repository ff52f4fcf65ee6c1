"""Application lifespan management.

Startup order:
1. Logging
2. Backend gateway HTTP client (shared by every request)
3. LLM completion client and the assistant service

Shutdown runs in reverse.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from spott_service.core.settings import (
    get_app_settings,
    get_assistant_settings,
    get_gateway_settings,
)
from spott_service.features.assistant.client import CompletionClient
from spott_service.features.assistant.service import AssistantService
from spott_service.infra.gateway.rest import RestGateway
from spott_service.infra.logging.config import setup_logging, shutdown

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared clients on startup and close them on shutdown.

    Components already placed on ``app.state`` (tests inject fakes this way)
    are left untouched.
    """
    setup_logging()
    app_settings = get_app_settings()
    gateway_settings = get_gateway_settings()
    assistant_settings = get_assistant_settings()

    logger.info(
        "Starting application",
        extra={
            "service": app_settings.service_name,
            "version": app_settings.version,
            "environment": app_settings.environment,
            "gateway_configured": gateway_settings.is_configured,
            "assistant_configured": assistant_settings.is_configured,
        },
    )

    owned: list[RestGateway | CompletionClient] = []
    if getattr(app.state, "assistant_service", None) is None:
        gateway = RestGateway(gateway_settings)
        completions = CompletionClient(assistant_settings)
        owned = [completions, gateway]
        app.state.gateway = gateway
        app.state.assistant_service = AssistantService(
            gateway.with_access_token, completions, assistant_settings
        )

    try:
        yield
    finally:
        logger.info("Shutting down application", extra={"service": app_settings.service_name})
        for component in owned:
            await component.close()
        shutdown()
