"""Travel assistant orchestration: resolve caller, build prompt, open stream."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated

import httpx
from fastapi import Depends, Request

from spott_service.core.exceptions import AppException, GatewayError
from spott_service.core.settings import get_assistant_settings
from spott_service.core.settings.ai import AssistantSettings
from spott_service.features.assistant.client import CompletionClient
from spott_service.features.assistant.context import UserContext, load_user_context
from spott_service.features.assistant.prompt import build_system_prompt
from spott_service.features.assistant.schemas import AssistantRequest
from spott_service.infra.gateway.protocol import Gateway
from spott_service.infra.metrics.prometheus import assistant_requests_total

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[str | None], Gateway]


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AssistantService:
    """Builds a context-aware completion request for the calling user."""

    def __init__(
        self,
        gateway_for: GatewayFactory,
        client: CompletionClient,
        settings: AssistantSettings | None = None,
    ) -> None:
        self._gateway_for = gateway_for
        self._client = client
        self.settings = settings or get_assistant_settings()

    async def resolve_context(self, authorization: str | None) -> UserContext | None:
        """Context of the principal behind ``authorization``, or None when anonymous."""
        gateway = self._gateway_for(bearer_token(authorization))
        try:
            user = await gateway.get_user()
        except GatewayError as e:
            logger.warning("Could not resolve assistant caller", extra={"error": e.message})
            return None
        if user is None:
            return None
        return await load_user_context(gateway, str(user["id"]), self.settings)

    async def start_chat(
        self, request: AssistantRequest, authorization: str | None
    ) -> httpx.Response:
        context = await self.resolve_context(authorization)
        messages = [
            {"role": "system", "content": build_system_prompt(request, context)},
            *(m.model_dump() for m in request.messages),
        ]
        try:
            response = await self._client.open_stream(messages)
        except AppException as e:
            assistant_requests_total.labels(outcome=str(e.status_code)).inc()
            raise
        assistant_requests_total.labels(outcome="streamed").inc()
        logger.info(
            "Assistant stream opened",
            extra={"authenticated": context is not None, "turns": len(request.messages)},
        )
        return response


def get_assistant_service(request: Request) -> AssistantService:
    return request.app.state.assistant_service


AssistantServiceDep = Annotated[AssistantService, Depends(get_assistant_service)]
