"""Streaming client for the OpenAI-compatible LLM gateway."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from spott_service.core.exceptions import (
    InternalServerException,
    PaymentRequiredException,
    RateLimitException,
)
from spott_service.core.settings import get_assistant_settings
from spott_service.core.settings.ai import AssistantSettings

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Rate limits exceeded, please try again later."
PAYMENT_REQUIRED_MESSAGE = "Payment required, please add funds to your Lovable AI workspace."
UPSTREAM_ERROR_MESSAGE = "AI gateway error"


class CompletionClient:
    """Opens streamed chat completions.

    ``open_stream`` returns the upstream response with its body unread; the
    caller relays it and must close it. Upstream failures are raised before
    any byte is relayed:

    - 429 -> ``RateLimitException``
    - 402 -> ``PaymentRequiredException``
    - anything else -> ``InternalServerException``
    """

    def __init__(
        self,
        settings: AssistantSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_assistant_settings()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout),
            transport=transport,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def open_stream(self, messages: list[dict[str, Any]]) -> httpx.Response:
        if self.settings.api_key is None:
            raise InternalServerException(
                "AI_API_KEY is not configured", extra={"upstream": "ai-gateway"}
            )

        request = self.client.build_request(
            "POST",
            self.settings.gateway_url,
            headers={
                "Authorization": f"Bearer {self.settings.api_key.get_secret_value()}",
                "Content-Type": "application/json",
            },
            json={"model": self.settings.model, "messages": messages, "stream": True},
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error("AI gateway unreachable", extra={"error": str(e)})
            raise InternalServerException(UPSTREAM_ERROR_MESSAGE) from e

        if response.is_success:
            return response

        body = await response.aread()
        await response.aclose()
        status = response.status_code
        if status == 429:
            raise RateLimitException(RATE_LIMITED_MESSAGE, extra={"upstream": "ai-gateway"})
        if status == 402:
            raise PaymentRequiredException(PAYMENT_REQUIRED_MESSAGE)
        logger.error(
            "AI gateway error",
            extra={"upstream_status": status, "body": body.decode("utf-8", "replace")[:500]},
        )
        raise InternalServerException(UPSTREAM_ERROR_MESSAGE, extra={"upstream_status": status})
