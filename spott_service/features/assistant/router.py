"""AI travel assistant endpoint.

Errors from this route are plain ``{"error": "..."}`` bodies rather than
problem details, because the mobile and web clients read that shape:

- 429 when the LLM gateway rate limits
- 402 when the LLM workspace needs funds
- 500 for everything else, including a body without ``messages``
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from starlette.background import BackgroundTask

from spott_service.core.exceptions import AppException
from spott_service.features.assistant.schemas import AssistantRequest
from spott_service.features.assistant.service import AssistantServiceDep  # noqa: TC001
from spott_service.infra.metrics.prometheus import assistant_requests_total

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

_PASSTHROUGH_STATUSES = {status.HTTP_429_TOO_MANY_REQUESTS, status.HTTP_402_PAYMENT_REQUIRED}

router = APIRouter(prefix="/ai-travel-assistant", tags=["assistant"])


def _error(message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=CORS_HEADERS)


@router.options("/", status_code=status.HTTP_204_NO_CONTENT, include_in_schema=False)
async def assistant_preflight() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)


@router.post(
    "/",
    summary="Chat with the travel assistant",
    description="Streams an LLM completion as text/event-stream, with the caller's history injected",
    response_class=StreamingResponse,
)
async def assistant_chat(request: Request, service: AssistantServiceDep) -> Response:
    try:
        body = AssistantRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        assistant_requests_total.labels(outcome="invalid").inc()
        logger.warning("Rejected assistant request body", extra={"error": str(e)})
        return _error(str(e))

    try:
        upstream = await service.start_chat(body, request.headers.get("authorization"))
    except AppException as e:
        code = e.status_code if e.status_code in _PASSTHROUGH_STATUSES else 500
        return _error(e.detail, code)
    except Exception as e:
        assistant_requests_total.labels(outcome="error").inc()
        logger.exception("Assistant request failed")
        return _error(str(e) or "Unknown error")

    return StreamingResponse(
        upstream.aiter_raw(),
        media_type="text/event-stream",
        headers=CORS_HEADERS,
        background=BackgroundTask(upstream.aclose),
    )
