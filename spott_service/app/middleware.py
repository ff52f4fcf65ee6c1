"""Middleware configuration for FastAPI application."""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any

from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware

from spott_service.core.settings import get_app_settings, get_logging_settings
from spott_service.infra.logging.context import clear_log_context, set_log_context
from spott_service.infra.metrics.prometheus import (
    http_request_duration_seconds,
    http_requests_total,
)

if TYPE_CHECKING:
    from fastapi import FastAPI
    from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Routes that answer their own preflight and set their own CORS headers
CORS_EXEMPT_PATHS = ["/ai-travel-assistant"]


class ScopedCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that skips ``exempt_paths`` entirely."""

    def __init__(self, app: ASGIApp, *, exempt_paths: list[str] | None = None, **kwargs: Any) -> None:
        super().__init__(app, **kwargs)
        self.exempt_paths = CORS_EXEMPT_PATHS if exempt_paths is None else exempt_paths

    def _is_exempt(self, path: str) -> bool:
        return any(path.startswith(exempt_path) for exempt_path in self.exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self._is_exempt(scope["path"]):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an X-Request-ID and put it in the log context."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_log_context(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            clear_log_context()
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record request counts and latency, labelled by route template.

    Latency samples carry the trace id as an exemplar when a span is active.
    """

    async def dispatch(self, request: Request, call_next):
        method = request.method
        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Process-Time"] = f"{time.perf_counter() - start_time:.6f}"
            return response
        finally:
            duration = time.perf_counter() - start_time
            route = request.scope.get("route")
            endpoint = getattr(route, "path", None) or request.url.path

            span_context = trace.get_current_span().get_span_context()
            exemplar = (
                {"trace_id": format(span_context.trace_id, "032x")}
                if span_context.is_valid
                else None
            )
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
                duration, exemplar=exemplar
            )
            http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc(
                exemplar=exemplar
            )


def configure_middleware(app: FastAPI) -> None:
    """Configure middleware for the application.

    Starlette runs the last added middleware first, so request ids are set
    before metrics and CORS see the request.
    """
    app_settings = get_app_settings()
    log_settings = get_logging_settings()

    cors_origins = app_settings.cors_origins or ["*"]
    logger.info("Configuring CORS", extra={"origins": cors_origins})
    app.add_middleware(
        ScopedCORSMiddleware,
        exempt_paths=CORS_EXEMPT_PATHS,
        allow_origins=cors_origins,
        allow_methods=app_settings.cors_allow_methods,
        allow_headers=app_settings.cors_allow_headers,
        max_age=app_settings.cors_max_age,
    )

    app.add_middleware(MetricsMiddleware)

    if log_settings.include_request_id:
        app.add_middleware(RequestIDMiddleware)
