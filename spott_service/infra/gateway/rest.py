"""HTTP implementation of the Gateway protocol.

Talks to a PostgREST-style table API, the auth user endpoint and the edge
functions endpoint with httpx, and hands out websocket change channels.

Provides:
- Connection pooling through one shared httpx.AsyncClient
- Retry with exponential backoff on transient transport errors (writes
  only when the connection was never made)
- Mapping of HTTP failures onto GatewayError
- Per-principal access tokens via ``with_access_token``
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from spott_service.core.exceptions import GatewayError
from spott_service.core.settings import get_gateway_settings
from spott_service.core.settings.gateway import GatewaySettings
from spott_service.infra.gateway.protocol import Query
from spott_service.infra.gateway.realtime import RealtimeChannel
from spott_service.infra.metrics.prometheus import gateway_request_duration_seconds
from spott_service.utils.retry import RetryError, retry

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

# The request never reached the server, so even a write is safe to resend
_CONNECT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)

_IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


def _parse_content_range(value: str | None) -> int:
    """Extract the total from a ``Content-Range: 0-24/318`` header."""
    if not value or "/" not in value:
        return 0
    total = value.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RestGateway:
    """Gateway backed by the managed backend's HTTP and websocket APIs.

    Example:
        ```python
        async with RestGateway(access_token=session_token) as gateway:
            rows = await gateway.select("follows", Query().eq("follower_id", user_id))
        ```
    """

    def __init__(
        self,
        settings: GatewaySettings | None = None,
        *,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            settings: Gateway settings. Loaded from the environment when omitted.
            access_token: Bearer token of the signed-in principal. The anon key
                is used when absent.
            client: Shared httpx client (not closed by this instance).
            transport: Custom httpx transport, e.g. ``httpx.MockTransport`` in tests.
        """
        self.settings = settings or get_gateway_settings()
        self._access_token = access_token
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.url.rstrip("/"),
            timeout=httpx.Timeout(self.settings.timeout),
            transport=transport,
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
        )

    @property
    def api_key(self) -> str:
        key = self.settings.anon_key
        return key.get_secret_value() if key else ""

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def with_access_token(self, access_token: str | None) -> RestGateway:
        """Return a gateway acting as another principal, sharing this connection pool."""
        return RestGateway(self.settings, access_token=access_token, client=self.client)

    async def close(self) -> None:
        """Close the HTTP client when this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> RestGateway:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ──────────────────────────────────────────────────────────────
    # Transport
    # ──────────────────────────────────────────────────────────────

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self._access_token or self.api_key}",
            "Accept-Profile": self.settings.db_schema,
            "Content-Profile": self.settings.db_schema,
        }
        if extra:
            headers.update(extra)
        return headers

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return await self.client.request(
            method,
            path,
            params=params,
            json=json,
            headers=self._headers(headers),
        )

    @retry(max_attempts=3, initial_delay=0.5, max_delay=5.0, exceptions=_TRANSIENT_ERRORS)
    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return await self._send_once(method, path, **kwargs)

    @retry(max_attempts=3, initial_delay=0.5, max_delay=5.0, exceptions=_CONNECT_ERRORS)
    async def _send_write(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a non-idempotent request, retrying only failures before the server saw it."""
        return await self._send_once(method, path, **kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        resource: str,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        started = time.perf_counter()
        try:
            send = self._send if method in _IDEMPOTENT_METHODS else self._send_write
            response = await send(method, path, params=params, json=json, headers=headers)
        except RetryError as e:
            raise GatewayError(
                f"{method} {resource} failed: {e.last_exception}",
                extra={"resource": resource},
            ) from e
        except httpx.HTTPError as e:
            raise GatewayError(
                f"{method} {resource} failed: {e}",
                extra={"resource": resource},
            ) from e
        finally:
            gateway_request_duration_seconds.labels(method=method, resource=resource).observe(
                time.perf_counter() - started
            )

        logger.debug(
            "Gateway %s %s -> %s",
            method,
            resource,
            response.status_code,
            extra={"resource": resource, "status_code": response.status_code},
        )

        if response.is_error:
            body = _decode(response)
            raise GatewayError(
                f"{method} {resource} returned {response.status_code}",
                gateway_status=response.status_code,
                body=body,
                extra={"resource": resource},
            )
        return response

    def _table_path(self, table: str) -> str:
        return f"{self.settings.rest_path}/{table}"

    # ──────────────────────────────────────────────────────────────
    # Tables
    # ──────────────────────────────────────────────────────────────

    async def select(
        self,
        table: str,
        query: Query | None = None,
        *,
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        params = [("select", columns), *(query.to_params() if query else [])]
        response = await self._request("GET", self._table_path(table), resource=table, params=params)
        return list(_decode(response) or [])

    async def count(self, table: str, query: Query | None = None) -> int:
        params = [("select", "id"), *(query.to_params() if query else [])]
        response = await self._request(
            "HEAD",
            self._table_path(table),
            resource=table,
            params=params,
            headers={"Prefer": "count=exact"},
        )
        return _parse_content_range(response.headers.get("content-range"))

    async def insert(
        self,
        table: str,
        values: dict[str, Any] | list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "POST",
            self._table_path(table),
            resource=table,
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return list(_decode(response) or [])

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        query: Query,
    ) -> list[dict[str, Any]]:
        response = await self._request(
            "PATCH",
            self._table_path(table),
            resource=table,
            params=query.to_params(),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return list(_decode(response) or [])

    async def delete(self, table: str, query: Query) -> list[dict[str, Any]]:
        response = await self._request(
            "DELETE",
            self._table_path(table),
            resource=table,
            params=query.to_params(),
            headers={"Prefer": "return=representation"},
        )
        return list(_decode(response) or [])

    # ──────────────────────────────────────────────────────────────
    # Functions, auth, realtime
    # ──────────────────────────────────────────────────────────────

    async def invoke(self, function: str, body: dict[str, Any] | None = None) -> Any:
        response = await self._request(
            "POST",
            f"{self.settings.functions_path}/{function}",
            resource=f"fn:{function}",
            json=body or {},
        )
        return _decode(response)

    async def get_user(self) -> dict[str, Any] | None:
        """Resolve the principal behind the current access token.

        Returns None when no token is set or the auth endpoint rejects it.
        """
        if not self._access_token:
            return None
        try:
            response = await self._request("GET", f"{self.settings.auth_path}/user", resource="auth:user")
        except GatewayError as e:
            if e.gateway_status in (401, 403):
                return None
            raise
        user = _decode(response)
        return user if isinstance(user, dict) and user.get("id") else None

    def channel(self, name: str) -> RealtimeChannel:
        return RealtimeChannel(
            self.settings.realtime_url,
            name,
            api_key=self.api_key,
            access_token=self._access_token or self.api_key,
            schema=self.settings.db_schema,
            heartbeat_interval=self.settings.heartbeat_interval,
            join_timeout=self.settings.join_timeout,
        )
