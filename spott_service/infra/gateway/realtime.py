"""Websocket change channel speaking the Phoenix channel protocol.

One ``RealtimeChannel`` is one socket carrying one topic with any number of
row-change bindings. The transport tags every change with its operation
(``data.type``), so consumers never infer INSERT/UPDATE/DELETE from which
record fields happen to be present.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from spott_service.infra.gateway.protocol import (
    ChangeCallback,
    ChangeNotification,
    ChangeOperation,
    ChannelStatus,
    StatusCallback,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"

Connector = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class _Binding:
    table: str
    operation: ChangeOperation
    row_filter: str | None
    callback: ChangeCallback

    def to_config(self, schema: str) -> dict[str, Any]:
        config: dict[str, Any] = {
            "event": self.operation.value,
            "schema": schema,
            "table": self.table,
        }
        if self.row_filter:
            config["filter"] = self.row_filter
        return config

    def accepts(self, notification: ChangeNotification) -> bool:
        """Local routing when the server does not send subscription ids."""
        if notification.table != self.table:
            return False
        if not self.row_filter:
            return True
        column, _, rhs = self.row_filter.partition("=")
        op, _, value = rhs.partition(".")
        if op != "eq":
            return True
        record = notification.new or notification.old
        return str(record.get(column)) == value


async def _default_connect(url: str) -> Any:
    return await websockets.connect(url, ping_interval=None)


class RealtimeChannel:
    """Phoenix-protocol websocket channel for row-change notifications.

    Example:
        ```python
        channel = gateway.channel("unified-user-42")
        channel.on_change("notifications", ChangeOperation.INSERT, "user_id=eq.42", handle)
        await channel.subscribe(lambda status, err: print(status))
        ...
        await channel.close()
        ```
    """

    def __init__(
        self,
        url: str,
        name: str,
        *,
        api_key: str,
        access_token: str | None,
        schema: str = "public",
        heartbeat_interval: float = 25.0,
        join_timeout: float = 10.0,
        connect: Connector | None = None,
    ) -> None:
        self.url = url
        self.name = name
        self.topic = f"realtime:{name}"
        self._api_key = api_key
        self._access_token = access_token
        self._schema = schema
        self._heartbeat_interval = heartbeat_interval
        self._join_timeout = join_timeout
        self._connect = connect or _default_connect

        self._bindings: list[_Binding] = []
        self._server_ids: dict[int, list[_Binding]] = {}
        self._refs = itertools.count(1)
        self._join_ref: str | None = None
        self._joined = False
        self._closing = False
        self._on_status: StatusCallback | None = None

        self._ws: Any = None
        self._reader_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._join_timer: asyncio.Task[None] | None = None

    @property
    def joined(self) -> bool:
        return self._joined

    def on_change(
        self,
        table: str,
        operation: ChangeOperation,
        row_filter: str | None,
        callback: ChangeCallback,
    ) -> None:
        if self._ws is not None:
            raise RuntimeError("Bindings must be registered before subscribe()")
        self._bindings.append(_Binding(table, operation, row_filter, callback))

    def socket_url(self) -> str:
        return f"{self.url}?{urlencode({'apikey': self._api_key, 'vsn': PROTOCOL_VERSION})}"

    def join_payload(self) -> dict[str, Any]:
        return {
            "config": {
                "broadcast": {"ack": False, "self": False},
                "presence": {"key": ""},
                "postgres_changes": [b.to_config(self._schema) for b in self._bindings],
                "private": False,
            },
            "access_token": self._access_token,
        }

    async def subscribe(self, on_status: StatusCallback) -> None:
        """Connect, send ``phx_join`` and start the reader and heartbeat tasks.

        Returns once the join has been sent; the outcome arrives through
        ``on_status`` (SUBSCRIBED, CHANNEL_ERROR, TIMED_OUT or CLOSED).
        """
        self._on_status = on_status
        try:
            self._ws = await self._connect(self.socket_url())
            self._join_ref = self._next_ref()
            await self._push(self.topic, "phx_join", self.join_payload(), self._join_ref)
        except (OSError, WebSocketException) as e:
            logger.warning(
                "Realtime channel connect failed",
                extra={"channel": self.name, "error": str(e)},
            )
            self._report(ChannelStatus.CHANNEL_ERROR, e)
            return

        self._reader_task = asyncio.create_task(self._read_loop())
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        self._join_timer = asyncio.create_task(self._watch_join())

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True

        current = asyncio.current_task()
        for task in (self._join_timer, self._heartbeat_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if self._ws is not None:
            with contextlib.suppress(ConnectionClosed, OSError):
                await self._push(self.topic, "phx_leave", {}, self._next_ref())
            with contextlib.suppress(ConnectionClosed, OSError):
                await self._ws.close()

        logger.debug("Realtime channel closed", extra={"channel": self.name})

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    def _next_ref(self) -> str:
        return str(next(self._refs))

    async def _push(self, topic: str, event: str, payload: dict[str, Any], ref: str) -> None:
        await self._ws.send(json.dumps({"topic": topic, "event": event, "payload": payload, "ref": ref}))

    def _report(self, status: ChannelStatus, error: Exception | None) -> None:
        if self._closing or self._on_status is None:
            return
        self._on_status(status, error)

    async def _watch_join(self) -> None:
        await asyncio.sleep(self._join_timeout)
        if not self._joined:
            logger.warning("Realtime channel join timed out", extra={"channel": self.name})
            self._report(ChannelStatus.TIMED_OUT, None)

    async def _heartbeat_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._heartbeat_interval)
                await self._push("phoenix", "heartbeat", {}, self._next_ref())
        except ConnectionClosed:
            return

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring non-JSON realtime frame", extra={"channel": self.name})
                    continue
                self.dispatch(message)
        except ConnectionClosed as e:
            self._report(ChannelStatus.CLOSED, e)
            return
        self._report(ChannelStatus.CLOSED, None)

    def dispatch(self, message: dict[str, Any]) -> None:
        """Handle one decoded protocol message addressed to this socket."""
        if message.get("topic") != self.topic:
            return
        event = message.get("event")
        payload = message.get("payload") or {}

        if event == "phx_reply" and message.get("ref") == self._join_ref:
            if payload.get("status") == "ok":
                self._register_server_ids(payload.get("response", {}).get("postgres_changes") or [])
                self._joined = True
                logger.info(
                    "Realtime channel subscribed",
                    extra={"channel": self.name, "bindings": len(self._bindings)},
                )
                self._report(ChannelStatus.SUBSCRIBED, None)
            else:
                self._report(
                    ChannelStatus.CHANNEL_ERROR,
                    RuntimeError(f"join rejected: {payload.get('response')}"),
                )
        elif event == "phx_error":
            self._report(ChannelStatus.CHANNEL_ERROR, RuntimeError("channel error"))
        elif event == "phx_close":
            self._report(ChannelStatus.CLOSED, None)
        elif event == "system" and payload.get("status") == "error":
            self._report(ChannelStatus.CHANNEL_ERROR, RuntimeError(str(payload.get("message"))))
        elif event == "postgres_changes":
            self._route_change(payload)

    def _register_server_ids(self, entries: list[dict[str, Any]]) -> None:
        self._server_ids.clear()
        for binding, entry in zip(self._bindings, entries, strict=False):
            server_id = entry.get("id")
            if server_id is not None:
                self._server_ids.setdefault(server_id, []).append(binding)

    def _route_change(self, payload: dict[str, Any]) -> None:
        data = payload.get("data") or {}
        try:
            operation = ChangeOperation(data.get("type"))
        except ValueError:
            logger.warning(
                "Ignoring change without a known operation",
                extra={"channel": self.name, "type": data.get("type")},
            )
            return

        notification = ChangeNotification(
            table=data.get("table", ""),
            operation=operation,
            new=data.get("record") or {},
            old=data.get("old_record") or {},
            commit_timestamp=data.get("commit_timestamp"),
        )

        ids = payload.get("ids") or []
        if ids and self._server_ids:
            targets = [b for server_id in ids for b in self._server_ids.get(server_id, [])]
        else:
            targets = [b for b in self._bindings if b.accepts(notification)]

        for binding in targets:
            try:
                binding.callback(notification)
            except Exception:
                logger.exception(
                    "Change callback failed",
                    extra={"channel": self.name, "table": notification.table},
                )
