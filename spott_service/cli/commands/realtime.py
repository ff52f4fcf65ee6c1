"""Realtime bus commands."""

import asyncio
import contextlib

import click

from spott_service.cli.utils import coro, error, info
from spott_service.client import SpottClient
from spott_service.infra.realtime.events import EventType, RealtimeEvent


@click.command(name="watch")
@click.option("--token", envvar="SPOTT_ACCESS_TOKEN", default=None, help="Access token of the principal")
@click.option(
    "--principal",
    default=None,
    help="Principal id to watch; resolved from the token when omitted",
)
@click.option(
    "--type",
    "event_types",
    multiple=True,
    type=click.Choice([t.value for t in EventType]),
    help="Only print these event variants (repeatable)",
)
@click.option(
    "--duration",
    default=None,
    type=float,
    help="Stop after this many seconds (default: until interrupted)",
)
@coro
async def watch(
    token: str | None,
    principal: str | None,
    event_types: tuple[str, ...],
    duration: float | None,
) -> None:
    """Stream bus events for a principal as JSON lines on stdout."""
    wanted = {EventType(t) for t in event_types}

    def emit(event: RealtimeEvent) -> None:
        if not wanted or event.type in wanted:
            click.echo(event.model_dump_json())

    async with SpottClient(access_token=token) as spott:
        unsubscribe = spott.bus.subscribe(emit)
        try:
            if principal:
                await spott.set_principal(principal)
            elif await spott.sign_in() is None:
                error("No principal: pass --principal or a valid --token")
                raise click.exceptions.Exit(1)

            info(f"Watching {spott.bus.channel_name(spott.principal_id or '')} ({spott.bus.state})")
            with contextlib.suppress(TimeoutError):
                async with asyncio.timeout(duration):
                    await asyncio.Event().wait()
        finally:
            unsubscribe()
