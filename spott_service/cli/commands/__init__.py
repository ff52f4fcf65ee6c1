"""CLI command modules."""

from spott_service.cli.commands import realtime, recent, server

__all__ = [
    "realtime",
    "recent",
    "server",
]
