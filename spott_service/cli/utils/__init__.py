"""CLI utilities for running async operations and formatting output."""

from spott_service.cli.utils.async_runner import coro
from spott_service.cli.utils.formatters import error, info, success

__all__ = [
    "coro",
    "error",
    "info",
    "success",
]
