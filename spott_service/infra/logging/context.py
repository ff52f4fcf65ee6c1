"""Context management for structured logging.

Fields set here (request_id, principal_id, ...) are injected into every log
record emitted from the same task. Contextvars keep each asyncio task's
context separate.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        ```python
        set_log_context(request_id="abc-123", principal_id="u-1")
        logger.info("Building assistant context")  # includes both fields
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    _log_context.set({})


class ContextInjectingFilter(logging.Filter):
    """Copies the contextvars log context onto each LogRecord.

    Installed on the root logger by ``configure_logging`` so formatters
    (especially JSONFormatter) see the fields without any call-site changes.
    Existing record attributes are never overwritten.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
