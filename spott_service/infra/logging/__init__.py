"""Logging infrastructure.

Structured logging with:
- JSONL format for Loki/Elasticsearch ingestion
- Automatic context injection (request_id, principal_id, ...)
- QueueHandler + QueueListener for non-blocking I/O
- OpenTelemetry trace correlation

Basic usage:
    from spott_service.infra.logging import set_log_context
    import logging

    logger = logging.getLogger(__name__)

    set_log_context(principal_id="u-1")
    logger.info("Realtime session requested")  # includes principal_id
"""

from spott_service.infra.logging.config import configure_logging, setup_logging, shutdown
from spott_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from spott_service.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
