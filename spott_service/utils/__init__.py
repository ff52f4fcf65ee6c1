"""Utility modules for common operations.

This package provides reusable utilities for:
- Retry with exponential backoff
- Request sequencing for stale-response protection
"""

from spott_service.utils.retry import RetryError, RetryStrategy, retry
from spott_service.utils.sequencing import RequestSequencer

__all__ = [
    "RequestSequencer",
    "RetryError",
    "RetryStrategy",
    "retry",
]
