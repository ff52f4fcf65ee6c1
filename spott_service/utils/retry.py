"""Retry with exponential backoff for gateway transport calls.

Only coroutine functions are supported; every gateway call in this project
is async.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: Exception, attempts: int) -> None:
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_exception}")


class RetryStrategy:
    """Backoff schedule and retryable-exception filter."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 0.5,
        max_delay: float = 10.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        exceptions: tuple[type[Exception], ...] = (Exception,),
    ) -> None:
        """Initialize retry strategy.

        Args:
            max_attempts: Total attempts including the first call.
            initial_delay: Delay in seconds before the first retry.
            max_delay: Upper bound for any single delay.
            exponential_base: Growth factor between consecutive delays.
            jitter: Scale each delay by a random factor in [0.5, 1.5).
            exceptions: Exception types that trigger a retry.
        """
        self.max_attempts = max(1, max_attempts)
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.exceptions = exceptions

    def should_retry(self, exception: Exception) -> bool:
        return isinstance(exception, self.exceptions)

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-indexed)."""
        delay = min(self.initial_delay * (self.exponential_base**attempt), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


def retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[Exception, int], None] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Retry an async function with exponential backoff.

    Non-retryable exceptions propagate unchanged. When the last attempt fails
    with a retryable exception, ``RetryError`` is raised from it.

    Example:
        ```python
        @retry(max_attempts=3, exceptions=(httpx.TransportError,))
        async def fetch_profile(client: httpx.AsyncClient, user_id: str) -> dict:
            response = await client.get(f"/profiles?id=eq.{user_id}")
            response.raise_for_status()
            return response.json()[0]
        ```
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        exceptions=exceptions,
    )

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(strategy.max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not strategy.should_retry(e):
                        raise

                    if attempt >= strategy.max_attempts - 1:
                        logger.error(
                            "All retry attempts exhausted for %s",
                            func.__name__,
                            extra={
                                "function": func.__name__,
                                "attempts": strategy.max_attempts,
                                "last_exception": str(e),
                            },
                        )
                        raise RetryError(e, strategy.max_attempts) from e

                    delay = strategy.calculate_delay(attempt)
                    logger.warning(
                        "Retrying %s after %.2fs (attempt %d/%d)",
                        func.__name__,
                        delay,
                        attempt + 1,
                        strategy.max_attempts,
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "delay": delay,
                            "exception": str(e),
                        },
                    )
                    if on_retry:
                        on_retry(e, attempt + 1)
                    await asyncio.sleep(delay)

            raise RuntimeError("Retry logic error: no attempt was made")

        return wrapper

    return decorator
