"""
Retry with exponential backoff, shared by every network-facing stage.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

logger = logging.getLogger("beatbundle")

T = TypeVar("T")


def _always(exc: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry: ``max_attempts`` tries, waiting ``base_delay * 2**(n-1)`` after try n.

    ``retryable`` decides whether an error is worth another attempt; errors it
    rejects are raised immediately.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    retryable: Callable[[BaseException], bool] = _always
    sleep: Callable[[float], Any] = time.sleep
    async_sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows the given (1-based) attempt."""
        return self.base_delay * (2 ** (attempt - 1))

    def with_predicate(self, retryable: Callable[[BaseException], bool]) -> "RetryPolicy":
        return replace(self, retryable=retryable)

    def _should_retry(self, exc: Exception, attempt: int, label: str) -> bool:
        if attempt >= self.max_attempts or not self.retryable(exc):
            return False
        logger.warning(
            "Retry %d/%d for %s (%s), waiting %.1fs",
            attempt,
            self.max_attempts,
            label,
            exc,
            self.delay_for(attempt),
        )
        return True

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        label = getattr(fn, "__name__", "call")
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                if not self._should_retry(e, attempt, label):
                    raise
                self.sleep(self.delay_for(attempt))

    async def acall(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        label = getattr(fn, "__name__", "call")
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn(*args, **kwargs)
            except Exception as e:
                if not self._should_retry(e, attempt, label):
                    raise
                await self.async_sleep(self.delay_for(attempt))
