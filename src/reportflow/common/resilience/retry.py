"""Retry helpers with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from reportflow.common.resilience.config import RetryConfig

logger = logging.getLogger(__name__)

R = TypeVar("R")


class RetryExhaustedError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: BaseException | None = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message)


@dataclass(frozen=True)
class ExponentialBackoff:
    """Exponential backoff strategy.

    Delay = base_delay * (multiplier ^ attempt)

    Example:
        backoff = ExponentialBackoff(base_delay=5.0, multiplier=2.0)
        # Attempt 0: 5s
        # Attempt 1: 10s
        # Attempt 2: 20s
    """

    base_delay: float = 5.0
    multiplier: float = 2.0
    max_delay: float | None = None

    def get_delay(self, attempt: int) -> float:
        """Calculate exponential delay for a 0-indexed attempt."""
        delay = self.base_delay * (self.multiplier ** max(attempt, 0))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


async def retry_async(
    func: Callable[..., Awaitable[R]],
    *args: Any,
    config: RetryConfig | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> R:
    """Await ``func(*args, **kwargs)`` with retries.

    Non-retryable errors propagate unchanged. When every attempt fails with a
    retryable error, :class:`RetryExhaustedError` is raised with the last
    error attached.
    """
    config = config or RetryConfig()
    last_error: BaseException | None = None

    for attempt in range(config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            last_error = e
            if not config.is_retryable(e):
                raise
            if attempt >= config.max_attempts - 1:
                break

            delay = config.calculate_delay(attempt)
            logger.info(
                f"Attempt {attempt + 1} failed, retrying in {delay:.2f}s: {e}"
            )
            await sleep(delay)

    raise RetryExhaustedError(
        f"All {config.max_attempts} retry attempts exhausted: {last_error}",
        attempts=config.max_attempts,
        last_error=last_error,
    )
