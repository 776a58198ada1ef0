"""Configuration classes for resilience patterns."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry policy.

    Attributes:
        max_attempts: Maximum number of attempts (1 = no retry).
        base_delay: Base delay in seconds.
        max_delay: Maximum delay cap in seconds.
        exponential_base: Multiplier for exponential backoff.
        retryable_exceptions: Exceptions that trigger retry.
        non_retryable_exceptions: Exceptions that should not be retried.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_exceptions: tuple[type[BaseException], ...] = (
        ConnectionError,
        TimeoutError,
    )
    non_retryable_exceptions: tuple[type[BaseException], ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt number (0-indexed)."""
        return min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)

    def is_retryable(self, error: BaseException) -> bool:
        """Check if the error should trigger a retry."""
        if self.non_retryable_exceptions and isinstance(error, self.non_retryable_exceptions):
            return False
        if self.retryable_exceptions:
            return isinstance(error, self.retryable_exceptions)
        return True


@dataclass(frozen=True)
class RateLimiterConfig:
    """Configuration for the sliding-window rate limiter.

    Attributes:
        rate: Number of permits per period.
        period_seconds: Window duration in seconds.
    """

    rate: int = 5
    period_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise ValueError("rate must be positive")
        if self.period_seconds <= 0:
            raise ValueError("period_seconds must be positive")

