"""Resilience patterns shared by the queue, the worker and plugin utilities.

Example:
    from reportflow.common.resilience import (
        RateLimiterConfig,
        SlidingWindowRateLimiter,
    )

    limiter = SlidingWindowRateLimiter("jobs", RateLimiterConfig(5, 60.0))
    await limiter.acquire_async()
"""

from reportflow.common.resilience.config import RateLimiterConfig, RetryConfig
from reportflow.common.resilience.rate_limiter import SlidingWindowRateLimiter
from reportflow.common.resilience.retry import (
    ExponentialBackoff,
    RetryExhaustedError,
    retry_async,
)

__all__ = [
    "ExponentialBackoff",
    "RateLimiterConfig",
    "RetryConfig",
    "RetryExhaustedError",
    "SlidingWindowRateLimiter",
    "retry_async",
]
