"""Tests for retry and rate limiting helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from reportflow.common.resilience import (
    ExponentialBackoff,
    RateLimiterConfig,
    RetryConfig,
    RetryExhaustedError,
    SlidingWindowRateLimiter,
    retry_async,
)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestRetryConfig:
    def test_delays_are_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=10.0)

        assert [config.calculate_delay(i) for i in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_retryable_classification(self):
        config = RetryConfig(
            retryable_exceptions=(ConnectionError,),
            non_retryable_exceptions=(ConnectionRefusedError,),
        )

        assert config.is_retryable(ConnectionResetError())
        assert not config.is_retryable(ConnectionRefusedError())
        assert not config.is_retryable(ValueError())

    def test_validation(self):
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)
        with pytest.raises(ValueError):
            RetryConfig(base_delay=5.0, max_delay=1.0)


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        func = AsyncMock(side_effect=[ConnectionError("a"), ConnectionError("b"), "ok"])
        sleep = AsyncMock()

        result = await retry_async(func, config=RetryConfig(max_attempts=3), sleep=sleep)

        assert result == "ok"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted(self):
        func = AsyncMock(side_effect=TimeoutError("slow"))

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(func, config=RetryConfig(max_attempts=2), sleep=AsyncMock())

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_error, TimeoutError)

    @pytest.mark.asyncio
    async def test_non_retryable_propagates(self):
        func = AsyncMock(side_effect=KeyError("x"))

        with pytest.raises(KeyError):
            await retry_async(func, config=RetryConfig(max_attempts=5), sleep=AsyncMock())

        assert func.await_count == 1


class TestExponentialBackoff:
    def test_job_backoff(self):
        backoff = ExponentialBackoff(base_delay=5.0, multiplier=2.0)

        assert [backoff.get_delay(i) for i in range(3)] == [5.0, 10.0, 20.0]

    def test_max_delay(self):
        assert ExponentialBackoff(base_delay=5.0, max_delay=7.0).get_delay(3) == 7.0


class TestSlidingWindowRateLimiter:
    def test_window(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter("jobs", RateLimiterConfig(2, 60.0), clock=clock)

        assert limiter.try_acquire()
        clock.now += 10
        assert limiter.try_acquire()
        assert not limiter.try_acquire()
        assert limiter.get_wait_time() == pytest.approx(50.0)

        clock.now += 50
        assert limiter.get_wait_time() == 0.0
        assert limiter.try_acquire()

    @pytest.mark.asyncio
    async def test_acquire_timeout(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter("jobs", RateLimiterConfig(1, 60.0), clock=clock)
        await limiter.acquire_async()

        assert await limiter.acquire_async(timeout=1.0) is False

    def test_config_validation(self):
        with pytest.raises(ValueError):
            RateLimiterConfig(rate=0)
