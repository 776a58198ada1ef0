"""Queue, worker and Redis settings.

Environment variables:

- ``REPORTFLOW_WORKER_CONCURRENCY``: worker slots (default 2)
- ``REPORTFLOW_JOB_STORE``: ``memory``, ``sqlite`` or ``redis``
- ``REPORTFLOW_JOB_DB``: SQLite database path
- ``REDIS_HOST`` / ``REDIS_PORT`` / ``REDIS_PASSWORD``: Redis connection
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import quote

from reportflow.common.resilience import ExponentialBackoff, RateLimiterConfig

CONCURRENCY_ENV = "REPORTFLOW_WORKER_CONCURRENCY"
JOB_STORE_ENV = "REPORTFLOW_JOB_STORE"
JOB_DB_ENV = "REPORTFLOW_JOB_DB"

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


@dataclass(frozen=True)
class QueueConfig:
    """Defaults applied to every enqueued job.

    Attributes:
        name: Queue name, also the storage key namespace.
        max_attempts: Attempts before a job is marked failed.
        backoff_base_seconds: Delay before the first retry; doubles after.
        job_timeout_seconds: Longest a single attempt may run.
        completed_retention_ms: Age after which completed jobs are removed.
        completed_retention_count: Newest completed jobs kept at most.
        failed_retention_ms: Age after which failed jobs are removed.
        default_priority: Priority when none is given (lower runs first).
    """

    name: str = "report-generation"
    max_attempts: int = 3
    backoff_base_seconds: float = 5.0
    job_timeout_seconds: float = 600.0
    completed_retention_ms: int = DAY_MS
    completed_retention_count: int = 100
    failed_retention_ms: int = 7 * DAY_MS
    default_priority: int = 5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base_seconds < 0:
            raise ValueError("backoff_base_seconds must be non-negative")
        if self.job_timeout_seconds <= 0:
            raise ValueError("job_timeout_seconds must be positive")
        if self.completed_retention_count < 0:
            raise ValueError("completed_retention_count must be non-negative")

    @property
    def backoff(self) -> ExponentialBackoff:
        return ExponentialBackoff(base_delay=self.backoff_base_seconds, multiplier=2.0)

    def retry_delay_ms(self, attempts_made: int) -> int:
        """Delay before the next attempt after ``attempts_made`` failures."""
        return int(self.backoff.get_delay(attempts_made - 1) * 1000)


@dataclass(frozen=True)
class WorkerConfig:
    """Worker pool settings.

    Attributes:
        concurrency: Jobs processed at the same time.
        limiter: Cap on job starts per rolling window.
        poll_interval: Seconds an idle slot waits before polling again.
    """

    concurrency: int = 2
    limiter: RateLimiterConfig = field(default_factory=lambda: RateLimiterConfig(5, 60.0))
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "WorkerConfig":
        env = os.environ if environ is None else environ
        raw = env.get(CONCURRENCY_ENV)
        if not raw:
            return cls()
        try:
            concurrency = int(raw)
        except ValueError:
            raise ValueError(f"{CONCURRENCY_ENV} must be an integer, got {raw!r}")
        return cls(concurrency=concurrency)


@dataclass(frozen=True)
class RedisSettings:
    host: str = "localhost"
    port: int = 6379
    password: str | None = None
    db: int = 0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RedisSettings":
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("REDIS_HOST") or "localhost",
            port=int(env.get("REDIS_PORT") or 6379),
            password=env.get("REDIS_PASSWORD") or None,
        )

    @property
    def url(self) -> str:
        auth = f":{quote(self.password, safe='')}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"
