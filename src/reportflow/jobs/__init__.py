"""Report job queue, stores and worker."""

from __future__ import annotations

from reportflow.jobs.config import QueueConfig, RedisSettings, WorkerConfig
from reportflow.jobs.queue import ReportQueue
from reportflow.jobs.stores import (
    InMemoryJobStore,
    JobStore,
    RedisJobStore,
    SQLiteJobStore,
    create_store,
    create_store_from_env,
)
from reportflow.jobs.types import (
    JOB_NAME,
    Job,
    JobCancelledError,
    JobError,
    JobNotFoundError,
    JobProgress,
    JobRef,
    JobStatus,
    JobValidationError,
    ReportJobData,
    ReportJobResult,
)
from reportflow.jobs.worker import ReportWorker, run_worker

__all__ = [
    # Queue
    "ReportQueue",
    "QueueConfig",
    # Worker
    "ReportWorker",
    "WorkerConfig",
    "run_worker",
    # Stores
    "JobStore",
    "InMemoryJobStore",
    "SQLiteJobStore",
    "RedisJobStore",
    "RedisSettings",
    "create_store",
    "create_store_from_env",
    # Types
    "JOB_NAME",
    "Job",
    "JobProgress",
    "JobRef",
    "JobStatus",
    "ReportJobData",
    "ReportJobResult",
    # Exceptions
    "JobError",
    "JobCancelledError",
    "JobNotFoundError",
    "JobValidationError",
]
