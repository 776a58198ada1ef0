"""Report generation queue.

The queue applies the job lifecycle on top of a :class:`JobStore`:

    waiting --claim--> active --complete--> completed
                         |
                         +--fail, attempts left--> delayed --due--> waiting
                         +--fail, no attempts left / not retryable--> failed

Store calls are blocking and run in worker threads so the event loop stays
responsive.

Example:
    queue = ReportQueue(create_store("sqlite", database="jobs.db"))
    ref = await queue.add_job({
        "pipeline_id": "sales",
        "report_type": "monthly",
        "output_format": "pdf",
        "inputs": {"month": "2024-05"},
    })
    status = await queue.get_job_status(ref.id)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Mapping

from reportflow.jobs.config import DAY_MS, HOUR_MS, QueueConfig
from reportflow.jobs.stores import InMemoryJobStore, JobStore
from reportflow.jobs.types import (
    JOB_NAME,
    Job,
    JobError,
    JobNotFoundError,
    JobProgress,
    JobRef,
    JobStatus,
    ReportJobData,
    ReportJobResult,
    now_ms,
)

logger = logging.getLogger(__name__)

STATS_STATUSES = ("waiting", "active", "completed", "failed", "delayed")


class ReportQueue:
    """Priority job queue for report generation."""

    def __init__(
        self,
        store: JobStore | None = None,
        config: QueueConfig | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store or InMemoryJobStore()
        self._config = config or QueueConfig()
        self._clock = clock

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def config(self) -> QueueConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(func, *args)

    async def _require(self, job_id: str) -> Job:
        job = await self._call(self._store.get, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    # -------------------------------------------------------------------------
    # Intake and queries
    # -------------------------------------------------------------------------

    async def add_job(
        self,
        data: ReportJobData | Mapping[str, Any],
        priority: int | None = None,
        job_id: str | None = None,
    ) -> JobRef:
        """Enqueue a report request.

        Lower ``priority`` values run first; a missing or zero priority uses
        the configured default. Adding an id that already exists returns the
        existing job's reference without enqueuing a duplicate.

        Raises:
            JobValidationError: If ``data`` is not a valid submission.
        """
        if not isinstance(data, ReportJobData):
            data = ReportJobData.from_submission(data)

        if job_id is not None:
            existing = await self._call(self._store.get, job_id)
            if existing is not None:
                logger.debug(f"Job {job_id} already exists, not enqueuing again")
                return JobRef(id=existing.id, name=existing.name)

        sequence = await self._call(self._store.next_sequence)
        job = Job(
            id=job_id or uuid.uuid4().hex,
            data=data,
            name=JOB_NAME,
            max_attempts=self._config.max_attempts,
            priority=priority or self._config.default_priority,
            sequence=sequence,
            created_at=self._clock(),
        )
        await self._call(self._store.save, job)
        logger.info(
            f"Job {job.id} added: pipeline={data.pipeline_id} "
            f"type={data.report_type} format={data.output_format} priority={job.priority}"
        )
        return JobRef(id=job.id, name=job.name)

    async def get_job(self, job_id: str) -> Job | None:
        return await self._call(self._store.get, job_id)

    async def get_job_status(self, job_id: str) -> dict[str, Any] | None:
        """The job's status record, or None for an unknown id."""
        job = await self.get_job(job_id)
        return job.to_status_record() if job else None

    async def get_all_jobs(self, status: JobStatus | str | None = None) -> list[Job]:
        """Jobs with ``status``, newest first.

        Without a status, returns waiting, active, completed, failed and
        delayed jobs.
        """
        statuses = [status] if status is not None else list(STATS_STATUSES)
        jobs = await self._call(self._store.list, statuses)
        return sorted(jobs, key=lambda j: (j.created_at, j.sequence), reverse=True)

    async def remove_job(self, job_id: str) -> None:
        """Remove a job in any state.

        Raises:
            JobNotFoundError: If there is no such job.
        """
        removed = await self._call(self._store.delete, job_id)
        if not removed:
            raise JobNotFoundError(job_id)
        logger.info(f"Job {job_id} removed")

    async def get_queue_stats(self) -> dict[str, int]:
        counts = await self._call(self._store.counts)
        stats = {status: counts.get(status, 0) for status in STATS_STATUSES}
        stats["total"] = sum(stats.values())
        return stats

    async def get_detailed_job_counts(self) -> dict[str, int]:
        """Per-status counts including ``paused``.

        While the queue is paused its waiting jobs are reported as paused.
        """
        counts = await self._call(self._store.counts)
        detailed = {status: counts.get(status, 0) for status in STATS_STATUSES}
        detailed["paused"] = 0
        if await self.is_paused():
            detailed["paused"] = detailed["waiting"]
            detailed["waiting"] = 0
        return detailed

    # -------------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------------

    async def claim_next_job(self) -> Job | None:
        """Claim the next job for processing, or None if none is ready."""
        if await self.is_paused():
            return None
        job = await self._call(self._store.claim_next, self._clock())
        if job is not None:
            logger.debug(f"Job {job.id} claimed (priority={job.priority})")
        return job

    async def update_progress(self, job_id: str, progress: Any) -> Job:
        """Record progress: a percentage, a dict or a :class:`JobProgress`.

        Raises:
            JobNotFoundError: If the job is gone, including when it is removed
                before the update is written.
        """
        job = await self._require(job_id)
        job.progress = JobProgress.coerce(progress)
        return await self._call(self._store.update, job)

    async def complete_job(self, job_id: str, result: ReportJobResult) -> Job:
        job = await self._require(job_id)
        job.status = JobStatus.COMPLETED
        job.result = result
        job.failed_reason = None
        job.attempts_made += 1
        job.finished_on = self._clock()
        job.run_at = None
        await self._call(self._store.update, job)
        await self._apply_completed_retention()
        return job

    async def fail_job(
        self,
        job_id: str,
        error: BaseException | str,
        retryable: bool = True,
    ) -> Job:
        """Record a failed attempt.

        A retryable failure with attempts remaining puts the job in
        ``delayed`` with exponential backoff (5 s, 10 s, ...); otherwise the
        job is marked ``failed``.
        """
        job = await self._require(job_id)
        now = self._clock()
        job.attempts_made += 1
        job.failed_reason = str(error)

        if retryable and job.attempts_made < job.max_attempts:
            delay = self._config.retry_delay_ms(job.attempts_made)
            job.status = JobStatus.DELAYED
            job.run_at = now + delay
            logger.warning(
                f"Job {job.id} attempt {job.attempts_made}/{job.max_attempts} failed, "
                f"retrying in {delay / 1000:.0f}s: {job.failed_reason}"
            )
        else:
            job.status = JobStatus.FAILED
            job.finished_on = now
            job.run_at = None

        await self._call(self._store.update, job)
        if job.status == JobStatus.FAILED:
            await self._apply_failed_retention()
        return job

    async def _apply_completed_retention(self) -> None:
        await self.clean_old_jobs(self._config.completed_retention_ms, 0, JobStatus.COMPLETED)

        completed = await self.get_all_jobs(JobStatus.COMPLETED)
        overflow = completed[self._config.completed_retention_count:]
        for job in overflow:
            await self._call(self._store.delete, job.id)
        if overflow:
            logger.debug(f"Trimmed {len(overflow)} completed jobs beyond retention count")

    async def _apply_failed_retention(self) -> None:
        await self.clean_old_jobs(self._config.failed_retention_ms, 0, JobStatus.FAILED)

    # -------------------------------------------------------------------------
    # Cleanup and administration
    # -------------------------------------------------------------------------

    async def clean_old_jobs(
        self,
        grace_ms: int = DAY_MS,
        limit: int = 1000,
        status: JobStatus | str = JobStatus.COMPLETED,
    ) -> list[str]:
        """Delete jobs with ``status`` older than ``grace_ms``.

        Oldest jobs go first; ``limit`` caps how many are deleted (0 means no
        cap). Returns the deleted ids.
        """
        cutoff = self._clock() - grace_ms
        jobs = await self._call(self._store.list, [status])
        expired = sorted(
            (j for j in jobs if j.age_reference < cutoff),
            key=lambda j: j.age_reference,
        )
        if limit > 0:
            expired = expired[:limit]

        removed = []
        for job in expired:
            if await self._call(self._store.delete, job.id):
                removed.append(job.id)
        if removed:
            logger.info(f"Cleaned {len(removed)} {JobStatus(status).value} jobs")
        return removed

    async def clean_completed_jobs(self, hours: float = 24) -> int:
        removed = await self.clean_old_jobs(int(hours * HOUR_MS), 1000, JobStatus.COMPLETED)
        return len(removed)

    async def clean_failed_jobs(self, days: float = 7) -> int:
        removed = await self.clean_old_jobs(int(days * DAY_MS), 500, JobStatus.FAILED)
        return len(removed)

    async def obliterate_all_jobs(self, force: bool = False) -> None:
        """Delete every job in the queue.

        Raises:
            JobError: Unless ``force`` is set.
        """
        if not force:
            raise JobError("Must set force=true to obliterate all jobs")
        await self._call(self._store.clear)
        logger.warning(f"Queue '{self.name}' obliterated")

    async def drain(self) -> int:
        """Remove all waiting and delayed jobs; active jobs are left alone."""
        jobs = await self._call(self._store.list, [JobStatus.WAITING, JobStatus.DELAYED])
        for job in jobs:
            await self._call(self._store.delete, job.id)
        logger.info(f"Drained {len(jobs)} jobs from '{self.name}'")
        return len(jobs)

    async def pause(self) -> None:
        await self._call(self._store.set_paused, True)
        logger.info(f"Queue '{self.name}' paused")

    async def resume(self) -> None:
        await self._call(self._store.set_paused, False)
        logger.info(f"Queue '{self.name}' resumed")

    async def is_paused(self) -> bool:
        return await self._call(self._store.is_paused)

    async def close(self) -> None:
        await self._call(self._store.close)
        logger.debug(f"Queue '{self.name}' closed")

    def __repr__(self) -> str:
        return f"ReportQueue(name={self.name!r}, store={self._store.name!r})"
