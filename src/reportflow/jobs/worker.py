"""Report generation worker.

A worker keeps ``concurrency`` slots busy. Each slot claims one job at a
time from the queue, runs it through :meth:`ReportWorker.process_job`, and
records the outcome. A sliding-window rate limiter caps how many jobs start
per window across all slots.

Progress reported while a job runs:

=====  ==============  ===============================
  %    step            message
=====  ==============  ===============================
 10    loading-plugin  Loading pipeline plugin...
 25    validating      Validating inputs...
 40    generating      Generating report with LLM...
 90    finalizing      Finalizing report...
100    completed       Report generation completed!
=====  ==============  ===============================
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

from reportflow.common.resilience import SlidingWindowRateLimiter
from reportflow.jobs.config import WorkerConfig
from reportflow.jobs.queue import ReportQueue
from reportflow.jobs.types import (
    Job,
    JobCancelledError,
    JobNotFoundError,
    JobProgress,
    ReportJobResult,
)
from reportflow.observability.logging import log_context
from reportflow.plugins.manager import PluginManager, get_plugin_manager
from reportflow.reports.errors import UnsupportedFormatError
from reportflow.reports.templating import iso_utc
from reportflow.shutdown import (
    ShutdownCoordinator,
    get_shutdown_coordinator,
    is_shutdown_error,
)

logger = logging.getLogger(__name__)

GenerateFn = Callable[..., Awaitable[Path | str]]


async def _default_generate(*args: Any, **kwargs: Any) -> Path:
    from reportflow.reports.generator import generate_report

    return await generate_report(*args, **kwargs)


class ReportWorker:
    """Processes report jobs from a :class:`ReportQueue`.

    Args:
        queue: Queue to claim jobs from.
        plugin_manager: Source of pipeline plugins; reloaded before each job.
        generate: Report generator, called as ``generate(plugin, inputs,
            report_type, output_format, profile_name, report_name,
            shutdown=...)``. Defaults to the configured generator.
        config: Concurrency, rate limit and polling settings.
        shutdown: Cancellation token shared with the report engine.
    """

    def __init__(
        self,
        queue: ReportQueue,
        plugin_manager: PluginManager | None = None,
        generate: GenerateFn | None = None,
        config: WorkerConfig | None = None,
        shutdown: ShutdownCoordinator | None = None,
    ) -> None:
        self._queue = queue
        self._plugins = plugin_manager or get_plugin_manager()
        self._generate = generate or _default_generate
        self._config = config or WorkerConfig()
        self._shutdown = shutdown or get_shutdown_coordinator()
        self._limiter = SlidingWindowRateLimiter(
            f"{queue.name}-worker", self._config.limiter
        )
        self._stop = asyncio.Event()
        self._slots: list[asyncio.Task[None]] = []
        self._active: dict[str, Job] = {}

    @property
    def config(self) -> WorkerConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return any(not slot.done() for slot in self._slots)

    @property
    def active_jobs(self) -> list[str]:
        return list(self._active)

    def _stopping(self) -> bool:
        return self._stop.is_set() or self._shutdown.is_shutting_down

    # -------------------------------------------------------------------------
    # Run loop
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """Process jobs until :meth:`close` is called or shutdown is requested."""
        self._stop.clear()
        logger.info(
            f"Worker started on '{self._queue.name}' with concurrency {self._config.concurrency}"
        )
        self._slots = [
            asyncio.create_task(self._slot_loop(index), name=f"report-worker-{index}")
            for index in range(self._config.concurrency)
        ]
        try:
            await asyncio.gather(*self._slots)
        finally:
            logger.info(f"Worker on '{self._queue.name}' stopped")

    async def _idle(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _slot_loop(self, index: int) -> None:
        while not self._stopping():
            wait_time = self._limiter.get_wait_time()
            if wait_time > 0:
                await self._idle(wait_time)
                continue

            job = await self._queue.claim_next_job()
            if job is None:
                await self._idle(self._config.poll_interval)
                continue

            await self._limiter.acquire_async()
            await self._execute(job)
        logger.debug(f"Worker slot {index} exiting")

    async def _execute(self, job: Job) -> None:
        self._active[job.id] = job
        try:
            with log_context(job_id=job.id):
                logger.info(
                    f"Job {job.id} active: pipeline={job.data.pipeline_id} "
                    f"type={job.data.report_type} attempt={job.attempts_made + 1}"
                )
                try:
                    result = await asyncio.wait_for(
                        self.process_job(job),
                        timeout=self._queue.config.job_timeout_seconds,
                    )
                except JobCancelledError as e:
                    await self._record_failure(job, e, retryable=False)
                except asyncio.TimeoutError:
                    await self._record_failure(
                        job,
                        f"Job timed out after {self._queue.config.job_timeout_seconds:g}s",
                        retryable=True,
                    )
                except Exception as e:
                    await self._record_failure(job, e, retryable=True)
                else:
                    try:
                        await self._queue.complete_job(job.id, result)
                    except JobNotFoundError:
                        logger.warning(f"Job {job.id} was removed before it completed")
                        return
                    logger.info(
                        f"Job {job.id} completed: {result.file_name} "
                        f"({result.file_size} bytes, {result.duration_ms}ms)"
                    )
        finally:
            self._active.pop(job.id, None)

    async def _record_failure(
        self, job: Job, error: BaseException | str, retryable: bool
    ) -> None:
        try:
            updated = await self._queue.fail_job(job.id, error, retryable=retryable)
        except JobNotFoundError:
            logger.warning(f"Job {job.id} was removed before its failure was recorded")
            return
        logger.error(f"Job {job.id} failed ({updated.status.value}): {error}")

    async def close(self) -> None:
        """Stop claiming jobs and wait for in-flight jobs to finish."""
        self._stop.set()
        if self._active:
            logger.info(f"Waiting for {len(self._active)} in-flight job(s)")
        if self._slots:
            await asyncio.gather(*self._slots, return_exceptions=True)
        logger.info("Worker closed")

    # -------------------------------------------------------------------------
    # Job processing
    # -------------------------------------------------------------------------

    async def _progress(self, job: Job, percentage: int, step: str, message: str) -> None:
        progress = JobProgress(percentage=percentage, step=step, message=message)
        job.progress = progress
        try:
            await self._queue.update_progress(job.id, progress)
        except JobNotFoundError:
            logger.debug(f"Progress for removed job {job.id} dropped")

    async def process_job(self, job: Job) -> ReportJobResult:
        """Generate the report a job asks for.

        Raises:
            JobCancelledError: If processing stopped because of shutdown.
            PluginNotFoundError: If the pipeline is not installed.
            UnsupportedFormatError: If the pipeline cannot produce the format.
        """
        data = job.data
        started = time.monotonic()
        try:
            await self._plugins.reload()
            await self._progress(job, 10, "loading-plugin", "Loading pipeline plugin...")
            async with self._plugins.lease(data.pipeline_id) as plugin:
                await self._progress(job, 25, "validating", "Validating inputs...")
                supported = [getattr(f, "value", f) for f in (plugin.output_formats or [])]
                if data.output_format not in supported:
                    raise UnsupportedFormatError(data.output_format, plugin.id, supported)

                await self._progress(job, 40, "generating", "Generating report with LLM...")
                output_path = Path(
                    await self._generate(
                        plugin,
                        data.inputs,
                        data.report_type,
                        data.output_format,
                        data.profile_name,
                        data.report_name,
                        shutdown=self._shutdown,
                    )
                )

            await self._progress(job, 90, "finalizing", "Finalizing report...")
            stat = await asyncio.to_thread(output_path.stat)

            await self._progress(job, 100, "completed", "Report generation completed!")
        except JobCancelledError:
            raise
        except Exception as e:
            if is_shutdown_error(e):
                logger.warning(f"Job {job.id} cancelled due to shutdown")
                raise JobCancelledError() from e
            logger.error(f"Job {job.id} processing error: {e}")
            raise

        return ReportJobResult(
            output_path=str(output_path),
            file_name=output_path.name,
            file_size=stat.st_size,
            duration_ms=int((time.monotonic() - started) * 1000),
            generated_at=iso_utc(datetime.now(timezone.utc)),
        )


async def run_worker(
    queue: ReportQueue | None = None,
    plugin_manager: PluginManager | None = None,
    *,
    config: WorkerConfig | None = None,
    shutdown: ShutdownCoordinator | None = None,
    generate: GenerateFn | None = None,
    grace_period: float = 5.0,
) -> None:
    """Run a worker until the process receives SIGINT or SIGTERM.

    The first signal stops intake and waits up to ``grace_period`` seconds
    for in-flight jobs before exiting.
    """
    from reportflow.jobs.stores import create_store_from_env

    queue = queue or ReportQueue(create_store_from_env())
    shutdown = shutdown or get_shutdown_coordinator()
    worker = ReportWorker(
        queue,
        plugin_manager=plugin_manager,
        generate=generate,
        config=config or WorkerConfig.from_env(),
        shutdown=shutdown,
    )

    async def on_shutdown() -> None:
        await worker.close()
        await queue.close()

    shutdown.install_signal_handlers(on_shutdown, grace_period=grace_period)
    await worker.run()
