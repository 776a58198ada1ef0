"""Tests for the report worker."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from reportflow.jobs import (
    JobCancelledError,
    JobStatus,
    QueueConfig,
    ReportQueue,
    ReportWorker,
    WorkerConfig,
)
from reportflow.plugins.manager import PluginManager
from reportflow.reports.errors import UnsupportedFormatError
from reportflow.shutdown import ShutdownCoordinator, ShutdownError


@pytest.fixture
def plugin():
    return SimpleNamespace(id="acme.sales", name="Sales Report", output_formats=["html", "pdf"])


@pytest.fixture
def plugin_manager(plugin):
    manager = MagicMock()
    manager.reload = AsyncMock(return_value={"loaded": [], "removed": [], "errors": []})
    manager.get_plugin = AsyncMock(return_value=plugin)

    @asynccontextmanager
    async def lease(plugin_id):
        yield plugin

    manager.lease = MagicMock(side_effect=lease)
    return manager


@pytest.fixture
def output_file(tmp_path):
    path = tmp_path / "out" / "acme.sales-report.html"
    path.parent.mkdir()
    path.write_text("<html>report</html>")
    return path


def _worker(queue, plugin_manager, generate, **kwargs):
    return ReportWorker(
        queue,
        plugin_manager=plugin_manager,
        generate=generate,
        config=kwargs.pop("config", WorkerConfig(poll_interval=0.01)),
        shutdown=kwargs.pop("shutdown", ShutdownCoordinator()),
    )


class TestProcessJob:
    @pytest.mark.asyncio
    async def test_progress_and_result(self, queue, submission, plugin_manager, plugin, output_file):
        generate = AsyncMock(return_value=output_file)
        worker = _worker(queue, plugin_manager, generate)
        updates = []
        original = queue.update_progress

        async def record(job_id, progress):
            updates.append((progress.percentage, progress.step))
            return await original(job_id, progress)

        queue.update_progress = record
        await queue.add_job({**submission, "report_name": "eu-sales"})
        job = await queue.claim_next_job()

        result = await worker.process_job(job)

        assert updates == [
            (10, "loading-plugin"),
            (25, "validating"),
            (40, "generating"),
            (90, "finalizing"),
            (100, "completed"),
        ]
        assert result.file_name == output_file.name
        assert result.file_size == len("<html>report</html>")
        assert result.generated_at.endswith("Z")
        args = generate.await_args
        assert args.args == (plugin, {"region": "EU"}, "summary", "html", None, "eu-sales")
        assert "shutdown" in args.kwargs
        plugin_manager.reload.assert_awaited_once()
        plugin_manager.lease.assert_called_once_with("acme.sales")

    @pytest.mark.asyncio
    async def test_unsupported_format(self, queue, submission, plugin_manager):
        worker = _worker(queue, plugin_manager, AsyncMock())
        await queue.add_job({**submission, "output_format": "pptx"})
        job = await queue.claim_next_job()

        with pytest.raises(UnsupportedFormatError):
            await worker.process_job(job)

    @pytest.mark.asyncio
    async def test_shutdown_error_becomes_cancellation(self, queue, submission, plugin_manager):
        generate = AsyncMock(side_effect=ShutdownError())
        worker = _worker(queue, plugin_manager, generate)
        await queue.add_job(submission)
        job = await queue.claim_next_job()

        with pytest.raises(JobCancelledError, match="Job cancelled due to shutdown"):
            await worker.process_job(job)


class TestExecute:
    @pytest.mark.asyncio
    async def test_success_completes_job(self, queue, submission, plugin_manager, output_file):
        worker = _worker(queue, plugin_manager, AsyncMock(return_value=str(output_file)))
        ref = await queue.add_job(submission)

        await worker._execute(await queue.claim_next_job())

        job = await queue.get_job(ref.id)
        assert job.status == JobStatus.COMPLETED
        assert job.progress.percentage == 100
        assert worker.active_jobs == []

    @pytest.mark.asyncio
    async def test_cancellation_not_retried(self, queue, submission, plugin_manager):
        worker = _worker(queue, plugin_manager, AsyncMock(side_effect=ShutdownError()))
        ref = await queue.add_job(submission)

        await worker._execute(await queue.claim_next_job())

        job = await queue.get_job(ref.id)
        assert job.status == JobStatus.FAILED
        assert job.failed_reason == "Job cancelled due to shutdown"

    @pytest.mark.asyncio
    async def test_errors_are_retried(self, queue, submission, plugin_manager):
        worker = _worker(queue, plugin_manager, AsyncMock(side_effect=RuntimeError("llm down")))
        ref = await queue.add_job(submission)

        await worker._execute(await queue.claim_next_job())

        job = await queue.get_job(ref.id)
        assert job.status == JobStatus.DELAYED
        assert job.failed_reason == "llm down"

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self, clock, submission, plugin_manager):
        queue = ReportQueue(config=QueueConfig(job_timeout_seconds=0.05), clock=clock)

        async def slow(*args, **kwargs):
            await asyncio.sleep(5)

        worker = _worker(queue, plugin_manager, slow)
        ref = await queue.add_job(submission)

        await worker._execute(await queue.claim_next_job())

        job = await queue.get_job(ref.id)
        assert job.status == JobStatus.DELAYED
        assert job.failed_reason == "Job timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_removed_job_is_tolerated(self, queue, submission, plugin_manager, output_file):
        async def generate(*args, **kwargs):
            await queue.remove_job(ref.id)
            return output_file

        worker = _worker(queue, plugin_manager, generate)
        ref = await queue.add_job(submission)

        await worker._execute(await queue.claim_next_job())

        assert await queue.get_job(ref.id) is None


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_run_processes_until_closed(self, submission, plugin_manager, output_file):
        queue = ReportQueue()
        worker = _worker(queue, plugin_manager, AsyncMock(return_value=output_file))
        refs = [await queue.add_job(submission) for _ in range(3)]

        task = asyncio.create_task(worker.run())
        for _ in range(200):
            stats = await queue.get_queue_stats()
            if stats["completed"] == 3:
                break
            await asyncio.sleep(0.01)
        await worker.close()
        await task

        assert not worker.is_running
        for ref in refs:
            assert (await queue.get_job(ref.id)).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_stops_on_shutdown(self, queue, plugin_manager):
        shutdown = ShutdownCoordinator()
        worker = _worker(queue, plugin_manager, AsyncMock(), shutdown=shutdown)

        task = asyncio.create_task(worker.run())
        await asyncio.sleep(0.02)
        shutdown.request_shutdown()
        await asyncio.wait_for(task, timeout=1)

        assert not worker.is_running

    @pytest.mark.asyncio
    async def test_overlapping_jobs_survive_reload(
        self, submission, connected_plugin, plugins_dir, output_file
    ):
        queue = ReportQueue()

        async def generate(plugin, inputs, *args, **kwargs):
            await plugin.process(inputs)
            return output_file

        worker = _worker(
            queue,
            PluginManager(plugins_dir),
            generate,
            config=WorkerConfig(concurrency=2, poll_interval=0.01),
        )
        job = {**submission, "pipeline_id": "acme.connected"}

        task = asyncio.create_task(worker.run())
        first = await queue.add_job(job)
        await asyncio.sleep(0.1)
        second = await queue.add_job(job)
        for _ in range(200):
            stats = await queue.get_queue_stats()
            if stats["completed"] == 2 or stats["delayed"]:
                break
            await asyncio.sleep(0.01)
        await worker.close()
        await task

        for ref in (first, second):
            record = await queue.get_job(ref.id)
            assert record.status == JobStatus.COMPLETED, record.failed_reason
