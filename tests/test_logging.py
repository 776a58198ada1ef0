"""Tests for logging configuration and context propagation."""

from __future__ import annotations

import asyncio
import io
import json
import logging

import pytest

from reportflow.observability.logging import configure_logging, get_log_context, log_context


@pytest.fixture
def stream():
    stream = io.StringIO()
    yield stream
    root = logging.getLogger("reportflow")
    for handler in list(root.handlers):
        if handler.get_name() == "reportflow":
            root.removeHandler(handler)


class TestConfigureLogging:
    def test_json_lines_carry_context(self, stream):
        configure_logging(level="debug", format="json", stream=stream)
        logger = logging.getLogger("reportflow.jobs.worker")

        with log_context(job_id="42", plugin_id="acme.sales"):
            logger.info("Job started")

        record = json.loads(stream.getvalue())
        assert record["message"] == "Job started"
        assert record["level"] == "info"
        assert record["logger"] == "reportflow.jobs.worker"
        assert record["job_id"] == "42"
        assert record["plugin_id"] == "acme.sales"

    def test_console_format(self, stream):
        configure_logging(stream=stream)

        with log_context(job_id="7"):
            logging.getLogger("reportflow.test").warning("Careful")

        line = stream.getvalue().strip()
        assert "WARNING" in line
        assert "reportflow.test: Careful" in line
        assert line.endswith("[job_id=7]")

    def test_reconfigure_replaces_handler(self, stream):
        configure_logging(stream=io.StringIO())
        configure_logging(stream=stream)

        handlers = [h for h in logging.getLogger("reportflow").handlers if h.get_name() == "reportflow"]
        assert len(handlers) == 1


class TestLogContext:
    def test_nesting_restores(self):
        with log_context(a=1):
            with log_context(b=2):
                assert get_log_context() == {"a": 1, "b": 2}
            assert get_log_context() == {"a": 1}
        assert get_log_context() == {}

    @pytest.mark.asyncio
    async def test_tasks_are_isolated(self):
        seen = {}

        async def job(job_id):
            with log_context(job_id=job_id):
                await asyncio.sleep(0.01)
                seen[job_id] = get_log_context()["job_id"]

        await asyncio.gather(job("a"), job("b"))

        assert seen == {"a": "a", "b": "b"}
