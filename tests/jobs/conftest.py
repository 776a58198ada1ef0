"""Job queue fixtures."""

from __future__ import annotations

import pytest

from reportflow.jobs import QueueConfig, ReportQueue
from reportflow.jobs.stores import InMemoryJobStore

SUBMISSION = {
    "pipeline_id": "acme.sales",
    "report_type": "summary",
    "output_format": "html",
    "inputs": {"region": "EU"},
}


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue(clock: FakeClock) -> ReportQueue:
    return ReportQueue(InMemoryJobStore(), QueueConfig(), clock=clock)


@pytest.fixture
def submission() -> dict:
    return {**SUBMISSION, "inputs": dict(SUBMISSION["inputs"])}
