"""Job data types.

Timestamps are epoch milliseconds. The status record returned to pollers
(:meth:`Job.to_status_record`) has the shape::

    {
      "id": "...", "name": "generate-report", "data": {...},
      "progress": {"percentage": 40, "step": "generating", "message": "..."},
      "status": "active", "result": None, "failed_reason": None,
      "created_at": 1700000000000, "processed_on": 1700000001000,
      "finished_on": None, "attempts_made": 0
    }
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

JOB_NAME = "generate-report"


def now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# Exceptions
# =============================================================================


class JobError(Exception):
    """Base exception for job queue errors."""

    pass


class JobNotFoundError(JobError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class JobValidationError(JobError):
    """Raised for submission records that cannot be enqueued.

    Attributes:
        errors: Every problem found in the record.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid job submission: {', '.join(self.errors)}")


class JobCancelledError(JobError):
    """A job stopped because the process is shutting down."""

    def __init__(self, message: str = "Job cancelled due to shutdown"):
        super().__init__(message)


# =============================================================================
# Value types
# =============================================================================


class JobStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"
    PAUSED = "paused"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class JobProgress:
    percentage: float = 0
    step: str | None = None
    message: str | None = None

    def __post_init__(self) -> None:
        self.percentage = max(0, min(100, self.percentage))

    @classmethod
    def coerce(cls, value: Any) -> "JobProgress":
        """Accept a progress object, a bare percentage or a dict."""
        if isinstance(value, JobProgress):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return cls(percentage=value)
        if isinstance(value, Mapping):
            return cls(
                percentage=value.get("percentage", 0),
                step=value.get("step"),
                message=value.get("message"),
            )
        raise TypeError(f"Invalid progress value: {value!r}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"percentage": self.percentage}
        if self.step is not None:
            data["step"] = self.step
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass
class ReportJobData:
    """What to generate: the payload of a job."""

    pipeline_id: str
    report_type: str
    output_format: str
    inputs: dict[str, Any] = field(default_factory=dict)
    profile_name: str | None = None
    report_name: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_submission(cls, record: Any) -> "ReportJobData":
        """Build job data from a caller's submission record.

        Raises:
            JobValidationError: If required fields are missing or malformed.
        """
        if not isinstance(record, Mapping):
            raise JobValidationError(["Submission must be an object"])

        errors = []
        for key in ("pipeline_id", "report_type", "output_format"):
            value = record.get(key)
            if not isinstance(value, str) or not value:
                errors.append(f"Missing required field: {key}")
        inputs = record.get("inputs", {})
        if inputs is None:
            inputs = {}
        if not isinstance(inputs, Mapping):
            errors.append("inputs must be an object")
        if errors:
            raise JobValidationError(errors)

        return cls(
            pipeline_id=record["pipeline_id"],
            report_type=record["report_type"],
            output_format=record["output_format"],
            inputs=dict(inputs),
            profile_name=record.get("profile_name") or None,
            report_name=record.get("report_name") or None,
            user_id=record.get("user_id") or None,
            metadata=dict(record.get("metadata") or {}),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportJobData":
        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "pipeline_id": self.pipeline_id,
            "report_type": self.report_type,
            "output_format": self.output_format,
            "inputs": dict(self.inputs),
        }
        for key in ("profile_name", "report_name", "user_id"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


@dataclass(frozen=True)
class ReportJobResult:
    output_path: str
    file_name: str
    file_size: int
    duration_ms: int
    generated_at: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportJobResult":
        return cls(
            output_path=data["output_path"],
            file_name=data["file_name"],
            file_size=int(data["file_size"]),
            duration_ms=int(data["duration_ms"]),
            generated_at=data["generated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "output_path": self.output_path,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "duration_ms": self.duration_ms,
            "generated_at": self.generated_at,
        }


@dataclass(frozen=True)
class JobRef:
    """Handle returned when a job is enqueued."""

    id: str
    name: str


@dataclass
class Job:
    """A queued report request and its lifecycle state.

    ``sequence`` orders jobs of equal priority by arrival; ``run_at`` is when
    a delayed job becomes claimable again.
    """

    id: str
    data: ReportJobData
    name: str = JOB_NAME
    status: JobStatus = JobStatus.WAITING
    progress: JobProgress = field(default_factory=JobProgress)
    result: ReportJobResult | None = None
    failed_reason: str | None = None
    attempts_made: int = 0
    max_attempts: int = 3
    priority: int = 5
    sequence: int = 0
    created_at: int = field(default_factory=now_ms)
    processed_on: int | None = None
    finished_on: int | None = None
    run_at: int | None = None

    @property
    def age_reference(self) -> int:
        """Timestamp used for age-based cleanup."""
        return self.finished_on or self.processed_on or self.created_at

    def to_status_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "data": self.data.to_dict(),
            "progress": self.progress.to_dict(),
            "status": self.status.value,
            "created_at": self.created_at,
            "attempts_made": self.attempts_made,
        }
        if self.result is not None:
            record["result"] = self.result.to_dict()
        if self.failed_reason is not None:
            record["failed_reason"] = self.failed_reason
        if self.processed_on is not None:
            record["processed_on"] = self.processed_on
        if self.finished_on is not None:
            record["finished_on"] = self.finished_on
        return record

    def to_dict(self) -> dict[str, Any]:
        """Full storage form, including scheduling fields."""
        data = self.to_status_record()
        data.update(
            {
                "max_attempts": self.max_attempts,
                "priority": self.priority,
                "sequence": self.sequence,
                "run_at": self.run_at,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Job":
        result = data.get("result")
        return cls(
            id=data["id"],
            name=data.get("name", JOB_NAME),
            data=ReportJobData.from_dict(data["data"]),
            status=JobStatus(data.get("status", JobStatus.WAITING.value)),
            progress=JobProgress.coerce(data.get("progress") or 0),
            result=ReportJobResult.from_dict(result) if result else None,
            failed_reason=data.get("failed_reason"),
            attempts_made=int(data.get("attempts_made", 0)),
            max_attempts=int(data.get("max_attempts", 3)),
            priority=int(data.get("priority", 5)),
            sequence=int(data.get("sequence", 0)),
            created_at=int(data["created_at"]),
            processed_on=data.get("processed_on"),
            finished_on=data.get("finished_on"),
            run_at=data.get("run_at"),
        )
