"""HTTP API for submitting and tracking report jobs.

Routes:

- ``POST /api/jobs``: enqueue a report job
- ``GET /api/jobs``: list jobs, optionally filtered with ``?status=``
- ``GET /api/jobs/stats``: per-status counts
- ``GET /api/jobs/clean``: detailed counts and cleanup recommendations
- ``POST /api/jobs/clean``: clean, or obliterate with ``force``
- ``GET /api/jobs/{id}`` and ``DELETE /api/jobs/{id}``
- ``GET /api/pipelines`` and ``GET /api/pipelines/{id}``
- ``GET /api/reports`` and ``GET /api/reports/{filename}``

Example:
    app = create_app()
    uvicorn.run(app, port=8000)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Literal

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field

from reportflow.config import ConfigManager, get_config_manager
from reportflow.jobs.config import DAY_MS, HOUR_MS
from reportflow.jobs.queue import ReportQueue
from reportflow.jobs.stores import create_store_from_env
from reportflow.jobs.types import JobError, JobNotFoundError, JobStatus, JobValidationError
from reportflow.plugins.base import PluginNotFoundError
from reportflow.plugins.manager import PluginManager, get_plugin_manager
from reportflow.reports.templating import iso_utc

logger = logging.getLogger(__name__)

REPORT_CONTENT_TYPES = {
    ".md": ("md", "text/markdown"),
    ".html": ("html", "text/html"),
    ".pdf": ("pdf", "application/pdf"),
    ".pptx": (
        "pptx",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ),
}

COMPLETED_CLEAN_THRESHOLD = 100
FAILED_CLEAN_THRESHOLD = 50


class JobSubmission(BaseModel):
    pipeline_id: str = ""
    report_type: str = ""
    output_format: str = ""
    inputs: dict[str, Any] = Field(default_factory=dict)
    profile_name: str | None = None
    report_name: str | None = None
    priority: int | None = None


class CleanRequest(BaseModel):
    action: Literal["clean", "clean-completed", "clean-failed", "obliterate"] = "clean"
    type: Literal["completed", "failed"] = "completed"
    grace_ms: int | None = None
    limit: int = 1000
    hours: float | None = None
    days: float | None = None
    force: bool = False


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def resolve_report_path(reports_dir: Path, filename: str) -> Path | None:
    """Path of ``filename`` inside ``reports_dir``, or None if it escapes it."""
    base = reports_dir.resolve()
    candidate = (base / filename).resolve()
    if candidate == base or base not in candidate.parents:
        return None
    return candidate


def describe_report(path: Path) -> dict[str, Any]:
    stat = path.stat()
    fmt = REPORT_CONTENT_TYPES.get(path.suffix.lower(), ("unknown", ""))[0]
    return {
        "id": path.name,
        "name": path.name,
        "format": fmt,
        "size": stat.st_size,
        "created_at": iso_utc(datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)),
        "path": f"/api/reports/{path.name}",
    }


def create_app(
    queue: ReportQueue | None = None,
    plugin_manager: PluginManager | None = None,
    config_manager: ConfigManager | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        queue: Job queue; defaults to the store selected by the environment.
        plugin_manager: Plugin source; defaults to the global manager.
        config_manager: Configuration; defaults to the global manager.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.queue.close()

    app = FastAPI(title="reportflow", lifespan=lifespan)
    app.state.queue = queue or ReportQueue(create_store_from_env())
    app.state.plugins = plugin_manager or get_plugin_manager()
    app.state.config = config_manager or get_config_manager()

    @app.exception_handler(JobNotFoundError)
    async def job_not_found(request: Request, exc: JobNotFoundError) -> JSONResponse:
        return _error(404, "Job not found")

    @app.exception_handler(JobValidationError)
    async def job_invalid(request: Request, exc: JobValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc), "errors": exc.errors})

    @app.exception_handler(JobError)
    async def job_error(request: Request, exc: JobError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(PluginNotFoundError)
    async def plugin_not_found(request: Request, exc: PluginNotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    # -- jobs -----------------------------------------------------------------

    @app.post("/api/jobs")
    async def submit_job(submission: JobSubmission, request: Request) -> dict[str, Any]:
        record = submission.model_dump(exclude={"priority"})
        record["metadata"] = {"requested_at": iso_utc(datetime.now(timezone.utc))}
        ref = await request.app.state.queue.add_job(record, priority=submission.priority)
        return {"success": True, "job_id": ref.id, "message": "Job submitted successfully"}

    @app.get("/api/jobs")
    async def list_jobs(request: Request, status: JobStatus | None = None) -> dict[str, Any]:
        jobs = await request.app.state.queue.get_all_jobs(status)
        return {"jobs": [job.to_status_record() for job in jobs], "total": len(jobs)}

    @app.get("/api/jobs/stats")
    async def job_stats(request: Request) -> dict[str, int]:
        return await request.app.state.queue.get_queue_stats()

    @app.get("/api/jobs/clean")
    async def clean_overview(request: Request) -> dict[str, Any]:
        counts = await request.app.state.queue.get_detailed_job_counts()
        recommendations = {}
        if counts["completed"] > COMPLETED_CLEAN_THRESHOLD:
            recommendations["completed"] = f"Should clean ({counts['completed']} jobs)"
        if counts["failed"] > FAILED_CLEAN_THRESHOLD:
            recommendations["failed"] = f"Should clean ({counts['failed']} jobs)"
        return {"counts": counts, "recommendations": recommendations}

    @app.post("/api/jobs/clean")
    async def clean_jobs(body: CleanRequest, request: Request) -> Any:
        queue: ReportQueue = request.app.state.queue

        if body.action == "obliterate":
            if not body.force:
                return _error(400, "Must set force=true to obliterate all jobs")
            await queue.obliterate_all_jobs(force=True)
            return {"success": True, "action": "obliterate", "message": "All jobs deleted"}

        if body.action == "clean-completed":
            hours = 24 if body.hours is None else body.hours
            count = await queue.clean_completed_jobs(hours)
            return {"success": True, "action": body.action, "deleted_count": count, "hours": hours}

        if body.action == "clean-failed":
            days = 7 if body.days is None else body.days
            count = await queue.clean_failed_jobs(days)
            return {"success": True, "action": body.action, "deleted_count": count, "days": days}

        grace_ms = body.grace_ms
        if grace_ms is None:
            grace_ms = DAY_MS if body.type == "completed" else 7 * DAY_MS
        deleted = await queue.clean_old_jobs(grace_ms, body.limit, body.type)
        return {
            "success": True,
            "action": "clean",
            "type": body.type,
            "deleted_count": len(deleted),
            "grace": f"{grace_ms / HOUR_MS:g} hours",
        }

    @app.get("/api/jobs/{job_id}")
    async def get_job(job_id: str, request: Request) -> dict[str, Any]:
        record = await request.app.state.queue.get_job_status(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    @app.delete("/api/jobs/{job_id}")
    async def remove_job(job_id: str, request: Request) -> dict[str, Any]:
        await request.app.state.queue.remove_job(job_id)
        return {"success": True, "message": "Job removed successfully"}

    # -- pipelines ------------------------------------------------------------

    @app.get("/api/pipelines")
    async def list_pipelines(request: Request) -> list[dict[str, Any]]:
        return await request.app.state.plugins.list_pipelines()

    @app.get("/api/pipelines/{plugin_id}")
    async def get_pipeline(plugin_id: str, request: Request) -> dict[str, Any]:
        return await request.app.state.plugins.get_pipeline_metadata(plugin_id)

    # -- reports --------------------------------------------------------------

    @app.get("/api/reports")
    async def list_reports(request: Request) -> list[dict[str, Any]]:
        reports_dir: Path = request.app.state.config.get_output_dir()
        if not reports_dir.is_dir():
            return []
        reports = [describe_report(p) for p in reports_dir.iterdir() if p.is_file()]
        reports.sort(key=lambda r: r["created_at"], reverse=True)
        return reports

    @app.get("/api/reports/{filename}")
    async def get_report(filename: str, request: Request) -> Any:
        reports_dir: Path = request.app.state.config.get_output_dir()
        path = resolve_report_path(reports_dir, filename)
        if path is None:
            logger.warning(f"Rejected report path outside {reports_dir}: {filename!r}")
            return _error(400, "Invalid filename")
        if not path.is_file():
            return _error(404, "Report not found")

        media_type = REPORT_CONTENT_TYPES.get(path.suffix.lower(), ("", "text/plain"))[1]
        return FileResponse(
            path,
            media_type=media_type,
            headers={"Content-Disposition": f'inline; filename="{path.name}"'},
        )

    return app
