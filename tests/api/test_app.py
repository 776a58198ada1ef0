"""Tests for the HTTP API."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from reportflow.api.app import create_app, resolve_report_path
from reportflow.config import ConfigManager
from reportflow.jobs import ReportJobResult, ReportQueue
from reportflow.plugins.manager import PluginManager


@pytest.fixture
def output_dir(tmp_path, monkeypatch):
    path = tmp_path / "reports"
    path.mkdir()
    monkeypatch.setenv("REPORTFLOW_OUTPUT_DIR", str(path))
    return path


@pytest.fixture
def queue():
    return ReportQueue()


@pytest.fixture
def client(queue, plugins_dir, write_plugin, isolated_config, output_dir):
    write_plugin()
    app = create_app(
        queue=queue,
        plugin_manager=PluginManager(plugins_dir),
        config_manager=ConfigManager(isolated_config),
    )
    return TestClient(app)


SUBMISSION = {
    "pipeline_id": "acme.sales",
    "report_type": "summary",
    "output_format": "html",
    "inputs": {"region": "EU"},
}

RESULT = ReportJobResult("/out/r.html", "r.html", 10, 5, "2024-05-01T00:00:00.000Z")


class TestJobRoutes:
    def test_submit_and_poll(self, client):
        response = client.post("/api/jobs", json=SUBMISSION)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Job submitted successfully"

        record = client.get(f"/api/jobs/{body['job_id']}").json()
        assert record["status"] == "waiting"
        assert record["data"]["pipeline_id"] == "acme.sales"
        assert "requested_at" in record["data"]["metadata"]

    def test_submit_invalid(self, client):
        response = client.post("/api/jobs", json={"pipeline_id": "acme.sales"})

        assert response.status_code == 400
        assert "Missing required field: report_type" in response.json()["errors"]

    def test_list_stats_and_delete(self, client):
        job_id = client.post("/api/jobs", json=SUBMISSION).json()["job_id"]
        client.post("/api/jobs", json={**SUBMISSION, "priority": 1})

        listing = client.get("/api/jobs", params={"status": "waiting"}).json()
        assert listing["total"] == 2
        assert client.get("/api/jobs/stats").json()["waiting"] == 2

        assert client.delete(f"/api/jobs/{job_id}").json()["success"] is True
        assert client.get(f"/api/jobs/{job_id}").status_code == 404
        assert client.delete(f"/api/jobs/{job_id}").json() == {"error": "Job not found"}

    def test_invalid_status_filter(self, client):
        assert client.get("/api/jobs", params={"status": "sleeping"}).status_code == 422


class TestCleanRoutes:
    def test_overview(self, client):
        client.post("/api/jobs", json=SUBMISSION)

        body = client.get("/api/jobs/clean").json()

        assert body["counts"]["waiting"] == 1
        assert body["counts"]["paused"] == 0
        assert body["recommendations"] == {}

    def test_obliterate_requires_force(self, client):
        client.post("/api/jobs", json=SUBMISSION)

        refused = client.post("/api/jobs/clean", json={"action": "obliterate"})
        assert refused.status_code == 400
        assert refused.json()["error"] == "Must set force=true to obliterate all jobs"

        done = client.post("/api/jobs/clean", json={"action": "obliterate", "force": True})
        assert done.json()["message"] == "All jobs deleted"
        assert client.get("/api/jobs/stats").json()["total"] == 0

    def test_clean_defaults(self, client):
        body = client.post("/api/jobs/clean", json={}).json()
        assert body == {
            "success": True,
            "action": "clean",
            "type": "completed",
            "deleted_count": 0,
            "grace": "24 hours",
        }

        failed = client.post("/api/jobs/clean", json={"action": "clean-failed"}).json()
        assert failed["days"] == 7

    def test_zero_grace_is_honoured(self, plugins_dir, isolated_config, output_dir):
        now = [1_700_000_000_000]
        queue = ReportQueue(clock=lambda: now[0])

        async def finished_job():
            ref = await queue.add_job({**SUBMISSION})
            await queue.claim_next_job()
            await queue.complete_job(ref.id, RESULT)

        asyncio.run(finished_job())
        now[0] += 1
        client = TestClient(
            create_app(
                queue=queue,
                plugin_manager=PluginManager(plugins_dir),
                config_manager=ConfigManager(isolated_config),
            )
        )

        body = client.post("/api/jobs/clean", json={"grace_ms": 0}).json()

        assert body["grace"] == "0 hours"
        assert body["deleted_count"] == 1
        assert client.get("/api/jobs/stats").json()["completed"] == 0


class TestPipelineRoutes:
    def test_list_and_get(self, client):
        pipelines = client.get("/api/pipelines").json()

        assert [p["id"] for p in pipelines] == ["acme.sales"]
        detail = client.get("/api/pipelines/acme.sales").json()
        assert detail["specifications"] == ["summary"]
        assert detail["output_formats"] == ["html", "mdx"]

    def test_unknown_pipeline(self, client):
        response = client.get("/api/pipelines/nope")

        assert response.status_code == 404
        assert response.json()["error"] == "Pipeline not found: nope"


class TestReportRoutes:
    def test_list_and_download(self, client, output_dir):
        (output_dir / "acme.sales-1.html").write_text("<html></html>")
        (output_dir / "deck.pptx").write_bytes(b"PK")

        reports = {r["name"]: r for r in client.get("/api/reports").json()}
        assert reports["deck.pptx"]["format"] == "pptx"
        assert reports["acme.sales-1.html"]["path"] == "/api/reports/acme.sales-1.html"

        response = client.get("/api/reports/acme.sales-1.html")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.headers["content-disposition"] == 'inline; filename="acme.sales-1.html"'

    def test_missing_report(self, client):
        assert client.get("/api/reports/none.pdf").status_code == 404

    def test_traversal_rejected(self, output_dir):
        assert resolve_report_path(output_dir, "../secret.txt") is None
        assert resolve_report_path(output_dir, "..") is None
        assert resolve_report_path(output_dir, "a.md") == (output_dir / "a.md").resolve()

    def test_traversal_rejected_over_http(self, client):
        response = client.get("/api/reports/..%2F..%2Fetc%2Fpasswd")
        assert response.status_code in (400, 404)
