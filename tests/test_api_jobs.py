"""
Tests for the REST surface.

The app runs its real lifespan; the orchestrator is built with a scripted
oracle and in-memory pages.
"""
import json
import time

import pytest
from fastapi.testclient import TestClient

from docspec.api.app import create_app
from docspec.jobs import JobOrchestrator
from fakes import FakeOracle, FetcherFactory, complete_answer, judge_answer

SOURCE = "https://docs.acme.test/api"
PAGES = {SOURCE: "<html><body><p>GET /pets and POST /pets</p></body></html>"}


@pytest.fixture
def oracle():
    return FakeOracle(
        discovery=json.dumps({"endpoints": [
            {"method": "GET", "path": "/pets"},
            {"method": "POST", "path": "/pets"},
        ]}),
        spec_complete=complete_answer,
        judge=judge_answer(85, issues=["Add examples"]),
    )


@pytest.fixture
def client(settings, oracle):
    orchestrator = JobOrchestrator(
        settings=settings,
        oracle_factory=lambda credential: oracle,
        fetcher_factory=FetcherFactory(PAGES),
    )
    with TestClient(create_app(orchestrator=orchestrator)) as test_client:
        yield test_client


def wait_until_done(client, job_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/v1/jobs/{job_id}").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish")


class TestJobRoutes:

    def test_submit_returns_accepted(self, client):
        response = client.post("/v1/jobs", json={"url": SOURCE})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "queued"
        assert body["job_id"]

    def test_job_runs_to_completion(self, client):
        job_id = client.post("/v1/jobs", json={"url": SOURCE}).json()["job_id"]

        body = wait_until_done(client, job_id)

        assert body["status"] == "completed"
        assert body["endpoint_count"] == 2
        assert body["specification"]["openapi"] == "3.0.0"
        assert body["judge_score"] == 85
        assert body["judge_issues"] == ["Add examples"]
        assert body["judge_recommendation"] == "accept"
        assert body["pending_message"] is None
        assert body["progress_message"] == "Completed! Extracted 2 endpoints"

    def test_invalid_url_rejected(self, client):
        response = client.post("/v1/jobs", json={"url": "ftp://docs.acme.test"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "DSPC-1002"

    def test_invalid_additional_url_rejected(self, client):
        response = client.post("/v1/jobs", json={"url": SOURCE, "additional_urls": ["not a url"]})
        assert response.status_code == 400

    def test_missing_url_is_a_validation_error(self, client):
        assert client.post("/v1/jobs", json={}).status_code == 422

    def test_unknown_job_is_404(self, client):
        response = client.get("/v1/jobs/does-not-exist")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "DSPC-2001"

    def test_retry_unknown_job_is_404(self, client):
        assert client.post("/v1/jobs/does-not-exist/retry").status_code == 404

    def test_retry_completed_job(self, client, oracle):
        job_id = client.post("/v1/jobs", json={"url": SOURCE}).json()["job_id"]
        wait_until_done(client, job_id)

        response = client.post(f"/v1/jobs/{job_id}/retry")

        assert response.status_code == 200
        assert response.json()["status"] == "processing"
        assert response.json()["retry_count"] == 1
        body = wait_until_done(client, job_id)
        assert body["retry_count"] == 1
        assert len(oracle.calls_for("spec_complete")) == 2

    def test_retry_failed_job_is_conflict(self, client):
        job_id = client.post("/v1/jobs", json={"url": "https://docs.acme.test/missing"}).json()["job_id"]
        body = wait_until_done(client, job_id)
        assert body["status"] == "failed"

        response = client.post(f"/v1/jobs/{job_id}/retry")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DSPC-2002"

    def test_token_never_echoed(self, client):
        job_id = client.post("/v1/jobs", json={"url": SOURCE, "llm_token": "sk-secret"}).json()["job_id"]
        body = wait_until_done(client, job_id)
        assert "sk-secret" not in json.dumps(body)

    def test_stats(self, client):
        job_id = client.post("/v1/jobs", json={"url": SOURCE}).json()["job_id"]
        wait_until_done(client, job_id)

        stats = client.get("/v1/jobs/stats").json()

        assert stats["total"] == 1
        assert stats["completed"] == 1


class TestHealthRoutes:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["workers_running"] is True

    def test_config_hides_secrets(self, client):
        body = client.get("/config").json()
        assert "llm_configured" in body
        assert "llm_api_token" not in body

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
