from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from replay2pr.api.deps import get_job_service
from replay2pr.config import get_settings
from replay2pr.main import app
from replay2pr.services.jobs import ReplayJobService, build_job_service


@pytest.fixture
def service(settings_factory) -> ReplayJobService:
  return build_job_service(settings_factory())


@pytest.fixture
async def client(service: ReplayJobService, settings_factory) -> AsyncIterator[AsyncClient]:
  settings = settings_factory()
  app.dependency_overrides[get_job_service] = lambda: service
  app.dependency_overrides[get_settings] = lambda: settings
  try:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
      yield http_client
  finally:
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_demo_job_runs_to_success(client: AsyncClient, service: ReplayJobService) -> None:
  response = await client.post("/api/jobs", json={"demoMode": True, "notes": "Submit does nothing"})

  assert response.status_code == 200
  body = response.json()
  job_id = body["jobId"]
  assert body["shareUrl"] == f"/evidence/{job_id}"
  assert response.headers["x-request-id"]

  await service.dispatcher.wait_idle()
  job = (await client.get(f"/api/jobs/{job_id}")).json()

  assert job["status"] == "success"
  assert [step["id"] for step in job["steps"]] == ["extract", "reproduce", "patch", "verify", "ship"]
  assert all(step["status"] == "success" for step in job["steps"])
  assert job["verify"]["passed"] is True
  assert job["patchAttempts"] == 1
  assert job["evidence"]["afterImage"] == f"/api/artifacts/jobs/{job_id}/after.svg"


@pytest.mark.anyio
async def test_evidence_download_is_an_attachment(client: AsyncClient, service: ReplayJobService) -> None:
  job_id = (await client.post("/api/jobs", json={})).json()["jobId"]
  await service.dispatcher.wait_idle()

  response = await client.get(f"/api/evidence/{job_id}")

  assert response.status_code == 200
  assert response.headers["content-disposition"] == f'attachment; filename="evidence-{job_id}.json"'
  assert response.json()["id"] == job_id
  assert response.text.startswith("{\n  ")


@pytest.mark.anyio
async def test_artifacts_are_served_from_the_job_directory(client: AsyncClient, service: ReplayJobService) -> None:
  job_id = (await client.post("/api/jobs", json={"demoMode": True})).json()["jobId"]
  await service.dispatcher.wait_idle()

  svg = await client.get(f"/api/artifacts/jobs/{job_id}/before.svg")
  assert svg.status_code == 200
  assert svg.headers["content-type"].startswith("image/svg+xml")

  diff = await client.get(f"/api/artifacts/jobs/{job_id}/patch.diff")
  assert diff.status_code == 200
  assert diff.headers["content-type"].startswith("text/plain")
  assert "setSubmitted(true)" in diff.text


@pytest.mark.anyio
async def test_artifact_paths_cannot_escape_the_artifacts_root(client: AsyncClient) -> None:
  response = await client.get("/api/artifacts/jobs/..%2F..%2Fetc/passwd")
  assert response.status_code == 404

  missing = await client.get("/api/artifacts/jobs/job-missing/before.svg")
  assert missing.status_code == 404
  assert missing.json()["detail"] == "Artifact not found"


@pytest.mark.anyio
async def test_unknown_job_is_404(client: AsyncClient) -> None:
  job = await client.get("/api/jobs/does-not-exist")
  assert job.status_code == 404
  assert job.json()["detail"] == "Job not found"
  assert job.json()["requestId"]

  evidence = await client.get("/api/evidence/does-not-exist")
  assert evidence.status_code == 404
  assert evidence.json()["detail"] == "Evidence not found"


@pytest.mark.anyio
async def test_missing_upload_is_rejected(client: AsyncClient, service: ReplayJobService) -> None:
  response = await client.post("/api/jobs", json={"demoMode": False})

  assert response.status_code == 400
  body = response.json()
  assert body["detail"] == "Upload is required when demo mode is off"
  assert body["field"] == "uploadId"
  assert service.dispatcher.queued_ids == []


@pytest.mark.anyio
async def test_malformed_body_is_rejected_without_echoing_input(client: AsyncClient) -> None:
  response = await client.post("/api/jobs", json={"demoMode": {"nested": "secret-value"}})

  assert response.status_code == 422
  assert "secret-value" not in response.text
  assert response.json()["detail"][0]["loc"] == ["body", "demoMode"]


@pytest.mark.anyio
async def test_status_reports_mock_mode(client: AsyncClient) -> None:
  response = await client.get("/api/status")

  assert response.status_code == 200
  assert response.json() == {"mockMode": True, "maxUploadMb": 50, "maxConcurrentJobs": 1}


@pytest.mark.anyio
async def test_health(client: AsyncClient) -> None:
  response = await client.get("/health")
  assert response.status_code == 200
  assert response.json()["status"] == "ok"
