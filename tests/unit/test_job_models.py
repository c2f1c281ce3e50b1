from __future__ import annotations

import msgspec
import pytest

from replay2pr.jobs.models import STEP_ORDER, copy_job, decode_job, encode_job, new_job


def test_new_job_starts_queued_with_five_pending_steps() -> None:
  job = new_job(job_id="job-1", mode="demo", upload_id="demo.mp4")
  assert job.status == "queued"
  assert [step.id for step in job.steps] == list(STEP_ORDER) == ["extract", "reproduce", "patch", "verify", "ship"]
  assert [step.title for step in job.steps] == ["Extract", "Reproduce", "Patch", "Verify", "Ship"]
  assert all(step.status == "pending" and step.logs == [] for step in job.steps)
  assert job.share_url == "/evidence/job-1"
  assert job.created_at == job.updated_at
  assert job.created_at.endswith("Z")


def test_job_record_serializes_with_camel_case_keys() -> None:
  job = new_job(job_id="job-2", mode="repo", upload_id="upload-1", upload_filename="bug.mp4", repo_url="https://example.com/repo")
  payload = msgspec.json.decode(encode_job(job))
  assert payload["uploadId"] == "upload-1"
  assert payload["uploadFilename"] == "bug.mp4"
  assert payload["repoUrl"] == "https://example.com/repo"
  assert payload["shareUrl"] == "/evidence/job-2"
  assert payload["patchAttempts"] == 0
  assert payload["steps"][0]["startedAt"] is None


def test_copy_job_shares_no_mutable_state() -> None:
  job = new_job(job_id="job-3", mode="demo", upload_id="demo.mp4")
  clone = copy_job(job)
  clone.step("extract").logs.append("[00:00:00] hello")
  clone.status = "running"
  assert job.step("extract").logs == []
  assert job.status == "queued"
  assert decode_job(encode_job(job)) == job


def test_step_lookup_rejects_unknown_ids() -> None:
  job = new_job(job_id="job-4", mode="demo", upload_id="demo.mp4")
  with pytest.raises(KeyError):
    job.step("deploy")  # type: ignore[arg-type]


def test_decode_rejects_unknown_step_status() -> None:
  job = new_job(job_id="job-5", mode="demo", upload_id="demo.mp4")
  payload = msgspec.json.decode(encode_job(job))
  payload["steps"][0]["status"] = "exploded"
  with pytest.raises(msgspec.ValidationError):
    decode_job(msgspec.json.encode(payload))
