"""Domain models for bug-replay jobs."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

import msgspec

StepId = Literal["extract", "reproduce", "patch", "verify", "ship"]
StepStatus = Literal["pending", "running", "success", "error", "skipped"]
JobStatus = Literal["queued", "running", "success", "error"]
JobMode = Literal["demo", "repo"]

STEP_DEFINITIONS: tuple[tuple[StepId, str], ...] = (("extract", "Extract"), ("reproduce", "Reproduce"), ("patch", "Patch"), ("verify", "Verify"), ("ship", "Ship"))
STEP_ORDER: tuple[StepId, ...] = tuple(step_id for step_id, _title in STEP_DEFINITIONS)
TERMINAL_STEP_STATUSES: frozenset[str] = frozenset({"success", "error", "skipped"})
TERMINAL_JOB_STATUSES: frozenset[str] = frozenset({"success", "error"})


def now_iso() -> str:
  """Return the current UTC time with millisecond precision."""
  return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StepRecord(msgspec.Struct, rename="camel", kw_only=True):
  """One stage of the replay pipeline."""

  id: StepId
  title: str
  status: StepStatus = "pending"
  started_at: str | None = None
  ended_at: str | None = None
  logs: list[str] = msgspec.field(default_factory=list)
  summary: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STEP_STATUSES


class VerifyResult(msgspec.Struct, rename="camel", kw_only=True):
  """Outcome of the final verification run."""

  passed: bool
  summary: str
  output: str


class Evidence(msgspec.Struct, rename="camel", kw_only=True, omit_defaults=True):
  """References to before/after visual evidence."""

  before_image: str | None = None
  after_image: str | None = None


class JobRecord(msgspec.Struct, rename="camel", kw_only=True):
  """Represents one end-to-end run of the replay pipeline."""

  id: str
  mode: JobMode
  upload_id: str
  created_at: str
  updated_at: str
  status: JobStatus = "queued"
  steps: list[StepRecord] = msgspec.field(default_factory=lambda: init_steps())
  share_url: str = ""
  repo_url: str | None = None
  upload_filename: str | None = None
  notes: str | None = None
  repro_steps: list[str] | None = None
  test_file: str | None = None
  test_code: str | None = None
  patch_diff: str | None = None
  patch_summary: str | None = None
  patch_attempts: int = 0
  verify: VerifyResult | None = None
  evidence: Evidence | None = None

  def step(self, step_id: StepId) -> StepRecord:
    """Return the step record for a fixed stage identifier."""
    for step in self.steps:
      if step.id == step_id:
        return step
    raise KeyError(f"Missing step {step_id}")

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_JOB_STATUSES


def init_steps() -> list[StepRecord]:
  """Build the fixed five-stage step list in pipeline order."""
  return [StepRecord(id=step_id, title=title) for step_id, title in STEP_DEFINITIONS]


def new_job(*, job_id: str, mode: JobMode, upload_id: str, upload_filename: str | None = None, repo_url: str | None = None, notes: str | None = None) -> JobRecord:
  """Create a queued job record with pending steps."""
  timestamp = now_iso()
  return JobRecord(
    id=job_id,
    mode=mode,
    repo_url=repo_url,
    upload_id=upload_id,
    upload_filename=upload_filename,
    notes=notes,
    created_at=timestamp,
    updated_at=timestamp,
    status="queued",
    steps=init_steps(),
    share_url=f"/evidence/{job_id}",
  )


def encode_job(job: JobRecord) -> bytes:
  """Serialize a job record to JSON bytes."""
  return msgspec.json.encode(job)


def decode_job(payload: bytes | str) -> JobRecord:
  """Deserialize and type-check a job record."""
  return msgspec.json.decode(payload, type=JobRecord)


def copy_job(job: JobRecord) -> JobRecord:
  """Return a deep copy that shares no mutable state with the input."""
  return decode_job(encode_job(job))
