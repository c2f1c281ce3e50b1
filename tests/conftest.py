"""Shared fixtures and doubles for the replay engine tests."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

# Keep the app importable without a browser, a database or a Gemini key.
os.environ.setdefault("REPLAY_TEST_RUNNER", "simulated")
os.environ.setdefault("REPLAY_JOB_STORE", "file")
os.environ.setdefault("USE_MOCK_GEMINI", "true")

import pytest  # noqa: E402

from replay2pr.ai.fallback import InferencePolicy  # noqa: E402
from replay2pr.ai.inference import ReplayInference  # noqa: E402
from replay2pr.config import Settings  # noqa: E402
from replay2pr.jobs.models import JobRecord, JobStatus, copy_job  # noqa: E402
from replay2pr.jobs.pipeline import ReplayPipeline  # noqa: E402
from replay2pr.services.artifacts import JobArtifacts  # noqa: E402
from replay2pr.services.test_runner import RunResult, SimulatedTestRunner  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


class InMemoryJobsRepo:
  """In-memory jobs repository that keeps every persisted snapshot."""

  def __init__(self) -> None:
    self._jobs: dict[str, JobRecord] = {}
    self.history: list[JobRecord] = []

  async def create_job(self, record: JobRecord) -> None:
    await self.put_job(record)

  async def put_job(self, record: JobRecord) -> None:
    snapshot = copy_job(record)
    self._jobs[record.id] = snapshot
    self.history.append(snapshot)

  async def get_job(self, job_id: str) -> JobRecord | None:
    record = self._jobs.get(job_id)
    return copy_job(record) if record is not None else None

  async def find_by_status(self, status: JobStatus) -> list[JobRecord]:
    records = [copy_job(record) for record in self._jobs.values() if record.status == status]
    return sorted(records, key=lambda record: record.created_at)

  def snapshots_for(self, job_id: str) -> list[JobRecord]:
    return [snapshot for snapshot in self.history if snapshot.id == job_id]


class ScriptedTestRunner:
  """Test runner double returning a fixed sequence of results."""

  __test__ = False

  def __init__(self, results: list[bool]) -> None:
    self._results = list(results)
    self.calls: list[tuple[Path, str]] = []

  async def run_test(self, test_file: Path, job_id: str) -> RunResult:
    self.calls.append((test_file, job_id))
    passed = self._results.pop(0) if self._results else False
    summary = "Playwright run passed" if passed else "Playwright run failed"
    return RunResult(passed=passed, summary=summary, output=f"scripted run {len(self.calls)}: {summary}", output_path="playwright-output")


class RecordingSleep:
  """Async sleep double that records requested delays without waiting."""

  def __init__(self) -> None:
    self.delays: list[float] = []

  async def __call__(self, delay: float) -> None:
    self.delays.append(delay)


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
  """Build settings for tests without reading the environment."""
  settings = Settings(
    environment="test",
    debug=False,
    allowed_origins=("http://localhost:3000",),
    artifacts_dir=tmp_path / "artifacts",
    max_concurrent_jobs=1,
    max_upload_mb=50,
    base_url="http://localhost:3000",
    test_runner="simulated",
    test_timeout_seconds=120.0,
    reachability_timeout_seconds=10.0,
    inference_max_retries=2,
    inference_backoff_seconds=1.0,
    job_store="file",
    pg_dsn=None,
    pg_connect_timeout=5,
    demo_target_path=None,
    log_max_bytes=5_242_880,
    log_backup_count=10,
    gemini_api_key=None,
    use_mock_gemini=True,
    gemini_model_flash="gemini-3-flash",
    gemini_model_pro="gemini-3-pro",
  )
  return replace(settings, **overrides)


@pytest.fixture
def jobs_repo() -> InMemoryJobsRepo:
  return InMemoryJobsRepo()


@pytest.fixture
def artifacts(tmp_path: Path) -> JobArtifacts:
  store = JobArtifacts(tmp_path / "artifacts")
  store.ensure_structure()
  return store


@pytest.fixture
def recording_sleep() -> RecordingSleep:
  return RecordingSleep()


@pytest.fixture
def build_pipeline(jobs_repo: InMemoryJobsRepo, artifacts: JobArtifacts, recording_sleep: RecordingSleep) -> Callable[..., ReplayPipeline]:
  """Factory for pipelines wired to in-memory storage and the simulated runner."""

  def _build(*, inference: ReplayInference | None = None, test_runner: object | None = None, max_retries: int = 2) -> ReplayPipeline:
    return ReplayPipeline(
      jobs_repo=jobs_repo,
      inference=inference or ReplayInference(),
      policy=InferencePolicy(max_retries=max_retries, backoff_seconds=1.0, sleep=recording_sleep),
      test_runner=test_runner or SimulatedTestRunner(artifacts=artifacts),  # type: ignore[arg-type]
      artifacts=artifacts,
      base_url="http://localhost:3000",
    )

  return _build


@pytest.fixture
def scripted_runner() -> type[ScriptedTestRunner]:
  return ScriptedTestRunner


@pytest.fixture
def settings_factory(tmp_path: Path) -> Callable[..., Settings]:
  def _factory(**overrides: object) -> Settings:
    return make_settings(tmp_path, **overrides)

  return _factory
