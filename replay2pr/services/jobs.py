"""Engine facade used by the HTTP layer: submit, read and recover replay jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from replay2pr.ai.fallback import InferencePolicy
from replay2pr.ai.inference import ReplayInference, build_inference
from replay2pr.config import Settings
from replay2pr.jobs.dispatch import JobDispatcher
from replay2pr.jobs.errors import JobValidationError
from replay2pr.jobs.models import JobRecord, new_job
from replay2pr.jobs.pipeline import ReplayPipeline
from replay2pr.jobs.progress import StepTracker
from replay2pr.services.artifacts import JobArtifacts
from replay2pr.services.test_runner import TestRunner, build_test_runner
from replay2pr.storage.factory import build_jobs_repo
from replay2pr.storage.jobs_repo import JobsRepository, JobStoreCorruptionError
from replay2pr.utils.ids import generate_job_id

logger = logging.getLogger(__name__)

DEMO_UPLOAD_ID = "demo.mp4"
INTERRUPTED_MESSAGE = "Job interrupted by service restart."


@dataclass(frozen=True)
class JobSubmission:
  """Validated-at-submit inputs for a new job."""

  demo_mode: bool = True
  upload_id: str | None = None
  upload_filename: str | None = None
  notes: str | None = None
  repo_url: str | None = None


@dataclass(frozen=True)
class RecoveryReport:
  requeued: int
  interrupted: int


def _validate_repo_url(raw: str | None) -> str | None:
  if raw is None or not raw.strip():
    return None
  value = raw.strip()
  parsed = urlparse(value)
  if parsed.scheme not in {"http", "https"} or not parsed.netloc:
    raise JobValidationError("repoUrl must be an absolute http(s) URL.", field="repoUrl")
  return value


class ReplayJobService:
  """Create jobs, hand them to the dispatcher and serve the latest persisted snapshots."""

  def __init__(self, *, jobs_repo: JobsRepository, dispatcher: JobDispatcher) -> None:
    self._jobs_repo = jobs_repo
    self._dispatcher = dispatcher

  @property
  def dispatcher(self) -> JobDispatcher:
    return self._dispatcher

  async def submit_job(self, submission: JobSubmission) -> JobRecord:
    """Validate, persist and enqueue a job; nothing is stored when validation fails."""
    upload_id = submission.upload_id.strip() if submission.upload_id else None
    upload_filename = submission.upload_filename
    if submission.demo_mode:
      # Demo runs replay the bundled recording regardless of any upload.
      upload_id = DEMO_UPLOAD_ID
      upload_filename = DEMO_UPLOAD_ID
    if not upload_id:
      raise JobValidationError("Upload is required when demo mode is off", field="uploadId")
    repo_url = _validate_repo_url(submission.repo_url)

    job = new_job(job_id=generate_job_id(), mode="demo" if submission.demo_mode else "repo", upload_id=upload_id, upload_filename=upload_filename, repo_url=repo_url, notes=submission.notes)
    await self._jobs_repo.create_job(job)
    logger.info("Job created job_id=%s mode=%s", job.id, job.mode)
    await self._dispatcher.submit(job.id)
    return job

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Return the latest persisted snapshot, or None when absent or unreadable."""
    try:
      return await self._jobs_repo.get_job(job_id)
    except JobStoreCorruptionError as exc:
      logger.error("Unreadable job record job_id=%s: %s", job_id, exc.reason)
      return None

  async def recover(self) -> RecoveryReport:
    """Requeue persisted queued jobs and fail jobs a previous process left running."""
    interrupted = await self._jobs_repo.find_by_status("running")
    for job in interrupted:
      await StepTracker(job=job, jobs_repo=self._jobs_repo).abort(INTERRUPTED_MESSAGE)

    queued = await self._jobs_repo.find_by_status("queued")
    for job in queued:
      await self._dispatcher.submit(job.id)

    if interrupted or queued:
      logger.info("Recovered jobs requeued=%s interrupted=%s", len(queued), len(interrupted))
    return RecoveryReport(requeued=len(queued), interrupted=len(interrupted))


def build_job_service(settings: Settings, *, inference: ReplayInference | None = None, test_runner: TestRunner | None = None, jobs_repo: JobsRepository | None = None) -> ReplayJobService:
  """Wire the engine from settings; collaborators can be overridden for tests."""
  artifacts = JobArtifacts(settings.artifacts_dir)
  artifacts.ensure_structure()
  repo = jobs_repo or build_jobs_repo(settings, artifacts)
  pipeline = ReplayPipeline(
    jobs_repo=repo,
    inference=inference or build_inference(settings),
    policy=InferencePolicy(max_retries=settings.inference_max_retries, backoff_seconds=settings.inference_backoff_seconds),
    test_runner=test_runner or build_test_runner(settings, artifacts),
    artifacts=artifacts,
    base_url=settings.base_url,
    demo_target_path=settings.demo_target_path,
  )
  dispatcher = JobDispatcher(jobs_repo=repo, runner=pipeline.run, concurrency_limit=settings.max_concurrent_jobs)
  return ReplayJobService(jobs_repo=repo, dispatcher=dispatcher)
