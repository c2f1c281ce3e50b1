"""Step-level progress tracking for a running job."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from replay2pr.jobs.models import JobRecord, StepId, StepStatus, now_iso
from replay2pr.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)

FAILED_SUMMARY = "Failed during processing"


def format_log_line(message: str, *, clock: Callable[[], datetime] = datetime.now) -> str:
  """Prefix a step log message with a wall-clock timestamp."""
  return f"[{clock().strftime('%H:%M:%S')}] {message}"


class StepTracker:
  """Mutate step state on a job record and persist after every transition."""

  def __init__(self, *, job: JobRecord, jobs_repo: JobsRepository, clock: Callable[[], datetime] = datetime.now) -> None:
    self.job = job
    self._jobs_repo = jobs_repo
    self._clock = clock

  async def persist(self) -> None:
    await self._jobs_repo.put_job(self.job)

  async def start(self, step_id: StepId) -> None:
    step = self.job.step(step_id)
    step.status = "running"
    step.started_at = now_iso()
    await self.persist()

  async def log(self, step_id: StepId, message: str) -> None:
    self.job.step(step_id).logs.append(format_log_line(message, clock=self._clock))
    await self.persist()

  def logger_for(self, step_id: StepId) -> Callable[[str], Awaitable[None]]:
    """Bind log() to one step, for collaborators that report into the current step."""

    async def _log(message: str) -> None:
      await self.log(step_id, message)

    return _log

  async def finish(self, step_id: StepId, status: StepStatus, summary: str | None = None) -> None:
    step = self.job.step(step_id)
    step.status = status
    step.ended_at = now_iso()
    if summary:
      step.summary = summary
    await self.persist()

  async def abort(self, message: str) -> None:
    """Close out a failed run: running step errors, untouched steps skip, ship records the failure."""
    timestamp = now_iso()
    for step in self.job.steps:
      if step.id == "ship":
        continue
      if step.status == "running":
        step.status = "error"
        step.ended_at = timestamp
      elif step.status == "pending":
        step.status = "skipped"

    ship = self.job.step("ship")
    ship.logs.append(format_log_line(f"Job failed: {message}", clock=self._clock))
    ship.status = "error"
    ship.started_at = ship.started_at or timestamp
    ship.ended_at = timestamp
    ship.summary = FAILED_SUMMARY
    self.job.status = "error"
    logger.error("Job failed job_id=%s: %s", self.job.id, message)
    await self.persist()
