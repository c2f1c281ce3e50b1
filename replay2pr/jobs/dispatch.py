"""FIFO job dispatcher with a global concurrency ceiling."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from replay2pr.jobs.models import JobRecord
from replay2pr.storage.jobs_repo import JobsRepository, JobStoreCorruptionError

logger = logging.getLogger(__name__)

JobRunner = Callable[[JobRecord], Awaitable[JobRecord]]


class JobDispatcher:
  """Admit queued jobs in submission order while capacity allows."""

  def __init__(self, *, jobs_repo: JobsRepository, runner: JobRunner, concurrency_limit: int = 1) -> None:
    if concurrency_limit < 1:
      raise ValueError("concurrency_limit must be a positive integer.")
    self._jobs_repo = jobs_repo
    self._runner = runner
    self._concurrency_limit = concurrency_limit
    self._queue: deque[str] = deque()
    self._active_count = 0
    self._lock = asyncio.Lock()
    self._tasks: set[asyncio.Task[None]] = set()
    self._idle = asyncio.Event()
    self._idle.set()

  @property
  def active_count(self) -> int:
    return self._active_count

  @property
  def queued_ids(self) -> list[str]:
    return list(self._queue)

  @property
  def concurrency_limit(self) -> int:
    return self._concurrency_limit

  async def submit(self, job_id: str) -> None:
    """Append a job id to the tail of the queue and try to admit work."""
    async with self._lock:
      self._queue.append(job_id)
      self._idle.clear()
    logger.info("Job queued job_id=%s depth=%s", job_id, len(self._queue))
    await self.try_admit_next()

  async def try_admit_next(self) -> None:
    """Admit queued jobs until the ceiling is reached; safe to call repeatedly."""
    async with self._lock:
      try:
        while self._queue and self._active_count < self._concurrency_limit:
          # Pop first so a job that cannot be loaded never blocks the ones behind it.
          job_id = self._queue.popleft()
          job = await self._load_for_admission(job_id)
          if job is None:
            continue

          # Mark running durably before the task starts.
          job.status = "running"
          try:
            await self._jobs_repo.put_job(job)
          except Exception:
            # The record stays queued durably; startup recovery picks it up again.
            logger.exception("Failed to persist admission job_id=%s", job_id)
            continue

          # Reserve the slot, then hand the job to its own task.
          self._active_count += 1
          task = asyncio.create_task(self._run(job), name=f"replay-job-{job_id}")
          self._tasks.add(task)
          task.add_done_callback(self._tasks.discard)
          logger.info("Job admitted job_id=%s active=%s", job_id, self._active_count)
      finally:
        self._update_idle()

  async def wait_idle(self) -> None:
    """Wait until the queue is drained and no job is running."""
    await self._idle.wait()

  async def _load_for_admission(self, job_id: str) -> JobRecord | None:
    try:
      job = await self._jobs_repo.get_job(job_id)
    except JobStoreCorruptionError as exc:
      logger.error("Skipping job with corrupt record job_id=%s: %s", job_id, exc.reason)
      return None
    except Exception:
      # Store outages drop this job from the queue; recovery requeues it on restart.
      logger.exception("Skipping job that could not be loaded job_id=%s", job_id)
      return None
    if job is None:
      logger.warning("Skipping missing job job_id=%s", job_id)
      return None
    if job.status != "queued":
      logger.warning("Skipping job not in queued state job_id=%s status=%s", job_id, job.status)
      return None
    return job

  async def _run(self, job: JobRecord) -> None:
    try:
      await self._runner(job)
    except Exception:
      logger.exception("Job runner raised job_id=%s", job.id)
    finally:
      # Free the slot and pull the next job in line.
      async with self._lock:
        self._active_count -= 1
      await self.try_admit_next()

  def _update_idle(self) -> None:
    if not self._queue and self._active_count == 0:
      self._idle.set()
    else:
      self._idle.clear()
