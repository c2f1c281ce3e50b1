"""Storage interfaces for replay jobs."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

from replay2pr.jobs.models import JobRecord, JobStatus


class JobStoreCorruptionError(RuntimeError):
  """Raised when a persisted job record exists but cannot be decoded."""

  def __init__(self, job_id: str, reason: str) -> None:
    super().__init__(f"Job {job_id} record is unreadable: {reason}")
    self.job_id = job_id
    self.reason = reason


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record."""

  async def put_job(self, record: JobRecord) -> None:
    """Replace the persisted snapshot of a job."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier, raising JobStoreCorruptionError for unreadable records."""

  async def find_by_status(self, status: JobStatus) -> list[JobRecord]:
    """Return jobs in a status, oldest first."""


class JobLocks:
  """Per-job write locks, dropped as soon as no writer holds or waits on them."""

  def __init__(self) -> None:
    self._locks: dict[str, asyncio.Lock] = {}
    self._holders: dict[str, int] = {}

  def __len__(self) -> int:
    return len(self._locks)

  @asynccontextmanager
  async def hold(self, job_id: str) -> AsyncIterator[None]:
    lock = self._locks.setdefault(job_id, asyncio.Lock())
    self._holders[job_id] = self._holders.get(job_id, 0) + 1
    try:
      async with lock:
        yield
    finally:
      # Count waiters too, so a queued writer keeps the lock it is waiting on.
      self._holders[job_id] -= 1
      if self._holders[job_id] == 0:
        del self._holders[job_id]
        del self._locks[job_id]
