"""Write-through in-memory cache in front of a durable job repository."""

from __future__ import annotations

from replay2pr.jobs.models import JobRecord, JobStatus, decode_job, encode_job
from replay2pr.storage.jobs_repo import JobsRepository


class CachedJobsRepository(JobsRepository):
  """Cache job snapshots while keeping the durable repository authoritative.

  Lookups always consult the durable layer first so a stale cached snapshot is
  never served when a newer record has been persisted. The cache only answers
  when the durable layer has no record at all, which keeps jobs readable while
  a slow durable write has not landed yet. Only jobs still in flight are
  cached; a job leaves the cache once its terminal snapshot is durable.
  """

  def __init__(self, durable: JobsRepository) -> None:
    self._durable = durable
    # Snapshots are stored encoded so callers never share mutable state with the cache.
    self._cache: dict[str, bytes] = {}

  def __len__(self) -> int:
    return len(self._cache)

  async def create_job(self, record: JobRecord) -> None:
    await self._durable.create_job(record)
    self._remember(record)

  async def put_job(self, record: JobRecord) -> None:
    await self._durable.put_job(record)
    self._remember(record)

  async def get_job(self, job_id: str) -> JobRecord | None:
    record = await self._durable.get_job(job_id)
    if record is not None:
      self._remember(record)
      return record
    cached = self._cache.get(job_id)
    if cached is None:
      return None
    return decode_job(cached)

  async def find_by_status(self, status: JobStatus) -> list[JobRecord]:
    return await self._durable.find_by_status(status)

  def _remember(self, record: JobRecord) -> None:
    if record.is_terminal:
      self._cache.pop(record.id, None)
    else:
      self._cache[record.id] = encode_job(record)
