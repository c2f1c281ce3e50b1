"""Filesystem-backed job repository storing one JSON document per job."""

from __future__ import annotations

import logging
from pathlib import Path

import msgspec
from starlette.concurrency import run_in_threadpool

from replay2pr.jobs.models import JobRecord, JobStatus, decode_job, encode_job, now_iso
from replay2pr.services.artifacts import safe_join, write_text_atomic
from replay2pr.storage.jobs_repo import JobLocks, JobsRepository, JobStoreCorruptionError

logger = logging.getLogger(__name__)

JOB_FILENAME = "job.json"


class FileJobsRepository(JobsRepository):
  """Persist jobs to <jobs_dir>/<job_id>/job.json."""

  def __init__(self, jobs_dir: Path) -> None:
    self._jobs_dir = jobs_dir
    # One lock per job keeps writes for a single job totally ordered.
    self._locks = JobLocks()

  def _job_path(self, job_id: str) -> Path:
    return safe_join(self._jobs_dir, job_id, JOB_FILENAME)

  async def create_job(self, record: JobRecord) -> None:
    await self.put_job(record)

  async def put_job(self, record: JobRecord) -> None:
    path = self._job_path(record.id)
    async with self._locks.hold(record.id):
      record.updated_at = now_iso()
      payload = encode_job(record)
      await run_in_threadpool(write_text_atomic, path, payload)

  async def get_job(self, job_id: str) -> JobRecord | None:
    try:
      path = self._job_path(job_id)
    except ValueError:
      return None
    payload = await run_in_threadpool(_read_bytes, path)
    if payload is None:
      return None
    try:
      return decode_job(payload)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
      raise JobStoreCorruptionError(job_id, str(exc)) from exc

  async def find_by_status(self, status: JobStatus) -> list[JobRecord]:
    records: list[JobRecord] = []
    job_ids = await run_in_threadpool(self._list_job_ids)
    for job_id in job_ids:
      try:
        record = await self.get_job(job_id)
      except JobStoreCorruptionError as exc:
        logger.warning("Skipping unreadable job record: %s", exc)
        continue
      if record is not None and record.status == status:
        records.append(record)
    records.sort(key=lambda record: record.created_at)
    return records

  def _list_job_ids(self) -> list[str]:
    if not self._jobs_dir.is_dir():
      return []
    return [entry.name for entry in self._jobs_dir.iterdir() if (entry / JOB_FILENAME).is_file()]


def _read_bytes(path: Path) -> bytes | None:
  try:
    return path.read_bytes()
  except FileNotFoundError:
    return None
