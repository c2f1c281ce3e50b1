"""Postgres-backed repository for replay jobs using SQLAlchemy."""

from __future__ import annotations

import logging

import msgspec
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from replay2pr.core.database import get_session_factory
from replay2pr.jobs.models import JobRecord, JobStatus, now_iso
from replay2pr.schema.jobs import ReplayJob
from replay2pr.storage.jobs_repo import JobLocks, JobsRepository, JobStoreCorruptionError

logger = logging.getLogger(__name__)


class PostgresJobsRepository(JobsRepository):
  """Persist job snapshots to the replay_jobs table."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")
    self._locks = JobLocks()

  async def create_job(self, record: JobRecord) -> None:
    async with self._locks.hold(record.id):
      record.updated_at = now_iso()
      async with self._session_factory() as session:
        session.add(ReplayJob(job_id=record.id, mode=record.mode, status=record.status, record_json=msgspec.to_builtins(record), created_at=record.created_at, updated_at=record.updated_at))
        await session.commit()

  async def put_job(self, record: JobRecord) -> None:
    async with self._locks.hold(record.id):
      record.updated_at = now_iso()
      async with self._session_factory() as session:
        row = await session.get(ReplayJob, record.id)
        if row is None:
          row = ReplayJob(job_id=record.id, mode=record.mode, created_at=record.created_at)
          session.add(row)
        row.status = record.status
        row.record_json = msgspec.to_builtins(record)
        row.updated_at = record.updated_at
        await session.commit()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(ReplayJob, job_id)
      if row is None:
        return None
      return _row_to_record(row)

  async def find_by_status(self, status: JobStatus) -> list[JobRecord]:
    async with self._session_factory() as session:
      result = await session.execute(select(ReplayJob).where(ReplayJob.status == status).order_by(ReplayJob.created_at))
      rows = result.scalars().all()
    records: list[JobRecord] = []
    for row in rows:
      try:
        records.append(_row_to_record(row))
      except JobStoreCorruptionError as exc:
        logger.warning("Skipping unreadable job record: %s", exc)
    return records


def _row_to_record(row: ReplayJob) -> JobRecord:
  try:
    return msgspec.convert(row.record_json, type=JobRecord)
  except msgspec.ValidationError as exc:
    raise JobStoreCorruptionError(row.job_id, str(exc)) from exc
