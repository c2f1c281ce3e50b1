"""Build the job repository selected by configuration."""

from __future__ import annotations

from replay2pr.config import Settings
from replay2pr.services.artifacts import JobArtifacts
from replay2pr.storage.cached_jobs_repo import CachedJobsRepository
from replay2pr.storage.file_jobs_repo import FileJobsRepository
from replay2pr.storage.jobs_repo import JobsRepository


def build_jobs_repo(settings: Settings, artifacts: JobArtifacts) -> JobsRepository:
  """Return the durable repository for REPLAY_JOB_STORE wrapped in the in-memory cache."""
  if settings.job_store == "postgres":
    from replay2pr.storage.postgres_jobs_repo import PostgresJobsRepository

    return CachedJobsRepository(PostgresJobsRepository())
  return CachedJobsRepository(FileJobsRepository(artifacts.jobs_dir))
