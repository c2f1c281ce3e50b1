from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobCreateRequest(_CamelModel):
  """Request body for creating a replay job."""

  demo_mode: bool = True
  upload_id: str | None = Field(default=None, max_length=512)
  upload_filename: str | None = Field(default=None, max_length=512)
  notes: str | None = Field(default=None, max_length=10_000)
  repo_url: str | None = Field(default=None, max_length=2048)


class JobCreateResponse(_CamelModel):
  """Response returned once a job has been queued."""

  job_id: str
  share_url: str


class StatusResponse(_CamelModel):
  """Runtime capabilities the UI needs before submitting work."""

  mock_mode: bool
  max_upload_mb: int
  max_concurrent_jobs: int
