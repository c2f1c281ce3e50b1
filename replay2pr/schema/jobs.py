from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from replay2pr.core.database import Base


class ReplayJob(Base):
  __tablename__ = "replay_jobs"
  __table_args__ = (Index("ix_replay_jobs_status_created_at", "status", "created_at"),)

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  mode: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False)
  record_json: Mapped[dict[str, Any]] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
  created_at: Mapped[str] = mapped_column(String, nullable=False)
  updated_at: Mapped[str] = mapped_column(String, nullable=False)
