"""Create replay_jobs table.

Revision ID: 7c1e2a9d4b60
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "7c1e2a9d4b60"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "replay_jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("mode", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("record_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("created_at", sa.String(), nullable=False),
    sa.Column("updated_at", sa.String(), nullable=False),
    sa.PrimaryKeyConstraint("job_id"),
  )
  op.create_index("ix_replay_jobs_status_created_at", "replay_jobs", ["status", "created_at"], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_replay_jobs_status_created_at", table_name="replay_jobs")
  op.drop_table("replay_jobs")
