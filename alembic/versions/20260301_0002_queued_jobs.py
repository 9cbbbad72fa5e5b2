"""Add the durable job queue table."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20260301_0002"
down_revision = "20260301_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "queued_jobs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("job_class_name", sa.String(), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("run_after", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("worker_id", sa.String(), nullable=True),
        sa.Column("error_summary", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_queued_jobs_job_id", "queued_jobs", ["job_id"], unique=True)
    op.create_index("ix_queued_jobs_job_class_name", "queued_jobs", ["job_class_name"])
    op.create_index("ix_queued_jobs_status", "queued_jobs", ["status"])
    op.create_index("idx_queued_jobs_ready", "queued_jobs", ["status", "run_after"])


def downgrade() -> None:
    op.drop_index("idx_queued_jobs_ready", table_name="queued_jobs")
    op.drop_index("ix_queued_jobs_status", table_name="queued_jobs")
    op.drop_index("ix_queued_jobs_job_class_name", table_name="queued_jobs")
    op.drop_index("ix_queued_jobs_job_id", table_name="queued_jobs")
    op.drop_table("queued_jobs")
