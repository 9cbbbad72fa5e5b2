"""Create the scatter-gather completion ledger."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "scatter_gather_completions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.String(), nullable=False),
        sa.Column("job_class_name", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_scatter_gather_completions_job_id",
        "scatter_gather_completions",
        ["job_id"],
        unique=True,
    )
    op.create_index(
        "ix_scatter_gather_completions_created_at",
        "scatter_gather_completions",
        ["created_at"],
        unique=False,
    )
    op.create_index(
        "ix_scatter_gather_completions_updated_at",
        "scatter_gather_completions",
        ["updated_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        "ix_scatter_gather_completions_updated_at",
        table_name="scatter_gather_completions",
    )
    op.drop_index(
        "ix_scatter_gather_completions_created_at",
        table_name="scatter_gather_completions",
    )
    op.drop_index("ix_scatter_gather_completions_job_id", table_name="scatter_gather_completions")
    op.drop_table("scatter_gather_completions")
