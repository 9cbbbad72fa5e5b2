"""SQLModel ORM tables for the completion ledger and the job queue."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Text
from sqlmodel import Field, SQLModel


class GatherCompletion(SQLModel, table=True):
    __tablename__ = "scatter_gather_completions"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    job_id: str = Field(unique=True, index=True)
    job_class_name: str | None = None
    status: str = Field(default="pending")
    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )


class QueuedJob(SQLModel, table=True):
    __tablename__ = "queued_jobs"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_queued_jobs_ready", "status", "run_after"),)

    id: int | None = Field(default=None, primary_key=True)
    job_id: str = Field(unique=True, index=True)
    job_class_name: str = Field(index=True)
    payload_json: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(index=True)
    attempt: int = Field(default=0)
    run_after: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    finished_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    worker_id: str | None = None
    error_summary: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
