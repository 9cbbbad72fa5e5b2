"""Durable job queue backed by SQLModel + SQLite."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlmodel import Session, col, select

from scatter_gather.gather.envelope import ArgumentEnvelope
from scatter_gather.jobs.models import JobHandle, JobStatus, QueuedJobView
from scatter_gather.storage.alembic_runner import upgrade_head
from scatter_gather.storage.common import (
    Clock,
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from scatter_gather.storage.sqlmodel_models import QueuedJob


class JobQueue:
    """Queue persistence facade; implements the ``JobSystem`` protocol."""

    def __init__(
        self,
        db_path: Path,
        *,
        clock: Clock = utc_now,
        sqlite_busy_timeout_ms: int = 5000,
    ) -> None:
        self.db_path = db_path
        self.clock = clock
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    def schedule(
        self,
        envelope: ArgumentEnvelope,
        *,
        delay: timedelta | None = None,
    ) -> JobHandle:
        """Persist a queued job; it becomes ready once ``delay`` has elapsed."""

        payload_json = json.dumps(envelope.to_payload(), ensure_ascii=False, sort_keys=True)
        now = self.clock()
        run_after = now + delay if delay is not None else now
        job_id = str(uuid4())
        with Session(self.engine) as session:
            session.add(
                QueuedJob(
                    job_id=job_id,
                    job_class_name=envelope.target_name,
                    payload_json=payload_json,
                    status=JobStatus.QUEUED.value,
                    attempt=0,
                    run_after=to_db_datetime(run_after),
                    created_at=to_db_datetime(now),
                    updated_at=to_db_datetime(now),
                ),
            )
            session.commit()
        return JobHandle(job_id=job_id, job_class_name=envelope.target_name)

    def ready_job_ids(self, *, now: datetime | None = None) -> list[str]:
        """Ids of queued jobs whose ``run_after`` has passed, in execution order."""

        cutoff = to_db_datetime(now or self.clock())
        with Session(self.engine) as session:
            rows = session.exec(
                select(QueuedJob.job_id)
                .where(
                    QueuedJob.status == JobStatus.QUEUED.value,
                    col(QueuedJob.run_after) <= cutoff,
                )
                .order_by(col(QueuedJob.run_after).asc(), col(QueuedJob.id).asc()),
            ).all()
        return list(rows)

    def claim_next_ready_job(self, *, worker_id: str) -> QueuedJobView | None:
        """Atomically claim one job ready for execution."""

        while True:
            ready = self.ready_job_ids()
            if not ready:
                return None
            claimed = self.claim_job(job_id=ready[0], worker_id=worker_id)
            if claimed is not None:
                return claimed

    def claim_job(self, *, job_id: str, worker_id: str) -> QueuedJobView | None:
        """Move one queued job to running; ``None`` if another worker got it first."""

        now = to_db_datetime(self.clock())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(QueuedJob)
                .where(
                    col(QueuedJob.job_id) == job_id,
                    col(QueuedJob.status) == JobStatus.QUEUED.value,
                )
                .values(
                    status=JobStatus.RUNNING.value,
                    attempt=QueuedJob.attempt + 1,
                    started_at=now,
                    finished_at=None,
                    worker_id=worker_id,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return None
            claimed = session.exec(select(QueuedJob).where(QueuedJob.job_id == job_id)).one()
            session.commit()
            return _to_job_view(claimed)

    def complete_job(self, *, job_id: str) -> bool:
        """Mark a running job as succeeded."""

        return self._finish(job_id=job_id, status=JobStatus.SUCCEEDED, error_summary=None)

    def fail_job(self, *, job_id: str, error_summary: str) -> bool:
        return self._finish(job_id=job_id, status=JobStatus.FAILED, error_summary=error_summary)

    def discard_job(self, *, job_id: str, error_summary: str) -> bool:
        """Terminal failure that bypasses retry."""

        return self._finish(job_id=job_id, status=JobStatus.DISCARDED, error_summary=error_summary)

    def schedule_retry(self, *, job_id: str, run_after: datetime, error_summary: str) -> bool:
        """Requeue a running job for automatic retry."""

        now = to_db_datetime(self.clock())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(QueuedJob)
                .where(
                    col(QueuedJob.job_id) == job_id,
                    col(QueuedJob.status) == JobStatus.RUNNING.value,
                )
                .values(
                    status=JobStatus.QUEUED.value,
                    run_after=to_db_datetime(run_after),
                    error_summary=error_summary,
                    started_at=None,
                    worker_id=None,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True

    def get_job(self, *, job_id: str) -> QueuedJobView | None:
        with Session(self.engine) as session:
            row = session.exec(select(QueuedJob).where(QueuedJob.job_id == job_id)).one_or_none()
        return _to_job_view(row) if row is not None else None

    def list_jobs(
        self,
        *,
        status: JobStatus | None = None,
        limit: int = 50,
    ) -> list[QueuedJobView]:
        """List recent jobs, optionally filtered by status."""

        with Session(self.engine) as session:
            statement = select(QueuedJob)
            if status is not None:
                statement = statement.where(QueuedJob.status == status.value)
            rows = session.exec(
                statement.order_by(col(QueuedJob.id).desc()).limit(limit),
            ).all()
        return [_to_job_view(row) for row in rows]

    def count_jobs(self, *, status: JobStatus | None = None) -> int:
        with Session(self.engine) as session:
            statement = select(func.count()).select_from(QueuedJob)
            if status is not None:
                statement = statement.where(QueuedJob.status == status.value)
            return int(session.exec(statement).one())

    def _finish(self, *, job_id: str, status: JobStatus, error_summary: str | None) -> bool:
        now = to_db_datetime(self.clock())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(QueuedJob)
                .where(
                    col(QueuedJob.job_id) == job_id,
                    col(QueuedJob.status) == JobStatus.RUNNING.value,
                )
                .values(
                    status=status.value,
                    error_summary=error_summary,
                    finished_at=now,
                    updated_at=now,
                ),
            )
            if result.rowcount != 1:
                session.rollback()
                return False
            session.commit()
            return True


def _to_job_view(row: QueuedJob) -> QueuedJobView:
    payload = json.loads(row.payload_json)
    return QueuedJobView(
        job_id=row.job_id,
        job_class_name=row.job_class_name,
        payload=payload if isinstance(payload, dict) else {},
        status=JobStatus(row.status),
        attempt=row.attempt,
        run_after=to_utc_aware_datetime(row.run_after),
        started_at=to_utc_aware_datetime(row.started_at) if row.started_at is not None else None,
        finished_at=(
            to_utc_aware_datetime(row.finished_at) if row.finished_at is not None else None
        ),
        worker_id=row.worker_id,
        error_summary=row.error_summary,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
