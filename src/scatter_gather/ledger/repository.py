"""Completion ledger persistence backed by SQLModel + SQLite."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from datetime import timedelta
from pathlib import Path

from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, col, delete, select

from scatter_gather.ledger.models import CompletionStatus, LedgerRowView
from scatter_gather.storage.alembic_runner import upgrade_head
from scatter_gather.storage.common import (
    Clock,
    build_sqlite_engine,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from scatter_gather.storage.sqlmodel_models import GatherCompletion

logger = logging.getLogger(__name__)
DEFAULT_RETENTION = timedelta(days=7)
_ID_CHUNK_SIZE = 500


class CompletionLedger:
    """Durable job_id -> completion status mapping."""

    def __init__(
        self,
        db_path: Path,
        *,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Clock = utc_now,
        sqlite_busy_timeout_ms: int = 5000,
    ) -> None:
        if retention.total_seconds() < 0:
            raise ValueError("retention must be >= 0")
        self.db_path = db_path
        self.retention = retention
        self.clock = clock
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    def register(
        self,
        job_ids: Iterable[str],
        class_names: Mapping[str, str | None] | None = None,
    ) -> int:
        """Insert one pending row per job id, then prune expired rows.

        Ids that already have a row are left untouched. Returns the number of
        rows inserted.
        """

        names = class_names or {}
        unique_ids = list(dict.fromkeys(job_ids))
        inserted = 0
        if unique_ids:
            now = to_db_datetime(self.clock())
            with Session(self.engine) as session:
                for chunk in _chunked(unique_ids):
                    result = session.exec(
                        sqlite_insert(GatherCompletion)
                        .values(
                            [
                                {
                                    "job_id": job_id,
                                    "job_class_name": names.get(job_id),
                                    "status": CompletionStatus.PENDING.value,
                                    "created_at": now,
                                    "updated_at": now,
                                }
                                for job_id in chunk
                            ],
                        )
                        .on_conflict_do_nothing(index_elements=["job_id"]),
                    )
                    inserted += max(result.rowcount, 0)
                session.commit()

        self.prune_expired()
        return inserted

    def mark_completed(self, job_id: str) -> int:
        """Flip one row to completed; returns the affected row count (0 or 1)."""

        now = to_db_datetime(self.clock())
        with Session(self.engine) as session:
            result = session.exec(
                sa_update(GatherCompletion)
                .where(col(GatherCompletion.job_id) == job_id)
                .values(status=CompletionStatus.COMPLETED.value, updated_at=now),
            )
            session.commit()
            return result.rowcount

    def collect_statuses(self, job_ids: Sequence[str]) -> dict[str, CompletionStatus]:
        """Look up every requested id; ids without a row map to ``UNKNOWN``."""

        statuses = dict.fromkeys(job_ids, CompletionStatus.UNKNOWN)
        if not statuses:
            return statuses
        with Session(self.engine) as session:
            for chunk in _chunked(list(statuses)):
                rows = session.exec(
                    select(GatherCompletion.job_id, GatherCompletion.status).where(
                        col(GatherCompletion.job_id).in_(chunk),
                    ),
                ).all()
                for job_id, status in rows:
                    statuses[job_id] = CompletionStatus(status)
        return statuses

    def delete(self, job_ids: Iterable[str]) -> int:
        unique_ids = list(dict.fromkeys(job_ids))
        if not unique_ids:
            return 0
        deleted = 0
        with Session(self.engine) as session:
            for chunk in _chunked(unique_ids):
                result = session.exec(
                    delete(GatherCompletion).where(col(GatherCompletion.job_id).in_(chunk)),
                )
                deleted += max(result.rowcount, 0)
            session.commit()
        return deleted

    def prune_expired(self, *, older_than: timedelta | None = None) -> int:
        """Delete rows created before the retention window (abandoned gathers)."""

        window = self.retention if older_than is None else older_than
        cutoff = to_db_datetime(self.clock() - window)
        with Session(self.engine) as session:
            result = session.exec(
                delete(GatherCompletion).where(col(GatherCompletion.created_at) < cutoff),
            )
            session.commit()
            pruned = max(result.rowcount, 0)
        if pruned:
            logger.info("Pruned %d expired ledger rows created before %s.", pruned, cutoff)
        return pruned

    def status_counts(self) -> dict[CompletionStatus, int]:
        counts = {CompletionStatus.PENDING: 0, CompletionStatus.COMPLETED: 0}
        with Session(self.engine) as session:
            rows = session.exec(
                select(GatherCompletion.status, func.count()).group_by(GatherCompletion.status),
            ).all()
        for status, count in rows:
            counts[CompletionStatus(status)] = int(count)
        return counts

    def list_rows(
        self,
        *,
        status: CompletionStatus | None = None,
        limit: int = 50,
    ) -> list[LedgerRowView]:
        with Session(self.engine) as session:
            statement = (
                select(GatherCompletion)
                .order_by(col(GatherCompletion.created_at).desc(), col(GatherCompletion.id).desc())
                .limit(limit)
            )
            if status is not None:
                statement = statement.where(GatherCompletion.status == status.value)
            rows = session.exec(statement).all()
        return [_to_row_view(row) for row in rows]


def _chunked(values: list[str]) -> Iterator[list[str]]:
    for start in range(0, len(values), _ID_CHUNK_SIZE):
        yield values[start : start + _ID_CHUNK_SIZE]


def _to_row_view(row: GatherCompletion) -> LedgerRowView:
    return LedgerRowView(
        job_id=row.job_id,
        job_class_name=row.job_class_name,
        status=CompletionStatus(row.status),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
