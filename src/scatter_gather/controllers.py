"""Controllers for scatter-gather CLI commands."""

from __future__ import annotations

import importlib
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from scatter_gather.config import Settings
from scatter_gather.gather.coordinator import GATHER_JOB_NAME, GatherJob
from scatter_gather.jobs.models import JobStatus
from scatter_gather.jobs.queue import JobQueue
from scatter_gather.jobs.registry import JobRegistry
from scatter_gather.jobs.worker import JobWorker
from scatter_gather.ledger import CompletionLedger, CompletionStatus


@dataclass(slots=True)
class DbInitCommand:
    """CLI input for schema initialization."""

    db_path: Path | None


@dataclass(slots=True)
class LedgerStatsCommand:
    """CLI input for ledger status counts."""

    db_path: Path | None


@dataclass(slots=True)
class LedgerListCommand:
    """CLI input for ledger row listing."""

    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class LedgerPruneCommand:
    """CLI input for the abandoned-row sweep."""

    db_path: Path | None
    older_than_days: int | None


@dataclass(slots=True)
class JobsListCommand:
    """CLI input for queued job listing."""

    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class WorkerCommand:
    """CLI input for worker execution."""

    db_path: Path | None
    registry_ref: str
    once: bool
    max_jobs: int | None
    max_idle_polls: int = 1


class ScatterGatherCliController:
    """Coordinates ledger, queue and worker CLI operations."""

    def init_db(self, command: DbInitCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _ledger(settings):
            pass
        return [f"Schema is at head: {settings.db_path}"]

    def ledger_stats(self, command: LedgerStatsCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _ledger(settings) as ledger:
            counts = ledger.status_counts()
        total = sum(counts.values())
        return [
            "Ledger rows: "
            f"total={total} "
            f"pending={counts[CompletionStatus.PENDING]} "
            f"completed={counts[CompletionStatus.COMPLETED]}",
        ]

    def ledger_list(self, command: LedgerListCommand) -> list[str]:
        settings = _settings(command.db_path)
        status = CompletionStatus(command.status) if command.status else None
        with _ledger(settings) as ledger:
            rows = ledger.list_rows(status=status, limit=command.limit)
        if not rows:
            return ["No ledger rows."]
        return [
            f"{row.job_id} status={row.status.value} class={row.job_class_name or '-'} "
            f"created_at={row.created_at.isoformat()} updated_at={row.updated_at.isoformat()}"
            for row in rows
        ]

    def ledger_prune(self, command: LedgerPruneCommand) -> list[str]:
        settings = _settings(command.db_path)
        older_than = (
            timedelta(days=command.older_than_days)
            if command.older_than_days is not None
            else None
        )
        with _ledger(settings) as ledger:
            pruned = ledger.prune_expired(older_than=older_than)
        return [f"Pruned ledger rows: {pruned}"]

    def jobs_list(self, command: JobsListCommand) -> list[str]:
        settings = _settings(command.db_path)
        status = JobStatus(command.status) if command.status else None
        with _queue(settings) as queue:
            jobs = queue.list_jobs(status=status, limit=command.limit)
        if not jobs:
            return ["No jobs."]
        lines = []
        for job in jobs:
            line = (
                f"{job.job_id} {job.job_class_name} status={job.status.value} "
                f"attempt={job.attempt} run_after={job.run_after.isoformat()}"
            )
            if job.error_summary:
                line += f" error={job.error_summary}"
            lines.append(line)
        return lines

    def run_worker(self, command: WorkerCommand) -> list[str]:
        settings = _settings(command.db_path)
        registry = load_registry(command.registry_ref)
        registry.register(GatherJob, name=GATHER_JOB_NAME)
        with _ledger(settings) as ledger, _queue(settings) as queue:
            worker = JobWorker(
                queue=queue,
                registry=registry,
                ledger=ledger,
                worker_id=settings.worker.worker_id,
                poll_interval_seconds=settings.worker.poll_interval_seconds,
                retry_max_seconds=settings.worker.retry_max_seconds,
                retry_jitter=settings.worker.retry_jitter,
            )
            summary = (
                worker.run_once()
                if command.once
                else worker.run_loop(
                    max_jobs=command.max_jobs,
                    max_idle_polls=command.max_idle_polls,
                )
            )

        return [
            "Worker summary: "
            f"processed={summary.processed} succeeded={summary.succeeded} "
            f"failed={summary.failed} retried={summary.retried} "
            f"discarded={summary.discarded} idle_polls={summary.idle_polls}",
        ]


def load_registry(reference: str) -> JobRegistry:
    """Import ``package.module:attribute`` and return the job registry it names."""

    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Registry reference must look like 'module:attribute', got {reference!r}")
    module = importlib.import_module(module_name)
    registry = getattr(module, attribute, None)
    if not isinstance(registry, JobRegistry):
        raise ValueError(f"{reference} is not a JobRegistry.")
    return registry


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings


@contextmanager
def _ledger(settings: Settings) -> Iterator[CompletionLedger]:
    ledger = CompletionLedger(
        settings.db_path,
        retention=settings.ledger_retention,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    ledger.init_schema()
    try:
        yield ledger
    finally:
        ledger.close()


@contextmanager
def _queue(settings: Settings) -> Iterator[JobQueue]:
    queue = JobQueue(settings.db_path, sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms)
    queue.init_schema()
    try:
        yield queue
    finally:
        queue.close()
