"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import sample_jobs

from scatter_gather.gather.facade import ScatterGather
from scatter_gather.jobs.queue import JobQueue
from scatter_gather.jobs.registry import JobRegistry
from scatter_gather.jobs.worker import JobWorker
from scatter_gather.ledger import CompletionLedger


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class RecordingErrorReporter:
    def __init__(self) -> None:
        self.reports: list[tuple[BaseException, dict[str, object]]] = []

    def report(self, error: BaseException, *, context: Mapping[str, object]) -> None:
        self.reports.append((error, dict(context)))

    @property
    def errors(self) -> list[BaseException]:
        return [error for error, _ in self.reports]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def error_reporter() -> RecordingErrorReporter:
    return RecordingErrorReporter()


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "scatter_gather.db"


@pytest.fixture()
def ledger(db_path: Path, clock: FakeClock) -> Iterator[CompletionLedger]:
    ledger = CompletionLedger(db_path, clock=clock)
    ledger.init_schema()
    try:
        yield ledger
    finally:
        ledger.close()


@pytest.fixture()
def queue(db_path: Path, clock: FakeClock, ledger: CompletionLedger) -> Iterator[JobQueue]:
    queue = JobQueue(db_path, clock=clock)
    try:
        yield queue
    finally:
        queue.close()


@pytest.fixture()
def registry() -> JobRegistry:
    sample_jobs.RECORDED_CALLS.clear()
    return sample_jobs.registry


@pytest.fixture()
def scatter_gather(
    queue: JobQueue,
    ledger: CompletionLedger,
    registry: JobRegistry,
    error_reporter: RecordingErrorReporter,
) -> ScatterGather:
    return ScatterGather(
        job_system=queue,
        ledger=ledger,
        registry=registry,
        error_reporter=error_reporter,
    )


@pytest.fixture()
def worker(
    queue: JobQueue,
    ledger: CompletionLedger,
    registry: JobRegistry,
    error_reporter: RecordingErrorReporter,
    scatter_gather: ScatterGather,
) -> JobWorker:
    return JobWorker(
        queue=queue,
        registry=registry,
        ledger=ledger,
        worker_id="worker-test",
        error_reporter=error_reporter,
        poll_interval_seconds=0,
    )
