"""Domain models for the durable job queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from scatter_gather.gather.envelope import ArgumentEnvelope
    from scatter_gather.jobs.registry import JobRegistry
    from scatter_gather.ledger import CompletionLedger
    from scatter_gather.reporting import ErrorReporter


class JobStatus(str, Enum):
    """Durable job lifecycle states."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass(frozen=True, slots=True)
class JobHandle:
    """Identity of one dispatched job invocation."""

    job_id: str
    job_class_name: str


@dataclass(slots=True)
class QueuedJobView:
    """Readable queued job for CLI and worker logic."""

    job_id: str
    job_class_name: str
    payload: dict[str, Any]
    status: JobStatus
    attempt: int
    run_after: datetime
    started_at: datetime | None
    finished_at: datetime | None
    worker_id: str | None
    error_summary: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def handle(self) -> JobHandle:
        return JobHandle(job_id=self.job_id, job_class_name=self.job_class_name)


class JobSystem(Protocol):
    """Anything that can schedule a deferred call for later execution."""

    def schedule(
        self,
        envelope: ArgumentEnvelope,
        *,
        delay: timedelta | None = None,
    ) -> JobHandle: ...


@dataclass(slots=True)
class JobContext:
    """Runtime collaborators injected into a job instance before ``perform``."""

    job_id: str
    job_class_name: str
    attempt: int
    job_system: JobSystem
    registry: JobRegistry
    ledger: CompletionLedger
    error_reporter: ErrorReporter
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class JobPolicy:
    """Retry/discard policy read from a job class."""

    max_attempts: int = 1
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    discard_on: tuple[type[BaseException], ...] = ()
    retry_wait_seconds: float = 3.0

    @classmethod
    def for_job_class(cls, job_class: type) -> JobPolicy:
        defaults = cls()
        return cls(
            max_attempts=max(1, int(getattr(job_class, "max_attempts", defaults.max_attempts))),
            retry_on=tuple(getattr(job_class, "retry_on", defaults.retry_on)),
            discard_on=tuple(getattr(job_class, "discard_on", defaults.discard_on)),
            retry_wait_seconds=float(
                getattr(job_class, "retry_wait_seconds", defaults.retry_wait_seconds),
            ),
        )
