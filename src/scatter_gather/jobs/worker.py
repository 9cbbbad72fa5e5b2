"""Queue worker that executes registered job types."""

from __future__ import annotations

import logging
import random
import signal
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from scatter_gather.exceptions import EnvelopeEncodingError, UnresolvedTargetError
from scatter_gather.gather.capabilities import CompletionReporting
from scatter_gather.gather.envelope import ArgumentEnvelope
from scatter_gather.jobs.models import JobContext, JobPolicy, QueuedJobView
from scatter_gather.jobs.queue import JobQueue
from scatter_gather.jobs.registry import JobRegistry
from scatter_gather.ledger import CompletionLedger
from scatter_gather.reporting import ErrorReporter, LoggingErrorReporter

logger = logging.getLogger(__name__)

FATAL_ERRORS: tuple[type[BaseException], ...] = (UnresolvedTargetError, EnvelopeEncodingError)


class JobOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    RETRIED = "retried"
    FAILED = "failed"
    DISCARDED = "discarded"


@dataclass(slots=True)
class WorkerRunSummary:
    """Aggregate worker counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    discarded: int = 0
    idle_polls: int = 0

    def add(self, other: WorkerRunSummary) -> None:
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.retried += other.retried
        self.discarded += other.discarded
        self.idle_polls += other.idle_polls

    def count(self, outcome: JobOutcome) -> None:
        self.processed += 1
        if outcome is JobOutcome.SUCCEEDED:
            self.succeeded += 1
        elif outcome is JobOutcome.RETRIED:
            self.retried += 1
        elif outcome is JobOutcome.DISCARDED:
            self.discarded += 1
        else:
            self.failed += 1


class JobWorker:
    """Consumes queued jobs and runs them with their class retry policy."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue: JobQueue,
        registry: JobRegistry,
        ledger: CompletionLedger,
        worker_id: str,
        error_reporter: ErrorReporter | None = None,
        poll_interval_seconds: float = 1.0,
        retry_max_seconds: float = 300.0,
        retry_jitter: bool = False,
    ) -> None:
        self.queue = queue
        self.registry = registry
        self.ledger = ledger
        self.worker_id = worker_id
        self.error_reporter = error_reporter or LoggingErrorReporter()
        self.poll_interval_seconds = poll_interval_seconds
        self.retry_max_seconds = retry_max_seconds
        self.retry_jitter = retry_jitter
        self._random = random.Random()  # noqa: S311
        self._stop_requested = False

    def run_once(self) -> WorkerRunSummary:
        """Process at most one ready job."""

        summary = WorkerRunSummary()
        if self._stop_requested:
            summary.idle_polls = 1
            return summary

        job = self.queue.claim_next_ready_job(worker_id=self.worker_id)
        if job is None:
            summary.idle_polls = 1
            return summary
        summary.count(self.execute(job))
        return summary

    def drain(self) -> WorkerRunSummary:
        """Run every job that is ready right now.

        Jobs enqueued while draining (including retries and re-polls) wait for
        the next call.
        """

        summary = WorkerRunSummary()
        for job_id in self.queue.ready_job_ids():
            if self._stop_requested:
                break
            job = self.queue.claim_job(job_id=job_id, worker_id=self.worker_id)
            if job is None:
                continue
            summary.count(self.execute(job))
        if summary.processed == 0:
            summary.idle_polls = 1
        return summary

    def run_loop(
        self,
        *,
        max_jobs: int | None = None,
        max_idle_polls: int = 1,
    ) -> WorkerRunSummary:
        """Run worker loop until queue is idle or max_jobs reached.

        Args:
            max_jobs: Stop after processing this many jobs (None = unlimited).
            max_idle_polls: How many consecutive empty polls before exiting.
                Gathers poll on a delay, so keep this above one when a worker
                should outlive pending gathers.
        """

        aggregate = WorkerRunSummary()
        consecutive_idle = 0
        with self._signal_handlers():
            while True:
                if self._stop_requested:
                    return aggregate
                if max_jobs is not None and aggregate.processed >= max_jobs:
                    return aggregate

                summary = self.run_once()
                aggregate.add(summary)

                if summary.processed == 0:
                    consecutive_idle += 1
                    if consecutive_idle >= max_idle_polls:
                        return aggregate
                    self._sleep_with_stop(self.poll_interval_seconds)
                    continue
                consecutive_idle = 0

    def execute(self, job: QueuedJobView) -> JobOutcome:
        """Run one claimed job and persist its outcome."""

        try:
            job_class = self.registry.resolve(job.job_class_name)
            envelope = ArgumentEnvelope.from_payload(job.payload)
        except FATAL_ERRORS as error:
            return self._fail(job, error)

        policy = JobPolicy.for_job_class(job_class)
        context = JobContext(
            job_id=job.job_id,
            job_class_name=job.job_class_name,
            attempt=job.attempt,
            job_system=self.queue,
            registry=self.registry,
            ledger=self.ledger,
            error_reporter=self.error_reporter,
        )
        try:
            instance = job_class()
            instance.context = context
            envelope.invoke(instance.perform)
            # Completion hook errors go through the same retry policy as perform errors.
            if isinstance(instance, CompletionReporting):
                instance.register_completion_for_gathering(context)
        except Exception as error:  # noqa: BLE001
            return self._handle_error(job=job, policy=policy, error=error)

        self.queue.complete_job(job_id=job.job_id)
        logger.debug("Job %s id=%s succeeded", job.job_class_name, job.job_id)
        return JobOutcome.SUCCEEDED

    def request_stop(self) -> None:
        self._stop_requested = True

    def _handle_error(
        self,
        *,
        job: QueuedJobView,
        policy: JobPolicy,
        error: Exception,
    ) -> JobOutcome:
        summary = _error_summary(error)
        if isinstance(error, policy.discard_on):
            logger.warning(
                "Discarding %s id=%s after %s",
                job.job_class_name,
                job.job_id,
                summary,
            )
            self.queue.discard_job(job_id=job.job_id, error_summary=summary)
            return JobOutcome.DISCARDED

        retryable = isinstance(error, policy.retry_on) and not isinstance(error, FATAL_ERRORS)
        if retryable and job.attempt < policy.max_attempts:
            delay_seconds = self._compute_retry_delay(policy=policy, retry_number=job.attempt)
            logger.info(
                "Retrying %s id=%s in %.2fs (attempt %d/%d): %s",
                job.job_class_name,
                job.job_id,
                delay_seconds,
                job.attempt,
                policy.max_attempts,
                summary,
            )
            self.queue.schedule_retry(
                job_id=job.job_id,
                run_after=self.queue.clock() + timedelta(seconds=delay_seconds),
                error_summary=summary,
            )
            return JobOutcome.RETRIED

        return self._fail(job, error)

    def _fail(self, job: QueuedJobView, error: BaseException) -> JobOutcome:
        summary = _error_summary(error)
        logger.error("Job %s id=%s failed: %s", job.job_class_name, job.job_id, summary)
        self.queue.fail_job(job_id=job.job_id, error_summary=summary)
        self.error_reporter.report(
            error,
            context={
                "job_id": job.job_id,
                "job_class_name": job.job_class_name,
                "attempt": job.attempt,
            },
        )
        return JobOutcome.FAILED

    def _compute_retry_delay(self, *, policy: JobPolicy, retry_number: int) -> float:
        max_delay = min(
            self.retry_max_seconds,
            policy.retry_wait_seconds * (2 ** max(retry_number - 1, 0)),
        )
        if self.retry_jitter:
            return self._random.uniform(0, max_delay)
        return max_delay

    def _sleep_with_stop(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self._stop_requested and time.monotonic() < deadline:
            time.sleep(min(0.1, max(0.0, deadline - time.monotonic())))

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            logger.info("Received %s, stopping after the current job.", name)
            self.request_stop()

        installed = False
        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
            installed = True
        except ValueError:
            # Signal handlers can only be installed in main thread.
            pass
        try:
            yield
        finally:
            if installed:
                signal.signal(signal.SIGINT, original_sigint)
                signal.signal(signal.SIGTERM, original_sigterm)


def _error_summary(error: BaseException) -> str:
    message = str(error).strip()
    return f"{type(error).__name__}: {message}" if message else type(error).__name__
