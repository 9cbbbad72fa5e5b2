"""Polling state machine that joins scattered jobs.

Every invocation re-reads the ledger for the full original id set and ends in
exactly one of: dispatching the target (resolved), raising
``DependencyTimeoutError`` (timed out), or scheduling itself again (polling).
Nothing is held in memory between invocations; the whole state travels in the
job payload as a :class:`GatherState`.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from datetime import timedelta

from scatter_gather.exceptions import DependencyTimeoutError
from scatter_gather.gather.capabilities import ReportsCompletion
from scatter_gather.gather.envelope import ArgumentEnvelope
from scatter_gather.gather.models import GatherOutcome, GatherState
from scatter_gather.jobs.models import JobContext, JobHandle, JobSystem
from scatter_gather.jobs.registry import JobRegistry
from scatter_gather.ledger import CompletionLedger, CompletionStatus
from scatter_gather.reporting import ErrorReporter

logger = logging.getLogger(__name__)

GATHER_JOB_NAME = "scatter_gather.GatherJob"


class GatherCoordinator:
    """Decides resolve / time out / keep polling for one gather state."""

    def __init__(
        self,
        *,
        ledger: CompletionLedger,
        job_system: JobSystem,
        registry: JobRegistry,
        error_reporter: ErrorReporter,
    ) -> None:
        self.ledger = ledger
        self.job_system = job_system
        self.registry = registry
        self.error_reporter = error_reporter

    def advance(self, state: GatherState) -> GatherOutcome:
        statuses = self.ledger.collect_statuses(state.wait_for_job_ids)
        logger.info(
            "Gathered completions %s for %s",
            tally_in_logger_format(statuses),
            list(state.wait_for_job_ids),
        )

        if all(status is CompletionStatus.COMPLETED for status in statuses.values()):
            logger.info("Dependencies done, enqueueing %s", state.target_job.target_name)
            self.dispatch_target(state.target_job)
            self.ledger.delete(state.wait_for_job_ids)
            return GatherOutcome.RESOLVED

        if state.remaining_attempts < 1:
            max_attempts = state.config.max_attempts
            error = DependencyTimeoutError(
                max_attempts,
                {job_id: status.value for job_id, status in statuses.items()},
            )
            logger.warning("Failed to gather dependencies after %d attempts", max_attempts)
            self.ledger.delete(state.wait_for_job_ids)
            # The worker discards this error silently, so report it here.
            self.error_reporter.report(
                error,
                context={
                    "target": state.target_job.target_name,
                    "wait_for_job_ids": list(state.wait_for_job_ids),
                },
            )
            raise error

        self.schedule_poll(state.next_attempt(), delay=state.config.poll_interval)
        return GatherOutcome.POLLING

    def dispatch_target(self, target_job: ArgumentEnvelope) -> JobHandle:
        self.registry.resolve(target_job.target_name)
        return self.job_system.schedule(target_job)

    def schedule_poll(
        self,
        state: GatherState,
        *,
        delay: timedelta | None = None,
    ) -> JobHandle:
        return self.job_system.schedule(
            ArgumentEnvelope(target_name=GATHER_JOB_NAME, kwargs=state.to_payload()),
            delay=delay,
        )


class GatherJob(ReportsCompletion):
    """Job type running one coordinator invocation.

    The target is dispatched before the ledger rows are deleted, so a retry after a
    failed delete dispatches it again. Targets get at-least-once delivery.
    """

    max_attempts = 3
    discard_on = (DependencyTimeoutError,)
    retry_wait_seconds = 1.0

    context: JobContext

    def perform(
        self,
        *,
        wait_for_job_ids: list[str],
        target_job: Mapping[str, object],
        gather_config: Mapping[str, object],
        remaining_attempts: int,
    ) -> GatherOutcome:
        state = GatherState.from_payload(
            wait_for_job_ids=wait_for_job_ids,
            target_job=target_job,
            gather_config=gather_config,
            remaining_attempts=remaining_attempts,
        )
        coordinator = GatherCoordinator(
            ledger=self.context.ledger,
            job_system=self.context.job_system,
            registry=self.context.registry,
            error_reporter=self.context.error_reporter,
        )
        return coordinator.advance(state)


def tally_in_logger_format(statuses: Mapping[str, CompletionStatus]) -> str:
    tally = Counter(status.value for status in statuses.values())
    return " ".join(f"{status}={count}" for status, count in tally.items())
