"""Entry point: register scattered jobs, then defer the call that joins them."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from scatter_gather.gather.coordinator import GATHER_JOB_NAME, GatherCoordinator, GatherJob
from scatter_gather.gather.envelope import ArgumentEnvelope
from scatter_gather.gather.models import GatherConfig, GatherState
from scatter_gather.jobs.models import JobHandle, JobSystem
from scatter_gather.jobs.registry import JobRegistry
from scatter_gather.ledger import CompletionLedger
from scatter_gather.reporting import ErrorReporter, LoggingErrorReporter

if TYPE_CHECKING:
    from scatter_gather.config import Settings

logger = logging.getLogger(__name__)


class DeferredInvocation:
    """Captures the target call and schedules the first coordinator poll."""

    def __init__(
        self,
        *,
        coordinator: GatherCoordinator,
        target_name: str,
        job_ids: tuple[str, ...],
        config: GatherConfig,
    ) -> None:
        self._coordinator = coordinator
        self.target_name = target_name
        self.job_ids = job_ids
        self.config = config

    def perform_later(self, *args: Any, **kwargs: Any) -> JobHandle:
        """Enqueue the gather job; the target runs once every dependency completed."""

        state = GatherState(
            wait_for_job_ids=self.job_ids,
            target_job=ArgumentEnvelope(target_name=self.target_name, args=args, kwargs=kwargs),
            config=self.config,
            # The first poll is itself an attempt.
            remaining_attempts=self.config.max_attempts - 1,
        )
        logger.info(
            "Enqueueing gather job waiting for %s to run a %s after",
            list(self.job_ids),
            self.target_name,
        )
        return self._coordinator.schedule_poll(state)


class ScatterGather:
    """Scatter/gather facade bound to one job system, ledger and registry."""

    def __init__(
        self,
        *,
        job_system: JobSystem,
        ledger: CompletionLedger,
        registry: JobRegistry,
        defaults: GatherConfig | None = None,
        error_reporter: ErrorReporter | None = None,
    ) -> None:
        self.job_system = job_system
        self.ledger = ledger
        self.registry = registry
        self.defaults = defaults or GatherConfig()
        self.error_reporter = error_reporter or LoggingErrorReporter()
        registry.register(GatherJob, name=GATHER_JOB_NAME)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        job_system: JobSystem,
        ledger: CompletionLedger,
        registry: JobRegistry,
        error_reporter: ErrorReporter | None = None,
    ) -> ScatterGather:
        """Build a facade whose gather defaults come from ``SCATTER_GATHER_*`` settings."""

        return cls(
            job_system=job_system,
            ledger=ledger,
            registry=registry,
            defaults=settings.gather_defaults(),
            error_reporter=error_reporter,
        )

    def scatter(self, job_class: type, *args: Any, **kwargs: Any) -> JobHandle:
        """Dispatch one independent job through the job system."""

        envelope = ArgumentEnvelope(
            target_name=self.registry.name_for(job_class),
            args=args,
            kwargs=kwargs,
        )
        return self.job_system.schedule(envelope)

    def gather(self, target: type, *jobs: Any, **config_overrides: Any) -> DeferredInvocation:
        """Wait for ``jobs`` (flat or nested sequences of handles) before running ``target``.

        Ledger rows are inserted before this returns, so a dependency that
        finishes before the first poll is still observed as completed.
        """

        target_name = self.registry.name_for(target)
        config = self.defaults.merged(config_overrides)
        handles = list(_flatten(jobs))
        job_ids = tuple(dict.fromkeys(_job_id(handle) for handle in handles))
        class_names = {_job_id(handle): _job_class_name(handle) for handle in handles}
        self.ledger.register(job_ids, class_names)
        return DeferredInvocation(
            coordinator=GatherCoordinator(
                ledger=self.ledger,
                job_system=self.job_system,
                registry=self.registry,
                error_reporter=self.error_reporter,
            ),
            target_name=target_name,
            job_ids=job_ids,
            config=config,
        )


def _flatten(items: Iterable[Any]) -> Iterator[Any]:
    for item in items:
        if isinstance(item, list | tuple | set | frozenset):
            yield from _flatten(item)
        else:
            yield item


def _job_id(handle: Any) -> str:
    job_id = getattr(handle, "job_id", None)
    if not isinstance(job_id, str) or not job_id:
        raise TypeError(f"Cannot gather {handle!r}: it has no job_id.")
    return job_id


def _job_class_name(handle: Any) -> str:
    name = getattr(handle, "job_class_name", None)
    return name if isinstance(name, str) else type(handle).__name__
