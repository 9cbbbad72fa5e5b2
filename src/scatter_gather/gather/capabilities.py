"""Capability contracts that let a job type take part in a gather."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from scatter_gather.jobs.models import JobContext

logger = logging.getLogger(__name__)


@runtime_checkable
class CompletionReporting(Protocol):
    """A job that flips its own ledger row to completed once ``perform`` succeeds."""

    def register_completion_for_gathering(self, context: JobContext) -> int: ...


class ReportsCompletion:
    """Mixin implementing :class:`CompletionReporting` against the worker's ledger."""

    def register_completion_for_gathering(self, context: JobContext) -> int:
        updated = context.ledger.mark_completed(context.job_id)
        if updated > 0:
            logger.info(
                "Registered completion of %s id=%s since it will be gathered",
                context.job_class_name,
                context.job_id,
            )
        return updated
