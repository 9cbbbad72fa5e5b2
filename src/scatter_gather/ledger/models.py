"""Domain models for the completion ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CompletionStatus(str, Enum):
    """Per-job completion state as seen by the coordinator.

    ``UNKNOWN`` is never stored; it marks ids that have no ledger row.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class LedgerRowView:
    """Readable ledger row for CLI inspection."""

    job_id: str
    job_class_name: str | None
    status: CompletionStatus
    created_at: datetime
    updated_at: datetime
