"""Durable completion ledger for scattered jobs."""

from scatter_gather.ledger.models import CompletionStatus, LedgerRowView
from scatter_gather.ledger.repository import DEFAULT_RETENTION, CompletionLedger

__all__ = ["DEFAULT_RETENTION", "CompletionLedger", "CompletionStatus", "LedgerRowView"]
