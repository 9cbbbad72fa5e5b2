"""Durable scatter-gather join over background jobs."""

from scatter_gather.config import Settings
from scatter_gather.exceptions import (
    DependencyTimeoutError,
    EnvelopeEncodingError,
    ScatterGatherError,
    UnresolvedTargetError,
)
from scatter_gather.gather.capabilities import CompletionReporting, ReportsCompletion
from scatter_gather.gather.coordinator import GatherCoordinator, GatherJob
from scatter_gather.gather.envelope import ArgumentEnvelope, CallShape
from scatter_gather.gather.facade import DeferredInvocation, ScatterGather
from scatter_gather.gather.models import GatherConfig, GatherOutcome, GatherState
from scatter_gather.jobs.models import JobContext, JobHandle, JobStatus
from scatter_gather.jobs.queue import JobQueue
from scatter_gather.jobs.registry import JobRegistry
from scatter_gather.jobs.worker import JobWorker, WorkerRunSummary
from scatter_gather.ledger import CompletionLedger, CompletionStatus
from scatter_gather.reporting import ErrorReporter, LoggingErrorReporter

__version__ = "0.1.0"

__all__ = [
    "ArgumentEnvelope",
    "CallShape",
    "CompletionLedger",
    "CompletionReporting",
    "CompletionStatus",
    "DeferredInvocation",
    "DependencyTimeoutError",
    "EnvelopeEncodingError",
    "ErrorReporter",
    "GatherConfig",
    "GatherCoordinator",
    "GatherJob",
    "GatherOutcome",
    "GatherState",
    "JobContext",
    "JobHandle",
    "JobQueue",
    "JobRegistry",
    "JobStatus",
    "JobWorker",
    "LoggingErrorReporter",
    "ReportsCompletion",
    "ScatterGather",
    "ScatterGatherError",
    "Settings",
    "UnresolvedTargetError",
    "WorkerRunSummary",
    "__version__",
]
