"""Error observability hook.

Discarded jobs do not emit telemetry on their own, so code that raises a
terminal error pushes it through an :class:`ErrorReporter` first.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

logger = logging.getLogger(__name__)


class ErrorReporter(Protocol):
    def report(self, error: BaseException, *, context: Mapping[str, object]) -> None: ...


class LoggingErrorReporter:
    """Report errors to the ``scatter_gather.reporting`` logger."""

    def __init__(self, reporter_logger: logging.Logger | None = None) -> None:
        self.logger = reporter_logger or logger

    def report(self, error: BaseException, *, context: Mapping[str, object]) -> None:
        details = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        self.logger.error(
            "Reported %s: %s (%s)",
            type(error).__name__,
            error,
            details,
            exc_info=(type(error), error, error.__traceback__),
        )
