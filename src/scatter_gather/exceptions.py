"""Domain errors raised by the gather machinery."""

from __future__ import annotations

import json
from collections.abc import Mapping


class ScatterGatherError(Exception):
    """Base class for scatter-gather failures."""


class DependencyTimeoutError(ScatterGatherError):
    """Gather exhausted its polling attempts before every dependency completed.

    Terminal: the coordinator job that raises it is discarded, not retried.
    """

    def __init__(self, max_attempts: int, dependency_status: Mapping[str, str]) -> None:
        self.max_attempts = max_attempts
        self.dependency_status = dict(dependency_status)
        super().__init__(
            f"Gather failed after {max_attempts} attempts. Dependencies:\n\n"
            f"{json.dumps(self.dependency_status, indent=2, sort_keys=True)}",
        )


class UnresolvedTargetError(ScatterGatherError):
    """A job type name does not resolve to a registered job class."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Job type is not registered: {name!r}")


class EnvelopeEncodingError(ScatterGatherError, ValueError):
    """Deferred call arguments cannot be encoded to or decoded from a payload."""
