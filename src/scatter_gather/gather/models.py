"""Gather configuration and the state carried between coordinator invocations."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import Any

from scatter_gather.gather.envelope import ArgumentEnvelope

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_POLL_INTERVAL = timedelta(seconds=2)


class GatherOutcome(str, Enum):
    """Result of one coordinator invocation that did not raise."""

    POLLING = "polling"
    RESOLVED = "resolved"


@dataclass(frozen=True, slots=True)
class GatherConfig:
    """Polling limits for one gather operation.

    Keys the coordinator does not know are kept in ``extras`` and ignored.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    poll_interval: timedelta = DEFAULT_POLL_INTERVAL
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ValueError(f"max_attempts must be an integer, got {self.max_attempts!r}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.poll_interval.total_seconds() < 0:
            raise ValueError(f"poll_interval must be >= 0, got {self.poll_interval}")

    def merged(self, overrides: Mapping[str, Any]) -> GatherConfig:
        """Return a copy with caller overrides applied."""

        changes: dict[str, Any] = {}
        extras = dict(self.extras)
        for key, value in overrides.items():
            if key == "max_attempts":
                changes["max_attempts"] = value
            elif key == "poll_interval":
                changes["poll_interval"] = _as_timedelta(value)
            else:
                logger.debug("Ignoring unknown gather option %s=%r", key, value)
                extras[key] = value
        _check_json_safe(extras)
        return replace(self, extras=extras, **changes)

    def to_payload(self) -> dict[str, Any]:
        return {
            **self.extras,
            "max_attempts": self.max_attempts,
            "poll_interval_seconds": self.poll_interval.total_seconds(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> GatherConfig:
        known = {"max_attempts", "poll_interval_seconds"}
        return cls(
            max_attempts=int(payload.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
            poll_interval=timedelta(
                seconds=float(
                    payload.get("poll_interval_seconds", DEFAULT_POLL_INTERVAL.total_seconds()),
                ),
            ),
            extras={key: value for key, value in payload.items() if key not in known},
        )


@dataclass(frozen=True, slots=True)
class GatherState:
    """Everything one coordinator invocation needs; serialized into its job payload.

    ``wait_for_job_ids`` stays the full original set for the whole gather.
    """

    wait_for_job_ids: tuple[str, ...]
    target_job: ArgumentEnvelope
    config: GatherConfig
    remaining_attempts: int

    def next_attempt(self) -> GatherState:
        return replace(self, remaining_attempts=max(self.remaining_attempts - 1, 0))

    def to_payload(self) -> dict[str, Any]:
        """Keyword arguments for the coordinator job's ``perform``."""

        return {
            "wait_for_job_ids": list(self.wait_for_job_ids),
            "target_job": self.target_job.to_payload(),
            "gather_config": self.config.to_payload(),
            "remaining_attempts": self.remaining_attempts,
        }

    @classmethod
    def from_payload(
        cls,
        *,
        wait_for_job_ids: list[str],
        target_job: Mapping[str, Any],
        gather_config: Mapping[str, Any],
        remaining_attempts: int,
    ) -> GatherState:
        return cls(
            wait_for_job_ids=tuple(wait_for_job_ids),
            target_job=ArgumentEnvelope.from_payload(target_job),
            config=GatherConfig.from_payload(gather_config),
            remaining_attempts=int(remaining_attempts),
        )


def _check_json_safe(extras: Mapping[str, Any]) -> None:
    # Extras travel in every coordinator payload.
    try:
        json.dumps(dict(extras), allow_nan=False)
    except (TypeError, ValueError) as error:
        raise ValueError(f"Gather options must be JSON-serializable: {error}") from error


def _as_timedelta(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"poll_interval must be seconds or a timedelta, got {value!r}")
    return timedelta(seconds=value)
