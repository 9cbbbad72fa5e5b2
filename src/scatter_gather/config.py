"""Runtime configuration for the ledger, gather defaults and the worker."""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from scatter_gather.gather.models import GatherConfig


@dataclass(slots=True)
class GatherSettings:
    """Defaults applied to every gather unless overridden per call."""

    max_attempts: int = 10
    poll_interval_seconds: float = 2.0
    ledger_retention_days: int = 7


@dataclass(slots=True)
class WorkerSettings:
    """Queue worker settings."""

    worker_id: str = field(default_factory=lambda: _default_worker_id())
    poll_interval_seconds: float = 1.0
    retry_max_seconds: float = 300.0
    retry_jitter: bool = True


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    db_path: Path = Path(".scatter_gather.db")
    sqlite_busy_timeout_ms: int = 5000
    gather: GatherSettings = field(default_factory=GatherSettings)
    worker: WorkerSettings = field(default_factory=WorkerSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("SCATTER_GATHER_DB_PATH", ".scatter_gather.db")),
            sqlite_busy_timeout_ms=int(os.getenv("SCATTER_GATHER_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            gather=GatherSettings(
                max_attempts=int(os.getenv("SCATTER_GATHER_MAX_ATTEMPTS", "10")),
                poll_interval_seconds=float(
                    os.getenv("SCATTER_GATHER_POLL_INTERVAL_SECONDS", "2.0"),
                ),
                ledger_retention_days=int(os.getenv("SCATTER_GATHER_RETENTION_DAYS", "7")),
            ),
            worker=WorkerSettings(
                worker_id=os.getenv("SCATTER_GATHER_WORKER_ID", "") or _default_worker_id(),
                poll_interval_seconds=float(
                    os.getenv("SCATTER_GATHER_WORKER_POLL_INTERVAL_SECONDS", "1.0"),
                ),
                retry_max_seconds=float(os.getenv("SCATTER_GATHER_RETRY_MAX_SECONDS", "300")),
                retry_jitter=_env_bool("SCATTER_GATHER_RETRY_JITTER", default=True),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the runtime cannot honor."""

        if self.gather.max_attempts < 1:
            raise ValueError("SCATTER_GATHER_MAX_ATTEMPTS must be >= 1.")
        if self.gather.poll_interval_seconds < 0:
            raise ValueError("SCATTER_GATHER_POLL_INTERVAL_SECONDS must be >= 0.")
        if self.gather.ledger_retention_days < 0:
            raise ValueError("SCATTER_GATHER_RETENTION_DAYS must be >= 0.")
        if self.worker.poll_interval_seconds < 0:
            raise ValueError("SCATTER_GATHER_WORKER_POLL_INTERVAL_SECONDS must be >= 0.")
        if self.worker.retry_max_seconds < 0:
            raise ValueError("SCATTER_GATHER_RETRY_MAX_SECONDS must be >= 0.")
        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("SCATTER_GATHER_SQLITE_BUSY_TIMEOUT_MS must be > 0.")

    def gather_defaults(self) -> GatherConfig:
        return GatherConfig(
            max_attempts=self.gather.max_attempts,
            poll_interval=timedelta(seconds=self.gather.poll_interval_seconds),
        )

    @property
    def ledger_retention(self) -> timedelta:
        return timedelta(days=self.gather.ledger_retention_days)


def _default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
