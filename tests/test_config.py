from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import allure
import pytest

from scatter_gather.config import GatherSettings, Settings, WorkerSettings
from scatter_gather.gather.models import GatherConfig

pytestmark = [
    allure.epic("Scatter Gather"),
    allure.feature("Configuration"),
]


def test_defaults_are_valid() -> None:
    settings = Settings()

    settings.validate()
    assert settings.gather_defaults() == GatherConfig()
    assert settings.ledger_retention == timedelta(days=7)
    assert settings.worker.worker_id


def test_from_env_reads_prefixed_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCATTER_GATHER_DB_PATH", "/tmp/sg.db")
    monkeypatch.setenv("SCATTER_GATHER_MAX_ATTEMPTS", "4")
    monkeypatch.setenv("SCATTER_GATHER_POLL_INTERVAL_SECONDS", "0.5")
    monkeypatch.setenv("SCATTER_GATHER_RETENTION_DAYS", "2")
    monkeypatch.setenv("SCATTER_GATHER_WORKER_ID", "worker-a")
    monkeypatch.setenv("SCATTER_GATHER_RETRY_JITTER", "off")

    settings = Settings.from_env()

    assert settings.db_path == Path("/tmp/sg.db")
    assert settings.gather_defaults() == GatherConfig(
        max_attempts=4,
        poll_interval=timedelta(seconds=0.5),
    )
    assert settings.ledger_retention == timedelta(days=2)
    assert settings.worker.worker_id == "worker-a"
    assert settings.worker.retry_jitter is False


def test_explicit_db_path_wins_over_env(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("SCATTER_GATHER_DB_PATH", "/tmp/ignored.db")

    assert Settings.from_env(db_path=tmp_path / "x.db").db_path == tmp_path / "x.db"


def test_from_env_rejects_invalid_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCATTER_GATHER_RETRY_JITTER", "sometimes")

    with pytest.raises(ValueError, match="SCATTER_GATHER_RETRY_JITTER"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(gather=GatherSettings(max_attempts=0)), "MAX_ATTEMPTS"),
        (Settings(gather=GatherSettings(poll_interval_seconds=-1)), "POLL_INTERVAL_SECONDS"),
        (Settings(gather=GatherSettings(ledger_retention_days=-1)), "RETENTION_DAYS"),
        (Settings(worker=WorkerSettings(retry_max_seconds=-1)), "RETRY_MAX_SECONDS"),
        (Settings(sqlite_busy_timeout_ms=0), "BUSY_TIMEOUT_MS"),
    ],
)
def test_validate_rejects_out_of_range_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()
