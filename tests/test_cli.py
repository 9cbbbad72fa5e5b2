from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner
from conftest import FakeClock
from sample_jobs import TouchingJob

from scatter_gather import __version__
from scatter_gather.gather.envelope import ArgumentEnvelope
from scatter_gather.gather.facade import ScatterGather
from scatter_gather.jobs.queue import JobQueue
from scatter_gather.jobs.registry import JobRegistry
from scatter_gather.ledger import CompletionLedger
from scatter_gather.main import scatter_gather

pytestmark = [
    allure.epic("Scatter Gather"),
    allure.feature("CLI"),
]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCATTER_GATHER_WORKER_ID", "cli-worker")
    monkeypatch.setenv("SCATTER_GATHER_WORKER_POLL_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("SCATTER_GATHER_RETRY_JITTER", "false")


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(scatter_gather, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_db_init_applies_migrations(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"

    result = CliRunner().invoke(scatter_gather, ["db", "init", "--db-path", str(db_path)])

    assert result.exit_code == 0, result.output
    assert f"Schema is at head: {db_path}" in result.output
    assert db_path.exists()


def test_ledger_commands_on_empty_database(tmp_path: Path) -> None:
    runner = CliRunner()
    db_args = ["--db-path", str(tmp_path / "cli.db")]

    stats = runner.invoke(scatter_gather, ["ledger", "stats", *db_args])
    listing = runner.invoke(scatter_gather, ["ledger", "list", *db_args])
    jobs = runner.invoke(scatter_gather, ["jobs", "list", *db_args])

    assert stats.exit_code == 0, stats.output
    assert "Ledger rows: total=0 pending=0 completed=0" in stats.output
    assert "No ledger rows." in listing.output
    assert "No jobs." in jobs.output


def test_ledger_list_and_prune(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    old_clock = FakeClock(datetime.now(tz=UTC) - timedelta(days=30))
    ledger = CompletionLedger(db_path, clock=old_clock)
    ledger.init_schema()
    ledger.register(["stale"], {"stale": "TouchingJob"})
    ledger.close()
    runner = CliRunner()

    listing = runner.invoke(
        scatter_gather,
        ["ledger", "list", "--db-path", str(db_path), "--status", "pending"],
    )
    pruned = runner.invoke(scatter_gather, ["ledger", "prune", "--db-path", str(db_path)])
    stats = runner.invoke(scatter_gather, ["ledger", "stats", "--db-path", str(db_path)])

    assert "stale status=pending class=TouchingJob" in listing.output
    assert pruned.exit_code == 0, pruned.output
    assert "Pruned ledger rows: 1" in pruned.output
    assert "total=0" in stats.output


def test_worker_runs_scattered_jobs_and_gather(
    tmp_path: Path,
    registry: JobRegistry,
) -> None:
    db_path = tmp_path / "cli.db"
    ledger = CompletionLedger(db_path)
    ledger.init_schema()
    queue = JobQueue(db_path)
    facade = ScatterGather(job_system=queue, ledger=ledger, registry=registry)
    handles = [facade.scatter(TouchingJob, str(tmp_path / f"dep-{i}")) for i in range(2)]
    facade.gather(TouchingJob, handles, poll_interval=0).perform_later(str(tmp_path / "target"))
    queue.close()
    ledger.close()

    result = CliRunner().invoke(
        scatter_gather,
        [
            "worker",
            "run",
            "--db-path",
            str(db_path),
            "--registry",
            "sample_jobs:registry",
            "--max-idle-polls",
            "2",
        ],
    )

    assert result.exit_code == 0, result.output
    assert (
        "Worker summary: processed=4 succeeded=4 failed=0 retried=0 discarded=0 idle_polls=2"
        in result.output
    )
    assert (tmp_path / "target").read_bytes() == b"Y"

    jobs = CliRunner().invoke(
        scatter_gather,
        ["jobs", "list", "--db-path", str(db_path), "--status", "succeeded"],
    )
    assert jobs.output.count("status=succeeded") == 4
    assert "scatter_gather.GatherJob" in jobs.output


def test_worker_once_processes_a_single_job(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    queue = JobQueue(db_path)
    queue.init_schema()
    for i in range(2):
        queue.schedule(ArgumentEnvelope("TouchingJob", args=(str(tmp_path / f"out-{i}"),)))
    queue.close()

    result = CliRunner().invoke(
        scatter_gather,
        [
            "worker",
            "run",
            "--db-path",
            str(db_path),
            "--registry",
            "sample_jobs:registry",
            "--once",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "processed=1 succeeded=1" in result.output


@pytest.mark.parametrize(
    ("reference", "message"),
    [
        ("missing_module_for_tests:registry", "No module named"),
        ("sample_jobs:RECORDED_CALLS", "is not a JobRegistry"),
        ("sample_jobs", "must look like"),
    ],
)
def test_worker_rejects_bad_registry_reference(
    tmp_path: Path,
    reference: str,
    message: str,
) -> None:
    result = CliRunner().invoke(
        scatter_gather,
        ["worker", "run", "--db-path", str(tmp_path / "cli.db"), "--registry", reference],
    )

    assert result.exit_code == 1
    assert message in result.output
