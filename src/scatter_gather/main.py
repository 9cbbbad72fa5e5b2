"""CLI entrypoint for scatter-gather."""

from pathlib import Path

import rich_click as click

from scatter_gather import __version__
from scatter_gather.controllers import (
    DbInitCommand,
    JobsListCommand,
    LedgerListCommand,
    LedgerPruneCommand,
    LedgerStatsCommand,
    ScatterGatherCliController,
    WorkerCommand,
)
from scatter_gather.jobs.models import JobStatus
from scatter_gather.ledger import CompletionStatus

click.rich_click.USE_MARKDOWN = True
CONTROLLER = ScatterGatherCliController()
LEDGER_STATUSES = [CompletionStatus.PENDING.value, CompletionStatus.COMPLETED.value]


@click.group()
@click.version_option(version=__version__, prog_name="scatter-gather")
def scatter_gather() -> None:
    """Durable scatter-gather join for background jobs."""


@scatter_gather.group()
def db() -> None:
    """Database commands."""


@db.command("init")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def db_init(db_path: Path | None) -> None:
    """Apply migrations up to head."""

    _emit_lines(CONTROLLER.init_db(DbInitCommand(db_path=db_path)))


@scatter_gather.group()
def ledger() -> None:
    """Completion ledger commands."""


@ledger.command("stats")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def ledger_stats(db_path: Path | None) -> None:
    """Show ledger row counts per status."""

    _emit_lines(CONTROLLER.ledger_stats(LedgerStatsCommand(db_path=db_path)))


@ledger.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--status", type=click.Choice(LEDGER_STATUSES), default=None, help="Status filter.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="How many latest rows to display.",
)
def ledger_list(db_path: Path | None, status: str | None, limit: int) -> None:
    """List ledger rows, newest first."""

    _emit_lines(
        CONTROLLER.ledger_list(LedgerListCommand(db_path=db_path, status=status, limit=limit)),
    )


@ledger.command("prune")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--older-than-days",
    type=click.IntRange(min=0),
    default=None,
    help="Override the retention window (SCATTER_GATHER_RETENTION_DAYS).",
)
def ledger_prune(db_path: Path | None, older_than_days: int | None) -> None:
    """Delete rows left behind by abandoned gathers."""

    _emit_lines(
        CONTROLLER.ledger_prune(
            LedgerPruneCommand(db_path=db_path, older_than_days=older_than_days),
        ),
    )


@scatter_gather.group()
def jobs() -> None:
    """Job queue commands."""


@jobs.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in JobStatus]),
    default=None,
    help="Status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="How many latest jobs to display.",
)
def jobs_list(db_path: Path | None, status: str | None, limit: int) -> None:
    """List queued jobs, newest first."""

    _emit_lines(CONTROLLER.jobs_list(JobsListCommand(db_path=db_path, status=status, limit=limit)))


@scatter_gather.group()
def worker() -> None:
    """Worker commands."""


@worker.command("run")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--registry",
    "registry_ref",
    required=True,
    help="Job registry to execute, as `package.module:attribute`.",
)
@click.option("--once", is_flag=True, default=False, help="Process at most one job.")
@click.option("--max-jobs", type=click.IntRange(min=1), default=None, help="Stop after N jobs.")
@click.option(
    "--max-idle-polls",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Consecutive empty polls before exiting.",
)
def worker_run(
    db_path: Path | None,
    registry_ref: str,
    once: bool,
    max_jobs: int | None,
    max_idle_polls: int,
) -> None:
    """Run queued jobs, including gather polls."""

    try:
        lines = CONTROLLER.run_worker(
            WorkerCommand(
                db_path=db_path,
                registry_ref=registry_ref,
                once=once,
                max_jobs=max_jobs,
                max_idle_polls=max_idle_polls,
            ),
        )
    except (ImportError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    scatter_gather()
