import sqlite3
from pathlib import Path

import allure

from scatter_gather.ledger import CompletionLedger

pytestmark = [
    allure.epic("Scatter Gather"),
    allure.feature("Schema Migrations"),
]


def test_alembic_schema_is_initialized_to_head(tmp_path: Path) -> None:
    db_path = tmp_path / "migrations.db"
    ledger = CompletionLedger(db_path)
    ledger.init_schema()
    ledger.init_schema()
    ledger.close()

    connection = sqlite3.connect(db_path)
    try:
        version = connection.execute("SELECT version_num FROM alembic_version").fetchall()
        tables = connection.execute(
            """
            SELECT name
            FROM sqlite_master
            WHERE type = 'table'
              AND name IN ('scatter_gather_completions', 'queued_jobs')
            ORDER BY name
            """
        ).fetchall()
        indexes = connection.execute(
            """
            SELECT name
            FROM sqlite_master
            WHERE type = 'index'
              AND tbl_name = 'scatter_gather_completions'
              AND name LIKE 'ix_%'
            ORDER BY name
            """
        ).fetchall()
    finally:
        connection.close()

    assert version == [("20260301_0002",)]
    assert [row[0] for row in tables] == ["queued_jobs", "scatter_gather_completions"]
    assert [row[0] for row in indexes] == [
        "ix_scatter_gather_completions_created_at",
        "ix_scatter_gather_completions_job_id",
        "ix_scatter_gather_completions_updated_at",
    ]
