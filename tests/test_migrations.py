"""Alembic migration tests."""

import os
import subprocess
import sys

from sqlalchemy import inspect

from app.db import engine

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def run_alembic(*args: str) -> subprocess.CompletedProcess[str]:
    """Run alembic with current env (DATABASE_URL points at the test DB)."""
    return subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=60,
        env=os.environ.copy(),
    )


def test_alembic_upgrade_downgrade_cycle(_ensure_migrations: None) -> None:
    """Full migration cycle: downgrade removes tables, upgrade creates them."""
    result = run_alembic("downgrade", "base")
    assert result.returncode == 0, f"downgrade failed: {result.stderr}"

    tables = inspect(engine).get_table_names()
    assert "asin_data" not in tables
    assert "analysis_sessions" not in tables
    assert "job_runs" not in tables

    result = run_alembic("upgrade", "head")
    assert result.returncode == 0, f"upgrade failed: {result.stderr}"

    inspector = inspect(engine)
    tables = inspector.get_table_names()
    assert {"asin_data", "analysis_sessions", "job_runs"} <= set(tables)
    job_columns = {c["name"] for c in inspector.get_columns("job_runs")}
    assert {"payload", "attempt", "run_after"} <= job_columns


def test_single_head() -> None:
    result = run_alembic("heads")
    assert result.returncode == 0, result.stderr
    assert len([line for line in result.stdout.splitlines() if line.strip()]) == 1
