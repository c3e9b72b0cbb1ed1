"""Add job_runs queue table for the BrightData job chain.

Revision ID: 20261014_job_runs
Revises: 001
Create Date: 2026-10-14

Queued jobs are claimed by run_due_jobs once run_after has passed.
"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "20261014_job_runs"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("job_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="queued"),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("run_after", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_job_runs_run_after", "job_runs", ["run_after"])
    op.create_index("ix_job_runs_status_run_after", "job_runs", ["status", "run_after"])


def downgrade() -> None:
    op.drop_index("ix_job_runs_status_run_after", table_name="job_runs")
    op.drop_index("ix_job_runs_run_after", table_name="job_runs")
    op.drop_table("job_runs")
