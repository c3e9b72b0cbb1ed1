"""Initial schema: asin_data and analysis_sessions.

Revision ID: 001
Revises: 
Create Date: 2026-10-12

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create asin_data (unique per asin+country) and analysis_sessions."""
    op.create_table(
        "asin_data",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("asin", sa.String(length=10), nullable=False),
        sa.Column("country", sa.String(length=2), nullable=False, server_default="us"),
        sa.Column("reviews", sa.JSON(), nullable=True),
        sa.Column("llm_result", sa.JSON(), nullable=True),
        sa.Column("fake_percentage", sa.Float(), nullable=True),
        sa.Column("grade", sa.String(length=1), nullable=True),
        sa.Column("amazon_rating", sa.Float(), nullable=True),
        sa.Column("adjusted_rating", sa.Float(), nullable=True),
        sa.Column("explanation", sa.Text(), nullable=True),
        sa.Column("product_title", sa.String(length=500), nullable=True),
        sa.Column("product_description", sa.Text(), nullable=True),
        sa.Column("product_image_url", sa.String(length=2048), nullable=True),
        sa.Column("have_product_data", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_reviews_on_amazon", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("source", sa.String(length=32), nullable=True),
        sa.Column("extension_version", sa.String(length=32), nullable=True),
        sa.Column("extraction_timestamp", sa.String(length=64), nullable=True),
        sa.Column("first_analyzed_at", sa.DateTime(), nullable=True),
        sa.Column("last_analyzed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("asin", "country", name="uq_asin_data_asin_country"),
    )
    op.create_index("ix_asin_data_asin", "asin_data", ["asin"])
    op.create_index("ix_asin_data_status", "asin_data", ["status"])
    op.create_index("ix_asin_data_first_analyzed_at", "asin_data", ["first_analyzed_at"])

    op.create_table(
        "analysis_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_session", sa.String(length=255), nullable=False),
        sa.Column("asin", sa.String(length=10), nullable=False),
        sa.Column("product_url", sa.String(length=2048), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_steps", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("progress_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("current_message", sa.String(length=255), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_analysis_sessions_user_session", "analysis_sessions", ["user_session"])
    op.create_index("ix_analysis_sessions_asin", "analysis_sessions", ["asin"])


def downgrade() -> None:
    """Drop initial tables."""
    op.drop_index("ix_analysis_sessions_asin", table_name="analysis_sessions")
    op.drop_index("ix_analysis_sessions_user_session", table_name="analysis_sessions")
    op.drop_table("analysis_sessions")
    op.drop_index("ix_asin_data_first_analyzed_at", table_name="asin_data")
    op.drop_index("ix_asin_data_status", table_name="asin_data")
    op.drop_index("ix_asin_data_asin", table_name="asin_data")
    op.drop_table("asin_data")
