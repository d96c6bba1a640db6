"""add insights table

Revision ID: 0004
Revises: 0003
Create Date: 2026-03-08

Generated recommendations with expiry and apply / dismiss state.
"""
from alembic import op
import sqlalchemy as sa

revision = "0004"
down_revision = "0003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "insights",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("insight_type", sa.String(16), nullable=False),
        sa.Column("priority", sa.String(8), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("evidence", sa.Text(), nullable=True),
        sa.Column("suggested_action", sa.String(256), nullable=True),
        sa.Column("action_type", sa.String(32), nullable=True),
        sa.Column("action_data", sa.Text(), nullable=True),
        sa.Column("related_habit_id", sa.Integer(), nullable=True),
        sa.Column("related_week_start", sa.Date(), nullable=True),
        sa.Column("dismissed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_applied", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_insights_id", "insights", ["id"])
    op.create_index("ix_insights_user_id", "insights", ["user_id"])
    op.create_index("ix_insights_priority", "insights", ["priority"])
    op.create_index("ix_insights_related_week_start", "insights", ["related_week_start"])
    op.create_index("ix_insights_expires_at", "insights", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_insights_expires_at", table_name="insights")
    op.drop_index("ix_insights_related_week_start", table_name="insights")
    op.drop_index("ix_insights_priority", table_name="insights")
    op.drop_index("ix_insights_user_id", table_name="insights")
    op.drop_index("ix_insights_id", table_name="insights")
    op.drop_table("insights")
