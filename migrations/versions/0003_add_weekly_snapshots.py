"""add weekly_snapshots table

Revision ID: 0003
Revises: 0002
Create Date: 2026-03-08

One row per (user_id, week_start). Derived cache; safe to drop.
"""
from alembic import op
import sqlalchemy as sa

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "weekly_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("week_end", sa.Date(), nullable=False),
        sa.Column("completion_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_habits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_habits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("best_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_mood", sa.Numeric(4, 2), nullable=True),
        sa.Column("avg_energy", sa.Numeric(4, 2), nullable=True),
        sa.Column("best_moment", sa.String(16), nullable=True),
        sa.Column("worst_moment", sa.String(16), nullable=True),
        sa.Column("top_habits", sa.Text(), nullable=True),
        sa.Column("struggling_habits", sa.Text(), nullable=True),
        sa.Column("ai_summary", sa.Text(), nullable=True),
        sa.Column("ai_insights", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_weekly_snapshots_id", "weekly_snapshots", ["id"])
    op.create_index("ix_weekly_snapshots_user_id", "weekly_snapshots", ["user_id"])
    op.create_index("ix_weekly_snapshots_week_start", "weekly_snapshots", ["week_start"])
    op.create_unique_constraint(
        "uq_weekly_snapshot_user_week",
        "weekly_snapshots",
        ["user_id", "week_start"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_weekly_snapshot_user_week", "weekly_snapshots", type_="unique")
    op.drop_index("ix_weekly_snapshots_week_start", table_name="weekly_snapshots")
    op.drop_index("ix_weekly_snapshots_user_id", table_name="weekly_snapshots")
    op.drop_index("ix_weekly_snapshots_id", table_name="weekly_snapshots")
    op.drop_table("weekly_snapshots")
