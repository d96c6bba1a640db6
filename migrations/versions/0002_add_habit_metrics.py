"""add habit_metrics table

Revision ID: 0002
Revises: 0001
Create Date: 2026-03-03

Incremental streak / EMA30 state per (user, habit), written by the rollup.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "habit_metrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("habit_id", sa.Integer(), sa.ForeignKey("habits.id"), nullable=False),
        sa.Column("ema30", sa.Numeric(5, 4), nullable=False, comment="30-day EMA of completion, 0.0000-1.0000"),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("best_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_last_date", sa.Date(), nullable=True),
        sa.Column("grace_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("maintenance_mode", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_updated", sa.Date(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_habit_metrics_id", "habit_metrics", ["id"])
    op.create_index("ix_habit_metrics_user_id", "habit_metrics", ["user_id"])
    op.create_index("ix_habit_metrics_habit_id", "habit_metrics", ["habit_id"])
    op.create_unique_constraint(
        "uq_habit_metric_user_habit",
        "habit_metrics",
        ["user_id", "habit_id"],
    )


def downgrade() -> None:
    op.drop_constraint("uq_habit_metric_user_habit", "habit_metrics", type_="unique")
    op.drop_index("ix_habit_metrics_habit_id", table_name="habit_metrics")
    op.drop_index("ix_habit_metrics_user_id", table_name="habit_metrics")
    op.drop_index("ix_habit_metrics_id", table_name="habit_metrics")
    op.drop_table("habit_metrics")
