"""users, habits, habit check-ins and daily progress

Revision ID: 0001
Revises:
Create Date: 2026-03-02 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    habit_moment_enum = sa.Enum(
        "morning", "midday", "evening", "custom", name="habit_moment_enum"
    )
    habit_moment_enum.create(op.get_bind(), checkfirst=True)

    checkin_status_enum = sa.Enum(
        "done", "partial", "skipped", name="checkin_status_enum"
    )
    checkin_status_enum.create(op.get_bind(), checkfirst=True)

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(256), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_is_active", "users", ["is_active"])

    # --- habits ---
    op.create_table(
        "habits",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column(
            "moment",
            sa.Enum("morning", "midday", "evening", "custom", name="habit_moment_enum", create_type=False),
            nullable=False,
            server_default="morning",
        ),
        sa.Column("difficulty", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_habits_id", "habits", ["id"])
    op.create_index("ix_habits_user_id", "habits", ["user_id"])

    # --- habit_checkins ---
    op.create_table(
        "habit_checkins",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("habit_id", sa.Integer(), sa.ForeignKey("habits.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("done", "partial", "skipped", name="checkin_status_enum", create_type=False),
            nullable=False,
        ),
        sa.Column("effort", sa.Integer(), nullable=False, server_default="0", comment="0-3"),
        sa.Column("dose_actual", sa.Numeric(10, 2), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "habit_id", "date", name="uq_checkin_user_habit_date"),
    )
    op.create_index("ix_habit_checkins_id", "habit_checkins", ["id"])
    op.create_index("ix_habit_checkins_user_id", "habit_checkins", ["user_id"])
    op.create_index("ix_habit_checkins_habit_id", "habit_checkins", ["habit_id"])
    op.create_index("ix_habit_checkins_date", "habit_checkins", ["date"])

    # --- daily_progress ---
    op.create_table(
        "daily_progress",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_habits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_habits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("partial_habits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("missed_habits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completion_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mood_score", sa.Integer(), nullable=True, comment="1-10"),
        sa.Column("energy_level", sa.Integer(), nullable=True, comment="1-10"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("user_id", "date", name="uq_daily_progress_user_date"),
    )
    op.create_index("ix_daily_progress_id", "daily_progress", ["id"])
    op.create_index("ix_daily_progress_user_id", "daily_progress", ["user_id"])
    op.create_index("ix_daily_progress_date", "daily_progress", ["date"])


def downgrade() -> None:
    op.drop_table("daily_progress")
    op.drop_table("habit_checkins")
    op.drop_table("habits")
    op.drop_table("users")
    sa.Enum(name="checkin_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="habit_moment_enum").drop(op.get_bind(), checkfirst=True)
