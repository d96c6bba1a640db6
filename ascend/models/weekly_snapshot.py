"""
WeeklySnapshot — persisted summary of one user's ISO week (Monday-Sunday).

Derived cache: check-ins, daily_progress and habit_metrics remain the
source of truth. One row per (user_id, week_start); the rollup overwrites
the computed columns on every run and keeps ai_summary / ai_insights
unless a regeneration is forced.

List columns are JSON-encoded Text.
"""
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import (
    Integer, String, Text, Numeric, DateTime, Date, func, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ascend.db.base import Base


class WeeklySnapshot(Base):
    __tablename__ = "weekly_snapshots"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_weekly_snapshot_user_week"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    week_start: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_habits: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Habit-days scheduled in the week",
    )
    completed_habits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_mood: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True)
    avg_energy: Mapped[Decimal | None] = mapped_column(Numeric(4, 2), nullable=True)
    best_moment: Mapped[str | None] = mapped_column(String(16), nullable=True)
    worst_moment: Mapped[str | None] = mapped_column(String(16), nullable=True)
    top_habits: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="JSON array of habit ids, best first",
    )
    struggling_habits: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="JSON array of habit ids, worst first",
    )
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_insights: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="JSON array of narrative insight strings",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
