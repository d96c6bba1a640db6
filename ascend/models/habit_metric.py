"""
HabitMetric — incremental derived state for one (user, habit) pair.

Written only by the rollup (ascend/services/habit_metrics.py). The streak
object of the product model is flattened into four columns:
current_streak, best_streak, streak_last_date, grace_tokens.
"""
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import (
    Integer, String, Boolean, Numeric, DateTime, Date, ForeignKey, func, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ascend.db.base import Base


class HabitMetric(Base):
    __tablename__ = "habit_metrics"
    __table_args__ = (
        UniqueConstraint("user_id", "habit_id", name="uq_habit_metric_user_habit"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    habit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("habits.id"), nullable=False, index=True
    )
    ema30: Mapped[Decimal] = mapped_column(
        Numeric(5, 4), nullable=False,
        comment="30-day EMA of completion, 0.0000-1.0000",
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_last_date: Mapped[date | None] = mapped_column(
        Date, nullable=True,
        comment="Most recent 'done' check-in that contributes to the streak",
    )
    grace_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    maintenance_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_updated: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
