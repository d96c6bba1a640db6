"""
HabitCheckin — a user's recorded attempt at one habit on one calendar day.

One row per (user_id, habit_id, date). Re-submitting the same day replaces
the row (upsert) and stamps `edited_at`; the rollup never deletes check-ins.
"""
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import (
    Integer, String, Text, Numeric, DateTime, Date, Enum, ForeignKey, func, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
import enum

from ascend.db.base import Base


class CheckinStatus(str, enum.Enum):
    done = "done"
    partial = "partial"
    skipped = "skipped"


class HabitCheckin(Base):
    __tablename__ = "habit_checkins"
    __table_args__ = (
        UniqueConstraint("user_id", "habit_id", "date", name="uq_checkin_user_habit_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    habit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("habits.id"), nullable=False, index=True
    )
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        Enum(CheckinStatus, name="checkin_status_enum"),
        nullable=False,
    )
    effort: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="0-3")
    dose_actual: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
