from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ascend.db.base import Base


class DailyProgress(Base):
    """
    Completion summary of one user's day across all active habits.

    Counts are always recomputed from check-ins by the rollup; mood, energy
    and notes are user-supplied and survive recomputation.
    """

    __tablename__ = "daily_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_progress_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    total_habits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_habits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    partial_habits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    missed_habits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mood_score: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="1-10")
    energy_level: Mapped[int | None] = mapped_column(Integer, nullable=True, comment="1-10")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
