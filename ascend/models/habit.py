from datetime import datetime, date
from sqlalchemy import Integer, String, Boolean, DateTime, Date, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from ascend.db.base import Base


class Moment(str, enum.Enum):
    morning = "morning"
    midday = "midday"
    evening = "evening"
    custom = "custom"


class Habit(Base):
    __tablename__ = "habits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    moment: Mapped[str] = mapped_column(
        Enum(Moment, name="habit_moment_enum"),
        nullable=False,
        default=Moment.morning,
    )
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Habits only count toward a day's total from this date on (null = always)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
