"""
Insight — one generated recommendation derived from a weekly snapshot.

Lifecycle: live -> applied | dismissed | expired. Only live rows
(not dismissed, not applied, expires_at in the future) are served by
GET /analytics/insights.

insight_type values: "weekly", "pattern", "habit"
priority values:     "high", "medium", "low"
action_data:         JSON-encoded dict stored as Text.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Boolean, DateTime, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from ascend.db.base import Base


class Insight(Base):
    __tablename__ = "insights"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    insight_type: Mapped[str] = mapped_column(String(16), nullable=False)
    priority: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    evidence: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggested_action: Mapped[str | None] = mapped_column(String(256), nullable=True)
    action_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    action_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    related_habit_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    related_week_start: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    dismissed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dismissed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
