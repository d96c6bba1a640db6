"""
Habit, check-in and habit-metric schemas.

POST /habits                     → HabitCreateRequest → HabitResponse
POST /habits/checkins            → CheckinRequest     → CheckinResponse
GET  /habits/{habit_id}/metrics  → HabitMetricResponse
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ascend.models.checkin import CheckinStatus
from ascend.models.habit import Moment


class HabitCreateRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=256, examples=["Morning run"])
    moment: Moment = Field(default=Moment.morning)
    difficulty: int = Field(default=1, ge=1, le=3)
    start_date: Optional[date] = Field(
        default=None,
        description="First day the habit counts toward daily totals. Null = always.",
    )


class HabitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    moment: str
    difficulty: int
    start_date: Optional[str] = None
    archived: bool


class CheckinRequest(BaseModel):
    """Record (or replace) the check-in of one habit on one day."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(min_length=1, max_length=64)
    habit_id: int
    day: date = Field(alias="date", examples=["2026-03-02"])
    status: CheckinStatus
    effort: Optional[int] = Field(default=None, ge=0, le=3)
    dose_actual: Optional[Decimal] = Field(default=None, ge=0)
    note: Optional[str] = Field(default=None, max_length=2000)


class CheckinResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    habit_id: int
    date: str
    status: str
    effort: int
    dose_actual: Optional[float] = None
    note: Optional[str] = None
    created: bool = Field(description="False when an existing check-in was replaced.")


class HabitMetricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    habit_id: int
    user_id: str
    ema30: float = Field(description="30-day EMA of completion. Range: 0.0-1.0.", examples=[0.6523])
    current_streak: int
    best_streak: int
    streak_last_date: Optional[str] = None
    grace_tokens: int
    maintenance_mode: bool
    last_updated: str
