"""
Daily progress schemas.

POST /progress/daily → DailyProgressRequest → DailyProgressResponse
GET  /progress/daily → DailyProgressListResponse
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DailyProgressRequest(BaseModel):
    """Recompute one day's aggregate and optionally record how it felt."""
    user_id: str = Field(min_length=1, max_length=64)
    day: Optional[date] = Field(
        default=None,
        description="Day to aggregate. Defaults to today (UTC).",
        examples=["2026-03-02"],
    )
    mood_score: Optional[int] = Field(default=None, ge=1, le=10)
    energy_level: Optional[int] = Field(default=None, ge=1, le=10)
    notes: Optional[str] = Field(default=None, max_length=2000)


class DailyProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    date: str
    total_habits: int
    completed_habits: int
    partial_habits: int
    missed_habits: int
    completion_percentage: int = Field(description="0-100, half-up rounded.")
    mood_score: Optional[int] = None
    energy_level: Optional[int] = None
    notes: Optional[str] = None


class DailyProgressListResponse(BaseModel):
    """Heatmap range, oldest first."""
    start: str
    end: str
    items: list[DailyProgressResponse]
