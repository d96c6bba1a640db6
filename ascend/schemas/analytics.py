"""
Analytics schemas — weekly snapshot and insights.

GET  /analytics/weekly-snapshot → WeeklySnapshotResponse
POST /analytics/weekly-snapshot → WeeklySnapshotRequest → WeeklySnapshotResponse
GET  /analytics/insights        → InsightListResponse
POST /analytics/insights        → GenerateInsightsRequest → InsightListResponse
PUT  /analytics/insights        → ResolveInsightRequest → InsightResponse
"""
from __future__ import annotations

from datetime import date
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class WeeklySnapshotRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    week_start: Optional[date] = Field(
        default=None,
        description="Any day of the target week; normalized to its Monday. Defaults to this week.",
        examples=["2026-03-02"],
    )
    force_regenerate: bool = Field(
        default=False,
        description="Delete the stored snapshot (narrative included) before recomputing.",
    )


class WeeklySnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    week_start: str
    week_end: str
    completion_percentage: int
    total_habits: int
    completed_habits: int
    current_streak: int
    best_streak: int
    avg_mood: Optional[float] = None
    avg_energy: Optional[float] = None
    best_moment: Optional[str] = None
    worst_moment: Optional[str] = None
    top_habits: list[int] = Field(default_factory=list)
    struggling_habits: list[int] = Field(default_factory=list, description="Worst first.")
    ai_summary: Optional[str] = None
    ai_insights: list[str] = Field(default_factory=list)
    updated_at: str


class GenerateInsightsRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    week_start: Optional[date] = Field(default=None, examples=["2026-03-02"])
    force_regenerate: bool = False


class ResolveInsightRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    insight_id: int
    action: Literal["apply", "dismiss"]


class InsightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(default=None, description="Null when the insight could not be stored.")
    user_id: str
    insight_type: str
    priority: str
    title: str
    description: str
    evidence: Optional[str] = None
    suggested_action: Optional[str] = None
    action_type: Optional[str] = None
    action_data: dict[str, Any] = Field(default_factory=dict)
    related_habit_id: Optional[int] = None
    related_week_start: Optional[str] = None
    dismissed: bool
    is_applied: bool
    expires_at: str
    created_at: Optional[str] = None


class InsightListResponse(BaseModel):
    items: list[InsightResponse]
