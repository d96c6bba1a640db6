"""
Admin rollup schemas.

POST /admin/daily-rollup → RollupRequest → RollupResponse
GET  /admin/daily-rollup → RollupStatusResponse
"""
from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RollupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: Optional[date] = Field(
        default=None,
        alias="date",
        description="Day to roll up. Defaults to today (UTC).",
        examples=["2026-03-08"],
    )
    user_id: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Restrict the run to one user. Omit to process every active user.",
    )


class UserRollupOut(BaseModel):
    user_id: str
    success: bool
    error: Optional[str] = None
    habits_updated: int = 0
    habits_failed: int = 0
    snapshot_generated: bool = False
    insights_generated: int = 0


class RollupResponse(BaseModel):
    date: str
    processed: int
    succeeded: int
    failed: int
    duration_ms: int
    results: list[UserRollupOut]


class RollupStatusResponse(BaseModel):
    active_users: int
    active_habits: int
    metric_rows: int
    last_updated: Optional[str] = None
