"""
Daily progress router.

POST /progress/daily  — recompute one day's aggregate (+ mood / energy / notes)
GET  /progress/daily  — heatmap range, oldest first
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ascend.db.base import get_db
from ascend.models.daily_progress import DailyProgress
from ascend.schemas.common import VALIDATION
from ascend.schemas.progress import (
    DailyProgressListResponse,
    DailyProgressRequest,
    DailyProgressResponse,
)
from ascend.services.daily_progress import aggregate_daily_progress, get_progress_range

router = APIRouter(prefix="/progress", tags=["progress"])

DEFAULT_RANGE_DAYS = 30


def _today() -> date:
    return datetime.now(tz=timezone.utc).date()


def _to_response(row: DailyProgress) -> DailyProgressResponse:
    return DailyProgressResponse(
        user_id=row.user_id,
        date=str(row.date),
        total_habits=row.total_habits,
        completed_habits=row.completed_habits,
        partial_habits=row.partial_habits,
        missed_habits=row.missed_habits,
        completion_percentage=row.completion_percentage,
        mood_score=row.mood_score,
        energy_level=row.energy_level,
        notes=row.notes,
    )


# ---------------------------------------------------------------------------
# POST /progress/daily
# ---------------------------------------------------------------------------

@router.post(
    "/daily",
    response_model=DailyProgressResponse,
    summary="Aggregate one day of check-ins",
    responses=VALIDATION,
)
def post_daily_progress(payload: DailyProgressRequest, db: Session = Depends(get_db)):
    """
    Recount the day's check-ins against the user's active habits and upsert
    the daily row. **Idempotent**: counts are always recomputed; mood, energy
    and notes are only overwritten when sent.
    """
    row = aggregate_daily_progress(
        db,
        user_id=payload.user_id,
        day=payload.day or _today(),
        mood_score=payload.mood_score,
        energy_level=payload.energy_level,
        notes=payload.notes,
    )
    return _to_response(row)


# ---------------------------------------------------------------------------
# GET /progress/daily
# ---------------------------------------------------------------------------

@router.get(
    "/daily",
    response_model=DailyProgressListResponse,
    summary="Daily progress range (heatmap)",
)
def get_daily_progress(
    user_id: str = Query(..., min_length=1, max_length=64),
    start: Optional[date] = Query(
        default=None,
        description=f"First day (inclusive). Defaults to end - {DEFAULT_RANGE_DAYS - 1} days.",
    ),
    end: Optional[date] = Query(default=None, description="Last day (inclusive). Defaults to today (UTC)."),
    db: Session = Depends(get_db),
):
    end = end or _today()
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS - 1)
    rows = get_progress_range(db, user_id, start, end)
    return DailyProgressListResponse(
        start=str(start),
        end=str(end),
        items=[_to_response(r) for r in rows],
    )
