"""
Analytics router — weekly snapshot and coaching insights.

GET  /analytics/weekly-snapshot  — stored snapshot, regenerated when stale
POST /analytics/weekly-snapshot  — recompute (optionally from scratch)
GET  /analytics/insights         — live insights, generated when none exist
POST /analytics/insights         — generate insights for a week
PUT  /analytics/insights         — apply or dismiss an insight
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ascend.core.errors import WeekHasNoDataError
from ascend.db.base import get_db
from ascend.models.insight import Insight
from ascend.models.weekly_snapshot import WeeklySnapshot
from ascend.schemas.analytics import (
    GenerateInsightsRequest,
    InsightListResponse,
    InsightResponse,
    ResolveInsightRequest,
    WeeklySnapshotRequest,
    WeeklySnapshotResponse,
)
from ascend.schemas.common import NOT_FOUND, VALIDATION
from ascend.services.insights import (
    action_data,
    generate_insights,
    get_live_insights,
    resolve_insight,
)
from ascend.services.narrative import NarrativeClient, get_narrator
from ascend.services.weekly_snapshot import (
    generate_weekly_snapshot,
    get_weekly_snapshot,
    snapshot_lists,
    week_start_for,
)

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _week(week_start: Optional[date], now: datetime) -> date:
    return week_start_for(week_start or now.date())


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _snapshot_to_response(s: WeeklySnapshot) -> WeeklySnapshotResponse:
    lists = snapshot_lists(s)
    return WeeklySnapshotResponse(
        user_id=s.user_id,
        week_start=str(s.week_start),
        week_end=str(s.week_end),
        completion_percentage=s.completion_percentage,
        total_habits=s.total_habits,
        completed_habits=s.completed_habits,
        current_streak=s.current_streak,
        best_streak=s.best_streak,
        avg_mood=float(s.avg_mood) if s.avg_mood is not None else None,
        avg_energy=float(s.avg_energy) if s.avg_energy is not None else None,
        best_moment=s.best_moment,
        worst_moment=s.worst_moment,
        top_habits=lists["top_habits"],
        struggling_habits=lists["struggling_habits"],
        ai_summary=s.ai_summary,
        ai_insights=lists["ai_insights"],
        updated_at=s.updated_at.isoformat() if s.updated_at else "",
    )


def _insight_to_response(i: Insight) -> InsightResponse:
    return InsightResponse(
        id=i.id,
        user_id=i.user_id,
        insight_type=i.insight_type,
        priority=i.priority,
        title=i.title,
        description=i.description,
        evidence=i.evidence,
        suggested_action=i.suggested_action,
        action_type=i.action_type,
        action_data=action_data(i),
        related_habit_id=i.related_habit_id,
        related_week_start=str(i.related_week_start) if i.related_week_start else None,
        dismissed=bool(i.dismissed),
        is_applied=bool(i.is_applied),
        expires_at=i.expires_at.isoformat(),
        created_at=i.created_at.isoformat() if i.created_at else None,
    )


# ---------------------------------------------------------------------------
# GET /analytics/weekly-snapshot
# ---------------------------------------------------------------------------

@router.get(
    "/weekly-snapshot",
    response_model=WeeklySnapshotResponse,
    summary="Weekly snapshot (cached, stale-aware)",
    responses=NOT_FOUND,
)
def weekly_snapshot(
    user_id: str = Query(..., min_length=1, max_length=64),
    week_start: Optional[date] = Query(
        default=None,
        description="Any day of the week; normalized to Monday. Defaults to this week.",
        examples=["2026-03-02"],
    ),
    db: Session = Depends(get_db),
    narrator: Optional[NarrativeClient] = Depends(get_narrator),
):
    """
    Serve the stored snapshot while it is younger than
    `SNAPSHOT_STALE_SECONDS`; otherwise recompute it from daily progress.

    Returns **404 `NO_DATA_FOR_WEEK`** when the user has no daily progress
    in that week.
    """
    now = _now()
    start = _week(week_start, now)
    snapshot = get_weekly_snapshot(db, user_id, start, now, narrator=narrator)
    if snapshot is None:
        raise WeekHasNoDataError(user_id=user_id, week_start=start)
    return _snapshot_to_response(snapshot)


# ---------------------------------------------------------------------------
# POST /analytics/weekly-snapshot
# ---------------------------------------------------------------------------

@router.post(
    "/weekly-snapshot",
    response_model=WeeklySnapshotResponse,
    summary="Regenerate a weekly snapshot",
    responses={**NOT_FOUND, **VALIDATION},
)
def regenerate_weekly_snapshot(
    payload: WeeklySnapshotRequest,
    db: Session = Depends(get_db),
    narrator: Optional[NarrativeClient] = Depends(get_narrator),
):
    """
    Recompute the snapshot now. The existing AI narrative is kept unless
    `force_regenerate` is set, which deletes the row first.
    """
    now = _now()
    start = _week(payload.week_start, now)
    snapshot = generate_weekly_snapshot(
        db, payload.user_id, start, now,
        narrator=narrator,
        force=payload.force_regenerate,
    )
    if snapshot is None:
        raise WeekHasNoDataError(user_id=payload.user_id, week_start=start)
    return _snapshot_to_response(snapshot)


# ---------------------------------------------------------------------------
# GET /analytics/insights
# ---------------------------------------------------------------------------

@router.get(
    "/insights",
    response_model=InsightListResponse,
    summary="Live insights",
)
def list_insights(
    user_id: str = Query(..., min_length=1, max_length=64),
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """
    Live insights ordered by priority (high first), newest first within a
    priority. When the user has none, insights for the current week are
    generated on the fly.
    """
    now = _now()
    items = get_live_insights(db, user_id, now, limit=limit)
    if not items:
        items = generate_insights(db, user_id, _week(None, now), now)[:limit]
    return InsightListResponse(items=[_insight_to_response(i) for i in items])


# ---------------------------------------------------------------------------
# POST /analytics/insights
# ---------------------------------------------------------------------------

@router.post(
    "/insights",
    response_model=InsightListResponse,
    summary="Generate insights for a week",
    responses=VALIDATION,
)
def post_insights(payload: GenerateInsightsRequest, db: Session = Depends(get_db)):
    """
    Without `force_regenerate`, existing live insights are returned as-is.
    With it, the week's insights are deleted and the rules re-evaluated.
    """
    now = _now()
    items = generate_insights(
        db, payload.user_id, _week(payload.week_start, now), now,
        force=payload.force_regenerate,
    )
    return InsightListResponse(items=[_insight_to_response(i) for i in items])


# ---------------------------------------------------------------------------
# PUT /analytics/insights
# ---------------------------------------------------------------------------

@router.put(
    "/insights",
    response_model=InsightResponse,
    summary="Apply or dismiss an insight",
    responses={
        **NOT_FOUND,
        409: {"description": "Insight already applied, dismissed or expired."},
        **VALIDATION,
    },
)
def put_insight(payload: ResolveInsightRequest, db: Session = Depends(get_db)):
    insight = resolve_insight(
        db, payload.user_id, payload.insight_id, payload.action, _now(),
    )
    return _insight_to_response(insight)
