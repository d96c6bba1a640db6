"""
Admin router — batch operations guarded by ADMIN_SECRET.

POST /admin/daily-rollup  — run the daily rollup (one user or everyone)
GET  /admin/daily-rollup  — rollup status counters
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from ascend.core.config import settings
from ascend.core.errors import AdminAuthError
from ascend.db.base import get_db
from ascend.schemas.common import NOT_FOUND, ErrorResponse
from ascend.schemas.rollup import (
    RollupRequest,
    RollupResponse,
    RollupStatusResponse,
    UserRollupOut,
)
from ascend.services.narrative import NarrativeClient, get_narrator
from ascend.services.rollup import get_rollup_status, run_daily_rollup


def require_admin(authorization: Optional[str] = Header(default=None)) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise AdminAuthError()
    token = authorization[len("Bearer "):]
    if not secrets.compare_digest(token, settings.ADMIN_SECRET):
        raise AdminAuthError()


router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={401: {"model": ErrorResponse, "description": "Missing or invalid admin token."}},
)


# ---------------------------------------------------------------------------
# POST /admin/daily-rollup
# ---------------------------------------------------------------------------

@router.post(
    "/daily-rollup",
    response_model=RollupResponse,
    summary="Run the daily rollup",
    responses=NOT_FOUND,
)
def daily_rollup(
    payload: Optional[RollupRequest] = None,
    db: Session = Depends(get_db),
    narrator: Optional[NarrativeClient] = Depends(get_narrator),
):
    """
    Aggregate the day, update habit metrics and, on Sundays, build the weekly
    snapshot and insights. Users are processed one at a time; a failing user
    is reported in `results` and does not stop the run.
    """
    payload = payload or RollupRequest()
    now = datetime.now(tz=timezone.utc)
    day = payload.day or now.date()
    report = run_daily_rollup(db, day, now, user_id=payload.user_id, narrator=narrator)
    return RollupResponse(
        date=str(report.day),
        processed=report.processed,
        succeeded=report.succeeded,
        failed=report.failed,
        duration_ms=report.duration_ms,
        results=[
            UserRollupOut(
                user_id=r.user_id,
                success=r.success,
                error=r.error,
                habits_updated=r.habits_updated,
                habits_failed=r.habits_failed,
                snapshot_generated=r.snapshot_generated,
                insights_generated=r.insights_generated,
            )
            for r in report.results
        ],
    )


# ---------------------------------------------------------------------------
# GET /admin/daily-rollup
# ---------------------------------------------------------------------------

@router.get(
    "/daily-rollup",
    response_model=RollupStatusResponse,
    summary="Rollup status",
)
def daily_rollup_status(db: Session = Depends(get_db)):
    s = get_rollup_status(db)
    return RollupStatusResponse(
        active_users=s.active_users,
        active_habits=s.active_habits,
        metric_rows=s.metric_rows,
        last_updated=str(s.last_updated) if s.last_updated else None,
    )
