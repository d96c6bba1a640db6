"""
Habits router.

POST /habits                      — create a habit
POST /habits/checkins             — record or replace a day's check-in
GET  /habits/{habit_id}/metrics   — streak / EMA state written by the rollup
"""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ascend.core.errors import AscendException, HabitNotFoundError
from ascend.db.base import get_db
from ascend.models.checkin import HabitCheckin
from ascend.models.habit import Habit
from ascend.models.habit_metric import HabitMetric
from ascend.schemas.common import NOT_FOUND, VALIDATION
from ascend.schemas.habit import (
    CheckinRequest,
    CheckinResponse,
    HabitCreateRequest,
    HabitMetricResponse,
    HabitResponse,
)
from ascend.services.common import enum_value
from ascend.services.habit_metrics import get_habit_metric
from ascend.services.habits import create_habit, upsert_checkin

router = APIRouter(prefix="/habits", tags=["habits"])


class HabitMetricNotFoundError(AscendException):
    http_status = 404
    code = "METRICS_NOT_COMPUTED"

    def __init__(self, habit_id: int):
        super().__init__(
            message=f"No metrics computed yet for habit {habit_id}.",
            details={"habit_id": habit_id},
        )


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _habit_to_response(h: Habit) -> HabitResponse:
    return HabitResponse(
        id=h.id,
        user_id=h.user_id,
        title=h.title,
        moment=enum_value(h.moment),
        difficulty=h.difficulty,
        start_date=str(h.start_date) if h.start_date else None,
        archived=h.archived,
    )


def _checkin_to_response(c: HabitCheckin, created: bool) -> CheckinResponse:
    return CheckinResponse(
        id=c.id,
        user_id=c.user_id,
        habit_id=c.habit_id,
        date=str(c.date),
        status=enum_value(c.status),
        effort=c.effort,
        dose_actual=float(c.dose_actual) if c.dose_actual is not None else None,
        note=c.note,
        created=created,
    )


def _metric_to_response(m: HabitMetric) -> HabitMetricResponse:
    return HabitMetricResponse(
        habit_id=m.habit_id,
        user_id=m.user_id,
        ema30=float(m.ema30),
        current_streak=m.current_streak,
        best_streak=m.best_streak,
        streak_last_date=str(m.streak_last_date) if m.streak_last_date else None,
        grace_tokens=m.grace_tokens,
        maintenance_mode=m.maintenance_mode,
        last_updated=str(m.last_updated),
    )


# ---------------------------------------------------------------------------
# POST /habits
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=HabitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a habit",
    responses=VALIDATION,
)
def post_habit(payload: HabitCreateRequest, db: Session = Depends(get_db)):
    habit = create_habit(
        db,
        user_id=payload.user_id,
        title=payload.title,
        moment=payload.moment,
        difficulty=payload.difficulty,
        start_date=payload.start_date,
    )
    return _habit_to_response(habit)


# ---------------------------------------------------------------------------
# POST /habits/checkins
# ---------------------------------------------------------------------------

@router.post(
    "/checkins",
    response_model=CheckinResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a habit check-in",
    responses={
        200: {"description": "An existing check-in for that day was replaced."},
        201: {"description": "Check-in created."},
        **NOT_FOUND,
        **VALIDATION,
    },
)
def post_checkin(payload: CheckinRequest, response: Response, db: Session = Depends(get_db)):
    """
    **Idempotent** on (user, habit, date): sending the same day again
    replaces the status and stamps `edited_at`.
    """
    checkin, created = upsert_checkin(
        db,
        user_id=payload.user_id,
        habit_id=payload.habit_id,
        day=payload.day,
        status=payload.status,
        now=datetime.now(tz=timezone.utc),
        effort=payload.effort,
        dose_actual=payload.dose_actual,
        note=payload.note,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return _checkin_to_response(checkin, created)


# ---------------------------------------------------------------------------
# GET /habits/{habit_id}/metrics
# ---------------------------------------------------------------------------

@router.get(
    "/{habit_id}/metrics",
    response_model=HabitMetricResponse,
    summary="Habit streak and EMA30",
    responses=NOT_FOUND,
)
def habit_metrics(
    habit_id: int,
    user_id: str = Query(..., min_length=1, max_length=64),
    db: Session = Depends(get_db),
):
    habit = (
        db.query(Habit.id)
        .filter(Habit.id == habit_id, Habit.user_id == user_id)
        .first()
    )
    if habit is None:
        raise HabitNotFoundError(habit_id=habit_id, user_id=user_id)

    metric = get_habit_metric(db, user_id, habit_id)
    if metric is None:
        raise HabitMetricNotFoundError(habit_id=habit_id)
    return _metric_to_response(metric)
