"""
Daily completion aggregator — first stage of the rollup.

Public API
----------
compute_daily_counts(total, statuses)                    -> DailyCounts  (pure)
active_habits(db, user_id, day)                          -> list[Habit]
aggregate_daily_progress(db, user_id, day, mood, ...)    -> DailyProgress (upsert)
get_progress_range(db, user_id, start, end)              -> list[DailyProgress]

Counts are always recomputed from check-ins; mood, energy and notes are kept
from the existing row unless new values are passed in. Persistence errors
propagate to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ascend.models.checkin import HabitCheckin, CheckinStatus
from ascend.models.daily_progress import DailyProgress
from ascend.models.habit import Habit
from ascend.services.common import enum_value


@dataclass
class DailyCounts:
    total: int
    completed: int
    partial: int
    missed: int
    completion_percentage: int


def percentage(part: int, whole: int) -> int:
    """round(100 * part / whole) with half-up rounding; 0 when whole is 0."""
    if whole <= 0:
        return 0
    raw = Decimal(100 * part) / Decimal(whole)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_daily_counts(total: int, statuses: Iterable[str]) -> DailyCounts:
    completed = 0
    partial = 0
    for s in statuses:
        value = enum_value(s)
        if value == CheckinStatus.done.value:
            completed += 1
        elif value == CheckinStatus.partial.value:
            partial += 1
    # Check-ins never outnumber the habits they belong to, but clamp anyway
    # so the missed column can't go negative.
    completed = min(completed, total)
    partial = min(partial, total - completed)
    return DailyCounts(
        total=total,
        completed=completed,
        partial=partial,
        missed=max(0, total - completed - partial),
        completion_percentage=percentage(completed, total),
    )


def active_habits(db: Session, user_id: str, day: date) -> list[Habit]:
    """Non-archived habits that had started on or before `day`."""
    return (
        db.query(Habit)
        .filter(
            Habit.user_id == user_id,
            Habit.archived.is_(False),
            or_(Habit.start_date.is_(None), Habit.start_date <= day),
        )
        .order_by(Habit.id)
        .all()
    )


def aggregate_daily_progress(
    db: Session,
    user_id: str,
    day: date,
    mood_score: Optional[int] = None,
    energy_level: Optional[int] = None,
    notes: Optional[str] = None,
) -> DailyProgress:
    habits = active_habits(db, user_id, day)
    habit_ids = [h.id for h in habits]

    statuses: list[str] = []
    if habit_ids:
        statuses = [
            row.status
            for row in db.query(HabitCheckin.status)
            .filter(
                HabitCheckin.user_id == user_id,
                HabitCheckin.date == day,
                HabitCheckin.habit_id.in_(habit_ids),
            )
            .all()
        ]
    counts = compute_daily_counts(len(habits), statuses)

    row = (
        db.query(DailyProgress)
        .filter(DailyProgress.user_id == user_id, DailyProgress.date == day)
        .first()
    )
    if row is None:
        row = DailyProgress(user_id=user_id, date=day)
        db.add(row)

    row.total_habits = counts.total
    row.completed_habits = counts.completed
    row.partial_habits = counts.partial
    row.missed_habits = counts.missed
    row.completion_percentage = counts.completion_percentage
    if mood_score is not None:
        row.mood_score = mood_score
    if energy_level is not None:
        row.energy_level = energy_level
    if notes is not None:
        row.notes = notes

    db.commit()
    db.refresh(row)
    return row


def get_progress_range(
    db: Session,
    user_id: str,
    start: date,
    end: date,
) -> list[DailyProgress]:
    return (
        db.query(DailyProgress)
        .filter(
            DailyProgress.user_id == user_id,
            DailyProgress.date >= start,
            DailyProgress.date <= end,
        )
        .order_by(DailyProgress.date.asc())
        .all()
    )
