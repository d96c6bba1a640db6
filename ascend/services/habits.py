"""
Habit and check-in writes feeding the rollup.

Check-ins are idempotent on (user, habit, date): re-submitting a day
replaces status and keeps any optional field that was not sent again.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ascend.core.errors import HabitNotFoundError
from ascend.models.checkin import CheckinStatus, HabitCheckin
from ascend.models.habit import Habit, Moment
from ascend.models.user import User

DEFAULT_EFFORT = 2


def ensure_user(db: Session, user_id: str, email: Optional[str] = None) -> User:
    """Mirror the auth-provider user locally. Flushes, does not commit."""
    user = db.get(User, user_id)
    if user is None:
        user = User(id=user_id, email=email, is_active=True)
        db.add(user)
        db.flush()
    return user


def create_habit(
    db: Session,
    user_id: str,
    title: str,
    moment: Moment = Moment.morning,
    difficulty: int = 1,
    start_date: Optional[date] = None,
) -> Habit:
    ensure_user(db, user_id)
    habit = Habit(
        user_id=user_id,
        title=title,
        moment=moment,
        difficulty=difficulty,
        start_date=start_date,
        archived=False,
    )
    db.add(habit)
    db.commit()
    db.refresh(habit)
    return habit


def upsert_checkin(
    db: Session,
    user_id: str,
    habit_id: int,
    day: date,
    status: CheckinStatus,
    now: datetime,
    effort: Optional[int] = None,
    dose_actual: Optional[Decimal] = None,
    note: Optional[str] = None,
) -> tuple[HabitCheckin, bool]:
    """Returns (checkin, created)."""
    habit = (
        db.query(Habit.id)
        .filter(Habit.id == habit_id, Habit.user_id == user_id)
        .first()
    )
    if habit is None:
        raise HabitNotFoundError(habit_id=habit_id, user_id=user_id)

    checkin = (
        db.query(HabitCheckin)
        .filter(
            HabitCheckin.user_id == user_id,
            HabitCheckin.habit_id == habit_id,
            HabitCheckin.date == day,
        )
        .first()
    )
    created = checkin is None
    if created:
        checkin = HabitCheckin(
            user_id=user_id,
            habit_id=habit_id,
            date=day,
            status=status,
            effort=DEFAULT_EFFORT if effort is None else effort,
            dose_actual=dose_actual,
            note=note,
        )
        db.add(checkin)
    else:
        checkin.status = status
        if effort is not None:
            checkin.effort = effort
        if dose_actual is not None:
            checkin.dose_actual = dose_actual
        if note is not None:
            checkin.note = note
        checkin.edited_at = now

    db.commit()
    db.refresh(checkin)
    return checkin, created
