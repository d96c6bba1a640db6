"""
Habit metric updater — second stage of the rollup.

Streak
------
Only "done" check-ins on or before `as_of` count. The current streak is the
run of consecutive calendar days ending at the most recent done date, and
only while that date is `as_of` or the day before; otherwise it is 0.
The best streak is the longest run anywhere in the history.

EMA30
-----
rate    = min(1, done check-ins in [as_of - 30, as_of] / 30)
ema_new = alpha * rate + (1 - alpha) * ema_prev,  alpha = 2 / (30 + 1)
ema_prev defaults to 0.5 for a habit without a metric row. A window with no
check-ins at all leaves the EMA untouched: no data is not a penalty.

Maintenance mode
----------------
enter: ema30 >= 0.80 and current streak >= 42 (six weeks)
exit : ema30 <  0.70
otherwise the previous flag is kept.

Public API
----------
compute_streak(done_dates, as_of)                 -> StreakState      (pure)
next_ema(previous, done_count, window_checkins)   -> Decimal          (pure)
next_maintenance_mode(current, ema30, streak)     -> bool             (pure)
update_habit_metric(db, user_id, habit_id, as_of) -> HabitMetricUpdate (commit)
update_user_habit_metrics(db, user_id, as_of)     -> list[HabitUpdateOutcome]
get_habit_metric(db, user_id, habit_id)           -> HabitMetric | None
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from ascend.core.config import settings
from ascend.core.errors import HabitNotFoundError
from ascend.models.checkin import HabitCheckin, CheckinStatus
from ascend.models.habit import Habit
from ascend.models.habit_metric import HabitMetric
from ascend.services.daily_progress import active_habits


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMA_WINDOW_DAYS = 30
EMA_ALPHA = Decimal(2) / Decimal(EMA_WINDOW_DAYS + 1)
EMA_DEFAULT = Decimal("0.5000")
_EMA_QUANT = Decimal("0.0001")

MAINTENANCE_ENTER_EMA = Decimal("0.80")
MAINTENANCE_ENTER_STREAK = 42
MAINTENANCE_EXIT_EMA = Decimal("0.70")

# Relative EMA drop that flags a habit for coaching follow-up
CONSISTENCY_DROP_THRESHOLD = Decimal("0.15")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class StreakState:
    current: int
    best: int
    last_date: Optional[date]


@dataclass
class HabitMetricUpdate:
    metric: HabitMetric
    previous_ema: Decimal
    consistency_drop: bool


@dataclass
class HabitUpdateOutcome:
    """Per-habit result inside a user's rollup. Exactly one of update/error is set."""
    habit_id: int
    ok: bool
    update: Optional[HabitMetricUpdate] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Pure calculators
# ---------------------------------------------------------------------------

def compute_streak(done_dates: Iterable[date], as_of: date) -> StreakState:
    dates = sorted({d for d in done_dates if d <= as_of}, reverse=True)
    if not dates:
        return StreakState(current=0, best=0, last_date=None)

    one_day = timedelta(days=1)

    run = 1
    for prev, cur in zip(dates, dates[1:]):
        if prev - cur != one_day:
            break
        run += 1
    is_live = (as_of - dates[0]).days <= 1
    current = run if is_live else 0

    best = 1
    length = 1
    for prev, cur in zip(dates, dates[1:]):
        if prev - cur == one_day:
            length += 1
            best = max(best, length)
        else:
            length = 1

    return StreakState(current=current, best=max(best, current), last_date=dates[0])


def _clamp_unit(value: Decimal) -> Decimal:
    return min(Decimal("1"), max(Decimal("0"), value))


def next_ema(previous: Decimal, done_count: int, window_checkins: int) -> Decimal:
    previous = _clamp_unit(Decimal(previous))
    if window_checkins == 0:
        return previous.quantize(_EMA_QUANT, rounding=ROUND_HALF_UP)
    rate = min(Decimal("1"), Decimal(done_count) / Decimal(EMA_WINDOW_DAYS))
    value = EMA_ALPHA * rate + (Decimal("1") - EMA_ALPHA) * previous
    return _clamp_unit(value.quantize(_EMA_QUANT, rounding=ROUND_HALF_UP))


def next_maintenance_mode(current: bool, ema30: Decimal, current_streak: int) -> bool:
    if ema30 >= MAINTENANCE_ENTER_EMA and current_streak >= MAINTENANCE_ENTER_STREAK:
        return True
    if ema30 < MAINTENANCE_EXIT_EMA:
        return False
    return current


def is_consistency_drop(previous: Decimal, current: Decimal) -> bool:
    if previous <= 0:
        return False
    return (previous - current) / previous > CONSISTENCY_DROP_THRESHOLD


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_habit_metric(db: Session, user_id: str, habit_id: int) -> Optional[HabitMetric]:
    return (
        db.query(HabitMetric)
        .filter(HabitMetric.user_id == user_id, HabitMetric.habit_id == habit_id)
        .first()
    )


def _done_dates(db: Session, user_id: str, habit_id: int, as_of: date) -> list[date]:
    rows = (
        db.query(HabitCheckin.date)
        .filter(
            HabitCheckin.user_id == user_id,
            HabitCheckin.habit_id == habit_id,
            HabitCheckin.status == CheckinStatus.done,
            HabitCheckin.date <= as_of,
        )
        .order_by(HabitCheckin.date.desc())
        .all()
    )
    return [r.date for r in rows]


def _window_counts(db: Session, user_id: str, habit_id: int, as_of: date) -> tuple[int, int]:
    """Return (done, any-status) check-in counts inside the EMA window."""
    start = as_of - timedelta(days=EMA_WINDOW_DAYS)
    base = db.query(func.count(HabitCheckin.id)).filter(
        HabitCheckin.user_id == user_id,
        HabitCheckin.habit_id == habit_id,
        HabitCheckin.date >= start,
        HabitCheckin.date <= as_of,
    )
    total = base.scalar() or 0
    done = base.filter(HabitCheckin.status == CheckinStatus.done).scalar() or 0
    return done, total


# ---------------------------------------------------------------------------
# Core — flush only (shared by single and per-user paths)
# ---------------------------------------------------------------------------

def _update_one(db: Session, user_id: str, habit_id: int, as_of: date) -> HabitMetricUpdate:
    """
    Recompute streak + EMA for one habit and upsert its metric row.
    Calls db.flush() but does NOT commit.
    """
    habit = (
        db.query(Habit.id)
        .filter(Habit.id == habit_id, Habit.user_id == user_id)
        .first()
    )
    if habit is None:
        raise HabitNotFoundError(habit_id=habit_id, user_id=user_id)

    metric = get_habit_metric(db, user_id, habit_id)
    previous_ema = Decimal(metric.ema30) if metric is not None else EMA_DEFAULT

    streak = compute_streak(_done_dates(db, user_id, habit_id, as_of), as_of)
    done, total = _window_counts(db, user_id, habit_id, as_of)
    ema30 = next_ema(previous_ema, done, total)

    if metric is None:
        metric = HabitMetric(user_id=user_id, habit_id=habit_id, maintenance_mode=False)
        db.add(metric)

    metric.ema30 = ema30
    metric.current_streak = streak.current
    metric.best_streak = streak.best
    metric.streak_last_date = streak.last_date
    metric.grace_tokens = settings.GRACE_TOKENS
    metric.maintenance_mode = next_maintenance_mode(
        bool(metric.maintenance_mode), ema30, streak.current
    )
    metric.last_updated = as_of
    db.flush()

    dropped = is_consistency_drop(previous_ema, ema30)
    if dropped:
        logger.warning(
            "Habit consistency dropped",
            user_id=user_id,
            habit_id=habit_id,
            previous_ema=str(previous_ema),
            ema30=str(ema30),
        )
    return HabitMetricUpdate(metric=metric, previous_ema=previous_ema, consistency_drop=dropped)


# ---------------------------------------------------------------------------
# Public — single habit
# ---------------------------------------------------------------------------

def update_habit_metric(db: Session, user_id: str, habit_id: int, as_of: date) -> HabitMetricUpdate:
    result = _update_one(db, user_id, habit_id, as_of)
    db.commit()
    db.refresh(result.metric)
    return result


# ---------------------------------------------------------------------------
# Public — every active habit of a user
# ---------------------------------------------------------------------------

def update_user_habit_metrics(db: Session, user_id: str, as_of: date) -> list[HabitUpdateOutcome]:
    """
    Update all active habits of a user using one savepoint per habit.
    A failure on one habit is rolled back and recorded; the others proceed.
    """
    outcomes: list[HabitUpdateOutcome] = []

    for habit in active_habits(db, user_id, as_of):
        habit_id = habit.id
        savepoint = db.begin_nested()
        try:
            update = _update_one(db, user_id, habit_id, as_of)
            savepoint.commit()
            outcomes.append(HabitUpdateOutcome(habit_id=habit_id, ok=True, update=update))
        except Exception as exc:
            savepoint.rollback()
            logger.error(
                "Habit metric update failed",
                user_id=user_id,
                habit_id=habit_id,
                error=str(exc),
            )
            outcomes.append(HabitUpdateOutcome(habit_id=habit_id, ok=False, error=str(exc)))

    db.commit()
    return outcomes
