"""
Daily rollup batch driver.

For each targeted user, sequentially:
  1. aggregate_daily_progress       (that day)
  2. update_user_habit_metrics      (each habit in its own savepoint)
  3. generate_weekly_snapshot       (Sundays only, for the week ending that day)
  4. generate_insights              (only when step 3 produced a snapshot)

A failure for one user is logged, rolled back and recorded; the batch moves
on to the next user.

Public API
----------
run_user_rollup(db, user_id, day, now, narrator)           -> UserRollupResult
run_daily_rollup(db, day, now, user_id=None, narrator=None) -> RollupReport
get_rollup_status(db)                                       -> RollupStatus
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from ascend.core.errors import UserNotFoundError
from ascend.models.habit import Habit
from ascend.models.habit_metric import HabitMetric
from ascend.models.user import User
from ascend.services.daily_progress import aggregate_daily_progress
from ascend.services.habit_metrics import update_user_habit_metrics
from ascend.services.insights import generate_insights
from ascend.services.narrative import NarrativeClient
from ascend.services.weekly_snapshot import generate_weekly_snapshot, is_week_end, week_start_for


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class UserRollupResult:
    user_id: str
    success: bool
    error: Optional[str] = None
    habits_updated: int = 0
    habits_failed: int = 0
    snapshot_generated: bool = False
    insights_generated: int = 0


@dataclass
class RollupReport:
    day: date
    results: list[UserRollupResult] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


@dataclass
class RollupStatus:
    active_users: int
    active_habits: int
    metric_rows: int
    last_updated: Optional[date]


# ---------------------------------------------------------------------------
# One user
# ---------------------------------------------------------------------------

def run_user_rollup(
    db: Session,
    user_id: str,
    day: date,
    now: datetime,
    narrator: Optional[NarrativeClient] = None,
) -> UserRollupResult:
    """Run all four stages for one user. Exceptions propagate to the caller."""
    result = UserRollupResult(user_id=user_id, success=False)

    aggregate_daily_progress(db, user_id, day)

    outcomes = update_user_habit_metrics(db, user_id, day)
    result.habits_updated = sum(1 for o in outcomes if o.ok)
    result.habits_failed = sum(1 for o in outcomes if not o.ok)

    if is_week_end(day):
        week_start = week_start_for(day)
        snapshot = generate_weekly_snapshot(db, user_id, week_start, now, narrator=narrator)
        if snapshot is not None:
            result.snapshot_generated = True
            insights = generate_insights(db, user_id, week_start, now)
            result.insights_generated = len(insights)

    result.success = True
    return result


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def _target_users(db: Session, user_id: Optional[str]) -> list[str]:
    if user_id is not None:
        if db.get(User, user_id) is None:
            raise UserNotFoundError(user_id=user_id)
        return [user_id]
    rows = (
        db.query(User.id)
        .filter(User.is_active.is_(True))
        .order_by(User.id)
        .all()
    )
    return [r.id for r in rows]


def run_daily_rollup(
    db: Session,
    day: date,
    now: datetime,
    user_id: Optional[str] = None,
    narrator: Optional[NarrativeClient] = None,
) -> RollupReport:
    """
    Roll up `day` for one user or every active user, one at a time.
    A failing user never blocks the others.
    An explicit `user_id` that does not exist raises UserNotFoundError.
    """
    started = time.monotonic()
    report = RollupReport(day=day)
    users = _target_users(db, user_id)
    logger.info("Daily rollup started", day=str(day), users=len(users))

    for uid in users:
        try:
            result = run_user_rollup(db, uid, day, now, narrator=narrator)
            logger.info(
                "User rollup finished",
                user_id=uid,
                habits_updated=result.habits_updated,
                habits_failed=result.habits_failed,
                snapshot_generated=result.snapshot_generated,
            )
        except Exception as exc:
            db.rollback()
            logger.error("User rollup failed", user_id=uid, day=str(day), error=str(exc))
            result = UserRollupResult(user_id=uid, success=False, error=str(exc))
        report.results.append(result)

    report.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "Daily rollup completed",
        day=str(day),
        processed=report.processed,
        failed=report.failed,
        duration_ms=report.duration_ms,
    )
    return report


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def get_rollup_status(db: Session) -> RollupStatus:
    active_users = db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
    active_habits = db.query(func.count(Habit.id)).filter(Habit.archived.is_(False)).scalar() or 0
    metric_rows = db.query(func.count(HabitMetric.id)).scalar() or 0
    last_updated = db.query(func.max(HabitMetric.last_updated)).scalar()
    return RollupStatus(
        active_users=active_users,
        active_habits=active_habits,
        metric_rows=metric_rows,
        last_updated=last_updated,
    )
