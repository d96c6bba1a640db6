"""
Weekly snapshot generator — third stage of the rollup.

Window: [week_start, week_start + 6], week_start always a Monday.

Aggregation (aggregate_week)
----------------------------
  completion %      round(100 * sum(completed) / sum(total)) over daily_progress
  streaks           max current / best over the user's habit_metrics rows
  mood / energy     mean of the non-null daily values, 2 decimals
  habit rate        done check-ins / tracked days on or after the habit's
                    start_date (tracked day = a day with a daily_progress
                    row); habits with no such day are not ranked
  moment rate       same ratio pooled per moment (morning, midday, evening);
                    custom-moment habits are left out
  top / struggling  habits ranked by rate; k = min(3, n // 2); top keeps the
                    first k above the minimum rate, struggling the last k
                    below the maximum (worst first). Disjoint by
                    construction, both empty when rates don't differ.

A week without any daily_progress row has no data: aggregate_week returns
None and no snapshot is written.

Narrative
---------
Kept across regenerations; requested only when the row has none (or after a
forced delete). Narrator failures are logged and ignored.

Public API
----------
week_start_for(day)                                         -> date
is_week_end(day)                                            -> bool
rank_habits(rates)                                          -> (top, struggling)
aggregate_week(db, user_id, week_start)                     -> WeeklyAggregate | None
generate_weekly_snapshot(db, user_id, week_start, now, ...) -> WeeklySnapshot | None
get_weekly_snapshot(db, user_id, week_start, now, ...)      -> WeeklySnapshot | None
"""
from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from ascend.core.config import settings
from ascend.models.checkin import HabitCheckin, CheckinStatus
from ascend.models.daily_progress import DailyProgress
from ascend.models.habit import Moment
from ascend.models.habit_metric import HabitMetric
from ascend.models.weekly_snapshot import WeeklySnapshot
from ascend.services.common import as_utc, enum_value
from ascend.services.daily_progress import active_habits, percentage
from ascend.services.narrative import Narrative, NarrativeClient, NarrativeRequest


MOMENT_ORDER = (Moment.morning.value, Moment.midday.value, Moment.evening.value)
MAX_RANKED_HABITS = 3


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class WeeklyAggregate:
    user_id: str
    week_start: date
    week_end: date
    tracked_days: int
    completion_percentage: int
    total_habits: int
    completed_habits: int
    current_streak: int
    best_streak: int
    avg_mood: Optional[Decimal]
    avg_energy: Optional[Decimal]
    best_moment: Optional[str]
    worst_moment: Optional[str]
    top_habits: list[int] = field(default_factory=list)
    struggling_habits: list[int] = field(default_factory=list)
    habit_rates: dict[int, Decimal] = field(default_factory=dict)

    def as_payload(self) -> dict[str, Any]:
        """JSON-safe view handed to narrative collaborators."""
        return {
            "week_start": str(self.week_start),
            "week_end": str(self.week_end),
            "completion_percentage": self.completion_percentage,
            "total_habits": self.total_habits,
            "completed_habits": self.completed_habits,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "avg_mood": float(self.avg_mood) if self.avg_mood is not None else None,
            "avg_energy": float(self.avg_energy) if self.avg_energy is not None else None,
            "best_moment": self.best_moment,
            "worst_moment": self.worst_moment,
            "top_habits": list(self.top_habits),
            "struggling_habits": list(self.struggling_habits),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def week_start_for(day: date) -> date:
    return day - timedelta(days=day.weekday())


def is_week_end(day: date) -> bool:
    return day.weekday() == 6


def _jdump(items: list) -> str:
    return json.dumps(items, ensure_ascii=False)


def _jload(text: Optional[str]) -> list:
    if not text:
        return []
    try:
        result = json.loads(text)
        return result if isinstance(result, list) else []
    except (ValueError, TypeError):
        return []


def _mean(values: list[int]) -> Optional[Decimal]:
    if not values:
        return None
    raw = Decimal(sum(values)) / Decimal(len(values))
    return raw.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def rank_habits(rates: dict[int, Decimal]) -> tuple[list[int], list[int]]:
    if len(rates) < 2:
        return [], []
    highest = max(rates.values())
    lowest = min(rates.values())
    if highest == lowest:
        return [], []

    ordered = sorted(rates.items(), key=lambda kv: (-kv[1], kv[0]))
    k = min(MAX_RANKED_HABITS, len(ordered) // 2)
    top = [habit_id for habit_id, rate in ordered[:k] if rate > lowest]
    struggling = [habit_id for habit_id, rate in reversed(ordered[-k:]) if rate < highest]
    return top, struggling


def _rank_moments(done: dict[str, int], expected: dict[str, int]) -> tuple[Optional[str], Optional[str]]:
    rates = {
        m: Decimal(done[m]) / Decimal(expected[m])
        for m in MOMENT_ORDER
        if expected.get(m)
    }
    if not rates:
        return None, None
    best = max(rates, key=lambda m: rates[m])
    worst = min(rates, key=lambda m: rates[m])
    if rates[best] == rates[worst]:
        worst = best
    return best, worst


# ---------------------------------------------------------------------------
# Core — aggregation (pure query, no writes)
# ---------------------------------------------------------------------------

def aggregate_week(db: Session, user_id: str, week_start: date) -> Optional[WeeklyAggregate]:
    start = week_start_for(week_start)
    end = start + timedelta(days=6)

    days: list[DailyProgress] = (
        db.query(DailyProgress)
        .filter(
            DailyProgress.user_id == user_id,
            DailyProgress.date >= start,
            DailyProgress.date <= end,
        )
        .order_by(DailyProgress.date.asc())
        .all()
    )
    if not days:
        return None

    tracked_dates = [d.date for d in days]
    tracked_days = len(tracked_dates)
    total = sum(d.total_habits for d in days)
    completed = sum(d.completed_habits for d in days)

    current_streak, best_streak = (
        db.query(func.max(HabitMetric.current_streak), func.max(HabitMetric.best_streak))
        .filter(HabitMetric.user_id == user_id)
        .one()
    )

    done_dates: dict[int, list[date]] = defaultdict(list)
    for row in (
        db.query(HabitCheckin.habit_id, HabitCheckin.date)
        .filter(
            HabitCheckin.user_id == user_id,
            HabitCheckin.status == CheckinStatus.done,
            HabitCheckin.date.in_(tracked_dates),
        )
        .all()
    ):
        done_dates[row.habit_id].append(row.date)

    habit_rates: dict[int, Decimal] = {}
    moment_done: dict[str, int] = defaultdict(int)
    moment_expected: dict[str, int] = defaultdict(int)
    for habit in active_habits(db, user_id, end):
        started = habit.start_date
        eligible = sum(1 for d in tracked_dates if started is None or d >= started)
        if not eligible:
            continue
        done = sum(1 for d in done_dates[habit.id] if started is None or d >= started)
        habit_rates[habit.id] = Decimal(done) / Decimal(eligible)
        moment = enum_value(habit.moment)
        if moment in MOMENT_ORDER:
            moment_done[moment] += done
            moment_expected[moment] += eligible

    best_moment, worst_moment = _rank_moments(moment_done, moment_expected)
    top, struggling = rank_habits(habit_rates)

    return WeeklyAggregate(
        user_id=user_id,
        week_start=start,
        week_end=end,
        tracked_days=tracked_days,
        completion_percentage=percentage(completed, total),
        total_habits=total,
        completed_habits=completed,
        current_streak=current_streak or 0,
        best_streak=best_streak or 0,
        avg_mood=_mean([d.mood_score for d in days if d.mood_score is not None]),
        avg_energy=_mean([d.energy_level for d in days if d.energy_level is not None]),
        best_moment=best_moment,
        worst_moment=worst_moment,
        top_habits=top,
        struggling_habits=struggling,
        habit_rates=habit_rates,
    )


# ---------------------------------------------------------------------------
# Narrative enrichment (best effort)
# ---------------------------------------------------------------------------

def _narrate(narrator: NarrativeClient, aggregate: WeeklyAggregate) -> Optional[Narrative]:
    request = NarrativeRequest(
        user_id=aggregate.user_id,
        week_start=aggregate.week_start,
        snapshot=aggregate.as_payload(),
    )
    try:
        return narrator.generate(request)
    except Exception as exc:
        logger.warning(
            "Weekly narrative generation failed; continuing without it",
            user_id=aggregate.user_id,
            week_start=str(aggregate.week_start),
            error=str(exc),
        )
        return None


# ---------------------------------------------------------------------------
# Public — persistence
# ---------------------------------------------------------------------------

def find_snapshot(db: Session, user_id: str, week_start: date) -> Optional[WeeklySnapshot]:
    return (
        db.query(WeeklySnapshot)
        .filter(
            WeeklySnapshot.user_id == user_id,
            WeeklySnapshot.week_start == week_start_for(week_start),
        )
        .first()
    )


def generate_weekly_snapshot(
    db: Session,
    user_id: str,
    week_start: date,
    now: datetime,
    narrator: Optional[NarrativeClient] = None,
    force: bool = False,
    aggregate: Optional[WeeklyAggregate] = None,
) -> Optional[WeeklySnapshot]:
    """
    Recompute and upsert the snapshot for the week containing week_start.
    Returns None (and writes nothing but a forced delete) when the week has
    no data.
    """
    start = week_start_for(week_start)

    if force:
        db.query(WeeklySnapshot).filter(
            WeeklySnapshot.user_id == user_id,
            WeeklySnapshot.week_start == start,
        ).delete(synchronize_session=False)
        db.flush()

    if aggregate is None:
        aggregate = aggregate_week(db, user_id, start)
    if aggregate is None:
        db.commit()
        return None

    row = None if force else find_snapshot(db, user_id, start)
    if row is None:
        row = WeeklySnapshot(user_id=user_id, week_start=start, created_at=now)
        db.add(row)

    row.week_end = aggregate.week_end
    row.completion_percentage = aggregate.completion_percentage
    row.total_habits = aggregate.total_habits
    row.completed_habits = aggregate.completed_habits
    row.current_streak = aggregate.current_streak
    row.best_streak = aggregate.best_streak
    row.avg_mood = aggregate.avg_mood
    row.avg_energy = aggregate.avg_energy
    row.best_moment = aggregate.best_moment
    row.worst_moment = aggregate.worst_moment
    row.top_habits = _jdump(aggregate.top_habits)
    row.struggling_habits = _jdump(aggregate.struggling_habits)
    row.updated_at = now

    if not row.ai_summary and narrator is not None:
        narrative = _narrate(narrator, aggregate)
        if narrative is not None:
            row.ai_summary = narrative.summary
            row.ai_insights = _jdump(narrative.insights)

    db.commit()
    db.refresh(row)
    return row


def get_weekly_snapshot(
    db: Session,
    user_id: str,
    week_start: date,
    now: datetime,
    narrator: Optional[NarrativeClient] = None,
) -> Optional[WeeklySnapshot]:
    """Serve the stored snapshot while fresh; regenerate when stale or missing."""
    existing = find_snapshot(db, user_id, week_start)
    if existing is not None and existing.updated_at is not None:
        max_age = timedelta(seconds=settings.SNAPSHOT_STALE_SECONDS)
        if as_utc(existing.updated_at) > as_utc(now) - max_age:
            return existing
    return generate_weekly_snapshot(db, user_id, week_start, now, narrator=narrator)


def snapshot_lists(row: WeeklySnapshot) -> dict[str, list]:
    """Decode the JSON list columns of a stored snapshot."""
    return {
        "top_habits": _jload(row.top_habits),
        "struggling_habits": _jload(row.struggling_habits),
        "ai_insights": _jload(row.ai_insights),
    }
