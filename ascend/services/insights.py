"""
Insight generator — fourth stage of the rollup.

Rules (evaluated in order over a WeeklyAggregate)
-------------------------------------------------
  1. LOW_COMPLETION
     Trigger : completion_percentage < 50
     Insight : high / weekly, action move_habit {from: evening, to: afternoon}

  2. HIGH_COMPLETION
     Trigger : completion_percentage > 80
     Insight : medium / weekly, action create_challenge

  3. STREAK_RECOVERY
     Trigger : 0 < current_streak < best_streak
     Insight : medium / pattern, action create_challenge {type: streak_recovery}

  4. MOMENT_GAP
     Trigger : best_moment and worst_moment set and different
     Insight : medium / pattern, action adjust_difficulty {focus_moment}

  5. STRUGGLING_HABIT
     Trigger : struggling_habits non-empty
     Insight : high / habit on the single worst habit, action adjust_difficulty

Rules 1 and 2 are mutually exclusive by their thresholds.

Lifecycle
---------
Results are ordered high, medium, low, then newest first, both when freshly
generated and when read back with get_live_insights.

Every insight expires INSIGHT_TTL_DAYS after creation. A live insight is
neither dismissed nor applied and has not expired; resolving it (apply or
dismiss) is terminal.

Persistence policy (settings.INSIGHT_PERSISTENCE)
-------------------------------------------------
  best_effort — a failed insert is logged and the unsaved insights returned
  strict      — a failed insert raises InsightPersistenceError
"""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from loguru import logger
from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ascend.core.config import settings
from ascend.core.errors import (
    InsightAlreadyResolvedError,
    InsightNotFoundError,
    InsightPersistenceError,
)
from ascend.models.habit import Habit
from ascend.models.insight import Insight
from ascend.services.common import as_utc
from ascend.services.weekly_snapshot import WeeklyAggregate, aggregate_week, week_start_for


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

class InsightType:
    WEEKLY  = "weekly"
    PATTERN = "pattern"
    HABIT   = "habit"


class Priority:
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"


class ResolveAction:
    APPLY   = "apply"
    DISMISS = "dismiss"


_LOW_COMPLETION_THRESHOLD  = 50
_HIGH_COMPLETION_THRESHOLD = 80

_RANKS = {Priority.HIGH: 0, Priority.MEDIUM: 1}

_PRIORITY_RANK = case(
    (Insight.priority == Priority.HIGH, 0),
    (Insight.priority == Priority.MEDIUM, 1),
    else_=2,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def is_live(insight: Insight, now: datetime) -> bool:
    return (
        not insight.dismissed
        and not insight.is_applied
        and as_utc(insight.expires_at) > as_utc(now)
    )


def insight_state(insight: Insight, now: datetime) -> str:
    if insight.is_applied:
        return "applied"
    if insight.dismissed:
        return "dismissed"
    if as_utc(insight.expires_at) <= as_utc(now):
        return "expired"
    return "live"


def by_priority(insights: list[Insight]) -> list[Insight]:
    """Same order as get_live_insights: priority, newest first, highest id first."""
    return sorted(
        insights,
        key=lambda i: (
            _RANKS.get(i.priority, 2),
            -as_utc(i.created_at).timestamp(),
            -(i.id or 0),
        ),
    )


def action_data(insight: Insight) -> dict:
    if not insight.action_data:
        return {}
    try:
        result = json.loads(insight.action_data)
        return result if isinstance(result, dict) else {}
    except (ValueError, TypeError):
        return {}


def _new(
    aggregate: WeeklyAggregate,
    user_id: str,
    now: datetime,
    *,
    insight_type: str,
    priority: str,
    title: str,
    description: str,
    evidence: str,
    suggested_action: str,
    action_type: str,
    data: dict,
    related_habit_id: Optional[int] = None,
) -> Insight:
    return Insight(
        user_id=user_id,
        insight_type=insight_type,
        priority=priority,
        title=title,
        description=description,
        evidence=evidence,
        suggested_action=suggested_action,
        action_type=action_type,
        action_data=json.dumps(data),
        related_habit_id=related_habit_id,
        related_week_start=aggregate.week_start,
        dismissed=False,
        is_applied=False,
        expires_at=now + timedelta(days=settings.INSIGHT_TTL_DAYS),
        created_at=now,
    )


# ---------------------------------------------------------------------------
# Individual rule evaluators
# ---------------------------------------------------------------------------

def _rule_low_completion(agg: WeeklyAggregate, user_id: str, habit: Optional[Habit], now: datetime) -> Optional[Insight]:
    """Rule 1: completion < 50% → move evening habits earlier."""
    if agg.completion_percentage >= _LOW_COMPLETION_THRESHOLD:
        return None
    return _new(
        agg, user_id, now,
        insight_type=InsightType.WEEKLY,
        priority=Priority.HIGH,
        title="Evenings need attention",
        description=(
            "Your evening habits are struggling. "
            "Consider moving them earlier or reducing difficulty."
        ),
        evidence=f"Only {agg.completion_percentage}% completion this week",
        suggested_action="Move evening habits to afternoon",
        action_type="move_habit",
        data={"from": "evening", "to": "afternoon"},
    )


def _rule_high_completion(agg: WeeklyAggregate, user_id: str, habit: Optional[Habit], now: datetime) -> Optional[Insight]:
    """Rule 2: completion > 80% → suggest a new challenge."""
    if agg.completion_percentage <= _HIGH_COMPLETION_THRESHOLD:
        return None
    return _new(
        agg, user_id, now,
        insight_type=InsightType.WEEKLY,
        priority=Priority.MEDIUM,
        title="Great consistency!",
        description=(
            "Excellent week! Your habits are becoming automatic. "
            "Consider adding a new challenge."
        ),
        evidence=f"{agg.completion_percentage}% completion rate achieved",
        suggested_action="Add a new habit to your routine",
        action_type="create_challenge",
        data={"difficulty": "medium", "category": "wellness"},
    )


def _rule_streak_recovery(agg: WeeklyAggregate, user_id: str, habit: Optional[Habit], now: datetime) -> Optional[Insight]:
    """Rule 3: rebuilding a streak below the personal best."""
    if not (0 < agg.current_streak < agg.best_streak):
        return None
    return _new(
        agg, user_id, now,
        insight_type=InsightType.PATTERN,
        priority=Priority.MEDIUM,
        title="Streak recovery opportunity",
        description="You're rebuilding your streak. Focus on consistency over perfection.",
        evidence=f"Current streak: {agg.current_streak}, Best: {agg.best_streak}",
        suggested_action="Set a micro-goal for this week",
        action_type="create_challenge",
        data={"type": "streak_recovery", "target": agg.best_streak},
    )


def _rule_moment_gap(agg: WeeklyAggregate, user_id: str, habit: Optional[Habit], now: datetime) -> Optional[Insight]:
    """Rule 4: one moment of the day clearly outperforms another."""
    best, worst = agg.best_moment, agg.worst_moment
    if not best or not worst or best == worst:
        return None
    return _new(
        agg, user_id, now,
        insight_type=InsightType.PATTERN,
        priority=Priority.MEDIUM,
        title=f"{best.capitalize()} is your strength",
        description=(
            f"You perform best in the {best}. "
            f"Consider optimizing your {worst} habits."
        ),
        evidence=f"Best: {best}, Challenging: {worst}",
        suggested_action=f"Optimize {worst} routine",
        action_type="adjust_difficulty",
        data={"focus_moment": worst},
    )


def _rule_struggling_habit(agg: WeeklyAggregate, user_id: str, habit: Optional[Habit], now: datetime) -> Optional[Insight]:
    """Rule 5: the single worst habit of the week needs adjusting."""
    if not agg.struggling_habits or habit is None:
        return None
    return _new(
        agg, user_id, now,
        insight_type=InsightType.HABIT,
        priority=Priority.HIGH,
        title=f"{habit.title} needs attention",
        description=(
            "This habit is consistently challenging. "
            "Consider adjusting the difficulty or timing."
        ),
        evidence="Low completion rate this week",
        suggested_action=f"Adjust {habit.title} difficulty",
        action_type="adjust_difficulty",
        data={"habit_id": habit.id, "current_difficulty": habit.difficulty},
        related_habit_id=habit.id,
    )


_RULES: tuple[Callable[..., Optional[Insight]], ...] = (
    _rule_low_completion,
    _rule_high_completion,
    _rule_streak_recovery,
    _rule_moment_gap,
    _rule_struggling_habit,
)


# ---------------------------------------------------------------------------
# Public — pure evaluation
# ---------------------------------------------------------------------------

def build_insights(
    aggregate: WeeklyAggregate,
    user_id: str,
    habit: Optional[Habit],
    now: datetime,
) -> list[Insight]:
    """
    Evaluate every rule against the aggregate. `habit` is the worst
    struggling habit (or None). Returns transient Insight rows, nothing is
    added to a session.
    """
    results: list[Insight] = []
    for rule in _RULES:
        insight = rule(aggregate, user_id, habit, now)
        if insight is not None:
            results.append(insight)
    return by_priority(results)


# ---------------------------------------------------------------------------
# Public — queries
# ---------------------------------------------------------------------------

def get_live_insights(db: Session, user_id: str, now: datetime, limit: int = 10) -> list[Insight]:
    return (
        db.query(Insight)
        .filter(
            Insight.user_id == user_id,
            Insight.dismissed.is_(False),
            Insight.is_applied.is_(False),
            Insight.expires_at > now,
        )
        .order_by(_PRIORITY_RANK, Insight.created_at.desc(), Insight.id.desc())
        .limit(limit)
        .all()
    )


# ---------------------------------------------------------------------------
# Public — generation
# ---------------------------------------------------------------------------

def _persist(db: Session, insights: list[Insight]) -> None:
    db.add_all(insights)
    db.commit()
    for insight in insights:
        db.refresh(insight)


def generate_insights(
    db: Session,
    user_id: str,
    week_start: date,
    now: datetime,
    force: bool = False,
    aggregate: Optional[WeeklyAggregate] = None,
) -> list[Insight]:
    start = week_start_for(week_start)

    if not force:
        live = get_live_insights(db, user_id, now)
        if live:
            return live
    else:
        db.query(Insight).filter(
            Insight.user_id == user_id,
            Insight.related_week_start == start,
        ).delete(synchronize_session=False)
        db.flush()

    if aggregate is None:
        aggregate = aggregate_week(db, user_id, start)
    if aggregate is None:
        db.commit()
        return []

    habit = None
    if aggregate.struggling_habits:
        habit = db.get(Habit, aggregate.struggling_habits[0])

    insights = build_insights(aggregate, user_id, habit, now)
    if not insights:
        db.commit()
        return []

    try:
        _persist(db, insights)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Insight persistence failed",
            user_id=user_id,
            week_start=str(start),
            count=len(insights),
            policy=settings.INSIGHT_PERSISTENCE,
            error=str(exc),
        )
        if settings.INSIGHT_PERSISTENCE == "strict":
            raise InsightPersistenceError(user_id=user_id, reason=str(exc)) from exc
        return insights

    logger.info("Insights generated", user_id=user_id, week_start=str(start), count=len(insights))
    return by_priority(insights)


# ---------------------------------------------------------------------------
# Public — lifecycle
# ---------------------------------------------------------------------------

def resolve_insight(
    db: Session,
    user_id: str,
    insight_id: int,
    action: str,
    now: datetime,
) -> Insight:
    """Apply or dismiss a live insight. Terminal states cannot be changed."""
    if action not in (ResolveAction.APPLY, ResolveAction.DISMISS):
        raise ValueError(f"unknown insight action: {action}")

    insight = (
        db.query(Insight)
        .filter(Insight.id == insight_id, Insight.user_id == user_id)
        .first()
    )
    if insight is None:
        raise InsightNotFoundError(insight_id=insight_id)

    state = insight_state(insight, now)
    if state != "live":
        raise InsightAlreadyResolvedError(insight_id=insight_id, state=state)

    if action == ResolveAction.APPLY:
        insight.is_applied = True
        insight.applied_at = now
    else:
        insight.dismissed = True
        insight.dismissed_at = now

    db.commit()
    db.refresh(insight)
    return insight
