"""
Tests for the weekly snapshot generator and narrative collaborators.

Covered:
  - aggregation over a Monday-Sunday week (completion, moments, ranking, mood)
  - week without daily progress → None, nothing written
  - one snapshot per (user, week_start); forced regeneration
  - narrative kept across regenerations, narrator failures ignored
  - staleness window on reads
  - HttpNarrativeClient over httpx.MockTransport, TemplateNarrativeClient
"""
from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest

from ascend.core.errors import NarrativeError
from ascend.models.habit import Moment
from ascend.models.weekly_snapshot import WeeklySnapshot
from ascend.services.daily_progress import aggregate_daily_progress
from ascend.services.narrative import (
    HttpNarrativeClient,
    Narrative,
    NarrativeRequest,
    TemplateNarrativeClient,
)
from ascend.services.weekly_snapshot import (
    aggregate_week,
    generate_weekly_snapshot,
    get_weekly_snapshot,
    is_week_end,
    rank_habits,
    snapshot_lists,
    week_start_for,
)


MONDAY = date(2025, 1, 13)
SUNDAY = date(2025, 1, 19)
NOW = datetime(2025, 1, 19, 23, 0, tzinfo=timezone.utc)


class StubNarrator:
    def __init__(self, summary: str = "stub summary"):
        self.summary = summary
        self.calls = 0

    def generate(self, request: NarrativeRequest) -> Narrative:
        self.calls += 1
        return Narrative(summary=self.summary, insights=["keep going"])


class FailingNarrator:
    def generate(self, request: NarrativeRequest) -> Narrative:
        raise NarrativeError("service down")


@pytest.fixture()
def seeded_week(db, user_id, make_habit, make_checkin):
    """Morning habit done every day, evening habit done Monday and Tuesday."""
    morning = make_habit(user_id, title="Run", moment=Moment.morning)
    evening = make_habit(user_id, title="Read", moment=Moment.evening)
    for i in range(7):
        day = MONDAY + timedelta(days=i)
        make_checkin(user_id, morning.id, day)
        if i < 2:
            make_checkin(user_id, evening.id, day)
    for i in range(7):
        day = MONDAY + timedelta(days=i)
        mood = {0: 7, 1: 8}.get(i)
        aggregate_daily_progress(db, user_id, day, mood_score=mood)
    return user_id, morning, evening


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestWeekHelpers:
    def test_week_start_for(self):
        assert week_start_for(date(2025, 1, 19)) == MONDAY
        assert week_start_for(MONDAY) == MONDAY
        assert week_start_for(date(2025, 1, 15)) == MONDAY

    def test_is_week_end(self):
        assert is_week_end(SUNDAY)
        assert not is_week_end(date(2025, 1, 18))

    def test_rank_habits_disjoint(self):
        rates = {1: Decimal("1"), 2: Decimal("0.5"), 3: Decimal("0.2"), 4: Decimal("0.9"),
                 5: Decimal("0"), 6: Decimal("0.7"), 7: Decimal("0.4")}
        top, struggling = rank_habits(rates)
        assert top == [1, 4, 6]
        assert struggling == [5, 3, 7]
        assert not set(top) & set(struggling)

    def test_rank_habits_all_equal(self):
        assert rank_habits({1: Decimal("0.5"), 2: Decimal("0.5")}) == ([], [])

    def test_rank_habits_single(self):
        assert rank_habits({1: Decimal("0.1")}) == ([], [])


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

class TestAggregateWeek:
    def test_aggregates_week(self, db, seeded_week):
        user_id, morning, evening = seeded_week
        agg = aggregate_week(db, user_id, MONDAY)

        assert agg.week_start == MONDAY
        assert agg.week_end == SUNDAY
        assert agg.tracked_days == 7
        assert agg.total_habits == 14
        assert agg.completed_habits == 9
        assert agg.completion_percentage == 64
        assert agg.best_moment == "morning"
        assert agg.worst_moment == "evening"
        assert agg.top_habits == [morning.id]
        assert agg.struggling_habits == [evening.id]
        assert agg.avg_mood == Decimal("7.50")
        assert agg.avg_energy is None
        assert agg.current_streak == 0
        assert agg.best_streak == 0

    def test_any_day_of_week_normalizes(self, db, seeded_week):
        user_id, _, _ = seeded_week
        assert aggregate_week(db, user_id, date(2025, 1, 16)).week_start == MONDAY

    def test_no_data_week(self, db, user_id, make_habit):
        make_habit(user_id)
        assert aggregate_week(db, user_id, MONDAY) is None

    def test_equal_moments_collapse(self, db, user_id, make_habit, make_checkin):
        a = make_habit(user_id, moment=Moment.morning)
        b = make_habit(user_id, moment=Moment.evening)
        make_checkin(user_id, a.id, MONDAY)
        make_checkin(user_id, b.id, MONDAY)
        aggregate_daily_progress(db, user_id, MONDAY)

        agg = aggregate_week(db, user_id, MONDAY)
        assert agg.best_moment == agg.worst_moment

    def test_mid_week_habit_rated_from_its_start(self, db, user_id, make_habit, make_checkin):
        old = make_habit(user_id, title="Old", moment=Moment.morning)
        new = make_habit(user_id, title="New", moment=Moment.evening, start_date=date(2025, 1, 17))
        for i in range(4):
            make_checkin(user_id, old.id, MONDAY + timedelta(days=i))
        for i in range(4, 7):
            make_checkin(user_id, new.id, MONDAY + timedelta(days=i))
        for i in range(7):
            aggregate_daily_progress(db, user_id, MONDAY + timedelta(days=i))

        agg = aggregate_week(db, user_id, MONDAY)

        assert agg.habit_rates[new.id] == Decimal(1)
        assert agg.habit_rates[old.id] == Decimal(4) / Decimal(7)
        assert agg.top_habits == [new.id]
        assert agg.struggling_habits == [old.id]
        assert agg.best_moment == "evening"
        assert agg.worst_moment == "morning"

    def test_habit_without_tracked_days_not_ranked(self, db, user_id, make_habit, make_checkin):
        first = make_habit(user_id, title="First")
        late = make_habit(user_id, title="Late", start_date=SUNDAY)
        make_checkin(user_id, first.id, MONDAY)
        aggregate_daily_progress(db, user_id, MONDAY)

        agg = aggregate_week(db, user_id, MONDAY)

        assert late.id not in agg.habit_rates
        assert list(agg.habit_rates) == [first.id]


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class TestGenerateWeeklySnapshot:
    def test_generates_and_stores(self, db, seeded_week):
        user_id, morning, evening = seeded_week
        snap = generate_weekly_snapshot(db, user_id, MONDAY, NOW)

        assert snap.id is not None
        assert snap.week_start == MONDAY
        assert snap.week_end == SUNDAY
        assert snap.completion_percentage == 64
        lists = snapshot_lists(snap)
        assert lists["top_habits"] == [morning.id]
        assert lists["struggling_habits"] == [evening.id]

    def test_no_data_writes_nothing(self, db, user_id):
        assert generate_weekly_snapshot(db, user_id, MONDAY, NOW) is None
        assert db.query(WeeklySnapshot).filter(WeeklySnapshot.user_id == user_id).count() == 0

    def test_one_row_per_week(self, db, seeded_week):
        user_id, _, _ = seeded_week
        first = generate_weekly_snapshot(db, user_id, MONDAY, NOW)
        second = generate_weekly_snapshot(db, user_id, date(2025, 1, 17), NOW + timedelta(minutes=5))
        assert first.id == second.id
        assert db.query(WeeklySnapshot).filter(WeeklySnapshot.user_id == user_id).count() == 1

    def test_narrative_attached(self, db, seeded_week):
        user_id, _, _ = seeded_week
        narrator = StubNarrator()
        snap = generate_weekly_snapshot(db, user_id, MONDAY, NOW, narrator=narrator)
        assert snap.ai_summary == "stub summary"
        assert json.loads(snap.ai_insights) == ["keep going"]
        assert narrator.calls == 1

    def test_narrative_preserved_on_regeneration(self, db, seeded_week):
        user_id, _, _ = seeded_week
        generate_weekly_snapshot(db, user_id, MONDAY, NOW, narrator=StubNarrator("first"))
        second = StubNarrator("second")
        snap = generate_weekly_snapshot(db, user_id, MONDAY, NOW, narrator=second)
        assert snap.ai_summary == "first"
        assert second.calls == 0

    def test_force_replaces_narrative(self, db, seeded_week):
        user_id, _, _ = seeded_week
        generate_weekly_snapshot(db, user_id, MONDAY, NOW, narrator=StubNarrator("first"))
        snap = generate_weekly_snapshot(
            db, user_id, MONDAY, NOW, narrator=StubNarrator("second"), force=True,
        )
        assert snap.ai_summary == "second"
        assert db.query(WeeklySnapshot).filter(WeeklySnapshot.user_id == user_id).count() == 1

    def test_narrator_failure_is_ignored(self, db, seeded_week):
        user_id, _, _ = seeded_week
        snap = generate_weekly_snapshot(db, user_id, MONDAY, NOW, narrator=FailingNarrator())
        assert snap is not None
        assert snap.ai_summary is None
        assert snap.completion_percentage == 64


class TestGetWeeklySnapshot:
    def test_fresh_snapshot_served_as_is(self, db, seeded_week, make_checkin):
        user_id, _, evening = seeded_week
        generate_weekly_snapshot(db, user_id, MONDAY, NOW)

        make_checkin(user_id, evening.id, date(2025, 1, 15))
        aggregate_daily_progress(db, user_id, date(2025, 1, 15))

        snap = get_weekly_snapshot(db, user_id, MONDAY, NOW + timedelta(minutes=10))
        assert snap.completed_habits == 9

    def test_stale_snapshot_regenerated(self, db, seeded_week, make_checkin):
        user_id, _, evening = seeded_week
        generate_weekly_snapshot(db, user_id, MONDAY, NOW)

        make_checkin(user_id, evening.id, date(2025, 1, 15))
        aggregate_daily_progress(db, user_id, date(2025, 1, 15))

        snap = get_weekly_snapshot(db, user_id, MONDAY, NOW + timedelta(hours=2))
        assert snap.completed_habits == 10

    def test_missing_snapshot_generated(self, db, seeded_week):
        user_id, _, _ = seeded_week
        snap = get_weekly_snapshot(db, user_id, MONDAY, NOW)
        assert snap is not None
        assert snap.week_start == MONDAY


# ---------------------------------------------------------------------------
# Narrative collaborators
# ---------------------------------------------------------------------------

def _request() -> NarrativeRequest:
    return NarrativeRequest(
        user_id="u-1",
        week_start=MONDAY,
        snapshot={
            "completion_percentage": 64,
            "completed_habits": 9,
            "total_habits": 14,
            "current_streak": 2,
            "best_streak": 5,
            "best_moment": "morning",
            "worst_moment": "evening",
            "struggling_habits": [3],
        },
    )


class TestHttpNarrativeClient:
    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "summary": "Solid week.",
                "insights": ["Sleep earlier", {"title": "Evenings", "description": "move reading"}],
            })

        client = HttpNarrativeClient("http://narrative.test/weekly", transport=httpx.MockTransport(handler))
        narrative = client.generate(_request())

        assert narrative.summary == "Solid week."
        assert narrative.insights == ["Sleep earlier", "Evenings: move reading"]
        assert seen["body"]["userId"] == "u-1"
        assert seen["body"]["weekStart"] == "2025-01-13"
        assert seen["body"]["snapshotData"]["completion_percentage"] == 64

    def test_http_error_status(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(503, json={}))
        client = HttpNarrativeClient("http://narrative.test/weekly", transport=transport)
        with pytest.raises(NarrativeError):
            client.generate(_request())

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("too slow", request=request)

        client = HttpNarrativeClient("http://narrative.test/weekly", transport=httpx.MockTransport(handler))
        with pytest.raises(NarrativeError):
            client.generate(_request())

    def test_missing_summary(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"insights": []}))
        client = HttpNarrativeClient("http://narrative.test/weekly", transport=transport)
        with pytest.raises(NarrativeError):
            client.generate(_request())


class TestTemplateNarrativeClient:
    def test_summary_and_insights(self):
        narrative = TemplateNarrativeClient().generate(_request())
        assert narrative.summary.startswith("Good progress this week with 64% completion (9/14).")
        assert "Mornings are your strength" in narrative.summary
        assert any("Streak recovery" in i for i in narrative.insights)
        assert any("1 habit(s)" in i for i in narrative.insights)
