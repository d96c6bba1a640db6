"""
Tests for the habit metric updater.

Covered:
  - streak: consecutive run ending today, 2-day gap resets current, best kept
  - EMA: 9 done in 30 days from 0.5 → 0.4871; bounds; no-data short-circuit
  - maintenance mode enter / hold / exit
  - per-habit isolation inside a user's update
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from ascend.core.errors import HabitNotFoundError
from ascend.models.checkin import CheckinStatus
from ascend.models.habit_metric import HabitMetric
from ascend.services import habit_metrics
from ascend.services.habit_metrics import (
    EMA_DEFAULT,
    compute_streak,
    is_consistency_drop,
    next_ema,
    next_maintenance_mode,
    update_habit_metric,
    update_user_habit_metrics,
)


def _d(s: str) -> date:
    return date.fromisoformat(s)


# ---------------------------------------------------------------------------
# Streak
# ---------------------------------------------------------------------------

class TestStreak:
    DONE = [_d("2025-01-13"), _d("2025-01-14"), _d("2025-01-15")]

    def test_consecutive_run_ending_today(self):
        s = compute_streak(self.DONE, _d("2025-01-15"))
        assert s.current == 3
        assert s.best == 3
        assert s.last_date == _d("2025-01-15")

    def test_run_ending_yesterday_still_counts(self):
        s = compute_streak(self.DONE, _d("2025-01-16"))
        assert s.current == 3

    def test_two_day_gap_resets_current(self):
        s = compute_streak(self.DONE, _d("2025-01-17"))
        assert s.current == 0
        assert s.best == 3

    def test_best_is_longest_run_in_history(self):
        dates = [_d("2025-01-01"), _d("2025-01-02"), _d("2025-01-03"), _d("2025-01-04"),
                 _d("2025-01-10"), _d("2025-01-11")]
        s = compute_streak(dates, _d("2025-01-11"))
        assert s.current == 2
        assert s.best == 4

    def test_future_dates_ignored(self):
        s = compute_streak(self.DONE + [_d("2025-01-20")], _d("2025-01-15"))
        assert s.current == 3
        assert s.last_date == _d("2025-01-15")

    def test_no_done_checkins(self):
        s = compute_streak([], _d("2025-01-15"))
        assert (s.current, s.best, s.last_date) == (0, 0, None)


# ---------------------------------------------------------------------------
# EMA
# ---------------------------------------------------------------------------

class TestEma:
    def test_nine_done_from_default(self):
        assert next_ema(EMA_DEFAULT, done_count=9, window_checkins=9) == Decimal("0.4871")

    def test_no_checkins_leaves_ema_unchanged(self):
        assert next_ema(Decimal("0.7312"), done_count=0, window_checkins=0) == Decimal("0.7312")

    def test_skips_only_pull_ema_down(self):
        assert next_ema(Decimal("0.5"), done_count=0, window_checkins=5) < Decimal("0.5")

    @pytest.mark.parametrize("previous,done", [
        (Decimal("0"), 0), (Decimal("1"), 31), (Decimal("1"), 30), (Decimal("0.9999"), 45),
    ])
    def test_bounds(self, previous, done):
        value = next_ema(previous, done, max(done, 1))
        assert Decimal("0") <= value <= Decimal("1")

    def test_consistency_drop(self):
        assert is_consistency_drop(Decimal("0.8"), Decimal("0.6"))
        assert not is_consistency_drop(Decimal("0.8"), Decimal("0.7"))
        assert not is_consistency_drop(Decimal("0"), Decimal("0"))


class TestMaintenanceMode:
    def test_enter(self):
        assert next_maintenance_mode(False, Decimal("0.80"), 42) is True

    def test_not_enough_streak(self):
        assert next_maintenance_mode(False, Decimal("0.95"), 41) is False

    def test_hold_between_thresholds(self):
        assert next_maintenance_mode(True, Decimal("0.75"), 10) is True
        assert next_maintenance_mode(False, Decimal("0.75"), 10) is False

    def test_exit(self):
        assert next_maintenance_mode(True, Decimal("0.6999"), 100) is False


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class TestUpdateHabitMetric:
    AS_OF = _d("2025-01-15")

    def test_creates_metric_row(self, db, user_id, make_habit, make_checkin):
        h = make_habit(user_id)
        for i in range(9):
            make_checkin(user_id, h.id, self.AS_OF - timedelta(days=i * 3))

        result = update_habit_metric(db, user_id, h.id, self.AS_OF)
        m = result.metric

        assert m.ema30 == Decimal("0.4871")
        assert result.previous_ema == EMA_DEFAULT
        assert m.current_streak == 1
        assert m.best_streak >= m.current_streak
        assert m.grace_tokens == 3
        assert m.maintenance_mode is False
        assert m.last_updated == self.AS_OF

    def test_upsert_keeps_one_row(self, db, user_id, make_habit, make_checkin):
        h = make_habit(user_id)
        make_checkin(user_id, h.id, self.AS_OF)
        update_habit_metric(db, user_id, h.id, self.AS_OF)
        update_habit_metric(db, user_id, h.id, self.AS_OF)
        count = db.query(HabitMetric).filter(HabitMetric.habit_id == h.id).count()
        assert count == 1

    def test_no_checkins_keeps_default_ema(self, db, user_id, make_habit):
        h = make_habit(user_id)
        result = update_habit_metric(db, user_id, h.id, self.AS_OF)
        assert result.metric.ema30 == EMA_DEFAULT
        assert result.metric.current_streak == 0
        assert result.metric.streak_last_date is None

    def test_checkins_outside_window_ignored_for_ema(self, db, user_id, make_habit, make_checkin):
        h = make_habit(user_id)
        make_checkin(user_id, h.id, self.AS_OF - timedelta(days=31))
        result = update_habit_metric(db, user_id, h.id, self.AS_OF)
        assert result.metric.ema30 == EMA_DEFAULT
        assert result.metric.best_streak == 1

    def test_skipped_checkin_counts_as_window_data(self, db, user_id, make_habit, make_checkin):
        h = make_habit(user_id)
        make_checkin(user_id, h.id, self.AS_OF, CheckinStatus.skipped)
        result = update_habit_metric(db, user_id, h.id, self.AS_OF)
        assert result.metric.ema30 < EMA_DEFAULT
        assert result.metric.current_streak == 0

    def test_unknown_habit(self, db, user_id):
        with pytest.raises(HabitNotFoundError):
            update_habit_metric(db, user_id, 999_999, self.AS_OF)

    def test_other_users_habit_rejected(self, db, user_id, make_habit):
        h = make_habit(user_id)
        with pytest.raises(HabitNotFoundError):
            update_habit_metric(db, "someone-else", h.id, self.AS_OF)


class TestUpdateUserHabitMetrics:
    AS_OF = _d("2025-01-15")

    def test_all_active_habits_updated(self, db, user_id, make_habit, make_checkin):
        a = make_habit(user_id, title="a")
        b = make_habit(user_id, title="b")
        make_habit(user_id, title="archived", archived=True)
        make_checkin(user_id, a.id, self.AS_OF)

        outcomes = update_user_habit_metrics(db, user_id, self.AS_OF)

        assert [o.habit_id for o in outcomes] == [a.id, b.id]
        assert all(o.ok for o in outcomes)

    def test_one_failing_habit_does_not_block_others(self, db, user_id, make_habit, make_checkin, monkeypatch):
        a = make_habit(user_id, title="a")
        b = make_habit(user_id, title="b")
        c = make_habit(user_id, title="c")
        for h in (a, b, c):
            make_checkin(user_id, h.id, self.AS_OF)

        real = habit_metrics._update_one

        def flaky(db_, uid, habit_id, as_of):
            if habit_id == b.id:
                raise RuntimeError("boom")
            return real(db_, uid, habit_id, as_of)

        monkeypatch.setattr(habit_metrics, "_update_one", flaky)
        outcomes = update_user_habit_metrics(db, user_id, self.AS_OF)

        by_id = {o.habit_id: o for o in outcomes}
        assert by_id[a.id].ok and by_id[c.id].ok
        assert not by_id[b.id].ok
        assert by_id[b.id].error == "boom"

        stored = {m.habit_id for m in db.query(HabitMetric).filter(HabitMetric.user_id == user_id)}
        assert stored == {a.id, c.id}
