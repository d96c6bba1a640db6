from .user import User
from .habit import Habit
from .checkin import HabitCheckin
from .daily_progress import DailyProgress
from .habit_metric import HabitMetric
from .weekly_snapshot import WeeklySnapshot
from .insight import Insight

__all__ = [
    "User",
    "Habit",
    "HabitCheckin",
    "DailyProgress",
    "HabitMetric",
    "WeeklySnapshot",
    "Insight",
]
