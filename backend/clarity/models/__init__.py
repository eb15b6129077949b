"""Database models package."""

from clarity.models.check_in import CheckIn
from clarity.models.health_record import HealthRecord, HEALTH_RECORD_KINDS
from clarity.models.daily_habit import DailyHabit, HABIT_FIELDS
from clarity.models.energy_score import EnergyScore
from clarity.models.habit_pattern import HabitPattern
from clarity.models.explanation_feedback import ExplanationFeedback

__all__ = [
    "CheckIn",
    "HealthRecord",
    "HEALTH_RECORD_KINDS",
    "DailyHabit",
    "HABIT_FIELDS",
    "EnergyScore",
    "HabitPattern",
    "ExplanationFeedback",
]
