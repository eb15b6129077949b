"""Daily habit record, derived from check-ins and manual habit logs."""

from sqlalchemy import Column, Integer, String, Date, DateTime, Float, Boolean, Text, UniqueConstraint
from datetime import datetime

from clarity.database import Base


class DailyHabit(Base):
    """Mergeable per-day lifestyle summary used for scoring and weekly analysis."""

    __tablename__ = "daily_habits"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_habit_user_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    # Caffeine
    caffeine_cups = Column(Integer, nullable=True)
    caffeine_late = Column(Boolean, nullable=True)  # after 2pm

    # Sleep
    sleep_hours = Column(Float, nullable=True)
    sleep_quality = Column(String(20), nullable=True)  # poor, fair, good, excellent
    naps_taken = Column(Integer, nullable=True)
    woke_on_time = Column(Boolean, nullable=True)
    sleep_felt_complete = Column(Boolean, nullable=True)

    # Alcohol
    alcohol_drinks = Column(Integer, nullable=True)

    # Exercise
    exercise_done = Column(Boolean, nullable=True)
    exercise_duration = Column(Integer, nullable=True)  # minutes
    exercise_intensity = Column(String(20), nullable=True)  # light, moderate, intense

    # Meals & hydration
    meals_count = Column(Integer, nullable=True)
    meals_skipped = Column(String(50), nullable=True)  # breakfast, lunch, dinner
    water_glasses = Column(Integer, nullable=True)

    # Screens
    screen_time_hours = Column(Float, nullable=True)
    screen_before_bed = Column(Boolean, nullable=True)
    social_media_hours = Column(Float, nullable=True)

    # Mental health
    mood = Column(String(20), nullable=True)  # very_low, low, neutral, good, great
    stress_level = Column(Integer, nullable=True)  # 1-10
    anxiety_level = Column(Integer, nullable=True)  # 1-10
    anger_incidents = Column(Integer, nullable=True)

    # Social & environment
    social_interaction = Column(String(20), nullable=True)  # none, minimal, moderate, lots
    outdoor_time = Column(Integer, nullable=True)  # minutes

    # Mindfulness
    meditation_done = Column(Boolean, nullable=True)
    meditation_minutes = Column(Integer, nullable=True)
    journaling_done = Column(Boolean, nullable=True)

    # Work
    work_hours = Column(Float, nullable=True)
    work_stress = Column(String(20), nullable=True)  # low, moderate, high, extreme

    # Negative habits
    smoking = Column(Boolean, nullable=True)
    junk_food = Column(Boolean, nullable=True)
    late_night_eating = Column(Boolean, nullable=True)

    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DailyHabit {self.date} mood:{self.mood} stress:{self.stress_level}>"


# Columns a habit patch may write. Anything else in a patch is ignored.
HABIT_FIELDS = tuple(
    column.name
    for column in DailyHabit.__table__.columns
    if column.name not in {"id", "user_id", "date", "created_at", "updated_at"}
)
