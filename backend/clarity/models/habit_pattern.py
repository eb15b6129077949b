"""Weekly habit pattern analysis, one per user and week."""

from sqlalchemy import Column, Integer, String, Date, DateTime, Text, JSON, UniqueConstraint
from datetime import datetime

from clarity.database import Base


class HabitPattern(Base):
    """Stored weekly analysis: worst/best habits, correlations, recommendations."""

    __tablename__ = "habit_patterns"
    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_habit_pattern_user_week"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    week_start = Column(Date, nullable=False, index=True)
    week_end = Column(Date, nullable=False)

    worst_habits = Column(JSON, default=list)
    best_habits = Column(JSON, default=list)
    correlations = Column(JSON, default=list)
    recommendations = Column(JSON, default=list)
    stats = Column(JSON, default=dict)
    summary = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<HabitPattern {self.week_start} -> {self.week_end}>"
