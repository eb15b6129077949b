"""Energy score model, one per user and day."""

from sqlalchemy import Column, Integer, String, Date, DateTime, Float, Text, JSON, UniqueConstraint
from datetime import datetime

from clarity.database import Base


class EnergyScore(Base):
    """Computed 1-10 energy score with its explanation and factor breakdown."""

    __tablename__ = "energy_scores"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_energy_score_user_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    score = Column(Float, nullable=False)  # 1.0 - 10.0, one decimal
    explanation = Column(Text, nullable=False)
    actions = Column(JSON, default=list)  # [{"id": "1", "title": ..., "reason": ...}]
    factors = Column(JSON, default=dict)  # ten named factor contributions

    # Fingerprint of the check-ins used to compute this score
    check_in_hash = Column(String(16), nullable=True)
    generated_by = Column(String(20), default="fallback")  # "llm" or "fallback"

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<EnergyScore {self.date} - {self.score}/10>"
