"""User feedback on whether an energy explanation matched how they felt."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from datetime import datetime

from clarity.database import Base


class ExplanationFeedback(Base):

    __tablename__ = "explanation_feedback"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    energy_score_id = Column(Integer, ForeignKey("energy_scores.id", ondelete="CASCADE"), nullable=False)
    matched = Column(Boolean, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ExplanationFeedback score={self.energy_score_id} matched={self.matched}>"
