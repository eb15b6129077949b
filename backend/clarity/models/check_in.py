"""Check-in model for self-reported morning/midday/evening snapshots."""

import uuid

from sqlalchemy import Column, Integer, String, Date, DateTime, JSON
from datetime import datetime

from clarity.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class CheckIn(Base):
    """Immutable self-reported snapshot. Several per day are allowed."""

    __tablename__ = "check_ins"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False, index=True)

    kind = Column(String(20), nullable=False)  # "morning", "midday", "evening"
    payload = Column(JSON, nullable=False, default=dict)
    schema_version = Column(Integer, nullable=False, default=1)

    # Day the check-in belongs to (the calendar day of created_at)
    check_in_date = Column(Date, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<CheckIn {self.kind} {self.check_in_date} ({self.id[:8]})>"
