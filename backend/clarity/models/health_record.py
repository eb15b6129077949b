"""Device-derived daily health metrics (sleep, steps, HRV, calendar load...)."""

from sqlalchemy import Column, Integer, String, Date, DateTime, JSON, UniqueConstraint
from datetime import datetime

from clarity.database import Base


HEALTH_RECORD_KINDS = (
    "sleep",
    "steps",
    "hrv",
    "heart_rate",
    "activity",
    "calendar",
    "nutrition",
    "mindfulness",
    "workout",
)


class HealthRecord(Base):
    """One logical record per (user, kind, day); upserted, never appended."""

    __tablename__ = "health_records"
    __table_args__ = (
        UniqueConstraint("user_id", "kind", "source_date", name="uq_health_record_user_kind_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    kind = Column(String(30), nullable=False)
    source = Column(String(50), default="manual")  # "healthkit", "health_connect", "calendar", ...
    payload = Column(JSON, nullable=False, default=dict)
    source_date = Column(Date, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<HealthRecord {self.kind} {self.source_date}>"
