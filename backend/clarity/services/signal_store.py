"""Keyed record store over SQLAlchemy for check-ins, health records, habits, scores and patterns."""

import logging
from datetime import date, datetime
from functools import wraps
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clarity.exceptions import StoreFailure
from clarity.models import (
    CheckIn,
    HealthRecord,
    DailyHabit,
    HABIT_FIELDS,
    EnergyScore,
    HabitPattern,
    ExplanationFeedback,
)

logger = logging.getLogger(__name__)


def _store_operation(func):
    """Roll back and re-raise database errors as StoreFailure."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Store operation %s failed: %s", func.__name__, e)
            raise StoreFailure(func.__name__, e) from e

    return wrapper


class SignalStore:
    """Read/write access to every record kind, keyed by (user, day)."""

    def __init__(self, db: Session):
        self.db = db

    # ============== Check-ins ==============

    @_store_operation
    def add_check_in(
        self,
        user_id: str,
        kind: str,
        payload: Dict[str, Any],
        schema_version: int,
        created_at: Optional[datetime] = None,
    ) -> CheckIn:
        created_at = created_at or datetime.utcnow()
        check_in = CheckIn(
            user_id=user_id,
            kind=kind,
            payload=payload,
            schema_version=schema_version,
            check_in_date=created_at.date(),
            created_at=created_at,
        )
        self.db.add(check_in)
        self.db.commit()
        self.db.refresh(check_in)
        return check_in

    @_store_operation
    def list_check_ins(self, user_id: str, day: date) -> List[CheckIn]:
        return (
            self.db.query(CheckIn)
            .filter(CheckIn.user_id == user_id, CheckIn.check_in_date == day)
            .order_by(CheckIn.created_at)
            .all()
        )

    @_store_operation
    def check_in_status(self, user_id: str, day: date) -> Dict[str, bool]:
        kinds = {
            row.kind
            for row in self.db.query(CheckIn.kind)
            .filter(CheckIn.user_id == user_id, CheckIn.check_in_date == day)
            .all()
        }
        return {kind: kind in kinds for kind in ("morning", "midday", "evening")}

    # ============== Health records ==============

    @_store_operation
    def upsert_health_record(
        self,
        user_id: str,
        kind: str,
        source_date: date,
        payload: Dict[str, Any],
        source: str = "manual",
    ) -> HealthRecord:
        record = (
            self.db.query(HealthRecord)
            .filter(
                HealthRecord.user_id == user_id,
                HealthRecord.kind == kind,
                HealthRecord.source_date == source_date,
            )
            .first()
        )
        if record:
            record.payload = dict(payload)
            record.source = source
        else:
            record = HealthRecord(
                user_id=user_id,
                kind=kind,
                source_date=source_date,
                payload=dict(payload),
                source=source,
            )
            self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    @_store_operation
    def list_health_records(self, user_id: str, day: date) -> List[HealthRecord]:
        return (
            self.db.query(HealthRecord)
            .filter(HealthRecord.user_id == user_id, HealthRecord.source_date == day)
            .all()
        )

    @_store_operation
    def list_health_records_range(
        self,
        user_id: str,
        start: date,
        end: date,
        kind: Optional[str] = None,
    ) -> List[HealthRecord]:
        query = self.db.query(HealthRecord).filter(
            HealthRecord.user_id == user_id,
            HealthRecord.source_date >= start,
            HealthRecord.source_date <= end,
        )
        if kind:
            query = query.filter(HealthRecord.kind == kind)
        return query.order_by(HealthRecord.source_date.desc()).all()

    # ============== Daily habits ==============

    @_store_operation
    def get_daily_habit(self, user_id: str, day: date) -> Optional[DailyHabit]:
        return (
            self.db.query(DailyHabit)
            .filter(DailyHabit.user_id == user_id, DailyHabit.date == day)
            .first()
        )

    @_store_operation
    def merge_daily_habit(self, user_id: str, day: date, patch: Dict[str, Any]) -> Optional[DailyHabit]:
        """Apply a patch field by field, last writer wins. Unknown keys are ignored."""
        updates = {field: value for field, value in patch.items() if field in HABIT_FIELDS}
        habit = (
            self.db.query(DailyHabit)
            .filter(DailyHabit.user_id == user_id, DailyHabit.date == day)
            .first()
        )
        if not updates:
            return habit

        if habit is None:
            habit = DailyHabit(user_id=user_id, date=day, **updates)
            self.db.add(habit)
        else:
            for field, value in updates.items():
                setattr(habit, field, value)
        self.db.commit()
        self.db.refresh(habit)
        return habit

    @_store_operation
    def list_daily_habits(self, user_id: str, start: date, end: date) -> List[DailyHabit]:
        return (
            self.db.query(DailyHabit)
            .filter(
                DailyHabit.user_id == user_id,
                DailyHabit.date >= start,
                DailyHabit.date <= end,
            )
            .order_by(DailyHabit.date)
            .all()
        )

    # ============== Energy scores ==============

    @_store_operation
    def get_energy_score(self, user_id: str, day: date) -> Optional[EnergyScore]:
        return (
            self.db.query(EnergyScore)
            .filter(EnergyScore.user_id == user_id, EnergyScore.date == day)
            .first()
        )

    @_store_operation
    def get_energy_score_by_id(self, user_id: str, score_id: int) -> Optional[EnergyScore]:
        return (
            self.db.query(EnergyScore)
            .filter(EnergyScore.id == score_id, EnergyScore.user_id == user_id)
            .first()
        )

    @_store_operation
    def upsert_energy_score(
        self,
        user_id: str,
        day: date,
        score: float,
        explanation: str,
        actions: List[Dict[str, Any]],
        factors: Dict[str, float],
        check_in_hash: Optional[str],
        generated_by: str,
    ) -> EnergyScore:
        record = (
            self.db.query(EnergyScore)
            .filter(EnergyScore.user_id == user_id, EnergyScore.date == day)
            .first()
        )
        values = {
            "score": score,
            "explanation": explanation,
            "actions": list(actions),
            "factors": dict(factors),
            "check_in_hash": check_in_hash,
            "generated_by": generated_by,
        }
        if record:
            for field, value in values.items():
                setattr(record, field, value)
        else:
            record = EnergyScore(user_id=user_id, date=day, **values)
            self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    @_store_operation
    def delete_energy_score(self, user_id: str, day: date) -> bool:
        record = (
            self.db.query(EnergyScore)
            .filter(EnergyScore.user_id == user_id, EnergyScore.date == day)
            .first()
        )
        if record is None:
            return False
        self.db.delete(record)
        self.db.commit()
        return True

    @_store_operation
    def list_energy_scores(self, user_id: str, start: date, end: date) -> List[EnergyScore]:
        return (
            self.db.query(EnergyScore)
            .filter(
                EnergyScore.user_id == user_id,
                EnergyScore.date >= start,
                EnergyScore.date <= end,
            )
            .order_by(EnergyScore.date)
            .all()
        )

    # ============== Weekly patterns ==============

    @_store_operation
    def get_habit_pattern(self, user_id: str, week_start: date) -> Optional[HabitPattern]:
        return (
            self.db.query(HabitPattern)
            .filter(HabitPattern.user_id == user_id, HabitPattern.week_start == week_start)
            .first()
        )

    @_store_operation
    def latest_habit_pattern(self, user_id: str) -> Optional[HabitPattern]:
        return (
            self.db.query(HabitPattern)
            .filter(HabitPattern.user_id == user_id)
            .order_by(HabitPattern.week_start.desc())
            .first()
        )

    @_store_operation
    def upsert_habit_pattern(
        self,
        user_id: str,
        week_start: date,
        week_end: date,
        data: Dict[str, Any],
    ) -> HabitPattern:
        record = (
            self.db.query(HabitPattern)
            .filter(HabitPattern.user_id == user_id, HabitPattern.week_start == week_start)
            .first()
        )
        if record is None:
            record = HabitPattern(user_id=user_id, week_start=week_start, week_end=week_end)
            self.db.add(record)
        record.week_end = week_end
        for field in ("worst_habits", "best_habits", "correlations", "recommendations", "stats", "summary"):
            setattr(record, field, data.get(field))
        self.db.commit()
        self.db.refresh(record)
        return record

    # ============== Explanation feedback ==============

    @_store_operation
    def add_feedback(self, user_id: str, energy_score_id: int, matched: bool) -> ExplanationFeedback:
        feedback = ExplanationFeedback(
            user_id=user_id,
            energy_score_id=energy_score_id,
            matched=matched,
        )
        self.db.add(feedback)
        self.db.commit()
        self.db.refresh(feedback)
        return feedback

    @_store_operation
    def feedback_stats(self, user_id: str) -> Dict[str, Any]:
        rows = (
            self.db.query(ExplanationFeedback.matched)
            .filter(ExplanationFeedback.user_id == user_id)
            .all()
        )
        total = len(rows)
        matched = sum(1 for row in rows if row.matched)
        match_rate = round(matched / total * 100, 1) if total else 0.0
        return {"total": total, "matched": matched, "match_rate": match_rate}
