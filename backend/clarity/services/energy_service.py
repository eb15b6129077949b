"""
Energy service - orchestrates scoring, check-in ingestion and weekly analysis.

A check-in is durably written first. Habit derivation and score recompute
then run as independent best-effort steps: each one is attempted, logged
and reported, and none of them can undo the stored check-in.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from clarity.config import Settings
from clarity.exceptions import InvalidHealthRecord
from clarity.models import CheckIn, DailyHabit, EnergyScore, HealthRecord
from clarity.schemas import (
    CHECK_IN_SCHEMA_VERSION,
    HEALTH_PAYLOAD_MODELS,
    HabitPatternResult,
    HabitSummary,
    Recommendation,
    WorstHabitsView,
    dump_check_in_payload,
    parse_check_in_payload,
)
from clarity.services.energy_calculator import build_factor_context, compute_score
from clarity.services.explanation_service import ExplanationService
from clarity.services.habit_derivation import apply_check_in_to_habits
from clarity.services.llm_service import LLMService
from clarity.services.pattern_service import PatternAnalyzer, summarize_habits
from clarity.services.score_cache import CacheState, cache_state, check_in_fingerprint
from clarity.services.signal_store import SignalStore

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    name: str
    ok: bool
    error: Optional[str] = None


@dataclass
class CheckInResult:
    check_in: CheckIn
    energy_score: Optional[EnergyScore] = None
    steps: List[StepOutcome] = field(default_factory=list)

    def step_status(self) -> Dict[str, bool]:
        return {step.name: step.ok for step in self.steps}


class EnergyService:
    """Entry point for every energy operation of one request."""

    def __init__(self, db: Session, settings: Settings, llm_service: Optional[LLMService] = None):
        self.settings = settings
        self.store = SignalStore(db)
        self.llm = llm_service or LLMService(settings)
        self.explainer = ExplanationService(self.llm)
        self.patterns = PatternAnalyzer(self.store, settings, self.llm)

    # ============== Scores ==============

    async def get_or_compute_score(self, user_id: str, day: date) -> Optional[EnergyScore]:
        """Return the stored score if still valid, otherwise recompute it. None when the day has no check-ins."""
        check_ins = self.store.list_check_ins(user_id, day)
        if not check_ins:
            return None

        stored = self.store.get_energy_score(user_id, day)
        state = cache_state(stored, check_ins)
        if state is CacheState.FRESH:
            logger.info("Energy score cache hit for %s on %s", user_id, day)
            return stored

        logger.info("Energy score cache %s for %s on %s, recomputing", state.value, user_id, day)
        return await self._compute_and_store(user_id, day, check_ins)

    async def force_recompute(self, user_id: str, day: date) -> Optional[EnergyScore]:
        self.store.delete_energy_score(user_id, day)
        return await self.get_or_compute_score(user_id, day)

    async def _compute_and_store(self, user_id: str, day: date, check_ins: List[CheckIn]) -> EnergyScore:
        health_records = self.store.list_health_records(user_id, day)
        habit = self.store.get_daily_habit(user_id, day)

        score, factors = compute_score(check_ins, health_records, habit)
        context = build_factor_context(check_ins, health_records, habit, factors)
        result = await self.explainer.explain(score, factors, context)

        record = self.store.upsert_energy_score(
            user_id,
            day,
            score=score,
            explanation=result.text,
            actions=result.actions,
            factors=factors.model_dump(),
            check_in_hash=check_in_fingerprint(check_ins),
            generated_by=result.generated_by,
        )
        logger.info("Energy score for %s on %s: %.1f/10 (%s)", user_id, day, score, result.generated_by)
        return record

    def list_scores(self, user_id: str, start: date, end: date) -> List[EnergyScore]:
        return self.store.list_energy_scores(user_id, start, end)

    # ============== Check-ins ==============

    async def _run_step(self, name: str, step: Callable[[], Awaitable[Any]], outcomes: List[StepOutcome]):
        try:
            value = await step()
        except Exception as e:
            logger.warning("Check-in step %s failed: %s", name, e, exc_info=True)
            outcomes.append(StepOutcome(name=name, ok=False, error=str(e)))
            return None
        outcomes.append(StepOutcome(name=name, ok=True))
        return value

    async def ingest_check_in(
        self,
        user_id: str,
        kind: str,
        payload: Optional[Dict[str, Any]],
        at: Optional[datetime] = None,
    ) -> CheckInResult:
        """
        Validate and store a check-in, then derive habits and recompute the day's score.

        Raises InvalidCheckIn before anything is written, and StoreFailure if
        the check-in itself cannot be stored. Failures in the follow-up steps
        are reported in ``steps`` only.
        """
        parsed = parse_check_in_payload(kind, payload)
        check_in = self.store.add_check_in(
            user_id,
            kind,
            dump_check_in_payload(parsed),
            CHECK_IN_SCHEMA_VERSION,
            created_at=at,
        )
        day = check_in.check_in_date
        logger.info("Stored %s check-in %s for %s on %s", kind, check_in.id, user_id, day)

        steps: List[StepOutcome] = []

        async def derive_habits():
            return apply_check_in_to_habits(self.store, user_id, day, kind, check_in.payload)

        async def recompute_score():
            return await self.get_or_compute_score(user_id, day)

        await self._run_step("derive_habits", derive_habits, steps)
        energy_score = await self._run_step("recompute_score", recompute_score, steps)

        return CheckInResult(check_in=check_in, energy_score=energy_score, steps=steps)

    def list_check_ins(self, user_id: str, day: date) -> List[CheckIn]:
        return self.store.list_check_ins(user_id, day)

    def check_in_status(self, user_id: str, day: date) -> Dict[str, bool]:
        return self.store.check_in_status(user_id, day)

    # ============== Health records & habits ==============

    def ingest_health_record(
        self,
        user_id: str,
        kind: str,
        source_date: date,
        payload: Dict[str, Any],
        source: str = "manual",
    ) -> HealthRecord:
        model = HEALTH_PAYLOAD_MODELS.get(kind)
        if model is not None:
            try:
                model.model_validate(payload)
            except ValidationError as e:
                raise InvalidHealthRecord(f"Invalid {kind} payload: {e.errors()}") from e
        return self.store.upsert_health_record(user_id, kind, source_date, payload, source)

    def list_health_records(self, user_id: str, start: date, end: date, kind: Optional[str] = None) -> List[HealthRecord]:
        return self.store.list_health_records_range(user_id, start, end, kind)

    def log_habits(self, user_id: str, day: date, patch: Dict[str, Any]) -> Optional[DailyHabit]:
        """Merge a manual habit log into the day's record."""
        return self.store.merge_daily_habit(user_id, day, patch)

    def get_habits(self, user_id: str, day: date) -> Optional[DailyHabit]:
        return self.store.get_daily_habit(user_id, day)

    def habit_history(self, user_id: str, start: date, end: date) -> List[DailyHabit]:
        """Habit records in the window, newest first."""
        return list(reversed(self.store.list_daily_habits(user_id, start, end)))

    def habit_summary(self, user_id: str, start: date, end: date) -> HabitSummary:
        return summarize_habits(self.store.list_daily_habits(user_id, start, end))

    # ============== Weekly patterns ==============

    async def analyze_week(self, user_id: str, week_end: date) -> HabitPatternResult:
        return await self.patterns.analyze_week(user_id, week_end)

    def get_today_recommendations(self, user_id: str, today: date) -> List[Recommendation]:
        return self.patterns.today_recommendations(user_id, today)

    def worst_habits(self, user_id: str) -> WorstHabitsView:
        return self.patterns.worst_habits_view(user_id)

    # ============== Feedback ==============

    def submit_feedback(self, user_id: str, energy_score_id: int, matched: bool):
        """Returns None when the score does not belong to the user."""
        if self.store.get_energy_score_by_id(user_id, energy_score_id) is None:
            return None
        return self.store.add_feedback(user_id, energy_score_id, matched)

    def feedback_stats(self, user_id: str) -> Dict[str, Any]:
        return self.store.feedback_stats(user_id)
