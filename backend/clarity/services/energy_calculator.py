"""
Energy score aggregation.

Score = 5.0 baseline + ten named factor contributions, clamped to [1, 10]
and rounded to one decimal. Each bounded factor is clamped to its own range
before summation. Habits, mental_health and lifestyle are plain
accumulators. The same EnergyFactors object feeds the explanation text.

A missing signal contributes exactly 0. The caller must not invoke
compute_score for a day without check-ins.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from clarity.exceptions import InvalidCheckIn
from clarity.schemas import (
    EnergyFactors,
    HEALTH_PAYLOAD_MODELS,
    CalendarData,
    CheckInPayload,
    EveningCheckInPayload,
    HrvData,
    MiddayCheckInPayload,
    MorningCheckInPayload,
    SleepData,
    StepsData,
    parse_check_in_payload,
)

logger = logging.getLogger(__name__)

BASELINE_SCORE = 5.0
MIN_SCORE = 1.0
MAX_SCORE = 10.0

# Local ranges for the bounded factors: (low, high)
FACTOR_RANGES = {
    "sleep": (-1.5, 1.5),
    "hrv": (-1.0, 1.0),
    "activity": (-0.8, 1.3),  # +/-0.8 from steps, up to +0.5 more from exercise
    "calendar": (-0.5, 0.5),
    "morning": (-0.5, 0.5),
    "midday": (-0.5, 0.5),
    "evening": (-0.5, 0.5),
}

MOOD_IMPACT = {
    "great": 0.4,
    "good": 0.2,
    "neutral": 0.0,
    "low": -0.3,
    "very_low": -0.5,
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_score(value: float) -> float:
    """Round half-up to one decimal (7.25 -> 7.3)."""
    return float(Decimal(repr(round(value, 6))).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _habit_value(habit: Any, field: str):
    if habit is None:
        return None
    if isinstance(habit, dict):
        return habit.get(field)
    return getattr(habit, field, None)


# ============== Signal extraction ==============

def current_check_ins(check_ins: Iterable[Any]) -> Dict[str, CheckInPayload]:
    """Latest parsed payload per kind. Unparseable payloads are skipped."""
    latest: Dict[str, Any] = {}
    for check_in in check_ins:
        kind = check_in.kind
        previous = latest.get(kind)
        if previous is None or (check_in.created_at or datetime.min) >= (previous.created_at or datetime.min):
            latest[kind] = check_in

    parsed = {}
    for kind, check_in in latest.items():
        try:
            parsed[kind] = parse_check_in_payload(kind, check_in.payload)
        except InvalidCheckIn as e:
            logger.warning("Ignoring unparseable %s check-in %s: %s", kind, getattr(check_in, "id", "?"), e)
    return parsed


def health_signals(health_records: Iterable[Any]) -> Dict[str, Any]:
    """Typed payload per health record kind we score on."""
    signals = {}
    for record in health_records:
        model = HEALTH_PAYLOAD_MODELS.get(record.kind)
        if model is None or record.kind in signals:
            continue
        try:
            signals[record.kind] = model.model_validate(record.payload or {})
        except ValidationError as e:
            logger.warning("Ignoring invalid %s health record: %s", record.kind, e.errors())
    return signals


# ============== Factor rules ==============

def sleep_factor(sleep: Optional[SleepData], habit: Any = None) -> float:
    value = 0.0
    duration = sleep.duration_hours if sleep else None
    if duration:
        if duration >= 7.5:
            value = 1.5
        elif duration >= 7:
            value = 1.0
        elif duration >= 6:
            value = 0.5
        elif duration < 5.5:
            value = -1.5
        else:
            value = -1.0

    quality = _habit_value(habit, "sleep_quality")
    if quality == "excellent":
        value += 0.2
    elif quality == "poor":
        value -= 0.3
    return _clamp(value, *FACTOR_RANGES["sleep"])


def hrv_factor(hrv: Optional[HrvData]) -> float:
    if not hrv or not hrv.value:
        return 0.0
    if hrv.value >= 60:
        return 1.0
    if hrv.value >= 45:
        return 0.5
    if hrv.value < 30:
        return -0.5
    return 0.0


def activity_factor(steps: Optional[StepsData], habit: Any = None) -> float:
    value = 0.0
    count = steps.count if steps else None
    if count is not None:
        if count >= 10000:
            value = 0.8
        elif count >= 7500:
            value = 0.5
        elif count < 3000:
            value = -0.5

    if _habit_value(habit, "exercise_done"):
        value += 0.3
        if (_habit_value(habit, "exercise_duration") or 0) >= 30:
            value += 0.2
    return _clamp(value, *FACTOR_RANGES["activity"])


def calendar_factor(calendar: Optional[CalendarData]) -> float:
    """Cognitive load from the day's meetings, hard-capped at +/-0.5."""
    if not calendar:
        return 0.0
    value = 0.0

    # High meeting density drains energy
    if calendar.meeting_density is not None:
        if calendar.meeting_density >= 0.6:
            value -= 0.5
        elif calendar.meeting_density >= 0.4:
            value -= 0.3
        elif calendar.meeting_density <= 0.2:
            value += 0.2

    if calendar.back_to_back is not None:
        if calendar.back_to_back >= 4:
            value -= 0.3
        elif calendar.back_to_back >= 2:
            value -= 0.1

    if calendar.late_meetings:
        value -= 0.2

    # Long breaks are restorative
    if calendar.longest_gap is not None and calendar.longest_gap >= 90:
        value += 0.2

    return _clamp(value, *FACTOR_RANGES["calendar"])


def morning_factor(morning: Optional[MorningCheckInPayload]) -> float:
    if not morning:
        return 0.0
    value = 0.0
    rested = morning.rested_score
    if rested is not None:
        if rested >= 8:
            value += 0.5
        elif rested >= 6:
            value += 0.2
        elif rested <= 3:
            value -= 0.5
        elif rested <= 4:
            value -= 0.3

    if morning.motivation_level == "high":
        value += 0.3
    elif morning.motivation_level == "low":
        value -= 0.3
    return _clamp(value, *FACTOR_RANGES["morning"])


def midday_factor(midday: Optional[MiddayCheckInPayload]) -> float:
    if not midday:
        return 0.0
    value = {"high": 0.4, "ok": 0.1, "low": -0.4}.get(midday.energy_level, 0.0)

    if midday.state in ("mentally_drained", "physically_tired"):
        value -= 0.2
    elif midday.state == "feeling_great":
        value += 0.2
    return _clamp(value, *FACTOR_RANGES["midday"])


def evening_factor(evening: Optional[EveningCheckInPayload]) -> float:
    if not evening:
        return 0.0
    value = {"better": 0.3, "worse": -0.3}.get(evening.day_vs_expectations, 0.0)

    if evening.drain_source in ("work_stress", "poor_sleep"):
        value -= 0.2
    return _clamp(value, *FACTOR_RANGES["evening"])


def habits_factor(evening: Optional[EveningCheckInPayload], habit: Any = None) -> float:
    """Fixed small penalties per negative habit. Unclamped."""
    value = 0.0
    if evening:
        if evening.late_caffeine:
            value -= 0.2
        if evening.skipped_meals:
            value -= 0.3
        if evening.alcohol:
            value -= 0.2
        if evening.screen_time_before_bed:
            value -= 0.1

    if habit is not None:
        if _habit_value(habit, "caffeine_late"):
            value -= 0.2
        if (_habit_value(habit, "caffeine_cups") or 0) > 4:
            value -= 0.2

        drinks = _habit_value(habit, "alcohol_drinks") or 0
        if drinks >= 3:
            value -= 0.3
        elif drinks >= 1:
            value -= 0.1

        if _habit_value(habit, "meals_skipped"):
            value -= 0.2
        if _habit_value(habit, "screen_before_bed"):
            value -= 0.2
        if _habit_value(habit, "smoking"):
            value -= 0.3
        if _habit_value(habit, "junk_food"):
            value -= 0.1
        if _habit_value(habit, "late_night_eating"):
            value -= 0.1
    return value


def mental_health_factor(habit: Any = None) -> float:
    if habit is None:
        return 0.0
    value = MOOD_IMPACT.get(_habit_value(habit, "mood") or "neutral", 0.0)

    stress = _habit_value(habit, "stress_level")
    if stress is not None:
        if stress >= 8:
            value -= 0.4
        elif stress >= 6:
            value -= 0.2
        elif stress <= 3:
            value += 0.2

    anxiety = _habit_value(habit, "anxiety_level")
    if anxiety is not None:
        if anxiety >= 7:
            value -= 0.3
        elif anxiety <= 3:
            value += 0.1

    if (_habit_value(habit, "anger_incidents") or 0) >= 2:
        value -= 0.2
    if _habit_value(habit, "meditation_done"):
        value += 0.3

    work_stress = _habit_value(habit, "work_stress")
    if work_stress == "extreme":
        value -= 0.3
    elif work_stress == "high":
        value -= 0.1
    return value


def lifestyle_factor(habit: Any = None) -> float:
    if habit is None:
        return 0.0
    value = 0.0
    water = _habit_value(habit, "water_glasses")
    if water is not None:
        if water >= 8:
            value += 0.2
        elif water < 4:
            value -= 0.2

    if (_habit_value(habit, "outdoor_time") or 0) >= 30:
        value += 0.2
    if (_habit_value(habit, "screen_time_hours") or 0) > 8:
        value -= 0.1
    return value


# ============== Aggregation ==============

def compute_factors(
    check_ins: Sequence[Any],
    health_records: Sequence[Any],
    habit: Any = None,
) -> EnergyFactors:
    payloads = current_check_ins(check_ins)
    signals = health_signals(health_records)
    evening = payloads.get("evening")

    raw = {
        "sleep": sleep_factor(signals.get("sleep"), habit),
        "hrv": hrv_factor(signals.get("hrv")),
        "activity": activity_factor(signals.get("steps"), habit),
        "calendar": calendar_factor(signals.get("calendar")),
        "morning": morning_factor(payloads.get("morning")),
        "midday": midday_factor(payloads.get("midday")),
        "evening": evening_factor(evening),
        "habits": habits_factor(evening, habit),
        "mental_health": mental_health_factor(habit),
        "lifestyle": lifestyle_factor(habit),
    }
    return EnergyFactors(**{name: round(value, 2) for name, value in raw.items()})


def compute_score(
    check_ins: Sequence[Any],
    health_records: Sequence[Any],
    habit: Any = None,
) -> Tuple[float, EnergyFactors]:
    """Map a day's signals to a bounded 1-10 score and its factor breakdown."""
    factors = compute_factors(check_ins, health_records, habit)
    score = _clamp(BASELINE_SCORE + factors.total(), MIN_SCORE, MAX_SCORE)
    return round_score(score), factors


# ============== Explanation context ==============

POSITIVE_LABELS = {
    "sleep": "good sleep",
    "hrv": "good HRV/recovery",
    "activity": "active day",
    "calendar": "light meeting day",
    "morning": "felt rested",
    "midday": "strong afternoon",
    "evening": "day went better than expected",
    "mental_health": "positive mood",
    "lifestyle": "healthy lifestyle",
}

NEGATIVE_LABELS = {
    "sleep": "poor sleep",
    "hrv": "low HRV",
    "activity": "low activity",
    "calendar": "heavy meeting load",
    "morning": "felt tired",
    "midday": "afternoon slump",
    "evening": "draining day",
    "habits": "habit impacts",
    "mental_health": "mental strain",
    "lifestyle": "lifestyle factors",
}


def factor_labels(factors: EnergyFactors) -> Tuple[List[str], List[str]]:
    positives, negatives = [], []
    for name, value in factors.model_dump().items():
        if value > 0 and name in POSITIVE_LABELS:
            positives.append(POSITIVE_LABELS[name])
        elif value < 0 and name in NEGATIVE_LABELS:
            negatives.append(NEGATIVE_LABELS[name])
    return positives, negatives


def build_factor_context(
    check_ins: Sequence[Any],
    health_records: Sequence[Any],
    habit: Any,
    factors: EnergyFactors,
) -> str:
    """
    Bounded prompt context built only from structured fields.

    Free-text notes never enter the prompt.
    """
    parts = []
    payloads = current_check_ins(check_ins)
    signals = health_signals(health_records)

    morning = payloads.get("morning")
    if morning and (morning.rested_score is not None or morning.motivation_level):
        parts.append(f"Morning: rested {morning.rested_score or '?'}/10, motivation {morning.motivation_level or 'unknown'}")

    midday = payloads.get("midday")
    if midday and (midday.energy_level or midday.state):
        state = (midday.state or "unknown").replace("_", " ")
        parts.append(f"Mid-day: energy {midday.energy_level or 'unknown'}, feeling {state}")

    evening = payloads.get("evening")
    if evening:
        if evening.day_vs_expectations:
            parts.append(f"Evening: day was {evening.day_vs_expectations} than expected")
        flagged = [
            label
            for label, flag in (
                ("late caffeine", evening.late_caffeine),
                ("skipped meals", evening.skipped_meals),
                ("alcohol", evening.alcohol),
                ("screens before bed", evening.screen_time_before_bed),
            )
            if flag
        ]
        if flagged:
            parts.append(f"Habits affecting energy: {', '.join(flagged)}")

    sleep = signals.get("sleep")
    if sleep and sleep.duration_hours:
        parts.append(f"Sleep: {sleep.duration_hours:.1f} hours")
    hrv = signals.get("hrv")
    if hrv and hrv.value:
        parts.append(f"HRV: {hrv.value:.0f}ms")
    steps = signals.get("steps")
    if steps and steps.count:
        parts.append(f"Steps: {steps.count:,}")

    calendar = signals.get("calendar")
    if calendar:
        calendar_parts = []
        if calendar.meeting_count is not None:
            calendar_parts.append(f"{calendar.meeting_count} meetings")
        if calendar.meeting_hours is not None:
            calendar_parts.append(f"{calendar.meeting_hours:.1f} hrs in meetings")
        if calendar.back_to_back:
            calendar_parts.append(f"{calendar.back_to_back} back-to-back")
        if calendar.late_meetings:
            calendar_parts.append(f"{calendar.late_meetings} late meetings")
        if calendar.meeting_density is not None:
            if calendar.meeting_density >= 0.6:
                calendar_parts.append("heavy meeting day")
            elif calendar.meeting_density >= 0.4:
                calendar_parts.append("moderate meeting load")
            elif calendar.meeting_density > 0:
                calendar_parts.append("light meeting load")
        if calendar_parts:
            parts.append(f"Calendar: {', '.join(calendar_parts)}")

    if habit is not None:
        habit_info = []
        mood = _habit_value(habit, "mood")
        if mood:
            habit_info.append(f"mood {mood.replace('_', ' ')}")
        stress = _habit_value(habit, "stress_level")
        if stress:
            habit_info.append(f"stress {stress}/10")
        if _habit_value(habit, "exercise_done"):
            habit_info.append(f"exercised {_habit_value(habit, 'exercise_duration') or 0} min")
        if _habit_value(habit, "meditation_done"):
            habit_info.append("meditated")
        for field, unit in (("caffeine_cups", "cups of caffeine"), ("alcohol_drinks", "drinks"), ("water_glasses", "glasses of water")):
            value = _habit_value(habit, field)
            if value:
                habit_info.append(f"{value} {unit}")
        if habit_info:
            parts.append(f"Habits: {', '.join(habit_info)}")

    positives, negatives = factor_labels(factors)
    if positives:
        parts.append(f"Positive: {', '.join(positives)}")
    if negatives:
        parts.append(f"Challenges: {', '.join(negatives)}")

    return "\n".join(parts)
