"""Derive daily habit fields from a single check-in."""

import logging
from datetime import date
from typing import Any, Dict, Optional

from clarity.exceptions import InvalidCheckIn
from clarity.schemas import (
    EveningCheckInPayload,
    MiddayCheckInPayload,
    MorningCheckInPayload,
    parse_check_in_payload,
)

logger = logging.getLogger(__name__)

# Bump when the mapping below changes, so stored habits can be re-derived.
HABIT_MAPPING_VERSION = 1

HABIT_MOODS = ("very_low", "low", "neutral", "good", "great")

MOTIVATION_TO_MOOD = {"high": "great", "medium": "good", "low": "low"}
ENERGY_TO_STRESS = {"low": 6, "ok": 4, "high": 2}

# Evening fields copied onto the habit record as-is
EVENING_DIRECT_FIELDS = (
    "caffeine_cups",
    "exercise_done",
    "exercise_duration",
    "water_glasses",
    "screen_time_hours",
    "screen_before_bed",
    "meditation_done",
    "outdoor_time",
    "junk_food",
    "mood",
    "stress_level",
    "sleep_hours",
)


def _sleep_quality(rested_score: int) -> str:
    if rested_score >= 8:
        return "excellent"
    if rested_score >= 6:
        return "good"
    if rested_score >= 4:
        return "fair"
    return "poor"


def _morning_patch(payload: MorningCheckInPayload) -> Dict[str, Any]:
    patch = {}
    if payload.rested_score is not None:
        patch["sleep_quality"] = _sleep_quality(payload.rested_score)
    if payload.motivation_level:
        patch["mood"] = MOTIVATION_TO_MOOD[payload.motivation_level]
    if payload.woke_on_time is not None:
        patch["woke_on_time"] = payload.woke_on_time
    if payload.sleep_felt_complete is not None:
        patch["sleep_felt_complete"] = payload.sleep_felt_complete
    return patch


def _midday_patch(payload: MiddayCheckInPayload) -> Dict[str, Any]:
    patch = {}
    if payload.energy_level:
        patch["stress_level"] = ENERGY_TO_STRESS[payload.energy_level]

    if payload.state == "mentally_drained":
        patch["stress_level"] = 7
        patch["mood"] = "low"
    elif payload.state == "physically_tired":
        patch["mood"] = "low"
    elif payload.state == "distracted":
        patch["anxiety_level"] = 5

    # Explicit values win over inferred ones
    if payload.stress_level is not None:
        patch["stress_level"] = payload.stress_level
    if payload.anxiety_level is not None:
        patch["anxiety_level"] = payload.anxiety_level
    if payload.mood:
        patch["mood"] = payload.mood
    return patch


def _evening_patch(payload: EveningCheckInPayload) -> Dict[str, Any]:
    patch = {}
    if payload.late_caffeine is not None:
        patch["caffeine_late"] = payload.late_caffeine
        if payload.late_caffeine:
            patch["caffeine_cups"] = 1
    if payload.skipped_meals is not None:
        patch["meals_count"] = 2 if payload.skipped_meals else 3
        patch["meals_skipped"] = "unspecified" if payload.skipped_meals else None
    if payload.alcohol is not None:
        patch["alcohol_drinks"] = 1 if payload.alcohol else 0

    for field in EVENING_DIRECT_FIELDS:
        value = getattr(payload, field)
        if value is not None:
            patch[field] = value

    if payload.drain_source == "poor_sleep":
        patch["sleep_quality"] = "poor"
    elif payload.drain_source == "emotional" and "stress_level" not in patch:
        patch["stress_level"] = 7
    return patch


_PATCH_BUILDERS = {
    "morning": _morning_patch,
    "midday": _midday_patch,
    "evening": _evening_patch,
}


def derive_habit_patch(kind: str, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Map one check-in to a partial habit record.

    Pure and deterministic: the same (kind, payload) always yields the same
    patch, so re-applying a check-in is idempotent. Raises InvalidCheckIn for
    payloads that do not match the kind's schema.
    """
    parsed = parse_check_in_payload(kind, payload)
    patch = _PATCH_BUILDERS[kind](parsed)

    mood = patch.get("mood")
    if mood is not None and mood not in HABIT_MOODS:
        logger.warning("Dropping unknown mood %r from %s check-in", mood, kind)
        del patch["mood"]
    return patch


def apply_check_in_to_habits(store, user_id: str, day: date, kind: str, payload: Optional[Dict[str, Any]]):
    """Merge the derived patch into the (user, day) habit record."""
    try:
        patch = derive_habit_patch(kind, payload)
    except InvalidCheckIn as e:
        logger.warning("Skipping habit derivation for %s check-in: %s", kind, e)
        return None

    if not patch:
        return store.get_daily_habit(user_id, day)

    logger.info("Merging %d habit fields from %s check-in for %s on %s", len(patch), kind, user_id, day)
    return store.merge_daily_habit(user_id, day, patch)
