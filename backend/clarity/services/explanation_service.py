"""
Explanation and action generation for an energy score.

The LLM path is tried first; any failure, malformed reply or overrun of the
overall deadline falls back to deterministic rule-based text. explain()
never raises.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import ValidationError

from clarity.schemas import ActionItem, EnergyFactors
from clarity.services.energy_calculator import factor_labels
from clarity.services.llm_service import LLMService

logger = logging.getLogger(__name__)

GENERATED_BY_LLM = "llm"
GENERATED_BY_FALLBACK = "fallback"

ACTIONS_PER_SCORE = 3

EXPLANATION_SYSTEM_PROMPT = """You are Clarity, a caring friend who happens to know a lot about health.
Speak directly to the user using "you" and "your".
Be warm and human. Use casual language, not clinical terms.
If they have calendar data, mention how their meeting load affects their energy."""

ACTIONS_SYSTEM_PROMPT = """You are Clarity, a wellness coach generating quick, actionable tips.
Be friendly and specific. Actions must be doable in 5 minutes or less.
If the user has a heavy meeting day, suggest recovery breaks."""


@dataclass
class ExplanationResult:
    text: str
    actions: List[Dict[str, str]] = field(default_factory=list)
    generated_by: str = GENERATED_BY_FALLBACK


def score_band(score: float) -> str:
    if score < 4:
        return "low"
    if score < 7:
        return "medium"
    return "high"


# ============== Deterministic fallback ==============

LOW_BAND_ACTIONS = [
    ("Take 5 deep breaths now", "Resets your nervous system"),
    ("Drink a glass of water", "Dehydration causes fatigue"),
    ("Step outside for 2 minutes", "Fresh air boosts alertness"),
]

HIGH_BAND_ACTIONS = [
    ("Tackle your top priority now", "Ride the momentum while it lasts"),
    ("Help someone out today", "Boosts your mood even more"),
    ("Plan something fun for later", "Keeps the positivity flowing"),
]

# Medium band: (factor, action when negative, action otherwise)
MEDIUM_BAND_RULES = [
    ("sleep", ("Plan to sleep 30 min earlier", "Your sleep needs a boost"), ("Do a quick stretch", "Releases physical tension")),
    ("activity", ("Take a 10-minute walk", "Movement boosts energy"), ("Listen to an uplifting song", "Music lifts mood fast")),
    ("mental_health", ("Breathe deeply for 1 minute", "Calms the stress response"), ("Take a proper break", "Rest maintains energy")),
]


def _as_actions(pairs) -> List[Dict[str, str]]:
    return [
        {"id": str(index), "title": title, "reason": reason}
        for index, (title, reason) in enumerate(pairs, start=1)
    ]


def fallback_actions(score: float, factors: EnergyFactors) -> List[Dict[str, str]]:
    """Exactly three actions picked from fixed tables by score band."""
    band = score_band(score)
    if band == "low":
        return _as_actions(LOW_BAND_ACTIONS)
    if band == "high":
        return _as_actions(HIGH_BAND_ACTIONS)

    pairs = []
    for factor, when_negative, otherwise in MEDIUM_BAND_RULES:
        pairs.append(when_negative if getattr(factors, factor) < 0 else otherwise)
    return _as_actions(pairs)


def fallback_explanation(score: float, factors: EnergyFactors) -> str:
    positives, negatives = factor_labels(factors)
    band = score_band(score)

    if band == "high":
        highlights = " and ".join(positives[:2])
        text = "You're doing great today!"
        if highlights:
            text += f" Your {highlights} really helped."
        return text + " Keep this momentum going!"

    if band == "medium":
        good = positives[0] if positives else "steady pace"
        text = f"Decent energy today. {good[0].upper()}{good[1:]} is working for you."
        if negatives:
            return text + f" Maybe watch the {negatives[0]}."
        return text + " Keep listening to your body."

    issues = " and ".join(negatives[:2])
    text = "Energy is lower today."
    if issues:
        text += f" The {issues} might be factors."
    return text + " Be gentle with yourself and prioritize rest."


def fallback_result(score: float, factors: EnergyFactors) -> ExplanationResult:
    return ExplanationResult(
        text=fallback_explanation(score, factors),
        actions=fallback_actions(score, factors),
        generated_by=GENERATED_BY_FALLBACK,
    )


# ============== LLM path ==============

def _explanation_prompt(score: float, context: str) -> str:
    meeting_note = ""
    lowered = context.lower()
    if "meeting" in lowered or "calendar" in lowered:
        meeting_note = "If meetings are mentioned, explain how the meeting load affects their energy.\n"
    return (
        f"The user's energy is {score}/10 today.\n\n"
        f"What we know:\n{context or 'Only a check-in, no other data.'}\n\n"
        "In 1-2 SHORT sentences (max 35 words), explain why they might feel this way.\n"
        'Be personal, start with something like "Looks like..." or "I notice...".\n'
        f"{meeting_note}"
        "End with empathy or a tiny tip."
    )


def _actions_prompt(score: float, context: str) -> str:
    return (
        f"Energy Score: {score}/10\n"
        f"{context}\n\n"
        f"Generate exactly {ACTIONS_PER_SCORE} quick actions they can do right now to feel better.\n"
        "Return ONLY a JSON array:\n"
        '[{"id": "1", "title": "Do this now (3-6 words)", "reason": "Why it helps (max 8 words)"}, ...]'
    )


def parse_actions(raw: Any) -> List[Dict[str, str]]:
    """Validate a generated action list. Raises ValueError unless it holds exactly 3 complete actions."""
    if isinstance(raw, dict):
        raw = raw.get("actions")
    if not isinstance(raw, list) or len(raw) != ACTIONS_PER_SCORE:
        raise ValueError(f"Expected {ACTIONS_PER_SCORE} actions, got {raw!r}")

    actions = []
    for index, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"Action {index} is not an object")
        try:
            action = ActionItem(
                id=str(item.get("id") or index),
                title=str(item.get("title") or "").strip(),
                reason=str(item.get("reason") or "").strip(),
            )
        except ValidationError as e:
            raise ValueError(f"Invalid action {index}: {e}") from e
        if not action.title or not action.reason:
            raise ValueError(f"Action {index} is missing a title or reason")
        actions.append(action.model_dump())
    return actions


class ExplanationService:
    """Produces explanation text plus three actions for a score."""

    def __init__(self, llm_service: LLMService):
        self.llm = llm_service
        self.deadline = llm_service.settings.llm_deadline_seconds

    async def _generate(self, score: float, context: str) -> ExplanationResult:
        text = await self.llm.generate_text(
            _explanation_prompt(score, context),
            system_instruction=EXPLANATION_SYSTEM_PROMPT,
            temperature=0.7,
            max_tokens=120,
        )
        raw_actions = await self.llm.generate_json(
            _actions_prompt(score, context),
            system_instruction=ACTIONS_SYSTEM_PROMPT,
        )
        return ExplanationResult(
            text=text,
            actions=parse_actions(raw_actions),
            generated_by=GENERATED_BY_LLM,
        )

    async def explain(self, score: float, factors: EnergyFactors, context: str) -> ExplanationResult:
        try:
            return await asyncio.wait_for(self._generate(score, context), timeout=self.deadline)
        except asyncio.TimeoutError:
            logger.warning("Explanation generation exceeded %.0fs, using fallback", self.deadline)
        except Exception as e:
            logger.warning("Explanation generation failed, using fallback: %s", e)
        return fallback_result(score, factors)
