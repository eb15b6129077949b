"""
Weekly habit pattern analysis.

Works over a window of DailyHabit records (and matching energy scores):
worst/best habit detection from a fixed catalogue, a mean-separation
heuristic for trigger/outcome pairs, canned recommendations and summary
stats. Fewer than MIN_DAYS_FOR_ANALYSIS days yields a placeholder.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from clarity.config import Settings
from clarity.schemas import (
    Correlation,
    HabitPatternItem,
    HabitPatternResult,
    HabitSummary,
    PatternStats,
    Recommendation,
    WorstHabitsView,
)
from clarity.services.llm_service import LLMService
from clarity.services.signal_store import SignalStore

logger = logging.getLogger(__name__)

MIN_DAYS_FOR_ANALYSIS = 3
MIN_MATCHED_DAYS = 3
MIN_PARTITION_DAYS = 2
MAX_HABITS = 5
MAX_CORRELATIONS = 4
MAX_RECOMMENDATIONS = 5
MAX_HIGHLIGHTED_HABITS = 3

SEVERITY_ORDER = {"high": 3, "medium": 2, "low": 1}
MOOD_SCALE = {"very_low": 1, "low": 2, "neutral": 3, "good": 4, "great": 5}

INSUFFICIENT_DATA_SUMMARY = "Need at least 3 days of data for pattern analysis. Keep tracking!"
NO_PATTERN_RECOMMENDATION = "Start tracking your daily habits to get personalized insights!"
NO_PATTERN_SUMMARY = "Keep logging to discover your patterns."
SUMMARY_SYSTEM_PROMPT = """You are Clarity, a supportive friend checking in on their week.
Be real, warm and brief. Celebrate wins, gently note what could improve.
Talk TO them, not about them."""


def _get(habit: Any, field: str):
    if isinstance(habit, dict):
        return habit.get(field)
    return getattr(habit, field, None)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _rounded_mean(values: Sequence[float]) -> float:
    return round(_mean(values), 1)


# ============== Habit catalogue ==============

@dataclass(frozen=True)
class HabitRule:
    """
    One catalogue entry.

    ``count`` returns the number of qualifying days, ``triggered`` decides
    whether the pattern is reported and ``severity`` picks its tier.
    """

    name: str
    impact: str
    icon: str
    count: Callable[[Sequence[Any]], int]
    triggered: Callable[[Sequence[Any], int], bool]
    severity: Callable[[Sequence[Any], int], str]
    describe: Callable[[Sequence[Any], int], str]
    frequency: Optional[Callable[[Sequence[Any], int], float]] = None


def _days(predicate):
    return lambda habits: sum(1 for h in habits if predicate(h))


def _at_least(n):
    return lambda habits, days: days >= n


def _tiered(high_at):
    return lambda habits, days: "high" if days >= high_at else "medium"


def _fixed(severity):
    return lambda habits, days: severity


def _avg_caffeine(habits) -> float:
    return _mean([_get(h, "caffeine_cups") or 0 for h in habits])


def _total_drinks(habits) -> int:
    return sum(_get(h, "alcohol_drinks") or 0 for h in habits)


WORST_HABIT_RULES = [
    HabitRule(
        "Late Caffeine", "negative", "☕",
        count=_days(lambda h: _get(h, "caffeine_late")),
        triggered=_at_least(3),
        severity=_tiered(5),
        describe=lambda habits, days: f"Had caffeine after 2pm on {days} of {len(habits)} days",
    ),
    HabitRule(
        "High Caffeine Intake", "negative", "☕",
        count=_days(lambda h: (_get(h, "caffeine_cups") or 0) > 3),
        triggered=lambda habits, days: _avg_caffeine(habits) > 3,
        severity=lambda habits, days: "high" if _avg_caffeine(habits) > 5 else "medium",
        describe=lambda habits, days: f"Averaging {_avg_caffeine(habits):.1f} cups/day",
        frequency=lambda habits, days: 1.0,
    ),
    HabitRule(
        "Insufficient Sleep", "negative", "😴",
        count=_days(lambda h: _get(h, "sleep_hours") and _get(h, "sleep_hours") < 6),
        triggered=_at_least(2),
        severity=_tiered(4),
        describe=lambda habits, days: f"Got less than 6 hours on {days} days",
    ),
    HabitRule(
        "Alcohol Consumption", "negative", "🍷",
        count=_days(lambda h: (_get(h, "alcohol_drinks") or 0) > 0),
        triggered=lambda habits, days: _total_drinks(habits) > 7 or days >= 4,
        severity=lambda habits, days: "high" if _total_drinks(habits) > 14 else "medium",
        describe=lambda habits, days: f"{_total_drinks(habits)} drinks across {days} days",
    ),
    HabitRule(
        "Lack of Exercise", "negative", "🏃",
        count=_days(lambda h: not _get(h, "exercise_done")),
        triggered=_at_least(5),
        severity=_tiered(7),
        describe=lambda habits, days: f"No exercise on {days} of {len(habits)} days",
    ),
    HabitRule(
        "Screen Before Bed", "negative", "📱",
        count=_days(lambda h: _get(h, "screen_before_bed")),
        triggered=_at_least(4),
        severity=_tiered(6),
        describe=lambda habits, days: f"Used screens before sleep on {days} days",
    ),
    HabitRule(
        "High Stress Levels", "negative", "😰",
        count=_days(lambda h: (_get(h, "stress_level") or 0) >= 7),
        triggered=_at_least(3),
        severity=_tiered(5),
        describe=lambda habits, days: f"Stress level of 7 or more on {days} days",
    ),
    HabitRule(
        "Skipping Meals", "negative", "🍽️",
        count=_days(lambda h: _get(h, "meals_skipped")),
        triggered=_at_least(3),
        severity=_fixed("medium"),
        describe=lambda habits, days: f"Skipped meals on {days} days",
    ),
    HabitRule(
        "Low Hydration", "negative", "💧",
        count=_days(lambda h: _get(h, "water_glasses") is not None and _get(h, "water_glasses") < 4),
        triggered=_at_least(4),
        severity=_fixed("medium"),
        describe=lambda habits, days: f"Less than 4 glasses of water on {days} days",
    ),
    HabitRule(
        "Frequent Irritation", "negative", "😤",
        count=_days(lambda h: (_get(h, "anger_incidents") or 0) > 0),
        triggered=_at_least(3),
        severity=_tiered(5),
        describe=lambda habits, days: f"Felt angry or irritated on {days} days",
    ),
    HabitRule(
        "Smoking", "negative", "🚬",
        count=_days(lambda h: _get(h, "smoking")),
        triggered=_at_least(1),
        severity=_fixed("high"),
        describe=lambda habits, days: f"Smoked on {days} days",
    ),
    HabitRule(
        "Junk Food", "negative", "🍔",
        count=_days(lambda h: _get(h, "junk_food")),
        triggered=_at_least(3),
        severity=_tiered(5),
        describe=lambda habits, days: f"Ate junk food on {days} days",
    ),
]

BEST_HABIT_RULES = [
    HabitRule(
        "Regular Exercise", "positive", "🏃",
        count=_days(lambda h: _get(h, "exercise_done")),
        triggered=_at_least(3),
        severity=_tiered(5),
        describe=lambda habits, days: f"Exercised on {days} of {len(habits)} days",
    ),
    HabitRule(
        "Good Sleep Duration", "positive", "😴",
        count=_days(lambda h: _get(h, "sleep_hours") is not None and 7 <= _get(h, "sleep_hours") <= 9),
        triggered=_at_least(4),
        severity=_tiered(6),
        describe=lambda habits, days: f"Got 7-9 hours on {days} days",
    ),
    HabitRule(
        "Meditation Practice", "positive", "🧘",
        count=_days(lambda h: _get(h, "meditation_done")),
        triggered=_at_least(2),
        severity=_tiered(5),
        describe=lambda habits, days: f"Meditated on {days} days",
    ),
    HabitRule(
        "Good Hydration", "positive", "💧",
        count=_days(lambda h: (_get(h, "water_glasses") or 0) >= 8),
        triggered=_at_least(3),
        severity=_tiered(5),
        describe=lambda habits, days: f"Drank 8+ glasses on {days} days",
    ),
    HabitRule(
        "Outdoor Time", "positive", "🌳",
        count=_days(lambda h: (_get(h, "outdoor_time") or 0) >= 30),
        triggered=_at_least(3),
        severity=_fixed("medium"),
        describe=lambda habits, days: f"Spent 30+ min outdoors on {days} days",
    ),
    HabitRule(
        "Stress Management", "positive", "😌",
        count=_days(lambda h: _get(h, "stress_level") is not None and _get(h, "stress_level") <= 3),
        triggered=_at_least(3),
        severity=_fixed("medium"),
        describe=lambda habits, days: f"Maintained low stress on {days} days",
    ),
]


def _rank(patterns: List[HabitPatternItem]) -> List[HabitPatternItem]:
    ordered = sorted(patterns, key=lambda p: (-SEVERITY_ORDER[p.severity], -p.frequency))
    return ordered[:MAX_HABITS]


def _evaluate(rules: Sequence[HabitRule], habits: Sequence[Any]) -> List[HabitPatternItem]:
    total = len(habits)
    if not total:
        return []
    patterns = []
    for rule in rules:
        days = rule.count(habits)
        if not rule.triggered(habits, days):
            continue
        frequency = rule.frequency(habits, days) if rule.frequency else days / total
        patterns.append(
            HabitPatternItem(
                name=rule.name,
                frequency=round(min(1.0, frequency), 3),
                days=days,
                impact=rule.impact,
                severity=rule.severity(habits, days),
                description=rule.describe(habits, days),
                icon=rule.icon,
            )
        )
    return _rank(patterns)


def identify_worst_habits(habits: Sequence[Any]) -> List[HabitPatternItem]:
    return _evaluate(WORST_HABIT_RULES, habits)


def identify_best_habits(habits: Sequence[Any]) -> List[HabitPatternItem]:
    return _evaluate(BEST_HABIT_RULES, habits)


# ============== Trigger/outcome heuristic ==============

def separation_strength(present: Sequence[float], absent: Sequence[float], scale: float) -> float:
    """
    Bounded mean-separation heuristic, not a correlation coefficient.

    strength = min(1, 2 * |mean(absent) - mean(present)| / scale), or 0 when
    either partition has fewer than two days or the scale is not positive.
    """
    if len(present) < MIN_PARTITION_DAYS or len(absent) < MIN_PARTITION_DAYS or scale <= 0:
        return 0.0
    difference = abs(_mean(absent) - _mean(present))
    return min(1.0, 2 * difference / scale)


def _partition(days: Sequence[Dict[str, Any]], trigger: Callable[[Dict[str, Any]], bool], outcome: str):
    present, absent = [], []
    for day in days:
        value = day.get(outcome)
        if value is None:
            continue
        (present if trigger(day) else absent).append(value)
    return present, absent


@dataclass(frozen=True)
class TriggerPair:
    """
    A trigger/outcome claim checked against the week.

    ``sign`` is the direction the claim makes: +1 when trigger days should
    show a higher outcome, -1 when lower. A pair whose data separates the
    other way is not reported.
    """

    trigger: str
    outcome: str
    effect: str
    direction: str
    sign: int
    threshold: float
    present: Callable[[Dict[str, Any]], bool]
    describe: Callable[[List[float], List[float]], str]
    scale: Callable[[List[float], List[float]], float] = lambda present, absent: 10


def _relative_drop(present, absent) -> float:
    baseline = _mean(absent)
    return (baseline - _mean(present)) / baseline if baseline else 0.0


TRIGGER_PAIRS: List[TriggerPair] = [
    TriggerPair(
        "Late Caffeine", "energy", "Lower energy", "negative", sign=-1, threshold=0.3,
        present=lambda d: d["caffeine_late"],
        describe=lambda present, absent: f"Late caffeine days show {_relative_drop(present, absent) * 100:.0f}% lower energy",
        scale=lambda present, absent: _mean(absent),
    ),
    TriggerPair(
        "Exercise", "mood", "Better mood", "positive", sign=1, threshold=0.3,
        present=lambda d: d["exercise_done"],
        describe=lambda present, absent: "Exercise days show improved mood",
    ),
    TriggerPair(
        "Poor Sleep", "stress_level", "Higher stress", "negative", sign=1, threshold=0.3,
        present=lambda d: d["poor_sleep"],
        describe=lambda present, absent: "Sleep under 6 hours goes with higher stress",
    ),
    TriggerPair(
        "Meditation", "anxiety_level", "Lower anxiety", "positive", sign=-1, threshold=0.2,
        present=lambda d: d["meditation_done"],
        describe=lambda present, absent: "Meditation days show reduced anxiety",
    ),
]


def _matched_days(habits: Sequence[Any], scores: Sequence[Any]) -> List[Dict[str, Any]]:
    energy_by_date = {_get(s, "date"): _get(s, "score") for s in scores}
    matched = []
    for habit in habits:
        day = _get(habit, "date")
        if day not in energy_by_date:
            continue
        matched.append({
            "energy": energy_by_date[day],
            "mood": MOOD_SCALE.get(_get(habit, "mood")) if _get(habit, "mood") else None,
            "stress_level": _get(habit, "stress_level"),
            "anxiety_level": _get(habit, "anxiety_level"),
            "caffeine_late": bool(_get(habit, "caffeine_late")),
            "exercise_done": bool(_get(habit, "exercise_done")),
            "meditation_done": bool(_get(habit, "meditation_done")),
            "poor_sleep": (_get(habit, "sleep_hours") or 7) < 6,
        })
    return matched


def find_correlations(habits: Sequence[Any], scores: Sequence[Any]) -> List[Correlation]:
    """Trigger/outcome pairs over days that have both a habit record and a score."""
    matched = _matched_days(habits, scores)
    if len(matched) < MIN_MATCHED_DAYS:
        return []

    correlations = []
    for pair in TRIGGER_PAIRS:
        present, absent = _partition(matched, pair.present, pair.outcome)
        if not present or not absent:
            continue
        # Only report the claimed direction
        if (_mean(present) - _mean(absent)) * pair.sign <= 0:
            continue
        strength = separation_strength(present, absent, pair.scale(present, absent))
        if strength <= pair.threshold:
            continue
        correlations.append(Correlation(
            trigger=pair.trigger,
            effect=pair.effect,
            strength=round(strength, 3),
            direction=pair.direction,
            description=pair.describe(present, absent),
        ))

    correlations.sort(key=lambda c: c.strength, reverse=True)
    return correlations[:MAX_CORRELATIONS]


# ============== Recommendations ==============

def _rec(action, reason, priority, category, icon, time_of_day=None, duration=None) -> Recommendation:
    return Recommendation(
        action=action,
        reason=reason,
        priority=priority,
        category=category,
        icon=icon,
        time_of_day=time_of_day,
        duration=duration,
    )


def _templates_for(habit: HabitPatternItem) -> List[Recommendation]:
    escalated = "high" if habit.severity == "high" else "medium"
    templates = {
        "Late Caffeine": [
            _rec("Switch to decaf after 2pm", "Late caffeine disrupts sleep quality", escalated, "caffeine", "☕", "afternoon"),
        ],
        "High Caffeine Intake": [
            _rec("Swap one coffee for water or tea", "Less caffeine means steadier energy", "medium", "caffeine", "🍵"),
        ],
        "Insufficient Sleep": [
            _rec("Set a bedtime alarm 30 minutes earlier", "You slept less than 6 hours several days", "high", "sleep", "🛏️", "evening"),
        ],
        "Lack of Exercise": [
            _rec("Take a 15-minute walk today", "Movement boosts energy and mood", "medium", "exercise", "🚶", "morning", "15 minutes"),
        ],
        "Screen Before Bed": [
            _rec("Put phone away 1 hour before bed", "Blue light affects sleep quality", escalated, "screen", "📵", "evening"),
        ],
        "High Stress Levels": [
            _rec("Try 5 minutes of deep breathing", "Your stress levels were elevated this week", "high", "mindfulness", "🧘", duration="5 minutes"),
            _rec("Take a nature walk", "Nature exposure reduces cortisol", "medium", "outdoor", "🌳", duration="20 minutes"),
        ],
        "Frequent Irritation": [
            _rec("Practice 2-minute meditation when frustrated", "You felt irritated on multiple days", "medium", "mindfulness", "🧘", duration="2 minutes"),
        ],
        "Low Hydration": [
            _rec("Keep a water bottle at your desk", "Dehydration affects focus and energy", "medium", "hydration", "💧"),
        ],
        "Skipping Meals": [
            _rec("Prep healthy snacks for busy days", "Skipped meals cause energy crashes", "medium", "nutrition", "🥗"),
        ],
        "Junk Food": [
            _rec("Swap one junk meal for a healthier option", "Better nutrition means better energy", "low", "nutrition", "🥗"),
        ],
        "Alcohol Consumption": [
            _rec("Try an alcohol-free day today", "Alcohol affects sleep quality and recovery", "medium", "alcohol", "🚫"),
        ],
        "Smoking": [
            _rec("When the urge hits, take 5 deep breaths instead", "Small steps toward reducing smoking", "high", "smoking", "🌬️", duration="1 minute"),
        ],
    }
    return templates.get(habit.name, [])


def generate_recommendations(worst_habits: Sequence[HabitPatternItem]) -> List[Recommendation]:
    """Canned recommendations per worst habit, deduplicated and ranked by priority."""
    recommendations: List[Recommendation] = []
    for habit in worst_habits:
        recommendations.extend(_templates_for(habit))

    categories = {r.category for r in recommendations}
    if "mindfulness" not in categories:
        recommendations.append(_rec(
            "Start with 5 minutes of morning meditation",
            "Builds mental resilience over time",
            "low", "mindfulness", "🧘", "morning", "5 minutes",
        ))
    if "exercise" not in categories and any(h.name == "High Stress Levels" for h in worst_habits):
        recommendations.append(_rec(
            "Do 10 jumping jacks to release tension",
            "Physical movement releases stress",
            "medium", "exercise", "🏃", duration="2 minutes",
        ))

    seen = set()
    unique = []
    for rec in recommendations:
        if rec.action in seen:
            continue
        seen.add(rec.action)
        unique.append(rec)

    # sorted() is stable, so equal priorities keep insertion order
    unique = sorted(unique, key=lambda r: -SEVERITY_ORDER[r.priority])
    return unique[:MAX_RECOMMENDATIONS]


def filter_satisfied_recommendations(recommendations: Sequence[Recommendation], today_habit: Any) -> List[Recommendation]:
    """Drop recommendations the user has already acted on today."""
    if today_habit is None:
        return list(recommendations)

    def satisfied(rec: Recommendation) -> bool:
        if rec.category == "exercise" and _get(today_habit, "exercise_done"):
            return True
        if rec.category == "mindfulness" and _get(today_habit, "meditation_done"):
            return True
        if rec.category == "hydration" and (_get(today_habit, "water_glasses") or 0) >= 8:
            return True
        return False

    return [rec for rec in recommendations if not satisfied(rec)]


# ============== Stats & summary ==============

def calculate_stats(habits: Sequence[Any], scores: Sequence[Any]) -> PatternStats:
    """Averages over the days that reported each value."""
    moods = [MOOD_SCALE[_get(h, "mood")] for h in habits if _get(h, "mood") in MOOD_SCALE]
    stress = [_get(h, "stress_level") for h in habits if _get(h, "stress_level") is not None]
    sleep = [_get(h, "sleep_hours") for h in habits if _get(h, "sleep_hours") is not None]
    energy = [_get(s, "score") for s in scores if _get(s, "score") is not None]

    return PatternStats(
        avg_mood=_rounded_mean(moods),
        avg_stress=_rounded_mean(stress),
        avg_energy=_rounded_mean(energy),
        avg_sleep=_rounded_mean(sleep),
        exercise_days=sum(1 for h in habits if _get(h, "exercise_done")),
        meditation_days=sum(1 for h in habits if _get(h, "meditation_done")),
        total_exercise_minutes=sum(
            _get(h, "exercise_duration") or 0 for h in habits if _get(h, "exercise_done")
        ),
        days_tracked=len(habits),
    )


def _average_of(habits: Sequence[Any], field: str) -> Optional[float]:
    values = [_get(h, field) for h in habits if _get(h, field) is not None]
    return _rounded_mean(values) if values else None


def _count_of(habits: Sequence[Any], predicate: Callable[[Any], bool]) -> int:
    return sum(1 for h in habits if predicate(h))


def _total_of(habits: Sequence[Any], field: str) -> int:
    return sum(_get(h, field) or 0 for h in habits)


def summarize_habits(habits: Sequence[Any]) -> HabitSummary:
    """Averages and day counts over a window of habit records."""
    if not habits:
        return HabitSummary()
    moods = [MOOD_SCALE[_get(h, "mood")] for h in habits if _get(h, "mood") in MOOD_SCALE]

    return HabitSummary(
        days_tracked=len(habits),
        avg_caffeine=_average_of(habits, "caffeine_cups"),
        late_caffeine_days=_count_of(habits, lambda h: _get(h, "caffeine_late")),
        avg_sleep=_average_of(habits, "sleep_hours"),
        good_sleep_days=_count_of(habits, lambda h: _get(h, "sleep_quality") in ("good", "excellent")),
        total_drinks=_total_of(habits, "alcohol_drinks"),
        drinking_days=_count_of(habits, lambda h: (_get(h, "alcohol_drinks") or 0) > 0),
        exercise_days=_count_of(habits, lambda h: _get(h, "exercise_done")),
        total_exercise_minutes=_total_of(habits, "exercise_duration"),
        avg_meals=_average_of(habits, "meals_count"),
        avg_water=_average_of(habits, "water_glasses"),
        avg_screen_time=_average_of(habits, "screen_time_hours"),
        screen_before_bed_days=_count_of(habits, lambda h: _get(h, "screen_before_bed")),
        avg_mood=_rounded_mean(moods) if moods else None,
        avg_stress=_average_of(habits, "stress_level"),
        avg_anxiety=_average_of(habits, "anxiety_level"),
        anger_days=_count_of(habits, lambda h: (_get(h, "anger_incidents") or 0) > 0),
        meditation_days=_count_of(habits, lambda h: _get(h, "meditation_done")),
        total_meditation_minutes=_total_of(habits, "meditation_minutes"),
        smoking_days=_count_of(habits, lambda h: _get(h, "smoking")),
        junk_food_days=_count_of(habits, lambda h: _get(h, "junk_food")),
    )


def fallback_summary(worst: Sequence[HabitPatternItem], best: Sequence[HabitPatternItem], stats: PatternStats) -> str:
    challenge = (worst[0].name if worst else "building consistency").lower()
    strength = (best[0].name if best else "showing up").lower()

    if stats.avg_mood >= 4:
        return (
            f"Good week overall! Your {strength} is really helping. "
            f"Watch the {challenge}, small tweaks there could boost you even more."
        )
    if stats.avg_mood >= 3 or stats.avg_mood == 0:
        return (
            f"Steady week. Keep up the {strength}! Focus on {challenge} today, "
            "even one small change helps."
        )
    return (
        f"Tough week, and that's okay. The {challenge} might be weighing on you. "
        "Try just one tiny improvement today. Small wins matter."
    )


def _summary_prompt(worst, best, stats: PatternStats) -> str:
    challenges = " and ".join(h.name.lower() for h in worst[:2]) or "none identified"
    strengths = " and ".join(h.name.lower() for h in best[:2]) or "building momentum"
    return (
        "Week summary:\n"
        f"- Avg mood: {stats.avg_mood}/5\n"
        f"- Avg stress: {stats.avg_stress}/10\n"
        f"- Avg energy: {stats.avg_energy}/10\n"
        f"- Avg sleep: {stats.avg_sleep} hrs\n"
        f"- Exercise days: {stats.exercise_days}/{stats.days_tracked}\n"
        f"- Top challenges: {challenges}\n"
        f"- Good habits: {strengths}\n\n"
        "In 2-3 sentences (max 40 words), give friendly feedback. "
        "Mention the main challenge and one thing to try today."
    )


def insufficient_data_pattern(week_start: date, week_end: date, summary: str = INSUFFICIENT_DATA_SUMMARY) -> HabitPatternResult:
    return HabitPatternResult(
        week_start=week_start,
        week_end=week_end,
        recommendations=[
            _rec("Log your first habit check-in", "Building awareness is the first step", "high", "tracking", "📝"),
        ],
        stats=PatternStats(),
        summary=summary,
        insufficient_data=True,
    )


class PatternAnalyzer:
    """Runs and persists the weekly analysis for one user."""

    def __init__(self, store: SignalStore, settings: Settings, llm_service: Optional[LLMService] = None):
        self.store = store
        self.settings = settings
        self.llm = llm_service

    def window(self, week_end: date):
        return week_end - timedelta(days=self.settings.weekly_window_days - 1), week_end

    async def _summary(self, worst, best, stats: PatternStats) -> str:
        if self.llm is None:
            return fallback_summary(worst, best, stats)
        try:
            return await self.llm.generate_text(
                _summary_prompt(worst, best, stats),
                system_instruction=SUMMARY_SYSTEM_PROMPT,
                max_tokens=150,
            )
        except Exception as e:
            logger.warning("Weekly summary generation failed, using fallback: %s", e)
            return fallback_summary(worst, best, stats)

    async def analyze_week(self, user_id: str, week_end: date) -> HabitPatternResult:
        week_start, week_end = self.window(week_end)
        habits = self.store.list_daily_habits(user_id, week_start, week_end)

        if len(habits) < MIN_DAYS_FOR_ANALYSIS:
            logger.info(
                "Insufficient habit data for %s (%d days in %s..%s)",
                user_id, len(habits), week_start, week_end,
            )
            return insufficient_data_pattern(week_start, week_end)

        scores = self.store.list_energy_scores(user_id, week_start, week_end)

        worst = identify_worst_habits(habits)
        best = identify_best_habits(habits)
        correlations = find_correlations(habits, scores)
        recommendations = generate_recommendations(worst)
        stats = calculate_stats(habits, scores)
        summary = await self._summary(worst, best, stats)

        result = HabitPatternResult(
            week_start=week_start,
            week_end=week_end,
            worst_habits=worst,
            best_habits=best,
            correlations=correlations,
            recommendations=recommendations,
            stats=stats,
            summary=summary,
        )
        self.store.upsert_habit_pattern(
            user_id,
            week_start,
            week_end,
            result.model_dump(mode="json", include={
                "worst_habits", "best_habits", "correlations", "recommendations", "stats", "summary",
            }),
        )
        logger.info(
            "Weekly patterns for %s: %d worst, %d best, %d correlations",
            user_id, len(worst), len(best), len(correlations),
        )
        return result

    def today_recommendations(self, user_id: str, today: date) -> List[Recommendation]:
        pattern = self.store.latest_habit_pattern(user_id)
        if pattern is None or not pattern.recommendations:
            return [
                _rec("Start tracking your daily habits", "Self-awareness is the key to improvement", "high", "tracking", "📝"),
            ]

        recommendations = [Recommendation.model_validate(r) for r in pattern.recommendations]
        today_habit = self.store.get_daily_habit(user_id, today)
        return filter_satisfied_recommendations(recommendations, today_habit)

    def worst_habits_view(self, user_id: str) -> WorstHabitsView:
        """Top worst habits and the leading recommendation from the latest stored week."""
        pattern = self.store.latest_habit_pattern(user_id)
        if pattern is None:
            return WorstHabitsView(
                top_recommendation=NO_PATTERN_RECOMMENDATION,
                summary=NO_PATTERN_SUMMARY,
            )

        worst = [HabitPatternItem.model_validate(h) for h in (pattern.worst_habits or [])]
        recommendations = pattern.recommendations or []
        return WorstHabitsView(
            worst_habits=worst[:MAX_HIGHLIGHTED_HABITS],
            top_recommendation=recommendations[0]["action"] if recommendations else "Keep up the good work!",
            summary=pattern.summary or NO_PATTERN_SUMMARY,
        )
