"""Pydantic schemas for check-in payloads, API request/response validation."""

from pydantic import BaseModel, Field, ValidationError
from typing import Optional, List, Dict, Any, Literal, Union
from datetime import datetime, date

from clarity.exceptions import InvalidCheckIn


CheckInKind = Literal["morning", "midday", "evening"]
Mood = Literal["very_low", "low", "neutral", "good", "great"]

# Bump when a payload model or the habit mapping table changes shape.
CHECK_IN_SCHEMA_VERSION = 1


# ============== Check-in Payloads ==============

class MorningCheckInPayload(BaseModel):
    kind: Literal["morning"] = "morning"
    rested_score: Optional[int] = Field(None, ge=1, le=10)
    motivation_level: Optional[Literal["low", "medium", "high"]] = None
    woke_on_time: Optional[bool] = None
    sleep_felt_complete: Optional[bool] = None
    notes: Optional[str] = None

    class Config:
        extra = "ignore"


class MiddayCheckInPayload(BaseModel):
    kind: Literal["midday"] = "midday"
    energy_level: Optional[Literal["low", "ok", "high"]] = None
    state: Optional[Literal[
        "mentally_drained", "physically_tired", "distracted", "fine", "feeling_great"
    ]] = None
    focus_level: Optional[Literal["low", "medium", "high"]] = None
    stress_level: Optional[int] = Field(None, ge=1, le=10)
    anxiety_level: Optional[int] = Field(None, ge=1, le=10)
    mood: Optional[Mood] = None
    notes: Optional[str] = None

    class Config:
        extra = "ignore"


class EveningCheckInPayload(BaseModel):
    kind: Literal["evening"] = "evening"
    day_vs_expectations: Optional[Literal["better", "same", "worse"]] = None
    drain_source: Optional[Literal[
        "poor_sleep", "work", "work_stress", "physical", "emotional", "poor_meals", "unknown"
    ]] = None

    # Binary habit flags
    late_caffeine: Optional[bool] = None
    skipped_meals: Optional[bool] = None
    alcohol: Optional[bool] = None
    screen_time_before_bed: Optional[bool] = None

    # Enhanced evening fields
    caffeine_cups: Optional[int] = Field(None, ge=0, le=30)
    exercise_done: Optional[bool] = None
    exercise_duration: Optional[int] = Field(None, ge=0, le=1440)
    water_glasses: Optional[int] = Field(None, ge=0, le=50)
    screen_time_hours: Optional[float] = Field(None, ge=0, le=24)
    screen_before_bed: Optional[bool] = None
    meditation_done: Optional[bool] = None
    outdoor_time: Optional[int] = Field(None, ge=0, le=1440)
    junk_food: Optional[bool] = None
    mood: Optional[Mood] = None
    stress_level: Optional[int] = Field(None, ge=1, le=10)
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    notes: Optional[str] = None

    class Config:
        extra = "ignore"


CheckInPayload = Union[MorningCheckInPayload, MiddayCheckInPayload, EveningCheckInPayload]

_PAYLOAD_MODELS = {
    "morning": MorningCheckInPayload,
    "midday": MiddayCheckInPayload,
    "evening": EveningCheckInPayload,
}


def parse_check_in_payload(kind: str, payload: Optional[Dict[str, Any]]) -> CheckInPayload:
    """Validate a raw payload against the schema of its check-in kind."""
    model = _PAYLOAD_MODELS.get(kind)
    if model is None:
        raise InvalidCheckIn(f"Invalid check-in kind: {kind!r}")
    data = dict(payload or {})
    data["kind"] = kind
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidCheckIn(f"Invalid {kind} check-in payload: {e.errors()}") from e


def dump_check_in_payload(parsed: CheckInPayload) -> Dict[str, Any]:
    """Storage form of a payload: set fields only, without the tag."""
    return parsed.model_dump(exclude_none=True, exclude={"kind"})


# ============== Health Record Payloads ==============

class SleepData(BaseModel):
    duration_hours: Optional[float] = Field(None, ge=0, le=24)
    bedtime: Optional[str] = None
    wake_time: Optional[str] = None
    consistency_score: Optional[float] = None

    class Config:
        extra = "ignore"


class HrvData(BaseModel):
    value: Optional[float] = Field(None, ge=0)

    class Config:
        extra = "ignore"


class StepsData(BaseModel):
    count: Optional[int] = Field(None, ge=0)

    class Config:
        extra = "ignore"


class CalendarData(BaseModel):
    """Cognitive-load summary derived from the user's calendar."""
    meeting_count: Optional[int] = Field(None, ge=0, alias="meetingCount")
    meeting_hours: Optional[float] = Field(None, ge=0, alias="meetingHours")
    meeting_density: Optional[float] = Field(None, ge=0, le=1, alias="meetingDensity")
    back_to_back: Optional[int] = Field(None, ge=0, alias="backToBack")
    late_meetings: Optional[int] = Field(None, ge=0, alias="lateMeetings")
    longest_gap: Optional[float] = Field(None, ge=0, alias="longestGap")  # minutes

    class Config:
        extra = "ignore"
        populate_by_name = True


HEALTH_PAYLOAD_MODELS = {
    "sleep": SleepData,
    "hrv": HrvData,
    "steps": StepsData,
    "calendar": CalendarData,
}


# ============== Energy Score Schemas ==============

class EnergyFactors(BaseModel):
    """Named, signed contributions summed onto the 5.0 baseline."""
    sleep: float = 0.0
    hrv: float = 0.0
    activity: float = 0.0
    calendar: float = 0.0
    morning: float = 0.0
    midday: float = 0.0
    evening: float = 0.0
    habits: float = 0.0
    mental_health: float = 0.0
    lifestyle: float = 0.0

    def total(self) -> float:
        return sum(self.model_dump().values())

    def negative_factors(self) -> List[str]:
        return [name for name, value in self.model_dump().items() if value < 0]


class ActionItem(BaseModel):
    id: str
    title: str
    reason: str = ""


class EnergyScoreResponse(BaseModel):
    id: int
    user_id: str
    date: date
    score: float
    explanation: str
    actions: List[ActionItem] = []
    factors: Dict[str, float] = {}
    check_in_hash: Optional[str] = None
    generated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============== Check-in Schemas ==============

class CheckInCreate(BaseModel):
    kind: CheckInKind
    payload: Dict[str, Any] = {}


class CheckInResponse(BaseModel):
    id: str
    user_id: str
    kind: str
    payload: Dict[str, Any]
    schema_version: int
    check_in_date: date
    created_at: datetime

    class Config:
        from_attributes = True


class CheckInCreateResponse(BaseModel):
    check_in: CheckInResponse
    energy_score: Optional[EnergyScoreResponse] = None
    steps: Dict[str, bool] = {}


class CheckInStatus(BaseModel):
    morning: bool = False
    midday: bool = False
    evening: bool = False


# ============== Health Record Schemas ==============

class HealthRecordCreate(BaseModel):
    kind: Literal[
        "sleep", "steps", "hrv", "heart_rate", "activity",
        "calendar", "nutrition", "mindfulness", "workout",
    ]
    source_date: date
    payload: Dict[str, Any]
    source: str = "manual"


class HealthRecordResponse(BaseModel):
    id: int
    user_id: str
    kind: str
    source: Optional[str] = None
    payload: Dict[str, Any]
    source_date: date

    class Config:
        from_attributes = True


# ============== Daily Habit Schemas ==============

class DailyHabitUpdate(BaseModel):
    """Manual habit log; only the fields sent are merged."""
    caffeine_cups: Optional[int] = Field(None, ge=0)
    caffeine_late: Optional[bool] = None
    sleep_hours: Optional[float] = Field(None, ge=0, le=24)
    sleep_quality: Optional[Literal["poor", "fair", "good", "excellent"]] = None
    naps_taken: Optional[int] = Field(None, ge=0)
    woke_on_time: Optional[bool] = None
    sleep_felt_complete: Optional[bool] = None
    alcohol_drinks: Optional[int] = Field(None, ge=0)
    exercise_done: Optional[bool] = None
    exercise_duration: Optional[int] = Field(None, ge=0)
    exercise_intensity: Optional[Literal["light", "moderate", "intense"]] = None
    meals_count: Optional[int] = Field(None, ge=0)
    meals_skipped: Optional[str] = None
    water_glasses: Optional[int] = Field(None, ge=0)
    screen_time_hours: Optional[float] = Field(None, ge=0, le=24)
    screen_before_bed: Optional[bool] = None
    social_media_hours: Optional[float] = Field(None, ge=0, le=24)
    mood: Optional[Mood] = None
    stress_level: Optional[int] = Field(None, ge=1, le=10)
    anxiety_level: Optional[int] = Field(None, ge=1, le=10)
    anger_incidents: Optional[int] = Field(None, ge=0)
    social_interaction: Optional[Literal["none", "minimal", "moderate", "lots"]] = None
    outdoor_time: Optional[int] = Field(None, ge=0)
    meditation_done: Optional[bool] = None
    meditation_minutes: Optional[int] = Field(None, ge=0)
    journaling_done: Optional[bool] = None
    work_hours: Optional[float] = Field(None, ge=0, le=24)
    work_stress: Optional[Literal["low", "moderate", "high", "extreme"]] = None
    smoking: Optional[bool] = None
    junk_food: Optional[bool] = None
    late_night_eating: Optional[bool] = None
    notes: Optional[str] = None


class DailyHabitResponse(DailyHabitUpdate):
    id: int
    user_id: str
    date: date

    class Config:
        from_attributes = True


# ============== Weekly Pattern Schemas ==============

class HabitPatternItem(BaseModel):
    name: str
    frequency: float = Field(..., ge=0, le=1)
    days: int
    impact: Literal["positive", "negative"]
    severity: Literal["low", "medium", "high"]
    description: str
    icon: str = ""


class Correlation(BaseModel):
    """Mean-separation heuristic between a trigger and an outcome (not a statistical correlation)."""
    trigger: str
    effect: str
    strength: float = Field(..., ge=0, le=1)
    direction: Literal["positive", "negative"]
    description: str


class Recommendation(BaseModel):
    action: str
    reason: str
    priority: Literal["low", "medium", "high"]
    category: str
    icon: str = ""
    time_of_day: Optional[str] = None
    duration: Optional[str] = None


class PatternStats(BaseModel):
    avg_mood: float = 0
    avg_stress: float = 0
    avg_energy: float = 0
    avg_sleep: float = 0
    exercise_days: int = 0
    meditation_days: int = 0
    total_exercise_minutes: int = 0
    days_tracked: int = 0


class HabitSummary(BaseModel):
    """Per-window habit totals. Averages cover only the days that reported the value."""
    days_tracked: int = 0
    avg_caffeine: Optional[float] = None
    late_caffeine_days: int = 0
    avg_sleep: Optional[float] = None
    good_sleep_days: int = 0
    total_drinks: int = 0
    drinking_days: int = 0
    exercise_days: int = 0
    total_exercise_minutes: int = 0
    avg_meals: Optional[float] = None
    avg_water: Optional[float] = None
    avg_screen_time: Optional[float] = None
    screen_before_bed_days: int = 0
    avg_mood: Optional[float] = None
    avg_stress: Optional[float] = None
    avg_anxiety: Optional[float] = None
    anger_days: int = 0
    meditation_days: int = 0
    total_meditation_minutes: int = 0
    smoking_days: int = 0
    junk_food_days: int = 0


class WorstHabitsView(BaseModel):
    worst_habits: List[HabitPatternItem] = []
    top_recommendation: str
    summary: str


class HabitPatternResult(BaseModel):
    week_start: date
    week_end: date
    worst_habits: List[HabitPatternItem] = []
    best_habits: List[HabitPatternItem] = []
    correlations: List[Correlation] = []
    recommendations: List[Recommendation] = []
    stats: PatternStats = PatternStats()
    summary: str = ""
    insufficient_data: bool = False


# ============== Feedback Schemas ==============

class FeedbackCreate(BaseModel):
    energy_score_id: int
    matched: bool


class FeedbackResponse(BaseModel):
    id: int
    energy_score_id: int
    matched: bool
    created_at: datetime

    class Config:
        from_attributes = True


class FeedbackStats(BaseModel):
    total: int
    matched: int
    match_rate: float
