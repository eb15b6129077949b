"""Services package."""

from clarity.services.llm_service import LLMService, GeminiProvider
from clarity.services.signal_store import SignalStore
from clarity.services.explanation_service import ExplanationService, ExplanationResult
from clarity.services.pattern_service import PatternAnalyzer
from clarity.services.energy_service import EnergyService, CheckInResult, StepOutcome

__all__ = [
    "LLMService",
    "GeminiProvider",
    "SignalStore",
    "ExplanationService",
    "ExplanationResult",
    "PatternAnalyzer",
    "EnergyService",
    "CheckInResult",
    "StepOutcome",
]
