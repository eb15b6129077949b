"""Tests for explanation generation and its deterministic fallback."""

import asyncio

import pytest

from clarity.schemas import EnergyFactors
from clarity.services.explanation_service import (
    ExplanationService,
    fallback_actions,
    fallback_explanation,
    parse_actions,
    score_band,
)
from clarity.services.llm_service import GeminiProvider, LLMService

from conftest import GOOD_ACTIONS, FakeProvider


# ─── LLM path ────────────────────────────────────────────────────────────────

class TestGeneratedPath:

    @pytest.mark.asyncio
    async def test_uses_generated_text_and_actions(self, llm_service, fake_provider):
        result = await ExplanationService(llm_service).explain(7.5, EnergyFactors(sleep=1.0), "Sleep: 8.0 hours")

        assert result.generated_by == "llm"
        assert result.text == fake_provider.text
        assert result.actions == GOOD_ACTIONS
        assert fake_provider.calls == ["text", "json"]

    @pytest.mark.asyncio
    async def test_accepts_actions_wrapped_in_object(self, settings):
        provider = FakeProvider(actions={"actions": GOOD_ACTIONS})

        result = await ExplanationService(LLMService(settings, provider=provider)).explain(6.0, EnergyFactors(), "")

        assert result.generated_by == "llm"
        assert len(result.actions) == 3

    @pytest.mark.asyncio
    async def test_wrong_action_count_falls_back(self, settings):
        provider = FakeProvider(actions=GOOD_ACTIONS[:2])

        result = await ExplanationService(LLMService(settings, provider=provider)).explain(6.0, EnergyFactors(), "")

        assert result.generated_by == "fallback"
        assert len(result.actions) == 3

    @pytest.mark.asyncio
    async def test_overall_deadline_falls_back(self, settings):
        class SlowProvider(FakeProvider):
            async def complete(self, prompt, **kwargs):
                await asyncio.Event().wait()

        settings.llm_deadline_seconds = 0.05
        service = ExplanationService(LLMService(settings, provider=SlowProvider()))

        result = await service.explain(2.0, EnergyFactors(sleep=-1.5), "")

        assert result.generated_by == "fallback"
        assert result.text == fallback_explanation(2.0, EnergyFactors(sleep=-1.5))


# ─── Fallback ────────────────────────────────────────────────────────────────

class TestFallback:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [1.0, 3.9, 4.0, 6.9, 7.0, 10.0])
    async def test_every_band_works_without_any_external_call(self, settings, score):
        provider = GeminiProvider(settings)  # no API key configured
        service = ExplanationService(LLMService(settings, provider=provider))

        result = await service.explain(score, EnergyFactors(), "")

        assert result.generated_by == "fallback"
        assert result.text
        assert len(result.actions) == 3
        assert all(a["reason"] for a in result.actions)
        assert provider._client is None

    @pytest.mark.asyncio
    async def test_failing_generator_uses_fallback(self, failing_llm_service, failing_provider):
        factors = EnergyFactors(activity=-0.5)

        result = await ExplanationService(failing_llm_service).explain(5.5, factors, "")

        assert result.generated_by == "fallback"
        assert result.actions == fallback_actions(5.5, factors)
        assert "text" in failing_provider.calls

    @pytest.mark.parametrize("score, band", [(1.0, "low"), (3.9, "low"), (4.0, "medium"), (6.9, "medium"), (7.0, "high")])
    def test_score_band(self, score, band):
        assert score_band(score) == band

    def test_medium_band_targets_negative_factors(self):
        actions = fallback_actions(5.0, EnergyFactors(sleep=-1.0, activity=0.5, mental_health=-0.4))

        assert [a["title"] for a in actions] == [
            "Plan to sleep 30 min earlier",
            "Listen to an uplifting song",
            "Breathe deeply for 1 minute",
        ]
        assert [a["id"] for a in actions] == ["1", "2", "3"]

    def test_explanation_mentions_factor_labels(self):
        high = fallback_explanation(8.0, EnergyFactors(sleep=1.5, hrv=1.0))
        low = fallback_explanation(2.5, EnergyFactors(sleep=-1.5, mental_health=-0.4))

        assert "good sleep and good HRV/recovery" in high
        assert "poor sleep and mental strain" in low


class TestParseActions:

    def test_rejects_missing_reason(self):
        with pytest.raises(ValueError):
            parse_actions([
                {"id": "1", "title": "A", "reason": "x"},
                {"id": "2", "title": "B", "reason": ""},
                {"id": "3", "title": "C", "reason": "z"},
            ])

    def test_rejects_non_list(self):
        with pytest.raises(ValueError):
            parse_actions("three actions")

    def test_fills_missing_ids(self):
        actions = parse_actions([{"title": t, "reason": "because"} for t in ("A", "B", "C")])

        assert [a["id"] for a in actions] == ["1", "2", "3"]
