"""Tests for the retrying LLM front end."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from google.genai import errors

from clarity.config import Settings
from clarity.exceptions import GeneratorUnavailable, RateLimited
from clarity.services.llm_service import GeminiProvider, LLMService


def _settings(**overrides):
    values = dict(
        database_url="sqlite://",
        gemini_api_key="",
        llm_timeout_seconds=1.0,
        llm_max_attempts=3,
        llm_backoff_base_seconds=1.0,
        llm_rate_limit_backoff_seconds=2.0,
        _env_file=None,
    )
    values.update(overrides)
    return Settings(**values)


def _rate_limit_error():
    return errors.ClientError(
        429,
        {"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}},
    )


@pytest.fixture
def no_sleep(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr("clarity.services.llm_service.asyncio.sleep", sleep)
    return sleep


class TestRetry:

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, no_sleep):
        provider = AsyncMock()
        provider.complete.return_value = "  Looks like a good day.  "

        text = await LLMService(_settings(), provider=provider).generate_text("prompt")

        assert text == "Looks like a good day."
        assert provider.complete.await_count == 1
        no_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generic_failures_back_off_exponentially(self, no_sleep):
        provider = AsyncMock()
        provider.complete.side_effect = [RuntimeError("boom"), RuntimeError("boom"), "Recovered."]

        text = await LLMService(_settings(), provider=provider).generate_text("prompt")

        assert text == "Recovered."
        assert [c.args[0] for c in no_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_backs_off_linearly_then_gives_up(self, no_sleep):
        provider = AsyncMock()
        provider.complete.side_effect = _rate_limit_error()

        with pytest.raises(RateLimited):
            await LLMService(_settings(), provider=provider).generate_text("prompt")

        assert provider.complete.await_count == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_empty_text_counts_as_failure(self, no_sleep):
        provider = AsyncMock()
        provider.complete.return_value = "   "

        with pytest.raises(GeneratorUnavailable):
            await LLMService(_settings(), provider=provider).generate_text("prompt")

        assert provider.complete.await_count == 3

    @pytest.mark.asyncio
    async def test_invalid_json_is_retried(self, no_sleep):
        provider = AsyncMock()
        provider.complete_json.side_effect = [ValueError("not json"), [{"id": "1"}]]

        result = await LLMService(_settings(), provider=provider).generate_json("prompt")

        assert result == [{"id": "1"}]
        assert provider.complete_json.await_count == 2

    @pytest.mark.asyncio
    async def test_each_attempt_is_time_bounded(self, no_sleep):
        class HangingProvider:
            calls = 0

            async def complete(self, prompt, **kwargs):
                HangingProvider.calls += 1
                await asyncio.Event().wait()

        service = LLMService(_settings(llm_timeout_seconds=0.05, llm_max_attempts=2), provider=HangingProvider())

        with pytest.raises(GeneratorUnavailable):
            await service.generate_text("prompt")

        assert HangingProvider.calls == 2


class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_fast_without_client(self, no_sleep):
        provider = GeminiProvider(_settings())

        with pytest.raises(GeneratorUnavailable):
            await LLMService(_settings(), provider=provider).generate_text("prompt")

        assert provider._client is None
        no_sleep.assert_not_awaited()

    def test_uses_configured_model(self):
        provider = GeminiProvider(_settings(gemini_api_key="key", gemini_model="gemini-test"))

        assert provider.model_id == "gemini-test"
        assert provider.api_key == "key"
