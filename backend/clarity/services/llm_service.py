import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import errors, types

from clarity.config import Settings
from clarity.exceptions import GeneratorUnavailable, RateLimited

logger = logging.getLogger(__name__)


class GeminiProvider:
    """Gemini provider using the google-genai SDK."""

    def __init__(self, settings: Settings):
        self.api_key = settings.gemini_api_key
        self.model_id = settings.gemini_model
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        # Built on first use so a missing key never costs a network call
        if self._client is None:
            if not self.api_key:
                raise GeneratorUnavailable("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _contents(self, prompt: str, messages: Optional[List[Dict[str, Any]]] = None) -> List[types.Content]:
        contents = []
        for m in messages or []:
            role = "user" if m.get("role") == "user" else "model"
            contents.append(
                types.Content(role=role, parts=[types.Part.from_text(text=m.get("content", ""))])
            )
        contents.append(types.Content(role="user", parts=[types.Part.from_text(text=prompt)]))
        return contents

    @staticmethod
    def _response_text(response) -> str:
        text_parts = []
        if response.candidates:
            cand = response.candidates[0]
            if cand.content and cand.content.parts:
                for part in cand.content.parts:
                    # Skip thought parts, keep the answer only
                    if getattr(part, "thought", None):
                        continue
                    if part.text:
                        text_parts.append(part.text)
        return "".join(text_parts)

    async def complete(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.7,
        max_tokens: int = 300,
    ) -> str:
        """Generate a plain-text completion."""
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )
        response = await self.client.aio.models.generate_content(
            model=self.model_id,
            contents=self._contents(prompt, messages),
            config=config,
        )
        return self._response_text(response).strip()

    async def complete_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> Any:
        """Generate a JSON response. Raises ValueError if the reply is not valid JSON."""
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_tokens,
            response_mime_type="application/json",
        )
        response = await self.client.aio.models.generate_content(
            model=self.model_id,
            contents=self._contents(prompt),
            config=config,
        )
        text = self._response_text(response).strip()
        if not text:
            raise ValueError("Empty JSON response")
        return json.loads(text)


def _is_rate_limited(error: BaseException) -> bool:
    return isinstance(error, errors.APIError) and getattr(error, "code", None) == 429


class LLMService:
    """
    Retrying front end over a provider.

    Every call is bounded by ``llm_timeout_seconds`` and retried up to
    ``llm_max_attempts`` times. Rate-limit replies (HTTP 429) back off
    linearly from ``llm_rate_limit_backoff_seconds``; other failures back off
    exponentially from ``llm_backoff_base_seconds``. When attempts run out,
    GeneratorUnavailable (or RateLimited) is raised.
    """

    def __init__(self, settings: Settings, provider=None):
        self.settings = settings
        self.provider = provider or GeminiProvider(settings)

    def _backoff(self, attempt: int, rate_limited: bool) -> float:
        if rate_limited:
            return self.settings.llm_rate_limit_backoff_seconds * (attempt + 1)
        return self.settings.llm_backoff_base_seconds * (2 ** attempt)

    async def _with_retry(self, operation: str, call):
        max_attempts = max(1, self.settings.llm_max_attempts)
        last_error: Optional[BaseException] = None
        rate_limited = False

        for attempt in range(max_attempts):
            try:
                return await asyncio.wait_for(call(), timeout=self.settings.llm_timeout_seconds)
            except GeneratorUnavailable:
                # Configuration problem, retrying will not help
                raise
            except Exception as e:
                last_error = e
                rate_limited = _is_rate_limited(e)
                logger.warning(
                    "LLM %s attempt %d/%d failed%s: %s",
                    operation, attempt + 1, max_attempts,
                    " (rate limited)" if rate_limited else "",
                    str(e) or type(e).__name__,
                )
                if attempt < max_attempts - 1:
                    await asyncio.sleep(self._backoff(attempt, rate_limited))

        message = f"LLM {operation} failed after {max_attempts} attempts: {last_error}"
        if rate_limited:
            raise RateLimited(message) from last_error
        raise GeneratorUnavailable(message) from last_error

    async def generate_text(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 300,
    ) -> str:
        async def call():
            text = await self.provider.complete(
                prompt,
                system_instruction=system_instruction,
                temperature=temperature,
                max_tokens=max_tokens,
            )
            if not text or not text.strip():
                raise ValueError("Empty text response")
            return text.strip()

        return await self._with_retry("text", call)

    async def generate_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> Any:
        async def call():
            return await self.provider.complete_json(
                prompt,
                system_instruction=system_instruction,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        return await self._with_retry("json", call)
