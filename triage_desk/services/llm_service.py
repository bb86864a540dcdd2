"""
LLM Service - generative text capability

Provides a unified interface over the supported providers:
- Google Gemini (default)
- OpenAI

Both expose:
- classify(prompt) -> parsed JSON object (structure NOT validated here)
- generate(prompt) -> free text

Provider errors are translated into the triage failure taxonomy so callers
never see SDK-specific exceptions.
"""
import asyncio
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from triage_desk.config import Settings, get_settings
from triage_desk.exceptions import (
    MalformedResponseError,
    RateLimitedError,
    ServiceUnavailableError,
)
from triage_desk.utils.logger import get_logger
from triage_desk.utils.text import extract_json_object

logger = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers"""
    GEMINI = "gemini"
    OPENAI = "openai"


class TextGenerationService(Protocol):
    """Injectable generative capability used by the classifier and draft generator"""

    async def classify(self, prompt: str) -> Dict[str, Any]:
        ...

    async def generate(self, prompt: str) -> str:
        ...


def _parse_json(text: Optional[str], provider: str) -> Dict[str, Any]:
    parsed = extract_json_object(text)
    if parsed is None:
        raise MalformedResponseError(
            f"{provider} returned no parseable JSON object",
            raw_response=text
        )
    return parsed


class GeminiTextService:
    """
    Google Gemini backend (google-generativeai).

    The SDK is synchronous, so calls run in a worker thread.
    """

    def __init__(self, settings: Optional[Settings] = None):
        import google.generativeai as genai  # Lazy import for tests
        from google.api_core import exceptions as google_exceptions

        settings = settings or get_settings()
        self._genai = genai
        self._errors = google_exceptions
        self.timeout = settings.llm_timeout_seconds
        genai.configure(api_key=settings.google_api_key)
        self.model_name = settings.gemini_model
        self.model = genai.GenerativeModel(self.model_name)
        logger.info(f"GeminiTextService initialized ({self.model_name})")

    async def _complete(self, prompt: str, *, json_mode: bool, max_tokens: int) -> str:
        config = self._genai.GenerationConfig(
            temperature=0.3,
            max_output_tokens=max_tokens,
            response_mime_type="application/json" if json_mode else "text/plain",
        )

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.model.generate_content,
                    prompt,
                    generation_config=config,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ServiceUnavailableError("gemini", f"timed out after {self.timeout}s") from e
        except (self._errors.ResourceExhausted, self._errors.TooManyRequests) as e:
            raise RateLimitedError("gemini", str(e)) from e
        except self._errors.GoogleAPICallError as e:
            raise ServiceUnavailableError("gemini", str(e)) from e

        # Blocked or empty candidates raise on .text access
        try:
            return response.text.strip()
        except ValueError as e:
            finish_reason = "unknown"
            if response.candidates:
                finish_reason = str(response.candidates[0].finish_reason)
            logger.error(f"Gemini response blocked - finish reason: {finish_reason}")
            raise MalformedResponseError(
                f"Gemini response blocked (finish reason: {finish_reason})"
            ) from e

    async def classify(self, prompt: str) -> Dict[str, Any]:
        text = await self._complete(prompt, json_mode=True, max_tokens=1024)
        return _parse_json(text, "gemini")

    async def generate(self, prompt: str) -> str:
        return await self._complete(prompt, json_mode=False, max_tokens=2048)


class OpenAITextService:
    """OpenAI backend (chat completions)"""

    def __init__(self, settings: Optional[Settings] = None, client=None):
        settings = settings or get_settings()
        if client is None:
            from openai import AsyncOpenAI  # Lazy import for tests

            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.llm_timeout_seconds,
            )
        self.client = client
        self.model = settings.openai_model
        logger.info(f"OpenAITextService initialized ({self.model})")

    async def _complete(self, prompt: str, *, json_mode: bool, max_tokens: int) -> str:
        import openai

        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a customer support operations assistant."
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=max_tokens,
                **kwargs
            )
        except openai.RateLimitError as e:
            raise RateLimitedError("openai", str(e)) from e
        except (openai.APITimeoutError, openai.APIConnectionError, openai.InternalServerError) as e:
            raise ServiceUnavailableError("openai", str(e)) from e
        except openai.APIStatusError as e:
            raise ServiceUnavailableError("openai", f"HTTP {e.status_code}: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        return (content or "").strip()

    async def classify(self, prompt: str) -> Dict[str, Any]:
        text = await self._complete(prompt, json_mode=True, max_tokens=1024)
        return _parse_json(text, "openai")

    async def generate(self, prompt: str) -> str:
        return await self._complete(prompt, json_mode=False, max_tokens=2048)


def create_text_service(settings: Optional[Settings] = None) -> TextGenerationService:
    """
    Build the configured provider

    Args:
        settings: Application settings (defaults to cached settings)

    Returns:
        TextGenerationService implementation
    """
    settings = settings or get_settings()
    provider = LLMProvider(settings.llm_provider.lower())

    if provider == LLMProvider.OPENAI:
        return OpenAITextService(settings)
    return GeminiTextService(settings)
