"""
OpenAI Speech Provider

Text-to-speech through the OpenAI audio API, returning WAV bytes.

The voice is chosen from the visitor's BCP-47 language code (VOICE_MAP),
falling back to the default voice. Long texts are truncated on a word
boundary before synthesis. Usage records count the input text tokens only.
"""

from __future__ import annotations

import asyncio
import logging
import time

import openai

from concierge_kb.config.pricing import estimate_cost_usd
from concierge_kb.config.providers import VOICE_MAP
from concierge_kb.errors import GenerationUnavailable, InvalidInput, RateLimited
from concierge_kb.providers.base import SpeechProvider
from concierge_kb.types.results import UsageRecord
from concierge_kb.utils.text import truncate
from concierge_kb.utils.token_count import count_text_tokens
from concierge_kb.utils.usage_telemetry import current_stage, record_usage

logger = logging.getLogger(__name__)


class OpenAISpeechProvider(SpeechProvider):
    """
    OpenAI text-to-speech provider.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Speech model (default: "gpt-4o-mini-tts")
        default_voice: Voice for unmapped language codes
        max_chars: Longest text sent for synthesis
        timeout: Seconds allowed for one call
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini-tts",
        default_voice: str = "alloy",
        max_chars: int = 1200,
        timeout: float = 20.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._default_voice = default_voice
        self._max_chars = max_chars
        self._timeout = timeout
        self._client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self._api_key, max_retries=0)
        return self._client

    def voice_for(self, language_code: str) -> str:
        return VOICE_MAP.get(language_code, self._default_voice)

    async def synthesize(self, text: str, *, language_code: str = "en-US") -> bytes:
        """
        Synthesize speech.

        Raises:
            InvalidInput: Text is blank
            GenerationUnavailable: Backend failed or timed out
        """
        safe = (text or "").strip()
        if not safe:
            raise InvalidInput("text is required")
        safe = truncate(safe, self._max_chars)
        voice = self.voice_for(language_code)

        client = self._get_client()
        start_ns = time.perf_counter_ns()
        try:
            response = await asyncio.wait_for(
                client.audio.speech.create(
                    model=self._model,
                    voice=voice,
                    input=safe,
                    response_format="wav",
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationUnavailable(
                f"{self._model} did not respond within {self._timeout}s"
            ) from e
        except openai.RateLimitError as e:
            raise RateLimited(f"{self._model} rate limited: {e}") from e
        except openai.APIError as e:
            raise GenerationUnavailable(f"{self._model} request failed: {e}") from e

        input_tokens = count_text_tokens(safe, self._model)
        cost = estimate_cost_usd(self._model, input_tokens)
        record_usage(
            UsageRecord(
                model=self._model,
                operation="synthesize",
                stage=current_stage(),
                input_tokens=input_tokens,
                total_tokens=input_tokens,
                estimated_cost_usd=cost or 0.0,
                latency_ms=int((time.perf_counter_ns() - start_ns) // 1_000_000),
                estimated=True,
                priced=cost is not None,
                metadata={"voice": voice, "language_code": language_code},
            )
        )
        logger.debug(f"Synthesized {len(safe)} chars with voice {voice} ({language_code})")
        return response.content
