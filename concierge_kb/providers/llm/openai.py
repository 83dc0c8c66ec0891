"""
OpenAI LLM Provider (LangChain-based)

Implements LLMProvider interface using LangChain's ChatOpenAI.

Supports:
    - Text generation (generate)
    - Structured output with Pydantic schemas (generate_structured)

Every call is bounded by a timeout. Backend failures are translated:
    - openai.RateLimitError -> RateLimited
    - timeouts, connection and API errors -> GenerationUnavailable

LangChain's own retries are disabled; the Answer Composer owns the retry
policy.

Example:
    >>> provider = OpenAILLMProvider(api_key="sk-...", model="gpt-4o-mini")
    >>> response = await provider.generate("Is there parking?", system="...")
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, TypeVar

import openai

from concierge_kb.config.pricing import estimate_cost_usd
from concierge_kb.errors import GenerationUnavailable, RateLimited
from concierge_kb.providers.base import LLMProvider
from concierge_kb.types.results import UsageRecord
from concierge_kb.utils.token_count import count_chat_tokens, count_text_tokens
from concierge_kb.utils.usage_telemetry import current_stage, record_usage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage
    from langchain_openai import ChatOpenAI
    from pydantic import BaseModel

T = TypeVar("T", bound="BaseModel")

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int | None:
    """Best-effort int coercion."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _extract_token_usage(response: Any) -> tuple[int | None, int | None, int | None]:
    """
    Extract token usage from LangChain response metadata.

    Returns:
        (input_tokens, output_tokens, total_tokens)
    """
    if response is None:
        return None, None, None

    usage = getattr(response, "usage_metadata", None)
    if isinstance(usage, dict):
        input_tokens = _as_int(usage.get("input_tokens") or usage.get("prompt_tokens"))
        output_tokens = _as_int(usage.get("output_tokens") or usage.get("completion_tokens"))
        total_tokens = _as_int(usage.get("total_tokens"))
        if any(v is not None for v in (input_tokens, output_tokens, total_tokens)):
            return input_tokens, output_tokens, total_tokens

    response_metadata = getattr(response, "response_metadata", None)
    if isinstance(response_metadata, dict):
        token_usage = response_metadata.get("token_usage") or response_metadata.get("usage")
        if isinstance(token_usage, dict):
            input_tokens = _as_int(
                token_usage.get("input_tokens") or token_usage.get("prompt_tokens")
            )
            output_tokens = _as_int(
                token_usage.get("output_tokens") or token_usage.get("completion_tokens")
            )
            total_tokens = _as_int(token_usage.get("total_tokens"))
            if any(v is not None for v in (input_tokens, output_tokens, total_tokens)):
                return input_tokens, output_tokens, total_tokens

    return None, None, None


def _get_chat_openai(
    api_key: str | None = None,
    model: str = "gpt-4o-mini",
    temperature: float = 0.0,
    timeout: float | None = None,
) -> "ChatOpenAI":
    """
    Get a ChatOpenAI instance.

    Uses lazy import to avoid loading langchain-openai unless actually used.
    """
    from langchain_openai import ChatOpenAI

    kwargs: dict[str, Any] = {
        "model": model,
        "temperature": temperature,
        "max_retries": 0,
    }
    if timeout is not None:
        kwargs["timeout"] = timeout
    if api_key:
        kwargs["api_key"] = api_key

    return ChatOpenAI(**kwargs)


def _build_messages(prompt: str, system: str | None) -> list["BaseMessage"]:
    from langchain_core.messages import HumanMessage, SystemMessage

    messages: list[BaseMessage] = []
    if system:
        messages.append(SystemMessage(content=system))
    messages.append(HumanMessage(content=prompt))
    return messages


class OpenAILLMProvider(LLMProvider):
    """
    OpenAI LLM provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "gpt-4o-mini")
        timeout: Seconds allowed for one call
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout: float = 20.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def _invoke(self, runnable: Any, messages: list["BaseMessage"]) -> Any:
        """Run one LangChain call, translating backend failures."""
        try:
            return await asyncio.wait_for(runnable.ainvoke(messages), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise GenerationUnavailable(
                f"{self._model} did not respond within {self._timeout}s"
            ) from e
        except openai.RateLimitError as e:
            raise RateLimited(f"{self._model} rate limited: {e}") from e
        except openai.APIError as e:
            raise GenerationUnavailable(f"{self._model} request failed: {e}") from e

    def _record(
        self,
        *,
        operation: str,
        prompt: str,
        system: str | None,
        output_text: str,
        response: Any,
        start_ns: int,
        metadata: dict[str, Any],
    ) -> None:
        input_tokens, output_tokens, total_tokens = _extract_token_usage(response)
        estimated = False

        if input_tokens is None:
            chat_messages = [prompt]
            if system:
                chat_messages.insert(0, system)
            input_tokens = count_chat_tokens(chat_messages, self._model)
            estimated = True

        if output_tokens is None:
            output_tokens = count_text_tokens(output_text, self._model)
            estimated = True

        if total_tokens is None:
            total_tokens = input_tokens + output_tokens

        cost = estimate_cost_usd(self._model, input_tokens, output_tokens)
        elapsed_ms = (time.perf_counter_ns() - start_ns) // 1_000_000

        record_usage(
            UsageRecord(
                model=self._model,
                operation=operation,
                stage=current_stage(),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=total_tokens,
                estimated_cost_usd=cost or 0.0,
                latency_ms=int(elapsed_ms),
                estimated=estimated,
                priced=cost is not None,
                metadata=metadata,
            )
        )

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 512,
    ) -> str:
        """
        Generate a text completion.

        Args:
            prompt: User prompt/question
            system: Optional system message for context
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens in response

        Returns:
            Generated text response

        Raises:
            RateLimited: Backend throttled the call
            GenerationUnavailable: Backend failed or timed out
        """
        start = time.perf_counter_ns()

        base_client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=temperature,
            timeout=self._timeout,
        )
        client = base_client.bind(max_tokens=max_tokens)

        response = await self._invoke(client, _build_messages(prompt, system))
        output_text = str(response.content)

        self._record(
            operation="generate",
            prompt=prompt,
            system=system,
            output_text=output_text,
            response=response,
            start_ns=start,
            metadata={"temperature": temperature, "max_tokens": max_tokens},
        )
        return output_text

    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
    ) -> T:
        """
        Generate a structured response matching a Pydantic schema.

        Uses LangChain's with_structured_output so the result conforms to
        the provided schema.

        Raises:
            RateLimited: Backend throttled the call
            GenerationUnavailable: Backend failed, timed out or returned nothing parseable
        """
        start = time.perf_counter_ns()

        client = _get_chat_openai(
            api_key=self._api_key,
            model=self._model,
            temperature=0.0,
            timeout=self._timeout,
        )

        # include_raw lets us read usage metadata when available.
        structured_client = client.with_structured_output(schema, include_raw=True)
        result_obj = await self._invoke(structured_client, _build_messages(prompt, system))

        raw_response: Any = None
        if isinstance(result_obj, dict) and "parsed" in result_obj:
            result = result_obj["parsed"]
            raw_response = result_obj.get("raw")
        else:
            result = result_obj

        if result is None:
            raise GenerationUnavailable(
                f"{self._model} returned output that does not match {schema.__name__}"
            )

        self._record(
            operation="generate_structured",
            prompt=prompt,
            system=system,
            output_text=result.model_dump_json(),
            response=raw_response,
            start_ns=start,
            metadata={"schema": getattr(schema, "__name__", str(schema))},
        )
        return result  # type: ignore[return-value]
