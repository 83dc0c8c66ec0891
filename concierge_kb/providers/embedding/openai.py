"""
OpenAI Embedding Provider (LangChain-based)

Implements EmbeddingProvider interface using LangChain's OpenAIEmbeddings.

Models:
    - text-embedding-3-small: 1536 dimensions, default
    - text-embedding-3-large: 3072 dimensions

Texts are sent in batches of `batch_size`. Each batch call is bounded by
`timeout`; timeouts and API errors surface as EmbeddingUnavailable.

Example:
    >>> provider = OpenAIEmbeddingProvider(model="text-embedding-3-small")
    >>> vectors = await provider.embed(["Is there parking?", "Check-in time?"])
    >>> print(len(vectors[0]))
    1536
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import openai

from concierge_kb.config.pricing import estimate_cost_usd
from concierge_kb.errors import EmbeddingUnavailable
from concierge_kb.providers.base import EmbeddingProvider
from concierge_kb.types.results import UsageRecord
from concierge_kb.utils.token_count import count_text_tokens
from concierge_kb.utils.usage_telemetry import current_stage, record_usage

if TYPE_CHECKING:
    from langchain_openai import OpenAIEmbeddings

logger = logging.getLogger(__name__)

# Model dimensions mapping
MODEL_DIMENSIONS = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}

DEFAULT_MODEL = "text-embedding-3-small"


def _get_openai_embeddings(
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
    dimensions: int | None = None,
) -> "OpenAIEmbeddings":
    """
    Get an OpenAIEmbeddings instance.

    Uses lazy import to avoid loading langchain-openai unless actually used.
    """
    from langchain_openai import OpenAIEmbeddings

    kwargs: dict[str, Any] = {"model": model, "max_retries": 0}
    # Only text-embedding-3 models accept a reduced size
    if dimensions is not None and model.startswith("text-embedding-3"):
        kwargs["dimensions"] = dimensions
    if api_key:
        from pydantic import SecretStr
        kwargs["api_key"] = SecretStr(api_key)
    return OpenAIEmbeddings(**kwargs)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider implementation using LangChain.

    Args:
        api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
        model: Model to use (default: "text-embedding-3-small")
        dimensions: Vector size; defaults to the model's native size
        batch_size: Texts per API call
        timeout: Seconds allowed for one API call
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int | None = None,
        batch_size: int = 100,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._dimensions = dimensions or MODEL_DIMENSIONS.get(model, 1536)
        self._batch_size = max(1, batch_size)
        self._timeout = timeout
        # Lazy initialization
        self._client: OpenAIEmbeddings | None = None

    def _get_client(self) -> "OpenAIEmbeddings":
        """Get or create the OpenAIEmbeddings client."""
        if self._client is None:
            self._client = _get_openai_embeddings(
                api_key=self._api_key,
                model=self._model,
                dimensions=self._dimensions,
            )
        return self._client

    @property
    def dimensions(self) -> int:
        """Embedding dimensions for the current model."""
        return self._dimensions

    @property
    def model_name(self) -> str:
        """Current model name."""
        return self._model

    async def _call(self, fn, payload):
        try:
            # LangChain's embedding calls are synchronous, run in thread pool
            return await asyncio.wait_for(asyncio.to_thread(fn, payload), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingUnavailable(
                f"{self._model} did not respond within {self._timeout}s"
            ) from e
        except openai.APIError as e:
            raise EmbeddingUnavailable(f"{self._model} request failed: {e}") from e

    def _record(self, texts: list[str], start_ns: int) -> None:
        input_tokens = sum(count_text_tokens(t, self._model) for t in texts)
        cost = estimate_cost_usd(self._model, input_tokens)
        record_usage(
            UsageRecord(
                model=self._model,
                operation="embed",
                stage=current_stage(),
                input_tokens=input_tokens,
                total_tokens=input_tokens,
                estimated_cost_usd=cost or 0.0,
                latency_ms=int((time.perf_counter_ns() - start_ns) // 1_000_000),
                estimated=True,
                priced=cost is not None,
                metadata={"texts": len(texts)},
            )
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors (same order as input)

        Raises:
            EmbeddingUnavailable: Backend failed or timed out
        """
        if not texts:
            return []

        client = self._get_client()
        start = time.perf_counter_ns()

        embeddings: list[list[float]] = []
        for i in range(0, len(texts), self._batch_size):
            batch = texts[i : i + self._batch_size]
            embeddings.extend(await self._call(client.embed_documents, batch))

        logger.debug(f"Embedded {len(texts)} texts with {self._model}")
        self._record(texts, start)
        return embeddings

    async def embed_single(self, text: str) -> list[float]:
        """
        Generate embedding for a single text.

        Raises:
            EmbeddingUnavailable: Backend failed or timed out
        """
        client = self._get_client()
        start = time.perf_counter_ns()
        embedding = await self._call(client.embed_query, text)
        self._record([text], start)
        return embedding
