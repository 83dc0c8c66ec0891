"""
Test doubles shared by the test modules.

Vectors are small (4 dimensions) so scores can be set exactly: a question
built with blend(0, 1, 0.9) has cosine similarity 0.9 with unit(0).
"""

from __future__ import annotations

import hashlib
import math
from typing import Any

from concierge_kb.errors import EmbeddingUnavailable
from concierge_kb.providers.base import EmbeddingProvider, LLMProvider

DIMS = 4


def unit(axis: int, dims: int = DIMS) -> list[float]:
    vector = [0.0] * dims
    vector[axis] = 1.0
    return vector


def blend(axis: int, other: int, similarity: float, dims: int = DIMS) -> list[float]:
    """Unit vector whose cosine similarity with unit(axis) is `similarity`."""
    vector = [0.0] * dims
    vector[axis] = similarity
    vector[other] = math.sqrt(max(0.0, 1.0 - similarity * similarity))
    return vector


class StubEmbeddings(EmbeddingProvider):
    """
    Returns mapped vectors for known texts and a hash-derived vector otherwise.

    Set `fail` to make every call raise EmbeddingUnavailable.
    """

    def __init__(self, vectors: dict[str, list[float]] | None = None, dims: int = DIMS) -> None:
        self.vectors = dict(vectors or {})
        self._dims = dims
        self.fail = False
        self.calls: list[list[str]] = []

    @property
    def dimensions(self) -> int:
        return self._dims

    @property
    def model_name(self) -> str:
        return "stub-embeddings"

    def vector_for(self, text: str) -> list[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        raw = [byte / 255.0 - 0.5 for byte in digest[: self._dims]]
        norm = math.sqrt(sum(x * x for x in raw)) or 1.0
        return [x / norm for x in raw]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise EmbeddingUnavailable("embedding backend down")
        return [self.vector_for(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]


class StubLLM(LLMProvider):
    """
    Replays scripted responses; exceptions in the script are raised.

    The last response repeats once the script runs out.
    """

    def __init__(self, responses: list[Any] | None = None, structured: Any = None) -> None:
        self.responses = list(responses or ["Generated answer."])
        self.structured = structured
        self.prompts: list[str] = []
        self.systems: list[str | None] = []

    @property
    def model_name(self) -> str:
        return "stub-llm"

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 512,
    ) -> str:
        self.prompts.append(prompt)
        self.systems.append(system)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response

    async def generate_structured(self, prompt: str, schema: Any, *, system: str | None = None) -> Any:
        self.prompts.append(prompt)
        self.systems.append(system)
        if isinstance(self.structured, BaseException):
            raise self.structured
        return self.structured
