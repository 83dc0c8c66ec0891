"""
Hash Embedding Provider

Deterministic, offline pseudo-embeddings so the pipeline runs without an
OpenAI key (local development, demos, tests).

Each lowercase word is expanded into a pseudo-random vector by seeding
numpy's default generator with the word's sha256; a text's vector is the
normalized sum of its word vectors. Identical texts get identical vectors
and texts sharing words get correlated vectors. There is no semantic understanding.
"""

from __future__ import annotations

import hashlib
import re
from functools import lru_cache

import numpy as np

from concierge_kb.providers.base import EmbeddingProvider

_WORD = re.compile(r"[a-z0-9']+")


@lru_cache(maxsize=4096)
def _word_vector(word: str, dimensions: int) -> np.ndarray:
    seed = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:8], "big")
    vector = np.random.default_rng(seed).uniform(-1.0, 1.0, dimensions)
    vector.flags.writeable = False
    return vector


class HashEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic bag-of-words hash embeddings.

    Args:
        dimensions: Vector size (default: 256)
    """

    def __init__(self, dimensions: int = 256) -> None:
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return "sha256-pcg64"

    def _vector(self, text: str) -> list[float]:
        words = _WORD.findall(text.lower())
        acc = np.zeros(self._dimensions, dtype=np.float64)
        for word in words:
            acc += _word_vector(word, self._dimensions)
        norm = np.linalg.norm(acc)
        if norm == 0.0:
            return acc.tolist()
        return (acc / norm).tolist()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return self._vector(text)
