"""
Embedding Provider Implementations

Modules:
    openai: OpenAI embeddings (text-embedding-3-small) via LangChain
    hash: Deterministic offline hash embeddings

Each provider implements the EmbeddingProvider interface with:
    - embed(): Batch embedding generation
    - embed_single(): Single text embedding
    - dimensions: Vector dimensionality
    - model_name: Current model identifier

Example:
    >>> from concierge_kb.providers.embedding import OpenAIEmbeddingProvider
    >>> provider = OpenAIEmbeddingProvider(model="text-embedding-3-small")
    >>> vectors = await provider.embed(["Hello", "World"])
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from concierge_kb.providers.embedding.hash import HashEmbeddingProvider
    from concierge_kb.providers.embedding.openai import OpenAIEmbeddingProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid loading all dependencies."""
    if name == "OpenAIEmbeddingProvider":
        from concierge_kb.providers.embedding.openai import OpenAIEmbeddingProvider
        return OpenAIEmbeddingProvider
    if name == "HashEmbeddingProvider":
        from concierge_kb.providers.embedding.hash import HashEmbeddingProvider
        return HashEmbeddingProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OpenAIEmbeddingProvider", "HashEmbeddingProvider"]
