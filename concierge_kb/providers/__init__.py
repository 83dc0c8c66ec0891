"""
LLM, Embedding and Speech Providers

Provider-agnostic interfaces for model-backed operations.

Modules:
    base: Abstract provider interfaces
    factory: Build providers from ConciergeConfig
    llm/: LLM provider implementations
    embedding/: Embedding provider implementations
    speech/: Text-to-speech provider implementations

Supported LLM Providers:
    - OpenAI (gpt-4o-mini, gpt-4o) via LangChain

Supported Embedding Providers:
    - OpenAI (text-embedding-3-small) via LangChain
    - hash (deterministic, offline)

Example:
    >>> from concierge_kb.providers import LLMProvider, EmbeddingProvider
    >>> from concierge_kb.providers.llm import OpenAILLMProvider
    >>> from concierge_kb.providers.embedding import OpenAIEmbeddingProvider
"""

from concierge_kb.providers.base import EmbeddingProvider, LLMProvider, SpeechProvider

__all__ = ["LLMProvider", "EmbeddingProvider", "SpeechProvider"]
