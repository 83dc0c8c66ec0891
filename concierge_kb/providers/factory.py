"""
Provider Factory

Builds providers from a ConciergeConfig.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from concierge_kb.config.providers import EMBEDDING_DEFAULTS, PROVIDER_DEFAULTS
from concierge_kb.providers.base import EmbeddingProvider, LLMProvider, SpeechProvider

if TYPE_CHECKING:
    from concierge_kb.config import ConciergeConfig


def create_llm_provider(config: "ConciergeConfig") -> LLMProvider:
    """Create the configured LLM provider."""
    if config.llm_provider not in PROVIDER_DEFAULTS:
        raise ValueError(
            f"Unknown LLM provider: {config.llm_provider!r} "
            f"(supported: {', '.join(sorted(PROVIDER_DEFAULTS))})"
        )
    from concierge_kb.providers.llm.openai import OpenAILLMProvider

    return OpenAILLMProvider(
        api_key=config.openai_api_key,
        model=config.llm_model or PROVIDER_DEFAULTS["openai"]["llm_model"],
        timeout=config.generation_timeout_seconds,
    )


def create_embedding_provider(config: "ConciergeConfig") -> EmbeddingProvider:
    """Create the configured embedding provider."""
    if config.embedding_provider not in EMBEDDING_DEFAULTS:
        raise ValueError(
            f"Unknown embedding provider: {config.embedding_provider!r} "
            f"(supported: {', '.join(sorted(EMBEDDING_DEFAULTS))})"
        )

    if config.embedding_provider == "hash":
        from concierge_kb.providers.embedding.hash import HashEmbeddingProvider

        return HashEmbeddingProvider(
            dimensions=int(EMBEDDING_DEFAULTS["hash"]["embedding_dimensions"])
        )

    from concierge_kb.providers.embedding.openai import OpenAIEmbeddingProvider

    return OpenAIEmbeddingProvider(
        api_key=config.openai_api_key,
        model=config.embedding_model,
        dimensions=config.embedding_dimensions,
        batch_size=config.embedding_batch_size,
        timeout=config.embedding_timeout_seconds,
    )


def create_speech_provider(config: "ConciergeConfig") -> SpeechProvider:
    """Create the text-to-speech provider."""
    from concierge_kb.providers.speech.openai import OpenAISpeechProvider

    return OpenAISpeechProvider(
        api_key=config.openai_api_key,
        model=config.speech_model,
        default_voice=config.speech_default_voice,
        max_chars=config.speech_max_chars,
        timeout=config.generation_timeout_seconds,
    )
