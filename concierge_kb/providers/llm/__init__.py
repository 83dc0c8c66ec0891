"""
LLM Provider Implementations

Modules:
    openai: OpenAI chat models via LangChain's ChatOpenAI
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from concierge_kb.providers.llm.openai import OpenAILLMProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid loading all dependencies."""
    if name == "OpenAILLMProvider":
        from concierge_kb.providers.llm.openai import OpenAILLMProvider
        return OpenAILLMProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OpenAILLMProvider"]
