"""
Text-to-Speech Provider Implementations

Modules:
    openai: OpenAI audio speech API (WAV output)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from concierge_kb.providers.speech.openai import OpenAISpeechProvider


def __getattr__(name: str):
    """Lazy import of providers to avoid loading all dependencies."""
    if name == "OpenAISpeechProvider":
        from concierge_kb.providers.speech.openai import OpenAISpeechProvider
        return OpenAISpeechProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OpenAISpeechProvider"]
