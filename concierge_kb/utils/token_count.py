"""
Token counting helpers for chunk sizing, context budgeting and telemetry.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache

import tiktoken


@lru_cache(maxsize=16)
def _encoding_for(model: str) -> "tiktoken.Encoding":
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def count_text_tokens(text: str, model: str = "gpt-4o-mini") -> int:
    """Count tokens for plain text using the model's tokenizer."""
    if not text:
        return 0
    return len(_encoding_for(model).encode(text))


def count_chat_tokens(messages: Iterable[str], model: str) -> int:
    """
    Estimate tokens for chat-style inputs.

    Adds a small fixed overhead per message for role/control tokens.
    """
    total = 0
    message_count = 0
    for message in messages:
        total += count_text_tokens(message, model)
        message_count += 1

    # Approximate role/message framing overhead.
    return total + (message_count * 4)
