"""
Model Rates

Estimated USD per 1M tokens for the models the concierge calls: the answer
and extraction chat models, the embedding models behind FAQ matching,
retrieval and indexing, and the speech model.

A model without a rate still reports its tokens; its cost is left at 0.0 and
the usage report says which models were unrated.
"""

from __future__ import annotations

from typing import NamedTuple

PRICING_VERSION = "concierge-rates-2026-10"


class ModelRate(NamedTuple):
    input_per_million: float
    output_per_million: float = 0.0


MODEL_RATES: dict[str, ModelRate] = {
    # Answer generation / listing extraction
    "gpt-4o-mini": ModelRate(0.15, 0.60),
    "gpt-4o": ModelRate(2.50, 10.00),
    "gpt-4.1-mini": ModelRate(0.40, 1.60),
    # Embeddings (input only)
    "text-embedding-3-small": ModelRate(0.02),
    "text-embedding-3-large": ModelRate(0.13),
    # Speech (text in, audio out)
    "gpt-4o-mini-tts": ModelRate(0.60, 12.00),
}


def estimate_cost_usd(model: str, input_tokens: int, output_tokens: int = 0) -> float | None:
    """Estimated cost of one call, or None when the model has no rate."""
    rate = MODEL_RATES.get(model)
    if rate is None:
        return None
    return (
        input_tokens * rate.input_per_million + output_tokens * rate.output_per_million
    ) / 1_000_000
