"""
Utility Functions

Core algorithms and helper functions used throughout the package.

Modules:
    clustering: Union-Find algorithm for grouping unresolved questions
    similarity: Cosine similarity (scipy cdist)
    text: Normalization and content hashing
    token_count: tiktoken-based token counting
    usage_telemetry: Request-scoped provider usage collection
"""

from concierge_kb.utils.clustering import UnionFind, build_similarity_edges, union_find_components
from concierge_kb.utils.similarity import (
    compute_similarity_matrix,
    cosine_similarity,
    similarity_to_many,
)
from concierge_kb.utils.text import content_hash, normalize_text, truncate
from concierge_kb.utils.token_count import count_chat_tokens, count_text_tokens
from concierge_kb.utils.usage_telemetry import UsageCollector, usage_collector, usage_stage

__all__ = [
    "UnionFind",
    "union_find_components",
    "build_similarity_edges",
    "compute_similarity_matrix",
    "cosine_similarity",
    "similarity_to_many",
    "content_hash",
    "normalize_text",
    "truncate",
    "count_chat_tokens",
    "count_text_tokens",
    "UsageCollector",
    "usage_collector",
    "usage_stage",
]
