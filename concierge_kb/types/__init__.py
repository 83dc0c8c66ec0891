"""
Type Definitions

Pydantic models for all data structures.

Storage Models (persisted by the Knowledge Store):
    - Document, FaqEntry, UnresolvedQuery
    - SourceType, Partition

Input Models:
    - PropertyData, PriorAnswer, Recommendation, ImportedProperty, ChunkInput
    - IndexRequest, AnswerRequest, SuggestionReviewRequest, FaqCreateRequest

Result Models:
    - IndexResult, FaqHit, FaqSuggestion, FaqMiss, ComposedAnswer,
      ComposeFailure, VisitorAnswer, SuggestedFaq, UsageReport
"""

from concierge_kb.types.documents import (
    Document,
    FaqEntry,
    Partition,
    SourceType,
    document_id,
    utc_now,
)
from concierge_kb.types.property import (
    ChunkInput,
    ImportedProperty,
    PriorAnswer,
    PropertyData,
    Recommendation,
)
from concierge_kb.types.queries import MatchKind, SuggestedFaq, UnresolvedQuery, VisitorQuery
from concierge_kb.types.requests import (
    AnswerRequest,
    FaqCreateRequest,
    IndexRequest,
    SuggestionReviewRequest,
)
from concierge_kb.types.results import (
    FALLBACK_MESSAGE,
    AnsweredBy,
    ComposedAnswer,
    ComposeFailure,
    ComposeOutcome,
    FaqHit,
    FaqMiss,
    FaqSuggestion,
    IndexResult,
    MatchResult,
    StageUsage,
    UsageRecord,
    UsageReport,
    VisitorAnswer,
)

__all__ = [
    # Storage Models
    "Document",
    "FaqEntry",
    "Partition",
    "SourceType",
    "UnresolvedQuery",
    "document_id",
    "utc_now",
    # Input Models
    "PropertyData",
    "PriorAnswer",
    "Recommendation",
    "ImportedProperty",
    "ChunkInput",
    "VisitorQuery",
    "IndexRequest",
    "AnswerRequest",
    "SuggestionReviewRequest",
    "FaqCreateRequest",
    # Result Models
    "FALLBACK_MESSAGE",
    "AnsweredBy",
    "ComposedAnswer",
    "ComposeFailure",
    "ComposeOutcome",
    "FaqHit",
    "FaqMiss",
    "FaqSuggestion",
    "IndexResult",
    "MatchKind",
    "MatchResult",
    "SuggestedFaq",
    "VisitorAnswer",
    "UsageRecord",
    "StageUsage",
    "UsageReport",
]
