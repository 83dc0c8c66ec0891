"""
Result Types

Types returned by the indexing, matching, composing and answering operations.

Indexing:
    - IndexResult: Summary of one indexing pass (diff counts)

Matching (tagged by `kind`):
    - FaqHit: Confident FAQ match, stored answer returned
    - FaqSuggestion: Low-confidence FAQ match alongside a generated answer
    - FaqMiss: No usable FAQ

Composing (tagged by `kind`):
    - ComposedAnswer: Grounded generated answer with its source documents
    - ComposeFailure: Generation or retrieval failed, fallback message

Answering:
    - VisitorAnswer: What the visitor-facing surface receives

Telemetry:
    - UsageRecord, StageUsage, UsageReport
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from concierge_kb.types.documents import FaqEntry

FALLBACK_MESSAGE = (
    "I'm sorry, I'm unable to answer right now. "
    "Please try again in a moment or contact the property owner."
)


# -----------------------------------------------------------------------------
# Indexing
# -----------------------------------------------------------------------------


class IndexResult(BaseModel):
    """
    Result from indexing one property.

    Attributes:
        indexed_chunks: Chunks the property currently consists of
        added: Documents written (new or changed content)
        removed: Documents deleted (content no longer present)
        unchanged: Documents left untouched
    """

    property_id: str
    indexed_chunks: int
    added: int = 0
    removed: int = 0
    unchanged: int = 0
    duration_seconds: float = 0.0

    @property
    def writes(self) -> int:
        """Knowledge store mutations performed by the pass."""
        return self.added + self.removed


# -----------------------------------------------------------------------------
# Matching
# -----------------------------------------------------------------------------


class FaqHit(BaseModel):
    """The top FAQ matched with high confidence."""

    kind: Literal["hit"] = "hit"
    answer: str
    faq: FaqEntry
    score: float


class FaqSuggestion(BaseModel):
    """The top FAQ matched with low confidence; a generated answer is attached."""

    kind: Literal["suggestion"] = "suggestion"
    faq_answer: str
    generated_answer: "ComposeOutcome"
    faq: FaqEntry
    score: float


class FaqMiss(BaseModel):
    """No FAQ matched well enough."""

    kind: Literal["miss"] = "miss"
    top_score: float | None = None
    question_embedding: list[float] | None = Field(default=None, exclude=True, repr=False)


# -----------------------------------------------------------------------------
# Composing
# -----------------------------------------------------------------------------


class ComposedAnswer(BaseModel):
    """A generated answer traceable to the documents it was grounded on."""

    kind: Literal["composed"] = "composed"
    answer: str
    source_document_ids: list[str] = Field(default_factory=list)


class ComposeFailure(BaseModel):
    """Generation could not produce an answer; carries the safe fallback."""

    kind: Literal["generation_failed"] = "generation_failed"
    message: str = FALLBACK_MESSAGE
    reason: str = ""


ComposeOutcome = Annotated[ComposedAnswer | ComposeFailure, Field(discriminator="kind")]
MatchResult = Annotated[FaqHit | FaqSuggestion | FaqMiss, Field(discriminator="kind")]

FaqSuggestion.model_rebuild()


# -----------------------------------------------------------------------------
# Answering
# -----------------------------------------------------------------------------


class AnsweredBy(str, Enum):
    """Which path produced the answer shown to the visitor."""

    FAQ = "faq"
    GENERATED = "generated"
    FALLBACK = "fallback"


class VisitorAnswer(BaseModel):
    """
    Response of the answering entry point.

    Attributes:
        answer: Text shown to the visitor
        answered_by: faq, generated, or fallback
        source_document_ids: Grounding documents of a generated answer
        faq_id: FAQ used for the answer (hit) or offered (suggestion)
        suggested_faq_answer: Low-confidence FAQ answer offered alongside
        match_score: Top FAQ similarity, when any FAQ was compared
        usage: Usage report when requested
    """

    answer: str
    answered_by: AnsweredBy
    source_document_ids: list[str] = Field(default_factory=list)
    faq_id: str | None = None
    suggested_faq_answer: str | None = None
    match_score: float | None = None
    usage: "UsageReport | None" = None


# -----------------------------------------------------------------------------
# Usage Telemetry
# -----------------------------------------------------------------------------


class UsageRecord(BaseModel):
    """
    One embedding, generation or speech call seen by usage telemetry.

    Attributes:
        operation: embed, generate, generate_structured or synthesize
        stage: Pipeline stage active when the call was made
        estimated: Token counts were measured locally, not reported by the API
        priced: The model has a rate; otherwise estimated_cost_usd is 0.0
    """

    model: str
    operation: str
    stage: str = "unknown"
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    latency_ms: int = 0
    estimated: bool = False
    priced: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)


class StageUsage(BaseModel):
    """Calls made in one pipeline stage (faq_match, retrieval, generation, ...)."""

    stage: str
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float = 0.0
    latency_ms: int = 0


class UsageReport(BaseModel):
    """
    Usage behind one request, stage by stage in pipeline order.

    Attributes:
        answered_by: Path that produced the visitor answer, when the report
            belongs to an answer
        embedding_tokens: Tokens sent to embedding models
        generation_tokens: Prompt and completion tokens of chat models
        unpriced_models: Models whose calls have no rate
    """

    pricing_version: str
    answered_by: AnsweredBy | None = None
    total_calls: int = 0
    total_tokens: int = 0
    total_estimated_cost_usd: float = 0.0
    embedding_tokens: int = 0
    generation_tokens: int = 0
    by_stage: list[StageUsage] = Field(default_factory=list)
    unpriced_models: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


VisitorAnswer.model_rebuild()
