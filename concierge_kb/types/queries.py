"""
Visitor Query Types

VisitorQuery is ephemeral. Questions the FAQ corpus could not answer
confidently are persisted as UnresolvedQuery and later clustered into
SuggestedFaq candidates for operator review.
"""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from concierge_kb.types.documents import utc_now


class MatchKind(str, Enum):
    """Outcome of matching a question against the FAQ corpus."""

    HIT = "hit"
    SUGGESTION = "suggestion"
    MISS = "miss"


class VisitorQuery(BaseModel):
    """A question asked by a visitor. Never persisted as-is."""

    property_id: str
    text: str
    timestamp: datetime = Field(default_factory=utc_now)
    session_id: str | None = None


class UnresolvedQuery(BaseModel):
    """
    A visitor question that no FAQ answered with high confidence.

    Attributes:
        origin: MISS (no usable FAQ) or SUGGESTION (low-confidence FAQ)
    """

    uuid: str = Field(default_factory=lambda: str(uuid4()))
    property_id: str
    text: str
    embedding: list[float]
    occurred_at: datetime = Field(default_factory=utc_now)
    session_id: str | None = None
    origin: MatchKind = MatchKind.MISS


class SuggestedFaq(BaseModel):
    """
    A cluster of similar unresolved questions proposed as a FAQ change.

    Attributes:
        representative_question: Member most similar to the rest of the cluster
        occurrence_count: Number of unresolved questions in the cluster
        query_ids: UnresolvedQuery ids, purged when the suggestion is promoted
        sample_questions: A few distinct phrasings for the reviewer
        relevance: High/Medium/Low by occurrence count
        reason: Short justification shown to the operator
        draft_answer: Optional generated answer proposal
        type: "new" for a new FAQ, "edit" when an existing FAQ already
            covers the question but with too little confidence
        faq_id: The FAQ to rewrite when type is "edit"
    """

    representative_question: str
    occurrence_count: int
    query_ids: list[str] = Field(default_factory=list)
    sample_questions: list[str] = Field(default_factory=list)
    first_seen: datetime
    last_seen: datetime
    relevance: str = "Low"
    reason: str = ""
    draft_answer: str | None = None
    type: Literal["new", "edit"] = "new"
    faq_id: str | None = None
