"""
Stored Knowledge Types

Entities persisted by the Knowledge Store.

Storage Models:
    - Document: An indexed chunk of property content with its embedding
    - FaqEntry: An operator-curated question/answer pair with its embedding

Both carry the embedding of their text. Text and vector are always replaced
together; a text change means a new embedding and a new upsert.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import NAMESPACE_URL, uuid4, uuid5

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    """Kind of property content a Document was chunked from."""

    DESCRIPTION = "description"
    POLICY = "policy"
    AMENITY = "amenity"
    PRIOR_ANSWER = "prior_answer"
    RECOMMENDATION = "recommendation"


class Partition(str, Enum):
    """Knowledge store partitions searchable by vector similarity."""

    DOCUMENTS = "documents"
    FAQS = "faqs"


def document_id(property_id: str, source_type: SourceType, content_hash: str) -> str:
    """Deterministic Document id so identical content maps to the same row."""
    return str(uuid5(NAMESPACE_URL, f"concierge:{property_id}/{source_type.value}/{content_hash}"))


class Document(BaseModel):
    """
    An indexed chunk of property content.

    Attributes:
        uuid: Deterministic id (see document_id)
        property_id: Owning property (tenant boundary)
        source_type: Which part of the property data produced the chunk
        text: Chunk text
        content_hash: sha256 of the normalized chunk text
        embedding: Vector of the text, store-fixed dimensionality
        updated_at: Last time the chunk was (re)written
    """

    uuid: str
    property_id: str
    source_type: SourceType
    text: str = Field(..., min_length=1)
    content_hash: str
    embedding: list[float]
    updated_at: datetime = Field(default_factory=utc_now)


class FaqEntry(BaseModel):
    """
    A frequently asked question with its curated answer.

    Visitor traffic only ever changes hit_count and last_matched_at, and only
    through the store's atomic increment.
    """

    uuid: str = Field(default_factory=lambda: str(uuid4()))
    property_id: str
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    embedding: list[float]
    hit_count: int = 0
    last_matched_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
