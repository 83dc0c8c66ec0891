"""
Raw Property Data

Input models for the Indexer and the URL importer.

Amenities and rules arrive either as lists or as the delimited strings the
owner dashboard saves (amenities comma-separated, rules period-separated);
both are normalized to lists.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from concierge_kb.types.documents import SourceType


def _split_delimited(value: Any, delimiter: str) -> Any:
    if isinstance(value, str):
        return [part.strip() for part in value.split(delimiter) if part.strip()]
    return value


class PriorAnswer(BaseModel):
    """A question the owner has already answered (existing FAQ or chat reply)."""

    question: str
    answer: str


class Recommendation(BaseModel):
    """An owner recommendation (restaurant, activity, ...)."""

    title: str
    description: str
    category: str | None = None
    link: str | None = None


class PropertyData(BaseModel):
    """Everything the Indexer knows about one property."""

    name: str = ""
    description: str = ""
    amenities: list[str] = Field(default_factory=list)
    rules: list[str] = Field(default_factory=list)
    prior_answers: list[PriorAnswer] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)

    @field_validator("amenities", mode="before")
    @classmethod
    def _split_amenities(cls, value: Any) -> Any:
        return _split_delimited(value, ",")

    @field_validator("rules", mode="before")
    @classmethod
    def _split_rules(cls, value: Any) -> Any:
        return _split_delimited(value, ".")


class ImportedProperty(BaseModel):
    """Property details extracted from a public listing page."""

    description: str = Field(
        default="",
        description="Compelling property description of about 100-150 words; empty if not found.",
    )
    amenities: str = Field(
        default="",
        description="Comma-separated amenities, e.g. 'Fast WiFi, Pool, Free Parking'; empty if not found.",
    )
    rules: str = Field(
        default="",
        description="Period-separated house rules, e.g. 'No smoking. No parties.'; empty if not found.",
    )

    def to_property_data(self, name: str = "") -> PropertyData:
        """Convert to indexer input."""
        return PropertyData(
            name=name,
            description=self.description,
            amenities=self.amenities,  # type: ignore[arg-type]
            rules=self.rules,  # type: ignore[arg-type]
        )


class ChunkInput(BaseModel):
    """
    Chunk produced by the chunker, before embedding.

    content_hash identifies the chunk for re-index diffing.
    """

    source_type: SourceType
    text: str
    content_hash: str
    position: int = 0
