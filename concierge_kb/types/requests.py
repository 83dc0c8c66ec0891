"""
Request Types

Typed, validated inputs of the external entry points. Validation failures
are converted to InvalidInput by the facade.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from concierge_kb.types.property import PropertyData


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class IndexRequest(_Request):
    """Property-data change trigger."""

    property_id: str = Field(..., min_length=1)
    raw_data: PropertyData


class AnswerRequest(_Request):
    """Visitor question from the chat surface."""

    property_id: str = Field(..., min_length=1)
    question_text: str = Field(..., min_length=1)
    session_id: str | None = None


class SuggestionReviewRequest(_Request):
    """Operator request for FAQ suggestions over a date range."""

    property_id: str = Field(..., min_length=1)
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_range(self) -> "SuggestionReviewRequest":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class FaqCreateRequest(_Request):
    """Operator-created FAQ entry."""

    property_id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
