"""
FAQ Matcher

Decides whether a visitor question is already answered by a curated FAQ.

Outcomes (by top FAQ similarity):
    >= high_confidence              -> FaqHit, stored answer, hit counted
    [low_confidence, high_confidence) -> FaqSuggestion, FAQ offered alongside
                                       a generated answer
    < low_confidence or no FAQs     -> FaqMiss, caller routes to the composer

Embedding and storage failures propagate; the facade turns them into the
fallback answer.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from concierge_kb.config import ConciergeConfig
from concierge_kb.errors import InvalidInput
from concierge_kb.types import (
    FaqEntry,
    FaqHit,
    FaqMiss,
    FaqSuggestion,
    MatchKind,
    Partition,
    utc_now,
)
from concierge_kb.utils.usage_telemetry import usage_stage

if TYPE_CHECKING:
    from concierge_kb.answering.composer import AnswerComposer
    from concierge_kb.providers.base import EmbeddingProvider
    from concierge_kb.storage.base import KnowledgeStore

logger = logging.getLogger(__name__)


class FaqMatcher:
    """Matches questions against a property's FAQ entries."""

    def __init__(
        self,
        store: "KnowledgeStore",
        embeddings: "EmbeddingProvider",
        composer: "AnswerComposer",
        config: ConciergeConfig | None = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.composer = composer
        self.config = config or ConciergeConfig()

    async def match(
        self,
        property_id: str,
        question_text: str,
        *,
        session_id: str | None = None,
        deadline: float | None = None,
    ) -> FaqHit | FaqSuggestion | FaqMiss:
        """
        Match a question against the property's FAQs.

        Args:
            property_id: Property the question is about
            question_text: The visitor's question
            session_id: Visitor chat session
            deadline: Event-loop deadline passed to the composer on a suggestion

        Returns:
            FaqHit, FaqSuggestion or FaqMiss

        Raises:
            InvalidInput: Blank property id or question
            EmbeddingUnavailable: Question could not be embedded
            StorageUnavailable: FAQ search or hit counting failed
        """
        if not property_id or not property_id.strip():
            raise InvalidInput("property_id is required")
        if not question_text or not question_text.strip():
            raise InvalidInput("question_text is required")

        with usage_stage("faq_match"):
            question_embedding = await self.embeddings.embed_single(question_text)

        results = await self.store.query_nearest(
            property_id,
            question_embedding,
            Partition.FAQS,
            k=self.config.faq_top_k,
        )

        if not results:
            logger.debug(f"No FAQs for {property_id}")
            return FaqMiss(question_embedding=question_embedding)

        top, score = results[0]
        assert isinstance(top, FaqEntry)

        if score >= self.config.high_confidence:
            updated = await self.store.increment_faq_hit(top.uuid, utc_now())
            faq = updated or top
            logger.info(f"FAQ hit for {property_id}: {faq.uuid} (score={score:.3f})")
            return FaqHit(answer=faq.answer, faq=faq, score=score)

        if score >= self.config.low_confidence:
            logger.info(f"FAQ suggestion for {property_id}: {top.uuid} (score={score:.3f})")
            generated = await self.composer.compose(
                property_id,
                question_text,
                origin=MatchKind.SUGGESTION,
                question_embedding=question_embedding,
                session_id=session_id,
                deadline=deadline,
            )
            return FaqSuggestion(
                faq_answer=top.answer,
                generated_answer=generated,
                faq=top,
                score=score,
            )

        logger.debug(f"FAQ miss for {property_id} (top score={score:.3f})")
        return FaqMiss(top_score=score, question_embedding=question_embedding)
