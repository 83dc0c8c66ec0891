"""
FAQ Suggestion Collector

Turns recurring unresolved visitor questions into FAQ candidates for the
property owner. Runs offline, never on the answering path.

Algorithm:
    1. Load the property's unresolved questions within the review window
    2. Compute the pairwise cosine similarity matrix
    3. Link pairs whose similarity exceeds cluster_threshold; union-find
       merges linked questions transitively
    4. Drop clusters smaller than min_cluster_occurrences
    5. Represent each cluster by the member most similar to the others
    6. Compare the representative with the property's FAQs: a match at or
       above high_confidence drops the cluster as already answered, one at
       or above low_confidence turns it into an "edit" of that FAQ
    7. Rank by occurrence count, then by most recent occurrence
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import numpy as np

from concierge_kb.config import ConciergeConfig
from concierge_kb.errors import InvalidInput
from concierge_kb.types import (
    ComposedAnswer,
    FaqEntry,
    Partition,
    SuggestedFaq,
    UnresolvedQuery,
    utc_now,
)
from concierge_kb.utils.clustering import build_similarity_edges, union_find_components
from concierge_kb.utils.similarity import compute_similarity_matrix
from concierge_kb.utils.text import normalize_text
from concierge_kb.utils.usage_telemetry import usage_stage

if TYPE_CHECKING:
    from concierge_kb.answering.composer import AnswerComposer
    from concierge_kb.providers.base import EmbeddingProvider
    from concierge_kb.storage.base import KnowledgeStore

logger = logging.getLogger(__name__)

_MAX_SAMPLE_QUESTIONS = 5

EDIT_REASON = "Existing answer may be unclear."


def relevance_for(occurrences: int) -> str:
    """High for 5+ occurrences, Medium for 3+, Low otherwise."""
    if occurrences >= 5:
        return "High"
    if occurrences >= 3:
        return "Medium"
    return "Low"


def _representative_index(members: list[int], similarity: np.ndarray) -> int:
    """Member with the highest mean similarity to the others; earliest wins ties."""
    sub = similarity[np.ix_(members, members)]
    means = (sub.sum(axis=1) - np.diag(sub)) / (len(members) - 1)
    return members[int(np.argmax(means))]


def _sample_questions(texts: list[str], representative: str) -> list[str]:
    samples = [representative]
    seen = {normalize_text(representative).lower()}
    for text in texts:
        key = normalize_text(text).lower()
        if key not in seen:
            seen.add(key)
            samples.append(text)
        if len(samples) >= _MAX_SAMPLE_QUESTIONS:
            break
    return samples


class FaqSuggestionCollector:
    """Clusters unresolved questions and manages their promotion to FAQs."""

    def __init__(
        self,
        store: "KnowledgeStore",
        embeddings: "EmbeddingProvider",
        composer: "AnswerComposer | None" = None,
        config: ConciergeConfig | None = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.composer = composer
        self.config = config or ConciergeConfig()

    async def collect_candidates(
        self,
        property_id: str,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> list[SuggestedFaq]:
        """
        Cluster a property's unresolved questions into FAQ candidates.

        Args:
            property_id: Property to review
            window_start: Earliest occurrence considered (inclusive)
            window_end: Latest occurrence considered (inclusive)

        Returns:
            SuggestedFaq list, largest and most recent clusters first
        """
        queries = await self.store.list_unresolved(property_id, window_start, window_end)
        if len(queries) < self.config.min_cluster_occurrences:
            logger.debug(f"{len(queries)} unresolved questions for {property_id}; nothing to cluster")
            return []

        similarity = compute_similarity_matrix([q.embedding for q in queries])
        edges = build_similarity_edges(similarity, self.config.cluster_threshold)
        components = union_find_components(len(queries), edges)

        suggestions: list[SuggestedFaq] = []
        for members in components:
            if len(members) < max(2, self.config.min_cluster_occurrences):
                continue
            representative = queries[_representative_index(members, similarity)]
            suggestion = await self._against_faqs(
                property_id, representative, self._to_suggestion(members, queries, representative)
            )
            if suggestion is not None:
                suggestions.append(suggestion)
        suggestions.sort(key=lambda s: (s.occurrence_count, s.last_seen), reverse=True)

        logger.info(
            f"Collected {len(suggestions)} FAQ candidates for {property_id} "
            f"from {len(queries)} unresolved questions"
        )
        return suggestions

    def _to_suggestion(
        self,
        members: list[int],
        queries: list[UnresolvedQuery],
        representative: UnresolvedQuery,
    ) -> SuggestedFaq:
        cluster = [queries[i] for i in members]
        count = len(cluster)
        return SuggestedFaq(
            representative_question=representative.text,
            occurrence_count=count,
            query_ids=[q.uuid for q in cluster],
            sample_questions=_sample_questions([q.text for q in cluster], representative.text),
            first_seen=min(q.occurred_at for q in cluster),
            last_seen=max(q.occurred_at for q in cluster),
            relevance=relevance_for(count),
            reason=f"Based on {count} recent conversations.",
        )

    async def _against_faqs(
        self,
        property_id: str,
        representative: UnresolvedQuery,
        suggestion: SuggestedFaq,
    ) -> SuggestedFaq | None:
        """None when a FAQ already answers the cluster; an edit when one nearly does."""
        nearest = await self.store.query_nearest(
            property_id,
            representative.embedding,
            Partition.FAQS,
            k=1,
            min_score=self.config.low_confidence,
        )
        if not nearest:
            return suggestion

        faq, score = nearest[0]
        if score >= self.config.high_confidence:
            logger.debug(
                f"Dropping cluster '{representative.text}': FAQ {faq.uuid} already matches ({score:.3f})"
            )
            return None
        return suggestion.model_copy(
            update={"type": "edit", "faq_id": faq.uuid, "reason": EDIT_REASON}
        )

    async def draft_answers(
        self,
        property_id: str,
        candidates: list[SuggestedFaq],
    ) -> list[SuggestedFaq]:
        """
        Propose an answer for each candidate from the property's documents.

        Candidates whose draft fails are returned without one.
        """
        if self.composer is None:
            raise RuntimeError("draft_answers requires an AnswerComposer")

        drafted: list[SuggestedFaq] = []
        for candidate in candidates:
            with usage_stage("suggestion_drafts"):
                outcome = await self.composer.compose(property_id, candidate.representative_question)
            if isinstance(outcome, ComposedAnswer):
                drafted.append(candidate.model_copy(update={"draft_answer": outcome.answer}))
            else:
                logger.warning(
                    f"No draft for '{candidate.representative_question}': {outcome.reason}"
                )
                drafted.append(candidate)
        return drafted

    async def promote(
        self,
        property_id: str,
        suggestion: SuggestedFaq,
        answer: str,
        *,
        question: str | None = None,
    ) -> FaqEntry:
        """
        Turn a reviewed suggestion into a FAQ entry.

        An "edit" suggestion rewrites its FAQ in place, keeping the FAQ's
        question unless one is given; a "new" one, or an edit whose FAQ has
        since been deleted, stores a new entry. The cluster's unresolved
        questions are purged once the entry is stored.

        Args:
            property_id: Property the FAQ belongs to
            suggestion: Reviewed candidate
            answer: Owner-approved answer
            question: Edited question; defaults to the edited FAQ's question
                or the representative question

        Raises:
            InvalidInput: Blank question or answer, or unknown property
        """
        existing = None
        if suggestion.type == "edit" and suggestion.faq_id:
            existing = await self.store.get_faq(suggestion.faq_id)

        default_question = existing.question if existing else suggestion.representative_question
        question_text = (question or default_question).strip()
        answer_text = (answer or "").strip()
        if not question_text or not answer_text:
            raise InvalidInput("question and answer are required")

        if existing is not None and existing.question == question_text:
            entry = existing.model_copy(update={"answer": answer_text})
        else:
            with usage_stage("faq_admin"):
                embedding = await self.embeddings.embed_single(question_text)
            if existing is not None:
                entry = existing.model_copy(
                    update={"question": question_text, "answer": answer_text, "embedding": embedding}
                )
            else:
                entry = FaqEntry(
                    property_id=property_id,
                    question=question_text,
                    answer=answer_text,
                    embedding=embedding,
                )
        await self.store.upsert_faq(entry)
        purged = await self.store.purge_unresolved(property_id, ids=suggestion.query_ids)

        logger.info(
            f"Promoted {suggestion.type} suggestion to FAQ {entry.uuid} for {property_id} "
            f"({purged} unresolved questions purged)"
        )
        return entry

    async def purge_expired(self, property_id: str, now: datetime | None = None) -> int:
        """Delete unresolved questions older than the retention window."""
        cutoff = (now or utc_now()) - timedelta(days=self.config.unresolved_retention_days)
        purged = await self.store.purge_unresolved(property_id, before=cutoff)
        if purged:
            logger.info(f"Purged {purged} expired unresolved questions for {property_id}")
        return purged
