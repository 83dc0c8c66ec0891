"""
Answer Composer

Retrieval-augmented answer generation grounded in a property's Documents.

Pipeline:
    1. Embed the question (reusing the matcher's embedding when given)
    2. Retrieve the top-k Documents at or above the retrieval cutoff
    3. Assemble context highest score first within the token budget
    4. Generate, retrying transient failures with bounded exponential backoff
    5. Record the question as unresolved when it came from a FAQ miss or
       a low-confidence suggestion

compose() never raises for backend failures; it returns ComposeFailure
carrying the visitor-safe fallback message.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from concierge_kb.config import ConciergeConfig
from concierge_kb.errors import (
    ConciergeError,
    EmbeddingUnavailable,
    GenerationFailed,
    GenerationUnavailable,
    StorageUnavailable,
)
from concierge_kb.types import (
    ComposedAnswer,
    ComposeFailure,
    Document,
    MatchKind,
    Partition,
    UnresolvedQuery,
)
from concierge_kb.utils.token_count import count_text_tokens
from concierge_kb.utils.usage_telemetry import usage_stage

if TYPE_CHECKING:
    from concierge_kb.providers.base import EmbeddingProvider, LLMProvider
    from concierge_kb.storage.base import KnowledgeStore

logger = logging.getLogger(__name__)

NO_INFORMATION_MESSAGE = (
    "I'm sorry, I don't have information about that. "
    "Please contact the property owner for more details."
)

_ANSWER_SYSTEM_PROMPT = f"""\
You are a helpful and friendly property assistant. Answer the visitor's
question using ONLY the information in the CONTEXT section.

Rules:
1. Base your entire answer on the CONTEXT.
2. Do not use any information outside of the CONTEXT.
3. If the answer is not in the CONTEXT, respond exactly with:
   "{NO_INFORMATION_MESSAGE}"
4. Keep answers concise and to the point."""


@dataclass
class RetrievedContext:
    """Documents that made it into the prompt, highest score first."""

    documents: list[tuple[Document, float]]
    text: str
    tokens: int

    @property
    def document_ids(self) -> list[str]:
        return [d.uuid for d, _ in self.documents]


class AnswerComposer:
    """Generates grounded answers for questions the FAQ corpus did not settle."""

    def __init__(
        self,
        store: "KnowledgeStore",
        embeddings: "EmbeddingProvider",
        llm: "LLMProvider",
        config: ConciergeConfig | None = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.llm = llm
        self.config = config or ConciergeConfig()

    async def compose(
        self,
        property_id: str,
        question_text: str,
        *,
        origin: MatchKind | None = None,
        question_embedding: list[float] | None = None,
        session_id: str | None = None,
        deadline: float | None = None,
    ) -> ComposedAnswer | ComposeFailure:
        """
        Compose an answer for a visitor question.

        Args:
            property_id: Property the question is about
            question_text: The visitor's question
            origin: MISS or SUGGESTION records the question as unresolved;
                None (drafting, direct use) records nothing
            question_embedding: Embedding already computed for the question
            session_id: Visitor chat session, kept with the unresolved record
            deadline: Event-loop time after which no retry is attempted

        Returns:
            ComposedAnswer with the ids of the documents used as context,
            or ComposeFailure with the fallback message
        """
        if question_embedding is None:
            try:
                with usage_stage("retrieval"):
                    question_embedding = await self.embeddings.embed_single(question_text)
            except EmbeddingUnavailable as e:
                logger.warning(f"Cannot embed question for {property_id}: {e}")
                return ComposeFailure(reason=f"embedding unavailable: {e}")

        try:
            return await self._compose(property_id, question_text, question_embedding, deadline)
        finally:
            # Recorded even when the caller cancels us at its own deadline
            if origin in (MatchKind.MISS, MatchKind.SUGGESTION):
                await asyncio.shield(
                    self._record_unresolved(
                        property_id, question_text, question_embedding, origin, session_id
                    )
                )

    async def _compose(
        self,
        property_id: str,
        question_text: str,
        question_embedding: list[float],
        deadline: float | None,
    ) -> ComposedAnswer | ComposeFailure:
        try:
            context = await self.retrieve(property_id, question_embedding)
        except StorageUnavailable as e:
            logger.warning(f"Context retrieval failed for {property_id}: {e}")
            return ComposeFailure(reason=f"storage unavailable: {e}")

        prompt = self._build_prompt(question_text, context)
        try:
            with usage_stage("generation"):
                answer = await self._generate_with_retries(prompt, deadline)
        except GenerationFailed as e:
            logger.warning(f"Generation failed for {property_id} after {e.attempts} attempt(s): {e}")
            return ComposeFailure(reason=str(e))

        logger.debug(
            f"Composed answer for {property_id} from {len(context.documents)} documents "
            f"({context.tokens} context tokens)"
        )
        return ComposedAnswer(answer=answer, source_document_ids=context.document_ids)

    async def retrieve(self, property_id: str, question_embedding: list[float]) -> RetrievedContext:
        """
        Retrieve and budget context documents.

        Documents come back highest score first; once one does not fit the
        token budget it and every lower-scored document are left out.
        """
        results = await self.store.query_nearest(
            property_id,
            question_embedding,
            Partition.DOCUMENTS,
            k=self.config.retrieval_top_k,
            min_score=self.config.retrieval_min_score,
        )

        budget = self.config.context_token_budget
        included: list[tuple[Document, float]] = []
        parts: list[str] = []
        used = 0

        for entity, score in results:
            assert isinstance(entity, Document)
            part = f"[{entity.source_type.value}] {entity.text}"
            tokens = count_text_tokens(part, self.config.llm_model)
            if used + tokens > budget:
                logger.debug(
                    f"Context budget reached at {used} tokens; "
                    f"dropping {len(results) - len(included)} lower-scored documents"
                )
                break
            included.append((entity, score))
            parts.append(part)
            used += tokens

        return RetrievedContext(documents=included, text="\n\n".join(parts), tokens=used)

    def _build_prompt(self, question_text: str, context: RetrievedContext) -> str:
        return (
            "CONTEXT:\n"
            f"{context.text or 'No information available.'}\n"
            "---\n"
            "VISITOR'S QUESTION:\n"
            f"{question_text}"
        )

    async def _generate_with_retries(self, prompt: str, deadline: float | None) -> str:
        """
        Generate with bounded retries.

        Raises:
            GenerationFailed: Every attempt failed, or the deadline left no room
        """
        loop = asyncio.get_running_loop()
        max_attempts = self.config.generation_max_retries + 1
        last_error: Exception | None = None
        attempts = 0

        for attempt in range(max_attempts):
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break

            attempts += 1
            try:
                text = await asyncio.wait_for(
                    self.llm.generate(
                        prompt,
                        system=_ANSWER_SYSTEM_PROMPT,
                        temperature=self.config.llm_temperature,
                        max_tokens=self.config.llm_max_tokens,
                    ),
                    timeout=remaining,
                )
                if not text or not text.strip():
                    raise GenerationUnavailable("empty response")
                return text.strip()
            except asyncio.TimeoutError:
                last_error = GenerationUnavailable("deadline reached during generation")
            except GenerationUnavailable as e:
                last_error = e

            logger.debug(f"Generation attempt {attempts} failed: {last_error}")
            if attempt == max_attempts - 1:
                break

            backoff = min(
                self.config.retry_backoff_base_seconds * (2**attempt),
                self.config.retry_backoff_ceiling_seconds,
            )
            if deadline is not None and loop.time() + backoff >= deadline:
                logger.debug("Backoff would pass the deadline; giving up")
                break
            await asyncio.sleep(backoff)

        raise GenerationFailed(
            f"generation failed: {last_error or 'deadline reached'}",
            attempts=attempts,
            last_error=last_error,
        )

    async def _record_unresolved(
        self,
        property_id: str,
        question_text: str,
        question_embedding: list[float],
        origin: MatchKind,
        session_id: str | None,
    ) -> None:
        query = UnresolvedQuery(
            property_id=property_id,
            text=question_text,
            embedding=question_embedding,
            session_id=session_id,
            origin=origin,
        )
        try:
            await self.store.append_unresolved(query)
        except ConciergeError as e:
            logger.warning(f"Could not record unresolved question for {property_id}: {e}")
