"""
PropertyConcierge - Primary Entry Point

The PropertyConcierge class owns a knowledge store and the components built
on it, and exposes the three external entry points:

    - Indexing trigger: index_property()
    - Answering entry point: answer_question()
    - Suggestion review entry point: review_suggestions()

plus FAQ administration, listing import and text-to-speech.

Example:
    >>> async with PropertyConcierge("./kb.duckdb") as concierge:
    ...     await concierge.index_property("villa-rosa", {"description": "..."})
    ...     answer = await concierge.answer_question("villa-rosa", "Is there parking?")
    ...     print(answer.answer, answer.answered_by)

    # Or with sync API
    >>> concierge = PropertyConcierge("./kb.duckdb")
    >>> concierge.answer_question_sync("villa-rosa", "Is there parking?")
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from concierge_kb.answering.composer import AnswerComposer
from concierge_kb.answering.matcher import FaqMatcher
from concierge_kb.config import ConciergeConfig
from concierge_kb.errors import ConciergeError, InvalidInput
from concierge_kb.ingestion.indexer import Indexer
from concierge_kb.ingestion.url_import import PropertyImporter
from concierge_kb.providers.factory import (
    create_embedding_provider,
    create_llm_provider,
    create_speech_provider,
)
from concierge_kb.suggestions.collector import FaqSuggestionCollector
from concierge_kb.types import (
    FALLBACK_MESSAGE,
    AnsweredBy,
    AnswerRequest,
    ComposedAnswer,
    FaqCreateRequest,
    FaqEntry,
    FaqHit,
    FaqSuggestion,
    ImportedProperty,
    IndexRequest,
    IndexResult,
    MatchKind,
    PropertyData,
    SuggestedFaq,
    SuggestionReviewRequest,
    VisitorAnswer,
    utc_now,
)
from concierge_kb.utils.text import truncate
from concierge_kb.utils.usage_telemetry import UsageCollector, usage_collector, usage_stage

if TYPE_CHECKING:
    from concierge_kb.providers.base import EmbeddingProvider, LLMProvider, SpeechProvider
    from concierge_kb.storage.base import KnowledgeStore

logger = logging.getLogger(__name__)

# Outer guard past the composer deadline; it only catches calls the composer does not bound
_DEADLINE_GRACE_SECONDS = 0.5


def _invalid(error: ValidationError) -> InvalidInput:
    """Convert a request validation error into InvalidInput."""
    problems = [
        f"{'.'.join(str(part) for part in e['loc']) or 'request'}: {e['msg']}"
        for e in error.errors()
    ]
    return InvalidInput("; ".join(problems))


class PropertyConcierge:
    """
    Property knowledge index and visitor question answering.

    Args:
        path: DuckDB file for the knowledge store (ignored for the memory backend)
        config: Optional configuration. Uses defaults if not provided.
        store: Pre-built knowledge store (overrides config.storage_backend)
        llm: Pre-built LLM provider
        embeddings: Pre-built embedding provider
        speech: Pre-built text-to-speech provider
    """

    def __init__(
        self,
        path: str | Path = "./concierge.duckdb",
        config: ConciergeConfig | None = None,
        *,
        store: "KnowledgeStore | None" = None,
        llm: "LLMProvider | None" = None,
        embeddings: "EmbeddingProvider | None" = None,
        speech: "SpeechProvider | None" = None,
    ) -> None:
        self._path = Path(path)
        self._config = config or ConciergeConfig()

        self._store = store
        self._llm = llm
        self._embeddings = embeddings
        self._speech = speech

        # Lazy-initialized components
        self._indexer: Indexer | None = None
        self._composer: AnswerComposer | None = None
        self._matcher: FaqMatcher | None = None
        self._collector: FaqSuggestionCollector | None = None
        self._importer: PropertyImporter | None = None
        self._initialized = False

    async def _ensure_initialized(self) -> None:
        """Lazy initialization of providers, store and components on first use."""
        if self._initialized:
            return

        if self._llm is None:
            self._llm = create_llm_provider(self._config)
        if self._embeddings is None:
            self._embeddings = create_embedding_provider(self._config)
        if self._store is None:
            self._store = self._create_store(self._embeddings.dimensions)
        await self._store.initialize()

        self._indexer = Indexer(self._store, self._embeddings, self._config)
        self._composer = AnswerComposer(self._store, self._embeddings, self._llm, self._config)
        self._matcher = FaqMatcher(self._store, self._embeddings, self._composer, self._config)
        self._collector = FaqSuggestionCollector(
            self._store, self._embeddings, self._composer, self._config
        )
        self._importer = PropertyImporter(self._llm, timeout=self._config.fetch_timeout_seconds)

        self._initialized = True

    def _create_store(self, dimensions: int) -> "KnowledgeStore":
        """Create knowledge store based on config."""
        backend = self._config.storage_backend.lower()

        if backend == "duckdb":
            from concierge_kb.storage.duckdb import DuckDBKnowledgeStore
            return DuckDBKnowledgeStore(
                self._path,
                dimensions,
                timeout=self._config.storage_timeout_seconds,
            )
        elif backend == "memory":
            from concierge_kb.storage.memory import MemoryKnowledgeStore
            return MemoryKnowledgeStore(dimensions)
        else:
            raise ValueError(f"Unknown storage backend: {backend}")

    # === Lifecycle ===

    async def __aenter__(self) -> "PropertyConcierge":
        await self._ensure_initialized()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release all resources."""
        if self._store is not None and self._initialized:
            await self._store.close()
        self._initialized = False

    # === Properties ===

    @property
    def config(self) -> ConciergeConfig:
        """Current configuration."""
        return self._config

    @property
    def store(self) -> "KnowledgeStore | None":
        """Knowledge store (None until first use unless injected)."""
        return self._store

    # === Indexing ===

    async def index_property(
        self,
        property_id: str,
        raw_data: PropertyData | dict[str, Any],
    ) -> IndexResult:
        """
        Index (or re-index) a property's content.

        Args:
            property_id: Property to index
            raw_data: PropertyData or an equivalent dict

        Returns:
            IndexResult with added/removed/unchanged counts

        Raises:
            InvalidInput: Missing property id or malformed data
            EmbeddingUnavailable: Embedding failed; store untouched
            StorageUnavailable: Store failed
        """
        try:
            request = IndexRequest(property_id=property_id, raw_data=raw_data)
        except ValidationError as e:
            raise _invalid(e) from e

        await self._ensure_initialized()
        assert self._indexer is not None
        return await self._indexer.index_property(request.property_id, request.raw_data)

    async def register_property(self, property_id: str) -> None:
        """Register a property without indexing content (allows adding FAQs first)."""
        if not property_id or not property_id.strip():
            raise InvalidInput("property_id is required")
        await self._ensure_initialized()
        assert self._store is not None
        await self._store.register_property(property_id.strip())

    # === Answering ===

    async def answer_question(
        self,
        property_id: str,
        question_text: str,
        session_id: str | None = None,
        *,
        usage_debug: bool = False,
    ) -> VisitorAnswer:
        """
        Answer a visitor question.

        Confident FAQ matches return the stored answer. Otherwise an answer is
        generated from the property's documents; a low-confidence FAQ is
        attached as suggested_faq_answer, and surfaced instead when generation
        fails. Any backend failure yields the polite fallback message.

        Args:
            property_id: Property the visitor is viewing
            question_text: The visitor's question
            session_id: Visitor chat session
            usage_debug: Attach a token/cost usage report

        Raises:
            InvalidInput: Missing or blank property id or question
        """
        try:
            request = AnswerRequest(
                property_id=property_id,
                question_text=question_text,
                session_id=session_id,
            )
        except ValidationError as e:
            raise _invalid(e) from e

        limit = self._config.question_max_chars
        if len(request.question_text) > limit:
            logger.info(
                f"Question for {request.property_id} cut from "
                f"{len(request.question_text)} to {limit} characters"
            )
            request = request.model_copy(
                update={"question_text": truncate(request.question_text, limit)}
            )

        collector = (
            UsageCollector(warn_threshold_usd=self._config.usage_warn_threshold_usd)
            if usage_debug
            else None
        )

        deadline = asyncio.get_running_loop().time() + self._config.answer_deadline_seconds

        with usage_collector(collector):
            try:
                answer = await asyncio.wait_for(
                    self._answer(request, deadline),
                    timeout=self._config.answer_deadline_seconds + _DEADLINE_GRACE_SECONDS,
                )
            except InvalidInput:
                raise
            except asyncio.TimeoutError:
                logger.warning(
                    f"Answering for {request.property_id} exceeded "
                    f"{self._config.answer_deadline_seconds}s"
                )
                answer = VisitorAnswer(answer=FALLBACK_MESSAGE, answered_by=AnsweredBy.FALLBACK)
            except ConciergeError as e:
                logger.warning(f"Answering for {request.property_id} failed: {e}")
                answer = VisitorAnswer(answer=FALLBACK_MESSAGE, answered_by=AnsweredBy.FALLBACK)

        if collector is not None:
            answer.usage = collector.summary(answered_by=answer.answered_by)
        return answer

    async def _answer(self, request: AnswerRequest, deadline: float) -> VisitorAnswer:
        await self._ensure_initialized()
        assert self._matcher is not None
        assert self._composer is not None

        result = await self._matcher.match(
            request.property_id,
            request.question_text,
            session_id=request.session_id,
            deadline=deadline,
        )

        if isinstance(result, FaqHit):
            return VisitorAnswer(
                answer=result.answer,
                answered_by=AnsweredBy.FAQ,
                faq_id=result.faq.uuid,
                match_score=result.score,
            )

        if isinstance(result, FaqSuggestion):
            generated = result.generated_answer
            if isinstance(generated, ComposedAnswer):
                return VisitorAnswer(
                    answer=generated.answer,
                    answered_by=AnsweredBy.GENERATED,
                    source_document_ids=generated.source_document_ids,
                    faq_id=result.faq.uuid,
                    suggested_faq_answer=result.faq_answer,
                    match_score=result.score,
                )
            return VisitorAnswer(
                answer=result.faq_answer,
                answered_by=AnsweredBy.FAQ,
                faq_id=result.faq.uuid,
                match_score=result.score,
            )

        outcome = await self._composer.compose(
            request.property_id,
            request.question_text,
            origin=MatchKind.MISS,
            question_embedding=result.question_embedding,
            session_id=request.session_id,
            deadline=deadline,
        )
        if isinstance(outcome, ComposedAnswer):
            return VisitorAnswer(
                answer=outcome.answer,
                answered_by=AnsweredBy.GENERATED,
                source_document_ids=outcome.source_document_ids,
                match_score=result.top_score,
            )
        return VisitorAnswer(
            answer=outcome.message,
            answered_by=AnsweredBy.FALLBACK,
            match_score=result.top_score,
        )

    # === Suggestion Review ===

    async def review_suggestions(
        self,
        property_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        with_drafts: bool = False,
    ) -> list[SuggestedFaq]:
        """
        FAQ candidates from recurring unresolved questions.

        Args:
            property_id: Property to review
            start: Window start (default: retention window before end)
            end: Window end (default: now)
            with_drafts: Propose an answer for each candidate

        Raises:
            InvalidInput: Missing property id or end before start
        """
        end = end or utc_now()
        start = start or end - timedelta(days=self._config.unresolved_retention_days)
        try:
            request = SuggestionReviewRequest(property_id=property_id, start=start, end=end)
        except ValidationError as e:
            raise _invalid(e) from e

        await self._ensure_initialized()
        assert self._collector is not None

        candidates = await self._collector.collect_candidates(
            request.property_id, request.start, request.end
        )
        if with_drafts and candidates:
            candidates = await self._collector.draft_answers(request.property_id, candidates)
        return candidates

    async def promote_suggestion(
        self,
        property_id: str,
        suggestion: SuggestedFaq,
        answer: str,
        *,
        question: str | None = None,
    ) -> FaqEntry:
        """Store a reviewed suggestion as a FAQ and purge its unresolved questions."""
        await self._ensure_initialized()
        assert self._collector is not None
        return await self._collector.promote(property_id, suggestion, answer, question=question)

    async def purge_expired_questions(self, property_id: str) -> int:
        """Delete unresolved questions older than the retention window."""
        await self._ensure_initialized()
        assert self._collector is not None
        return await self._collector.purge_expired(property_id)

    # === FAQ Administration ===

    async def add_faq(self, property_id: str, question: str, answer: str) -> FaqEntry:
        """
        Add an operator-written FAQ.

        Raises:
            InvalidInput: Blank fields or unregistered property
        """
        try:
            request = FaqCreateRequest(property_id=property_id, question=question, answer=answer)
        except ValidationError as e:
            raise _invalid(e) from e

        await self._ensure_initialized()
        assert self._store is not None and self._embeddings is not None

        with usage_stage("faq_admin"):
            embedding = await self._embeddings.embed_single(request.question)
        entry = FaqEntry(
            property_id=request.property_id,
            question=request.question,
            answer=request.answer,
            embedding=embedding,
        )
        await self._store.upsert_faq(entry)
        logger.info(f"Added FAQ {entry.uuid} for {request.property_id}")
        return entry

    async def delete_faq(self, faq_id: str) -> bool:
        """Delete a FAQ. Returns False if it does not exist."""
        await self._ensure_initialized()
        assert self._store is not None
        if await self._store.get_faq(faq_id) is None:
            return False
        return await self._store.delete(faq_id)

    async def list_faqs(self, property_id: str) -> list[FaqEntry]:
        await self._ensure_initialized()
        assert self._store is not None
        return await self._store.list_faqs(property_id)

    # === Listing Import & Speech ===

    async def import_property_from_url(self, url: str) -> ImportedProperty:
        """
        Extract description, amenities and rules from a public listing page.

        Raises:
            InvalidInput: URL is not http(s)
            ImportFailed: Page could not be fetched
            GenerationUnavailable: Extraction failed
        """
        if not url or not url.strip():
            raise InvalidInput("url is required")
        await self._ensure_initialized()
        assert self._importer is not None
        return await self._importer.import_from_url(url.strip())

    async def synthesize_speech(self, text: str, language_code: str = "en-US") -> bytes:
        """
        Read text aloud in the voice mapped to the language code.

        Returns:
            WAV audio bytes
        """
        if self._speech is None:
            self._speech = create_speech_provider(self._config)
        with usage_stage("speech"):
            return await self._speech.synthesize(text, language_code=language_code)

    # === Statistics ===

    async def stats(self, property_id: str) -> dict[str, int]:
        """Document, FAQ and unresolved-question counts for a property."""
        await self._ensure_initialized()
        assert self._store is not None
        return {
            "documents": await self._store.count_documents(property_id),
            "faqs": await self._store.count_faqs(property_id),
            "unresolved_questions": len(await self._store.list_unresolved(property_id)),
        }

    # === Sync API ===

    def index_property_sync(
        self, property_id: str, raw_data: PropertyData | dict[str, Any]
    ) -> IndexResult:
        """Sync version of index_property()."""
        return asyncio.run(self._run_and_close(self.index_property(property_id, raw_data)))

    def answer_question_sync(self, property_id: str, question_text: str, **kwargs: Any) -> VisitorAnswer:
        """Sync version of answer_question()."""
        return asyncio.run(
            self._run_and_close(self.answer_question(property_id, question_text, **kwargs))
        )

    def review_suggestions_sync(self, property_id: str, **kwargs: Any) -> list[SuggestedFaq]:
        """Sync version of review_suggestions()."""
        return asyncio.run(self._run_and_close(self.review_suggestions(property_id, **kwargs)))

    async def _run_and_close(self, coro: Any) -> Any:
        # Each asyncio.run() gets a fresh loop; don't carry loop-bound state over
        try:
            return await coro
        finally:
            await self.close()
