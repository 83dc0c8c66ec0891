"""
Tests for the Answer Composer.

Tests cover:
- Grounded answers with source document ids
- Context budget and retrieval cutoff
- Bounded retries, deadlines and the fallback outcome
- Unresolved question recording
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from concierge_kb.answering.composer import NO_INFORMATION_MESSAGE, AnswerComposer
from concierge_kb.errors import GenerationUnavailable, RateLimited, StorageUnavailable
from concierge_kb.types import (
    FALLBACK_MESSAGE,
    ComposedAnswer,
    ComposeFailure,
    Document,
    MatchKind,
    SourceType,
    document_id,
)
from concierge_kb.utils.token_count import count_text_tokens
from support import StubLLM, blend, unit

CHECK_IN_Q = "What time is check-in?"


def _document(text, embedding, source_type=SourceType.POLICY):
    return Document(
        uuid=document_id("villa", source_type, text),
        property_id="villa",
        source_type=source_type,
        text=text,
        content_hash=text,
        embedding=embedding,
    )


@pytest.fixture
def composer(store, embeddings, llm, config):
    return AnswerComposer(store, embeddings, llm, config)


class SlowLLM(StubLLM):
    async def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        await asyncio.sleep(1.0)
        return "too late"


class TestGrounding:
    @pytest.mark.asyncio
    async def test_answer_cites_retrieved_documents(self, composer, store, embeddings, llm):
        rules = _document("House rules: Check-in after 3pm. No pets.", unit(1))
        pool = _document("Amenities: Pool, WiFi", unit(2), SourceType.AMENITY)
        await store.upsert(rules)
        await store.upsert(pool)
        embeddings.vectors[CHECK_IN_Q] = blend(1, 0, 0.8)
        llm.responses = ["Check-in is after 3pm."]

        outcome = await composer.compose("villa", CHECK_IN_Q)

        assert isinstance(outcome, ComposedAnswer)
        assert outcome.answer == "Check-in is after 3pm."
        assert outcome.source_document_ids == [rules.uuid]
        assert "Check-in after 3pm" in llm.prompts[0]
        assert CHECK_IN_Q in llm.prompts[0]
        assert "Pool" not in llm.prompts[0]
        assert NO_INFORMATION_MESSAGE in llm.systems[0]

    @pytest.mark.asyncio
    async def test_no_documents_still_generates(self, composer, llm):
        llm.responses = [NO_INFORMATION_MESSAGE]

        outcome = await composer.compose("villa", "Is there a sauna?")

        assert isinstance(outcome, ComposedAnswer)
        assert outcome.answer == NO_INFORMATION_MESSAGE
        assert outcome.source_document_ids == []
        assert "No information available." in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_reuses_question_embedding(self, composer, embeddings):
        await composer.compose("villa", CHECK_IN_Q, question_embedding=unit(1))
        assert embeddings.calls == []


class TestContextBudget:
    @pytest.mark.asyncio
    async def test_budget_keeps_highest_scores(self, composer, store, config):
        best = _document("Check-in from 3pm, keys in the lockbox.", unit(1))
        second = _document("Late check-in possible on request.", blend(1, 0, 0.8))
        await store.upsert(best)
        await store.upsert(second)
        config.context_token_budget = count_text_tokens(f"[policy] {best.text}")

        context = await composer.retrieve("villa", unit(1))

        assert context.document_ids == [best.uuid]
        assert context.tokens <= config.context_token_budget

    @pytest.mark.asyncio
    async def test_overflow_drops_all_lower_scored(self, composer, store, config):
        long_best = _document("Check-in details. " * 50, unit(1))
        short_next = _document("Check-in at 3pm.", blend(1, 0, 0.8))
        await store.upsert(long_best)
        await store.upsert(short_next)
        config.context_token_budget = 30

        context = await composer.retrieve("villa", unit(1))

        assert context.documents == []

    @pytest.mark.asyncio
    async def test_min_score_cutoff(self, composer, store, config):
        await store.upsert(_document("Unrelated text.", blend(1, 0, 0.2)))
        context = await composer.retrieve("villa", unit(1))
        assert context.documents == []


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, composer, llm):
        llm.responses = [GenerationUnavailable("boom"), "Recovered."]

        outcome = await composer.compose("villa", CHECK_IN_Q)

        assert isinstance(outcome, ComposedAnswer)
        assert outcome.answer == "Recovered."
        assert len(llm.prompts) == 2

    @pytest.mark.asyncio
    async def test_empty_response_counts_as_failure(self, composer, llm):
        llm.responses = ["   ", "Real answer."]

        outcome = await composer.compose("villa", CHECK_IN_Q)

        assert outcome.answer == "Real answer."

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_fallback(self, composer, llm):
        llm.responses = [RateLimited("slow down")]

        outcome = await composer.compose("villa", CHECK_IN_Q)

        assert isinstance(outcome, ComposeFailure)
        assert outcome.message == FALLBACK_MESSAGE
        assert "slow down" in outcome.reason
        assert len(llm.prompts) == 2

    @pytest.mark.asyncio
    async def test_no_retries_configured(self, composer, llm, config):
        config.generation_max_retries = 0
        llm.responses = [GenerationUnavailable("boom")]

        outcome = await composer.compose("villa", CHECK_IN_Q)

        assert isinstance(outcome, ComposeFailure)
        assert len(llm.prompts) == 1


class TestDeadline:
    @pytest.mark.asyncio
    async def test_passed_deadline_skips_generation(self, composer, llm):
        deadline = asyncio.get_running_loop().time() - 1

        outcome = await composer.compose("villa", CHECK_IN_Q, deadline=deadline)

        assert isinstance(outcome, ComposeFailure)
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_slow_generation_is_cut_at_deadline(self, store, embeddings, config):
        slow = SlowLLM()
        composer = AnswerComposer(store, embeddings, slow, config)
        loop = asyncio.get_running_loop()
        started = loop.time()

        outcome = await composer.compose("villa", CHECK_IN_Q, deadline=started + 0.1)

        assert isinstance(outcome, ComposeFailure)
        assert loop.time() - started < 0.9

    @pytest.mark.asyncio
    async def test_backoff_past_deadline_gives_up(self, composer, llm, config):
        config.retry_backoff_base_seconds = 10.0
        config.retry_backoff_ceiling_seconds = 10.0
        llm.responses = [GenerationUnavailable("boom"), "never reached"]
        deadline = asyncio.get_running_loop().time() + 1.0

        outcome = await composer.compose("villa", CHECK_IN_Q, deadline=deadline)

        assert isinstance(outcome, ComposeFailure)
        assert len(llm.prompts) == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_embedding_failure_returns_fallback(self, composer, embeddings):
        embeddings.fail = True

        outcome = await composer.compose("villa", CHECK_IN_Q)

        assert isinstance(outcome, ComposeFailure)
        assert "embedding" in outcome.reason

    @pytest.mark.asyncio
    async def test_storage_failure_returns_fallback(self, composer, store, llm):
        store.query_nearest = AsyncMock(side_effect=StorageUnavailable("down"))

        outcome = await composer.compose("villa", CHECK_IN_Q)

        assert isinstance(outcome, ComposeFailure)
        assert llm.prompts == []


class TestUnresolvedRecording:
    @pytest.mark.asyncio
    async def test_miss_is_recorded(self, composer, store):
        await composer.compose("villa", CHECK_IN_Q, origin=MatchKind.MISS, session_id="s-9")

        [query] = await store.list_unresolved("villa")
        assert query.text == CHECK_IN_Q
        assert query.origin == MatchKind.MISS
        assert query.session_id == "s-9"

    @pytest.mark.asyncio
    async def test_failed_generation_is_still_recorded(self, composer, store, llm):
        llm.responses = [GenerationUnavailable("boom")]

        await composer.compose("villa", CHECK_IN_Q, origin=MatchKind.MISS)

        assert len(await store.list_unresolved("villa")) == 1

    @pytest.mark.asyncio
    async def test_direct_compose_records_nothing(self, composer, store):
        await composer.compose("villa", CHECK_IN_Q)
        assert await store.list_unresolved("villa") == []

    @pytest.mark.asyncio
    async def test_recording_failure_does_not_fail_answer(self, composer, store):
        store.append_unresolved = AsyncMock(side_effect=StorageUnavailable("down"))

        outcome = await composer.compose("villa", CHECK_IN_Q, origin=MatchKind.MISS)

        assert isinstance(outcome, ComposedAnswer)

    @pytest.mark.asyncio
    async def test_cancelled_compose_is_still_recorded(self, store, embeddings, config):
        composer = AnswerComposer(store, embeddings, SlowLLM(), config)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(
                composer.compose("villa", CHECK_IN_Q, origin=MatchKind.SUGGESTION),
                timeout=0.05,
            )

        [query] = await store.list_unresolved("villa")
        assert query.origin == MatchKind.SUGGESTION
