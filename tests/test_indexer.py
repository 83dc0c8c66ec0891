"""
Tests for the Indexer.

Tests cover:
- First index writes every chunk
- Re-indexing identical data performs no writes
- Changed content adds and removes only the difference
- Embedding failure leaves the store unchanged
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from concierge_kb.errors import EmbeddingUnavailable, InvalidInput
from concierge_kb.ingestion.indexer import Indexer
from concierge_kb.types import PriorAnswer, PropertyData, SourceType

VILLA = PropertyData(
    name="Villa Rosa",
    description="A bright villa above the harbour.",
    amenities=["Fast WiFi", "Pool", "Free Parking"],
    rules="No smoking. No parties",
    prior_answers=[PriorAnswer(question="Is there parking?", answer="Yes, one spot included.")],
)


@pytest.fixture
def indexer(store, embeddings, config):
    return Indexer(store, embeddings, config)


class TestIndexing:
    @pytest.mark.asyncio
    async def test_first_index_adds_all_chunks(self, indexer, store):
        result = await indexer.index_property("villa", VILLA)

        assert result.property_id == "villa"
        assert result.indexed_chunks == 4
        assert result.added == 4
        assert result.removed == 0
        assert result.unchanged == 0
        assert await store.property_exists("villa")

        documents = await store.list_documents("villa")
        assert {d.source_type for d in documents} == {
            SourceType.DESCRIPTION,
            SourceType.AMENITY,
            SourceType.POLICY,
            SourceType.PRIOR_ANSWER,
        }

    @pytest.mark.asyncio
    async def test_reindex_identical_data_writes_nothing(self, indexer, store, embeddings):
        await indexer.index_property("villa", VILLA)
        embed_calls = len(embeddings.calls)

        store.upsert = AsyncMock(wraps=store.upsert)
        store.delete = AsyncMock(wraps=store.delete)
        store.register_property = AsyncMock(wraps=store.register_property)

        result = await indexer.index_property("villa", VILLA)

        assert result.writes == 0
        assert result.unchanged == 4
        store.upsert.assert_not_called()
        store.delete.assert_not_called()
        store.register_property.assert_not_called()
        assert len(embeddings.calls) == embed_calls

    @pytest.mark.asyncio
    async def test_changed_content_diffs(self, indexer, store):
        await indexer.index_property("villa", VILLA)
        changed = VILLA.model_copy(update={"description": "A bright villa with a new rooftop bar."})

        result = await indexer.index_property("villa", changed)

        assert (result.added, result.removed, result.unchanged) == (1, 1, 3)
        texts = [d.text for d in await store.list_documents("villa")]
        assert "A bright villa with a new rooftop bar." in texts
        assert "A bright villa above the harbour." not in texts

    @pytest.mark.asyncio
    async def test_removed_section_is_deleted(self, indexer, store):
        await indexer.index_property("villa", VILLA)

        result = await indexer.index_property("villa", VILLA.model_copy(update={"prior_answers": []}))

        assert result.removed == 1
        assert await store.count_documents("villa") == 3

    @pytest.mark.asyncio
    async def test_document_ids_are_deterministic(self, store, embeddings, config):
        await Indexer(store, embeddings, config).index_property("villa", VILLA)
        first = sorted(d.uuid for d in await store.list_documents("villa"))

        other = type(store)(store.dimensions)
        await Indexer(other, embeddings, config).index_property("villa", VILLA)
        second = sorted(d.uuid for d in await other.list_documents("villa"))

        assert first == second

    @pytest.mark.asyncio
    async def test_blank_property_id_rejected(self, indexer):
        with pytest.raises(InvalidInput):
            await indexer.index_property("  ", VILLA)


class TestFailures:
    @pytest.mark.asyncio
    async def test_embedding_failure_leaves_store_unchanged(self, indexer, store, embeddings):
        await indexer.index_property("villa", VILLA)
        before = sorted(d.uuid for d in await store.list_documents("villa"))

        embeddings.fail = True
        changed = VILLA.model_copy(update={"description": "Completely rewritten description."})
        with pytest.raises(EmbeddingUnavailable):
            await indexer.index_property("villa", changed)

        after = sorted(d.uuid for d in await store.list_documents("villa"))
        assert after == before

    @pytest.mark.asyncio
    async def test_embedding_failure_on_new_property_registers_nothing(self, indexer, store, embeddings):
        embeddings.fail = True
        with pytest.raises(EmbeddingUnavailable):
            await indexer.index_property("villa", VILLA)

        assert not await store.property_exists("villa")
        assert await store.count_documents("villa") == 0


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_passes_for_same_property_serialize(self, indexer, store):
        results = await asyncio.gather(
            indexer.index_property("villa", VILLA),
            indexer.index_property("villa", VILLA),
        )

        assert sorted(r.added for r in results) == [0, 4]
        assert await store.count_documents("villa") == 4

    @pytest.mark.asyncio
    async def test_locks_released_after_passes(self, indexer):
        await asyncio.gather(
            indexer.index_property("villa", VILLA),
            indexer.index_property("villa", VILLA),
            indexer.index_property("cabin", VILLA),
        )

        assert indexer._locks == {}
        assert indexer._lock_users == {}

    @pytest.mark.asyncio
    async def test_lock_released_after_failed_pass(self, indexer, embeddings):
        embeddings.fail = True
        with pytest.raises(EmbeddingUnavailable):
            await indexer.index_property("villa", VILLA)

        assert indexer._locks == {}
