"""
Tests for the knowledge store backends.

Every test runs against both the in-memory and the DuckDB store.

Tests cover:
- Upsert/delete/list of Documents and FAQ entries
- Nearest-neighbour ordering, cutoffs, tie-breaking and tenant isolation
- Atomic FAQ hit counting under concurrency
- Unresolved question windows and purging
- Dimension checks
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from concierge_kb.errors import InvalidInput
from concierge_kb.storage.duckdb import DuckDBKnowledgeStore
from concierge_kb.storage.memory import MemoryKnowledgeStore
from concierge_kb.types import (
    Document,
    FaqEntry,
    MatchKind,
    Partition,
    SourceType,
    UnresolvedQuery,
    document_id,
)
from support import DIMS, blend, unit

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_document(property_id, text, embedding, updated_at=T0, source_type=SourceType.DESCRIPTION):
    return Document(
        uuid=document_id(property_id, source_type, text),
        property_id=property_id,
        source_type=source_type,
        text=text,
        content_hash=text,
        embedding=embedding,
        updated_at=updated_at,
    )


def make_faq(property_id, question, embedding, created_at=T0):
    return FaqEntry(
        property_id=property_id,
        question=question,
        answer=f"Answer to {question}",
        embedding=embedding,
        created_at=created_at,
    )


@pytest_asyncio.fixture(params=["memory", "duckdb"])
async def kb(request, tmp_path):
    if request.param == "memory":
        backend = MemoryKnowledgeStore(DIMS)
    else:
        backend = DuckDBKnowledgeStore(tmp_path / "kb.duckdb", DIMS)
    await backend.initialize()
    await backend.register_property("villa")
    await backend.register_property("chalet")
    yield backend
    await backend.close()


class TestDocuments:
    @pytest.mark.asyncio
    async def test_upsert_and_list(self, kb):
        doc = make_document("villa", "Sea views.", unit(0))
        await kb.upsert(doc)

        [stored] = await kb.list_documents("villa")
        assert stored.uuid == doc.uuid
        assert stored.text == "Sea views."
        assert stored.updated_at == T0
        assert await kb.count_documents("villa") == 1

    @pytest.mark.asyncio
    async def test_upsert_replaces(self, kb):
        doc = make_document("villa", "Sea views.", unit(0))
        await kb.upsert(doc)
        await kb.upsert(doc.model_copy(update={"embedding": unit(1)}))

        [stored] = await kb.list_documents("villa")
        assert stored.embedding == pytest.approx(unit(1))

    @pytest.mark.asyncio
    async def test_replacement_never_observed_missing(self, kb):
        doc = make_document("villa", "Sea views.", unit(0))
        await kb.upsert(doc)

        async def read():
            return await kb.query_nearest("villa", unit(0), Partition.DOCUMENTS, k=1)

        results = await asyncio.gather(
            *(kb.upsert(doc) for _ in range(10)),
            *(read() for _ in range(10)),
        )

        for hits in results[10:]:
            assert [d.uuid for d, _ in hits] == [doc.uuid]

    @pytest.mark.asyncio
    async def test_delete(self, kb):
        doc = make_document("villa", "Sea views.", unit(0))
        await kb.upsert(doc)

        assert await kb.delete(doc.uuid) is True
        assert await kb.delete(doc.uuid) is False
        assert await kb.list_documents("villa") == []

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected(self, kb):
        with pytest.raises(InvalidInput):
            await kb.upsert(make_document("villa", "Bad.", [1.0, 0.0]))
        with pytest.raises(InvalidInput):
            await kb.query_nearest("villa", [1.0], Partition.DOCUMENTS, k=3)


class TestQueryNearest:
    @pytest.mark.asyncio
    async def test_orders_by_score(self, kb):
        await kb.upsert(make_document("villa", "far", blend(0, 1, 0.2)))
        await kb.upsert(make_document("villa", "exact", unit(0)))
        await kb.upsert(make_document("villa", "close", blend(0, 1, 0.8)))

        results = await kb.query_nearest("villa", unit(0), Partition.DOCUMENTS, k=3)

        assert [d.text for d, _ in results] == ["exact", "close", "far"]
        assert [s for _, s in results] == pytest.approx([1.0, 0.8, 0.2], abs=1e-5)

    @pytest.mark.asyncio
    async def test_k_and_min_score(self, kb):
        await kb.upsert(make_document("villa", "a", unit(0)))
        await kb.upsert(make_document("villa", "b", blend(0, 1, 0.6)))
        await kb.upsert(make_document("villa", "c", blend(0, 1, 0.1)))

        assert len(await kb.query_nearest("villa", unit(0), Partition.DOCUMENTS, k=1)) == 1
        results = await kb.query_nearest(
            "villa", unit(0), Partition.DOCUMENTS, k=5, min_score=0.5
        )
        assert [d.text for d, _ in results] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_ties_prefer_most_recent(self, kb):
        await kb.upsert(make_document("villa", "old", unit(0), updated_at=T0))
        await kb.upsert(make_document("villa", "new", unit(0), updated_at=T0 + timedelta(hours=1)))

        results = await kb.query_nearest("villa", unit(0), Partition.DOCUMENTS, k=2)
        assert [d.text for d, _ in results] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_tenant_isolation(self, kb):
        await kb.upsert(make_document("villa", "villa doc", unit(0)))
        await kb.upsert(make_document("chalet", "chalet doc", unit(0)))

        results = await kb.query_nearest("villa", unit(0), Partition.DOCUMENTS, k=10)
        assert [d.text for d, _ in results] == ["villa doc"]
        assert await kb.query_nearest("unknown", unit(0), Partition.DOCUMENTS, k=10) == []

    @pytest.mark.asyncio
    async def test_partitions_are_separate(self, kb):
        await kb.upsert(make_document("villa", "doc", unit(0)))
        await kb.upsert_faq(make_faq("villa", "faq?", unit(0)))

        docs = await kb.query_nearest("villa", unit(0), Partition.DOCUMENTS, k=10)
        faqs = await kb.query_nearest("villa", unit(0), Partition.FAQS, k=10)
        assert [type(e) for e, _ in docs] == [Document]
        assert [type(e) for e, _ in faqs] == [FaqEntry]


class TestFaqs:
    @pytest.mark.asyncio
    async def test_unregistered_property_rejected(self, kb):
        with pytest.raises(InvalidInput):
            await kb.upsert_faq(make_faq("nowhere", "Parking?", unit(0)))

    @pytest.mark.asyncio
    async def test_get_list_delete(self, kb):
        faq = make_faq("villa", "Parking?", unit(0))
        await kb.upsert_faq(faq)

        assert (await kb.get_faq(faq.uuid)).question == "Parking?"
        assert [f.uuid for f in await kb.list_faqs("villa")] == [faq.uuid]
        assert await kb.list_faqs("chalet") == []
        assert await kb.count_faqs("villa") == 1

        assert await kb.delete(faq.uuid) is True
        assert await kb.get_faq(faq.uuid) is None

    @pytest.mark.asyncio
    async def test_increment_hit(self, kb):
        faq = make_faq("villa", "Parking?", unit(0))
        await kb.upsert_faq(faq)
        matched_at = T0 + timedelta(days=1)

        updated = await kb.increment_faq_hit(faq.uuid, matched_at)

        assert updated.hit_count == 1
        assert updated.last_matched_at == matched_at
        assert (await kb.get_faq(faq.uuid)).hit_count == 1

    @pytest.mark.asyncio
    async def test_increment_missing_returns_none(self, kb):
        assert await kb.increment_faq_hit("missing", T0) is None

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, kb):
        faq = make_faq("villa", "Parking?", unit(0))
        await kb.upsert_faq(faq)

        await asyncio.gather(*(kb.increment_faq_hit(faq.uuid, T0) for _ in range(20)))

        assert (await kb.get_faq(faq.uuid)).hit_count == 20

    @pytest.mark.asyncio
    async def test_edit_keeps_hit_counter(self, kb):
        faq = make_faq("villa", "Parking?", unit(0))
        await kb.upsert_faq(faq)
        await kb.increment_faq_hit(faq.uuid, T0)
        await kb.increment_faq_hit(faq.uuid, T0 + timedelta(hours=1))

        await kb.upsert_faq(faq.model_copy(update={"answer": "Yes, two spots."}))

        stored = await kb.get_faq(faq.uuid)
        assert stored.answer == "Yes, two spots."
        assert stored.hit_count == 2
        assert stored.last_matched_at == T0 + timedelta(hours=1)


class TestUnresolved:
    async def _seed(self, kb):
        queries = [
            UnresolvedQuery(
                property_id="villa",
                text=f"question {i}",
                embedding=unit(i % DIMS),
                occurred_at=T0 + timedelta(days=i),
                origin=MatchKind.MISS if i % 2 else MatchKind.SUGGESTION,
            )
            for i in range(5)
        ]
        # Inserted out of order
        for query in reversed(queries):
            await kb.append_unresolved(query)
        await kb.append_unresolved(
            UnresolvedQuery(property_id="chalet", text="other", embedding=unit(0), occurred_at=T0)
        )
        return queries

    @pytest.mark.asyncio
    async def test_list_oldest_first(self, kb):
        queries = await self._seed(kb)

        listed = await kb.list_unresolved("villa")

        assert [q.text for q in listed] == [q.text for q in queries]
        assert listed[0].origin == MatchKind.SUGGESTION
        assert listed[1].origin == MatchKind.MISS

    @pytest.mark.asyncio
    async def test_window_is_inclusive(self, kb):
        await self._seed(kb)

        listed = await kb.list_unresolved(
            "villa", T0 + timedelta(days=1), T0 + timedelta(days=3)
        )
        assert [q.text for q in listed] == ["question 1", "question 2", "question 3"]

    @pytest.mark.asyncio
    async def test_purge_by_ids(self, kb):
        queries = await self._seed(kb)

        purged = await kb.purge_unresolved("villa", ids=[queries[0].uuid, queries[1].uuid])

        assert purged == 2
        assert len(await kb.list_unresolved("villa")) == 3
        assert await kb.purge_unresolved("villa", ids=[]) == 0

    @pytest.mark.asyncio
    async def test_purge_before(self, kb):
        await self._seed(kb)

        purged = await kb.purge_unresolved("villa", before=T0 + timedelta(days=2))

        assert purged == 2
        assert [q.text for q in await kb.list_unresolved("villa")][0] == "question 2"
        assert len(await kb.list_unresolved("chalet")) == 1


class TestDuckDBPersistence:
    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, tmp_path):
        path = tmp_path / "kb.duckdb"
        async with DuckDBKnowledgeStore(path, DIMS) as first:
            await first.register_property("villa")
            await first.upsert(make_document("villa", "Sea views.", unit(0)))

        async with DuckDBKnowledgeStore(path, DIMS) as second:
            assert await second.property_exists("villa")
            assert await second.count_documents("villa") == 1

    @pytest.mark.asyncio
    async def test_reopen_with_other_dimensions_fails(self, tmp_path):
        path = tmp_path / "kb.duckdb"
        async with DuckDBKnowledgeStore(path, DIMS):
            pass

        with pytest.raises(InvalidInput, match="dimensional"):
            await DuckDBKnowledgeStore(path, DIMS + 1).initialize()


class TestDuckDBTransactions:
    @pytest.mark.asyncio
    async def test_failed_write_is_rolled_back(self, tmp_path):
        doc = make_document("villa", "Sea views.", unit(0))

        def _delete_then_fail(cur):
            cur.execute("DELETE FROM documents WHERE uuid = ?", [doc.uuid])
            raise RuntimeError("crashed mid-write")

        async with DuckDBKnowledgeStore(tmp_path / "kb.duckdb", DIMS) as store:
            await store.register_property("villa")
            await store.upsert(doc)

            with pytest.raises(RuntimeError):
                await store._run(_delete_then_fail, write=True)

            assert [d.uuid for d in await store.list_documents("villa")] == [doc.uuid]

    @pytest.mark.asyncio
    async def test_store_usable_after_rollback(self, tmp_path):
        def _fail(cur):
            raise RuntimeError("boom")

        async with DuckDBKnowledgeStore(tmp_path / "kb.duckdb", DIMS) as store:
            with pytest.raises(RuntimeError):
                await store._run(_fail, write=True)

            await store.register_property("villa")
            assert await store.property_exists("villa")
