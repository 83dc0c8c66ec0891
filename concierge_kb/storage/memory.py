"""
In-Memory Knowledge Store

Process-local store for tests, demos and single-process deployments.
Data is lost when the process exits.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from concierge_kb.errors import InvalidInput
from concierge_kb.storage.base import KnowledgeStore
from concierge_kb.types import Document, FaqEntry, Partition, UnresolvedQuery
from concierge_kb.utils.similarity import similarity_to_many

logger = logging.getLogger(__name__)


class MemoryKnowledgeStore(KnowledgeStore):
    """
    Knowledge store held in dictionaries.

    Mutations run under an asyncio.Lock so read-modify-write sequences
    (hit counting) never interleave.

    Args:
        dimensions: Embedding dimensionality accepted by the store
    """

    def __init__(self, dimensions: int) -> None:
        self._dimensions = dimensions
        self._properties: set[str] = set()
        self._documents: dict[str, Document] = {}
        self._faqs: dict[str, FaqEntry] = {}
        self._unresolved: dict[str, UnresolvedQuery] = {}
        self._lock = asyncio.Lock()

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def register_property(self, property_id: str) -> None:
        self._properties.add(property_id)

    async def property_exists(self, property_id: str) -> bool:
        return property_id in self._properties

    async def upsert(self, document: Document) -> None:
        self._check_vector(document.embedding, "Document")
        async with self._lock:
            self._documents[document.uuid] = document.model_copy(deep=True)

    async def upsert_faq(self, entry: FaqEntry) -> None:
        self._check_vector(entry.embedding, "FAQ")
        if entry.property_id not in self._properties:
            raise InvalidInput(f"Unknown property: {entry.property_id}")
        async with self._lock:
            stored = entry.model_copy(deep=True)
            if (existing := self._faqs.get(entry.uuid)) is not None:
                stored.hit_count = existing.hit_count
                stored.last_matched_at = existing.last_matched_at
            self._faqs[entry.uuid] = stored

    async def delete(self, entity_id: str) -> bool:
        async with self._lock:
            if self._documents.pop(entity_id, None) is not None:
                return True
            return self._faqs.pop(entity_id, None) is not None

    async def list_documents(self, property_id: str) -> list[Document]:
        return [
            d.model_copy(deep=True)
            for d in self._documents.values()
            if d.property_id == property_id
        ]

    async def get_faq(self, faq_id: str) -> FaqEntry | None:
        entry = self._faqs.get(faq_id)
        return entry.model_copy(deep=True) if entry else None

    async def list_faqs(self, property_id: str) -> list[FaqEntry]:
        faqs = [f for f in self._faqs.values() if f.property_id == property_id]
        faqs.sort(key=lambda f: f.created_at)
        return [f.model_copy(deep=True) for f in faqs]

    async def query_nearest(
        self,
        property_id: str,
        query_vector: list[float],
        partition: Partition,
        k: int,
        min_score: float = -1.0,
    ) -> list[tuple[Document | FaqEntry, float]]:
        self._check_vector(query_vector, "Query")
        if k <= 0:
            return []

        candidates: list[Document | FaqEntry]
        if partition == Partition.DOCUMENTS:
            candidates = [d for d in self._documents.values() if d.property_id == property_id]
        else:
            candidates = [f for f in self._faqs.values() if f.property_id == property_id]
        if not candidates:
            return []

        scores = similarity_to_many(query_vector, [c.embedding for c in candidates])
        scored = [
            (c, float(s)) for c, s in zip(candidates, scores) if float(s) >= min_score
        ]
        scored.sort(key=lambda pair: (pair[1], _recency(pair[0])), reverse=True)
        return [(c.model_copy(deep=True), s) for c, s in scored[:k]]

    async def increment_faq_hit(self, faq_id: str, matched_at: datetime) -> FaqEntry | None:
        async with self._lock:
            entry = self._faqs.get(faq_id)
            if entry is None:
                return None
            entry.hit_count += 1
            entry.last_matched_at = matched_at
            return entry.model_copy(deep=True)

    async def append_unresolved(self, query: UnresolvedQuery) -> None:
        self._check_vector(query.embedding, "Unresolved question")
        async with self._lock:
            self._unresolved[query.uuid] = query.model_copy(deep=True)

    async def list_unresolved(
        self,
        property_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[UnresolvedQuery]:
        rows = [
            q
            for q in self._unresolved.values()
            if q.property_id == property_id
            and (start is None or q.occurred_at >= start)
            and (end is None or q.occurred_at <= end)
        ]
        rows.sort(key=lambda q: q.occurred_at)
        return [q.model_copy(deep=True) for q in rows]

    async def purge_unresolved(
        self,
        property_id: str,
        *,
        ids: list[str] | None = None,
        before: datetime | None = None,
    ) -> int:
        wanted = set(ids) if ids is not None else None
        async with self._lock:
            doomed = [
                q.uuid
                for q in self._unresolved.values()
                if q.property_id == property_id
                and (wanted is None or q.uuid in wanted)
                and (before is None or q.occurred_at < before)
            ]
            for uuid in doomed:
                del self._unresolved[uuid]
        if doomed:
            logger.debug(f"Purged {len(doomed)} unresolved questions for {property_id}")
        return len(doomed)

    async def count_documents(self, property_id: str) -> int:
        return sum(1 for d in self._documents.values() if d.property_id == property_id)

    async def count_faqs(self, property_id: str) -> int:
        return sum(1 for f in self._faqs.values() if f.property_id == property_id)


def _recency(entity: Document | FaqEntry) -> float:
    if isinstance(entity, Document):
        return entity.updated_at.timestamp()
    return entity.created_at.timestamp()
