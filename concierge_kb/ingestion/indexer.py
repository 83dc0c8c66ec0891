"""
Property Indexer

Keeps a property's Documents in the knowledge store in step with its raw data.

Pipeline:
    1. Chunk the raw property data
    2. Diff against stored Documents by (source_type, content_hash)
    3. Embed every new chunk (batched) before touching the store
    4. Upsert new chunks, then delete chunks whose content disappeared

Re-indexing identical data performs no writes. An embedding failure aborts
the pass with the store unchanged; a storage failure mid-pass leaves every
completed upsert in place.

Indexing passes for the same property are serialized.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from typing import TYPE_CHECKING

from concierge_kb.config import ConciergeConfig
from concierge_kb.errors import EmbeddingUnavailable, InvalidInput
from concierge_kb.ingestion.chunking import chunk_property_data
from concierge_kb.types import (
    ChunkInput,
    Document,
    IndexResult,
    PropertyData,
    SourceType,
    document_id,
    utc_now,
)
from concierge_kb.utils.usage_telemetry import usage_stage

if TYPE_CHECKING:
    from concierge_kb.providers.base import EmbeddingProvider
    from concierge_kb.storage.base import KnowledgeStore

logger = logging.getLogger(__name__)


class Indexer:
    """Chunks, embeds and stores property content."""

    def __init__(
        self,
        store: "KnowledgeStore",
        embeddings: "EmbeddingProvider",
        config: ConciergeConfig | None = None,
    ) -> None:
        self.store = store
        self.embeddings = embeddings
        self.config = config or ConciergeConfig()
        # Per-property locks, dropped once no pass holds or awaits them
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: defaultdict[str, int] = defaultdict(int)

    async def index_property(self, property_id: str, raw_data: PropertyData) -> IndexResult:
        """
        Index (or re-index) one property.

        Args:
            property_id: Property to index
            raw_data: Everything currently known about the property

        Returns:
            IndexResult with added/removed/unchanged counts

        Raises:
            InvalidInput: Blank property id
            EmbeddingUnavailable: Embedding failed; store untouched
            StorageUnavailable: Store failed mid-pass
        """
        if not property_id or not property_id.strip():
            raise InvalidInput("property_id is required")

        lock = self._locks.setdefault(property_id, asyncio.Lock())
        self._lock_users[property_id] += 1
        try:
            async with lock:
                return await self._index(property_id, raw_data)
        finally:
            self._lock_users[property_id] -= 1
            if not self._lock_users[property_id]:
                del self._lock_users[property_id]
                del self._locks[property_id]

    async def _index(self, property_id: str, raw_data: PropertyData) -> IndexResult:
        start = time.perf_counter()

        chunks = chunk_property_data(
            raw_data,
            max_tokens=self.config.chunk_max_tokens,
            model=self.config.llm_model,
        )
        existing = await self.store.list_documents(property_id)

        existing_keys: dict[tuple[SourceType, str], Document] = {
            (d.source_type, d.content_hash): d for d in existing
        }
        wanted_keys = {(c.source_type, c.content_hash) for c in chunks}

        new_chunks = [c for c in chunks if (c.source_type, c.content_hash) not in existing_keys]
        stale = [d for key, d in existing_keys.items() if key not in wanted_keys]
        unchanged = len(chunks) - len(new_chunks)

        logger.debug(
            f"Index diff for {property_id}: {len(new_chunks)} new, "
            f"{len(stale)} stale, {unchanged} unchanged"
        )

        documents = await self._embed_chunks(property_id, new_chunks)

        if not await self.store.property_exists(property_id):
            await self.store.register_property(property_id)

        for document in documents:
            await self.store.upsert(document)
        for document in stale:
            await self.store.delete(document.uuid)

        duration = time.perf_counter() - start
        logger.info(
            f"Indexed {property_id}: {len(chunks)} chunks "
            f"(+{len(documents)} -{len(stale)} ={unchanged}) in {duration:.2f}s"
        )

        return IndexResult(
            property_id=property_id,
            indexed_chunks=len(chunks),
            added=len(documents),
            removed=len(stale),
            unchanged=unchanged,
            duration_seconds=duration,
        )

    async def _embed_chunks(self, property_id: str, chunks: list[ChunkInput]) -> list[Document]:
        if not chunks:
            return []

        with usage_stage("indexing"):
            vectors = await self.embeddings.embed([c.text for c in chunks])

        if len(vectors) != len(chunks):
            raise EmbeddingUnavailable(
                f"Embedding returned {len(vectors)} vectors for {len(chunks)} chunks"
            )

        now = utc_now()
        return [
            Document(
                uuid=document_id(property_id, chunk.source_type, chunk.content_hash),
                property_id=property_id,
                source_type=chunk.source_type,
                text=chunk.text,
                content_hash=chunk.content_hash,
                embedding=vector,
                updated_at=now,
            )
            for chunk, vector in zip(chunks, vectors)
        ]
