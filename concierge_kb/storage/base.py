"""
Abstract Knowledge Store Interface

Defines the contract for all knowledge store backends.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from concierge_kb.errors import InvalidInput
from concierge_kb.types import (
    Document,
    FaqEntry,
    Partition,
    UnresolvedQuery,
)


class KnowledgeStore(ABC):
    """
    Abstract interface for knowledge stores.

    Persists Documents, FAQ entries and unresolved visitor questions, and
    answers nearest-neighbour queries over their embeddings.

    Multi-tenancy:
        Every read and search is scoped to one property_id. A query for one
        property never returns another property's rows.

    Vectors:
        The store is created for a fixed embedding dimensionality. Writing
        or searching with a vector of any other size raises InvalidInput.

    Lifecycle:
        store = DuckDBKnowledgeStore(path, dimensions=1536)
        await store.initialize()
        # ... operations ...
        await store.close()

    Or using context manager:
        async with DuckDBKnowledgeStore(path, dimensions=1536) as store:
            await store.upsert(document)

    Failures:
        An unreachable backend or a call exceeding the store timeout raises
        StorageUnavailable.
    """

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Embedding dimensionality accepted by this store."""
        ...

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize storage (create tables)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close storage and release resources."""
        ...

    async def __aenter__(self) -> "KnowledgeStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _check_vector(self, vector: Sequence[float], what: str) -> None:
        if len(vector) != self.dimensions:
            raise InvalidInput(
                f"{what} embedding has {len(vector)} dimensions, store expects {self.dimensions}"
            )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @abstractmethod
    async def register_property(self, property_id: str) -> None:
        """Register a property so FAQ entries may reference it. Idempotent."""
        ...

    @abstractmethod
    async def property_exists(self, property_id: str) -> bool:
        ...

    # -------------------------------------------------------------------------
    # Documents & FAQ entries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert(self, document: Document) -> None:
        """Insert or replace a Document (text and vector together)."""
        ...

    @abstractmethod
    async def upsert_faq(self, entry: FaqEntry) -> None:
        """
        Insert or replace a FAQ entry.

        Replacing an existing entry keeps its stored hit_count and
        last_matched_at; counters change only through increment_faq_hit.

        Raises:
            InvalidInput: The entry's property is not registered
        """
        ...

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """Delete a Document or FAQ entry by id. Returns True if a row was removed."""
        ...

    @abstractmethod
    async def list_documents(self, property_id: str) -> list[Document]:
        ...

    @abstractmethod
    async def get_faq(self, faq_id: str) -> FaqEntry | None:
        ...

    @abstractmethod
    async def list_faqs(self, property_id: str) -> list[FaqEntry]:
        ...

    # -------------------------------------------------------------------------
    # Vector Search
    # -------------------------------------------------------------------------

    @abstractmethod
    async def query_nearest(
        self,
        property_id: str,
        query_vector: list[float],
        partition: Partition,
        k: int,
        min_score: float = -1.0,
    ) -> list[tuple[Document | FaqEntry, float]]:
        """
        Nearest neighbours of a vector within one property's partition.

        Returns at most k (entity, cosine similarity) pairs with score >=
        min_score, ordered by score descending; ties go to the most recently
        updated (Documents) or created (FAQ entries) entity. Returns an empty
        list when nothing qualifies.
        """
        ...

    @abstractmethod
    async def increment_faq_hit(self, faq_id: str, matched_at: datetime) -> FaqEntry | None:
        """
        Atomically add one to a FAQ's hit_count and set last_matched_at.

        Returns the updated entry, or None if it no longer exists.
        """
        ...

    # -------------------------------------------------------------------------
    # Unresolved Questions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def append_unresolved(self, query: UnresolvedQuery) -> None:
        ...

    @abstractmethod
    async def list_unresolved(
        self,
        property_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[UnresolvedQuery]:
        """Unresolved questions with start <= occurred_at <= end, oldest first."""
        ...

    @abstractmethod
    async def purge_unresolved(
        self,
        property_id: str,
        *,
        ids: list[str] | None = None,
        before: datetime | None = None,
    ) -> int:
        """
        Delete unresolved questions of a property.

        Args:
            ids: Only these rows
            before: Only rows that occurred before this time

        Returns:
            Number of rows deleted
        """
        ...

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    @abstractmethod
    async def count_documents(self, property_id: str) -> int:
        ...

    @abstractmethod
    async def count_faqs(self, property_id: str) -> int:
        ...
