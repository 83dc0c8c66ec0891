"""
Knowledge Store Backends

Modules:
    base: Abstract KnowledgeStore interface
    memory: Process-local dictionaries
    duckdb/: Embedded DuckDB file

Example:
    >>> from concierge_kb.storage import DuckDBKnowledgeStore
    >>> async with DuckDBKnowledgeStore("./kb.duckdb", dimensions=1536) as store:
    ...     hits = await store.query_nearest("prop-1", vector, Partition.FAQS, k=3)
"""

from concierge_kb.storage.base import KnowledgeStore
from concierge_kb.storage.duckdb import DuckDBKnowledgeStore
from concierge_kb.storage.memory import MemoryKnowledgeStore

__all__ = ["KnowledgeStore", "DuckDBKnowledgeStore", "MemoryKnowledgeStore"]
