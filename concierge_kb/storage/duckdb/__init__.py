"""
DuckDB Knowledge Store

Embedded single-file store; see store.py for the table layout.
"""

from concierge_kb.storage.duckdb.store import DuckDBKnowledgeStore

__all__ = ["DuckDBKnowledgeStore"]
