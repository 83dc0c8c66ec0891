"""
DuckDB Knowledge Store

Embedded, file-backed knowledge store.

Tables:
    store_info          - store-wide settings (embedding dimensions)
    properties          - registered property ids
    documents           - indexed chunks with FLOAT[] embeddings
    faqs                - FAQ entries with FLOAT[] embeddings and hit counters
    unresolved_queries  - questions no FAQ answered with high confidence

Similarity search uses DuckDB's list_cosine_similarity. Hit counting is a
single `UPDATE ... RETURNING` statement. Rows with FLOAT[] columns are
replaced by delete + insert inside one transaction, never updated in place.
Replacing a FAQ keeps the stored hit_count and last_matched_at.

Thread safety:
    DuckDB connections are not thread-safe and asyncio.to_thread() may run
    on different threads, so each worker thread gets its own cursor on the
    shared database. Writes are serialized with a lock; DuckDB rejects
    concurrent conflicting updates instead of queueing them.

Timestamps are stored as naive UTC and returned timezone-aware.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import duckdb

from concierge_kb.errors import InvalidInput, StorageUnavailable
from concierge_kb.storage.base import KnowledgeStore
from concierge_kb.types import (
    Document,
    FaqEntry,
    MatchKind,
    Partition,
    SourceType,
    UnresolvedQuery,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS store_info (
        key VARCHAR PRIMARY KEY,
        value VARCHAR NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS properties (
        property_id VARCHAR PRIMARY KEY,
        registered_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS documents (
        uuid VARCHAR PRIMARY KEY,
        property_id VARCHAR NOT NULL,
        source_type VARCHAR NOT NULL,
        text VARCHAR NOT NULL,
        content_hash VARCHAR NOT NULL,
        embedding FLOAT[] NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS faqs (
        uuid VARCHAR PRIMARY KEY,
        property_id VARCHAR NOT NULL,
        question VARCHAR NOT NULL,
        answer VARCHAR NOT NULL,
        embedding FLOAT[] NOT NULL,
        hit_count INTEGER NOT NULL DEFAULT 0,
        last_matched_at TIMESTAMP,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS unresolved_queries (
        uuid VARCHAR PRIMARY KEY,
        property_id VARCHAR NOT NULL,
        text VARCHAR NOT NULL,
        embedding FLOAT[] NOT NULL,
        occurred_at TIMESTAMP NOT NULL,
        session_id VARCHAR,
        origin VARCHAR NOT NULL
    )
    """,
]

_DOCUMENT_COLUMNS = "uuid, property_id, source_type, text, content_hash, embedding, updated_at"
_FAQ_COLUMNS = (
    "uuid, property_id, question, answer, embedding, hit_count, last_matched_at, created_at"
)
_UNRESOLVED_COLUMNS = "uuid, property_id, text, embedding, occurred_at, session_id, origin"


def _to_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _row_to_document(row: tuple) -> Document:
    return Document(
        uuid=row[0],
        property_id=row[1],
        source_type=SourceType(row[2]),
        text=row[3],
        content_hash=row[4],
        embedding=list(row[5]),
        updated_at=_from_db(row[6]),
    )


def _row_to_faq(row: tuple) -> FaqEntry:
    return FaqEntry(
        uuid=row[0],
        property_id=row[1],
        question=row[2],
        answer=row[3],
        embedding=list(row[4]),
        hit_count=row[5],
        last_matched_at=_from_db(row[6]),
        created_at=_from_db(row[7]),
    )


def _row_to_unresolved(row: tuple) -> UnresolvedQuery:
    return UnresolvedQuery(
        uuid=row[0],
        property_id=row[1],
        text=row[2],
        embedding=list(row[3]),
        occurred_at=_from_db(row[4]),
        session_id=row[5],
        origin=MatchKind(row[6]),
    )


class DuckDBKnowledgeStore(KnowledgeStore):
    """
    Knowledge store in an embedded DuckDB database.

    Args:
        path: Database file, or ":memory:" for a private in-process database
        dimensions: Embedding dimensionality accepted by the store
        timeout: Seconds allowed for one store call
    """

    def __init__(
        self,
        path: str | Path,
        dimensions: int,
        *,
        timeout: float = 5.0,
    ) -> None:
        self._path = str(path)
        self._dimensions = dimensions
        self._timeout = timeout
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._local = threading.local()
        self._write_lock = threading.Lock()

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def path(self) -> str:
        return self._path

    async def initialize(self) -> None:
        """Open the database and create tables."""
        if self._conn is not None:
            return

        def _init() -> duckdb.DuckDBPyConnection:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            conn = duckdb.connect(self._path)
            for statement in _SCHEMA:
                conn.execute(statement)
            row = conn.execute(
                "SELECT value FROM store_info WHERE key = 'dimensions'"
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO store_info VALUES ('dimensions', ?)", [str(self._dimensions)]
                )
            elif int(row[0]) != self._dimensions:
                conn.close()
                raise InvalidInput(
                    f"Knowledge store at {self._path} holds {row[0]}-dimensional embeddings, "
                    f"not {self._dimensions}"
                )
            return conn

        try:
            self._conn = await asyncio.to_thread(_init)
        except duckdb.Error as e:
            raise StorageUnavailable(f"Cannot open knowledge store at {self._path}: {e}") from e
        logger.info(f"Knowledge store ready at {self._path} ({self._dimensions} dims)")

    async def close(self) -> None:
        """Close the database."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._local = threading.local()

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        """Get thread-local cursor, creating if needed."""
        if self._conn is None:
            raise StorageUnavailable("Knowledge store not initialized. Call initialize() first.")

        cursor = getattr(self._local, "cursor", None)
        if cursor is None:
            cursor = self._conn.cursor()
            self._local.cursor = cursor
        return cursor

    async def _run(self, fn: Callable[[duckdb.DuckDBPyConnection], R], *, write: bool = False) -> R:
        """
        Run fn on a worker thread with the store timeout.

        Writes run in one transaction each, so readers never see a
        half-applied delete + insert and a failed write changes nothing.
        """

        def _call() -> R:
            cursor = self._cursor()
            if not write:
                return fn(cursor)
            with self._write_lock:
                cursor.begin()
                try:
                    result = fn(cursor)
                except BaseException:
                    cursor.rollback()
                    raise
                cursor.commit()
                return result

        try:
            return await asyncio.wait_for(asyncio.to_thread(_call), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise StorageUnavailable(
                f"Knowledge store did not respond within {self._timeout}s"
            ) from e
        except duckdb.Error as e:
            raise StorageUnavailable(f"Knowledge store error: {e}") from e

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    async def register_property(self, property_id: str) -> None:
        def _write(cur: duckdb.DuckDBPyConnection) -> None:
            cur.execute(
                "INSERT INTO properties VALUES (?, ?) ON CONFLICT DO NOTHING",
                [property_id, _to_db(datetime.now(timezone.utc))],
            )

        await self._run(_write, write=True)

    async def property_exists(self, property_id: str) -> bool:
        def _query(cur: duckdb.DuckDBPyConnection) -> bool:
            row = cur.execute(
                "SELECT 1 FROM properties WHERE property_id = ?", [property_id]
            ).fetchone()
            return row is not None

        return await self._run(_query)

    # -------------------------------------------------------------------------
    # Documents & FAQ entries
    # -------------------------------------------------------------------------

    async def upsert(self, document: Document) -> None:
        self._check_vector(document.embedding, "Document")

        def _write(cur: duckdb.DuckDBPyConnection) -> None:
            cur.execute("DELETE FROM documents WHERE uuid = ?", [document.uuid])
            cur.execute(
                f"INSERT INTO documents ({_DOCUMENT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    document.uuid,
                    document.property_id,
                    document.source_type.value,
                    document.text,
                    document.content_hash,
                    document.embedding,
                    _to_db(document.updated_at),
                ],
            )

        await self._run(_write, write=True)

    async def upsert_faq(self, entry: FaqEntry) -> None:
        self._check_vector(entry.embedding, "FAQ")
        if not await self.property_exists(entry.property_id):
            raise InvalidInput(f"Unknown property: {entry.property_id}")

        def _write(cur: duckdb.DuckDBPyConnection) -> None:
            counters = cur.execute(
                "DELETE FROM faqs WHERE uuid = ? RETURNING hit_count, last_matched_at",
                [entry.uuid],
            ).fetchone()
            hit_count, last_matched_at = counters or (entry.hit_count, _to_db(entry.last_matched_at))
            cur.execute(
                f"INSERT INTO faqs ({_FAQ_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    entry.uuid,
                    entry.property_id,
                    entry.question,
                    entry.answer,
                    entry.embedding,
                    hit_count,
                    last_matched_at,
                    _to_db(entry.created_at),
                ],
            )

        await self._run(_write, write=True)

    async def delete(self, entity_id: str) -> bool:
        def _write(cur: duckdb.DuckDBPyConnection) -> bool:
            for table in ("documents", "faqs"):
                row = cur.execute(
                    f"DELETE FROM {table} WHERE uuid = ? RETURNING uuid", [entity_id]
                ).fetchone()
                if row is not None:
                    return True
            return False

        return await self._run(_write, write=True)

    async def list_documents(self, property_id: str) -> list[Document]:
        def _query(cur: duckdb.DuckDBPyConnection) -> list[Document]:
            rows = cur.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE property_id = ? ORDER BY uuid",
                [property_id],
            ).fetchall()
            return [_row_to_document(r) for r in rows]

        return await self._run(_query)

    async def get_faq(self, faq_id: str) -> FaqEntry | None:
        def _query(cur: duckdb.DuckDBPyConnection) -> FaqEntry | None:
            row = cur.execute(
                f"SELECT {_FAQ_COLUMNS} FROM faqs WHERE uuid = ?", [faq_id]
            ).fetchone()
            return _row_to_faq(row) if row else None

        return await self._run(_query)

    async def list_faqs(self, property_id: str) -> list[FaqEntry]:
        def _query(cur: duckdb.DuckDBPyConnection) -> list[FaqEntry]:
            rows = cur.execute(
                f"SELECT {_FAQ_COLUMNS} FROM faqs WHERE property_id = ? ORDER BY created_at",
                [property_id],
            ).fetchall()
            return [_row_to_faq(r) for r in rows]

        return await self._run(_query)

    # -------------------------------------------------------------------------
    # Vector Search
    # -------------------------------------------------------------------------

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

        if partition == Partition.DOCUMENTS:
            table, columns, recency, convert = (
                "documents", _DOCUMENT_COLUMNS, "updated_at", _row_to_document
            )
        else:
            table, columns, recency, convert = "faqs", _FAQ_COLUMNS, "created_at", _row_to_faq

        sql = f"""
            SELECT * FROM (
                SELECT {columns},
                       list_cosine_similarity(embedding, CAST(? AS FLOAT[])) AS score
                FROM {table}
                WHERE property_id = ?
            )
            WHERE score >= ? AND NOT isnan(score)
            ORDER BY score DESC, {recency} DESC
            LIMIT ?
        """

        def _query(cur: duckdb.DuckDBPyConnection) -> list[tuple[Any, float]]:
            rows = cur.execute(sql, [query_vector, property_id, min_score, k]).fetchall()
            return [(convert(row[:-1]), float(row[-1])) for row in rows]

        return await self._run(_query)

    async def increment_faq_hit(self, faq_id: str, matched_at: datetime) -> FaqEntry | None:
        def _write(cur: duckdb.DuckDBPyConnection) -> FaqEntry | None:
            row = cur.execute(
                f"""
                UPDATE faqs
                SET hit_count = hit_count + 1, last_matched_at = ?
                WHERE uuid = ?
                RETURNING {_FAQ_COLUMNS}
                """,
                [_to_db(matched_at), faq_id],
            ).fetchone()
            return _row_to_faq(row) if row else None

        return await self._run(_write, write=True)

    # -------------------------------------------------------------------------
    # Unresolved Questions
    # -------------------------------------------------------------------------

    async def append_unresolved(self, query: UnresolvedQuery) -> None:
        self._check_vector(query.embedding, "Unresolved question")

        def _write(cur: duckdb.DuckDBPyConnection) -> None:
            cur.execute(
                f"INSERT INTO unresolved_queries ({_UNRESOLVED_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    query.uuid,
                    query.property_id,
                    query.text,
                    query.embedding,
                    _to_db(query.occurred_at),
                    query.session_id,
                    query.origin.value,
                ],
            )

        await self._run(_write, write=True)

    async def list_unresolved(
        self,
        property_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[UnresolvedQuery]:
        clauses = ["property_id = ?"]
        params: list[Any] = [property_id]
        if start is not None:
            clauses.append("occurred_at >= ?")
            params.append(_to_db(start))
        if end is not None:
            clauses.append("occurred_at <= ?")
            params.append(_to_db(end))

        def _query(cur: duckdb.DuckDBPyConnection) -> list[UnresolvedQuery]:
            rows = cur.execute(
                f"SELECT {_UNRESOLVED_COLUMNS} FROM unresolved_queries "
                f"WHERE {' AND '.join(clauses)} ORDER BY occurred_at",
                params,
            ).fetchall()
            return [_row_to_unresolved(r) for r in rows]

        return await self._run(_query)

    async def purge_unresolved(
        self,
        property_id: str,
        *,
        ids: list[str] | None = None,
        before: datetime | None = None,
    ) -> int:
        if ids is not None and not ids:
            return 0

        clauses = ["property_id = ?"]
        params: list[Any] = [property_id]
        if ids is not None:
            clauses.append(f"uuid IN ({','.join('?' for _ in ids)})")
            params.extend(ids)
        if before is not None:
            clauses.append("occurred_at < ?")
            params.append(_to_db(before))

        def _write(cur: duckdb.DuckDBPyConnection) -> int:
            rows = cur.execute(
                f"DELETE FROM unresolved_queries WHERE {' AND '.join(clauses)} RETURNING uuid",
                params,
            ).fetchall()
            return len(rows)

        deleted = await self._run(_write, write=True)
        if deleted:
            logger.debug(f"Purged {deleted} unresolved questions for {property_id}")
        return deleted

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def _count(self, table: str, property_id: str) -> int:
        def _query(cur: duckdb.DuckDBPyConnection) -> int:
            row = cur.execute(
                f"SELECT COUNT(*) FROM {table} WHERE property_id = ?", [property_id]
            ).fetchone()
            return int(row[0]) if row else 0

        return await self._run(_query)

    async def count_documents(self, property_id: str) -> int:
        return await self._count("documents", property_id)

    async def count_faqs(self, property_id: str) -> int:
        return await self._count("faqs", property_id)
