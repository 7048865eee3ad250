"""
DuckDB storage backend for document and embedding persistence.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb

from ..errors import DocumentNotFound, StoreUnavailable
from .base import DocumentRecord, EmbeddingRecord


logger = logging.getLogger(__name__)

_MEMORY_PATH = ":memory:"
_SIGNATURE_KEY = "embedding_signature"


def _record_position(record_id: str) -> int:
    _, _, suffix = record_id.rpartition("-")
    return int(suffix) if suffix.isdigit() else 0


class DuckDBStorage:
    """DuckDB-backed persistence for documents, chunk embeddings, and settings."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        if db_path == _MEMORY_PATH:
            self.db_path = db_path
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        # One connection shared across threads; access is serialized.
        self._lock = threading.RLock()
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            raise StoreUnavailable(f"Cannot open index at {self.db_path}: {exc}") from exc
        if initialize and not read_only:
            self.initialize()

    @contextmanager
    def _guard(self) -> Iterator[duckdb.DuckDBPyConnection]:
        with self._lock:
            try:
                yield self._conn
            except duckdb.Error as exc:
                raise StoreUnavailable(f"DuckDB operation failed: {exc}") from exc

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()

    def initialize(self) -> None:
        with self._guard() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    source_id VARCHAR PRIMARY KEY,
                    content VARCHAR NOT NULL,
                    metadata_json VARCHAR NOT NULL DEFAULT '{}',
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
            # No primary key: a document's set is deleted and re-inserted
            # inside one transaction.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS embeddings (
                    id VARCHAR NOT NULL,
                    source_id VARCHAR NOT NULL,
                    position INTEGER NOT NULL,
                    chunk_text VARCHAR NOT NULL,
                    vector DOUBLE[] NOT NULL,
                    created_at DOUBLE NOT NULL
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key VARCHAR PRIMARY KEY,
                    value VARCHAR NOT NULL
                );
                """
            )

    # -- embeddings -------------------------------------------------------

    def put_embeddings(self, records: list[EmbeddingRecord]) -> None:
        if not records:
            return
        with self._guard() as conn:
            self._insert_embeddings(conn, records)

    def delete_embeddings(self, source_id: str) -> int:
        with self._guard() as conn:
            deleted = self._count(
                conn,
                "SELECT COUNT(*) FROM embeddings WHERE source_id = ?",
                [source_id],
            )
            conn.execute("DELETE FROM embeddings WHERE source_id = ?", [source_id])
        return deleted

    def replace_embeddings(self, source_id: str, records: list[EmbeddingRecord]) -> None:
        foreign = [record.id for record in records if record.source_id != source_id]
        if foreign:
            raise ValueError(f"Records {foreign} do not belong to document {source_id!r}")

        with self._guard() as conn:
            conn.begin()
            try:
                conn.execute("DELETE FROM embeddings WHERE source_id = ?", [source_id])
                self._insert_embeddings(conn, records)
            except BaseException:
                conn.rollback()
                raise
            conn.commit()
        logger.debug("Replaced embeddings for %s with %d records", source_id, len(records))

    def get_embeddings(self, source_id: str) -> list[EmbeddingRecord]:
        with self._guard() as conn:
            rows = conn.execute(
                """
                SELECT id, vector, source_id, chunk_text, created_at
                FROM embeddings
                WHERE source_id = ?
                ORDER BY position ASC
                """,
                [source_id],
            ).fetchall()
        return [self._row_to_embedding(row) for row in rows]

    def get_all_embeddings(self) -> list[EmbeddingRecord]:
        with self._guard() as conn:
            rows = conn.execute(
                """
                SELECT id, vector, source_id, chunk_text, created_at
                FROM embeddings
                ORDER BY source_id ASC, position ASC
                """
            ).fetchall()
        return [self._row_to_embedding(row) for row in rows]

    def purge_embeddings(self) -> int:
        with self._guard() as conn:
            deleted = self._count(conn, "SELECT COUNT(*) FROM embeddings", [])
            conn.execute("DELETE FROM embeddings")
        logger.info("Purged %d embedding records", deleted)
        return deleted

    def count_embeddings(self) -> int:
        with self._guard() as conn:
            return self._count(conn, "SELECT COUNT(*) FROM embeddings", [])

    # -- documents --------------------------------------------------------

    def put_document(
        self,
        source_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        metadata_json = json.dumps(metadata or {}, sort_keys=True, default=str)
        with self._guard() as conn:
            conn.execute(
                """
                INSERT INTO documents (source_id, content, metadata_json)
                VALUES (?, ?, ?)
                ON CONFLICT(source_id) DO UPDATE SET
                    content = excluded.content,
                    metadata_json = excluded.metadata_json,
                    updated_at = now()
                """,
                [source_id, content, metadata_json],
            )

    def get_document_text(self, source_id: str) -> str:
        row = self._fetch_document(source_id)
        return str(row[1])

    def get_document_metadata(self, source_id: str) -> dict[str, Any]:
        row = self._fetch_document(source_id)
        return json.loads(str(row[2]))

    def list_documents(self) -> list[DocumentRecord]:
        with self._guard() as conn:
            rows = conn.execute(
                """
                SELECT source_id, content, metadata_json
                FROM documents
                ORDER BY source_id ASC
                """
            ).fetchall()
        return [
            DocumentRecord(
                source_id=str(row[0]),
                content=str(row[1]),
                metadata=json.loads(str(row[2])),
            )
            for row in rows
        ]

    def delete_document(self, source_id: str) -> None:
        """Remove a document together with its embeddings."""
        with self._guard() as conn:
            conn.begin()
            try:
                conn.execute("DELETE FROM embeddings WHERE source_id = ?", [source_id])
                conn.execute("DELETE FROM documents WHERE source_id = ?", [source_id])
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    # -- settings ---------------------------------------------------------

    def get_embedding_signature(self) -> str | None:
        with self._guard() as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE key = ?",
                [_SIGNATURE_KEY],
            ).fetchone()
        if row is None:
            return None
        return str(row[0])

    def set_embedding_signature(self, signature: str) -> None:
        with self._guard() as conn:
            conn.execute(
                """
                INSERT INTO settings (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                [_SIGNATURE_KEY, signature],
            )

    # -- helpers ----------------------------------------------------------

    def _fetch_document(self, source_id: str) -> tuple[Any, ...]:
        with self._guard() as conn:
            row = conn.execute(
                """
                SELECT source_id, content, metadata_json
                FROM documents
                WHERE source_id = ?
                LIMIT 1
                """,
                [source_id],
            ).fetchone()
        if row is None:
            raise DocumentNotFound(source_id)
        return row

    @staticmethod
    def _insert_embeddings(
        conn: duckdb.DuckDBPyConnection,
        records: list[EmbeddingRecord],
    ) -> None:
        if not records:
            return
        conn.executemany(
            """
            INSERT INTO embeddings (id, source_id, position, chunk_text, vector, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    record.id,
                    record.source_id,
                    _record_position(record.id),
                    record.chunk_text,
                    [float(value) for value in record.vector],
                    float(record.created_at),
                )
                for record in records
            ],
        )

    @staticmethod
    def _count(conn: duckdb.DuckDBPyConnection, sql: str, params: list[Any]) -> int:
        row = conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    def _row_to_embedding(row: tuple[Any, ...]) -> EmbeddingRecord:
        return EmbeddingRecord(
            id=str(row[0]),
            vector=[float(value) for value in row[1]],
            source_id=str(row[2]),
            chunk_text=str(row[3]),
            created_at=float(row[4]),
        )
