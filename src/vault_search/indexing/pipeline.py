"""
Embedding pipeline orchestration.

``ensure_fresh`` is the per-document unit of work: serve a fresh cached
record set, or chunk, embed and atomically replace it. Batch entry points
run that unit across documents in a thread pool and isolate failures.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .. import index_config
from ..embeddings import EmbeddingCapability, capability_signature
from ..storage import EmbeddingRecord, EmbeddingStore, make_record_id
from .chunker import WordChunker
from .frontmatter import extract_frontmatter


logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset({".md", ".markdown", ".txt"})

IndexEventKind = Literal["replaced", "purged"]


@dataclass(frozen=True)
class IndexEvent:
    """Notification published after a store mutation."""

    source_id: str | None
    kind: IndexEventKind
    record_count: int


IndexListener = Callable[[IndexEvent], None]


@dataclass(frozen=True)
class IndexingResult:
    """Summary output for an indexing run."""

    indexed_documents: int
    embeddings_served: int
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def failed_documents(self) -> int:
        return len(self.failures)


class _KeyedLocks:
    """
    Lock per key, created on first use.

    An entry is removed once no thread holds or waits for its lock.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                _, users = self._locks[key]
                if users <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)


class EmbeddingPipeline:
    """Keep per-document chunk embeddings fresh in an embedding store."""

    def __init__(
        self,
        store: EmbeddingStore,
        embedder: EmbeddingCapability,
        chunker: WordChunker | None = None,
        *,
        cache_expiration: float | None = None,
        max_workers: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.chunker = chunker or WordChunker(
            chunk_size=index_config.chunk_size(),
            overlap=index_config.chunk_overlap(),
        )
        self.cache_expiration = (
            cache_expiration if cache_expiration is not None else index_config.cache_expiration()
        )
        self._max_workers = max_workers or index_config.max_workers()
        self._clock = clock
        self._document_locks = _KeyedLocks()
        self._listeners: list[IndexListener] = []
        self._config_lock = threading.Lock()
        self._config_checked = False

    # -- observers --------------------------------------------------------

    def subscribe(self, listener: IndexListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: IndexListener) -> None:
        self._listeners.remove(listener)

    def _publish(self, event: IndexEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Index listener %r failed on %s", listener, event)

    # -- configuration ----------------------------------------------------

    def sync_embedding_config(self) -> bool:
        """
        Purge stored embeddings if they came from a different embedding config.

        Returns True when a purge happened.
        """
        with self._config_lock:
            signature = capability_signature(self.embedder)
            stored = self.store.get_embedding_signature() if signature else None
            if signature is None or stored == signature:
                self._config_checked = True
                return False

            purged = 0
            if stored is not None:
                purged = self.store.purge_embeddings()
                logger.info(
                    "Embedding config changed from %s to %s; purged %d records",
                    stored,
                    signature,
                    purged,
                )
            self.store.set_embedding_signature(signature)
            self._config_checked = True

        if stored is not None:
            self._publish(IndexEvent(source_id=None, kind="purged", record_count=purged))
        return stored is not None

    # -- per-document -----------------------------------------------------

    def ensure_fresh(
        self,
        source_id: str,
        text: str,
        cache_expiration: float | None = None,
    ) -> list[EmbeddingRecord]:
        """
        Store the document and return fresh embedding records for it.

        The text and its front matter are always written so queries can filter
        and excerpt the document; embeddings are regenerated only when stale.
        """
        if not self._config_checked:
            self.sync_embedding_config()

        expiration = self.cache_expiration if cache_expiration is None else cache_expiration
        with self._document_locks.hold(source_id):
            self.store.put_document(source_id, text, extract_frontmatter(text))
            existing = self.store.get_embeddings(source_id)
            # A document's records are written as one set, so one stamp speaks for all.
            if existing and self._is_fresh(existing[0], expiration):
                logger.debug("Serving %d cached records for %s", len(existing), source_id)
                return existing

            records = self._embed_document(source_id, text)
            self.store.replace_embeddings(source_id, records)

        logger.info("Embedded %s into %d chunks", source_id, len(records))
        self._publish(IndexEvent(source_id=source_id, kind="replaced", record_count=len(records)))
        return records

    def _is_fresh(self, record: EmbeddingRecord, expiration: float) -> bool:
        return self._clock() - record.created_at < expiration

    def _embed_document(self, source_id: str, text: str) -> list[EmbeddingRecord]:
        chunks = self.chunker.chunk(text, source_id=source_id)
        vectors = [self.embedder.embed(chunk.text) for chunk in chunks]
        created_at = self._clock()
        return [
            EmbeddingRecord(
                id=make_record_id(source_id, chunk.index),
                vector=list(vector),
                source_id=source_id,
                chunk_text=chunk.text,
                created_at=created_at,
            )
            for chunk, vector in zip(chunks, vectors)
        ]

    # -- batch ------------------------------------------------------------

    def index_documents(
        self,
        documents: Mapping[str, str],
        *,
        cache_expiration: float | None = None,
    ) -> IndexingResult:
        """Store and embed many documents; one document's failure spares the rest."""
        if not documents:
            return IndexingResult(indexed_documents=0, embeddings_served=0)

        if not self._config_checked:
            self.sync_embedding_config()

        def _index_one(item: tuple[str, str]) -> tuple[str, int | None, str | None]:
            source_id, text = item
            try:
                records = self.ensure_fresh(source_id, text, cache_expiration)
            except Exception as exc:
                logger.warning("Indexing %s failed: %s", source_id, exc)
                return source_id, None, f"{type(exc).__name__}: {exc}"
            return source_id, len(records), None

        indexed = 0
        served = 0
        failures: dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            for source_id, count, error in executor.map(_index_one, sorted(documents.items())):
                if error is not None:
                    failures[source_id] = error
                    continue
                indexed += 1
                served += count or 0

        return IndexingResult(
            indexed_documents=indexed,
            embeddings_served=served,
            failures=failures,
        )

    def index_folder(
        self,
        folder: str,
        *,
        cache_expiration: float | None = None,
    ) -> IndexingResult:
        root = Path(folder).resolve()
        if not root.is_dir():
            raise ValueError(f"No such directory: {root}")

        documents: dict[str, str] = {}
        for file_path in self._iter_supported_files(str(root)):
            relative_path = Path(os.path.relpath(file_path, root)).as_posix()
            documents[relative_path] = Path(file_path).read_text(encoding="utf-8", errors="replace")

        return self.index_documents(documents, cache_expiration=cache_expiration)

    @staticmethod
    def _iter_supported_files(root: str) -> list[str]:
        files: list[str] = []
        for current_root, _, filenames in os.walk(root):
            for filename in filenames:
                ext = Path(filename).suffix.lower()
                if ext in SUPPORTED_EXTENSIONS:
                    files.append(str(Path(current_root) / filename))
        files.sort()
        return files
