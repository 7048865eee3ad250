"""
Storage interfaces and data models for embedding persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


def make_record_id(source_id: str, index: int) -> str:
    return f"{source_id}-{index}"


@dataclass(frozen=True)
class EmbeddingRecord:
    """An embedded chunk of a document."""

    id: str
    vector: list[float]
    source_id: str
    chunk_text: str
    created_at: float


@dataclass(frozen=True)
class DocumentRecord:
    """A stored document with its front-matter metadata."""

    source_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


class EmbeddingStore(Protocol):
    """Protocol for persistence operations used by indexing and search."""

    def put_embeddings(self, records: list[EmbeddingRecord]) -> None:
        """Insert embedding records."""

    def delete_embeddings(self, source_id: str) -> int:
        """Delete every embedding record of a document. Return count deleted."""

    def replace_embeddings(self, source_id: str, records: list[EmbeddingRecord]) -> None:
        """Atomically swap a document's embedding set for *records*."""

    def get_embeddings(self, source_id: str) -> list[EmbeddingRecord]:
        """Return a document's embedding records ordered by chunk index."""

    def get_all_embeddings(self) -> list[EmbeddingRecord]:
        """Full scan of every embedding record."""

    def put_document(
        self,
        source_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Insert or update a document's text and metadata."""

    def get_document_text(self, source_id: str) -> str:
        """Return a document's text or raise ``DocumentNotFound``."""

    def get_document_metadata(self, source_id: str) -> dict[str, Any]:
        """Return a document's metadata map or raise ``DocumentNotFound``."""

    def list_documents(self) -> list[DocumentRecord]:
        """List every stored document."""

    def get_embedding_signature(self) -> str | None:
        """Return the embedding configuration the stored vectors belong to."""

    def set_embedding_signature(self, signature: str) -> None:
        """Record the embedding configuration of newly written vectors."""

    def purge_embeddings(self) -> int:
        """Delete every embedding record. Return count deleted."""
