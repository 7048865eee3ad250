"""Storage backends for vault-search."""

from .base import DocumentRecord, EmbeddingRecord, EmbeddingStore, make_record_id
from .duckdb import DuckDBStorage

__all__ = [
    "DocumentRecord",
    "EmbeddingRecord",
    "EmbeddingStore",
    "make_record_id",
    "DuckDBStorage",
]
