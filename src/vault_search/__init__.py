"""
vault-search - chunked embedding index and hybrid search for markdown notes.

This package splits notes into overlapping chunks, keeps their embeddings
fresh in a DuckDB store, and ranks notes against a query semantically,
lexically, or with both strategies fused.

Example usage:
    >>> from vault_search import DuckDBStorage, EmbeddingPipeline, QueryEngine, Query
    >>> storage = DuckDBStorage("index.duckdb")
    >>> pipeline = EmbeddingPipeline(storage, embedder)
    >>> pipeline.index_folder("notes")
    >>> QueryEngine(storage, embedder).search(Query(text="project goals", strategy="hybrid"))
"""

from .embeddings import (
    BoundedEmbedder,
    EmbeddingCapability,
    GenAIProvider,
    GenerationCapability,
)
from .errors import (
    DegenerateVector,
    DimensionMismatch,
    DocumentNotFound,
    EmbeddingUnavailable,
    StoreUnavailable,
    VaultSearchError,
)
from .indexing import Chunk, EmbeddingPipeline, IndexEvent, IndexingResult, WordChunker
from .models import DateRange, Query, SearchFilters, SearchStrategy
from .search import QueryEngine, SearchResult, cosine_similarity
from .storage import DocumentRecord, DuckDBStorage, EmbeddingRecord, EmbeddingStore

__all__ = [
    # Capabilities
    "BoundedEmbedder",
    "EmbeddingCapability",
    "GenAIProvider",
    "GenerationCapability",
    # Errors
    "DegenerateVector",
    "DimensionMismatch",
    "DocumentNotFound",
    "EmbeddingUnavailable",
    "StoreUnavailable",
    "VaultSearchError",
    # Indexing
    "Chunk",
    "EmbeddingPipeline",
    "IndexEvent",
    "IndexingResult",
    "WordChunker",
    # Search
    "DateRange",
    "Query",
    "SearchFilters",
    "SearchStrategy",
    "QueryEngine",
    "SearchResult",
    "cosine_similarity",
    # Storage
    "DocumentRecord",
    "DuckDBStorage",
    "EmbeddingRecord",
    "EmbeddingStore",
]
