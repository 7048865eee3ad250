"""Indexing components for vault-search."""

from .chunker import Chunk, WordChunker, clean_chunk
from .frontmatter import extract_frontmatter
from .pipeline import EmbeddingPipeline, IndexEvent, IndexingResult

__all__ = [
    "Chunk",
    "WordChunker",
    "clean_chunk",
    "extract_frontmatter",
    "EmbeddingPipeline",
    "IndexEvent",
    "IndexingResult",
]
