"""
Exception taxonomy for indexing and search.

Nothing here is retried by the package itself; retry and backoff belong to
the capability adapter supplied by the host application.
"""

from __future__ import annotations


class VaultSearchError(Exception):
    """Base class for all vault-search errors."""


class EmbeddingUnavailable(VaultSearchError):
    """The embedding (or generation) provider call failed."""


class SimilarityError(VaultSearchError):
    """A similarity computation was attempted on invalid vectors."""


class DegenerateVector(SimilarityError):
    """One of the vectors has zero magnitude."""


class DimensionMismatch(SimilarityError):
    """Vectors of different (or zero) dimensionality were compared."""


class StoreUnavailable(VaultSearchError):
    """The embedding store failed to serve or persist a request."""


class DocumentNotFound(VaultSearchError):
    """The store holds no document for the requested source id."""

    def __init__(self, source_id: str) -> None:
        super().__init__(f"No such document: {source_id}")
        self.source_id = source_id
