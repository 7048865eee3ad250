"""
Query engine combining semantic, exact, and hybrid retrieval.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

from ..embeddings import EmbeddingCapability, capability_signature
from ..errors import DimensionMismatch, EmbeddingUnavailable
from ..models import Query, SearchFilters
from ..storage import EmbeddingStore
from .excerpt import extract_excerpt
from .exact import exact_search
from .filters import matches_filters
from .ranker import SearchResult, fuse_results, normalize_result_scores, rank_results
from .similarity import cosine_similarity


logger = logging.getLogger(__name__)


class QueryEngine:
    """Rank stored documents against a query, then filter and enrich them."""

    def __init__(
        self,
        store: EmbeddingStore,
        embedder: EmbeddingCapability | None = None,
        *,
        normalize_scores: bool = False,
        max_workers: int = 2,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.normalize_scores = normalize_scores
        self._max_workers = max_workers

    def search(self, query: Query) -> list[SearchResult]:
        if query.strategy == "semantic":
            results = self._semantic_search(query.text, query.limit, query.threshold)
        elif query.strategy == "exact":
            results = self._exact_search(query.text, query.limit)
        else:
            results = self._hybrid_search(query.text, query.limit, query.threshold)

        results = self._filter_results(results, query.filters)
        if query.include_excerpt:
            results = self._enrich_results(results, query.text)

        logger.debug(
            "Query %r (%s) returned %d results",
            query.text,
            query.strategy,
            len(results),
        )
        return results

    def _semantic_search(self, text: str, limit: int, threshold: float) -> list[SearchResult]:
        if self.embedder is None:
            raise EmbeddingUnavailable("No embedding capability configured for semantic search")
        self._check_embedding_config()
        query_vector = self.embedder.embed(text)

        best: dict[str, float] = {}
        chunks: dict[str, list[str]] = {}
        for record in self.store.get_all_embeddings():
            similarity = cosine_similarity(query_vector, record.vector)
            if similarity < threshold:
                continue
            if similarity > best.get(record.source_id, float("-inf")):
                best[record.source_id] = similarity
            chunks.setdefault(record.source_id, []).append(record.chunk_text)

        results = [
            SearchResult(
                source_id=source_id,
                score=score,
                matching_chunks=chunks[source_id],
                matched_by="semantic",
            )
            for source_id, score in best.items()
        ]
        return rank_results(results, limit=limit)

    def _check_embedding_config(self) -> None:
        """Refuse to compare a query vector with vectors from another embedding config."""
        signature = capability_signature(self.embedder)
        if signature is None:
            return
        stored = self.store.get_embedding_signature()
        if stored is not None and stored != signature:
            raise DimensionMismatch(
                f"Index was built with embedding config {stored!r}, "
                f"query uses {signature!r}; re-index before searching"
            )

    def _exact_search(self, text: str, limit: int) -> list[SearchResult]:
        return exact_search(self.store.list_documents(), text, limit=limit)

    def _hybrid_search(self, text: str, limit: int, threshold: float) -> list[SearchResult]:
        candidate_limit = limit * 2
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            semantic_future = executor.submit(
                self._semantic_search, text, candidate_limit, threshold
            )
            exact_future = executor.submit(self._exact_search, text, candidate_limit)
            # An embedding failure surfaces here; there is no exact-only fallback.
            semantic_results = semantic_future.result()
            exact_results = exact_future.result()

        if self.normalize_scores:
            semantic_results = normalize_result_scores(semantic_results)
            exact_results = normalize_result_scores(exact_results)
        return fuse_results(semantic_results, exact_results, limit=limit)

    def _filter_results(
        self,
        results: list[SearchResult],
        filters: SearchFilters,
    ) -> list[SearchResult]:
        if filters.is_empty():
            return results
        return [
            result
            for result in results
            if matches_filters(self.store.get_document_metadata(result.source_id), filters)
        ]

    def _enrich_results(self, results: list[SearchResult], text: str) -> list[SearchResult]:
        return [
            replace(
                result,
                excerpt=extract_excerpt(self.store.get_document_text(result.source_id), text),
            )
            for result in results
        ]
