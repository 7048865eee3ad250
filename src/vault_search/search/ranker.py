"""
Ranking helpers for merging retrieval result sets.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class SearchResult:
    """Ranked document hit."""

    source_id: str
    score: float
    matching_chunks: list[str] = field(default_factory=list)
    excerpt: str | None = None
    match_count: int | None = None
    matched_by: str = "semantic"


def rank_results(results: list[SearchResult], *, limit: int) -> list[SearchResult]:
    """Sort by descending score and apply limit."""
    ordered = sorted(results, key=lambda result: (-result.score, result.source_id))
    return ordered[: max(limit, 1)]


def normalize_result_scores(results: list[SearchResult]) -> list[SearchResult]:
    """Scale scores so the best result of the set scores 1.0."""
    top = max((result.score for result in results), default=0.0)
    if top <= 0:
        return list(results)
    return [replace(result, score=result.score / top) for result in results]


def fuse_results(
    semantic: list[SearchResult],
    exact: list[SearchResult],
    *,
    limit: int,
) -> list[SearchResult]:
    """
    Merge semantic and exact hits per document, keeping the higher score.

    Both score scales are taken as-is; callers wanting a common scale should
    pass the sets through ``normalize_result_scores`` first.
    """
    merged: dict[str, SearchResult] = {result.source_id: result for result in semantic}

    for hit in exact:
        existing = merged.get(hit.source_id)
        if existing is None:
            merged[hit.source_id] = hit
            continue
        merged[hit.source_id] = replace(
            existing,
            score=max(existing.score, hit.score),
            match_count=hit.match_count,
            matched_by="semantic+exact",
        )

    return rank_results(list(merged.values()), limit=limit)
