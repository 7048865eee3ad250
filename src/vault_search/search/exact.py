"""
Lexical match-density search.
"""

from __future__ import annotations

import re

from ..storage import DocumentRecord
from .ranker import SearchResult, rank_results


def query_terms(query: str) -> list[str]:
    """Lower-cased, whitespace-delimited query terms."""
    return query.lower().split()


def count_matches(content: str, terms: list[str]) -> int:
    """Total non-overlapping occurrences of every term in *content* (case-insensitive)."""
    lowered = content.lower()
    return sum(len(re.findall(re.escape(term), lowered)) for term in terms)


def exact_search(
    documents: list[DocumentRecord],
    query: str,
    *,
    limit: int,
) -> list[SearchResult]:
    """
    Rank documents by how densely they contain the query terms.

    The score is matches per hundred characters, so it is a density rather
    than a probability and is not bounded above.
    """
    terms = query_terms(query)
    if not terms:
        return []

    results: list[SearchResult] = []
    for document in documents:
        match_count = count_matches(document.content, terms)
        if match_count == 0:
            continue
        results.append(
            SearchResult(
                source_id=document.source_id,
                score=match_count / (len(document.content) / 100),
                match_count=match_count,
                matched_by="exact",
            )
        )
    return rank_results(results, limit=limit)
