"""Search helpers for indexed documents."""

from .exact import exact_search
from .excerpt import extract_excerpt
from .filters import matches_filters, parse_date, parse_tags
from .query import QueryEngine
from .ranker import SearchResult, fuse_results, normalize_result_scores, rank_results
from .similarity import cosine_similarity

__all__ = [
    "exact_search",
    "extract_excerpt",
    "matches_filters",
    "parse_date",
    "parse_tags",
    "QueryEngine",
    "SearchResult",
    "fuse_results",
    "normalize_result_scores",
    "rank_results",
    "cosine_similarity",
]
