"""Tests for similarity, ranking, filtering, and the query engine."""

import math
from datetime import date

import pytest

from vault_search.errors import DegenerateVector, DimensionMismatch, EmbeddingUnavailable
from vault_search.indexing import EmbeddingPipeline, WordChunker
from vault_search.models import DateRange, Query, SearchFilters
from vault_search.search import (
    QueryEngine,
    SearchResult,
    cosine_similarity,
    exact_search,
    extract_excerpt,
    fuse_results,
    matches_filters,
    normalize_result_scores,
    parse_date,
    parse_tags,
)
from vault_search.storage import DocumentRecord, EmbeddingRecord

from .conftest import FailingEmbedder, FixedEmbedder, KeywordEmbedder

QUERY_VECTOR = [1.0, 0.0]


def _unit_with_similarity(similarity: float) -> list[float]:
    """A unit vector whose cosine with QUERY_VECTOR equals *similarity*."""
    return [similarity, math.sqrt(1.0 - similarity * similarity)]


def _store_vectors(storage, source_id: str, vectors: list[list[float]]) -> None:
    storage.replace_embeddings(
        source_id,
        [
            EmbeddingRecord(
                id=f"{source_id}-{index}",
                vector=vector,
                source_id=source_id,
                chunk_text=f"{source_id} chunk {index}",
                created_at=1.0,
            )
            for index, vector in enumerate(vectors)
        ],
    )


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def test_cosine_similarity_of_vector_with_itself_and_its_negation() -> None:
    vector = [0.3, -1.2, 4.5, 0.01]

    assert cosine_similarity(vector, vector) == pytest.approx(1.0)
    assert cosine_similarity(vector, [-value for value in vector]) == pytest.approx(-1.0)


def test_cosine_similarity_of_orthogonal_vectors() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 2.0]) == pytest.approx(0.0)


def test_cosine_similarity_rejects_mismatched_lengths() -> None:
    with pytest.raises(DimensionMismatch):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    with pytest.raises(DimensionMismatch):
        cosine_similarity([], [])


def test_cosine_similarity_rejects_zero_vector() -> None:
    with pytest.raises(DegenerateVector):
        cosine_similarity([0.0, 0.0], [1.0, 0.0])


# ---------------------------------------------------------------------------
# Exact search, ranking, fusion
# ---------------------------------------------------------------------------


def test_exact_search_scores_match_density() -> None:
    documents = [
        DocumentRecord(source_id="A", content="The cat sat. The dog ran."),
        DocumentRecord(source_id="B", content="Nothing to see here."),
        DocumentRecord(source_id="C", content="Cat, cat, CAT and a catalog."),
    ]

    results = exact_search(documents, "Cat", limit=5)

    assert [result.source_id for result in results] == ["C", "A"]
    assert results[1].match_count == 1
    assert results[1].score == pytest.approx(1 / (25 / 100))
    assert results[0].match_count == 4


def test_exact_search_treats_terms_literally() -> None:
    documents = [DocumentRecord(source_id="A", content="cost is $5.00 (approx)")]

    assert exact_search(documents, "$5.00 (approx", limit=5)[0].match_count == 2
    assert exact_search(documents, "   ", limit=5) == []


def test_fuse_results_keeps_higher_score_per_document() -> None:
    semantic = [
        SearchResult(source_id="X", score=0.9, matching_chunks=["x"]),
        SearchResult(source_id="Z", score=0.7, matching_chunks=["z"]),
    ]
    exact = [
        SearchResult(source_id="Y", score=0.8, match_count=2, matched_by="exact"),
        SearchResult(source_id="Z", score=1.5, match_count=6, matched_by="exact"),
    ]

    fused = fuse_results(semantic, exact, limit=5)

    assert [(result.source_id, result.score) for result in fused] == [
        ("Z", 1.5),
        ("X", 0.9),
        ("Y", 0.8),
    ]
    assert fused[0].matched_by == "semantic+exact"
    assert fused[0].matching_chunks == ["z"]
    assert fused[0].match_count == 6


def test_normalize_result_scores_scales_to_top() -> None:
    results = [
        SearchResult(source_id="a", score=4.0),
        SearchResult(source_id="b", score=1.0),
    ]

    assert [result.score for result in normalize_result_scores(results)] == [1.0, 0.25]
    assert normalize_result_scores([]) == []


# ---------------------------------------------------------------------------
# Filters and excerpts
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("alpha, beta", {"alpha", "beta"}),
        ("[alpha, 'beta']", {"alpha", "beta"}),
        ("#alpha,#beta", {"alpha", "beta"}),
        (["alpha", "beta"], {"alpha", "beta"}),
        ("", set()),
        (None, set()),
    ],
)
def test_parse_tags(raw, expected: set[str]) -> None:
    assert parse_tags(raw) == expected


def test_parse_date() -> None:
    assert parse_date("2024-03-01") == date(2024, 3, 1)
    assert parse_date("2024-03-01T09:30:00") == date(2024, 3, 1)
    assert parse_date("2024-03-01 meeting") == date(2024, 3, 1)
    assert parse_date("someday") is None
    assert parse_date(None) is None


def test_matches_filters() -> None:
    metadata = {"category": "work", "tags": "planning, q1", "date": "2024-03-01"}

    assert matches_filters(metadata, SearchFilters())
    assert matches_filters(metadata, SearchFilters(categories={"work", "home"}))
    assert not matches_filters(metadata, SearchFilters(categories={"home"}))
    assert matches_filters(metadata, SearchFilters(tags={"q1", "q2"}))
    assert not matches_filters(metadata, SearchFilters(tags={"q2"}))
    assert matches_filters(
        metadata,
        SearchFilters(date_range=DateRange(start=date(2024, 3, 1), end=date(2024, 3, 1))),
    )
    assert matches_filters(metadata, SearchFilters(date_range=DateRange(end=date(2024, 12, 31))))
    assert not matches_filters(
        metadata, SearchFilters(date_range=DateRange(start=date(2024, 3, 2)))
    )
    assert not matches_filters({}, SearchFilters(date_range=DateRange(start=date(2020, 1, 1))))


def test_extract_excerpt_pads_best_window() -> None:
    content = "intro\nalpha\nbeta\ngamma cat\ndelta\nepsilon\nzeta"

    assert extract_excerpt(content, "cat") == "intro\nalpha\nbeta\ngamma cat\ndelta"


def test_extract_excerpt_prefers_window_with_most_distinct_terms() -> None:
    content = "cat\ncat\ncat\nfiller\nfiller\ncat and dog\nend"

    assert extract_excerpt(content, "cat dog") == "cat\nfiller\nfiller\ncat and dog\nend"


def test_extract_excerpt_without_match_returns_document_start() -> None:
    assert extract_excerpt("one\ntwo\nthree\nfour\nfive", "zebra") == "one\ntwo\nthree\nfour"


# ---------------------------------------------------------------------------
# Query engine
# ---------------------------------------------------------------------------


def test_exact_query_over_indexed_document(storage) -> None:
    pipeline = EmbeddingPipeline(
        storage, KeywordEmbedder(), WordChunker(chunk_size=512, overlap=128)
    )
    pipeline.index_documents({"A": "The cat sat. The dog ran."})
    assert len(storage.get_embeddings("A")) == 1

    results = QueryEngine(storage).search(Query(text="cat", strategy="exact", limit=5))

    assert [result.source_id for result in results] == ["A"]
    assert results[0].match_count == 1
    assert results[0].matched_by == "exact"


def test_semantic_query_applies_threshold(storage) -> None:
    _store_vectors(storage, "X", [_unit_with_similarity(0.9)])
    _store_vectors(storage, "Y", [_unit_with_similarity(0.5)])

    results = QueryEngine(storage, FixedEmbedder(QUERY_VECTOR)).search(
        Query(text="anything", threshold=0.6, limit=5)
    )

    assert [result.source_id for result in results] == ["X"]
    assert results[0].score == pytest.approx(0.9)


def test_semantic_query_never_returns_scores_below_threshold(storage) -> None:
    for index, similarity in enumerate([0.05, 0.2, 0.45, 0.61, 0.75, 0.99]):
        _store_vectors(storage, f"doc{index}", [_unit_with_similarity(similarity)])

    results = QueryEngine(storage, FixedEmbedder(QUERY_VECTOR)).search(
        Query(text="anything", threshold=0.6, limit=10)
    )

    assert [result.source_id for result in results] == ["doc5", "doc4", "doc3"]
    assert all(result.score >= 0.6 for result in results)


def test_semantic_query_groups_chunks_per_document(storage) -> None:
    _store_vectors(
        storage,
        "X",
        [_unit_with_similarity(0.7), _unit_with_similarity(0.1), _unit_with_similarity(0.95)],
    )

    results = QueryEngine(storage, FixedEmbedder(QUERY_VECTOR)).search(
        Query(text="anything", threshold=0.6)
    )

    assert len(results) == 1
    assert results[0].score == pytest.approx(0.95)
    assert results[0].matching_chunks == ["X chunk 0", "X chunk 2"]


def test_semantic_query_truncates_to_limit(storage) -> None:
    for index in range(4):
        _store_vectors(storage, f"doc{index}", [_unit_with_similarity(0.8 + index * 0.05)])

    results = QueryEngine(storage, FixedEmbedder(QUERY_VECTOR)).search(
        Query(text="anything", threshold=0.6, limit=2)
    )

    assert [result.source_id for result in results] == ["doc3", "doc2"]


def test_semantic_query_surfaces_dimension_mismatch(storage) -> None:
    _store_vectors(storage, "X", [[1.0, 0.0, 0.0]])

    with pytest.raises(DimensionMismatch):
        QueryEngine(storage, FixedEmbedder(QUERY_VECTOR)).search(Query(text="anything"))


def test_hybrid_query_fuses_by_max_score(storage) -> None:
    storage.put_document("X", "nothing relevant here")
    storage.put_document("Y", "zebra " + "x" * 119)
    _store_vectors(storage, "X", [_unit_with_similarity(0.9)])
    _store_vectors(storage, "Y", [[0.0, 1.0]])

    results = QueryEngine(storage, FixedEmbedder(QUERY_VECTOR)).search(
        Query(text="zebra", strategy="hybrid", threshold=0.6, limit=5)
    )

    assert [result.source_id for result in results] == ["X", "Y"]
    assert results[0].score == pytest.approx(0.9)
    assert results[0].matched_by == "semantic"
    assert results[1].score == pytest.approx(0.8)
    assert results[1].matched_by == "exact"


def test_hybrid_query_with_normalized_scores(storage) -> None:
    storage.put_document("X", "nothing relevant here")
    storage.put_document("Y", "zebra zebra zebra")
    _store_vectors(storage, "X", [_unit_with_similarity(0.9)])

    raw = QueryEngine(storage, FixedEmbedder(QUERY_VECTOR)).search(
        Query(text="zebra", strategy="hybrid", threshold=0.6)
    )
    normalized = QueryEngine(
        storage, FixedEmbedder(QUERY_VECTOR), normalize_scores=True
    ).search(Query(text="zebra", strategy="hybrid", threshold=0.6))

    assert [result.source_id for result in raw] == ["Y", "X"]
    assert raw[0].score > 1.0
    assert [(result.source_id, result.score) for result in normalized] == [
        ("X", pytest.approx(1.0)),
        ("Y", pytest.approx(1.0)),
    ]


def test_hybrid_query_fails_when_embedding_fails(storage) -> None:
    storage.put_document("Y", "zebra")

    with pytest.raises(EmbeddingUnavailable):
        QueryEngine(storage, FailingEmbedder()).search(Query(text="zebra", strategy="hybrid"))


def test_semantic_query_without_embedder_fails(storage) -> None:
    with pytest.raises(EmbeddingUnavailable):
        QueryEngine(storage).search(Query(text="zebra"))


def test_query_filters_on_document_metadata(storage) -> None:
    storage.put_document(
        "work.md",
        "cat plans",
        {"category": "work", "tags": "planning", "date": "2024-02-10"},
    )
    storage.put_document(
        "home.md",
        "cat food",
        {"category": "home", "tags": "pets, food", "date": "2023-11-01"},
    )
    storage.put_document("loose.md", "cat thoughts", {})
    engine = QueryEngine(storage)

    def _search(filters: SearchFilters) -> list[str]:
        query = Query(text="cat", strategy="exact", limit=10, filters=filters)
        return sorted(result.source_id for result in engine.search(query))

    assert _search(SearchFilters()) == ["home.md", "loose.md", "work.md"]
    assert _search(SearchFilters(categories={"work"})) == ["work.md"]
    assert _search(SearchFilters(tags={"pets", "travel"})) == ["home.md"]
    assert _search(SearchFilters(date_range=DateRange(start=date(2024, 1, 1)))) == ["work.md"]


def test_query_enriches_results_only_when_requested(storage) -> None:
    storage.put_document("note.md", "title\nintro\nthe cat line\nmore\nend\ntail")
    engine = QueryEngine(storage)

    plain = engine.search(Query(text="cat", strategy="exact"))
    enriched = engine.search(Query(text="cat", strategy="exact", include_excerpt=True))

    assert plain[0].excerpt is None
    assert enriched[0].excerpt == "title\nintro\nthe cat line\nmore"


def test_documents_embedded_with_ensure_fresh_support_filters_and_excerpts(storage) -> None:
    pipeline = EmbeddingPipeline(storage, KeywordEmbedder())
    pipeline.ensure_fresh("A", "---\ncategory: work\n---\nthe cat sat")
    engine = QueryEngine(storage, KeywordEmbedder())

    filtered = engine.search(
        Query(text="cat", threshold=0.5, filters=SearchFilters(categories={"work"}))
    )
    excluded = engine.search(
        Query(text="cat", threshold=0.5, filters=SearchFilters(categories={"home"}))
    )
    enriched = engine.search(Query(text="cat", threshold=0.5, include_excerpt=True))
    exact = engine.search(Query(text="cat", strategy="exact"))

    assert [result.source_id for result in filtered] == ["A"]
    assert excluded == []
    assert "the cat sat" in enriched[0].excerpt
    assert [result.source_id for result in exact] == ["A"]


def test_semantic_query_rejects_vectors_from_another_embedding_config(storage) -> None:
    EmbeddingPipeline(storage, KeywordEmbedder(signature="model-a:3")).ensure_fresh("A", "cat")
    other_model = KeywordEmbedder(("dog", "cat"), signature="model-b:3")

    with pytest.raises(DimensionMismatch, match="model-a:3"):
        QueryEngine(storage, other_model).search(Query(text="cat", threshold=0.0))
    with pytest.raises(DimensionMismatch):
        QueryEngine(storage, other_model).search(
            Query(text="cat", strategy="hybrid", threshold=0.0)
        )

    same_model = KeywordEmbedder(signature="model-a:3")
    results = QueryEngine(storage, same_model).search(Query(text="cat"))
    assert [result.source_id for result in results] == ["A"]


def test_hash_prefixed_filter_tags_match_document_tags() -> None:
    metadata = {"tags": "#planning, q1"}

    assert matches_filters(metadata, SearchFilters(tags={"#q1"}))
    assert matches_filters(metadata, SearchFilters(tags={"#planning"}))
