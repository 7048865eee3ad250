"""
Excerpt extraction for enriched search results.
"""

from __future__ import annotations

_WINDOW_LINES = 3
_PADDING_LINES = 1


def extract_excerpt(content: str, query: str) -> str:
    """
    Return the lines of *content* most relevant to *query*.

    A three-line window slides over the document and is scored by how many
    distinct query terms it contains. The earliest best window is returned
    with one line of padding on each side.
    """
    lines = content.split("\n")
    terms = set(query.lower().split())

    best_score = 0
    best_index = 0
    for index in range(len(lines)):
        window = " ".join(lines[index : index + _WINDOW_LINES]).lower()
        score = sum(1 for term in terms if term in window)
        if score > best_score:
            best_score = score
            best_index = index

    start = max(0, best_index - _PADDING_LINES)
    end = min(len(lines), best_index + _WINDOW_LINES + _PADDING_LINES)
    return "\n".join(lines[start:end])
