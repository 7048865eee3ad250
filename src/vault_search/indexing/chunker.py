"""
Chunking utilities for indexing document content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


_WIKI_LINK_RE = re.compile(r"\[\[([^\]|]+)(?:\|([^\]]+))?\]\]")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_MARKER_RE = re.compile(r"[#*_`~]")

# Words carried into the next chunk per unit of overlap budget.
_OVERLAP_CHARS_PER_WORD = 5


@dataclass(frozen=True)
class Chunk:
    """A cleaned content chunk with its word span in the source text."""

    source_id: str
    index: int
    text: str
    start_word: int
    end_word: int


def clean_chunk(text: str) -> str:
    """Collapse wiki and markdown links to their labels and strip markup markers."""
    cleaned = _WIKI_LINK_RE.sub(lambda m: m.group(2) or m.group(1), text)
    cleaned = _MD_LINK_RE.sub(r"\1", cleaned)
    cleaned = _MARKER_RE.sub("", cleaned)
    return cleaned.strip()


class WordChunker:
    """
    Word-accumulating chunker with overlap.

    Words are appended until their joined length (one separator counted per
    word) reaches ``chunk_size``; the next chunk then starts with the last
    ``overlap // 5`` words of the previous one.
    """

    def __init__(self, chunk_size: int = 512, overlap: int = 128) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        if overlap >= chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")

        self.chunk_size = chunk_size
        self.overlap = overlap

    @property
    def overlap_words(self) -> int:
        return self.overlap // _OVERLAP_CHARS_PER_WORD

    def chunk(self, text: str, source_id: str = "") -> list[Chunk]:
        """Split *text* into cleaned, overlapping chunks."""
        words = text.split()
        if not words:
            return []

        spans: list[tuple[int, int]] = []
        start = 0
        length = 0
        fresh = 0

        for position, word in enumerate(words):
            length += len(word) + 1
            fresh += 1
            if length < self.chunk_size:
                continue

            end = position + 1
            spans.append((start, end))
            start = self._carry_start(words, start, end)
            length = len(" ".join(words[start:end]))
            fresh = 0

        # A tail made only of carried words is already covered.
        if fresh > 0:
            spans.append((start, len(words)))

        chunks: list[Chunk] = []
        for span_start, span_end in spans:
            cleaned = clean_chunk(" ".join(words[span_start:span_end]))
            if not cleaned:
                continue
            chunks.append(
                Chunk(
                    source_id=source_id,
                    index=len(chunks),
                    text=cleaned,
                    start_word=span_start,
                    end_word=span_end,
                )
            )
        return chunks

    def _carry_start(self, words: list[str], start: int, end: int) -> int:
        carry = self.overlap_words
        if carry <= 0:
            return end
        carry_start = max(start, end - carry)
        while carry_start < end and len(" ".join(words[carry_start:end])) >= self.chunk_size:
            carry_start += 1
        return carry_start
