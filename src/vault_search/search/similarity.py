"""
Vector similarity.

Vectors are always compared at full stored dimensionality; invalid inputs
raise instead of producing a misleading score.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from ..errors import DegenerateVector, DimensionMismatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine of the angle between *a* and *b*, in [-1, 1]."""
    if len(a) != len(b):
        raise DimensionMismatch(f"Cannot compare vectors of length {len(a)} and {len(b)}")
    if not a:
        raise DimensionMismatch("Cannot compare empty vectors")

    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        raise DegenerateVector("Cosine similarity is undefined for a zero vector")

    # Rounding can push the ratio a hair outside the valid range.
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))
