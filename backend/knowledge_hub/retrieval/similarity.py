"""Vector similarity helpers."""

from __future__ import annotations

import math
from typing import Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    Returns ``0.0`` when either vector has zero norm.
    """
    if len(a) != len(b):
        raise ValueError("Vectors must have same length")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # float rounding can push parallel vectors just past the bounds
    return max(-1.0, min(1.0, score))


__all__ = ["cosine_similarity"]
