"""
Information measures over discrete probability vectors.

All functions are pure: inputs are never modified in place.
"""

from __future__ import annotations

import math
from typing import Sequence


def normalize(p: Sequence[float]) -> list[float]:
    """Rescale to sum 1; uniform when the total is not positive."""
    n = len(p)
    if n == 0:
        return []
    total = sum(p)
    if total <= 0:
        return [1.0 / n] * n
    return [v / total for v in p]


def shannon_entropy(p: Sequence[float]) -> float:
    """Shannon entropy in bits. Zero entries contribute nothing."""
    h = 0.0
    for v in p:
        if v > 0:
            h -= v * math.log2(v)
    return h


def gini_impurity(p: Sequence[float]) -> float:
    return 1.0 - sum(v * v for v in p)


def count_above(p: Sequence[float], threshold: float) -> int:
    """Number of entries at or above threshold."""
    return sum(1 for v in p if v >= threshold)
