"""Weighted random sampling over cache entries."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .entry import CacheEntry


def sample_weighted(
    entries: Sequence[CacheEntry],
    k: int,
    rng: np.random.Generator,
) -> List[CacheEntry]:
    """Draw ``k`` entries with replacement, probability proportional to weight.

    Zero-weight entries are never drawn unless every weight is zero, in which
    case the draw is uniform.
    """
    if k <= 0 or not entries:
        return []
    weights = np.array([max(0.0, e.cognitive_weight) for e in entries], dtype=np.float64)
    total = weights.sum()
    if total <= 0 or not np.isfinite(total):
        probabilities = None
    else:
        probabilities = weights / total
    picks = rng.choice(len(entries), size=k, replace=True, p=probabilities)
    return [entries[int(i)] for i in picks]


__all__ = ["sample_weighted"]
