"""Eviction policies for the bounded store."""

from __future__ import annotations

import math
from typing import List, Protocol, Sequence

from .entry import CacheEntry


class EvictionPolicy(Protocol):
    """Ranks entries for capacity-driven removal (lowest score goes first)."""

    def score(self, entry: CacheEntry, now: float) -> float:
        ...

    def select(self, entries: Sequence[CacheEntry], now: float, count: int) -> List[CacheEntry]:
        ...


class WeightedRecencyEviction:
    """``weight * ln(access_count + 1) * (1 - age_decay)``.

    ``age_decay`` grows from 0 toward ``max_decay`` as idle time passes,
    reaching half of it after ``half_life_s``.
    """

    def __init__(self, half_life_s: float = 3 * 86400.0, max_decay: float = 0.9):
        if half_life_s <= 0:
            raise ValueError("half_life_s must be positive")
        self.half_life_s = float(half_life_s)
        self.max_decay = float(max_decay)

    def age_decay(self, last_accessed: float, now: float) -> float:
        idle = max(0.0, now - last_accessed)
        return self.max_decay * (1.0 - 0.5 ** (idle / self.half_life_s))

    def score(self, entry: CacheEntry, now: float) -> float:
        return (
            entry.cognitive_weight
            * math.log(entry.access_count + 1)
            * (1.0 - self.age_decay(entry.last_accessed, now))
        )

    def select(self, entries: Sequence[CacheEntry], now: float, count: int) -> List[CacheEntry]:
        if count <= 0:
            return []
        # Ties fall back to the oldest access, then id, so selection is stable.
        ranked = sorted(
            entries,
            key=lambda e: (self.score(e, now), e.last_accessed, e.id),
        )
        return ranked[:count]


__all__ = ["EvictionPolicy", "WeightedRecencyEviction"]
