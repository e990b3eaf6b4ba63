"""Shared fixtures: a controllable clock, seeded RNG and small caches."""

from typing import Optional, Set

import numpy as np
import pytest

from Sapicache.config.settings import CacheConfig, ConsolidationConfig
from Sapicache.core.hashing import content_hash
from Sapicache.core.scoring import ScoreResult
from Sapicache.memory.cache import SemanticCache
from Sapicache.memory.entry import CacheEntry

T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class FixedScorer:
    """Scorer returning constant scores; lets tests bypass the quality gate."""

    def __init__(self, quality: float = 0.8, uniqueness: float = 0.8, weight: float = 0.5):
        self.result = ScoreResult(quality, uniqueness)
        self.weight = weight
        self.observed = []

    def score(self, content: str, max_similarity: float) -> ScoreResult:
        return self.result

    def cognitive_weight(self, content: str, scores: ScoreResult) -> float:
        return self.weight

    def observe(self, content: str) -> None:
        self.observed.append(content)


def make_entry(
    entry_id: str,
    weight: float = 0.5,
    tags: Optional[Set[str]] = None,
    last_accessed: float = T0,
    access_count: int = 1,
    cluster_id: int = 0,
    embedding: Optional[np.ndarray] = None,
    content: Optional[str] = None,
) -> CacheEntry:
    content = content or f"contenido de prueba {entry_id}"
    return CacheEntry(
        id=entry_id,
        content=content,
        embedding=embedding if embedding is not None else np.zeros(4),
        content_hash=content_hash(content),
        quality_score=0.5,
        uniqueness_score=0.5,
        cognitive_weight=weight,
        created_at=min(T0, last_accessed),
        last_accessed=last_accessed,
        tags=set(tags or ()),
        cluster_id=cluster_id,
        access_count=access_count,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def make_cache(clock, rng):
    """Factory for caches sharing the test clock and RNG."""
    created = []

    def factory(consolidation: Optional[ConsolidationConfig] = None, **kwargs):
        collaborators = {
            key: kwargs.pop(key)
            for key in ("embedder", "scorer", "eviction_policy", "persistence", "metrics")
            if key in kwargs
        }
        cache = SemanticCache(
            config=CacheConfig(**kwargs),
            clock=clock,
            rng=rng,
            consolidation=consolidation,
            **collaborators,
        )
        created.append(cache)
        return cache

    yield factory
    for cache in created:
        cache.close()


@pytest.fixture
def cache(make_cache):
    return make_cache()
