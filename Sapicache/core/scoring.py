"""Score fragments for quality, uniqueness and cognitive weight.

Quality measures how much of a fragment's vocabulary falls in the curated
lexicon. Uniqueness measures distance to the closest stored entry plus a small
bonus for token pairings not seen recently. Cognitive weight blends both with
a length factor and is what eviction, sampling and decay operate on.
"""

from __future__ import annotations

import math
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Protocol, Set, Tuple

from ..utils.text import token_bigrams, tokenize
from .lexicon import QUALITY_CATEGORIES


@dataclass(frozen=True)
class ScoreResult:
    quality_score: float
    uniqueness_score: float


@dataclass
class ScoringWeights:
    """Coefficients of the cognitive weight formula."""
    quality: float = 0.4
    uniqueness: float = 0.4
    length: float = 0.2


class Scorer(Protocol):
    """Scoring strategy used by the ingestion pipeline."""

    def score(self, content: str, max_similarity: float) -> ScoreResult:
        ...

    def cognitive_weight(self, content: str, scores: ScoreResult) -> float:
        ...

    def observe(self, content: str) -> None:
        """Record an accepted fragment (feeds rare-pattern detection)."""
        ...


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class LexiconScorer:
    """Default scorer backed by the curated category lexicon."""

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        saturation: float = 4.0,
        rare_pattern_bonus: float = 0.1,
        pattern_window: int = 200,
        ideal_tokens: float = 12.0,
        length_sigma: float = 8.0,
        categories: Optional[Dict[str, Tuple[float, frozenset]]] = None,
    ):
        if not 0.0 <= rare_pattern_bonus <= 0.3:
            raise ValueError("rare_pattern_bonus must be within [0, 0.3]")
        self.weights = weights or ScoringWeights()
        self.saturation = float(saturation)
        self.rare_pattern_bonus = float(rare_pattern_bonus)
        self.ideal_tokens = float(ideal_tokens)
        self.length_sigma = float(length_sigma)
        self.categories = categories or QUALITY_CATEGORIES

        # Recent window of bigram sets plus a running count for O(1) lookups.
        self._window: Deque[Set[Tuple[str, str]]] = deque(maxlen=max(1, pattern_window))
        self._bigram_counts: Counter = Counter()

    def quality(self, content: str) -> float:
        tokens = tokenize(content)
        if not tokens:
            return 0.0
        hits: Counter = Counter()
        importance: Dict[str, float] = {}
        for token in tokens:
            for _category, (weight, keywords) in self.categories.items():
                if token in keywords:
                    hits[token] += 1
                    importance[token] = max(importance.get(token, 0.0), weight)
        # Repeats of the same keyword count logarithmically.
        weighted = sum(importance[t] * (1.0 + math.log(n)) for t, n in hits.items())
        density = weighted / len(tokens)
        return clamp(1.0 - math.exp(-self.saturation * density))

    def rare_pattern_fraction(self, content: str) -> float:
        bigrams = token_bigrams(tokenize(content))
        if not bigrams:
            return 0.0
        unseen = sum(1 for b in bigrams if self._bigram_counts[b] == 0)
        return unseen / len(bigrams)

    def uniqueness(self, content: str, max_similarity: float) -> float:
        base = 1.0 - clamp(max_similarity)
        bonus = self.rare_pattern_bonus * self.rare_pattern_fraction(content)
        return clamp(base + bonus)

    def score(self, content: str, max_similarity: float) -> ScoreResult:
        return ScoreResult(
            quality_score=self.quality(content),
            uniqueness_score=self.uniqueness(content, max_similarity),
        )

    def normalized_length(self, content: str) -> float:
        n = len(tokenize(content))
        if n == 0:
            return 0.0
        return math.exp(-((n - self.ideal_tokens) ** 2) / (2 * self.length_sigma ** 2))

    def cognitive_weight(self, content: str, scores: ScoreResult) -> float:
        w = self.weights
        return clamp(
            w.quality * scores.quality_score
            + w.uniqueness * scores.uniqueness_score
            + w.length * self.normalized_length(content)
        )

    def observe(self, content: str) -> None:
        bigrams = token_bigrams(tokenize(content))
        if len(self._window) == self._window.maxlen:
            for b in self._window[0]:
                self._bigram_counts[b] -= 1
                if self._bigram_counts[b] <= 0:
                    del self._bigram_counts[b]
        self._window.append(bigrams)
        self._bigram_counts.update(bigrams)


__all__ = ["ScoreResult", "ScoringWeights", "Scorer", "LexiconScorer", "clamp"]
