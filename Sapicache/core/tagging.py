"""Semantic tagging and cluster assignment for cache entries."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Set

import numpy as np

from ..utils.errors import EmbeddingError
from ..utils.text import structure_markers, tokenize, word_frequencies
from .embedding import cosine_similarity
from .lexicon import CLUSTER_BUCKETS, SEMANTIC_TAGS


def tag_variations(tag: str) -> List[str]:
    """Surface forms of a hyphenated tag; forms of 2 chars or less are dropped."""
    variations = [tag, tag.replace("-", " "), tag.replace("-", ""), *tag.split("-")]
    seen: List[str] = []
    for v in variations:
        if len(v) > 2 and v not in seen:
            seen.append(v)
    return seen


class SemanticTagger:
    """Assign ``category:tag`` labels and ``patron:*`` resonance markers."""

    def __init__(self, tags: Optional[Dict[str, List[str]]] = None):
        table = SEMANTIC_TAGS if tags is None else tags
        self._variations = {
            f"{category}:{tag}": tag_variations(tag)
            for category, category_tags in table.items()
            for tag in category_tags
        }

    def semantic_tags(self, content: str) -> Set[str]:
        lowered = content.lower()
        return {
            label
            for label, variations in self._variations.items()
            if any(v in lowered for v in variations)
        }

    def tag(self, content: str) -> Set[str]:
        return self.semantic_tags(content) | set(resonance_patterns(content))


def resonance_patterns(content: str) -> List[str]:
    """Repeated words (more than twice, longer than 3 chars) and structure markers."""
    patterns = [
        f"patron:repeticion:{word}"
        for word, freq in sorted(word_frequencies(content).items())
        if freq > 2
    ]
    patterns.extend(f"patron:estructura:{m}" for m in structure_markers(content))
    return patterns


class ClusterAssigner:
    """Keyword-bucket classification with nearest-centroid fallback.

    The bucket with the most keyword hits wins (ties go to the lowest id).
    Content with no hits is assigned to the bucket whose lexicon embedding is
    closest. Both paths are deterministic for identical content.
    """

    def __init__(self, embed: Callable[[str], np.ndarray]):
        self._buckets = CLUSTER_BUCKETS
        self._centroids = [
            (bucket_id, embed(" ".join(sorted(keywords))))
            for bucket_id, _, keywords in self._buckets
        ]

    def assign(self, content: str, embedding: Optional[np.ndarray] = None) -> int:
        tokens = tokenize(content)
        best_id = self._buckets[0][0]
        best_hits = 0
        for bucket_id, _, keywords in self._buckets:
            hits = sum(1 for t in tokens if t in keywords)
            if hits > best_hits:
                best_hits = hits
                best_id = bucket_id
        if best_hits > 0 or embedding is None:
            return best_id

        best_sim = -1.0
        for bucket_id, centroid in self._centroids:
            sim = cosine_similarity(embedding, centroid)
            if sim > best_sim:
                best_sim = sim
                best_id = bucket_id
        return best_id


def build_cluster_assigner(embed: Callable[[str], np.ndarray]) -> ClusterAssigner:
    try:
        return ClusterAssigner(embed)
    except EmbeddingError as e:
        raise ValueError(f"Embedder cannot embed cluster lexicons: {e}") from e


__all__ = [
    "SemanticTagger",
    "ClusterAssigner",
    "build_cluster_assigner",
    "resonance_patterns",
    "tag_variations",
]
