"""Embedding module.

Deterministic hashing embedder: identical text and weight table always give
bit-identical vectors, which is what the dedup and reproducibility tests rely
on. Embeddings are L2-normalized once at creation (cosine-by-contract).
"""

from __future__ import annotations

import math
from typing import Dict, Optional

import numpy as np

from ..utils.errors import EmbeddingError
from ..utils.text import tokenize
from .hashing import token_indices
from .lexicon import DEFAULT_TOKEN_WEIGHT, EMBEDDING_WEIGHTS


class HashingEmbedder:
    """Scatter position-decayed token weights into a fixed-size vector.

    For the token at position ``p`` the contribution
    ``weight(token) / sqrt(p + 1)`` is added to each index returned by
    ``token_indices`` (hash scheme v1). The accumulator is float64 and tokens are
    processed in order, so the result does not depend on platform or run.
    """

    def __init__(
        self,
        dimension: int = 384,
        weights: Optional[Dict[str, float]] = None,
        default_weight: float = DEFAULT_TOKEN_WEIGHT,
    ):
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.dimension = int(dimension)
        self.weights = dict(EMBEDDING_WEIGHTS if weights is None else weights)
        self.default_weight = float(default_weight)

    def weight(self, token: str) -> float:
        return self.weights.get(token, self.default_weight)

    def embed(self, text: str) -> np.ndarray:
        tokens = tokenize(text)
        if not tokens:
            raise EmbeddingError("No embeddable tokens", context={"length": len(text or "")})

        vec = np.zeros(self.dimension, dtype=np.float64)
        for position, token in enumerate(tokens):
            try:
                indices = token_indices(token, self.dimension)
            except UnicodeEncodeError as e:
                raise EmbeddingError(
                    "Token is not valid UTF-8",
                    context={"position": position, "reason": str(e)},
                ) from e
            contribution = self.weight(token) / math.sqrt(position + 1)
            for idx in indices:
                vec[idx] += contribution

        return normalize(vec)

    def __call__(self, text: str) -> np.ndarray:
        return self.embed(text)


def normalize(vec: np.ndarray) -> np.ndarray:
    """L2-normalize; the zero vector (or a NaN norm) is returned unchanged."""
    norm = np.linalg.norm(vec)
    if norm == 0 or np.isnan(norm):
        return vec
    return vec / norm


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity; 0.0 if either vector has zero magnitude."""
    na = np.linalg.norm(a)
    nb = np.linalg.norm(b)
    if na == 0 or nb == 0:
        return 0.0
    return float(np.dot(a, b) / (na * nb))


__all__ = ["HashingEmbedder", "normalize", "cosine_similarity"]
