"""Text utilities shared by the embedder, scorer and tagger.

Tokenization is part of hash scheme v1 (see ``Sapicache.core.hashing``): any
change here changes embeddings, so it must bump the scheme version.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import FrozenSet, List, Set, Tuple

# Spanish and English function words ignored by the lexical fingerprint.
STOPWORDS: FrozenSet[str] = frozenset({
    "a", "al", "algo", "ante", "aquí", "como", "con", "cual", "cuando", "de",
    "del", "desde", "donde", "e", "el", "ella", "ellos", "en", "entre", "era",
    "es", "esa", "ese", "eso", "esta", "este", "esto", "fue", "ha", "hay",
    "la", "las", "le", "les", "lo", "los", "más", "me", "mi", "muy", "ni",
    "no", "nos", "o", "para", "pero", "por", "porque", "que", "qué", "se",
    "si", "sin", "sino", "sobre", "su", "sus", "también", "te", "tu", "u",
    "un", "una", "uno", "unos", "y", "ya", "yo",
    "an", "and", "are", "as", "at", "be", "by", "for", "from", "in", "is",
    "it", "of", "on", "or", "that", "the", "this", "to", "was", "with",
})


def _strip_token(raw: str) -> str:
    start = 0
    end = len(raw)
    while start < end and not raw[start].isalnum():
        start += 1
    while end > start and not raw[end - 1].isalnum():
        end -= 1
    return raw[start:end]


def tokenize(text: str) -> List[str]:
    """Lowercase, split on whitespace, strip non-alphanumeric edges, drop empties."""
    if not text:
        return []
    tokens = []
    for raw in text.lower().split():
        token = _strip_token(raw)
        if token:
            tokens.append(token)
    return tokens


def content_tokens(text: str) -> List[str]:
    """Tokens with stopwords removed."""
    return [t for t in tokenize(text) if t not in STOPWORDS]


def lexical_fingerprint(text: str, top_k: int = 8) -> FrozenSet[str]:
    """Top-k most frequent non-stopword tokens.

    Ties are broken alphabetically so identical text always yields the same set.
    """
    counts = Counter(t for t in content_tokens(text) if len(t) > 1)
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return frozenset(token for token, _ in ranked[:top_k])


def overlap_ratio(a: Set[str] | FrozenSet[str], b: Set[str] | FrozenSet[str]) -> float:
    """Jaccard overlap of two token sets (0.0 when both are empty)."""
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def token_bigrams(tokens: List[str]) -> Set[Tuple[str, str]]:
    return {(tokens[i], tokens[i + 1]) for i in range(len(tokens) - 1)}


def word_frequencies(text: str, min_length: int = 4) -> Counter:
    return Counter(w for w in tokenize(text) if len(w) >= min_length)


_LIST_LINE = re.compile(r"^\s*\d+\.", re.MULTILINE)
_CONCLUSIVE_LINE = re.compile(r"[.!?]\s*$", re.MULTILINE)


def structure_markers(text: str) -> List[str]:
    """Coarse structural markers: paragraphs, numbered lists, closing punctuation."""
    markers = []
    if "\n\n" in text:
        markers.append("parrafos")
    if _LIST_LINE.search(text):
        markers.append("lista")
    if _CONCLUSIVE_LINE.search(text):
        markers.append("conclusiva")
    return markers


__all__ = [
    "STOPWORDS",
    "tokenize",
    "content_tokens",
    "lexical_fingerprint",
    "overlap_ratio",
    "token_bigrams",
    "word_frequencies",
    "structure_markers",
]
