"""Hash specification v1.

Two independent implementations that follow this module produce identical
content hashes, token hashes and (with the same weight table) identical
embeddings:

- ``content_hash``: lowercase hex SHA-256 of the exact UTF-8 bytes of the
  content (lone surrogates encoded with ``surrogatepass``). No normalization
  is applied; any byte difference is a different fragment.
- ``token_hash``: 32-bit FNV-1a over the UTF-8 bytes of one token
  (offset basis 2166136261, prime 16777619, arithmetic modulo 2**32).
- Tokens come from ``Sapicache.utils.text.tokenize``.
- Embedding indices for a token are ``(token_hash + i * INDEX_PRIME) % dim``
  for ``i`` in ``range(INDICES_PER_TOKEN)``.
"""

from __future__ import annotations

import hashlib

HASH_SCHEME_VERSION = 1

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
INDEX_PRIME = 7919
INDICES_PER_TOKEN = 5

_MASK_32 = 0xFFFFFFFF


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the exact UTF-8 encoding of ``text``."""
    return hashlib.sha256(text.encode("utf-8", "surrogatepass")).hexdigest()


def fnv1a_32(data: bytes) -> int:
    h = FNV_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV_PRIME) & _MASK_32
    return h


def token_hash(token: str) -> int:
    """FNV-1a 32-bit hash of a token.

    Raises UnicodeEncodeError for strings that are not valid UTF-8 (lone
    surrogates); the embedder turns that into an EmbeddingError.
    """
    return fnv1a_32(token.encode("utf-8"))


def token_indices(token: str, dimension: int) -> list[int]:
    h = token_hash(token)
    return [(h + i * INDEX_PRIME) % dimension for i in range(INDICES_PER_TOKEN)]


__all__ = [
    "HASH_SCHEME_VERSION",
    "INDEX_PRIME",
    "INDICES_PER_TOKEN",
    "content_hash",
    "fnv1a_32",
    "token_hash",
    "token_indices",
]
