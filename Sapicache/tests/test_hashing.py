"""Tests for hash scheme v1 and tokenization."""

import pytest

from Sapicache.core.hashing import (
    HASH_SCHEME_VERSION,
    content_hash,
    fnv1a_32,
    token_hash,
    token_indices,
)
from Sapicache.utils.text import lexical_fingerprint, overlap_ratio, tokenize


class TestContentHash:
    """SHA-256 over exact UTF-8 bytes."""

    def test_known_vectors(self):
        assert content_hash("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        assert content_hash("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_no_normalization(self):
        assert content_hash("Alma") != content_hash("alma")
        assert content_hash("alma") != content_hash("alma ")

    def test_lone_surrogate_is_hashable(self):
        assert len(content_hash("luz\ud800")) == 64

    def test_version(self):
        assert HASH_SCHEME_VERSION == 1


class TestTokenHash:
    """32-bit FNV-1a."""

    def test_known_vectors(self):
        assert fnv1a_32(b"") == 0x811C9DC5
        assert token_hash("a") == 0xE40C292C
        assert token_hash("foobar") == 0xBF9CF968

    def test_utf8_bytes(self):
        assert token_hash("sueño") == fnv1a_32("sueño".encode("utf-8"))

    def test_lone_surrogate_raises(self):
        with pytest.raises(UnicodeEncodeError):
            token_hash("a\ud800b")

    def test_indices(self):
        h = token_hash("alma")
        indices = token_indices("alma", 384)
        assert indices == [(h + i * 7919) % 384 for i in range(5)]
        assert len(set(indices)) == 5


class TestTokenize:
    """Lowercase, whitespace split, edge stripping."""

    def test_basic(self):
        assert tokenize("La Luz, del  alma.") == ["la", "luz", "del", "alma"]

    def test_inner_punctuation_kept(self):
        assert tokenize("¿auto-organización?") == ["auto-organización"]

    def test_punctuation_only(self):
        assert tokenize("... !!! ---") == []
        assert tokenize("") == []


class TestFingerprint:
    """Lexical fingerprint used when embedding fails."""

    def test_top_k_by_frequency(self):
        fp = lexical_fingerprint("luz luz luz sombra sombra río mar", top_k=2)
        assert fp == frozenset({"luz", "sombra"})

    def test_stopwords_dropped(self):
        assert lexical_fingerprint("el de la luz") == frozenset({"luz"})

    def test_overlap_ratio(self):
        assert overlap_ratio({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
        assert overlap_ratio(set(), set()) == 0.0
