"""Embedding, hashing, scoring and tagging."""
