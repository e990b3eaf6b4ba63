"""Shared helpers: errors and text processing."""
