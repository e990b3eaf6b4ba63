"""Sapicache REST API module."""

from .server import APIResponse, CacheAPIServer, create_app

__all__ = ["CacheAPIServer", "APIResponse", "create_app"]
