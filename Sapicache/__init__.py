"""Sapicache - bounded semantic cache for short text fragments"""

from __future__ import annotations

__version__ = "0.1.0"

# Core components
from .core.embedding import HashingEmbedder, cosine_similarity
from .core.hashing import HASH_SCHEME_VERSION, content_hash, token_hash
from .core.scoring import LexiconScorer, ScoreResult, Scorer
from .core.tagging import ClusterAssigner, SemanticTagger, resonance_patterns

# Memory
from .memory.cache import SemanticCache
from .memory.consolidation import CacheStats, ConsolidationReport, ConsolidationScheduler
from .memory.entry import CacheEntry, EntryState
from .memory.eviction import EvictionPolicy, WeightedRecencyEviction
from .memory.ingestion import IngestResult, IngestStatus
from .memory.persistence import JsonFilePersistence, PersistenceClient, RestPersistence

# Configuration
from .config.settings import SapicacheConfig, get_config
from .config.logging_config import setup_logging

# Error handling
from .utils.errors import SapicacheError

__all__ = [
    # Version
    "__version__",
    # Core
    "HashingEmbedder",
    "cosine_similarity",
    "HASH_SCHEME_VERSION",
    "content_hash",
    "token_hash",
    "LexiconScorer",
    "ScoreResult",
    "Scorer",
    "ClusterAssigner",
    "SemanticTagger",
    "resonance_patterns",
    # Memory
    "SemanticCache",
    "CacheStats",
    "ConsolidationReport",
    "ConsolidationScheduler",
    "CacheEntry",
    "EntryState",
    "EvictionPolicy",
    "WeightedRecencyEviction",
    "IngestResult",
    "IngestStatus",
    "PersistenceClient",
    "JsonFilePersistence",
    "RestPersistence",
    # Config
    "SapicacheConfig",
    "get_config",
    "setup_logging",
    # Errors
    "SapicacheError",
]
