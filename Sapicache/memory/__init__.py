from .cache import SemanticCache
from .consolidation import (
    CacheStats,
    ConsolidationReport,
    ConsolidationScheduler,
    Consolidator,
)
from .entry import CacheEntry, EntryState
from .eviction import EvictionPolicy, WeightedRecencyEviction
from .ingestion import AcceptanceThresholds, IngestionPipeline, IngestResult, IngestStatus
from .persistence import (
    JsonFilePersistence,
    PersistenceClient,
    PersistenceWriter,
    RestPersistence,
    build_persistence,
)
from .sampling import sample_weighted
from .store import BoundedStore

__all__ = [
    "SemanticCache",
    # Store and lifecycle
    "BoundedStore",
    "EvictionPolicy",
    "WeightedRecencyEviction",
    "IngestionPipeline",
    "AcceptanceThresholds",
    "Consolidator",
    "ConsolidationScheduler",
    # Data models
    "CacheEntry",
    "EntryState",
    "IngestResult",
    "IngestStatus",
    "CacheStats",
    "ConsolidationReport",
    # Durable store
    "PersistenceClient",
    "PersistenceWriter",
    "JsonFilePersistence",
    "RestPersistence",
    "build_persistence",
    "sample_weighted",
]
