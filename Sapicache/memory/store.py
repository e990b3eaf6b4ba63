"""Capacity-bounded entry store.

Primary index by id, secondary index by content hash, and a recency order
used to pick the bounded similarity sample during ingestion. The eviction
ordering is only computed when a batch eviction runs.

The store does no locking; ``SemanticCache`` serializes access to it.
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from typing import Dict, List, Optional

import numpy as np

from ..utils.errors import DuplicateError, EntryNotFoundError
from .entry import CacheEntry
from .eviction import EvictionPolicy, WeightedRecencyEviction

logger = logging.getLogger("SAPICACHE.Store")


class BoundedStore:
    """Keyed entry collection that never grows past ``capacity``."""

    def __init__(
        self,
        capacity: int = 500,
        eviction_policy: Optional[EvictionPolicy] = None,
        batch_fraction: float = 0.2,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if not 0.0 <= batch_fraction < 1.0:
            raise ValueError("batch_fraction must be within [0, 1)")
        self.capacity = int(capacity)
        self.batch_fraction = float(batch_fraction)
        self.eviction_policy: EvictionPolicy = eviction_policy or WeightedRecencyEviction()

        self._entries: Dict[str, CacheEntry] = {}
        self._by_hash: Dict[str, str] = {}
        self._recency: "OrderedDict[str, None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def get(self, entry_id: str) -> CacheEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise EntryNotFoundError(entry_id) from None

    def all(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def find_by_hash(self, content_hash: str) -> Optional[CacheEntry]:
        entry_id = self._by_hash.get(content_hash)
        return self._entries.get(entry_id) if entry_id else None

    def recent(self, n: int) -> List[CacheEntry]:
        """Up to ``n`` most recently touched entries, newest first."""
        result = []
        for entry_id in reversed(self._recency):
            if len(result) >= n:
                break
            result.append(self._entries[entry_id])
        return result

    def mark_touched(self, entry_id: str) -> None:
        if entry_id not in self._entries:
            raise EntryNotFoundError(entry_id)
        self._recency.move_to_end(entry_id)

    def eviction_batch_size(self) -> int:
        """Entries to drop so one more insert fits."""
        overflow = len(self._entries) + 1 - self.capacity
        if overflow <= 0:
            return 0
        return max(overflow, math.floor(self.batch_fraction * len(self._entries)))

    def insert(self, entry: CacheEntry, now: float) -> List[CacheEntry]:
        """Add an entry, evicting a batch first if the store is full.

        Returns the evicted entries. Raises DuplicateError when the content
        hash is already present.
        """
        if entry.content_hash in self._by_hash:
            raise DuplicateError(
                "Content hash already stored",
                context={"entry_id": self._by_hash[entry.content_hash]},
            )
        if entry.id in self._entries:
            raise ValueError(f"Entry id already stored: {entry.id}")

        evicted: List[CacheEntry] = []
        batch = self.eviction_batch_size()
        if batch:
            evicted = self.eviction_policy.select(self.all(), now, batch)
            for victim in evicted:
                self.remove(victim.id)
            logger.info(f"Evicted {len(evicted)} entries (capacity {self.capacity})")

        self._entries[entry.id] = entry
        self._by_hash[entry.content_hash] = entry.id
        self._recency[entry.id] = None
        return evicted

    def remove(self, entry_id: str) -> CacheEntry:
        entry = self.get(entry_id)
        del self._entries[entry_id]
        self._recency.pop(entry_id, None)
        if self._by_hash.get(entry.content_hash) == entry_id:
            del self._by_hash[entry.content_hash]
        return entry

    def replace_content(
        self,
        entry_id: str,
        content: str,
        embedding: np.ndarray,
        content_hash: str,
    ) -> CacheEntry:
        """Swap an entry's content in place, keeping the hash index consistent."""
        entry = self.get(entry_id)
        owner = self._by_hash.get(content_hash)
        if owner is not None and owner != entry_id:
            raise DuplicateError("Content hash already stored", context={"entry_id": owner})
        if self._by_hash.get(entry.content_hash) == entry_id:
            del self._by_hash[entry.content_hash]
        entry.content = content
        entry.embedding = embedding
        entry.content_hash = content_hash
        self._by_hash[content_hash] = entry_id
        return entry


__all__ = ["BoundedStore"]
