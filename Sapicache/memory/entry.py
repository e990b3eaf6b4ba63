"""Cache entry model and its serialized form."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Set

import numpy as np


class EntryState(str, Enum):
    """Lifecycle states of a cache entry."""
    NEW = "new"
    ACTIVE = "active"
    DECAYING = "decaying"
    REMOVED = "removed"
    EVICTED = "evicted"


def new_entry_id() -> str:
    return f"cache_{uuid.uuid4().hex}"


@dataclass
class CacheEntry:
    """One stored fragment with its scores and access metadata."""
    id: str
    content: str
    embedding: np.ndarray
    content_hash: str
    quality_score: float
    uniqueness_score: float
    cognitive_weight: float
    created_at: float
    last_accessed: float
    tags: Set[str] = field(default_factory=set)
    cluster_id: int = 0
    access_count: int = 1
    source_url: Optional[str] = None
    merge_count: int = 0

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed = max(self.last_accessed, now)

    def reinforce(self, amount: float) -> None:
        self.cognitive_weight = min(1.0, self.cognitive_weight + amount)

    def state(self, now: float, inactivity_window: float) -> EntryState:
        if now - self.last_accessed > inactivity_window:
            return EntryState.DECAYING
        if self.access_count <= 1 and self.merge_count == 0:
            return EntryState.NEW
        return EntryState.ACTIVE

    def snapshot(self) -> "CacheEntry":
        """Detached copy safe to hand out of the cache lock."""
        return replace(self, embedding=self.embedding.copy(), tags=set(self.tags))

    def to_dict(self) -> Dict[str, Any]:
        """Export form; field names follow the persistence contract."""
        return {
            "id": self.id,
            "content": self.content,
            "embedding": [float(x) for x in self.embedding],
            "contentHash": self.content_hash,
            "qualityScore": self.quality_score,
            "uniquenessScore": self.uniqueness_score,
            "cognitiveWeight": self.cognitive_weight,
            "accessCount": self.access_count,
            "createdAt": self.created_at,
            "lastAccessed": self.last_accessed,
            "tags": sorted(self.tags),
            "clusterId": self.cluster_id,
            "sourceUrl": self.source_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Rebuild an entry from its export form.

        Raises KeyError/TypeError/ValueError on malformed records; callers
        loading from a durable store skip those.
        """
        created_at = float(data["createdAt"])
        last_accessed = max(float(data.get("lastAccessed", created_at)), created_at)
        access_count = int(data.get("accessCount", 1))
        if access_count < 0:
            raise ValueError("accessCount must be non-negative")
        return cls(
            id=str(data["id"]),
            content=str(data["content"]),
            embedding=np.asarray(data["embedding"], dtype=np.float64),
            content_hash=str(data["contentHash"]),
            quality_score=_unit(data["qualityScore"], "qualityScore"),
            uniqueness_score=_unit(data["uniquenessScore"], "uniquenessScore"),
            cognitive_weight=_unit(data["cognitiveWeight"], "cognitiveWeight"),
            created_at=created_at,
            last_accessed=last_accessed,
            tags=set(data.get("tags") or []),
            cluster_id=int(data.get("clusterId", 0)),
            access_count=access_count,
            source_url=data.get("sourceUrl"),
        )


def _unit(value: Any, name: str) -> float:
    v = float(value)
    if not 0.0 <= v <= 1.0:
        raise ValueError(f"{name} out of range: {v}")
    return v


__all__ = ["CacheEntry", "EntryState", "new_entry_id"]
