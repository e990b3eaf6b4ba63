"""Fragment ingestion: validation, exact dedup, near-duplicate merge, quality gate.

Flow: Validate → Hash → Embed (or fingerprint) → Compare → Merge | Score → Insert
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, Iterable, Optional, Tuple

import numpy as np

from ..config.settings import CacheConfig
from ..core.embedding import cosine_similarity
from ..core.hashing import content_hash
from ..core.scoring import Scorer, ScoreResult
from ..core.tagging import ClusterAssigner, SemanticTagger
from ..utils.errors import EmbeddingError, ValidationError
from ..utils.text import lexical_fingerprint, overlap_ratio
from .entry import CacheEntry, new_entry_id
from .store import BoundedStore

logger = logging.getLogger("SAPICACHE.Ingestion")


class IngestStatus(str, Enum):
    REJECTED_DUPLICATE = "rejected_duplicate"
    REJECTED_LOW_QUALITY = "rejected_low_quality"
    MERGED = "merged"
    INSERTED = "inserted"


@dataclass(frozen=True)
class IngestResult:
    status: IngestStatus
    entry_id: Optional[str] = None
    max_similarity: float = 0.0
    reason: Optional[str] = None
    evicted_ids: Tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.status in (IngestStatus.MERGED, IngestStatus.INSERTED)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "entryId": self.entry_id,
            "maxSimilarity": self.max_similarity,
            "reason": self.reason,
            "evictedIds": list(self.evicted_ids),
        }


@dataclass
class AcceptanceThresholds:
    """Quality gate thresholds; the consolidation loop may tune these."""
    min_quality: float = 0.3
    min_uniqueness: float = 0.4

    def rejects(self, scores: ScoreResult) -> bool:
        return (
            scores.quality_score <= self.min_quality
            and scores.uniqueness_score <= self.min_uniqueness
        )


@dataclass
class _Candidate:
    """What the pipeline knows about an incoming fragment before deciding."""
    content: str
    content_hash: str
    embedding: np.ndarray
    fingerprint: Optional[FrozenSet[str]] = None
    max_similarity: float = 0.0
    nearest: Optional[CacheEntry] = None

    @property
    def degraded(self) -> bool:
        return self.fingerprint is not None


class IngestionPipeline:
    """Turns raw fragments into store mutations and status values.

    Not thread-safe on its own; ``SemanticCache`` runs it under its lock.
    """

    def __init__(
        self,
        store: BoundedStore,
        embed: Callable[[str], np.ndarray],
        scorer: Scorer,
        tagger: SemanticTagger,
        clusters: ClusterAssigner,
        config: CacheConfig,
        thresholds: AcceptanceThresholds,
        dimension: int,
    ):
        self.store = store
        self.embed = embed
        self.scorer = scorer
        self.tagger = tagger
        self.clusters = clusters
        self.config = config
        self.thresholds = thresholds
        self.dimension = dimension

    def validate(self, content: str) -> str:
        if not isinstance(content, str):
            raise ValidationError("Content must be text", context={"type": type(content).__name__})
        text = content.strip()
        if not self.config.min_length <= len(text) <= self.config.max_length:
            raise ValidationError(
                "Content length out of bounds",
                context={
                    "length": len(text),
                    "min": self.config.min_length,
                    "max": self.config.max_length,
                },
            )
        return text

    def _candidate(self, text: str, digest: str) -> _Candidate:
        try:
            vector = self.embed(text)
            return _Candidate(content=text, content_hash=digest, embedding=vector)
        except EmbeddingError as e:
            logger.warning(f"Embedding failed, using lexical fingerprint: {e}")
            return _Candidate(
                content=text,
                content_hash=digest,
                embedding=np.zeros(self.dimension, dtype=np.float64),
                fingerprint=lexical_fingerprint(text, self.config.fingerprint_size),
            )

    def _compare(self, candidate: _Candidate) -> None:
        for entry in self.store.recent(self.config.similarity_sample_size):
            if candidate.degraded:
                similarity = overlap_ratio(
                    candidate.fingerprint,
                    lexical_fingerprint(entry.content, self.config.fingerprint_size),
                )
            else:
                similarity = cosine_similarity(candidate.embedding, entry.embedding)
            if candidate.nearest is None or similarity > candidate.max_similarity:
                candidate.max_similarity = similarity
                candidate.nearest = entry

    def ingest(
        self,
        content: str,
        now: float,
        source_url: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Tuple[IngestResult, Optional[CacheEntry]]:
        """Decide what to do with one fragment.

        Returns the result plus the entry that was created or merged (None for
        rejections), so the caller can persist it.
        """
        try:
            text = self.validate(content)
        except ValidationError as e:
            logger.debug(f"Rejected fragment: {e}")
            return IngestResult(IngestStatus.REJECTED_LOW_QUALITY, reason="length"), None

        digest = content_hash(text)
        existing = self.store.find_by_hash(digest)
        if existing is not None:
            return IngestResult(
                IngestStatus.REJECTED_DUPLICATE,
                entry_id=existing.id,
                max_similarity=1.0,
                reason="exact_hash",
            ), None

        candidate = self._candidate(text, digest)
        self._compare(candidate)
        extra_tags = {t for t in (tags or ()) if t}

        if candidate.nearest is not None and candidate.max_similarity >= self.config.near_duplicate_threshold:
            merged = self._merge(candidate, now, extra_tags)
            return IngestResult(
                IngestStatus.MERGED,
                entry_id=merged.id,
                max_similarity=candidate.max_similarity,
            ), merged

        scores = self.scorer.score(text, max(0.0, candidate.max_similarity))
        if self.thresholds.rejects(scores):
            logger.debug(
                f"Quality gate rejected fragment (quality={scores.quality_score:.3f}, "
                f"uniqueness={scores.uniqueness_score:.3f})"
            )
            return IngestResult(
                IngestStatus.REJECTED_LOW_QUALITY,
                max_similarity=candidate.max_similarity,
                reason="quality_gate",
            ), None

        entry = CacheEntry(
            id=new_entry_id(),
            content=text,
            embedding=candidate.embedding,
            content_hash=digest,
            quality_score=scores.quality_score,
            uniqueness_score=scores.uniqueness_score,
            cognitive_weight=self.scorer.cognitive_weight(text, scores),
            created_at=now,
            last_accessed=now,
            tags=self.tagger.tag(text) | extra_tags,
            cluster_id=self.clusters.assign(
                text, None if candidate.degraded else candidate.embedding
            ),
            access_count=1,
            source_url=source_url,
        )
        evicted = self.store.insert(entry, now)
        self.scorer.observe(text)
        return IngestResult(
            IngestStatus.INSERTED,
            entry_id=entry.id,
            max_similarity=candidate.max_similarity,
            evicted_ids=tuple(e.id for e in evicted),
        ), entry

    def _merge(self, candidate: _Candidate, now: float, extra_tags: set) -> CacheEntry:
        assert candidate.nearest is not None
        # A fingerprint match carries no vector; keep the stored one.
        embedding = candidate.nearest.embedding if candidate.degraded else candidate.embedding
        entry = self.store.replace_content(
            candidate.nearest.id, candidate.content, embedding, candidate.content_hash
        )
        entry.tags |= self.tagger.tag(candidate.content) | extra_tags
        entry.merge_count += 1
        entry.touch(now)
        entry.reinforce(self.config.merge_boost)
        self.store.mark_touched(entry.id)
        logger.debug(f"Merged near-duplicate into {entry.id} (similarity={candidate.max_similarity:.3f})")
        return entry


__all__ = ["IngestionPipeline", "IngestResult", "IngestStatus", "AcceptanceThresholds"]
