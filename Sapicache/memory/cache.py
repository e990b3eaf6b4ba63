"""SemanticCache: the cache service tying store, ingestion and consolidation together.

Every public operation runs under one re-entrant lock per instance, so callers
on different threads see a linearizable cache. Entries handed back to callers
are snapshots; mutating them does not touch the store.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import numpy as np

from ..config.metrics import MetricsCollector
from ..config.settings import (
    CacheConfig,
    ConsolidationConfig,
    EmbeddingConfig,
    SapicacheConfig,
    ScoringConfig,
)
from ..core.embedding import HashingEmbedder, cosine_similarity
from ..core.scoring import LexiconScorer, Scorer, ScoringWeights
from ..core.tagging import SemanticTagger, build_cluster_assigner
from ..utils.errors import DuplicateError, EmbeddingError, PersistenceError, ValidationError
from .consolidation import CacheStats, ConsolidationReport, ConsolidationScheduler, Consolidator
from .entry import CacheEntry
from .eviction import EvictionPolicy, WeightedRecencyEviction
from .ingestion import AcceptanceThresholds, IngestionPipeline, IngestResult
from .persistence import PersistenceClient, PersistenceWriter, build_persistence
from .sampling import sample_weighted
from .store import BoundedStore

logger = logging.getLogger("SAPICACHE.Cache")


class SemanticCache:
    """Bounded semantic cache of text fragments.

    Collaborators are injected so tests can pin the clock, the RNG and the
    embedder; anything left as None gets the default implementation.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        embedder: Optional[Callable[[str], np.ndarray]] = None,
        scorer: Optional[Scorer] = None,
        eviction_policy: Optional[EvictionPolicy] = None,
        clock: Callable[[], float] = time.time,
        persistence: Optional[PersistenceClient] = None,
        rng: Optional[np.random.Generator] = None,
        metrics: Optional[MetricsCollector] = None,
        consolidation: Optional[ConsolidationConfig] = None,
        embedding: Optional[EmbeddingConfig] = None,
        scoring: Optional[ScoringConfig] = None,
    ):
        self.config = config or CacheConfig()
        self.consolidation_config = consolidation or ConsolidationConfig()
        embedding = embedding or EmbeddingConfig()
        scoring = scoring or ScoringConfig()

        self.clock = clock
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.metrics = metrics or MetricsCollector()
        self._lock = threading.RLock()

        if embedder is None:
            embedder = HashingEmbedder(embedding.dimension, default_weight=embedding.default_weight)
        self.embedder = embedder
        self.dimension = int(getattr(embedder, "dimension", embedding.dimension))

        self.scorer: Scorer = scorer or LexiconScorer(
            weights=ScoringWeights(
                scoring.quality_coefficient,
                scoring.uniqueness_coefficient,
                scoring.length_coefficient,
            ),
            saturation=scoring.saturation,
            rare_pattern_bonus=scoring.rare_pattern_bonus,
            pattern_window=scoring.pattern_window,
            ideal_tokens=scoring.ideal_tokens,
            length_sigma=scoring.length_sigma,
        )
        self.store = BoundedStore(
            capacity=self.config.capacity,
            eviction_policy=eviction_policy or WeightedRecencyEviction(
                self.config.age_half_life_s, self.config.max_age_decay
            ),
            batch_fraction=self.config.eviction_batch_fraction,
        )
        self.thresholds = AcceptanceThresholds(self.config.min_quality, self.config.min_uniqueness)
        self.tagger = SemanticTagger()
        self.pipeline = IngestionPipeline(
            store=self.store,
            embed=self.embedder,
            scorer=self.scorer,
            tagger=self.tagger,
            clusters=build_cluster_assigner(self.embedder),
            config=self.config,
            thresholds=self.thresholds,
            dimension=self.dimension,
        )
        self.consolidator = Consolidator(self.consolidation_config)

        self.persistence = persistence
        self._writer = PersistenceWriter(persistence) if persistence is not None else None
        self._scheduler: Optional[ConsolidationScheduler] = None
        self._stats: Optional[CacheStats] = None

    @classmethod
    def from_config(
        cls,
        config: SapicacheConfig,
        persistence: Optional[PersistenceClient] = None,
        **kwargs: Any,
    ) -> "SemanticCache":
        return cls(
            config=config.cache,
            consolidation=config.consolidation,
            embedding=config.embedding,
            scoring=config.scoring,
            persistence=persistence,
            **kwargs,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self.store)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def ingest(
        self,
        content: str,
        source_url: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> IngestResult:
        start = time.perf_counter()
        with self._lock:
            result, entry = self.pipeline.ingest(
                content, self.clock(), source_url=source_url, tags=tags
            )
            if result.accepted:
                self._stats = None
                if self._writer is not None and entry is not None:
                    self._writer.persist(entry)
                    for evicted_id in result.evicted_ids:
                        self._writer.delete(evicted_id)
        self.metrics.record(f"ingest.{result.status.value}", time.perf_counter() - start)
        return result

    def get(self, entry_id: str) -> Optional[CacheEntry]:
        """Look up an entry by id and count it as an access."""
        with self._lock:
            if entry_id not in self.store:
                return None
            entry = self.store.get(entry_id)
            entry.touch(self.clock())
            entry.reinforce(self.config.access_reinforcement)
            self.store.mark_touched(entry_id)
            self._stats = None
            return entry.snapshot()

    def consolidate(self) -> ConsolidationReport:
        start = time.perf_counter()
        success = True
        try:
            with self._lock:
                report = self.consolidator.run(
                    self.store,
                    self.thresholds,
                    self.clock(),
                    similarity_threshold=self.config.near_duplicate_threshold,
                )
                self._stats = report.stats
                if self._writer is not None:
                    for removed_id in report.removed_ids:
                        self._writer.delete(removed_id)
                    for merged_id in report.merged_ids:
                        if merged_id in self.store:
                            self._writer.persist(self.store.get(merged_id))
            return report
        except Exception:
            success = False
            raise
        finally:
            self.metrics.record("consolidate", time.perf_counter() - start, success)

    def warm_up(self) -> int:
        """Load entries from the durable store; returns how many were admitted.

        Malformed records and duplicates are skipped, and capacity eviction
        applies as for normal inserts.
        """
        if self.persistence is None:
            return 0
        try:
            records = self.persistence.load_all()
        except PersistenceError as e:
            logger.warning(f"Warm-up skipped, durable store unavailable: {e}")
            return 0

        loaded = 0
        skipped = 0
        with self._lock:
            for record in records:
                try:
                    entry = CacheEntry.from_dict(record)
                except (KeyError, TypeError, ValueError) as e:
                    skipped += 1
                    logger.debug(f"Skipping malformed record: {e}")
                    continue
                if entry.id in self.store:
                    skipped += 1
                    continue
                self._fit_embedding(entry)
                try:
                    self.store.insert(entry, self.clock())
                except DuplicateError:
                    skipped += 1
                    continue
                self.scorer.observe(entry.content)
                loaded += 1
            self._stats = None
        logger.info(f"Warm-up loaded {loaded} entries ({skipped} skipped)")
        return loaded

    def _fit_embedding(self, entry: CacheEntry) -> None:
        if entry.embedding.shape == (self.dimension,):
            return
        try:
            entry.embedding = self.embedder(entry.content)
        except EmbeddingError:
            entry.embedding = np.zeros(self.dimension, dtype=np.float64)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def sample_weighted(self, k: int) -> List[CacheEntry]:
        with self._lock:
            return [e.snapshot() for e in sample_weighted(self.store.all(), k, self.rng)]

    def query_by_tags(self, tags: Iterable[str], min_overlap: float = 0.5) -> List[CacheEntry]:
        """Entries sharing at least ``min_overlap`` of the query tags.

        Ranked by cognitive weight, then most recent access.
        """
        wanted = {t for t in tags if t}
        if not wanted:
            return []
        with self._lock:
            matches = [
                e for e in self.store.all()
                if len(e.tags & wanted) / len(wanted) >= min_overlap
            ]
            matches.sort(key=lambda e: (-e.cognitive_weight, -e.last_accessed, e.id))
            return [e.snapshot() for e in matches]

    def query_by_vector(self, vector: np.ndarray, top_k: int = 10) -> List[Dict[str, Any]]:
        """Top ``top_k`` entries by cosine similarity, as ``{"entry", "similarity"}`` dicts.

        Raises ValidationError when ``vector`` is not a ``(dimension,)`` vector.
        """
        query = np.asarray(vector, dtype=np.float64)
        if query.shape != (self.dimension,):
            raise ValidationError(
                "Query vector has the wrong shape",
                context={"shape": list(query.shape), "dimension": self.dimension},
            )
        if top_k <= 0:
            return []
        with self._lock:
            scored = [
                (cosine_similarity(query, e.embedding), e) for e in self.store.all()
            ]
            scored.sort(key=lambda pair: (-pair[0], pair[1].id))
            return [
                {"entry": e.snapshot(), "similarity": sim} for sim, e in scored[:top_k]
            ]

    def query_by_text(self, text: str, top_k: int = 10) -> List[Dict[str, Any]]:
        try:
            vector = self.embedder(text)
        except EmbeddingError as e:
            logger.debug(f"Text query has no embeddable tokens: {e}")
            return []
        return self.query_by_vector(vector, top_k)

    def stats(self) -> CacheStats:
        with self._lock:
            if self._stats is None:
                self._stats = self.consolidator.compute_stats(
                    self.store.all(), self.thresholds, self.clock()
                )
            return self._stats

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_scheduler(self, interval_s: Optional[float] = None) -> ConsolidationScheduler:
        with self._lock:
            if self._scheduler is None:
                self._scheduler = ConsolidationScheduler(
                    self, interval_s or self.consolidation_config.interval_s
                )
            self._scheduler.start()
            return self._scheduler

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for queued persistence writes."""
        if self._writer is not None:
            self._writer.flush(timeout)

    def close(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()
        if self._writer is not None:
            self._writer.shutdown()
        logger.info("Cache closed")


def build_cache(config: SapicacheConfig, **kwargs: Any) -> SemanticCache:
    """Cache wired from a full config: durable store, warm-up and scheduler."""
    persistence = build_persistence(config.persistence)
    cache = SemanticCache.from_config(config, persistence=persistence, **kwargs)
    if persistence is not None and config.persistence.warm_up_on_start:
        cache.warm_up()
    if config.consolidation.enabled:
        cache.start_scheduler()
    return cache


__all__ = ["SemanticCache", "build_cache"]
