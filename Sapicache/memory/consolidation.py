"""Periodic consolidation: decay idle entries, drop dead ones, fold near-duplicates
that slipped past the bounded ingestion sample, recompute stats, and nudge the
acceptance thresholds toward a healthy cluster mix.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import numpy as np

from ..config.settings import ConsolidationConfig
from ..core.lexicon import cluster_label
from ..utils.errors import ConsolidationError
from .entry import CacheEntry, EntryState
from .ingestion import AcceptanceThresholds
from .store import BoundedStore

if TYPE_CHECKING:
    from .cache import SemanticCache

logger = logging.getLogger("SAPICACHE.Consolidation")


@dataclass
class EmergentPattern:
    cluster_id: int
    label: str
    count: int
    frequency: float


@dataclass
class CacheStats:
    """Aggregate view of the store after a consolidation pass."""
    total_entries: int = 0
    average_weight: float = 0.0
    self_perception_ratio: float = 0.0
    diversity: float = 0.0
    emergent_patterns: List[EmergentPattern] = field(default_factory=list)
    cluster_counts: Dict[int, int] = field(default_factory=dict)
    state_counts: Dict[str, int] = field(default_factory=dict)
    semantic_tags: int = 0
    consolidation_cycles: int = 0
    min_quality: float = 0.0
    min_uniqueness: float = 0.0
    computed_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "totalEntries": data["total_entries"],
            "averageWeight": data["average_weight"],
            "selfPerceptionRatio": data["self_perception_ratio"],
            "diversity": data["diversity"],
            "emergentPatterns": data["emergent_patterns"],
            "clusterCounts": {str(k): v for k, v in data["cluster_counts"].items()},
            "stateCounts": data["state_counts"],
            "semanticTags": data["semantic_tags"],
            "consolidationCycles": data["consolidation_cycles"],
            "minQuality": data["min_quality"],
            "minUniqueness": data["min_uniqueness"],
            "computedAt": data["computed_at"],
        }


@dataclass
class ConsolidationReport:
    decayed: int = 0
    removed_ids: List[str] = field(default_factory=list)
    skipped_ids: List[str] = field(default_factory=list)
    folded: int = 0
    merged_ids: List[str] = field(default_factory=list)  # survivors that absorbed a duplicate
    decay_applied: bool = False
    thresholds_adjusted: Optional[str] = None  # "lowered" | "raised" | None
    stats: CacheStats = field(default_factory=CacheStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decayed": self.decayed,
            "removedIds": list(self.removed_ids),
            "skippedIds": list(self.skipped_ids),
            "folded": self.folded,
            "mergedIds": list(self.merged_ids),
            "decayApplied": self.decay_applied,
            "thresholdsAdjusted": self.thresholds_adjusted,
            "stats": self.stats.to_dict(),
        }


class Consolidator:
    """One consolidation pass over a store.

    A decay pass runs at most once per ``cycle_interval_s`` of clock time, so
    back-to-back calls are no-ops apart from the stats recomputation.
    """

    def __init__(self, config: ConsolidationConfig):
        if not 0.0 < config.tuning_step <= 0.05:
            raise ValueError("tuning_step must be within (0, 0.05]")
        if not 0.0 < config.decay_factor < 1.0:
            raise ValueError("decay_factor must be within (0, 1)")
        self.config = config
        self.cycles = 0
        self._last_decay_at: Optional[float] = None

    def compute_stats(
        self,
        entries: List[CacheEntry],
        thresholds: AcceptanceThresholds,
        now: float,
    ) -> CacheStats:
        total = len(entries)
        stats = CacheStats(
            total_entries=total,
            consolidation_cycles=self.cycles,
            min_quality=thresholds.min_quality,
            min_uniqueness=thresholds.min_uniqueness,
            computed_at=now,
        )
        if total == 0:
            return stats

        weights = [e.cognitive_weight for e in entries if math.isfinite(e.cognitive_weight)]
        stats.average_weight = sum(weights) / len(weights) if weights else 0.0
        stats.self_perception_ratio = (
            sum(1 for w in weights if w > self.config.quality_bar) / total
        )

        clusters = Counter(e.cluster_id for e in entries)
        stats.cluster_counts = dict(sorted(clusters.items()))
        stats.diversity = len(clusters) / total
        stats.emergent_patterns = [
            EmergentPattern(
                cluster_id=cid,
                label=cluster_label(cid),
                count=count,
                frequency=count / total,
            )
            for cid, count in sorted(clusters.items(), key=lambda kv: (-kv[1], kv[0]))
            if count / total > self.config.emergent_frequency
        ]

        states = Counter(
            e.state(now, self.config.inactivity_window_s).value for e in entries
        )
        stats.state_counts = dict(sorted(states.items()))
        stats.semantic_tags = len({t for e in entries for t in e.tags})
        return stats

    def _decay_entry(self, entry: CacheEntry) -> bool:
        """Decay one idle entry; True if it fell below the survival floor."""
        weight = entry.cognitive_weight
        if not math.isfinite(weight) or weight < 0:
            raise ConsolidationError(
                "Invalid cognitive weight",
                context={"entry_id": entry.id, "weight": weight},
            )
        entry.cognitive_weight = weight * self.config.decay_factor
        return entry.cognitive_weight < self.config.survival_floor

    def _tune(self, stats: CacheStats, thresholds: AcceptanceThresholds) -> Optional[str]:
        cfg = self.config
        if stats.total_entries == 0:
            return None
        if stats.average_weight > cfg.saturation_weight:
            step = cfg.tuning_step
            direction = "raised"
        elif stats.diversity < cfg.target_diversity:
            step = -cfg.tuning_step
            direction = "lowered"
        else:
            return None

        before = (thresholds.min_quality, thresholds.min_uniqueness)
        thresholds.min_quality = _clamp(
            thresholds.min_quality + step, cfg.threshold_floor, cfg.threshold_ceiling
        )
        thresholds.min_uniqueness = _clamp(
            thresholds.min_uniqueness + step, cfg.threshold_floor, cfg.threshold_ceiling
        )
        if (thresholds.min_quality, thresholds.min_uniqueness) == before:
            return None
        logger.info(
            f"Acceptance thresholds {direction}: quality={thresholds.min_quality:.2f}, "
            f"uniqueness={thresholds.min_uniqueness:.2f}"
        )
        return direction

    def fold_near_duplicates(
        self,
        store: BoundedStore,
        threshold: float,
        report: ConsolidationReport,
    ) -> None:
        """Fold each entry into the most similar stronger entry at or above ``threshold``.

        Entries are visited strongest first (weight, access count, age), so the
        survivor of every fold is the stronger one. Zero vectors never match.
        """
        entries = sorted(
            store.all(),
            key=lambda e: (
                -(e.cognitive_weight if math.isfinite(e.cognitive_weight) else -1.0),
                -e.access_count,
                e.created_at,
                e.id,
            ),
        )
        units: List[Optional[np.ndarray]] = []
        for entry in entries:
            norm = np.linalg.norm(entry.embedding)
            units.append(entry.embedding / norm if norm > 0 else None)

        kept: List[int] = []
        for i, entry in enumerate(entries):
            unit = units[i]
            if unit is None:
                continue
            target: Optional[int] = None
            best = threshold
            for j in kept:
                other = units[j]
                if other.shape != unit.shape:
                    continue
                similarity = float(np.dot(unit, other))
                if similarity >= best:
                    target, best = j, similarity
            if target is None:
                kept.append(i)
                continue

            survivor = entries[target]
            survivor.access_count += entry.access_count
            survivor.cognitive_weight = max(survivor.cognitive_weight, entry.cognitive_weight)
            survivor.tags |= entry.tags
            survivor.last_accessed = max(survivor.last_accessed, entry.last_accessed)
            survivor.created_at = min(survivor.created_at, entry.created_at)
            survivor.merge_count += entry.merge_count + 1
            store.remove(entry.id)

            report.folded += 1
            report.removed_ids.append(entry.id)
            if survivor.id not in report.merged_ids:
                report.merged_ids.append(survivor.id)
            logger.debug(f"Folded {entry.id} into {survivor.id} (similarity={best:.3f})")

    def run(
        self,
        store: BoundedStore,
        thresholds: AcceptanceThresholds,
        now: float,
        similarity_threshold: Optional[float] = None,
    ) -> ConsolidationReport:
        """One pass. With ``similarity_threshold`` set, near-duplicates are folded
        on every call, decay pass or not."""
        cfg = self.config
        report = ConsolidationReport()

        due = self._last_decay_at is None or now - self._last_decay_at >= cfg.cycle_interval_s
        if due:
            self._last_decay_at = now
            self.cycles += 1
            report.decay_applied = True
            for entry in store.all():
                if now - entry.last_accessed <= cfg.inactivity_window_s:
                    continue
                try:
                    dead = self._decay_entry(entry)
                except ConsolidationError as e:
                    logger.error(f"Skipping entry during consolidation: {e}")
                    report.skipped_ids.append(entry.id)
                    continue
                report.decayed += 1
                if dead:
                    store.remove(entry.id)
                    report.removed_ids.append(entry.id)

        if similarity_threshold is not None:
            self.fold_near_duplicates(store, similarity_threshold, report)

        report.stats = self.compute_stats(store.all(), thresholds, now)
        if due and cfg.self_tuning:
            report.thresholds_adjusted = self._tune(report.stats, thresholds)
            report.stats.min_quality = thresholds.min_quality
            report.stats.min_uniqueness = thresholds.min_uniqueness

        if report.removed_ids:
            logger.info(
                f"Consolidation removed {len(report.removed_ids)} entries "
                f"({EntryState.REMOVED.value}, {report.folded} folded); "
                f"{report.stats.total_entries} remain"
            )
        return report


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ConsolidationScheduler:
    """Background thread that calls ``cache.consolidate()`` every ``interval_s``.

    ``stop()`` returns only after the thread has exited, so no cycle runs after it.
    """

    def __init__(self, cache: "SemanticCache", interval_s: float = 30.0):
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.cache = cache
        self.interval_s = float(interval_s)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._loop, name="sapicache-consolidation", daemon=True
            )
            self._thread.start()
            logger.info(f"Consolidation scheduler started (every {self.interval_s:.1f}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            self._stop.set()
            thread = self._thread
            self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            logger.info("Consolidation scheduler stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                self.cache.consolidate()
            except Exception:
                logger.exception("Consolidation cycle failed; will retry next interval")


__all__ = [
    "CacheStats",
    "ConsolidationReport",
    "Consolidator",
    "ConsolidationScheduler",
    "EmergentPattern",
]
