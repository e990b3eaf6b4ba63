"""Per-component counters for cache operations (ingest outcomes, consolidation)."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger("SAPICACHE.Metrics")


@dataclass
class ComponentMetrics:
    """Metrics for a single component."""

    component: str
    requests: int = 0
    errors: int = 0
    total_latency_s: float = 0.0
    min_latency_s: float = float("inf")
    max_latency_s: float = 0.0
    last_latency_s: float = 0.0
    created_at: float = field(default_factory=time.time)
    last_updated: float = field(default_factory=time.time)

    @property
    def avg_latency_s(self) -> float:
        return self.total_latency_s / max(1, self.requests)

    @property
    def error_rate(self) -> float:
        """Error rate as percentage."""
        return (self.errors / max(1, self.requests)) * 100

    def record_request(self, latency_s: float, success: bool = True) -> None:
        self.requests += 1
        self.total_latency_s += latency_s
        self.last_latency_s = latency_s
        self.min_latency_s = min(self.min_latency_s, latency_s)
        self.max_latency_s = max(self.max_latency_s, latency_s)
        self.last_updated = time.time()
        if not success:
            self.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["min_latency_s"] == float("inf"):
            data["min_latency_s"] = 0.0
        data["avg_latency_s"] = self.avg_latency_s
        data["error_rate"] = self.error_rate
        return data


class MetricsCollector:
    """Thread-safe metrics collection."""

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self._metrics: Dict[str, ComponentMetrics] = {}
        self._lock = threading.RLock()

    def record(self, component: str, latency_s: float = 0.0, success: bool = True) -> None:
        """Record one operation for a component (e.g. "ingest.inserted")."""
        if not self._enabled:
            return

        with self._lock:
            if component not in self._metrics:
                self._metrics[component] = ComponentMetrics(component=component)
            self._metrics[component].record_request(latency_s, success)

    def count(self, component: str) -> int:
        with self._lock:
            metrics = self._metrics.get(component)
            return metrics.requests if metrics else 0

    def get_summary(self) -> Dict[str, Any]:
        with self._lock:
            total_requests = sum(m.requests for m in self._metrics.values())
            total_errors = sum(m.errors for m in self._metrics.values())
            return {
                "total_requests": total_requests,
                "total_errors": total_errors,
                "counts": {name: m.requests for name, m in self._metrics.items()},
                "components": {name: m.to_dict() for name, m in self._metrics.items()},
            }

    def reset(self, component: Optional[str] = None) -> None:
        with self._lock:
            if component:
                self._metrics.pop(component, None)
            else:
                self._metrics.clear()

    def __repr__(self) -> str:
        return f"MetricsCollector({len(self._metrics)} components)"


__all__ = ["ComponentMetrics", "MetricsCollector"]
