"""Centralized configuration for the cache engine.

Supports environment variables (``SAPICACHE_*``, optionally from a ``.env``
file), JSON config files, and programmatic overrides.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ..utils.errors import ConfigurationError

logger = logging.getLogger("SAPICACHE.Config")

DAY_S = 86400.0


@dataclass
class CacheConfig:
    """Store, dedup and acceptance settings."""
    capacity: int = 500
    eviction_batch_fraction: float = 0.2
    similarity_sample_size: int = 50  # most recently touched entries compared per ingest
    min_length: int = 20
    max_length: int = 2000
    near_duplicate_threshold: float = 0.85
    min_quality: float = 0.3
    min_uniqueness: float = 0.4
    merge_boost: float = 0.05
    access_reinforcement: float = 0.01
    age_half_life_s: float = 3 * DAY_S
    max_age_decay: float = 0.9
    fingerprint_size: int = 8
    seed: Optional[int] = None


@dataclass
class ScoringConfig:
    """Scoring coefficients."""
    quality_coefficient: float = 0.4
    uniqueness_coefficient: float = 0.4
    length_coefficient: float = 0.2
    saturation: float = 4.0
    rare_pattern_bonus: float = 0.1
    pattern_window: int = 200
    ideal_tokens: float = 12.0
    length_sigma: float = 8.0


@dataclass
class EmbeddingConfig:
    """Hashing embedder configuration."""
    dimension: int = 384
    default_weight: float = 0.5


@dataclass
class ConsolidationConfig:
    """Decay loop configuration."""
    enabled: bool = False  # background scheduler; consolidate() always works manually
    interval_s: float = 30.0
    cycle_interval_s: float = 30.0  # minimum clock time between two decay passes
    inactivity_window_s: float = 300.0
    decay_factor: float = 0.99
    survival_floor: float = 0.01
    quality_bar: float = 0.6  # weight above which an entry counts toward self-perception
    emergent_frequency: float = 0.15
    self_tuning: bool = True
    target_diversity: float = 0.01
    saturation_weight: float = 0.8
    tuning_step: float = 0.02
    threshold_floor: float = 0.1
    threshold_ceiling: float = 0.9


@dataclass
class PersistenceConfig:
    """Optional durable store."""
    backend: str = "none"  # none | file | rest
    path: str = "data/cache/entries.json.gz"
    rest_url: Optional[str] = None
    rest_table: str = "cache_entries"
    rest_api_key: Optional[str] = None
    timeout_s: float = 5.0
    max_retries: int = 2
    warm_up_on_start: bool = True


@dataclass
class APIConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    max_content_length: int = 1_000_000


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "standard"  # standard | json
    file_path: Optional[str] = None


@dataclass
class SapicacheConfig:
    """Master configuration."""
    cache: CacheConfig = field(default_factory=CacheConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    consolidation: ConsolidationConfig = field(default_factory=ConsolidationConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    api: APIConfig = field(default_factory=APIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def validate(self) -> "SapicacheConfig":
        """Raise ConfigurationError for out-of-range values; return self."""
        c = self.cache
        problems = []
        if c.capacity <= 0:
            problems.append("cache.capacity must be positive")
        if not 0.0 <= c.eviction_batch_fraction < 1.0:
            problems.append("cache.eviction_batch_fraction must be within [0, 1)")
        if c.similarity_sample_size <= 0:
            problems.append("cache.similarity_sample_size must be positive")
        if c.min_length < 0 or c.max_length < c.min_length:
            problems.append("cache.min_length/max_length are inconsistent")
        for name in ("near_duplicate_threshold", "min_quality", "min_uniqueness",
                     "merge_boost", "access_reinforcement", "max_age_decay"):
            value = getattr(c, name)
            if not 0.0 <= value <= 1.0:
                problems.append(f"cache.{name} must be within [0, 1]")
        if c.age_half_life_s <= 0:
            problems.append("cache.age_half_life_s must be positive")

        k = self.consolidation
        if not 0.0 < k.decay_factor < 1.0:
            problems.append("consolidation.decay_factor must be within (0, 1)")
        if not 0.0 <= k.survival_floor < 1.0:
            problems.append("consolidation.survival_floor must be within [0, 1)")
        if not 0.0 < k.tuning_step <= 0.05:
            problems.append("consolidation.tuning_step must be within (0, 0.05]")
        if not 0.0 <= k.threshold_floor <= k.threshold_ceiling <= 1.0:
            problems.append("consolidation threshold range is inconsistent")
        if k.interval_s <= 0 or k.inactivity_window_s < 0 or k.cycle_interval_s < 0:
            problems.append("consolidation intervals must be non-negative")

        if not 0.0 <= self.scoring.rare_pattern_bonus <= 0.3:
            problems.append("scoring.rare_pattern_bonus must be within [0, 0.3]")
        if self.embedding.dimension <= 0:
            problems.append("embedding.dimension must be positive")
        if self.persistence.backend not in ("none", "file", "rest"):
            problems.append("persistence.backend must be none, file or rest")

        if problems:
            raise ConfigurationError("; ".join(problems), context={"problems": problems})
        return self

    def save(self, path: str) -> None:
        """Save config to JSON file."""
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=2)
            logger.info(f"Config saved to {path}")
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    @classmethod
    def load(cls, path: str) -> "SapicacheConfig":
        """Load config from JSON file; missing or unreadable files give defaults."""
        if not os.path.exists(path):
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config: {e}, using defaults")
            return cls()

        config = cls()
        for key, value in data.items():
            if hasattr(config, key) and isinstance(value, dict):
                setattr(config, key, cls._update_dataclass(getattr(config, key), value))
        logger.info(f"Config loaded from {path}")
        return config

    @staticmethod
    def _update_dataclass(obj: Any, data: Dict[str, Any]) -> Any:
        for key, value in data.items():
            if hasattr(obj, key):
                setattr(obj, key, value)
        return obj

    @classmethod
    def from_env(cls, base: Optional["SapicacheConfig"] = None) -> "SapicacheConfig":
        """Apply ``SAPICACHE_<SECTION>_<FIELD>`` environment overrides."""
        config = base or cls()

        for section_name, section in asdict(config).items():
            target = getattr(config, section_name)
            for field_name, current in section.items():
                key = f"SAPICACHE_{section_name}_{field_name}".upper()
                raw = os.getenv(key)
                if raw is None:
                    continue
                try:
                    setattr(target, field_name, _coerce(raw, current))
                except ValueError:
                    logger.warning(f"Invalid value for {key}={raw}, keeping {current!r}")
        return config


def _coerce(raw: str, current: Any) -> Any:
    if isinstance(current, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if current is None:
        lowered = raw.strip().lower()
        if lowered in ("", "none", "null"):
            return None
        try:
            return int(raw)
        except ValueError:
            return raw
    return raw


def get_config(config_path: Optional[str] = None, use_env: bool = True) -> SapicacheConfig:
    """Get configuration. Priority: env vars > config file > defaults."""
    config = SapicacheConfig()
    if config_path:
        config = SapicacheConfig.load(config_path)
    if use_env:
        load_dotenv(override=False)
        config = SapicacheConfig.from_env(config)
    return config.validate()


__all__ = [
    "SapicacheConfig",
    "CacheConfig",
    "ScoringConfig",
    "EmbeddingConfig",
    "ConsolidationConfig",
    "PersistenceConfig",
    "APIConfig",
    "LoggingConfig",
    "get_config",
]
