"""Cache error taxonomy and retry helpers.

Most of these never reach a caller of ``SemanticCache``: validation and
duplicate outcomes become ingest status values, embedding failures trigger
the lexical fallback, consolidation failures skip one entry, and
persistence failures are logged and dropped.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger("SAPICACHE.Errors")

T = TypeVar("T")


class SapicacheError(Exception):
    """Base exception for the cache engine."""

    def __init__(self, message: str, context: Optional[dict] = None):
        """Initialize exception with context.

        Args:
            message: Error message
            context: Dictionary with additional context (component, entry id, ...)
        """
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        result = f"[{self.__class__.__name__}] {self.message}"
        if self.context:
            result += f" (context: {self.context})"
        return result


class ConfigurationError(SapicacheError):
    """Raised when configuration is invalid."""
    pass


class ValidationError(SapicacheError):
    """Raised when fragment content is outside the accepted bounds."""
    pass


class DuplicateError(SapicacheError):
    """Raised when a fragment's exact hash is already stored."""
    pass


class EmbeddingError(SapicacheError):
    """Raised when text cannot be turned into an embedding."""
    pass


class ConsolidationError(SapicacheError):
    """Raised when one entry cannot be processed during a consolidation cycle."""
    pass


class PersistenceError(SapicacheError):
    """Raised when the durable store rejects a read or write."""
    pass


class EntryNotFoundError(SapicacheError, KeyError):
    """Raised when an entry id is not in the store."""

    def __init__(self, entry_id: str):
        super().__init__(f"Entry not found: {entry_id}", context={"entry_id": entry_id})
        self.entry_id = entry_id

    def __str__(self) -> str:
        return SapicacheError.__str__(self)


class RetryConfig:
    """Configuration for retry logic."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_backoff_s: float = 0.5,
        backoff_factor: float = 1.5,
        max_backoff_s: float = 30.0,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts
            initial_backoff_s: Initial backoff delay in seconds
            backoff_factor: Exponential backoff multiplier
            max_backoff_s: Maximum backoff delay
        """
        self.max_attempts = max(1, max_attempts)
        self.initial_backoff_s = max(0.0, initial_backoff_s)
        self.backoff_factor = max(1.0, backoff_factor)
        self.max_backoff_s = max(self.initial_backoff_s, max_backoff_s)


def retry_with_backoff(
    func: Callable[..., T],
    *args,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
) -> T:
    """Execute function with exponential backoff retry.

    Args:
        func: Function to execute
        *args: Positional arguments for func
        config: RetryConfig instance
        on_retry: Callback on retry (attempt_num, exception)
        sleep: Sleep function, replaceable in tests
        **kwargs: Keyword arguments for func

    Returns:
        Result of func execution

    Raises:
        The last exception encountered if all attempts fail
    """
    if config is None:
        config = RetryConfig()

    last_exception: Optional[Exception] = None
    backoff_s = config.initial_backoff_s

    for attempt in range(1, config.max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            last_exception = e

            if attempt < config.max_attempts:
                if on_retry:
                    on_retry(attempt, e)

                logger.warning(
                    f"Attempt {attempt} failed: {e}. "
                    f"Retrying in {backoff_s:.1f}s..."
                )
                sleep(backoff_s)
                backoff_s = min(backoff_s * config.backoff_factor, config.max_backoff_s)
            else:
                logger.error(f"All {config.max_attempts} attempts failed. Last error: {e}")

    assert last_exception is not None
    raise last_exception


__all__ = [
    "SapicacheError",
    "ConfigurationError",
    "ValidationError",
    "DuplicateError",
    "EmbeddingError",
    "ConsolidationError",
    "PersistenceError",
    "EntryNotFoundError",
    "RetryConfig",
    "retry_with_backoff",
]
