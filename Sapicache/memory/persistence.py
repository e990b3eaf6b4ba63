"""Best-effort durable storage for cache entries.

The in-memory store is authoritative. Clients raise ``PersistenceError`` on
failure; ``PersistenceWriter`` runs writes off the caller's thread and logs
and drops those errors.

Features:
- JSON snapshot file (gzip, atomic replace, upsert by id)
- PostgREST-style REST table via ``requests``
- Background writer with flush/shutdown
"""

from __future__ import annotations

import gzip
import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

import requests

from ..config.settings import PersistenceConfig
from ..utils.errors import PersistenceError, RetryConfig, retry_with_backoff
from .entry import CacheEntry

logger = logging.getLogger("SAPICACHE.Persistence")


class PersistenceClient(Protocol):
    """Durable store collaborator."""

    def persist(self, entry: CacheEntry) -> bool:
        ...

    def delete(self, entry_id: str) -> bool:
        ...

    def load_all(self) -> List[Dict[str, Any]]:
        ...


class JsonFilePersistence:
    """Gzipped JSON snapshot of all persisted entries, keyed by id."""

    SCHEMA_VERSION = 1

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with gzip.open(self.path, "rt", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError("Failed to read snapshot", context={"path": str(self.path), "error": str(e)}) from e
        entries = data.get("entries", {}) if isinstance(data, dict) else {}
        return entries if isinstance(entries, dict) else {}

    def _write(self, entries: Dict[str, Dict[str, Any]]) -> None:
        payload = {"version": self.SCHEMA_VERSION, "entries": entries}
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with gzip.open(temp_file, "wt", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            temp_file.replace(self.path)
        except (OSError, ValueError) as e:
            # ValueError covers UnicodeEncodeError from lone surrogates in content.
            if temp_file.exists():
                temp_file.unlink()
            raise PersistenceError("Failed to write snapshot", context={"path": str(self.path), "error": str(e)}) from e

    def persist(self, entry: CacheEntry) -> bool:
        with self._lock:
            entries = self._read()
            entries[entry.id] = entry.to_dict()
            self._write(entries)
        return True

    def delete(self, entry_id: str) -> bool:
        with self._lock:
            entries = self._read()
            if entries.pop(entry_id, None) is None:
                return False
            self._write(entries)
        return True

    def load_all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._read().values())


class RestPersistence:
    """Entries stored as rows of a PostgREST table (e.g. a Supabase project)."""

    def __init__(
        self,
        base_url: str,
        table: str = "cache_entries",
        api_key: Optional[str] = None,
        timeout_s: float = 5.0,
        retry: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
        load_limit: int = 1000,
    ):
        self.url = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self.timeout_s = timeout_s
        self.retry = retry or RetryConfig(max_attempts=2, initial_backoff_s=0.2)
        self.load_limit = load_limit
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })

    def _call(self, method: str, **kwargs: Any) -> requests.Response:
        def send() -> requests.Response:
            resp = self.session.request(method, self.url, timeout=self.timeout_s, **kwargs)
            resp.raise_for_status()
            return resp

        try:
            return retry_with_backoff(send, config=self.retry)
        except requests.RequestException as e:
            raise PersistenceError(
                f"REST {method} failed",
                context={"url": self.url, "error": str(e)},
            ) from e

    def persist(self, entry: CacheEntry) -> bool:
        self._call(
            "POST",
            json=entry.to_dict(),
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        return True

    def delete(self, entry_id: str) -> bool:
        self._call("DELETE", params={"id": f"eq.{entry_id}"})
        return True

    def load_all(self) -> List[Dict[str, Any]]:
        resp = self._call(
            "GET",
            params={"select": "*", "order": "createdAt.desc", "limit": str(self.load_limit)},
        )
        try:
            rows = resp.json()
        except ValueError as e:
            raise PersistenceError("REST response is not JSON", context={"url": self.url}) from e
        if not isinstance(rows, list):
            raise PersistenceError("REST response is not a list", context={"url": self.url})
        return rows


class PersistenceWriter:
    """Runs persistence calls on one background thread; failures are logged only."""

    def __init__(self, client: PersistenceClient):
        self.client = client
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sapicache-persist")
        self._pending: List[Future] = []
        self._lock = threading.Lock()
        self.failures = 0

    def _run(self, action: str, call: Callable[[], Any], entry_id: str) -> None:
        try:
            call()
        except PersistenceError as e:
            self.failures += 1
            logger.warning(f"Persistence {action} failed for {entry_id}: {e}")
        except Exception:
            self.failures += 1
            logger.exception(f"Unexpected persistence error during {action} of {entry_id}")

    def _submit(self, action: str, call: Callable[[], Any], entry_id: str) -> None:
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            try:
                future = self._executor.submit(self._run, action, call, entry_id)
            except RuntimeError:
                logger.warning(f"Persistence writer closed; dropping {action} of {entry_id}")
                return
            self._pending.append(future)

    def persist(self, entry: CacheEntry) -> None:
        snapshot = entry.snapshot()
        self._submit("persist", lambda: self.client.persist(snapshot), entry.id)

    def delete(self, entry_id: str) -> None:
        self._submit("delete", lambda: self.client.delete(entry_id), entry_id)

    def flush(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self.flush()
        self._executor.shutdown(wait=True)


def build_persistence(config: PersistenceConfig) -> Optional[PersistenceClient]:
    if config.backend == "file":
        return JsonFilePersistence(config.path)
    if config.backend == "rest":
        if not config.rest_url:
            logger.warning("REST persistence selected without rest_url; persistence disabled")
            return None
        return RestPersistence(
            config.rest_url,
            table=config.rest_table,
            api_key=config.rest_api_key,
            timeout_s=config.timeout_s,
            retry=RetryConfig(max_attempts=max(1, config.max_retries)),
        )
    return None


__all__ = [
    "PersistenceClient",
    "JsonFilePersistence",
    "RestPersistence",
    "PersistenceWriter",
    "build_persistence",
]
