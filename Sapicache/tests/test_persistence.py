"""Tests for durable store clients, background writes and warm-up."""

from unittest.mock import MagicMock

import numpy as np
import pytest
import requests

from Sapicache.config.settings import PersistenceConfig
from Sapicache.memory.entry import CacheEntry
from Sapicache.memory.ingestion import IngestStatus
from Sapicache.memory.persistence import (
    JsonFilePersistence,
    RestPersistence,
    build_persistence,
)
from Sapicache.utils.errors import PersistenceError, RetryConfig

from .conftest import FixedScorer, make_entry

FRAGMENT = "la luz del alma respira en el silencio"


class TestEntrySerialization:
    """Export form of an entry."""

    def test_round_trip(self):
        entry = make_entry("a", weight=0.7, tags={"x", "y"}, embedding=np.array([0.6, 0.8]))
        data = entry.to_dict()
        assert data["contentHash"] == entry.content_hash
        assert data["tags"] == ["x", "y"]
        restored = CacheEntry.from_dict(data)
        assert restored.id == "a"
        assert restored.tags == {"x", "y"}
        assert np.array_equal(restored.embedding, entry.embedding)

    @pytest.mark.parametrize("field,value", [
        ("qualityScore", 1.5),
        ("cognitiveWeight", -0.1),
        ("accessCount", -1),
        ("createdAt", "yesterday"),
    ])
    def test_invalid_fields(self, field, value):
        data = make_entry("a").to_dict()
        data[field] = value
        with pytest.raises(ValueError):
            CacheEntry.from_dict(data)

    def test_missing_field(self):
        data = make_entry("a").to_dict()
        del data["content"]
        with pytest.raises(KeyError):
            CacheEntry.from_dict(data)


class TestJsonFilePersistence:
    """Gzipped snapshot file."""

    def test_persist_and_load(self, tmp_path):
        client = JsonFilePersistence(str(tmp_path / "cache" / "entries.json.gz"))
        assert client.load_all() == []
        client.persist(make_entry("a"))
        client.persist(make_entry("b"))
        client.persist(make_entry("a", weight=0.9))
        records = {r["id"]: r for r in client.load_all()}
        assert set(records) == {"a", "b"}
        assert records["a"]["cognitiveWeight"] == 0.9

    def test_delete(self, tmp_path):
        client = JsonFilePersistence(str(tmp_path / "entries.json.gz"))
        client.persist(make_entry("a"))
        assert client.delete("a") is True
        assert client.delete("a") is False
        assert client.load_all() == []

    def test_unencodable_content_raises_persistence_error(self, tmp_path):
        path = tmp_path / "entries.json.gz"
        client = JsonFilePersistence(str(path))
        client.persist(make_entry("a"))
        broken = make_entry("b")
        broken.content = "texto con \ud800 suelto"
        with pytest.raises(PersistenceError):
            client.persist(broken)
        assert not (tmp_path / "entries.json.gz.tmp").exists()
        assert [r["id"] for r in client.load_all()] == ["a"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "entries.json.gz"
        path.write_bytes(b"not gzip")
        with pytest.raises(PersistenceError):
            JsonFilePersistence(str(path)).load_all()


class TestRestPersistence:
    """PostgREST table client."""

    def _client(self, session):
        return RestPersistence(
            "https://db.example.org/",
            table="cache_entries",
            api_key="secret",
            retry=RetryConfig(max_attempts=2, initial_backoff_s=0.0),
            session=session,
        )

    def test_persist_upserts(self):
        session = MagicMock()
        session.headers = {}
        client = self._client(session)
        assert client.persist(make_entry("a")) is True

        args, kwargs = session.request.call_args
        assert args == ("POST", "https://db.example.org/rest/v1/cache_entries")
        assert kwargs["json"]["id"] == "a"
        assert "merge-duplicates" in kwargs["headers"]["Prefer"]
        assert session.headers["apikey"] == "secret"

    def test_load_all(self):
        session = MagicMock()
        session.headers = {}
        session.request.return_value.json.return_value = [make_entry("a").to_dict()]
        rows = self._client(session).load_all()
        assert rows[0]["id"] == "a"

    def test_failure_is_retried_then_raised(self):
        session = MagicMock()
        session.headers = {}
        session.request.side_effect = requests.ConnectionError("down")
        with pytest.raises(PersistenceError):
            self._client(session).persist(make_entry("a"))
        assert session.request.call_count == 2

    def test_non_list_response(self):
        session = MagicMock()
        session.headers = {}
        session.request.return_value.json.return_value = {"error": "nope"}
        with pytest.raises(PersistenceError):
            self._client(session).load_all()


class TestBuildPersistence:
    """Backend selection from config."""

    def test_backends(self, tmp_path):
        assert build_persistence(PersistenceConfig()) is None
        assert isinstance(
            build_persistence(PersistenceConfig(backend="file", path=str(tmp_path / "x.json.gz"))),
            JsonFilePersistence,
        )
        assert isinstance(
            build_persistence(PersistenceConfig(backend="rest", rest_url="https://db.example.org")),
            RestPersistence,
        )
        assert build_persistence(PersistenceConfig(backend="rest")) is None


class TestCacheWrites:
    """Background persistence from the cache."""

    def test_inserted_entry_is_persisted(self, make_cache):
        client = MagicMock()
        cache = make_cache(persistence=client)
        result = cache.ingest(FRAGMENT)
        cache.flush(timeout=5)
        persisted = client.persist.call_args[0][0]
        assert persisted.id == result.entry_id

    def test_failure_does_not_affect_ingest(self, make_cache):
        client = MagicMock()
        client.persist.side_effect = PersistenceError("down")
        cache = make_cache(persistence=client)
        result = cache.ingest(FRAGMENT)
        cache.flush(timeout=5)
        assert result.status is IngestStatus.INSERTED
        assert len(cache) == 1
        assert cache._writer.failures == 1

    def test_rejections_are_not_persisted(self, make_cache):
        client = MagicMock()
        cache = make_cache(persistence=client)
        cache.ingest("corto")
        cache.flush(timeout=5)
        client.persist.assert_not_called()

    def test_file_round_trip_through_cache(self, make_cache, tmp_path):
        client = JsonFilePersistence(str(tmp_path / "entries.json.gz"))
        first = make_cache(persistence=client)
        result = first.ingest(FRAGMENT)
        first.flush(timeout=5)

        second = make_cache(persistence=client)
        assert second.warm_up() == 1
        restored = second.store.get(result.entry_id)
        assert restored.content == FRAGMENT
        assert second.ingest(FRAGMENT).status is IngestStatus.REJECTED_DUPLICATE


class TestWarmUp:
    """Cold-start loading."""

    def test_skips_malformed_and_duplicates(self, make_cache):
        good = make_entry("good", content="un fragmento válido de prueba")
        duplicate = make_entry("dup", content="un fragmento válido de prueba")
        broken = make_entry("broken").to_dict()
        del broken["content"]
        out_of_range = make_entry("oor").to_dict()
        out_of_range["qualityScore"] = 2.0

        client = MagicMock()
        client.load_all.return_value = [good.to_dict(), broken, out_of_range, duplicate.to_dict()]
        cache = make_cache(persistence=client)
        assert cache.warm_up() == 1
        assert len(cache) == 1
        assert "good" in cache.store

    def test_respects_capacity(self, make_cache):
        client = MagicMock()
        client.load_all.return_value = [make_entry(f"e{i}").to_dict() for i in range(5)]
        cache = make_cache(persistence=client, capacity=3, eviction_batch_fraction=0.0)
        assert cache.warm_up() == 5
        assert len(cache) == 3

    def test_mismatched_dimension_is_reembedded(self, make_cache):
        client = MagicMock()
        client.load_all.return_value = [make_entry("a", content=FRAGMENT).to_dict()]
        cache = make_cache(persistence=client)
        cache.warm_up()
        assert cache.store.get("a").embedding.shape == (384,)

    def test_unavailable_store(self, make_cache):
        client = MagicMock()
        client.load_all.side_effect = PersistenceError("down")
        cache = make_cache(persistence=client, scorer=FixedScorer())
        assert cache.warm_up() == 0
        assert len(cache) == 0

    def test_without_persistence(self, cache):
        assert cache.warm_up() == 0
