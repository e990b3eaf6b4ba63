"""Integration tests for the REST API."""

import json

import pytest

from Sapicache.api.schemas import IngestRequest, TagQueryRequest, TextQueryRequest
from Sapicache.api.server import CacheAPIServer

FRAGMENT = "la luz del alma respira en el silencio"


@pytest.fixture
def client(cache):
    """Create Flask test client."""
    server = CacheAPIServer(cache)
    app = server.create_flask_app()
    app.config["TESTING"] = True

    with app.test_client() as client:
        yield client


def _post(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


class TestHealthCheck:
    """Test health check endpoint."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = json.loads(response.data)
        assert data["success"] is True
        assert data["data"]["status"] == "healthy"
        assert data["data"]["entries"] == 0
        assert response.headers["X-Request-ID"]

    def test_shutting_down_returns_503(self, client):
        client.application.config["SHUTTING_DOWN"] = True
        response = client.get("/health")
        assert response.status_code == 503
        data = json.loads(response.data)
        assert data["success"] is False
        assert data["error"] == "SERVICE_UNAVAILABLE"
        assert data["data"]["message"] == "Server is shutting down"

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req_123"})
        assert response.headers["X-Request-ID"] == "req_123"
        assert json.loads(response.data)["request_id"] == "req_123"


class TestIngestEndpoint:
    """Test ingestion endpoint."""

    def test_ingest_success(self, client):
        response = _post(client, "/api/ingest", {"content": FRAGMENT, "tags": ["api"]})
        assert response.status_code == 201
        data = json.loads(response.data)
        assert data["success"] is True
        assert data["data"]["status"] == "inserted"
        assert data["data"]["entryId"].startswith("cache_")

    def test_ingest_duplicate(self, client):
        _post(client, "/api/ingest", {"content": FRAGMENT})
        response = _post(client, "/api/ingest", {"content": FRAGMENT})
        assert response.status_code == 200
        assert json.loads(response.data)["data"]["status"] == "rejected_duplicate"

    def test_ingest_too_short(self, client):
        response = _post(client, "/api/ingest", {"content": "corto"})
        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["status"] == "rejected_low_quality"
        assert data["reason"] == "length"

    def test_ingest_invalid_body(self, client):
        response = _post(client, "/api/ingest", {"content": "   "})
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data["success"] is False
        assert data["error"] == "VALIDATION_ERROR"

    def test_ingest_missing_body(self, client):
        response = client.post("/api/ingest")
        assert response.status_code == 400


class TestEntryEndpoint:
    """Test entry lookup."""

    def test_get_entry(self, client):
        entry_id = json.loads(_post(client, "/api/ingest", {"content": FRAGMENT}).data)["data"]["entryId"]
        response = client.get(f"/api/entries/{entry_id}")
        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["content"] == FRAGMENT
        assert data["accessCount"] == 2
        assert "embedding" not in data

    def test_get_entry_with_embedding(self, client):
        entry_id = json.loads(_post(client, "/api/ingest", {"content": FRAGMENT}).data)["data"]["entryId"]
        data = json.loads(client.get(f"/api/entries/{entry_id}?embedding=true").data)["data"]
        assert len(data["embedding"]) == 384

    def test_get_missing_entry(self, client):
        response = client.get("/api/entries/cache_missing")
        assert response.status_code == 404
        assert json.loads(response.data)["error"] == "NOT_FOUND"


class TestQueryEndpoints:
    """Test tag and text queries."""

    def test_query_tags(self, client):
        _post(client, "/api/ingest", {"content": FRAGMENT, "tags": ["api"]})
        response = _post(client, "/api/query/tags", {"tags": ["api"], "min_overlap": 1.0})
        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["count"] == 1
        assert data["entries"][0]["content"] == FRAGMENT

    def test_query_tags_requires_tags(self, client):
        response = _post(client, "/api/query/tags", {"tags": []})
        assert response.status_code == 400

    def test_query_text(self, client):
        _post(client, "/api/ingest", {"content": FRAGMENT})
        response = _post(client, "/api/query/text", {"query": FRAGMENT, "top_k": 3})
        data = json.loads(response.data)["data"]
        assert data["count"] == 1
        assert data["results"][0]["similarity"] == pytest.approx(1.0)

    def test_sample(self, client):
        _post(client, "/api/ingest", {"content": FRAGMENT})
        data = json.loads(client.get("/api/sample?k=3").data)["data"]
        assert data["count"] == 3

    def test_sample_invalid_k(self, client):
        assert client.get("/api/sample?k=-1").status_code == 400


class TestStatsAndConsolidation:
    """Test stats and consolidation endpoints."""

    def test_stats(self, client):
        _post(client, "/api/ingest", {"content": FRAGMENT})
        data = json.loads(client.get("/api/stats").data)["data"]
        assert data["cache"]["totalEntries"] == 1
        assert data["metrics"]["counts"]["ingest.inserted"] == 1

    def test_consolidate(self, client):
        response = client.post("/api/consolidate")
        assert response.status_code == 200
        data = json.loads(response.data)["data"]
        assert data["decayApplied"] is True
        assert data["stats"]["totalEntries"] == 0

    def test_unknown_route(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert json.loads(response.data)["success"] is False


class TestSchemas:
    """Request schema validation."""

    def test_ingest_request(self):
        request = IngestRequest(content="texto de prueba suficiente")
        assert request.tags is None

    def test_ingest_request_empty_content(self):
        with pytest.raises(ValueError):
            IngestRequest(content="")

    def test_tag_query_strips(self):
        assert TagQueryRequest(tags=[" a ", "", "b"]).tags == ["a", "b"]

    def test_text_query_bounds(self):
        with pytest.raises(ValueError):
            TextQueryRequest(query="luz", top_k=0)


class TestAppFactory:
    """create_app wiring."""

    def test_create_app_with_cache(self, cache):
        from Sapicache.api.server import create_app
        from Sapicache.config.settings import SapicacheConfig

        app = create_app(SapicacheConfig(), cache=cache)
        assert app.cache is cache
        with app.test_client() as client:
            assert client.get("/health").status_code == 200

    def test_build_cache_from_config(self, tmp_path):
        from Sapicache.config.settings import SapicacheConfig
        from Sapicache.memory.cache import build_cache

        config = SapicacheConfig()
        config.cache.capacity = 12
        config.persistence.backend = "file"
        config.persistence.path = str(tmp_path / "entries.json.gz")
        cache = build_cache(config)
        try:
            assert cache.store.capacity == 12
            assert cache.persistence is not None
        finally:
            cache.close()
