"""REST API for the semantic cache."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .. import __version__
from ..config.logging_config import setup_logging
from ..config.settings import SapicacheConfig, get_config
from ..memory.cache import SemanticCache, build_cache
from ..memory.entry import CacheEntry
from ..memory.ingestion import IngestStatus
from .errors import NotFoundError, ServiceUnavailableError, setup_error_handlers
from .schemas import IngestRequest, SampleParams, TagQueryRequest, TextQueryRequest, parse_args, parse_json

logger = logging.getLogger("SAPICACHE.API")


def add_security_headers(response):
    """Add security headers to response."""
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


@dataclass
class APIResponse:
    """Standardized API response."""
    success: bool
    data: Any
    error: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "request_id": self.request_id,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
        }


def entry_payload(entry: CacheEntry, include_embedding: bool = False) -> Dict[str, Any]:
    data = entry.to_dict()
    if not include_embedding:
        data.pop("embedding", None)
    data["mergeCount"] = entry.merge_count
    return data


def _ok(data: Any, status: int = 200):
    return jsonify(APIResponse(
        success=True,
        data=data,
        request_id=getattr(request, "request_id", None),
    ).to_dict()), status


class CacheAPIServer:
    """Flask front end over one SemanticCache instance."""

    def __init__(
        self,
        cache: SemanticCache,
        host: str = "0.0.0.0",
        port: int = 8000,
        max_content_length: int = 1_000_000,
    ):
        self.cache = cache
        self.host = host
        self.port = port
        self.max_content_length = max_content_length
        self.app: Optional[Flask] = None

    def create_flask_app(self) -> Flask:
        app = Flask(__name__)
        app.config["JSON_SORT_KEYS"] = False
        app.config["MAX_CONTENT_LENGTH"] = self.max_content_length
        app.config["SHUTTING_DOWN"] = False

        CORS(app, resources={r"/api/*": {"origins": "*"}})
        app.cache = self.cache  # type: ignore[attr-defined]

        setup_error_handlers(app)
        self._register_middleware(app)
        self._register_routes(app)

        self.app = app
        return app

    def _register_middleware(self, app: Flask) -> None:
        @app.before_request
        def before_request():
            request.request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))  # type: ignore[attr-defined]
            if app.config.get("SHUTTING_DOWN"):
                raise ServiceUnavailableError("Server is shutting down")

        @app.after_request
        def after_request(response):
            response = add_security_headers(response)
            if hasattr(request, "request_id"):
                response.headers["X-Request-ID"] = request.request_id  # type: ignore[attr-defined]
            return response

    def _register_routes(self, app: Flask) -> None:
        cache = self.cache

        @app.route("/health", methods=["GET"])
        def health():
            """Service health check."""
            return _ok({
                "status": "healthy",
                "version": __version__,
                "entries": len(cache),
                "capacity": cache.config.capacity,
            })

        @app.route("/api/ingest", methods=["POST"])
        def ingest():
            """Offer one fragment to the cache."""
            body = parse_json(IngestRequest)
            result = cache.ingest(body.content, source_url=body.source_url, tags=body.tags)
            logger.debug(f"Ingest via API: {result.status.value}")
            return _ok(result.to_dict(), 201 if result.status is IngestStatus.INSERTED else 200)

        @app.route("/api/entries/<entry_id>", methods=["GET"])
        def get_entry(entry_id: str):
            include_embedding = request.args.get("embedding", "").lower() in ("1", "true", "yes")
            entry = cache.get(entry_id)
            if entry is None:
                raise NotFoundError(f"Entry not found: {entry_id}")
            return _ok(entry_payload(entry, include_embedding))

        @app.route("/api/query/tags", methods=["POST"])
        def query_tags():
            body = parse_json(TagQueryRequest)
            entries = cache.query_by_tags(body.tags, body.min_overlap)
            if body.limit is not None:
                entries = entries[: body.limit]
            return _ok({"count": len(entries), "entries": [entry_payload(e) for e in entries]})

        @app.route("/api/query/text", methods=["POST"])
        def query_text():
            body = parse_json(TextQueryRequest)
            hits = cache.query_by_text(body.query, body.top_k)
            return _ok({
                "count": len(hits),
                "results": [
                    {"similarity": hit["similarity"], "entry": entry_payload(hit["entry"])}
                    for hit in hits
                ],
            })

        @app.route("/api/sample", methods=["GET"])
        def sample():
            params = parse_args(SampleParams)
            entries = cache.sample_weighted(params.k)
            return _ok({"count": len(entries), "entries": [entry_payload(e) for e in entries]})

        @app.route("/api/stats", methods=["GET"])
        def get_stats():
            """Cache statistics plus operation counters."""
            return _ok({
                "cache": cache.stats().to_dict(),
                "metrics": cache.metrics.get_summary(),
            })

        @app.route("/api/consolidate", methods=["POST"])
        def consolidate():
            report = cache.consolidate()
            return _ok(report.to_dict())

    def run(self, debug: bool = False):
        """Run the development server."""
        if self.app is None:
            self.create_flask_app()

        logger.info(f"Starting Sapicache API server on {self.host}:{self.port}")
        if self.app is not None:
            self.app.run(host=self.host, port=self.port, debug=debug, use_reloader=False)


def create_app(
    config: Optional[SapicacheConfig] = None,
    cache: Optional[SemanticCache] = None,
) -> Flask:
    """Factory function to create the Flask app for WSGI servers."""
    config = config or get_config()
    if cache is None:
        setup_logging(config.logging.level, config.logging.format, config.logging.file_path)
        cache = build_cache(config)
    server = CacheAPIServer(
        cache,
        host=config.api.host,
        port=config.api.port,
        max_content_length=config.api.max_content_length,
    )
    return server.create_flask_app()


__all__ = ["APIResponse", "CacheAPIServer", "create_app", "entry_payload"]
