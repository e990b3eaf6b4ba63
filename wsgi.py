import logging
import os
import signal
import sys

from Sapicache.api.server import create_app as create_api_app
from Sapicache.config.logging_config import setup_logging
from Sapicache.config.settings import get_config
from Sapicache.memory.cache import build_cache

logger = logging.getLogger(__name__)

# Global state for graceful shutdown
_app_state = {"app": None, "cache": None}


def graceful_shutdown(signum, frame):
    """Handle graceful shutdown on SIGTERM/SIGINT."""
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    app = _app_state.get("app")
    if app is not None:
        app.config["SHUTTING_DOWN"] = True

    cache = _app_state.get("cache")
    if cache is not None:
        try:
            cache.close()
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")

    logger.info("Shutdown complete")
    sys.exit(0)


def create_app():
    """Create Flask app with production configuration.

    The cache lives in process memory, so run gunicorn with a single worker
    (``gunicorn wsgi:app -w 1 --threads 8``) to keep one shared cache.
    """
    config = get_config(os.getenv("SAPICACHE_CONFIG"))
    setup_logging(config.logging.level, config.logging.format, config.logging.file_path)

    logger.info("Initializing semantic cache...")
    cache = build_cache(config)
    _app_state["cache"] = cache

    app = create_api_app(config, cache=cache)
    _app_state["app"] = app

    signal.signal(signal.SIGTERM, graceful_shutdown)
    signal.signal(signal.SIGINT, graceful_shutdown)

    logger.info("Sapicache API server ready")
    return app


if __name__ == "__main__":
    app = create_app()
    debug = os.getenv("FLASK_ENV") == "development"
    port = int(os.getenv("SAPICACHE_API_PORT", 8000))

    if debug:
        logger.info(f"Starting development server on port {port}")
        app.run(host="0.0.0.0", port=port, debug=True, use_reloader=False)
    else:
        logger.info("Use gunicorn to start production server: gunicorn wsgi:app -w 1 --threads 8")
else:
    # Create app instance for WSGI servers
    app = create_app()
