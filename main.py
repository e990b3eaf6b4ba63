"""Entry point for Sapicache."""

from __future__ import annotations

import argparse
from typing import List, Optional


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="sapicache", description="Bounded semantic cache")
    parser.add_argument("--config", help="Path to a JSON config file")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("repl", help="Interactive shell (default)")
    serve = sub.add_parser("serve", help="Run the development HTTP server")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    from Sapicache.config.logging_config import setup_logging
    from Sapicache.config.settings import get_config
    from Sapicache.memory.cache import build_cache

    config = get_config(args.config)
    setup_logging(config.logging.level, config.logging.format, config.logging.file_path)
    cache = build_cache(config)

    if args.command == "serve":
        from Sapicache.api.server import CacheAPIServer

        server = CacheAPIServer(
            cache,
            host=args.host or config.api.host,
            port=args.port or config.api.port,
            max_content_length=config.api.max_content_length,
        )
        try:
            server.run(debug=args.debug)
        finally:
            cache.close()
        return

    from Sapicache.cli.repl import run_repl

    run_repl(cache)


if __name__ == "__main__":
    main()
