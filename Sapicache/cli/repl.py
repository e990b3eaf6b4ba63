"""Interactive REPL for Sapicache."""

from __future__ import annotations

from typing import Optional

from ..memory.cache import SemanticCache
from .commands import handle_command


def run_repl(cache: Optional[SemanticCache] = None) -> None:
    if cache is None:
        cache = SemanticCache()

    print("\nCommands:")
    print("  ingest <text>                   → offer one fragment to the cache")
    print("  ingest_file <path> [source]     → ingest each paragraph of a text file")
    print("  get <entry_id>                  → show one entry (counts as an access)")
    print("  tags <tag> [<tag> ...] [--min r] → entries sharing at least r of the tags")
    print("  search <text>                   → nearest entries by embedding")
    print("  sample [k]                      → weighted random sample")
    print("  stats                           → cache statistics")
    print("  consolidate                     → run one decay/consolidation pass")
    print("  exit")

    try:
        while True:
            try:
                cmd = input("\n> ").strip()
            except (EOFError, KeyboardInterrupt):
                break

            try:
                should_continue, _info = handle_command(cache, cmd)
                if not should_continue:
                    break
            except Exception as e:
                print(f"[SAPICACHE] Command failed: {e}")
    finally:
        cache.close()


__all__ = ["run_repl"]
