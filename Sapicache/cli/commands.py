"""Command handlers for the Sapicache REPL."""

from __future__ import annotations

import json
import re
import shlex
from collections import Counter
from typing import Any, Dict, List, Tuple

from ..memory.cache import SemanticCache
from ..memory.entry import CacheEntry

PREFIX = "[SAPICACHE]"


def split_fragments(text: str) -> List[str]:
    """Blank-line separated paragraphs, whitespace collapsed."""
    return [
        " ".join(block.split())
        for block in re.split(r"\n\s*\n", text or "")
        if block.strip()
    ]


def _short(entry: CacheEntry, width: int = 70) -> str:
    content = entry.content if len(entry.content) <= width else entry.content[: width - 3] + "..."
    return f"{entry.id}  w={entry.cognitive_weight:.3f}  {content}"


def handle_command(cache: SemanticCache, cmd: str) -> Tuple[bool, Dict[str, Any]]:
    """Handle a single REPL command.

    Returns (should_continue, info), where info carries what the command
    produced so callers and tests can inspect it without parsing output.
    """
    cmd = (cmd or "").strip()
    if not cmd:
        return True, {}

    name, _, payload = cmd.partition(" ")
    name = name.lower()
    payload = payload.strip()

    if name in {"exit", "quit"}:
        return False, {}

    if name == "ingest":
        if not payload:
            print("Usage: ingest <text>")
            return True, {}
        result = cache.ingest(payload, source_url="repl")
        print(f"{PREFIX} {result.status.value} (similarity={result.max_similarity:.3f})")
        if result.entry_id:
            print(f"{PREFIX} entry: {result.entry_id}")
        return True, {"result": result}

    if name == "ingest_file":
        parts = payload.split(None, 1)
        if not parts:
            print("Usage: ingest_file <path> [source_url]")
            return True, {}
        path = parts[0]
        source_url = parts[1] if len(parts) > 1 else path
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            print(f"{PREFIX} Could not read {path}: {e}")
            return True, {"error": str(e)}
        outcomes = Counter(
            cache.ingest(fragment, source_url=source_url).status.value
            for fragment in split_fragments(text)
        )
        summary = ", ".join(f"{k}={v}" for k, v in sorted(outcomes.items())) or "no fragments"
        print(f"{PREFIX} Ingestion complete: {summary}")
        return True, {"outcomes": dict(outcomes)}

    if name == "get":
        if not payload:
            print("Usage: get <entry_id>")
            return True, {}
        entry = cache.get(payload)
        if entry is None:
            print(f"{PREFIX} Not found: {payload}")
            return True, {"entry": None}
        data = entry.to_dict()
        data.pop("embedding", None)
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return True, {"entry": entry}

    if name == "tags":
        # tags <tag> [<tag> ...] [--min 0.5]
        try:
            tokens = shlex.split(payload)
        except ValueError as e:
            print(f"{PREFIX} {e}")
            return True, {}
        min_overlap = 0.5
        if "--min" in tokens:
            i = tokens.index("--min")
            try:
                min_overlap = float(tokens[i + 1])
            except (IndexError, ValueError):
                print("Usage: tags <tag> [<tag> ...] [--min <ratio>]")
                return True, {}
            del tokens[i:i + 2]
        if not tokens:
            print("Usage: tags <tag> [<tag> ...] [--min <ratio>]")
            return True, {}
        entries = cache.query_by_tags(tokens, min_overlap)
        for entry in entries:
            print(_short(entry))
        print(f"{PREFIX} {len(entries)} entries")
        return True, {"entries": entries}

    if name == "search":
        if not payload:
            print("Usage: search <text>")
            return True, {}
        hits = cache.query_by_text(payload, top_k=5)
        for hit in hits:
            print(f"{hit['similarity']:.3f}  {_short(hit['entry'])}")
        if not hits:
            print(f"{PREFIX} No matches")
        return True, {"hits": hits}

    if name == "sample":
        try:
            k = int(payload) if payload else 3
        except ValueError:
            print("Usage: sample [k]")
            return True, {}
        entries = cache.sample_weighted(k)
        for entry in entries:
            print(_short(entry))
        return True, {"entries": entries}

    if name == "stats":
        stats = cache.stats()
        print(json.dumps(stats.to_dict(), indent=2, ensure_ascii=False))
        return True, {"stats": stats}

    if name == "consolidate":
        report = cache.consolidate()
        print(
            f"{PREFIX} decayed={report.decayed} removed={len(report.removed_ids)} "
            f"skipped={len(report.skipped_ids)} thresholds={report.thresholds_adjusted or 'unchanged'}"
        )
        return True, {"report": report}

    print(f"{PREFIX} Unknown command: {name}")
    return True, {}


__all__ = ["handle_command", "split_fragments"]
