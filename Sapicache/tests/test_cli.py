"""Tests for REPL command handling."""

from Sapicache.cli.commands import handle_command, split_fragments
from Sapicache.memory.ingestion import IngestStatus

FRAGMENT = "la luz del alma respira en el silencio"


class TestHandleCommand:
    """Single command dispatch."""

    def test_exit(self, cache):
        assert handle_command(cache, "exit") == (False, {})
        assert handle_command(cache, "quit")[0] is False

    def test_empty(self, cache):
        assert handle_command(cache, "   ") == (True, {})

    def test_ingest_and_get(self, cache, capsys):
        _, info = handle_command(cache, f"ingest {FRAGMENT}")
        result = info["result"]
        assert result.status is IngestStatus.INSERTED

        _, info = handle_command(cache, f"get {result.entry_id}")
        assert info["entry"].content == FRAGMENT
        assert FRAGMENT in capsys.readouterr().out

    def test_ingest_file(self, cache, tmp_path):
        path = tmp_path / "poema.txt"
        path.write_text(f"{FRAGMENT}\n\n{FRAGMENT}\n\ncorto\n", encoding="utf-8")
        _, info = handle_command(cache, f"ingest_file {path}")
        assert info["outcomes"] == {"inserted": 1, "rejected_duplicate": 1, "rejected_low_quality": 1}

    def test_ingest_file_missing(self, cache, tmp_path):
        _, info = handle_command(cache, f"ingest_file {tmp_path / 'nope.txt'}")
        assert "error" in info

    def test_tags(self, cache):
        handle_command(cache, f"ingest {FRAGMENT}")
        entry_id = cache.store.all()[0].id
        cache.store.get(entry_id).tags.add("manual")
        _, info = handle_command(cache, "tags manual otra --min 0.5")
        assert [e.id for e in info["entries"]] == [entry_id]

    def test_search_sample_stats_consolidate(self, cache):
        handle_command(cache, f"ingest {FRAGMENT}")
        assert len(handle_command(cache, "search alma silencio")[1]["hits"]) == 1
        assert len(handle_command(cache, "sample 2")[1]["entries"]) == 2
        assert handle_command(cache, "stats")[1]["stats"].total_entries == 1
        assert handle_command(cache, "consolidate")[1]["report"].decay_applied

    def test_unknown(self, cache, capsys):
        assert handle_command(cache, "bailar") == (True, {})
        assert "Unknown command" in capsys.readouterr().out


class TestSplitFragments:
    """Paragraph splitting for file ingestion."""

    def test_split(self):
        assert split_fragments("uno\ndos\n\n  tres  \n\n\n") == ["uno dos", "tres"]
