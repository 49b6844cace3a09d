"""
Integration tests for document discovery and ingestion.

Builds small document trees under tmp_path and ingests them into an
in-memory store.
"""

import asyncio
from pathlib import Path

import pytest

from recall.errors import PersistenceError, StructuralParseError
from recall.ingest.pipeline import CardWalker, ingest
from recall.ingest.walker import is_document, iter_files

DECK = """# Networking

Q: What port does SSH use?
A: 22

---

C: DNS resolves names over UDP port [53].

ping::pong
"""


def run_ingest(paths, store, **kwargs):
    return asyncio.run(ingest(paths, store, **kwargs))


class TestIterFiles:
    """Tests for the ignore-aware walker."""

    def test_gitignore_and_ignore_files_respected(self, tmp_path, write_doc):
        write_doc("keep.md", DECK)
        write_doc("drafts/skip.md", DECK)
        write_doc("notes/private.md", DECK)
        write_doc("notes/public.md", DECK)
        write_doc(".gitignore", "drafts/\n")
        write_doc("notes/.ignore", "private.md\n")

        found = {p.relative_to(tmp_path).as_posix() for p in iter_files([tmp_path])}

        assert "keep.md" in found
        assert "notes/public.md" in found
        assert "drafts/skip.md" not in found
        assert "notes/private.md" not in found

    def test_deeper_negation_reincludes_file(self, tmp_path, write_doc):
        write_doc("notes/keep.md", DECK)
        write_doc("notes/drop.md", DECK)
        write_doc(".gitignore", "*.md\n")
        write_doc("notes/.gitignore", "!keep.md\n")

        found = {p.relative_to(tmp_path).as_posix() for p in iter_files([tmp_path])}

        assert "notes/keep.md" in found
        assert "notes/drop.md" not in found

    def test_ignore_file_overrides_gitignore_in_same_directory(self, tmp_path, write_doc):
        write_doc("keep.md", DECK)
        write_doc("drop.md", DECK)
        write_doc(".gitignore", "*.md\n")
        write_doc(".ignore", "!keep.md\n")

        found = {p.relative_to(tmp_path).as_posix() for p in iter_files([tmp_path])}

        assert "keep.md" in found
        assert "drop.md" not in found

    def test_later_pattern_in_one_file_wins(self, tmp_path, write_doc):
        write_doc("keep.md", DECK)
        write_doc("drop.md", DECK)
        write_doc(".gitignore", "*.md\n!keep.md\n")

        found = {p.relative_to(tmp_path).as_posix() for p in iter_files([tmp_path])}

        assert found == {".gitignore", "keep.md"}

    def test_rules_above_the_root_apply(self, tmp_path, write_doc):
        write_doc("notes/secret.md", DECK)
        write_doc("notes/public.md", DECK)
        write_doc("notes/sub/secret.md", DECK)
        write_doc(".gitignore", "secret.md\n")

        root = tmp_path / "notes"
        found = {p.relative_to(root).as_posix() for p in iter_files([root])}

        assert found == {"public.md"}

    def test_hidden_files_are_not_skipped(self, tmp_path, write_doc):
        write_doc(".hidden/deck.md", DECK)
        write_doc(".git/objects.md", DECK)
        found = {p.relative_to(tmp_path).as_posix() for p in iter_files([tmp_path])}
        assert ".hidden/deck.md" in found
        assert ".git/objects.md" not in found

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            list(iter_files([tmp_path / "nope"]))

    @pytest.mark.parametrize("name,expected", [
        ("deck.md", True),
        ("DECK.MD", True),
        ("deck.txt", False),
        ("Makefile", False),
    ])
    def test_is_document(self, name, expected):
        assert is_document(Path(name), ["md"]) is expected


class TestIngest:
    """Tests for the ingest pipeline."""

    def test_cards_registered(self, store, write_doc, now):
        path = write_doc("deck.md", DECK)

        cards, stats = run_ingest([path.parent], store, now=now)

        assert len(cards) == 3
        assert store.count_rows() == 3
        assert all(store.get_schedule(fp).added_at == now for fp in cards)
        assert stats.document_files == 1

    def test_stats_count_all_files(self, tmp_path, store, write_doc):
        write_doc("a.md", DECK)
        write_doc("b/c.md", "Q: one\nA: two\n")
        write_doc("b/image.png", "not text")

        _, stats = run_ingest([tmp_path], store)

        assert stats.files_searched == 3
        assert stats.document_files == 2

    def test_overlapping_roots_deduplicate(self, tmp_path, store, write_doc):
        path = write_doc("deck.md", DECK)

        cards, _ = run_ingest([tmp_path, path], store)

        assert len(cards) == 3
        assert store.count_rows() == 3

    def test_identical_blocks_in_two_files_share_a_row(self, tmp_path, store, write_doc):
        write_doc("one.md", "Q: same\nA: card\n")
        write_doc("two.md", "Q: same\nA: card\n")

        cards, _ = run_ingest([tmp_path], store)

        assert len(cards) == 1
        assert store.count_rows() == 1

    def test_reingest_keeps_existing_rows(self, tmp_path, store, write_doc, now):
        from datetime import timedelta

        write_doc("deck.md", DECK)
        run_ingest([tmp_path], store, now=now)
        run_ingest([tmp_path], store, now=now + timedelta(days=3))

        assert store.count_rows() == 3
        assert {row.added_at for row in store.iter_rows()} == {now}

    def test_custom_extensions(self, tmp_path, store, write_doc):
        write_doc("deck.txt", "Q: txt\nA: yes\n")
        write_doc("deck.md", "Q: md\nA: yes\n")

        cards, _ = run_ingest([tmp_path], store, extensions=["TXT"])

        assert [c.content.question for c in cards.values()] == ["txt"]

    def test_malformed_document_aborts(self, tmp_path, store, write_doc):
        write_doc("good.md", DECK)
        bad = write_doc("bad.md", "Q: question without answer\n---\n")

        with pytest.raises(StructuralParseError, match="Failed to parse") as exc:
            run_ingest([tmp_path], store)
        assert exc.value.path == bad

    def test_missing_root_is_a_parse_error(self, tmp_path, store):
        with pytest.raises(StructuralParseError):
            run_ingest([tmp_path / "missing"], store)

    def test_empty_tree(self, tmp_path, store):
        cards, stats = run_ingest([tmp_path], store)
        assert cards == {}
        assert stats.files_searched == 0

    def test_store_failure_propagates(self, tmp_path, store, write_doc, monkeypatch):
        write_doc("deck.md", DECK)

        def broken(fingerprints, now=None):
            raise PersistenceError("disk full")

        monkeypatch.setattr(store, "add_cards_batch", broken)
        with pytest.raises(PersistenceError, match="disk full"):
            run_ingest([tmp_path], store)


class TestCardWalker:
    """Tests for CardWalker directly."""

    def test_sink_receives_end_marker_once(self, tmp_path, write_doc):
        write_doc("a.md", DECK)
        write_doc("b.md", "Q: x\nA: y\n")
        batches = []

        stats = CardWalker([tmp_path], workers=2).run(batches.append)

        assert batches[-1] is None
        assert batches.count(None) == 1
        assert sum(len(b) for b in batches[:-1]) == 4
        assert stats.document_files == 2

    def test_end_marker_sent_on_failure(self, tmp_path, write_doc):
        write_doc("bad.md", "just prose\n---\nQ: x\n")
        batches = []
        with pytest.raises(StructuralParseError):
            CardWalker([tmp_path]).run(batches.append)
        assert batches[-1] is None
