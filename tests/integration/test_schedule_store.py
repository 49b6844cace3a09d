"""
Integration tests for the SQLite schedule store.
"""

from datetime import timedelta

import pytest
from sqlalchemy import text

from recall.errors import PersistenceError
from recall.store.schedule_store import ScheduleRecord, ScheduleStore


def reviewed(fingerprint, now, due_in, review_count=2):
    return ScheduleRecord(
        fingerprint=fingerprint,
        added_at=now - timedelta(days=10),
        last_reviewed_at=now - timedelta(days=1),
        stability=4.0,
        difficulty=5.0,
        interval_raw=1.0,
        interval_days=1,
        due_date=now + due_in,
        review_count=review_count,
    )


class TestRegistration:
    """Tests for new-row insertion."""

    def test_add_card_is_idempotent(self, store, now):
        store.add_card("a", now=now)
        store.add_card("a", now=now + timedelta(days=1))

        assert store.count_rows() == 1
        assert store.get_schedule("a").added_at == now

    def test_new_row_is_all_null(self, store, now):
        store.add_card("a", now=now)
        record = store.get_schedule("a")

        assert record.is_new
        assert record.last_reviewed_at is None
        assert record.stability is None
        assert record.due_date is None

    def test_batch_skips_existing(self, store, now):
        store.add_card("a", now=now)
        store.add_cards_batch(["a", "b", "c"], now=now)
        assert store.count_rows() == 3
        assert store.card_exists("b")
        assert not store.card_exists("z")

    def test_missing_fingerprint_reads_none(self, store):
        assert store.get_schedule("missing") is None


class TestScheduleRoundTrip:
    """Tests for save_schedule/get_schedule."""

    def test_save_then_read(self, store, now):
        store.add_card("a", now=now)
        store.save_schedule(reviewed("a", now, timedelta(hours=6)))

        record = store.get_schedule("a")
        assert record.review_count == 2
        assert record.due_date == now + timedelta(hours=6)
        assert record.last_reviewed_at == now - timedelta(days=1)
        assert record.stability == 4.0

    def test_save_keeps_original_added_at(self, store, now):
        store.add_card("a", now=now)
        later = reviewed("a", now, timedelta(days=1))
        later.added_at = now + timedelta(days=5)
        store.save_schedule(later)
        assert store.get_schedule("a").added_at == now

    def test_broken_reviewed_row_is_rejected(self, store, now):
        store.add_card("a", now=now)
        with store.engine.begin() as conn:
            conn.execute(text("UPDATE cards SET review_count = 3 WHERE card_hash = 'a'"))
        with pytest.raises(PersistenceError, match="missing"):
            store.get_schedule("a")


class TestIsDue:
    """Tests for ScheduleRecord.is_due."""

    def test_new_record_is_always_due(self, store, now):
        store.add_card("a", now=now)
        assert store.get_schedule("a").is_due(now - timedelta(days=365))

    def test_due_at_or_before_cutoff(self, now):
        record = reviewed("a", now, timedelta(minutes=10))
        assert record.is_due(now + timedelta(minutes=10))
        assert not record.is_due(now + timedelta(minutes=9))


class TestCandidates:
    """Tests for iter_candidates ordering."""

    def test_overdue_first_then_new(self, store, now):
        store.add_cards_batch(["new1", "soon", "overdue", "later", "new2"], now=now)
        store.save_schedule(reviewed("soon", now, timedelta(minutes=10)))
        store.save_schedule(reviewed("overdue", now, -timedelta(days=2)))
        store.save_schedule(reviewed("later", now, timedelta(days=3)))

        candidates = store.iter_candidates(not_due_after=now + timedelta(minutes=20))
        names = [c.fingerprint for c in candidates]

        assert names[:2] == ["overdue", "soon"]
        assert set(names[2:]) == {"new1", "new2"}
        assert "later" not in names
        assert {c.review_count for c in candidates[2:]} == {0}


class TestFileBackedStore:
    """Tests for an on-disk database."""

    def test_rows_survive_reopen(self, tmp_path, now):
        db_path = tmp_path / "nested" / "cards.db"
        first = ScheduleStore(db_path)
        first.add_card("a", now=now)
        first.close()

        second = ScheduleStore(db_path)
        assert second.card_exists("a")
        second.close()

    def test_unwritable_location_raises_persistence_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(PersistenceError, match="Cannot create database directory"):
            ScheduleStore(blocker / "nested" / "cards.db")

    def test_directory_in_place_of_database_raises_persistence_error(self, tmp_path):
        (tmp_path / "cards.db").mkdir()
        with pytest.raises(PersistenceError):
            ScheduleStore(tmp_path / "cards.db")
