"""
SQLite Schedule Store for recall.

Persists one scheduling row per card fingerprint:
- an all-null "new" row the first time a fingerprint is ingested
- memory state, interval and due date after each review

Rows are never deleted. Database location: ~/.recall/cards.db
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from recall.errors import PersistenceError

# =============================================================================
# Timestamps
# =============================================================================


def to_db_timestamp(moment: datetime) -> str:
    """Render a timestamp as a sortable UTC ISO-8601 string."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value).astimezone(timezone.utc)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ScheduleRecord:
    """
    Scheduling state for a single fingerprint.

    ``review_count == 0`` exactly when ``last_reviewed_at``, ``stability``,
    ``difficulty`` and ``due_date`` are all None.
    """

    fingerprint: str
    added_at: datetime
    last_reviewed_at: datetime | None = None
    stability: float | None = None
    difficulty: float | None = None
    interval_raw: float | None = None
    interval_days: int = 0
    due_date: datetime | None = None
    review_count: int = 0

    @property
    def is_new(self) -> bool:
        """Never reviewed."""
        return self.review_count == 0

    def is_due(self, cutoff: datetime) -> bool:
        return self.due_date is None or self.due_date <= cutoff


@dataclass(frozen=True)
class Candidate:
    """A row eligible for review, as returned by the due-date query."""

    fingerprint: str
    review_count: int


# =============================================================================
# Schedule Store
# =============================================================================


class ScheduleStore:
    """
    SQLite-backed schedule persistence.

    Every SQLAlchemy failure surfaces as PersistenceError; nothing is retried.
    """

    def __init__(self, db_path: Path | None = None, engine: Engine | None = None):
        """
        Initialize the schedule store.

        Args:
            db_path: Database file (None keeps everything in memory)
            engine: Pre-built engine, mainly for tests
        """
        self.db_path = db_path
        if engine is not None:
            self.engine = engine
        elif db_path is None:
            self.engine = create_engine(
                "sqlite://",
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            try:
                db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Schedule store location unusable: {e}")
                raise PersistenceError(f"Cannot create database directory {db_path.parent}: {e}") from e
            self.engine = create_engine(f"sqlite:///{db_path}")

        self._init_schema()
        logger.debug(f"ScheduleStore initialized at {db_path or ':memory:'}")

    @classmethod
    def in_memory(cls) -> ScheduleStore:
        return cls(db_path=None)

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            logger.error(f"Schedule store failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}: {e}") from e

    def _init_schema(self) -> None:
        with self._transaction("initialize schema") as conn:
            conn.execute(text("""
                CREATE TABLE IF NOT EXISTS cards (
                    card_hash TEXT PRIMARY KEY,
                    added_at TEXT NOT NULL,
                    last_reviewed_at TEXT,
                    stability REAL,
                    difficulty REAL,
                    interval_raw REAL,
                    interval_days INTEGER,
                    due_date TEXT,
                    review_count INTEGER NOT NULL
                )
            """))
            conn.execute(text("""
                CREATE INDEX IF NOT EXISTS idx_cards_due_date
                ON cards(due_date)
            """))

    def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # Registration
    # =========================================================================

    _INSERT_NEW = text("""
        INSERT OR IGNORE INTO cards (
            card_hash, added_at, last_reviewed_at, stability, difficulty,
            interval_raw, interval_days, due_date, review_count
        )
        VALUES (:card_hash, :added_at, NULL, NULL, NULL, NULL, 0, NULL, 0)
    """)

    def card_exists(self, fingerprint: str) -> bool:
        with self._transaction("look up card") as conn:
            count = conn.execute(
                text("SELECT COUNT(1) FROM cards WHERE card_hash = :card_hash"),
                {"card_hash": fingerprint},
            ).scalar_one()
        return count > 0

    def add_card(self, fingerprint: str, now: datetime | None = None) -> None:
        """Insert a new row for ``fingerprint`` unless one already exists."""
        self.add_cards_batch([fingerprint], now=now)

    def add_cards_batch(self, fingerprints: Iterable[str], now: datetime | None = None) -> None:
        """
        Insert new rows for every unseen fingerprint in one transaction.

        Either every row lands or none does.
        """
        added_at = to_db_timestamp(now or datetime.now(timezone.utc))
        params = [{"card_hash": fp, "added_at": added_at} for fp in fingerprints]
        if not params:
            return
        with self._transaction("insert card batch") as conn:
            conn.execute(self._INSERT_NEW, params)
        logger.debug(f"Registered batch of {len(params)} fingerprints")

    # =========================================================================
    # Schedule Operations
    # =========================================================================

    def get_schedule(self, fingerprint: str) -> ScheduleRecord | None:
        """
        Read the schedule row for a fingerprint.

        Returns:
            ScheduleRecord, or None if the fingerprint was never registered

        Raises:
            PersistenceError: If the row breaks the new/reviewed invariant
        """
        with self._transaction("read schedule") as conn:
            row = conn.execute(
                text("SELECT * FROM cards WHERE card_hash = :card_hash"),
                {"card_hash": fingerprint},
            ).mappings().first()
        if row is None:
            return None
        return self._to_record(row)

    def save_schedule(self, record: ScheduleRecord) -> None:
        """Write a schedule row, creating it if the fingerprint is unknown."""
        params = {
            "card_hash": record.fingerprint,
            "added_at": to_db_timestamp(record.added_at),
            "last_reviewed_at": (
                to_db_timestamp(record.last_reviewed_at) if record.last_reviewed_at else None
            ),
            "stability": record.stability,
            "difficulty": record.difficulty,
            "interval_raw": record.interval_raw,
            "interval_days": record.interval_days,
            "due_date": to_db_timestamp(record.due_date) if record.due_date else None,
            "review_count": record.review_count,
        }
        with self._transaction("write schedule") as conn:
            conn.execute(
                text("""
                    INSERT INTO cards (
                        card_hash, added_at, last_reviewed_at, stability, difficulty,
                        interval_raw, interval_days, due_date, review_count
                    )
                    VALUES (
                        :card_hash, :added_at, :last_reviewed_at, :stability, :difficulty,
                        :interval_raw, :interval_days, :due_date, :review_count
                    )
                    ON CONFLICT(card_hash) DO UPDATE SET
                        last_reviewed_at = excluded.last_reviewed_at,
                        stability = excluded.stability,
                        difficulty = excluded.difficulty,
                        interval_raw = excluded.interval_raw,
                        interval_days = excluded.interval_days,
                        due_date = excluded.due_date,
                        review_count = excluded.review_count
                """),
                params,
            )

    def iter_candidates(self, not_due_after: datetime) -> list[Candidate]:
        """
        Rows due at or before ``not_due_after``, plus every unreviewed row.

        Ordered most overdue first, then never-reviewed rows.
        """
        with self._transaction("query due cards") as conn:
            rows = conn.execute(
                text("""
                    SELECT card_hash, review_count
                    FROM cards
                    WHERE due_date <= :cutoff OR due_date IS NULL
                    ORDER BY
                        CASE WHEN due_date IS NULL THEN 1 ELSE 0 END,
                        due_date ASC
                """),
                {"cutoff": to_db_timestamp(not_due_after)},
            ).all()
        return [Candidate(fingerprint=row.card_hash, review_count=row.review_count) for row in rows]

    def iter_rows(self) -> list[ScheduleRecord]:
        """Every schedule row in the store."""
        with self._transaction("read schedules") as conn:
            rows = conn.execute(text("SELECT * FROM cards")).mappings().all()
        return [self._to_record(row) for row in rows]

    def count_rows(self) -> int:
        with self._transaction("count cards") as conn:
            return conn.execute(text("SELECT COUNT(1) FROM cards")).scalar_one()

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _to_record(row: RowMapping) -> ScheduleRecord:
        record = ScheduleRecord(
            fingerprint=row["card_hash"],
            added_at=from_db_timestamp(row["added_at"]),
            last_reviewed_at=from_db_timestamp(row["last_reviewed_at"]),
            stability=row["stability"],
            difficulty=row["difficulty"],
            interval_raw=row["interval_raw"],
            interval_days=row["interval_days"] or 0,
            due_date=from_db_timestamp(row["due_date"]),
            review_count=row["review_count"],
        )
        state = ("last_reviewed_at", "stability", "difficulty", "interval_raw", "due_date")
        if record.review_count > 0:
            missing = [name for name in state if getattr(record, name) is None]
            if missing:
                raise PersistenceError(
                    f"Reviewed card {record.fingerprint} is missing {', '.join(missing)}"
                )
        elif any(getattr(record, name) is not None for name in state):
            raise PersistenceError(f"Unreviewed card {record.fingerprint} carries review state")
        return record
