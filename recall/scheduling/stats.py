"""
Collection statistics for ``recall check``.

Aggregates schedule rows for the cards found by one ingestion:
- lifecycle counts (New / Young / Mature)
- due now, due per day over the next week, due within a month
- cards per file
- difficulty and retrievability histograms
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from pathlib import Path

from recall.cards.models import Card
from recall.scheduling.engine import LEARN_AHEAD_THRESHOLD, SECONDS_PER_DAY
from recall.scheduling.forecaster import retrievability
from recall.store.schedule_store import ScheduleRecord, ScheduleStore

MATURE_INTERVAL_DAYS = 21.0
HISTOGRAM_BINS = 5


class CardLifecycle(str, Enum):
    NEW = "New"
    YOUNG = "Young"
    MATURE = "Mature"


@dataclass
class Histogram:
    """Fixed-width bins over [0, 1]; out-of-range values are clamped."""

    bins: list[int] = field(default_factory=lambda: [0] * HISTOGRAM_BINS)
    count: int = 0
    total: float = 0.0

    def update(self, value: float) -> None:
        clamped = min(max(value, 0.0), 1.0)
        idx = min(int(clamped * len(self.bins)), len(self.bins) - 1)
        self.bins[idx] += 1
        self.count += 1
        self.total += value

    @property
    def mean(self) -> float | None:
        if self.count == 0:
            return None
        return self.total / self.count


@dataclass
class CollectionStats:
    total_cards_in_db: int = 0
    num_cards: int = 0
    lifecycles: Counter = field(default_factory=Counter)
    due_cards: int = 0
    upcoming_week: Counter = field(default_factory=Counter)
    upcoming_month: int = 0
    file_paths: Counter = field(default_factory=Counter)
    difficulty_histogram: Histogram = field(default_factory=Histogram)
    retrievability_histogram: Histogram = field(default_factory=Histogram)

    def update(
        self,
        card: Card,
        record: ScheduleRecord,
        now: datetime,
        learn_ahead: timedelta = LEARN_AHEAD_THRESHOLD,
    ) -> None:
        """Fold one card and its schedule row into the totals."""
        self.file_paths[Path(card.file_path)] += 1

        interval = record.interval_raw or 0.0
        if record.is_new:
            lifecycle = CardLifecycle.NEW
        elif interval > MATURE_INTERVAL_DAYS:
            lifecycle = CardLifecycle.MATURE
        else:
            lifecycle = CardLifecycle.YOUNG
        self.lifecycles[lifecycle] += 1

        today: date = now.date()
        if record.is_due(now + learn_ahead):
            self.due_cards += 1
            self.upcoming_week[today] += 1
            self.upcoming_month += 1
        else:
            if record.due_date <= now + timedelta(days=7):
                self.upcoming_week[record.due_date.date()] += 1
            if record.due_date <= now + timedelta(days=30):
                self.upcoming_month += 1

        if record.last_reviewed_at is None:
            return

        self.difficulty_histogram.update((record.difficulty or 0.0) / 10.0)
        elapsed = (now - record.last_reviewed_at).total_seconds() / SECONDS_PER_DAY
        self.retrievability_histogram.update(
            retrievability(record.stability or 0.0, max(elapsed, 0.0))
        )


def collection_stats(
    cards: Mapping[str, Card],
    store: ScheduleStore,
    now: datetime | None = None,
    learn_ahead: timedelta = LEARN_AHEAD_THRESHOLD,
) -> CollectionStats:
    """
    Summarize the schedule of every ingested card.

    Rows whose fingerprint is not in ``cards`` count toward
    ``total_cards_in_db`` only.
    """
    now = now or datetime.now(timezone.utc)
    stats = CollectionStats(num_cards=len(cards))
    for record in store.iter_rows():
        stats.total_cards_in_db += 1
        card = cards.get(record.fingerprint)
        if card is None:
            continue
        stats.update(card, record, now, learn_ahead)
    return stats
