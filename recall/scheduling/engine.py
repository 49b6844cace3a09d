"""
Scheduling Engine.

Applies one pass/fail outcome to a card's schedule:
- asks the forecaster for the next memory state and interval
- caps the interval for the first three reviews
- stores the new row and returns the effective interval in days

Early interval caps (review count before this review):
0 - 1 minute, either outcome
1 - 10 minutes on pass, 1 minute on fail
2 - 1 day on pass, 10 minutes on fail
3+ - model interval unmodified
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum

from loguru import logger

from recall.cards.models import Card
from recall.scheduling.forecaster import Forecaster, FsrsForecaster, MemoryState
from recall.store.schedule_store import ScheduleRecord, ScheduleStore

DESIRED_RETENTION = 0.9
LEARN_AHEAD_THRESHOLD = timedelta(minutes=20)
SECONDS_PER_DAY = 86_400


class ReviewStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"

    @property
    def label(self) -> str:
        return self.value.capitalize()


EARLY_INTERVAL_CAPS: dict[int, dict[ReviewStatus, timedelta]] = {
    0: {ReviewStatus.PASS: timedelta(minutes=1), ReviewStatus.FAIL: timedelta(minutes=1)},
    1: {ReviewStatus.PASS: timedelta(minutes=10), ReviewStatus.FAIL: timedelta(minutes=1)},
    2: {ReviewStatus.PASS: timedelta(days=1), ReviewStatus.FAIL: timedelta(minutes=10)},
}


def early_interval_cap(review_count: int, status: ReviewStatus) -> timedelta | None:
    caps = EARLY_INTERVAL_CAPS.get(review_count)
    return caps[status] if caps else None


def elapsed_whole_days(last_reviewed_at: datetime | None, reviewed_at: datetime) -> int:
    """Whole days between reviews, never negative; 0 for a first review."""
    if last_reviewed_at is None:
        return 0
    return max(0, (reviewed_at - last_reviewed_at).days)


def next_schedule(
    fingerprint: str,
    prior: ScheduleRecord | None,
    status: ReviewStatus,
    reviewed_at: datetime,
    forecaster: Forecaster,
    desired_retention: float = DESIRED_RETENTION,
) -> ScheduleRecord:
    """
    Compute the schedule row that follows one review.

    Args:
        fingerprint: Card identity
        prior: Current row (None or review_count 0 means never reviewed)
        status: Review outcome
        reviewed_at: Time of the review
        forecaster: Memory-decay model
        desired_retention: Target recall probability

    Returns:
        New ScheduleRecord with review_count incremented by one

    Raises:
        ForecastError: If the model is unusable or rejects its inputs
    """
    if prior is None or prior.is_new:
        memory = None
        last_reviewed_at = None
        review_count = 0
    else:
        memory = MemoryState(stability=prior.stability, difficulty=prior.difficulty)
        last_reviewed_at = prior.last_reviewed_at
        review_count = prior.review_count

    elapsed_days = elapsed_whole_days(last_reviewed_at, reviewed_at)
    forecast = forecaster.forecast(memory, desired_retention, elapsed_days)
    outcome = forecast.on_pass if status is ReviewStatus.PASS else forecast.on_fail

    model_seconds = max(1, round(outcome.interval_days * SECONDS_PER_DAY))
    interval = timedelta(seconds=model_seconds)
    cap = early_interval_cap(review_count, status)
    if cap is not None:
        interval = min(interval, cap)

    effective_seconds = int(interval.total_seconds())
    return ScheduleRecord(
        fingerprint=fingerprint,
        added_at=prior.added_at if prior is not None else reviewed_at,
        last_reviewed_at=reviewed_at,
        stability=outcome.memory.stability,
        difficulty=outcome.memory.difficulty,
        interval_raw=effective_seconds / SECONDS_PER_DAY,
        interval_days=effective_seconds // SECONDS_PER_DAY,
        due_date=reviewed_at + interval,
        review_count=review_count + 1,
    )


class SchedulingEngine:
    """
    Records review outcomes against the schedule store.

    The FSRS model is loaded on first use unless a forecaster is supplied.
    """

    def __init__(
        self,
        store: ScheduleStore,
        forecaster: Forecaster | None = None,
        desired_retention: float = DESIRED_RETENTION,
    ):
        self.store = store
        self._forecaster = forecaster
        self.desired_retention = desired_retention

    @property
    def forecaster(self) -> Forecaster:
        if self._forecaster is None:
            self._forecaster = FsrsForecaster()
        return self._forecaster

    def review(self, card: Card, status: ReviewStatus, now: datetime | None = None) -> float:
        """
        Record one outcome for ``card``.

        Returns:
            Effective interval in fractional days
        """
        reviewed_at = now or datetime.now(timezone.utc)
        if reviewed_at.tzinfo is None:
            reviewed_at = reviewed_at.replace(tzinfo=timezone.utc)
        prior = self.store.get_schedule(card.fingerprint)
        record = next_schedule(
            card.fingerprint,
            prior,
            status,
            reviewed_at,
            self.forecaster,
            self.desired_retention,
        )
        self.store.save_schedule(record)

        logger.debug(
            f"Reviewed {card.fingerprint[:12]} ({status.label}): review #{record.review_count}, "
            f"interval {record.interval_raw:.4f}d, due {record.due_date.isoformat()}"
        )
        return record.interval_raw


def review_outcome(
    card: Card,
    status: ReviewStatus,
    store: ScheduleStore,
    forecaster: Forecaster | None = None,
    now: datetime | None = None,
) -> float:
    """Record one outcome and return the effective interval in days."""
    return SchedulingEngine(store, forecaster).review(card, status, now=now)
