"""
Scheduling: when each card comes back.

Components:
- forecaster: FSRS memory-decay model behind a narrow interface
- engine: pass/fail outcome -> next schedule row, with early interval caps
- due: ordered due-set selection with total and new-card caps
- stats: collection summary for `recall check`
"""

from recall.scheduling.due import due_today
from recall.scheduling.engine import (
    DESIRED_RETENTION,
    EARLY_INTERVAL_CAPS,
    LEARN_AHEAD_THRESHOLD,
    ReviewStatus,
    SchedulingEngine,
    early_interval_cap,
    next_schedule,
    review_outcome,
)
from recall.scheduling.forecaster import (
    Forecast,
    Forecaster,
    FsrsForecaster,
    MemoryState,
    OutcomeForecast,
    retrievability,
)
from recall.scheduling.stats import CardLifecycle, CollectionStats, Histogram, collection_stats

__all__ = [
    "CardLifecycle",
    "CollectionStats",
    "DESIRED_RETENTION",
    "EARLY_INTERVAL_CAPS",
    "Forecast",
    "Forecaster",
    "FsrsForecaster",
    "Histogram",
    "LEARN_AHEAD_THRESHOLD",
    "MemoryState",
    "OutcomeForecast",
    "ReviewStatus",
    "SchedulingEngine",
    "collection_stats",
    "due_today",
    "early_interval_cap",
    "next_schedule",
    "retrievability",
    "review_outcome",
]
