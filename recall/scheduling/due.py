"""
Due-Set Selection.

Order: most overdue first, then cards due within the look-ahead window,
then never-reviewed cards.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone

from loguru import logger

from recall.cards.models import Card
from recall.scheduling.engine import LEARN_AHEAD_THRESHOLD
from recall.store.schedule_store import ScheduleStore


def due_today(
    cards: Mapping[str, Card],
    store: ScheduleStore,
    card_limit: int | None = None,
    new_card_limit: int | None = None,
    now: datetime | None = None,
    learn_ahead: timedelta = LEARN_AHEAD_THRESHOLD,
) -> list[Card]:
    """
    Select the cards to review now.

    Args:
        cards: Fingerprint -> Card; only these fingerprints are considered
        store: Schedule store to query
        card_limit: Stop once this many cards are selected
        new_card_limit: Admit at most this many never-reviewed cards; extra
            new cards are skipped without counting against ``card_limit``
        now: Reference time (defaults to the current UTC time)
        learn_ahead: Cards due within this window count as due

    Returns:
        Ordered list of due cards
    """
    cutoff = (now or datetime.now(timezone.utc)) + learn_ahead

    selected: list[Card] = []
    new_selected = 0
    for candidate in store.iter_candidates(not_due_after=cutoff):
        if card_limit is not None and len(selected) >= card_limit:
            break
        card = cards.get(candidate.fingerprint)
        if card is None:
            continue

        if candidate.review_count == 0:
            if new_card_limit is not None and new_selected >= new_card_limit:
                continue
            new_selected += 1
        selected.append(card)

    logger.debug(f"Selected {len(selected)} due cards ({new_selected} new)")
    return selected
