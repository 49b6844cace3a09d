"""
Drill Session State Machine.

States:
- REVIEWING     current card shown, answer hidden
- ANSWER_SHOWN  current card shown, answer visible
- COMPLETE      no cards left in the active or redo list

Transitions:
- REVIEWING    --reveal-->    ANSWER_SHOWN
- ANSWER_SHOWN --pass/fail--> REVIEWING (next card) or COMPLETE

A failed card, or one whose new interval is shorter than the learn-ahead
threshold, goes to the redo list. When the active list runs out the redo
list becomes the active list. Cards still awaiting enhancement cannot be
revealed or reviewed.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from loguru import logger

from recall.cards.models import Card, EnhancementStatus
from recall.drill.enhancer import EnhancementUpdate
from recall.scheduling.engine import LEARN_AHEAD_THRESHOLD, ReviewStatus

ReviewFn = Callable[[Card, ReviewStatus], float]


class DrillPhase(Enum):
    REVIEWING = "reviewing"
    ANSWER_SHOWN = "answer_shown"
    COMPLETE = "complete"


class DrillAction(Enum):
    REVEAL = "reveal"
    PASS = "pass"
    FAIL = "fail"


TRANSITIONS: dict[tuple[DrillPhase, DrillAction], DrillPhase] = {
    (DrillPhase.REVIEWING, DrillAction.REVEAL): DrillPhase.ANSWER_SHOWN,
    (DrillPhase.ANSWER_SHOWN, DrillAction.PASS): DrillPhase.REVIEWING,
    (DrillPhase.ANSWER_SHOWN, DrillAction.FAIL): DrillPhase.REVIEWING,
}

_OUTCOMES = {
    DrillAction.PASS: ReviewStatus.PASS,
    DrillAction.FAIL: ReviewStatus.FAIL,
}


@dataclass
class LastAction:
    """The most recent outcome, for the footer flash."""

    status: ReviewStatus
    interval_days: float
    recorded_at: float


class DrillSession:
    """
    One review session over an ordered list of due cards.

    Owns the active list, the redo list and the cursor. ``review`` records
    an outcome and returns the effective interval in days.
    """

    def __init__(
        self,
        cards: Sequence[Card],
        review: ReviewFn,
        learn_ahead: timedelta = LEARN_AHEAD_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cards: list[Card] = list(cards)
        self.redo_cards: list[Card] = []
        self.cursor = 0
        self.show_answer = False
        self.last_action: LastAction | None = None
        self.enhancement_error: BaseException | None = None
        self.reviews_recorded = 0

        self._review = review
        self._redo_threshold_days = learn_ahead.total_seconds() / 86_400
        self._clock = clock

    # =========================================================================
    # State
    # =========================================================================

    @property
    def is_complete(self) -> bool:
        return self.cursor >= len(self.cards) and not self.redo_cards

    @property
    def phase(self) -> DrillPhase:
        if self.is_complete:
            return DrillPhase.COMPLETE
        return DrillPhase.ANSWER_SHOWN if self.show_answer else DrillPhase.REVIEWING

    def current_card(self) -> Card | None:
        """The card on screen, promoting the redo list when the active list is spent."""
        if self.cursor >= len(self.cards):
            if not self.redo_cards:
                return None
            logger.debug(f"Starting redo round with {len(self.redo_cards)} cards")
            self.cards = self.redo_cards
            self.redo_cards = []
            self.cursor = 0
        return self.cards[self.cursor]

    @property
    def current_pending(self) -> bool:
        card = self.current_card()
        return card is not None and card.enhancement.is_pending

    @property
    def must_terminate(self) -> bool:
        """True once enhancement has failed and the current card can never resolve."""
        return self.enhancement_error is not None and self.current_pending

    # =========================================================================
    # Transitions
    # =========================================================================

    def allowed(self, action: DrillAction) -> bool:
        return (self.phase, action) in TRANSITIONS and not self.current_pending

    def apply(self, action: DrillAction) -> bool:
        """
        Perform ``action`` if the current phase permits it.

        Returns:
            True if the action was applied
        """
        if not self.allowed(action):
            return False
        if action is DrillAction.REVEAL:
            self.show_answer = True
        else:
            self.handle_review(_OUTCOMES[action])
        return True

    def handle_review(self, status: ReviewStatus) -> float:
        """Record an outcome for the current card and advance."""
        card = self.current_card()
        if card is None:
            raise RuntimeError("No card to review; session is complete")

        interval_days = self._review(card, status)
        if status is ReviewStatus.FAIL or interval_days < self._redo_threshold_days:
            self.redo_cards.append(card)

        self.cursor += 1
        self.show_answer = False
        self.reviews_recorded += 1
        self.last_action = LastAction(status, interval_days, self._clock())
        return interval_days

    # =========================================================================
    # Enhancement Overlay
    # =========================================================================

    def apply_update(self, update: EnhancementUpdate) -> None:
        """Swap in an enhanced card wherever its fingerprint appears."""
        enhanced = update.card.with_enhancement(EnhancementStatus.ENHANCED)
        for cards in (self.cards, self.redo_cards):
            for i, card in enumerate(cards):
                if card.fingerprint == update.fingerprint:
                    cards[i] = enhanced

    def record_enhancement_failure(self, error: BaseException) -> None:
        logger.error(f"Card enhancement stopped: {error}")
        self.enhancement_error = error
