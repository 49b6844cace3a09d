"""
Unit tests for session display formatting.
"""

import pytest
from rich.console import Console

from recall.cards.models import EnhancementStatus
from recall.drill.display import (
    PENDING_PLACEHOLDER,
    controls_text,
    describe_interval,
    format_card_text,
    format_last_action,
    render_session,
)
from recall.drill.session import DrillSession, LastAction
from recall.errors import CollaboratorError
from recall.scheduling.engine import ReviewStatus


def render_plain(renderable) -> str:
    console = Console(width=100, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


class TestFormatCardText:
    """Tests for format_card_text."""

    def test_basic_hides_answer(self, basic_card):
        assert format_card_text(basic_card, show_answer=False) == "Q:\nWhat is 2+2?\n\nA:\n"

    def test_basic_shows_answer(self, basic_card):
        assert format_card_text(basic_card, show_answer=True) == "Q:\nWhat is 2+2?\n\nA:\n4"

    def test_cloze_masks_span(self, cloze_card):
        assert format_card_text(cloze_card, show_answer=False) == "C:\nThe capital of France is [_____]."

    def test_cloze_shows_span(self, cloze_card):
        assert format_card_text(cloze_card, show_answer=True) == "C:\nThe capital of France is [Paris]."

    def test_short_span_gets_three_underscores(self, make_cloze):
        card = make_cloze("Pi starts with [3].")
        assert format_card_text(card, show_answer=False) == "C:\nPi starts with [___]."

    def test_cloze_without_span_is_shown_verbatim(self, make_cloze):
        card = make_cloze("No brackets here.")
        assert format_card_text(card, show_answer=False) == "C:\nNo brackets here."


class TestIntervals:
    """Tests for interval descriptions."""

    @pytest.mark.parametrize("days,expected", [
        (1 / 1440, "<15 mins"),
        (15 / 1440, "<15 mins"),
        (20 / 1440, "<30 mins"),
        (0.25, "<12 hours"),
        (0.9, "<1 day"),
        (1.0, "<1 day"),
        (3.7, "3 days"),
    ])
    def test_describe_interval(self, days, expected):
        assert describe_interval(days) == expected

    def test_last_action_line(self):
        action = LastAction(ReviewStatus.PASS, 1 / 1440, recorded_at=0.0)
        assert format_last_action(action) == " Pass (See again in <15 mins)"

    def test_failed_action_line(self):
        action = LastAction(ReviewStatus.FAIL, 12.0, recorded_at=0.0)
        assert format_last_action(action) == " Fail (See again in 12 days)"


class TestRenderSession:
    """Tests for the rendered frame."""

    def test_header_and_hint(self, basic_card, cloze_card):
        session = DrillSession([basic_card, cloze_card], lambda card, status: 3.0)
        text = render_plain(render_session(session, now=0.0))
        assert "Card 1/2" in text
        assert "0 coming again" in text
        assert "show answer" in text

    def test_pending_card_shows_placeholder(self, basic_card):
        pending = basic_card.with_enhancement(EnhancementStatus.QUESTION_NEEDS_REPHRASING)
        session = DrillSession([pending], lambda card, status: 3.0)
        text = render_plain(render_session(session, now=0.0))
        assert PENDING_PLACEHOLDER.splitlines()[0] in text
        assert "What is 2+2?" not in text

    def test_enhanced_chip(self, basic_card):
        session = DrillSession([basic_card.with_enhancement(EnhancementStatus.ENHANCED)], lambda card, status: 3.0)
        assert "AI enhanced" in render_plain(render_session(session, now=0.0))

    def test_complete_session(self):
        session = DrillSession([], lambda card, status: 3.0)
        assert "Session complete." in render_plain(render_session(session, now=0.0))

    def test_last_action_flash_expires(self, basic_card):
        session = DrillSession([basic_card, basic_card], lambda card, status: 3.0, clock=lambda: 10.0)
        session.show_answer = True
        session.handle_review(ReviewStatus.PASS)

        assert "Last: Pass (See again in 3 days)" in controls_text(session, now=11.0).plain
        assert "Last:" not in controls_text(session, now=13.0).plain

    def test_enhancement_error_shown_inline(self, basic_card):
        session = DrillSession([basic_card], lambda card, status: 3.0)
        session.record_enhancement_failure(CollaboratorError("quota exceeded"))
        assert "AI enhancement failed: quota exceeded" in controls_text(session, now=0.0).plain
