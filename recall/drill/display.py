"""
Session display.

Plain-text card formatting plus the rich renderable shown by the drill loop.
"""

from __future__ import annotations

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from recall.cards.cloze import mask_cloze_text
from recall.cards.models import BasicContent, Card, EnhancementStatus
from recall.drill.session import DrillSession, LastAction
from recall.scheduling.engine import ReviewStatus

MINUTES_PER_DAY = 24 * 60
FLASH_SECONDS = 2.0
PENDING_PLACEHOLDER = "Enhancing this card with AI...\n\nPlease wait."

STYLES = {
    "pass": "bold green",
    "fail": "bold red",
    "key": "bold black on cyan",
    "dim": "dim",
    "chip": "bold magenta",
}


def format_card_text(card: Card, show_answer: bool) -> str:
    """Card body as plain text; answers and cloze spans stay hidden until shown."""
    content = card.content
    if isinstance(content, BasicContent):
        text = f"Q:\n{content.question}\n\nA:\n"
        if show_answer:
            text += content.answer
        return text

    body = content.text
    if content.cloze_range is not None and not show_answer:
        body = mask_cloze_text(content.text, content.cloze_range)
    return f"C:\n{body}"


def describe_interval(interval_days: float) -> str:
    if interval_days <= 15 / MINUTES_PER_DAY:
        return "<15 mins"
    if interval_days <= 30 / MINUTES_PER_DAY:
        return "<30 mins"
    if interval_days <= 0.5:
        return "<12 hours"
    if interval_days <= 1.0:
        return "<1 day"
    return f"{int(interval_days)} days"


def format_last_action(action: LastAction) -> str:
    """e.g. `` Pass (See again in <15 mins)``"""
    return f" {action.status.label} (See again in {describe_interval(action.interval_days)})"


def header_text(session: DrillSession, card: Card) -> Text:
    header = Text()
    header.append(f"Card {session.cursor + 1}/{len(session.cards)}", style="bold")
    header.append(" • ")
    header.append(f"{len(session.redo_cards)} coming again")
    header.append(" • ")
    header.append(str(card.file_path), style=STYLES["dim"])
    if card.enhancement is EnhancementStatus.ENHANCED:
        header.append(" • ")
        header.append("AI enhanced", style=STYLES["chip"])
    return header


def controls_text(session: DrillSession, now: float) -> Text:
    """Key hints for the current phase, plus the last outcome while it is fresh."""
    controls = Text()
    if session.current_pending:
        controls.append("Enhancing card with AI")
    elif session.show_answer:
        controls.append(" Space ", style=STYLES["key"])
        controls.append(" or ")
        controls.append(" Enter ", style=STYLES["key"])
        controls.append(" Pass", style=STYLES["pass"])
        controls.append(" • ")
        controls.append(" F ", style=STYLES["key"])
        controls.append(" Fail", style=STYLES["fail"])
    else:
        controls.append(" Space ", style=STYLES["key"])
        controls.append(" or ")
        controls.append(" Enter ", style=STYLES["key"])
        controls.append(" show answer")
    controls.append(" • ")
    controls.append(" Esc ", style=STYLES["key"])
    controls.append(" / ")
    controls.append(" Ctrl+C ", style=STYLES["key"])
    controls.append(" exit")

    action = session.last_action
    if action is not None and now - action.recorded_at < FLASH_SECONDS:
        style = STYLES["pass"] if action.status is ReviewStatus.PASS else STYLES["fail"]
        controls.append("\nLast:")
        controls.append(format_last_action(action), style=style)

    if session.enhancement_error is not None:
        controls.append(f"\nAI enhancement failed: {session.enhancement_error}", style=STYLES["fail"])
    return controls


def render_session(session: DrillSession, now: float) -> Group:
    """Build the full frame for the current state."""
    card = session.current_card()
    if card is None:
        return Group(Panel(Text("Session complete."), title="recall"))

    body = PENDING_PLACEHOLDER if session.current_pending else format_card_text(card, session.show_answer)
    return Group(
        Panel(Text(body), title=header_text(session, card), title_align="left"),
        Panel(controls_text(session, now), title="Controls", title_align="left"),
    )
