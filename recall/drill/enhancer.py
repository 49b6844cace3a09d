"""
Card enhancement overlay.

Before a session starts, cards are flagged:
- Cloze cards with no bracketed span need a cloze deletion
- Basic cards need rephrasing when rephrasing is enabled

A background task then rewrites flagged cards in session order with
bounded concurrency, pushing ``EnhancementUpdate`` messages onto a queue
the foreground loop drains. The task works on copies; it never touches
the session's card lists.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from recall.cards.cloze import first_cloze_range
from recall.cards.models import BasicContent, Card, ClozeContent, EnhancementStatus
from recall.drill.rewriter import TextRewriter
from recall.errors import CollaboratorError, DegenerateClozeError

MAX_CONCURRENT_REQUESTS = 4

# =============================================================================
# Prompts
# =============================================================================

CLOZE_SYSTEM_PROMPT = """
You convert flashcards into Cloze deletions.
A Cloze deletion is denoted by square brackets: [hidden text].
Only add one Cloze deletion.
"""

CLOZE_USER_PROMPT_HEADER = """
Turn the following text into a Cloze card by inserting [] around the hidden portion.
Return the exact same text as below, but just with the addition of brackets around the Cloze deletion.
Your goal is to highlight the part of the flashcard you believe is most critical for a studying user to be able to recall.
It can be a word or a small phrase. For example, if you were shown the following text:

C: Speech is produced in Broca's area.

This might be a good response to produce:

C: Speech is produced in [Broca's] area.

This is the text you should generate the Cloze deletion for:

"""

REPHRASE_SYSTEM_PROMPT = """
You rewrite flashcard questions to be clearer while keeping the same fact and difficulty.
Never reveal the answer inside the question and keep the tone neutral.
If there is no clear way to rewrite the question, return the original question verbatim.
"""

REPHRASE_USER_PROMPT = """Rewrite the question below so it is clearer, but keep the meaning the same.
Return only the rewritten question.

Question: {question}
Answer (for context; do not reveal): {answer}"""


@dataclass(frozen=True)
class EnhancementUpdate:
    """A rewritten card, keyed by the fingerprint it replaces."""

    fingerprint: str
    card: Card


# =============================================================================
# Flagging
# =============================================================================


def needs_cloze(card: Card) -> bool:
    return isinstance(card.content, ClozeContent) and card.content.cloze_range is None


def needs_rephrase(card: Card) -> bool:
    return isinstance(card.content, BasicContent)


def flag_cards(cards: Sequence[Card], rephrase_questions: bool = False) -> list[Card]:
    """Return copies of ``cards`` with their enhancement status set."""
    flagged = []
    for card in cards:
        if needs_cloze(card):
            card = card.with_enhancement(EnhancementStatus.CLOZE_NEEDS_DELETION)
        elif rephrase_questions and needs_rephrase(card):
            card = card.with_enhancement(EnhancementStatus.QUESTION_NEEDS_REPHRASING)
        flagged.append(card)
    return flagged


def enhancement_required(cards: Sequence[Card]) -> bool:
    return any(card.enhancement.is_pending for card in cards)


def unavailable_message(cards: Sequence[Card]) -> str:
    """
    Explain which flagged cards cannot be fixed without a rewriting client.
    """
    cloze = [card for card in cards if card.enhancement is EnhancementStatus.CLOZE_NEEDS_DELETION]
    rephrase = sum(
        1 for card in cards if card.enhancement is EnhancementStatus.QUESTION_NEEDS_REPHRASING
    )

    suffix = ""
    if cloze:
        paths = sorted({str(card.file_path) for card in cloze})
        suffix = "\nFiles with invalid clozes:\n" + "\n".join(paths)

    if not rephrase:
        return (
            f"Couldn't autofix {len(cloze)} Cloze cards which lacked brackets. "
            f"Please fix manually or enable feature.{suffix}"
        )
    if not cloze:
        return f"Cannot rephrase {rephrase} questions"
    return (
        f"Cannot rephrase {rephrase} questions or autofix {len(cloze)} cards. "
        f"Please fix manually or enable feature.{suffix}"
    )


# =============================================================================
# Rewriting
# =============================================================================


class CardEnhancer:
    """Rewrites flagged cards through a TextRewriter."""

    def __init__(self, rewriter: TextRewriter, max_concurrent: int = MAX_CONCURRENT_REQUESTS):
        self.rewriter = rewriter
        self.max_concurrent = max_concurrent

    async def add_cloze(self, card: Card) -> Card:
        """
        Ask for a cloze deletion and validate the returned span.

        Raises:
            CollaboratorError: If the response has no usable span
        """
        user_prompt = f"{CLOZE_USER_PROMPT_HEADER}{card.content.text}"
        text = await self.rewriter.rewrite(CLOZE_SYSTEM_PROMPT, user_prompt)
        if text.startswith("C:"):
            text = text[2:].strip()

        try:
            cloze_range = first_cloze_range(text)
        except DegenerateClozeError as e:
            raise CollaboratorError(f"Invalid cloze range in LLM output: {text}") from e
        if cloze_range is None:
            raise CollaboratorError(f"No cloze range found. LLM output: {text}")

        return card.with_content(ClozeContent(text=text, cloze_range=cloze_range))

    async def rephrase(self, card: Card) -> Card:
        user_prompt = REPHRASE_USER_PROMPT.format(
            question=card.content.question,
            answer=card.content.answer,
        )
        question = await self.rewriter.rewrite(REPHRASE_SYSTEM_PROMPT, user_prompt)
        return card.with_content(BasicContent(question=question, answer=card.content.answer))

    async def enhance(self, card: Card) -> Card:
        """Rewrite one flagged card and mark it enhanced."""
        try:
            if card.enhancement is EnhancementStatus.CLOZE_NEEDS_DELETION:
                updated = await self.add_cloze(card)
            elif card.enhancement is EnhancementStatus.QUESTION_NEEDS_REPHRASING:
                updated = await self.rephrase(card)
            else:
                return card
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(f"Unexpected rewrite failure: {e}") from e
        return updated.with_enhancement(EnhancementStatus.ENHANCED)

    async def run(self, cards: Sequence[Card], updates: asyncio.Queue) -> None:
        """
        Enhance every pending card, publishing each result as it lands.

        Requests start in list order, at most ``max_concurrent`` at a time.
        After the first failure no further request starts; requests already
        in flight finish (and publish), then the first error is raised.

        Raises:
            CollaboratorError: The first per-card failure
        """
        pending = [card for card in cards if card.enhancement.is_pending]
        if not pending:
            return

        semaphore = asyncio.Semaphore(self.max_concurrent)
        errors: list[CollaboratorError] = []
        # Each worker waits for its predecessor to hold the semaphore first.
        started = [asyncio.Event() for _ in pending]

        async def worker(index: int, card: Card) -> None:
            if index > 0:
                await started[index - 1].wait()
            async with semaphore:
                started[index].set()
                if errors:
                    return
                try:
                    updated = await self.enhance(card)
                except CollaboratorError as e:
                    logger.warning(f"Enhancement failed for {card.file_path}: {e}")
                    errors.append(e)
                    return
                updates.put_nowait(EnhancementUpdate(fingerprint=card.fingerprint, card=updated))
                logger.debug(f"Enhanced card {card.fingerprint[:12]} from {card.file_path}")

        logger.info(f"Enhancing {len(pending)} cards ({self.max_concurrent} at a time)")
        await asyncio.gather(*(worker(i, card) for i, card in enumerate(pending)))
        if errors:
            raise errors[0]
