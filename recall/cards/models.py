"""
Card data model.

A Card is what extraction produces from one block of a document. Only its
fingerprint travels into storage; the rest lives for the duration of a
command.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from recall.errors import DegenerateClozeError

# =============================================================================
# Enums
# =============================================================================


class CardKind(str, Enum):
    """The two card shapes a document may contain."""

    BASIC = "basic"
    CLOZE = "cloze"


class EnhancementStatus(str, Enum):
    """Where a card stands with respect to the rewriting overlay."""

    NO_NEED = "no_need"
    CLOZE_NEEDS_DELETION = "cloze_needs_deletion"
    QUESTION_NEEDS_REPHRASING = "question_needs_rephrasing"
    ENHANCED = "enhanced"

    @property
    def is_pending(self) -> bool:
        return self in (
            EnhancementStatus.CLOZE_NEEDS_DELETION,
            EnhancementStatus.QUESTION_NEEDS_REPHRASING,
        )


# =============================================================================
# Content
# =============================================================================


@dataclass(frozen=True)
class ClozeRange:
    """
    Half-open byte span ``[start, end)`` into the UTF-8 encoding of the
    cloze text. The span includes the enclosing brackets.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.start >= self.end:
            raise DegenerateClozeError(
                f"Invalid cloze range: start must be < end (got {self.start}, {self.end})"
            )
        if self.end - self.start <= 2:
            raise DegenerateClozeError("Invalid cloze range: range must be at least length 1")

    @classmethod
    def within(cls, text: str, start: int, end: int) -> ClozeRange:
        """Build a range over ``text`` whose masked core has visible content."""
        cloze_range = cls(start, end)
        if not cloze_range.core(text).strip():
            raise DegenerateClozeError("Invalid cloze range: masked text is blank")
        return cloze_range

    def core(self, text: str) -> str:
        """The hidden text, brackets removed."""
        hidden = text.encode("utf-8")[self.start:self.end].decode("utf-8")
        return hidden.lstrip("[").rstrip("]")


@dataclass(frozen=True)
class BasicContent:
    question: str
    answer: str

    kind = CardKind.BASIC


@dataclass(frozen=True)
class ClozeContent:
    text: str
    cloze_range: ClozeRange | None = None

    kind = CardKind.CLOZE


CardContent = BasicContent | ClozeContent


# =============================================================================
# Card
# =============================================================================


@dataclass
class Card:
    """
    A parsed study unit.

    Two cards whose normalized block text is identical share a fingerprint
    regardless of which file they came from.
    """

    file_path: Path
    file_range: tuple[int, int]
    content: CardContent
    fingerprint: str
    enhancement: EnhancementStatus = field(default=EnhancementStatus.NO_NEED)

    @property
    def kind(self) -> CardKind:
        return self.content.kind

    def with_content(self, content: CardContent) -> Card:
        """Return a copy carrying new content and the same identity."""
        return replace(self, content=content)

    def with_enhancement(self, status: EnhancementStatus) -> Card:
        return replace(self, enhancement=status)
