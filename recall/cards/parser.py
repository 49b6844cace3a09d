"""
Card Extraction.

Turns document text into cards:
- segment_blocks: split a document into candidate blocks with byte offsets
- parse_sections: split one block into question/answer/cloze sections
- extract_card: build a Card from one block
- cards_from_text / cards_from_file: the whole document
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from recall.cards.cloze import first_cloze_range
from recall.cards.fingerprint import fingerprint
from recall.cards.models import BasicContent, Card, ClozeContent
from recall.errors import IdentityError, StructuralParseError

BLOCK_SEPARATOR = "---"
SHORTHAND_MARKER = "::"


class Section(Enum):
    NONE = 0
    QUESTION = 1
    ANSWER = 2
    CLOZE = 3


_SECTION_MARKERS = {
    "Q:": Section.QUESTION,
    "A:": Section.ANSWER,
    "C:": Section.CLOZE,
}


@dataclass
class ParsedSections:
    """Non-empty section bodies of one block (None when absent or blank)."""

    question: str | None = None
    answer: str | None = None
    cloze: str | None = None


# =============================================================================
# Block Parsing
# =============================================================================


def _join_nonempty(lines: list[str]) -> str | None:
    joined = "\n".join(lines)
    if not joined.strip():
        return None
    return joined.rstrip()


def parse_sections(contents: str) -> ParsedSections:
    """
    Split one block into its sections.

    A marker line (``Q:``, ``A:``, ``C:``) starts its section afresh; following
    lines join it until the next marker. A ``---`` line ends the block. A
    ``left::right`` line is shorthand for a question and answer and also ends
    the block.
    """
    lines: dict[Section, list[str]] = {
        Section.QUESTION: [],
        Section.ANSWER: [],
        Section.CLOZE: [],
    }
    section = Section.NONE

    for raw_line in contents.split("\n"):
        line = raw_line.strip()

        if not line:
            if section is not Section.NONE:
                lines[section].append("")
            continue

        if line == BLOCK_SEPARATOR:
            break

        marker = _SECTION_MARKERS.get(line[:2])
        if marker is not None:
            section = marker
            lines[section].clear()
            rest = line[2:].strip()
            if rest:
                lines[section].append(rest)
            continue

        if SHORTHAND_MARKER in line:
            left, right = (part.strip() for part in line.split(SHORTHAND_MARKER, 1))
            if left and right:
                lines[Section.QUESTION].append(left)
                lines[Section.ANSWER].append(right)
            break

        if section is not Section.NONE:
            lines[section].append(line)

    return ParsedSections(
        question=_join_nonempty(lines[Section.QUESTION]),
        answer=_join_nonempty(lines[Section.ANSWER]),
        cloze=_join_nonempty(lines[Section.CLOZE]),
    )


def extract_card(path: Path, contents: str, start: int, end: int) -> Card:
    """
    Build a card from one block of a document.

    Args:
        path: File the block came from
        contents: Raw block text
        start: Byte offset of the block in the file
        end: Byte offset just past the block

    Returns:
        A Basic card when both question and answer are present, otherwise a
        Cloze card (with or without a bracketed span)

    Raises:
        IdentityError: If the block is blank
        StructuralParseError: If the block holds no recognizable card
        DegenerateClozeError: If the first cloze span hides nothing
    """
    card_hash = fingerprint(contents)
    if card_hash is None:
        raise IdentityError("Card text is empty")

    sections = parse_sections(contents)
    if sections.question is not None and sections.answer is not None:
        content = BasicContent(question=sections.question, answer=sections.answer)
    elif sections.cloze is not None:
        content = ClozeContent(text=sections.cloze, cloze_range=first_cloze_range(sections.cloze))
    else:
        raise StructuralParseError(f"Unable to parse anything from card contents:\n{contents}")

    return Card(
        file_path=path,
        file_range=(start, end),
        content=content,
        fingerprint=card_hash,
    )


# =============================================================================
# Document Segmentation
# =============================================================================


def _lines(text: str) -> Iterator[str]:
    """Split on newlines only, keeping them; other Unicode breaks stay inside a line."""
    start = 0
    while start < len(text):
        end = text.find("\n", start)
        end = len(text) if end == -1 else end + 1
        yield text[start:end]
        start = end


def segment_blocks(text: str) -> Iterator[tuple[str, int, int]]:
    """
    Yield ``(block, start, end)`` for each candidate card block.

    Offsets are UTF-8 byte positions. Blocks open at a line starting with
    ``Q:`` or ``C:`` and close at the next opening line, at a ``---`` line,
    or at end of text. Every line containing ``::`` is its own block and
    closes any open one.
    """
    tracking = False
    buffer: list[str] = []
    block_start = 0
    offset = 0

    def flush(end: int) -> Iterator[tuple[str, int, int]]:
        block = "".join(buffer)
        buffer.clear()
        if block.strip():
            yield block, block_start, end

    for line in _lines(text):
        width = len(line.encode("utf-8"))

        if line.startswith(("Q:", "C:")):
            tracking = True
            yield from flush(offset)
            block_start = offset

        if SHORTHAND_MARKER in line:
            yield from flush(offset)
            tracking = False
            yield line, offset, offset + width

        if line.startswith(BLOCK_SEPARATOR) and "".join(buffer).strip():
            yield from flush(offset)
            tracking = False

        if tracking:
            buffer.append(line)
        offset += width

    yield from flush(offset)


def cards_from_text(path: Path, text: str) -> list[Card]:
    """
    Extract every card from one document, in document order.

    Blank blocks are skipped. Any other malformed block aborts the document.
    """
    cards: list[Card] = []
    for block, start, end in segment_blocks(text):
        try:
            cards.append(extract_card(path, block, start, end))
        except IdentityError:
            logger.debug(f"Skipping blank block at {path}:{start}")
    return cards


def cards_from_file(path: Path) -> list[Card]:
    """
    Read and extract a document.

    Raises:
        StructuralParseError: If the file cannot be read or decoded, or any
            block is malformed (the error names ``path``)
    """
    try:
        text = path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StructuralParseError(str(e), path=path) from e

    try:
        cards = cards_from_text(path, text)
    except StructuralParseError as e:
        raise e.with_path(path) from e

    logger.debug(f"Parsed {len(cards)} cards from {path}")
    return cards
