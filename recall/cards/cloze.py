"""Cloze span discovery and masking."""

from __future__ import annotations

from recall.cards.models import ClozeRange


def find_cloze_ranges(text: str) -> list[tuple[int, int]]:
    """
    Locate every bracketed span in ``text``.

    Offsets are byte positions in the UTF-8 encoding, brackets included,
    end exclusive. A second ``[`` before a closing ``]`` keeps the first
    start; a ``]`` with no open span is ignored.
    """
    ranges: list[tuple[int, int]] = []
    start: int | None = None
    offset = 0
    for ch in text:
        width = len(ch.encode("utf-8"))
        if ch == "[" and start is None:
            start = offset
        elif ch == "]" and start is not None:
            ranges.append((start, offset + width))
            start = None
        offset += width
    return ranges


def first_cloze_range(text: str) -> ClozeRange | None:
    """
    The earliest bracketed span in ``text`` as a validated range.

    Raises:
        DegenerateClozeError: If the first span hides no visible text
    """
    ranges = find_cloze_ranges(text)
    if not ranges:
        return None
    start, end = ranges[0]
    return ClozeRange.within(text, start, end)


def mask_cloze_text(text: str, cloze_range: ClozeRange) -> str:
    """Replace the cloze span with underscores, at least three of them."""
    raw = text.encode("utf-8")
    before = raw[:cloze_range.start].decode("utf-8")
    after = raw[cloze_range.end:].decode("utf-8")
    placeholder = "_" * max(len(cloze_range.core(text)), 3)
    return f"{before}[{placeholder}]{after}"
