"""
Content addressing for cards.

Unchanged by: leading/trailing whitespace, repeated spaces/tabs/newlines,
line wrapping, case.
Changed by: word order, punctuation, hyphens vs spaces, symbols, numbers.
"""

from __future__ import annotations

import hashlib


def normalize_text(text: str) -> str:
    """Lower-case ``text`` and collapse every whitespace run to one space."""
    return " ".join(text.lower().split())


def fingerprint(text: str) -> str | None:
    """
    Derive the stable identity of a piece of card text.

    Args:
        text: Raw card text, markers included

    Returns:
        SHA-256 hex digest of the normalized text, or None when nothing
        but whitespace remains
    """
    normalized = normalize_text(text)
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
