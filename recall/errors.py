"""
Error taxonomy for recall.

- StructuralParseError: a block matches no card shape (fatal to ingestion)
- DegenerateClozeError: a cloze span masks nothing
- IdentityError: text normalizes to nothing (block is skipped)
- PersistenceError: the schedule store failed
- ForecastError: the memory model is unusable
- CollaboratorError: the text-rewriting service failed
"""

from __future__ import annotations

from pathlib import Path


class RecallError(Exception):
    """Base class for every error raised by recall."""


class StructuralParseError(RecallError):
    """A document block could not be turned into a card."""

    def __init__(self, message: str, path: Path | None = None):
        self.message = message
        self.path = path
        super().__init__(self._render())

    def _render(self) -> str:
        if self.path is None:
            return self.message
        return f"Failed to parse {self.path}: {self.message}"

    def with_path(self, path: Path) -> StructuralParseError:
        """Return a copy of this error that names the offending file."""
        err = type(self)(self.message, path=path)
        err.__cause__ = self.__cause__
        return err


class DegenerateClozeError(StructuralParseError):
    """A bracketed cloze span hides no visible text."""


class IdentityError(RecallError):
    """Card text is empty after normalization."""


class PersistenceError(RecallError):
    """The schedule store could not be read or written."""


class ForecastError(RecallError):
    """The memory-decay model failed to initialize or rejected its input."""


class CollaboratorError(RecallError):
    """The text-rewriting service failed for a card."""
