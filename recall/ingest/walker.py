"""
Ignore-aware file discovery.

Walks root paths depth-first, honouring ``.gitignore`` and ``.ignore`` files
in each root's ancestors and in every directory along the way. Rule files
are consulted outermost first, ``.gitignore`` before ``.ignore`` within a
directory, and the last matching pattern across all of them decides, so a
deeper or higher-priority ``!pattern`` re-includes a path. Hidden files are
not skipped; only ``.git`` directories are.
"""

from __future__ import annotations

import errno
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

import pathspec
from loguru import logger

# Lowest precedence first
IGNORE_FILES = (".gitignore", ".ignore")
SKIPPED_DIRS = {".git"}


@dataclass
class FileSearchStats:
    """Counts accumulated during one traversal."""

    files_searched: int = 0
    document_files: int = 0


@dataclass(frozen=True)
class _IgnoreRules:
    """Patterns from one ignore file, relative to the directory holding it."""

    base: Path
    spec: pathspec.PathSpec

    def verdict(self, path: Path, is_dir: bool) -> bool | None:
        """
        True if the last matching pattern ignores ``path``, False if it
        re-includes it, None if no pattern matches.
        """
        try:
            relative = path.relative_to(self.base).as_posix()
        except ValueError:
            return None
        if is_dir:
            relative += "/"

        result = None
        for pattern in self.spec.patterns:
            if pattern.include is None:
                continue
            if pattern.match_file(relative) is not None:
                result = pattern.include
        return result


def is_document(path: Path, extensions: Iterable[str]) -> bool:
    """True when ``path`` has one of ``extensions`` (case-insensitive)."""
    suffix = path.suffix.lower().lstrip(".")
    return bool(suffix) and suffix in {ext.lower().lstrip(".") for ext in extensions}


def _absolute(path: Path) -> Path:
    return Path(os.path.abspath(path))


def _load_rules(directory: Path) -> list[_IgnoreRules]:
    rules = []
    for name in IGNORE_FILES:
        ignore_file = directory / name
        if not ignore_file.is_file():
            continue
        try:
            lines = ignore_file.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {ignore_file}: {e}")
            continue
        rules.append(_IgnoreRules(directory, pathspec.GitIgnoreSpec.from_lines(lines)))
    return rules


def _ancestor_rules(root: Path) -> list[_IgnoreRules]:
    """Rules from every directory above ``root``, outermost first."""
    rules: list[_IgnoreRules] = []
    for directory in reversed(root.parents):
        rules.extend(_load_rules(directory))
    return rules


def _is_ignored(path: Path, is_dir: bool, rules: list[_IgnoreRules]) -> bool:
    ignored = False
    for rule in rules:
        verdict = rule.verdict(path, is_dir)
        if verdict is not None:
            ignored = verdict
    return ignored


def iter_files(roots: Iterable[Path]) -> Iterator[Path]:
    """
    Yield every non-ignored regular file under ``roots``.

    A root that is itself a file is yielded as-is.

    Raises:
        FileNotFoundError: If a root does not exist
    """
    for root in roots:
        if root.is_file():
            yield root
            continue
        if not root.is_dir():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(root))

        base_rules = _ancestor_rules(_absolute(root))
        rules_by_dir: dict[Path, list[_IgnoreRules]] = {}
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            absolute = _absolute(current)
            inherited = rules_by_dir.get(absolute.parent, base_rules) if current != root else base_rules
            rules = inherited + _load_rules(absolute)
            rules_by_dir[absolute] = rules

            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in SKIPPED_DIRS and not _is_ignored(absolute / name, True, rules)
            )
            for name in sorted(filenames):
                if _is_ignored(absolute / name, False, rules):
                    continue
                path = current / name
                if path.is_file():
                    yield path
