"""
recall: spaced repetition for cards kept in plain-text notes.

Components:
- cards: content addressing, card model and block extraction
- ingest: ignore-aware traversal feeding a single persistence consumer
- store: SQLite schedule rows keyed by card fingerprint
- scheduling: FSRS-backed review updates, due-set selection, collection stats
- drill: review session state machine with a background enhancement overlay
- cli: the `recall` command
"""

__version__ = "0.4.0"
