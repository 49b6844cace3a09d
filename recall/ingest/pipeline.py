"""
Ingestion Pipeline.

Fan-in from a parser thread pool to a single persistence consumer:

    walker thread ──► ThreadPoolExecutor (one task per document)
                            │ batches of cards, per file, in file order
                            ▼
                 asyncio.Queue (unbounded) ──► consumer coroutine
                                                  │ add_cards_batch (one transaction)
                                                  ▼
                                       {fingerprint: Card}

The first parse failure stops the walk and aborts the whole call.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path

from loguru import logger

from recall.cards.models import Card
from recall.cards.parser import cards_from_file
from recall.errors import PersistenceError, StructuralParseError
from recall.ingest.walker import FileSearchStats, is_document, iter_files
from recall.store.schedule_store import ScheduleStore

DEFAULT_EXTENSIONS = ("md",)

BatchSink = Callable[[list[Card] | None], None]


class CardWalker:
    """
    Discovers documents and parses them on a thread pool.

    Batches go to ``sink``; ``None`` is sent exactly once when the walk ends,
    whether it succeeded or not.
    """

    def __init__(
        self,
        paths: Iterable[Path],
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        workers: int | None = None,
    ):
        self.paths = [Path(p) for p in paths]
        self.extensions = tuple(extensions)
        self.workers = workers

        self.stats = FileSearchStats()
        self._stats_lock = threading.Lock()
        self._stop = threading.Event()
        self._error: StructuralParseError | None = None
        self._error_lock = threading.Lock()

    def stop(self) -> None:
        self._stop.set()

    def _fail(self, error: StructuralParseError) -> None:
        with self._error_lock:
            if self._error is None:
                self._error = error
        self._stop.set()

    def _parse(self, path: Path, sink: BatchSink) -> None:
        if self._stop.is_set():
            return
        try:
            cards = cards_from_file(path)
        except StructuralParseError as e:
            logger.debug(f"Parse failure in {path}: {e}")
            self._fail(e)
            return
        if cards and not self._stop.is_set():
            sink(cards)

    def run(self, sink: BatchSink) -> FileSearchStats:
        """
        Walk every root and parse each document.

        Returns:
            Final traversal statistics

        Raises:
            StructuralParseError: The first parse failure, naming its file
        """
        try:
            with ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="recall-parse"
            ) as executor:
                try:
                    for path in iter_files(self.paths):
                        if self._stop.is_set():
                            break
                        document = is_document(path, self.extensions)
                        with self._stats_lock:
                            self.stats.files_searched += 1
                            if document:
                                self.stats.document_files += 1
                        if document:
                            executor.submit(self._parse, path, sink)
                except FileNotFoundError as e:
                    self._fail(StructuralParseError(e.strerror, path=Path(e.filename)))
        finally:
            sink(None)

        if self._error is not None:
            raise self._error
        return self.stats


async def ingest(
    paths: Iterable[Path],
    store: ScheduleStore,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    workers: int | None = None,
    now: datetime | None = None,
) -> tuple[dict[str, Card], FileSearchStats]:
    """
    Discover every card under ``paths`` and register it with the store.

    Args:
        paths: Files and directories to search
        store: Schedule store receiving one new row per unseen fingerprint
        extensions: Document extensions (case-insensitive)
        workers: Parser threads (None lets the executor decide)
        now: Registration timestamp for new rows

    Returns:
        (fingerprint -> Card, traversal statistics), valid once both the walk
        and the queue are finished

    Raises:
        StructuralParseError: If any document is malformed
        PersistenceError: If a batch cannot be stored
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[list[Card] | None] = asyncio.Queue()

    def sink(batch: list[Card] | None) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, batch)

    walker = CardWalker(paths, extensions=extensions, workers=workers)
    walk = loop.run_in_executor(None, walker.run, sink)

    cards: dict[str, Card] = {}
    try:
        while True:
            batch = await queue.get()
            if batch is None:
                break
            store.add_cards_batch([card.fingerprint for card in batch], now=now)
            for card in batch:
                cards[card.fingerprint] = card
            logger.debug(f"Stored batch of {len(batch)} cards from {batch[0].file_path}")
    except PersistenceError:
        walker.stop()
        await asyncio.wait([walk])
        if walk.exception() is not None:
            logger.warning(f"Walker also failed: {walk.exception()}")
        raise

    stats = await walk
    logger.info(
        f"Ingested {len(cards)} cards from {stats.document_files} documents "
        f"({stats.files_searched} files searched)"
    )
    return cards, stats
