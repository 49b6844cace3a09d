"""
Cooperative drill loop.

One coroutine renders, polls for a key with a short timeout, and acts.
Enhancement runs as a separate task whose results arrive through an
asyncio.Queue drained once per cycle. Quitting cancels that task without
waiting for it.
"""

from __future__ import annotations

import asyncio
import threading
import time
from enum import Enum
from typing import Protocol

import click
from loguru import logger
from rich.console import Console
from rich.live import Live

from recall.drill.display import render_session
from recall.drill.enhancer import CardEnhancer, enhancement_required
from recall.drill.session import DrillAction, DrillSession

DEFAULT_POLL_INTERVAL = 0.05

QUIT_KEYS = {"\x1b", "\x03", "q", "Q"}
CONFIRM_KEYS = {" ", "\r", "\n"}
FAIL_KEYS = {"f", "F"}


class Command(Enum):
    QUIT = "quit"


class KeySource(Protocol):
    async def poll(self, timeout: float) -> str | None: ...


class TerminalKeys:
    """
    Reads single key presses from the terminal on a daemon thread.

    The thread blocks in ``click.getchar``; presses are handed to the event
    loop through an asyncio.Queue.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        loop = asyncio.get_running_loop()

        def read_keys() -> None:
            while True:
                try:
                    key = click.getchar()
                except (EOFError, KeyboardInterrupt):
                    key = "\x03"
                loop.call_soon_threadsafe(self._queue.put_nowait, key)
                if key == "\x03":
                    return

        self._thread = threading.Thread(target=read_keys, name="recall-keys", daemon=True)
        self._thread.start()

    async def poll(self, timeout: float) -> str | None:
        if self._thread is None:
            self.start()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


def interpret_key(key: str, show_answer: bool) -> DrillAction | Command | None:
    """Map a raw key press to a session action."""
    if key in QUIT_KEYS:
        return Command.QUIT
    if key in CONFIRM_KEYS:
        return DrillAction.PASS if show_answer else DrillAction.REVEAL
    if key in FAIL_KEYS:
        return DrillAction.FAIL
    return None


class DrillView:
    """Live terminal view of a session."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()
        self._live: Live | None = None

    def __enter__(self) -> DrillView:
        self._live = Live(console=self.console, auto_refresh=False, screen=True, transient=True)
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        if self._live is not None:
            self._live.__exit__(*exc_info)
            self._live = None

    def update(self, session: DrillSession) -> None:
        if self._live is not None:
            self._live.update(render_session(session, time.monotonic()), refresh=True)


async def run_session(
    session: DrillSession,
    keys: KeySource,
    enhancer: CardEnhancer | None = None,
    view: DrillView | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> DrillSession:
    """
    Drive ``session`` until it completes or the user quits.

    Args:
        session: Session over the due cards, already flagged for enhancement
        keys: Source of key presses
        enhancer: Rewrites pending cards in the background (None disables)
        view: Renders each cycle (None for headless runs)
        poll_interval: Upper bound on each wait for a key, in seconds

    Returns:
        The session, for inspection by the caller

    Raises:
        RecallError: If enhancement failed and the current card can never
            be reviewed, or a review could not be recorded
    """
    updates: asyncio.Queue = asyncio.Queue()
    task: asyncio.Task | None = None
    if enhancer is not None and enhancement_required(session.cards):
        task = asyncio.create_task(enhancer.run(list(session.cards), updates))

    try:
        while not session.is_complete:
            if task is not None and task.done():
                if not task.cancelled() and task.exception() is not None:
                    session.record_enhancement_failure(task.exception())
                task = None

            while not updates.empty():
                session.apply_update(updates.get_nowait())

            if session.must_terminate:
                raise session.enhancement_error

            if view is not None:
                view.update(session)

            key = await keys.poll(poll_interval)
            if key is None:
                continue
            command = interpret_key(key, session.show_answer)
            if command is Command.QUIT:
                logger.info(f"Drill quit after {session.reviews_recorded} reviews")
                break
            if command is not None:
                session.apply(command)
        else:
            logger.info(f"Drill complete after {session.reviews_recorded} reviews")
    finally:
        if task is not None and not task.done():
            task.cancel()

    return session
