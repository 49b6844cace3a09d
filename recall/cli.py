"""
recall: command-line entry point.

Commands:
- recall drill PATHS...   - Review the cards that are due
- recall check PATHS...   - Summarize the collection's schedule
- recall llm --test       - Validate the rewriting service API key
"""
from __future__ import annotations

import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from recall.cards.models import Card
from recall.config import Settings, get_settings
from recall.drill.enhancer import CardEnhancer, enhancement_required, flag_cards, unavailable_message
from recall.drill.rewriter import OpenAIRewriter
from recall.drill.runner import DrillView, TerminalKeys, run_session
from recall.drill.session import DrillSession
from recall.errors import CollaboratorError, RecallError
from recall.ingest.pipeline import ingest
from recall.ingest.walker import FileSearchStats
from recall.scheduling.due import due_today
from recall.scheduling.engine import SchedulingEngine
from recall.scheduling.stats import CardLifecycle, CollectionStats, Histogram, collection_stats
from recall.store.schedule_store import ScheduleStore

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="recall",
    help="Spaced repetition for flashcards kept in Markdown notes",
    no_args_is_help=True,
)

console = Console()


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, format="<level>{message}</level>")
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=3)


def fail(error: RecallError) -> None:
    logger.opt(exception=error).debug(f"Command failed: {error}")
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


def open_store(settings: Settings) -> ScheduleStore:
    return ScheduleStore(settings.resolved_database_path())


def collect(
    paths: list[Path], store: ScheduleStore, settings: Settings
) -> tuple[dict[str, Card], FileSearchStats]:
    return asyncio.run(
        ingest(
            paths,
            store,
            extensions=settings.document_extensions,
            workers=settings.resolved_ingest_workers(),
        )
    )


def build_rewriter(settings: Settings) -> OpenAIRewriter | None:
    if not settings.openai_api_key:
        return None
    return OpenAIRewriter(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout_seconds=settings.llm_timeout_seconds,
        max_output_tokens=settings.llm_max_output_tokens,
    )


# =============================================================================
# Drill
# =============================================================================


async def _drill(
    cards: list[Card],
    engine: SchedulingEngine,
    rewriter: OpenAIRewriter | None,
    settings: Settings,
) -> DrillSession:
    session = DrillSession(
        cards,
        review=engine.review,
        learn_ahead=timedelta(minutes=settings.learn_ahead_minutes),
    )
    enhancer = None
    if rewriter is not None:
        enhancer = CardEnhancer(rewriter, max_concurrent=settings.max_concurrent_llm_requests)
    try:
        with DrillView(console) as view:
            return await run_session(
                session,
                TerminalKeys(),
                enhancer=enhancer,
                view=view,
                poll_interval=settings.drill_poll_interval_ms / 1000,
            )
    finally:
        if rewriter is not None:
            await rewriter.close()


@app.command()
def drill(
    paths: list[Path] = typer.Argument(
        ...,
        help="Files or directories containing cards",
    ),
    card_limit: Optional[int] = typer.Option(
        None, "--card-limit", "-n", min=1,
        help="Maximum number of cards to review",
    ),
    new_card_limit: Optional[int] = typer.Option(
        None, "--new-card-limit", min=0,
        help="Maximum number of never-reviewed cards to introduce",
    ),
    rephrase: bool = typer.Option(
        False, "--rephrase",
        help="Ask the AI helper to reword basic questions",
    ),
    shuffle: bool = typer.Option(
        False, "--shuffle",
        help="Shuffle the due cards before reviewing",
    ),
):
    """Review the cards that are due."""
    settings = get_settings()
    try:
        store = open_store(settings)
        cards, _ = collect(paths, store, settings)
        due = due_today(
            cards,
            store,
            card_limit=card_limit,
            new_card_limit=new_card_limit,
            learn_ahead=timedelta(minutes=settings.learn_ahead_minutes),
        )
        if shuffle:
            random.shuffle(due)

        if not due:
            console.print("[green]All caught up - no cards due today.[/green]")
            raise typer.Exit(0)

        due = flag_cards(due, rephrase_questions=rephrase)
        rewriter = None
        if enhancement_required(due):
            rewriter = build_rewriter(settings)
            if rewriter is None:
                raise CollaboratorError(unavailable_message(due))

        engine = SchedulingEngine(store, desired_retention=settings.desired_retention)
        session = asyncio.run(_drill(due, engine, rewriter, settings))
    except RecallError as e:
        fail(e)

    remaining = len(session.cards) - session.cursor + len(session.redo_cards)
    if session.is_complete:
        console.print(f"[bold green]Session complete.[/bold green] {session.reviews_recorded} reviews recorded.")
    else:
        console.print(
            f"[yellow]Session ended early.[/yellow] {session.reviews_recorded} reviews recorded, "
            f"{remaining} cards left."
        )


# =============================================================================
# Check
# =============================================================================


def _histogram_row(label: str, histogram: Histogram) -> list[str]:
    mean = histogram.mean
    return [label, *(str(n) for n in histogram.bins), f"{mean:.2f}" if mean is not None else "-"]


def print_stats(stats: CollectionStats, search: FileSearchStats) -> None:
    summary = Table(show_header=False, box=None)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="bold")
    summary.add_row("Files searched", str(search.files_searched))
    summary.add_row("Documents", str(search.document_files))
    summary.add_row("Cards found", str(stats.num_cards))
    summary.add_row("Cards in database", str(stats.total_cards_in_db))
    for lifecycle in CardLifecycle:
        summary.add_row(lifecycle.value, str(stats.lifecycles.get(lifecycle, 0)))
    summary.add_row("Due now", str(stats.due_cards))
    summary.add_row("Due in 30 days", str(stats.upcoming_month))
    console.print(summary)

    if stats.upcoming_week:
        week = Table(title="Next 7 days")
        week.add_column("Day")
        week.add_column("Cards", justify="right")
        for day in sorted(stats.upcoming_week):
            week.add_row(day.isoformat(), str(stats.upcoming_week[day]))
        console.print(week)

    histograms = Table(title="Distributions")
    histograms.add_column("")
    for lower in range(0, 100, 20):
        histograms.add_column(f"{lower}-{lower + 20}%", justify="right")
    histograms.add_column("Mean", justify="right")
    histograms.add_row(*_histogram_row("Difficulty", stats.difficulty_histogram))
    histograms.add_row(*_histogram_row("Retrievability", stats.retrievability_histogram))
    console.print(histograms)

    if stats.file_paths:
        files = Table(title="Cards per file")
        files.add_column("File")
        files.add_column("Cards", justify="right")
        for path, count in stats.file_paths.most_common():
            files.add_row(str(path), str(count))
        console.print(files)


@app.command()
def check(
    paths: list[Path] = typer.Argument(
        ...,
        help="Files or directories containing cards",
    ),
):
    """Summarize the collection's schedule."""
    settings = get_settings()
    try:
        store = open_store(settings)
        cards, search = collect(paths, store, settings)
        stats = collection_stats(
            cards,
            store,
            now=datetime.now(timezone.utc),
            learn_ahead=timedelta(minutes=settings.learn_ahead_minutes),
        )
    except RecallError as e:
        fail(e)

    print_stats(stats, search)


# =============================================================================
# LLM Helper
# =============================================================================


async def _healthcheck(rewriter: OpenAIRewriter) -> int:
    try:
        return await rewriter.healthcheck()
    finally:
        await rewriter.close()


@app.command()
def llm(
    test: bool = typer.Option(
        False, "--test",
        help="Validate the configured API key",
    ),
):
    """Check the AI helper configuration."""
    settings = get_settings()
    if not test:
        state = "configured" if settings.openai_api_key else "not configured"
        console.print(f"AI helper is {state} (model: {settings.llm_model})")
        return

    try:
        rewriter = build_rewriter(settings)
        if rewriter is None:
            raise CollaboratorError(
                "LLM features are disabled. To enable, set OPENAI_API_KEY in the environment or .env"
            )
        models = asyncio.run(_healthcheck(rewriter))
    except RecallError as e:
        fail(e)

    console.print(f"[green]API key is valid[/green] ({models} models available)")


def main():
    """Entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
