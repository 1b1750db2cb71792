"""
CLI entry point for wordcore.
"""

# Standard library imports
import asyncio
import logging
import os
from datetime import date
from pathlib import Path
from typing import List, Optional

# Third-party imports
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# Local application imports
from wordcore.config import get_settings
from wordcore.db import ProgressDatabase
from wordcore.dialogue import DialogueController
from wordcore.exceptions import DatabaseError, FetchError
from wordcore.models import Grade, InboundEvent, ReplyBatch
from wordcore.page_cache import PageCache
from wordcore.presentation import button_caption
from wordcore.session import SessionRegistry
from wordcore.sources import YamlDeckSource
from wordcore.sources.yaml_deck import load_deck

console = Console()

app = typer.Typer(
    name="wordcore",
    help="Wordcore: chat-driven vocabulary trainer.",
    add_completion=False,
    rich_markup_mode="markdown",
)

DRILL_CONVERSATION_ID = "console"
QUIT_WORDS = {"q", "quit", "exit"}


def _resolve_db_path(db: Optional[Path]) -> Path:
    """Resolve db path from CLI flag or WORDCORE_DB envvar. Exits on missing."""
    if db is not None:
        return db
    env_val = os.environ.get("WORDCORE_DB")
    if env_val:
        return Path(env_val)
    console.print(
        "[bold red]Error: --db is required "
        "(or set the WORDCORE_DB environment variable).[/bold red]"
    )
    raise typer.Exit(code=1)


_db_option = typer.Option(  # noqa: B008
    None,
    "--db",
    help="Path to the DuckDB progress database. "
    "Falls back to WORDCORE_DB env var.",
    envvar="WORDCORE_DB",
)


# ---------------------------------------------------------------------------
# Serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", help="Port to listen on."),
):
    """
    Run the LINE webhook server.
    """
    import uvicorn

    from wordcore.server import create_app

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    console.print(
        f"Starting wordcore on [cyan]{host}:{port}[/cyan] "
        f"(content backend: {settings.content_backend})"
    )
    uvicorn.run(create_app(settings), host=host, port=port)


# ---------------------------------------------------------------------------
# Drill
# ---------------------------------------------------------------------------


def _render_batch(batch: ReplyBatch) -> List[str]:
    """
    Print every message of a reply batch and return the suggested actions of
    the last message that offered any.
    """
    actions: List[str] = []
    for message in batch.messages:
        if message.audio is not None:
            console.print(f"[dim]🔊 {message.audio.url}[/dim]")
        else:
            console.print(Panel(message.text or "", border_style="green"))
        if message.suggested_actions:
            actions = list(message.suggested_actions)
    if actions:
        choices = "  ".join(
            f"[bold]{i}[/bold]:{button_caption(label)}"
            for i, label in enumerate(actions, start=1)
        )
        console.print(choices)
    return actions


def _read_choice(actions: List[str]) -> Optional[str]:
    """Read one line; a number picks from `actions`. None means quit."""
    try:
        raw = console.input("[bold]> [/bold]").strip()
    except EOFError:
        return None
    if raw.lower() in QUIT_WORDS:
        return None
    if raw.isdigit() and 1 <= int(raw) <= len(actions):
        return actions[int(raw) - 1]
    return raw


async def run_drill(controller: DialogueController, first_input: str) -> int:
    """
    Drive a console conversation until the user quits.

    Returns:
        int: Number of inputs handled.
    """
    handled = 0
    text: Optional[str] = first_input
    actions: List[str] = []
    while text is not None:
        batch = await controller.handle(
            InboundEvent(conversation_id=DRILL_CONVERSATION_ID, text=text)
        )
        handled += 1
        if batch is None:
            console.print("[yellow]Input ignored at this point.[/yellow]")
        else:
            actions = _render_batch(batch)
        text = _read_choice(actions)
    return handled


@app.command()
def drill(
    deck: Path = typer.Option(  # noqa: B008
        ...,
        "--deck",
        help="YAML deck file to study.",
        exists=True,
        dir_okay=False,
    ),
    db: Optional[Path] = _db_option,
    page_size: int = typer.Option(
        20, "--page-size", min=1, help="Cards fetched per page."
    ),
):
    """
    Study a YAML deck in the terminal, recording grades to the progress database.

    Parameters:
        deck (Path): YAML deck file.
        db (Optional[Path]): Progress database; resolved from the value or the
            WORDCORE_DB environment variable.
        page_size (int): Cards fetched per page.
    """
    db_path = _resolve_db_path(db)
    try:
        card_count = len(load_deck(deck))
    except FetchError as e:
        console.print(f"[bold red]Deck Error:[/bold red] {e}")
        raise typer.Exit(code=1)
    source = YamlDeckSource(deck, page_size=page_size)
    try:
        with ProgressDatabase(db_path) as progress_db:
            progress_db.initialize_schema()
            controller = DialogueController(
                registry=SessionRegistry(lambda _key: PageCache(source)),
                progress_sink=progress_db,
            )
            console.print(
                f"Studying [cyan]{deck}[/cyan] ({card_count} cards). "
                "Type a number or label, [bold]q[/bold] to quit."
            )
            handled = asyncio.run(run_drill(controller, "Next"))
    except DatabaseError as e:
        console.print(f"[bold red]Database Error:[/bold red] {e}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]Session ended after {handled} inputs.[/bold green]")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


def _display_daily_totals(cons: Console, days) -> None:
    table = Table(title="Daily Progress")
    table.add_column("Date", style="cyan")
    table.add_column("Total", style="magenta")
    for grade in Grade:
        table.add_column(grade.label)
    for day in days:
        table.add_row(
            day.study_date.isoformat(),
            str(day.total_studied),
            *(str(day.by_grade[grade.label]) for grade in Grade),
        )
    cons.print(table)


@app.command()
def progress(
    db: Optional[Path] = _db_option,
    days: int = typer.Option(7, "--days", min=1, help="Study days to show."),
    on: Optional[str] = typer.Option(
        None, "--on", help="Show the words studied on one date (YYYY-MM-DD)."
    ),
):
    """
    Show study totals per day, or the words studied on one day.
    """
    db_path = _resolve_db_path(db)
    if not db_path.exists():
        console.print(f"[bold red]No progress database at {db_path}.[/bold red]")
        raise typer.Exit(code=1)

    try:
        with ProgressDatabase(db_path, read_only=True) as progress_db:
            if on is None:
                totals = progress_db.get_daily_totals(limit=days)
                if not totals:
                    console.print("[yellow]No reviews recorded yet.[/yellow]")
                    return
                _display_daily_totals(console, totals)
                return

            try:
                study_date = date.fromisoformat(on)
            except ValueError:
                console.print(f"[bold red]Invalid date: {on}[/bold red]")
                raise typer.Exit(code=1)
            summary = progress_db.get_daily_progress(study_date)
    except DatabaseError as e:
        console.print(f"[bold red]Database Error:[/bold red] {e}")
        raise typer.Exit(code=1)

    _display_daily_totals(console, [summary])
    for word in summary.studied_words:
        console.print(f"- {word.phrase or word.card_id}: {word.grade.label}")


if __name__ == "__main__":
    app()
