"""
Command-Line Interface

CLI commands for concierge knowledge base operations.

Commands:
    concierge-kb index        - Index a property from a JSON data file
    concierge-kb ask          - Answer a visitor question
    concierge-kb suggestions  - Review FAQ candidates from unresolved questions
    concierge-kb add-faq      - Add an FAQ entry
    concierge-kb faqs         - List a property's FAQs
    concierge-kb import-url   - Extract property data from a listing page
    concierge-kb speak        - Read text aloud to a WAV file
    concierge-kb info         - Show knowledge base counts for a property

Usage:
    # Index a property
    concierge-kb index villa-rosa ./villa-rosa.json --db ./kb.duckdb

    # Ask a question
    concierge-kb ask villa-rosa "Is there parking?" --db ./kb.duckdb

    # Review suggestions from the last week, with drafted answers
    concierge-kb suggestions villa-rosa --days 7 --drafts
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from concierge_kb.errors import ConciergeError

__all__ = ["main", "app"]

T = TypeVar("T")

app = typer.Typer(
    name="concierge-kb",
    help="Property knowledge index and visitor question answering",
    no_args_is_help=True,
)
console = Console()

_DB_OPTION = typer.Option(Path("./concierge.duckdb"), "--db", "-d", help="Knowledge store file")
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="TOML configuration file", exists=True)


def _open(db: Path, config_path: Optional[Path]):
    from concierge_kb.api.concierge import PropertyConcierge
    from concierge_kb.config import ConciergeConfig

    config = ConciergeConfig.from_file(config_path) if config_path else ConciergeConfig()
    return PropertyConcierge(db, config)


def _run(
    db: Path,
    config_path: Optional[Path],
    action: Callable[[Any], Awaitable[T]],
) -> T:
    """Run an async action against a concierge, reporting pipeline errors."""

    async def _go() -> T:
        concierge = _open(db, config_path)
        try:
            return await action(concierge)
        finally:
            await concierge.close()

    try:
        return asyncio.run(_go())
    except ConciergeError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/]")
        raise typer.Exit(code=1)


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("httpx", "openai", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@app.command()
def index(
    property_id: str = typer.Argument(..., help="Property id"),
    data_file: Path = typer.Argument(..., help="JSON property data", exists=True),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Index (or re-index) a property from a JSON data file."""
    raw = json.loads(data_file.read_text())

    async def _action(concierge):
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Indexing {property_id}...")
            result = await concierge.index_property(property_id, raw)
            progress.update(task, completed=True)
        return result

    result = _run(db, config, _action)

    console.print(Panel(
        f"[green]Indexed {result.property_id}[/]\n\n"
        f"  Chunks: {result.indexed_chunks}\n"
        f"  Added: {result.added}\n"
        f"  Removed: {result.removed}\n"
        f"  Unchanged: {result.unchanged}\n"
        f"  Duration: {result.duration_seconds:.1f}s",
        title="Indexing Complete",
    ))


@app.command()
def ask(
    property_id: str = typer.Argument(..., help="Property id"),
    question: str = typer.Argument(..., help="Visitor question"),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
    usage: bool = typer.Option(False, "--usage", help="Show token and cost usage"),
) -> None:
    """Answer a visitor question."""

    async def _action(concierge):
        return await concierge.answer_question(property_id, question, usage_debug=usage)

    answer = _run(db, config, _action)

    styles = {"faq": "green", "generated": "cyan", "fallback": "yellow"}
    title = f"Answer ({answer.answered_by.value}"
    if answer.match_score is not None:
        title += f", FAQ score {answer.match_score:.2f}"
    title += ")"
    console.print(Panel(answer.answer, title=title, border_style=styles[answer.answered_by.value]))

    if answer.suggested_faq_answer:
        console.print(Panel(answer.suggested_faq_answer, title="Related FAQ", border_style="dim"))
    if answer.source_document_ids:
        console.print(f"[dim]Sources: {', '.join(answer.source_document_ids)}[/]")
    if answer.usage:
        console.print(
            f"[dim]Usage: {answer.usage.total_calls} calls, {answer.usage.total_tokens} tokens, "
            f"~${answer.usage.total_estimated_cost_usd:.6f}[/]"
        )
        for warning in answer.usage.warnings:
            console.print(f"[yellow]{warning}[/]")


@app.command()
def suggestions(
    property_id: str = typer.Argument(..., help="Property id"),
    days: int = typer.Option(30, "--days", help="Review window in days"),
    drafts: bool = typer.Option(False, "--drafts", help="Draft an answer per suggestion"),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Review FAQ candidates built from unresolved visitor questions."""
    from datetime import timedelta

    from concierge_kb.types import utc_now

    end = utc_now()
    start = end - timedelta(days=days)

    async def _action(concierge):
        return await concierge.review_suggestions(property_id, start, end, with_drafts=drafts)

    candidates = _run(db, config, _action)

    if not candidates:
        console.print("[yellow]No recurring unanswered questions.[/]")
        return

    table = Table(title=f"FAQ Suggestions: {property_id}")
    table.add_column("Question", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_column("Relevance")
    table.add_column("Type")
    table.add_column("Last seen", style="dim")
    if drafts:
        table.add_column("Draft answer")

    for candidate in candidates:
        row = [
            candidate.representative_question,
            str(candidate.occurrence_count),
            candidate.relevance,
            candidate.type,
            candidate.last_seen.strftime("%Y-%m-%d %H:%M"),
        ]
        if drafts:
            row.append(candidate.draft_answer or "")
        table.add_row(*row)

    console.print(table)


@app.command("add-faq")
def add_faq(
    property_id: str = typer.Argument(..., help="Property id"),
    question: str = typer.Argument(..., help="FAQ question"),
    answer: str = typer.Argument(..., help="FAQ answer"),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Add an FAQ entry (the property must be indexed or registered)."""

    async def _action(concierge):
        await concierge.register_property(property_id)
        return await concierge.add_faq(property_id, question, answer)

    entry = _run(db, config, _action)
    console.print(f"[green]Added FAQ {entry.uuid}[/]")


@app.command()
def faqs(
    property_id: str = typer.Argument(..., help="Property id"),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """List a property's FAQs with hit counts."""

    async def _action(concierge):
        return await concierge.list_faqs(property_id)

    entries = _run(db, config, _action)

    table = Table(title=f"FAQs: {property_id}")
    table.add_column("Question", style="cyan")
    table.add_column("Answer")
    table.add_column("Hits", justify="right", style="green")
    for entry in entries:
        table.add_row(entry.question, entry.answer, str(entry.hit_count))
    console.print(table)


@app.command("import-url")
def import_url(
    url: str = typer.Argument(..., help="Listing page URL"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here"),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Extract description, amenities and rules from a listing page."""

    async def _action(concierge):
        return await concierge.import_property_from_url(url)

    imported = _run(db, config, _action)
    data = imported.to_property_data().model_dump(
        exclude={"name", "prior_answers", "recommendations"}
    )

    if output:
        output.write_text(json.dumps(data, indent=2))
        console.print(f"[green]Wrote {output}[/]")
    else:
        console.print_json(json.dumps(data))


@app.command()
def speak(
    text: str = typer.Argument(..., help="Text to read aloud"),
    output: Path = typer.Option(Path("./answer.wav"), "--output", "-o", help="WAV file"),
    language: str = typer.Option("en-US", "--lang", "-l", help="BCP-47 language code"),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Synthesize speech for a text into a WAV file."""

    async def _action(concierge):
        return await concierge.synthesize_speech(text, language)

    audio = _run(db, config, _action)
    output.write_bytes(audio)
    console.print(f"[green]Wrote {len(audio)} bytes to {output}[/]")


@app.command()
def info(
    property_id: str = typer.Argument(..., help="Property id"),
    db: Path = _DB_OPTION,
    config: Optional[Path] = _CONFIG_OPTION,
) -> None:
    """Display knowledge base counts for a property."""

    async def _action(concierge):
        return await concierge.stats(property_id)

    stats = _run(db, config, _action)

    table = Table(title=f"Knowledge Base: {db} / {property_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Documents", str(stats["documents"]))
    table.add_row("FAQs", str(stats["faqs"]))
    table.add_row("Unresolved questions", str(stats["unresolved_questions"]))
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    load_dotenv()
    app()
