"""Command-line interface for claimgraph."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from claimgraph.config.settings import get_settings
from claimgraph.errors import ClaimGraphError
from claimgraph.extraction.segmenter import create_sentence_splitter, split_markdown_into_sentences
from claimgraph.models import ExtractionOptions, ExtractionResult, Stance
from claimgraph.processing.canonical import atom, make_triple

# Configure structlog for CLI
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

app = typer.Typer(
    name="claimgraph",
    help="claimgraph - Extract canonical claim triples from debate text",
    add_completion=False,
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, get_settings().log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, stream=sys.stderr)


@app.command()
def extract(
    path: Path = typer.Argument(
        ...,
        help="Markdown or plain-text file to extract claims from",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    theme: Optional[str] = typer.Option(None, "--theme", "-t", help="Theme title used as header context"),
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Parent claim text when replying"),
    stance: Optional[Stance] = typer.Option(None, "--stance", "-s", help="Declared stance toward the parent"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file for the JSON result (default: <file>_claims.json)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Run the extraction pipeline on a file and write the result as JSON."""
    from claimgraph.llm.chains import build_stage_backends
    from claimgraph.pipeline.orchestrator import ExtractionPipeline
    from claimgraph.processing.dedup import HttpDedupResolver

    _configure_logging(verbose)
    settings = get_settings()

    console.print(
        Panel.fit(
            "[bold blue]claimgraph[/bold blue]\nExtracting claims...",
            border_style="blue",
        )
    )

    output = output or path.with_name(f"{path.stem}_claims.json")
    console.print(f"\n[dim]Input:[/dim] {path}")
    console.print(f"[dim]Output:[/dim] {output}\n")

    options = ExtractionOptions(theme_title=theme, parent_claim_text=parent, user_stance=stance)
    resolver = HttpDedupResolver(settings.dedup_base_url, settings.dedup_timeout_seconds) if settings.dedup_base_url else None

    try:
        pipeline = ExtractionPipeline(build_stage_backends(), settings=settings, resolver=resolver)
        result = asyncio.run(pipeline.run(path.read_text(encoding="utf-8"), options))
    except ClaimGraphError as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(code=1)

    with open(output, "w", encoding="utf-8") as f:
        json.dump(result.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    _display_summary(result)
    console.print(f"\n[green]Result saved to:[/green] {output}")


@app.command()
def segment(
    path: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False, readable=True),
) -> None:
    """Print the sentence segments of a markdown file."""
    splitter = create_sentence_splitter(get_settings())

    table = Table(show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Header path")
    table.add_column("Sentence")

    for i, seg in enumerate(split_markdown_into_sentences(path.read_text(encoding="utf-8"), splitter)):
        table.add_row(str(i), " > ".join(seg.header_path), seg.sentence)

    console.print(table)


@app.command()
def key(
    subject: str = typer.Argument(..., help="Subject label"),
    predicate: str = typer.Argument(..., help="Predicate label"),
    object_: str = typer.Argument(..., metavar="OBJECT", help="Object label"),
) -> None:
    """Print the atom keys and the triple key for a flat (S, P, O)."""
    try:
        triple = make_triple(subject, predicate, object_)
    except ClaimGraphError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(show_header=False, box=None)
    table.add_column("Term", style="dim")
    table.add_column("Key")

    for role, label in (("subject", subject), ("predicate", predicate), ("object", object_)):
        table.add_row(f"{role} ({atom(label).label})", atom(label).atom_key)
    table.add_row("triple", triple.stable_key)

    console.print(table)


def _display_summary(result: ExtractionResult) -> None:
    """Display a summary of the extraction result."""
    console.print("\n[bold]Extraction Summary[/bold]")
    console.print("-" * 40)

    kept = [s for s in result.sentences if s.selected_sentence is not None]

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Count", justify="right")

    table.add_row("Sentences", str(len(result.sentences)))
    table.add_row("Kept", str(len(kept)))
    table.add_row("Claims", str(sum(len(s.claims) for s in result.sentences)))
    table.add_row("Triples", str(len(result.triples)))
    table.add_row("Sub-triples", str(len(result.nested_triples)))
    table.add_row("Nested edges", str(len(result.edges)))
    if result.dedup is not None:
        table.add_row("New atoms", str(len(result.dedup.new_atom_keys)))
        table.add_row("New statements", str(len(result.dedup.new_statement_keys)))

    console.print(table)

    for triple in result.triples[:10]:
        console.print(f"  [cyan]{triple.label}[/cyan]")

    if result.warnings:
        console.print(f"\n[yellow]Warnings:[/yellow] {len(result.warnings)}")
        for warning in result.warnings[:5]:
            where = f"sentence {warning.sentence_index}" if warning.sentence_index is not None else "submission"
            console.print(f"  [dim]{warning.stage.value} ({where}):[/dim] {warning.message}")


if __name__ == "__main__":
    app()
