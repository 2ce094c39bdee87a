"""CLI interface for the kinship engine.

Every command reads a JSON snapshot document (``--graph`` or the
``KINSHIP_GRAPH`` environment variable) and runs one query against it.
"""

import asyncio
import json
from collections import Counter
from pathlib import Path
from typing import NoReturn, get_args

import click
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import EngineConfig
from .errors import InvalidGraphError, KinshipError
from .graph.graph_store import GraphStore, Snapshot
from .graph.models import EdgeKind
from .graph.serialization import load_file
from .logging import LogLevel, configure_logging
from .query import QueryFacade, QueryOptions

app = typer.Typer(
    name="kinship",
    help="Genealogical relationship queries over a pedigree graph",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

GRAPH_OPTION = typer.Option(
    ...,
    "--graph",
    "-g",
    envvar="KINSHIP_GRAPH",
    exists=True,
    dir_okay=False,
    help="JSON snapshot document",
)
JSON_OPTION = typer.Option(False, "--json", help="Print machine-readable JSON")


def get_config() -> EngineConfig:
    """Load configuration from environment."""
    return EngineConfig.from_env()


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        click_type=click.Choice(get_args(LogLevel), case_sensitive=False),
        help="Log level for stderr output",
    ),
):
    """Genealogical relationship queries."""
    configure_logging(log_level.upper(), json_output=False)


def _open(graph: Path) -> tuple[GraphStore, QueryFacade]:
    store = load_file(graph)
    return store, QueryFacade(store, get_config())


def _resolve_id(snapshot: Snapshot, raw: str):
    """Command-line identifiers are strings; fall back to an integer id."""
    if snapshot.contains(raw):
        return raw
    try:
        number = int(raw)
    except ValueError:
        return raw
    return number if snapshot.contains(number) else raw


def _options(
    kinds: list[EdgeKind] | None,
    max_depth: int | None,
    timeout: float | None,
    legal_only: bool = False,
    min_confidence: float = 0.0,
    limit: int = 16,
) -> QueryOptions:
    values: dict = {
        "max_depth": max_depth,
        "timeout_seconds": timeout,
        "legal_only": legal_only,
        "min_confidence": min_confidence,
        "path_limit": limit,
    }
    if kinds:
        values["allowed_kinds"] = frozenset(kinds)
    try:
        return QueryOptions.model_validate(values)
    except ValidationError as e:
        problems = "; ".join(
            f"{error['loc'][0]}: {error['msg']}" for error in e.errors()
        )
        raise typer.BadParameter(problems) from e


def _fail(error: KinshipError) -> NoReturn:
    err_console.print(f"[red]Error: {escape(str(error))}[/red]")
    if isinstance(error, InvalidGraphError):
        for problem in error.problems[:20]:
            err_console.print(f"  [dim]• {escape(problem)}[/dim]")
        raise typer.Exit(2)
    raise typer.Exit(1)


def _emit_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


@app.command()
def path(
    start: str = typer.Argument(..., help="Start individual"),
    end: str = typer.Argument(..., help="End individual"),
    graph: Path = GRAPH_OPTION,
    kinds: list[EdgeKind] = typer.Option(None, "--kind", "-k", help="Allowed edge kind (repeatable)"),
    max_depth: int = typer.Option(None, "--max-depth", min=1, help="Combined search depth cap"),
    timeout: float = typer.Option(None, "--timeout", min=0.0, help="Timeout in seconds"),
    legal_only: bool = typer.Option(False, "--legal-only", help="Only legally recognized edges"),
    min_confidence: float = typer.Option(0.0, "--min-confidence", min=0.0, max=1.0, help="Minimum edge confidence"),
    show_all: bool = typer.Option(False, "--all", help="Show every equal-length shortest path"),
    limit: int = typer.Option(16, "--limit", "-l", min=1, help="Maximum paths with --all"),
    as_json: bool = JSON_OPTION,
):
    """Find the shortest connecting path between two individuals."""
    try:
        store, facade = _open(graph)
        snapshot = store.snapshot()
        start_id, end_id = _resolve_id(snapshot, start), _resolve_id(snapshot, end)
        options = _options(kinds, max_depth, timeout, legal_only, min_confidence, limit)
        if show_all:
            paths = asyncio.run(facade.find_paths(start_id, end_id, options))
        else:
            paths = [asyncio.run(facade.find_path(start_id, end_id, options))]
    except KinshipError as e:
        _fail(e)

    if as_json:
        _emit_json([p.to_dict() for p in paths] if show_all else paths[0].to_dict())
        return

    for number, found in enumerate(paths, start=1):
        title = f"Path {number}" if show_all else "Path"
        table = Table(title=f"{title}: {start} → {end} (length {found.length})")
        table.add_column("#", style="dim")
        table.add_column("Individual")
        table.add_column("Edge")
        table.add_column("Direction")
        for index, step in enumerate(found.steps):
            table.add_row(
                str(index),
                str(step.individual_id),
                step.kind.value if step.kind else "",
                step.direction.value if step.direction else "",
            )
        console.print(table)
        for hop in found.describe():
            console.print(f"  • {hop}")


@app.command()
def ancestors(
    id_a: str = typer.Argument(..., help="First individual"),
    id_b: str = typer.Argument(..., help="Second individual"),
    graph: Path = GRAPH_OPTION,
    kinds: list[EdgeKind] = typer.Option(None, "--kind", "-k", help="Allowed parent kind (repeatable)"),
    max_depth: int = typer.Option(None, "--max-depth", min=1, help="Generations walked up"),
    timeout: float = typer.Option(None, "--timeout", min=0.0, help="Timeout in seconds"),
    as_json: bool = JSON_OPTION,
):
    """Show the nearest common ancestors of two individuals."""
    try:
        store, facade = _open(graph)
        snapshot = store.snapshot()
        a, b = _resolve_id(snapshot, id_a), _resolve_id(snapshot, id_b)
        result = asyncio.run(
            facade.find_common_ancestors(a, b, _options(kinds, max_depth, timeout))
        )
    except KinshipError as e:
        _fail(e)

    if as_json:
        _emit_json(result.to_dict())
        return

    table = Table(title=f"Nearest common ancestors of {id_a} and {id_b}")
    table.add_column("Ancestor")
    table.add_column(f"Generations from {id_a}")
    table.add_column(f"Generations from {id_b}")
    for match in result.matches:
        table.add_row(str(match.ancestor_id), str(match.distance_a), str(match.distance_b))
    console.print(table)
    if result.is_ambiguous:
        console.print("[yellow]Ancestors sit at different generation splits[/yellow]")


@app.command()
def classify(
    id_a: str = typer.Argument(..., help="Reference individual"),
    id_b: str = typer.Argument(..., help="Individual to describe"),
    graph: Path = GRAPH_OPTION,
    kinds: list[EdgeKind] = typer.Option(None, "--kind", "-k", help="Allowed parent kind (repeatable)"),
    max_depth: int = typer.Option(None, "--max-depth", min=1, help="Generations walked up"),
    timeout: float = typer.Option(None, "--timeout", min=0.0, help="Timeout in seconds"),
    as_json: bool = JSON_OPTION,
):
    """Name the relationship: what is B to A?"""
    try:
        store, facade = _open(graph)
        snapshot = store.snapshot()
        a, b = _resolve_id(snapshot, id_a), _resolve_id(snapshot, id_b)
        result = asyncio.run(
            facade.classify_relationship(a, b, _options(kinds, max_depth, timeout))
        )
    except KinshipError as e:
        _fail(e)

    if as_json:
        _emit_json(result.to_dict())
        return

    console.print(
        Panel(
            f"[bold]{id_b}[/bold] is [bold]{id_a}[/bold]'s [green]{result.primary.label}[/green]",
            title="Relationship",
        )
    )

    table = Table(title="All relationships" if result.is_ambiguous else "Details")
    table.add_column("Label")
    table.add_column("Generations")
    table.add_column("Common ancestors")
    table.add_column("Coefficient")
    for item in result.results:
        table.add_row(
            item.label,
            f"{item.generations[0]}, {item.generations[1]}",
            ", ".join(str(c) for c in item.common_ancestors),
            f"{item.coefficient_of_relationship:.4f}",
        )
    console.print(table)
    if result.is_ambiguous:
        console.print(f"[yellow]Ambiguous: {len(result.results)} distinct relationships[/yellow]")


@app.command()
def pedigree(
    individual: str = typer.Argument(..., help="Root individual"),
    graph: Path = GRAPH_OPTION,
    generations: int = typer.Option(4, "--generations", "-n", min=1, help="Generations to walk"),
    descendants: bool = typer.Option(False, "--descendants", "-d", help="Walk down instead of up"),
    as_json: bool = JSON_OPTION,
):
    """List ancestors (or descendants) of one individual."""
    try:
        store, facade = _open(graph)
        root = _resolve_id(store.snapshot(), individual)
        if descendants:
            result = asyncio.run(facade.get_descendants(root, generations))
        else:
            result = asyncio.run(facade.get_ancestors(root, generations))
    except KinshipError as e:
        _fail(e)

    if as_json:
        _emit_json(result.model_dump(mode="json"))
        return

    rows = result.descendants if descendants else result.ancestors
    table = Table(title=f"{'Descendants' if descendants else 'Ancestors'} of {individual}")
    table.add_column("Generation")
    table.add_column("Individual")
    table.add_column("Relationship")
    table.add_column("Line through")
    for row in rows:
        table.add_row(
            str(row["generation"]),
            str(row["individual_id"]),
            row["relationship_label"],
            str(row["lineage"]),
        )
    console.print(table)
    console.print(f"[dim]{result.total_persons} individuals, {result.generations_found} generations[/dim]")
    if result.truncated:
        console.print("[yellow]More generations exist beyond --generations[/yellow]")


@app.command()
def stats(
    graph: Path = GRAPH_OPTION,
    as_json: bool = JSON_OPTION,
):
    """Show statistics about a snapshot document."""
    try:
        store = load_file(graph)
    except KinshipError as e:
        _fail(e)

    snapshot = store.snapshot()
    by_kind = Counter(edge.kind.value for edge in snapshot.iter_edges())
    statistics = {
        "individuals": snapshot.individual_count,
        "edges": snapshot.edge_count,
        "edges_by_kind": {kind.value: by_kind.get(kind.value, 0) for kind in EdgeKind},
    }

    if as_json:
        _emit_json(statistics)
        return

    table = Table(title="Graph Statistics")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Individuals", str(statistics["individuals"]))
    table.add_row("Edges", str(statistics["edges"]))
    for kind, count in statistics["edges_by_kind"].items():
        table.add_row(f"  {kind}", str(count))
    console.print(table)


if __name__ == "__main__":
    app()
