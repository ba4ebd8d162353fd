"""CLI entry point for graphweave.

Exit codes: 0 success, 1 validation or consistency check failed, 2 error.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml
from rich import print as rprint
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from graphweave.config import GraphweaveConfig, load_config
from graphweave.config.loader import DEFAULT_CONFIG_TEMPLATE, PROJECT_CONFIG
from graphweave.errors import GraphError
from graphweave.interfaces.domain import ConsistencyResult
from graphweave.interfaces.search import VectorHit
from graphweave.plugins import CapabilityLoader, CapabilityNotFoundError
from graphweave.rag import ContextBundle, KgRagEngine, RagQuery, check_consistency
from graphweave.search import LexicalSearch
from graphweave.store import GraphSnapshot, PropertyGraphStore
from graphweave.traversal import TraversalEngine
from graphweave.validation import StructureSchema, ValidationResult

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_ERROR = 2

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="graphweave",
    help="Property graph engine with KG-augmented retrieval.",
)

config_app = typer.Typer(help="Manage graphweave configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: GraphweaveConfig | None = None
_graph_path: str | None = None


def _get_config() -> GraphweaveConfig:
    if _config is None:
        return load_config()
    return _config


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _configure_logging(cfg: GraphweaveConfig) -> None:
    level = {"warn": "WARNING"}.get(cfg.log_level, cfg.log_level.upper())
    handler = logging.StreamHandler(sys.stderr)
    if cfg.log_format == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to graphweave.yaml")
    ] = None,
    graph: Annotated[
        str | None, typer.Option("--graph", "-g", help="Graph snapshot file (overrides config)")
    ] = None,
) -> None:
    """Global options."""
    global _config, _graph_path
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)
    _graph_path = graph
    _configure_logging(_config)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_graph_path(cfg: GraphweaveConfig) -> Path:
    return Path(_graph_path or cfg.graph.path)


def _load_store(cfg: GraphweaveConfig) -> PropertyGraphStore:
    """Load the graph file, exiting with EXIT_ERROR when it is missing or broken."""
    path = _resolve_graph_path(cfg)
    if not path.exists():
        rprint(f"[red]Error:[/red] graph file not found: {path} (run 'graphweave seed' first)")
        raise typer.Exit(EXIT_ERROR)
    try:
        return PropertyGraphStore.from_snapshot(GraphSnapshot.load(path))
    except (GraphError, ValueError) as e:
        rprint(f"[red]Error:[/red] could not load {path}: {e}")
        raise typer.Exit(EXIT_ERROR)


def _read_snapshot_source(source: Path) -> GraphSnapshot:
    """Read a snapshot from JSON, or from YAML when the suffix says so."""
    text = source.read_text(encoding="utf-8")
    if source.suffix.lower() in (".yaml", ".yml"):
        return GraphSnapshot.from_dict(yaml.safe_load(text) or {})
    return GraphSnapshot.from_json(text)


def _load_capability(cfg: GraphweaveConfig, name: str | None) -> object | None:
    try:
        return CapabilityLoader(cfg).load(name)
    except CapabilityNotFoundError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)


def _display_snapshot(snapshot: GraphSnapshot, title: str) -> None:
    tree = Tree(f"[bold]{title}[/bold] ({len(snapshot.nodes)} nodes, {len(snapshot.edges)} edges)")
    for node in snapshot.nodes:
        branch = tree.add(f"[cyan]{node.id}[/cyan] [dim]{node.label}[/dim]")
        for edge in snapshot.edges:
            if edge.source == node.id:
                branch.add(f"[green]-{edge.label}->[/green] {edge.target}")
    rprint(tree)


def _display_validation(result: ValidationResult) -> None:
    if result.ok:
        rprint("[green]Graph structure is valid.[/green]")
    else:
        table = Table(title=f"Validation Issues ({len(result.issues)})")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Issue", style="red")
        for i, issue in enumerate(result.issues, 1):
            table.add_row(str(i), issue)
        rprint(table)
    for warning in result.warnings:
        rprint(f"[yellow]Warning:[/yellow] {warning}")


def _display_bundle(bundle: ContextBundle) -> None:
    _display_snapshot(bundle.kg_slice, "KG slice")
    table = Table(title=f"Passages ({len(bundle.passages)})")
    table.add_column("ID", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Text")
    for hit in bundle.passages:
        text = hit.text if len(hit.text) <= 80 else hit.text[:77] + "..."
        table.add_row(hit.id, f"{hit.score:.4f}", text)
    rprint(table)
    for note in bundle.notes:
        rprint(f"[yellow]Note:[/yellow] {note}")


class _UnavailableSearch:
    """Stands in when no passages are configured; build_context degrades to KG-only."""

    def search(self, text_query: str, metadata_filter: dict[str, Any], k: int) -> list[VectorHit]:
        raise RuntimeError("no search backend configured")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def seed(
    source: str = typer.Argument(..., help="Snapshot file (JSON or YAML) to load"),
) -> None:
    """Load a snapshot file into a fresh graph and save it to the graph path."""
    cfg = _get_config()
    dest = _resolve_graph_path(cfg)
    try:
        snapshot = _read_snapshot_source(Path(source))
        store = PropertyGraphStore.from_snapshot(snapshot)
        store.snapshot().save(dest)
    except (OSError, GraphError, ValueError, yaml.YAMLError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    rprint(Panel(
        f"[dim]Source:[/dim] {source}\n"
        f"[dim]Graph:[/dim]  {dest}\n"
        f"[dim]Nodes:[/dim]  {store.node_count}\n"
        f"[dim]Edges:[/dim]  {store.edge_count}",
        title="Graph Seeded",
        border_style="green",
    ))


@app.command()
def show() -> None:
    """Summarise the graph: counts per node and edge label."""
    cfg = _get_config()
    store = _load_store(cfg)
    node_labels = Counter(n.label for n in store.nodes())
    edge_labels = Counter(e.label for e in store.edges())

    table = Table(title=f"Graph ({store.node_count} nodes, {store.edge_count} edges)")
    table.add_column("Kind", style="dim")
    table.add_column("Label", style="cyan")
    table.add_column("Count", justify="right")
    for label, count in node_labels.most_common():
        table.add_row("node", label, str(count))
    for label, count in edge_labels.most_common():
        table.add_row("edge", label, str(count))
    rprint(table)


@app.command()
def subgraph(
    seeds: Annotated[list[str], typer.Argument(help="Seed node ids")],
    depth: Annotated[int | None, typer.Option("--depth", "-d", help="Hops to expand")] = None,
    edge_label: Annotated[
        list[str] | None, typer.Option("--edge-label", "-e", help="Edge label to follow (repeatable)")
    ] = None,
    max_nodes: Annotated[int | None, typer.Option("--max-nodes", "-n", help="Node budget")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the slice as JSON")] = False,
) -> None:
    """Extract a bounded subgraph around seed nodes."""
    cfg = _get_config()
    store = _load_store(cfg)
    engine = TraversalEngine(store)
    try:
        snapshot = engine.subgraph(
            seeds,
            depth if depth is not None else cfg.rag.expand_hops,
            edge_label or cfg.rag.allowed_edge_labels,
            max_nodes if max_nodes is not None else cfg.rag.max_kg_nodes,
        )
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    if as_json:
        typer.echo(snapshot.to_json())
    else:
        _display_snapshot(snapshot, "Subgraph")


@app.command()
def path(
    start: str = typer.Argument(..., help="Start node id"),
    goal: str = typer.Argument(..., help="Goal node id"),
    edge_label: Annotated[
        list[str] | None, typer.Option("--edge-label", "-e", help="Edge label to follow (repeatable)")
    ] = None,
    direction: Annotated[str, typer.Option("--direction", help="out, in or both")] = "out",
) -> None:
    """Find the shortest path between two nodes."""
    cfg = _get_config()
    store = _load_store(cfg)
    if direction not in ("in", "out", "both"):
        rprint(f"[red]Error:[/red] invalid direction {direction!r}")
        raise typer.Exit(EXIT_ERROR)
    try:
        hops = TraversalEngine(store).shortest_path(start, goal, edge_label, direction)
    except GraphError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    if not hops:
        rprint(f"[yellow]No path from {start} to {goal}.[/yellow]")
        return
    rprint(" -> ".join(f"[cyan]{h}[/cyan]" for h in hops))


@app.command()
def validate(
    schema: Annotated[
        str | None, typer.Option("--schema", "-s", help="Structure schema (YAML or JSON)")
    ] = None,
    connectivity: Annotated[
        bool | None,
        typer.Option("--connectivity/--no-connectivity", help="Warn about disconnected components"),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the result as JSON")] = False,
) -> None:
    """Validate graph structure. Exits 1 when issues are found."""
    cfg = _get_config()
    store = _load_store(cfg)
    schema_path = schema or cfg.validation.schema_path
    try:
        structure = StructureSchema.load(schema_path) if schema_path else None
    except (OSError, ValueError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    check = connectivity if connectivity is not None else cfg.validation.check_connectivity
    result = store.validate_structure(structure, check_connectivity=check)

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _display_validation(result)

    if not result.ok:
        raise typer.Exit(EXIT_INVALID)


@app.command()
def context(
    query: str = typer.Argument(..., help="Free-text query"),
    seed: Annotated[
        list[str] | None, typer.Option("--seed", help="Seed node id (repeatable)")
    ] = None,
    passages: Annotated[
        str | None, typer.Option("--passages", "-p", help="Passages file (JSON or JSONL)")
    ] = None,
    max_tokens: Annotated[
        int | None, typer.Option("--max-tokens", help="Prompt token budget for passages")
    ] = None,
    capability: Annotated[
        str | None, typer.Option("--capability", help="Capability entry point or module:attr")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the bundle as JSON")] = False,
) -> None:
    """Build a context bundle: KG slice plus ranked passages."""
    cfg = _get_config()
    store = _load_store(cfg)
    cap = _load_capability(cfg, capability)

    passages_path = passages or cfg.search.passages_path
    try:
        backend = LexicalSearch.load(passages_path) if passages_path else _UnavailableSearch()
    except (OSError, ValueError, KeyError) as e:
        rprint(f"[red]Error:[/red] could not load passages: {e}")
        raise typer.Exit(EXIT_ERROR)

    engine = KgRagEngine(store, backend, cfg.effective_rag())
    rag_query = RagQuery(text_query=query, kg_seeds=seed or [], max_prompt_tokens=max_tokens)
    try:
        bundle = asyncio.run(engine.build_context(rag_query, capability=cap))
    except Exception as e:
        rprint(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    if as_json:
        typer.echo(bundle.model_dump_json(indent=2, by_alias=True))
    else:
        _display_bundle(bundle)


@app.command()
def check(
    draft: str = typer.Argument(..., help="Draft text file, or '-' for stdin"),
    capability: Annotated[
        str | None, typer.Option("--capability", help="Capability entry point or module:attr")
    ] = None,
) -> None:
    """Run the capability's consistency check on a draft. Exits 1 when it fails."""
    cfg = _get_config()
    store = _load_store(cfg)
    cap = _load_capability(cfg, capability)
    if cap is None:
        logger.info("No capability configured; consistency check passes by default")

    try:
        text = sys.stdin.read() if draft == "-" else Path(draft).read_text(encoding="utf-8")
        raw = check_consistency(text, cap, store)
        result = raw if isinstance(raw, ConsistencyResult) else ConsistencyResult.model_validate(raw)
    except Exception as e:
        rprint(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    if result.ok:
        rprint("[green]Draft is consistent.[/green]")
        return
    for issue in result.issues:
        rprint(f"[red]-[/red] {issue}")
    raise typer.Exit(EXIT_INVALID)


# ---------------------------------------------------------------------------
# config subcommands
# ---------------------------------------------------------------------------


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a default graphweave.yaml to the current directory."""
    target = PROJECT_CONFIG
    if target.exists() and not force:
        rprint(f"[yellow]{target} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(EXIT_INVALID)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration."""
    cfg = _get_config()
    typer.echo(yaml.safe_dump(cfg.model_dump(), sort_keys=False))


if __name__ == "__main__":
    app()
