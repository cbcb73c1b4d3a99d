"""notegraph CLI - inspect the relationship graph of an item snapshot.

Usage:
    python -m notegraph stats ./items.json
    python -m notegraph clusters ./items.yaml
    python -m notegraph communities ./items.json
    python -m notegraph focus ./items.json "Project Plan" --depth 1
    python -m notegraph path ./items.json note-1 note-9
    python -m notegraph layout ./items.json --ticks 300 --output positions.json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from notegraph import __version__
from notegraph.app.config import NoteGraphConfig, set_config
from notegraph.core.errors import NoteGraphError
from notegraph.core.models import ContentItem, Graph, read_items
from notegraph.domain.graph.analytics import GraphAnalytics
from notegraph.domain.graph.builder import GraphModelBuilder
from notegraph.domain.graph.layout import LayoutSimulator
from notegraph.domain.graph.presets import PRESETS, hierarchical_layout
from notegraph.domain.graph.view import FilterState, compute_view, graph_to_dict
from notegraph.utils.logging import setup_logging

app = typer.Typer(
    name="notegraph",
    help="Relationship graph engine for personal knowledge bases",
    add_completion=False,
)

console = Console()

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

ItemsArg = Annotated[Path, typer.Argument(help="JSON or YAML file with the item snapshot")]
ConfigOpt = Annotated[Optional[Path], typer.Option("--config", "-c", help="Configuration file")]
LogLevelOpt = Annotated[str, typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR")]


def _load(items_path: Path, config_path: Path | None, log_level: str) -> tuple[NoteGraphConfig, list[ContentItem], Graph, GraphAnalytics]:
    """Read config and items, then build and annotate the graph."""
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise NoteGraphError(f"Unknown log level {log_level!r}")
    config = NoteGraphConfig.load(config_path)
    set_config(config)
    setup_logging(level=level, file_output=False)

    items = read_items(items_path)
    analytics = GraphAnalytics(config.analytics)
    graph = analytics.annotate(GraphModelBuilder(config.builder).build(items))
    return config, items, graph, analytics


def _resolve_node(graph: Graph, key: str) -> str:
    """Accept a node id or (case-insensitive) name."""
    if key in graph.nodes:
        return key
    lowered = key.lower()
    for node in graph.nodes.values():
        if node.name.lower() == lowered:
            return node.id
    raise NoteGraphError(f"No node with id or name {key!r}")


def _fail(error: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


@app.command("stats")
def stats(
    items: ItemsArg,
    top: Annotated[int, typer.Option("--top", "-t", help="How many top nodes to list")] = 5,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Show graph size, network metrics and the most connected nodes."""
    try:
        _, _, graph, analytics = _load(items, config, log_level)
    except NoteGraphError as e:
        _fail(e)

    summary = analytics.summary()
    metrics = analytics.network_metrics()
    console.print(Panel(
        f"[bold]Nodes:[/bold] {summary['nodes']}\n"
        f"[bold]Links:[/bold] {summary['links']}\n"
        f"[bold]Clusters:[/bold] {summary['clusters']}\n"
        f"[bold]Orphans:[/bold] {summary['orphans']}\n"
        f"[bold]Components:[/bold] {summary['components']}\n"
        f"[bold]Communities:[/bold] {metrics.community_count}\n"
        f"[bold]Density:[/bold] {metrics.density:.3f}\n"
        f"[bold]Avg path length:[/bold] {metrics.average_path_length:.2f}\n"
        f"[bold]Clustering coefficient:[/bold] {metrics.clustering_coefficient:.3f}",
        title=f"Graph v{graph.version}",
        border_style="blue",
    ))

    table = Table(title="Most connected")
    table.add_column("Node")
    table.add_column("Connections", justify="right")
    table.add_column("Centrality", justify="right")
    table.add_column("Cluster")
    for node in analytics.most_connected(top):
        table.add_row(node.name, str(node.connections), f"{node.centrality:.2f}", node.cluster or "-")
    console.print(table)


@app.command("clusters")
def clusters(
    items: ItemsArg,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """List tag clusters with their members."""
    try:
        _, _, graph, analytics = _load(items, config, log_level)
    except NoteGraphError as e:
        _fail(e)

    found = analytics.clusters
    if not found:
        console.print("[yellow]No clusters found[/yellow]")
        return

    table = Table(title=f"Clusters (graph v{graph.version})")
    table.add_column("Cluster")
    table.add_column("Size", justify="right")
    table.add_column("Coherence", justify="right")
    table.add_column("Color")
    table.add_column("Members")
    for cluster in found:
        names = sorted(graph.nodes[member].name for member in cluster.members)
        table.add_row(
            cluster.name,
            str(cluster.size),
            f"{cluster.coherence:.2f}",
            f"[{cluster.color}]{cluster.color}[/]",
            ", ".join(names),
        )
    console.print(table)


@app.command("communities")
def communities(
    items: ItemsArg,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """List link communities found by Louvain modularity."""
    try:
        _, _, graph, analytics = _load(items, config, log_level)
    except NoteGraphError as e:
        _fail(e)

    found = analytics.detect_communities()
    if not found:
        console.print("[yellow]No communities found[/yellow]")
        return

    table = Table(title=f"Communities (graph v{graph.version})")
    table.add_column("Community")
    table.add_column("Size", justify="right")
    table.add_column("Strength", justify="right")
    table.add_column("Members")
    for community in found:
        names = sorted(graph.nodes[member].name for member in community.members)
        table.add_row(
            f"[{community.color}]{community.name}[/]",
            str(community.size),
            f"{community.strength:.2f}",
            ", ".join(names),
        )
    console.print(table)


@app.command("focus")
def focus(
    items: ItemsArg,
    node: Annotated[str, typer.Argument(help="Node id or name to focus on")],
    depth: Annotated[Optional[int], typer.Option("--depth", "-d", help="Hops from the focus node")] = None,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Show the neighbourhood of a node."""
    try:
        cfg, _, graph, analytics = _load(items, config, log_level)
        node_id = _resolve_node(graph, node)
    except NoteGraphError as e:
        _fail(e)

    filters = FilterState(focus=node_id, focus_depth=cfg.view.focus_depth if depth is None else depth)
    view = compute_view(graph, filters, adjacency=analytics.adjacency)

    table = Table(title=f"Focus on {graph.nodes[node_id].name} (depth {filters.focus_depth})")
    table.add_column("Node")
    table.add_column("Id")
    table.add_column("Connections", justify="right")
    for visible in view.graph.nodes.values():
        table.add_row(visible.name, visible.id, str(visible.connections))
    console.print(table)
    console.print(f"{view.graph.node_count} nodes, {view.graph.link_count} links")


@app.command("path")
def path(
    items: ItemsArg,
    source: Annotated[str, typer.Argument(help="Start node id or name")],
    target: Annotated[str, typer.Argument(help="End node id or name")],
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Find the strongest path between two nodes."""
    try:
        _, _, graph, analytics = _load(items, config, log_level)
        source_id = _resolve_node(graph, source)
        target_id = _resolve_node(graph, target)
    except NoteGraphError as e:
        _fail(e)

    result = analytics.shortest_path(source_id, target_id)
    if not result.exists:
        console.print(f"[yellow]No path from {source} to {target}[/yellow]")
        raise typer.Exit(1)

    names = " -> ".join(graph.nodes[node_id].name for node_id in result.path)
    console.print(Panel(
        f"{names}\n\n[bold]Hops:[/bold] {result.edge_count}\n[bold]Distance:[/bold] {result.distance:.3f}",
        title="Shortest path",
        border_style="green",
    ))


@app.command("layout")
def layout(
    items: ItemsArg,
    ticks: Annotated[int, typer.Option("--ticks", help="Maximum simulation ticks")] = 300,
    preset: Annotated[Optional[str], typer.Option("--preset", "-p", help="circular, hierarchical or cluster")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write positions as JSON")] = None,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Run the layout headless and print or save node positions."""
    if preset is not None and preset not in PRESETS:
        _fail(NoteGraphError(f"Unknown preset {preset!r}; choose from {', '.join(sorted(PRESETS))}"))
    try:
        cfg, snapshot, graph, _ = _load(items, config, log_level)
        parents = {item.id: item.parent_id for item in snapshot if item.parent_id}
    except NoteGraphError as e:
        _fail(e)

    simulator = LayoutSimulator(cfg.layout)
    simulator.load(graph)
    if preset == "hierarchical":
        simulator.load(hierarchical_layout(simulator.graph, cfg.layout, parents=parents))
    elif preset is not None:
        simulator.load(PRESETS[preset](simulator.graph, cfg.layout))
    ran = simulator.run(ticks)

    data = graph_to_dict(simulator.graph)
    data["ticks"] = ran
    data["settled"] = simulator.is_settled
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(data, indent=2), encoding="utf-8")
        console.print(f"[green]Wrote {len(data['nodes'])} positions to {output}[/green] ({ran} ticks)")
    else:
        console.print_json(json.dumps(data))


@app.command("version")
def version() -> None:
    """Print the notegraph version."""
    console.print(f"notegraph {__version__}")


# Module entry point
def main() -> None:
    """Entry point for python -m notegraph"""
    app()


if __name__ == "__main__":
    main()
