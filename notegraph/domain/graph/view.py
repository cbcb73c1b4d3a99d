"""
Graph View.

The visible part of the graph is a pure function of the annotated graph,
the active filters and the hover state. Nothing here edits node data;
dimming is returned as per-node and per-link opacity.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from notegraph.core.models import Graph, Link, Node
from notegraph.domain.graph.analytics import Adjacency, bfs_within, build_adjacency
from notegraph.utils.logging import get_logger

logger = get_logger("graph.view")


@dataclass(frozen=True)
class FilterState:
    """Active filters; all of them must pass for a node to be visible."""

    search: str = ""
    tags: frozenset[str] = frozenset()
    clusters: frozenset[str] = frozenset()
    show_orphans: bool = True
    focus: str | None = None
    focus_depth: int = 2

    @property
    def is_active(self) -> bool:
        return bool(
            self.search.strip() or self.tags or self.clusters
            or not self.show_orphans or self.focus is not None
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "search": self.search,
            "tags": sorted(self.tags),
            "clusters": sorted(self.clusters),
            "show_orphans": self.show_orphans,
            "focus": self.focus,
            "focus_depth": self.focus_depth,
        }


@dataclass(frozen=True)
class HoverState:
    node_id: str | None = None


@dataclass(frozen=True)
class GraphView:
    """Read-only presentation of the visible subgraph."""

    graph: Graph
    filters: FilterState = field(default_factory=FilterState)
    hover: HoverState = field(default_factory=HoverState)
    highlighted: frozenset[str] = frozenset()
    focus: str | None = None
    dim_node_opacity: float = 0.3
    dim_link_opacity: float = 0.2

    @property
    def visible_ids(self) -> frozenset[str]:
        return frozenset(self.graph.nodes)

    @property
    def hovering(self) -> bool:
        return bool(self.highlighted)

    def is_visible(self, node_id: str) -> bool:
        return node_id in self.graph.nodes

    def is_dimmed(self, node_id: str) -> bool:
        return self.hovering and node_id not in self.highlighted

    def node_opacity(self, node_id: str) -> float:
        return self.dim_node_opacity if self.is_dimmed(node_id) else 1.0

    def link_opacity(self, link: Link) -> float:
        if not self.hovering or link.touches(self.hover.node_id):
            return 1.0
        return self.dim_link_opacity


def matches_filters(node: Node, filters: FilterState) -> bool:
    """Search, tag, cluster and orphan checks for one node (focus excluded)."""
    query = filters.search.strip().lower()
    if query and query not in node.name.lower():
        return False
    if filters.tags and not (node.tags & filters.tags):
        return False
    if filters.clusters and node.cluster not in filters.clusters:
        return False
    if not filters.show_orphans and node.is_orphan:
        return False
    return True


def compute_view(
    graph: Graph,
    filters: FilterState | None = None,
    hover: HoverState | None = None,
    adjacency: Adjacency | None = None,
    dim_node_opacity: float = 0.3,
    dim_link_opacity: float = 0.2,
) -> GraphView:
    """Apply filters and hover to ``graph``.

    Args:
        graph: Annotated graph
        filters: Active filters (none by default)
        hover: Hovered node, if any
        adjacency: Neighbour index for ``graph``; built when omitted

    Returns:
        GraphView over the visible subgraph
    """
    filters = filters or FilterState()
    hover = hover or HoverState()
    if adjacency is None:
        adjacency = build_adjacency(graph)

    focus = filters.focus
    candidates = graph.nodes.keys()
    if focus is not None:
        if focus in graph.nodes:
            candidates = bfs_within(adjacency, focus, max(filters.focus_depth, 0))
        else:
            logger.debug(f"Focus node {focus!r} not in graph, ignoring focus")
            focus = None

    visible = [
        node_id for node_id in candidates
        if matches_filters(graph.nodes[node_id], filters)
    ]
    view = GraphView(
        graph=graph.subgraph(visible),
        filters=filters,
        focus=focus,
        dim_node_opacity=dim_node_opacity,
        dim_link_opacity=dim_link_opacity,
    )
    return apply_hover(view, hover, adjacency)


def apply_hover(view: GraphView, hover: HoverState, adjacency: Adjacency) -> GraphView:
    """Return ``view`` with the hover overlay for ``hover``.

    Hovering a node that is not visible clears the overlay.
    """
    highlighted: frozenset[str] = frozenset()
    if hover.node_id is not None and hover.node_id in view.graph.nodes:
        highlighted = frozenset({hover.node_id}) | adjacency.get(hover.node_id, frozenset())
    return replace(view, hover=hover, highlighted=highlighted)


def graph_to_dict(graph: Graph, view: GraphView | None = None) -> dict[str, Any]:
    """Serialise a graph (and optionally its view opacities) for renderers."""
    nodes = []
    for node in graph.nodes.values():
        entry = {
            "id": node.id,
            "name": node.name,
            "kind": node.kind,
            "tags": sorted(node.tags),
            "cluster": node.cluster,
            "connections": node.connections,
            "centrality": round(node.centrality, 6),
            "size": node.size,
            "color": node.color,
            "x": node.position.x,
            "y": node.position.y,
            "pinned": node.is_fixed,
        }
        if view is not None:
            entry["opacity"] = view.node_opacity(node.id)
        nodes.append(entry)

    links = []
    for link in graph.links:
        entry = {
            "source": link.source,
            "target": link.target,
            "strength": link.strength,
            "bidirectional": link.bidirectional,
            "kinds": sorted(kind.value for kind in link.kinds),
        }
        if view is not None:
            entry["opacity"] = view.link_opacity(link)
        links.append(entry)

    return {"version": graph.version, "nodes": nodes, "links": links}
