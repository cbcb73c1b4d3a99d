"""
Preset layouts.

Static arrangements that pin every node: a circle, parent/child levels and
a grid of clusters. Load the result into the simulator to display it, and
:func:`release_all` to hand the nodes back to the forces.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Callable, Mapping

from notegraph.app.config import LayoutConfig
from notegraph.core.models import FREE, Graph, LinkKind, Pinned, Vec2

CLUSTER_RING_MAX = 80.0
LEVEL_TOP_MARGIN = 50.0


def _pin_all(graph: Graph, positions: Mapping[str, tuple[float, float]]) -> Graph:
    nodes = {}
    for node_id, node in graph.nodes.items():
        x, y = positions.get(node_id, tuple(node.position))
        nodes[node_id] = replace(node, pin=Pinned(x, y), position=Vec2(x, y), velocity=Vec2())
    return replace(graph, nodes=nodes)


def circular_layout(graph: Graph, config: LayoutConfig | None = None) -> Graph:
    """Nodes evenly spaced on a circle around the centre."""
    config = config or LayoutConfig()
    cx, cy = config.center
    radius = min(config.width, config.height) * 0.35
    count = max(len(graph.nodes), 1)
    positions = {}
    for index, node_id in enumerate(graph.nodes):
        angle = 2 * math.pi * index / count
        positions[node_id] = (cx + radius * math.cos(angle), cy + radius * math.sin(angle))
    return _pin_all(graph, positions)


def parents_from_links(graph: Graph) -> dict[str, str]:
    """child -> parent map read from parent links (source is the child)."""
    return {
        link.source: link.target
        for link in graph.links
        if LinkKind.PARENT in link.kinds
    }


def hierarchical_layout(
    graph: Graph,
    config: LayoutConfig | None = None,
    parents: Mapping[str, str] | None = None,
) -> Graph:
    """Folder tree laid out top-down, one row per depth.

    Args:
        graph: Graph to arrange
        config: Viewport size
        parents: child -> parent ids; read from parent links when omitted
    """
    config = config or LayoutConfig()
    if parents is None:
        parents = parents_from_links(graph)

    children: dict[str, list[str]] = {}
    for node_id in graph.nodes:
        parent = parents.get(node_id)
        if parent in graph.nodes and parent != node_id:
            children.setdefault(parent, []).append(node_id)

    levels: dict[int, list[str]] = {}
    visited: set[str] = set()

    def place(node_id: str, level: int) -> None:
        stack = [(node_id, level)]
        while stack:
            current, depth = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            levels.setdefault(depth, []).append(current)
            for child in reversed(children.get(current, [])):
                stack.append((child, depth + 1))

    for node_id in graph.nodes:
        if parents.get(node_id) not in graph.nodes:
            place(node_id, 0)
    # Nodes caught in a parent cycle have no root; start them at the top
    for node_id in graph.nodes:
        if node_id not in visited:
            place(node_id, 0)

    depth = max(levels, default=0)
    level_height = config.height / (depth + 1)
    positions = {}
    for level, members in levels.items():
        spacing = config.width / (len(members) + 1)
        for index, node_id in enumerate(members):
            positions[node_id] = (spacing * (index + 1), level_height * level + LEVEL_TOP_MARGIN)
    return _pin_all(graph, positions)


def cluster_layout(graph: Graph, config: LayoutConfig | None = None) -> Graph:
    """Clusters on a grid, members on a ring around their cell centre.

    Unclustered nodes share the last cell.
    """
    config = config or LayoutConfig()
    groups: dict[str | None, list[str]] = {}
    for node_id, node in graph.nodes.items():
        groups.setdefault(node.cluster, []).append(node_id)
    ordered = [key for key in groups if key is not None]
    if None in groups:
        ordered.append(None)
    if not ordered:
        return graph

    grid = math.ceil(math.sqrt(len(ordered)))
    cell_width = config.width / grid
    cell_height = config.height / grid
    positions = {}
    for index, key in enumerate(ordered):
        row, col = divmod(index, grid)
        cx = cell_width * (col + 0.5)
        cy = cell_height * (row + 0.5)
        members = groups[key]
        ring = min(CLUSTER_RING_MAX, math.sqrt(len(members)) * 20)
        for slot, node_id in enumerate(members):
            angle = 2 * math.pi * slot / len(members)
            positions[node_id] = (cx + ring * math.cos(angle), cy + ring * math.sin(angle))
    return _pin_all(graph, positions)


def release_all(graph: Graph) -> Graph:
    """Free every node, keeping its current position."""
    nodes = {node_id: replace(node, pin=FREE) for node_id, node in graph.nodes.items()}
    return replace(graph, nodes=nodes)


PRESETS: dict[str, Callable[..., Graph]] = {
    "circular": circular_layout,
    "hierarchical": hierarchical_layout,
    "cluster": cluster_layout,
}
