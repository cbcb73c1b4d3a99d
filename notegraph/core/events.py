"""Canonical event definitions for the graph engine."""

from __future__ import annotations

from typing import Any, Dict

from .event_bus import EventPayload

# Host-facing
TOPIC_NODE_SELECTED = "node.selected"

# Informational
TOPIC_GRAPH_REBUILT = "graph.rebuilt"
TOPIC_VIEW_UPDATED = "view.updated"
TOPIC_LAYOUT_SETTLED = "layout.settled"


def create_node_selected_event(node_id: str, name: str) -> EventPayload:
    """Create a node selected event (node activated by click/tap)."""
    return {
        "node_id": node_id,
        "name": name,
    }


def create_graph_rebuilt_event(version: int, node_count: int, link_count: int) -> EventPayload:
    """Create a graph rebuilt event (new item snapshot processed)."""
    return {
        "version": version,
        "node_count": node_count,
        "link_count": link_count,
    }


def create_view_updated_event(
    version: int,
    visible_nodes: int,
    visible_links: int,
    filters: Dict[str, Any],
) -> EventPayload:
    """Create a view updated event (visible subset recomputed)."""
    return {
        "version": version,
        "visible_nodes": visible_nodes,
        "visible_links": visible_links,
        "filters": filters,
    }


def create_layout_settled_event(version: int, ticks: int) -> EventPayload:
    """Create a layout settled event (alpha dropped below its minimum)."""
    return {
        "version": version,
        "ticks": ticks,
    }
