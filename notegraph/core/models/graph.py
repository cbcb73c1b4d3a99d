"""
Graph Model.

The relationship graph is an arena of nodes addressed by id plus a list of
weighted links. Nodes and links are immutable; every stage (builder,
analytics, layout) produces new instances instead of editing in place, so a
``Graph`` handed out by one component can never change under another.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Iterator, TypeAlias


UNCATEGORIZED_COLOR = "#6b7280"


# ============================================================================
# Pin State
# ============================================================================


@dataclass(frozen=True)
class Free:
    """Node moves under the simulation forces."""


@dataclass(frozen=True)
class Pinned:
    """Node is held at a fixed position until unpinned."""
    x: float
    y: float


@dataclass(frozen=True)
class Dragging:
    """Node follows the pointer while a drag is in progress."""
    x: float
    y: float


PinState: TypeAlias = Free | Pinned | Dragging

FREE = Free()


# ============================================================================
# Nodes and Links
# ============================================================================


class LinkKind(str, Enum):
    """Relationship signal that produced a link."""
    REFERENCE = "reference"  # [[Target]] in the body
    MENTION = "mention"      # @target in the body
    TAG = "tag"              # shared tags
    PARENT = "parent"        # folder hierarchy, child -> parent


@dataclass(frozen=True)
class Vec2:
    """2D vector used for positions and velocities."""
    x: float = 0.0
    y: float = 0.0

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y

    def length(self) -> float:
        return math.hypot(self.x, self.y)


@dataclass(frozen=True)
class Node:
    """A graph vertex representing one content item.

    ``connections``, ``centrality``, ``cluster`` and ``color`` are filled in
    by the builder and analytics passes; ``position``, ``velocity`` and
    ``pin`` belong to the layout simulator.
    """
    id: str
    name: str
    kind: str = "file"
    tags: frozenset[str] = frozenset()
    cluster: str | None = None
    connections: int = 0
    centrality: float = 0.0
    size: float = 10.0
    color: str = UNCATEGORIZED_COLOR
    position: Vec2 = Vec2()
    velocity: Vec2 = Vec2()
    pin: PinState = FREE

    @property
    def is_orphan(self) -> bool:
        return self.connections == 0

    @property
    def is_fixed(self) -> bool:
        """Whether the simulator must skip force integration for this node."""
        return not isinstance(self.pin, Free)


@dataclass(frozen=True)
class Link:
    """A weighted edge between two nodes.

    One-way links point along the relationship. When both directions were
    seen, ``bidirectional`` is set and ``source`` is the lower id.
    """
    source: str
    target: str
    strength: float
    bidirectional: bool = False
    kinds: frozenset[LinkKind] = frozenset()

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.source, self.target))

    def touches(self, node_id: str) -> bool:
        return node_id == self.source or node_id == self.target

    def other(self, node_id: str) -> str:
        """Return the endpoint opposite ``node_id``."""
        return self.target if node_id == self.source else self.source


# ============================================================================
# Graph
# ============================================================================


@dataclass(frozen=True)
class Graph:
    """Nodes keyed by id plus the links between them.

    ``version`` identifies the build the graph came from; derived graphs
    (annotated, laid out, filtered) keep the version of their source.
    """
    nodes: dict[str, Node] = field(default_factory=dict)
    links: tuple[Link, ...] = ()
    version: int = 0

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def link_count(self) -> int:
        return len(self.links)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def get(self, node_id: str) -> Node | None:
        return self.nodes.get(node_id)

    def incident_links(self, node_id: str) -> list[Link]:
        return [link for link in self.links if link.touches(node_id)]

    def with_nodes(self, nodes: Iterable[Node]) -> "Graph":
        """Return a graph with the given nodes replacing those with the same id."""
        updated = dict(self.nodes)
        for node in nodes:
            updated[node.id] = node
        return replace(self, nodes=updated)

    def subgraph(self, node_ids: Iterable[str]) -> "Graph":
        """Restrict the graph to ``node_ids``, keeping links whose endpoints both survive."""
        keep = {node_id for node_id in node_ids if node_id in self.nodes}
        # Preserve build order of nodes
        nodes = {node_id: node for node_id, node in self.nodes.items() if node_id in keep}
        links = tuple(
            link for link in self.links
            if link.source in keep and link.target in keep
        )
        return Graph(nodes=nodes, links=links, version=self.version)
