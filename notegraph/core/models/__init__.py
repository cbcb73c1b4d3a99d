"""
Core Models - content items and the relationship graph.
"""

from notegraph.core.models.graph import (
    FREE,
    UNCATEGORIZED_COLOR,
    Dragging,
    Free,
    Graph,
    Link,
    LinkKind,
    Node,
    Pinned,
    PinState,
    Vec2,
)
from notegraph.core.models.item import ContentItem, ItemKind, load_items, read_items

__all__ = [
    "ContentItem",
    "ItemKind",
    "load_items",
    "read_items",
    "Graph",
    "Node",
    "Link",
    "LinkKind",
    "Vec2",
    "PinState",
    "Free",
    "Pinned",
    "Dragging",
    "FREE",
    "UNCATEGORIZED_COLOR",
]
