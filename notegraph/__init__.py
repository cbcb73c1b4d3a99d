"""notegraph - relationship graph engine for personal knowledge bases."""

__version__ = "1.0.0"

from notegraph.core.event_bus import EventBus
from notegraph.domain.graph import (
    GraphAnalytics,
    GraphModelBuilder,
    InteractionController,
    LayoutSimulator,
)

__all__ = [
    "__version__",
    "EventBus",
    "GraphModelBuilder",
    "GraphAnalytics",
    "LayoutSimulator",
    "InteractionController",
]
