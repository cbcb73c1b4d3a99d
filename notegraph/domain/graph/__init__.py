"""
Graph domain: build, analyse, lay out and interact with the relationship graph.
"""

from notegraph.domain.graph.analytics import (
    CentralityScores,
    Cluster,
    Community,
    GraphAnalytics,
    NetworkMetrics,
    NodeStats,
    PathResult,
)
from notegraph.domain.graph.builder import GraphModelBuilder
from notegraph.domain.graph.interaction import InteractionController
from notegraph.domain.graph.layout import ForceParams, LayoutSimulator, SimulationState, tick
from notegraph.domain.graph.presets import (
    circular_layout,
    cluster_layout,
    hierarchical_layout,
    release_all,
)
from notegraph.domain.graph.view import (
    FilterState,
    GraphView,
    HoverState,
    compute_view,
    graph_to_dict,
)

__all__ = [
    "GraphModelBuilder",
    "GraphAnalytics",
    "Cluster",
    "Community",
    "CentralityScores",
    "NetworkMetrics",
    "NodeStats",
    "PathResult",
    "LayoutSimulator",
    "SimulationState",
    "ForceParams",
    "tick",
    "circular_layout",
    "hierarchical_layout",
    "cluster_layout",
    "release_all",
    "FilterState",
    "HoverState",
    "GraphView",
    "compute_view",
    "graph_to_dict",
    "InteractionController",
]
