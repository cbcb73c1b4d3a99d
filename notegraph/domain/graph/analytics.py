"""
Graph Analytics.

Derived metrics over a built graph: degree centrality, the adjacency index
behind neighbourhood queries, tag clustering, components and top-K lookups.
Path finding, the heavier centrality measures and Louvain community
detection are delegated to networkx.
"""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

import networkx as nx

from notegraph.app.config import AnalyticsConfig
from notegraph.core.models import UNCATEGORIZED_COLOR, Graph, Node
from notegraph.utils.logging import get_logger

logger = get_logger("graph.analytics")

Adjacency = Mapping[str, frozenset[str]]


@dataclass(frozen=True)
class Cluster:
    """A group of nodes sharing a dominant tag."""

    name: str
    members: frozenset[str]
    coherence: float
    color: str

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class Community:
    """A densely linked group found by modularity optimisation.

    ``strength`` is the share of links touching the community that stay
    inside it.
    """

    name: str
    members: frozenset[str]
    strength: float
    color: str

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass
class CentralityScores:
    """Centrality metrics for nodes."""

    degree: dict[str, float] = field(default_factory=dict)
    betweenness: dict[str, float] = field(default_factory=dict)
    closeness: dict[str, float] = field(default_factory=dict)
    pagerank: dict[str, float] = field(default_factory=dict)
    combined: dict[str, float] = field(default_factory=dict)


@dataclass
class NetworkMetrics:
    """Overall graph metrics."""

    node_count: int = 0
    link_count: int = 0
    density: float = 0.0
    average_path_length: float = 0.0
    clustering_coefficient: float = 0.0
    component_count: int = 0
    isolated_nodes: list[str] = field(default_factory=list)
    central_nodes: list[str] = field(default_factory=list)
    bridge_nodes: list[str] = field(default_factory=list)
    community_count: int = 0


@dataclass
class PathResult:
    """Result of a path finding operation."""

    source: str
    target: str
    path: list[str]
    distance: float
    exists: bool = True

    @property
    def intermediate(self) -> list[str]:
        return self.path[1:-1]

    @property
    def edge_count(self) -> int:
        return max(0, len(self.path) - 1)


@dataclass
class NodeStats:
    """Link counts for one node."""

    node: Node
    connected: set[str]
    incoming: int
    outgoing: int

    @property
    def total(self) -> int:
        return self.incoming + self.outgoing


def build_adjacency(graph: Graph) -> dict[str, frozenset[str]]:
    """Undirected neighbour sets for every node of ``graph``."""
    neighbours: dict[str, set[str]] = {node_id: set() for node_id in graph.nodes}
    for link in graph.links:
        neighbours[link.source].add(link.target)
        neighbours[link.target].add(link.source)
    return {node_id: frozenset(ids) for node_id, ids in neighbours.items()}


def bfs_within(adjacency: Adjacency, start: str, depth: int) -> set[str]:
    """Ids reachable from ``start`` in at most ``depth`` undirected hops.

    Depth 0 is ``{start}``; an id missing from ``adjacency`` yields an
    empty set.
    """
    if start not in adjacency:
        return set()
    seen = {start}
    frontier = deque([(start, 0)])
    while frontier:
        current, distance = frontier.popleft()
        if distance >= depth:
            continue
        for neighbour in adjacency[current]:
            if neighbour not in seen:
                seen.add(neighbour)
                frontier.append((neighbour, distance + 1))
    return seen


class GraphAnalytics:
    """Annotates graphs with metrics and answers structural queries.

    The analytics object tracks one graph at a time; :meth:`annotate`
    switches it to a new graph version and rebuilds the adjacency index.

    Usage:
        analytics = GraphAnalytics()
        graph = analytics.annotate(builder.build(items))
        analytics.get_connected_nodes("note-1")
        analytics.shortest_path("note-1", "note-7")
    """

    def __init__(self, config: AnalyticsConfig | None = None):
        self.config = config or AnalyticsConfig()
        self._graph: Graph | None = None
        self._adjacency: dict[str, frozenset[str]] | None = None
        self._clusters: list[Cluster] = []
        self._nx_graph: nx.DiGraph | None = None
        self._centrality_cache: CentralityScores | None = None
        self._communities: list[Community] | None = None

    @property
    def graph(self) -> Graph:
        """The annotated graph currently tracked (empty before annotate)."""
        return self._graph if self._graph is not None else Graph()

    @property
    def version(self) -> int | None:
        return self._graph.version if self._graph is not None else None

    @property
    def clusters(self) -> list[Cluster]:
        return list(self._clusters)

    @property
    def adjacency(self) -> Adjacency:
        if self._adjacency is None:
            self._adjacency = build_adjacency(self.graph)
        return self._adjacency

    def annotate(self, graph: Graph) -> Graph:
        """Return ``graph`` with connections, centrality, cluster and colour filled in.

        Args:
            graph: Graph produced by the builder

        Returns:
            New graph with the same version
        """
        degree = Counter()
        for link in graph.links:
            degree[link.source] += 1
            degree[link.target] += 1

        centrality = self.degree_centrality(graph, degree)
        clusters = self.compute_clusters(graph)
        membership = {
            member: cluster
            for cluster in clusters
            for member in cluster.members
        }

        nodes = {}
        for node_id, node in graph.nodes.items():
            cluster = membership.get(node_id)
            nodes[node_id] = replace(
                node,
                connections=degree[node_id],
                centrality=centrality[node_id],
                cluster=cluster.name if cluster else None,
                color=cluster.color if cluster else UNCATEGORIZED_COLOR,
            )

        annotated = replace(graph, nodes=nodes)
        self._graph = annotated
        self._clusters = clusters
        self._adjacency = build_adjacency(annotated)
        self._nx_graph = None
        self._centrality_cache = None
        self._communities = None

        logger.debug(
            f"Annotated graph v{graph.version}: {len(clusters)} clusters, "
            f"{sum(1 for n in nodes.values() if n.is_orphan)} orphans"
        )
        return annotated

    def release(self) -> None:
        """Drop the adjacency index and cached networkx graph."""
        self._adjacency = None
        self._nx_graph = None
        self._centrality_cache = None
        self._communities = None

    # ========== Degree ==========

    @staticmethod
    def degree_centrality(graph: Graph, degree: Mapping[str, int] | None = None) -> dict[str, float]:
        """Normalised degree: ``connections / max(connections)``.

        All zeros when there are no links (which includes single-node graphs).
        """
        if degree is None:
            degree = {node_id: node.connections for node_id, node in graph.nodes.items()}
        highest = max((degree.get(node_id, 0) for node_id in graph.nodes), default=0)
        if highest == 0:
            return {node_id: 0.0 for node_id in graph.nodes}
        return {node_id: degree.get(node_id, 0) / highest for node_id in graph.nodes}

    def get_connected_nodes(self, node_id: str) -> set[str]:
        """Ids with a direct link to or from ``node_id`` (empty if unknown)."""
        return set(self.adjacency.get(node_id, frozenset()))

    def neighbourhood(self, node_id: str, depth: int) -> set[str]:
        return bfs_within(self.adjacency, node_id, depth)

    # ========== Clustering ==========

    def compute_clusters(self, graph: Graph) -> list[Cluster]:
        """Group nodes by their most frequent shared tag.

        Tags are visited by global frequency, then name; each tag claims
        the nodes that are not yet in a cluster. Groups smaller than
        ``min_cluster_size`` are discarded and their nodes stay free.
        """
        frequency = Counter(tag for node in graph.nodes.values() for tag in node.tags)
        ranked = sorted(frequency, key=lambda tag: (-frequency[tag], tag))

        palette = self.config.cluster_palette or [UNCATEGORIZED_COLOR]
        assigned: set[str] = set()
        clusters: list[Cluster] = []
        for tag in ranked:
            members = [
                node_id for node_id, node in graph.nodes.items()
                if node_id not in assigned and tag in node.tags
            ]
            if len(members) < self.config.min_cluster_size:
                continue
            assigned.update(members)
            clusters.append(Cluster(
                name=tag,
                members=frozenset(members),
                coherence=min(len(members) / self.config.coherence_scale, 1.0),
                color=palette[len(clusters) % len(palette)],
            ))
        return clusters

    def cluster_of(self, node_id: str) -> Cluster | None:
        for cluster in self._clusters:
            if node_id in cluster.members:
                return cluster
        return None

    # ========== Top-K ==========

    def most_connected(self, k: int = 10) -> list[Node]:
        ranked = sorted(self.graph.nodes.values(), key=lambda n: (-n.connections, n.id))
        return ranked[:max(k, 0)]

    def most_central(self, k: int = 10) -> list[Node]:
        ranked = sorted(self.graph.nodes.values(), key=lambda n: (-n.centrality, n.id))
        return ranked[:max(k, 0)]

    def orphans(self) -> list[Node]:
        return [node for node in self.graph.nodes.values() if node.is_orphan]

    def connected_components(self) -> list[set[str]]:
        """Undirected components, largest first (ties keep build order)."""
        adjacency = self.adjacency
        seen: set[str] = set()
        components = []
        for node_id in self.graph.nodes:
            if node_id in seen:
                continue
            component = bfs_within(adjacency, node_id, len(adjacency))
            seen |= component
            components.append(component)
        components.sort(key=len, reverse=True)
        return components

    # ========== networkx ==========

    def to_networkx(self) -> nx.DiGraph:
        """Directed networkx view of the graph, weighted by ``1 / strength``.

        Bidirectional links become a pair of opposing edges.
        """
        if self._nx_graph is not None:
            return self._nx_graph

        G = nx.DiGraph()
        for node_id, node in self.graph.nodes.items():
            G.add_node(node_id, name=node.name, cluster=node.cluster)
        for link in self.graph.links:
            weight = 1.0 / link.strength if link.strength > 0 else float("inf")
            G.add_edge(link.source, link.target, weight=weight, strength=link.strength)
            if link.bidirectional:
                G.add_edge(link.target, link.source, weight=weight, strength=link.strength)

        self._nx_graph = G
        return G

    def shortest_path(self, source: str, target: str) -> PathResult:
        """Find the strongest (lowest ``1 / strength``) path between two nodes.

        Args:
            source: Source node ID
            target: Target node ID

        Returns:
            PathResult with path information
        """
        G = self.to_networkx()

        if source not in G or target not in G:
            return PathResult(source=source, target=target, path=[], distance=0.0, exists=False)

        try:
            distance, path = nx.single_source_dijkstra(G, source, target, weight="weight")
        except nx.NetworkXNoPath:
            return PathResult(source=source, target=target, path=[], distance=0.0, exists=False)

        return PathResult(source=source, target=target, path=list(path), distance=float(distance))

    def centrality_scores(self, force: bool = False) -> CentralityScores:
        """Compute betweenness, closeness, pagerank and the combined score.

        Args:
            force: Force recomputation even if cached

        Returns:
            CentralityScores with all measures
        """
        if self._centrality_cache and not force:
            return self._centrality_cache

        G = self.to_networkx()
        scores = CentralityScores(
            degree={node_id: node.centrality for node_id, node in self.graph.nodes.items()},
        )
        if G.number_of_nodes() == 0:
            self._centrality_cache = scores
            return scores

        try:
            scores.betweenness = dict(nx.betweenness_centrality(G, weight="weight"))
        except nx.NetworkXException as e:
            logger.warning(f"Betweenness centrality failed: {e}")

        try:
            scores.closeness = dict(nx.closeness_centrality(G, distance="weight"))
        except nx.NetworkXException as e:
            logger.warning(f"Closeness centrality failed: {e}")

        try:
            scores.pagerank = dict(nx.pagerank(G, weight="strength"))
        except nx.NetworkXException as e:
            logger.warning(f"PageRank failed: {e}")

        max_closeness = max(scores.closeness.values(), default=0.0)
        max_pagerank = max(scores.pagerank.values(), default=0.0)
        for node_id in G.nodes:
            betweenness = scores.betweenness.get(node_id, 0.0)
            closeness = scores.closeness.get(node_id, 0.0) / max_closeness if max_closeness else 0.0
            pagerank = scores.pagerank.get(node_id, 0.0) / max_pagerank if max_pagerank else 0.0
            scores.combined[node_id] = 0.4 * betweenness + 0.3 * closeness + 0.3 * pagerank

        self._centrality_cache = scores
        return scores

    def network_metrics(self) -> NetworkMetrics:
        """Compute overall graph metrics.

        Returns:
            NetworkMetrics with statistics
        """
        G = self.to_networkx()
        n = G.number_of_nodes()
        if n == 0:
            return NetworkMetrics()

        U = G.to_undirected()
        metrics = NetworkMetrics(
            node_count=n,
            link_count=len(self.graph.links),
            density=nx.density(U),
            clustering_coefficient=nx.average_clustering(U),
            component_count=nx.number_connected_components(U),
            isolated_nodes=sorted(nx.isolates(U)),
        )

        # Average over reachable ordered pairs, unweighted hops
        total, pairs = 0, 0
        for _, lengths in nx.all_pairs_shortest_path_length(U):
            for hops in lengths.values():
                if hops > 0:
                    total += hops
                    pairs += 1
        metrics.average_path_length = total / pairs if pairs else 0.0

        scores = self.centrality_scores()
        by_combined = sorted(scores.combined, key=lambda node_id: (-scores.combined[node_id], node_id))
        metrics.central_nodes = by_combined[:max(1, n // 10)]
        by_betweenness = sorted(
            (node_id for node_id, value in scores.betweenness.items() if value > 0),
            key=lambda node_id: (-scores.betweenness[node_id], node_id),
        )
        metrics.bridge_nodes = by_betweenness[:max(1, n // 20)]
        metrics.community_count = len(self.detect_communities())
        return metrics

    def detect_communities(self) -> list[Community]:
        """Louvain communities over the undirected graph, largest first.

        The seed comes from ``AnalyticsConfig.community_seed`` so repeated
        calls on the same graph agree. Single-node groups are dropped.
        """
        if self._communities is not None:
            return list(self._communities)

        G = self.to_networkx()
        if G.number_of_edges() == 0:
            self._communities = []
            return []

        try:
            groups = nx.community.louvain_communities(
                G.to_undirected(),
                weight="strength",
                seed=self.config.community_seed,
            )
        except nx.NetworkXException as e:
            logger.warning(f"Community detection failed: {e}")
            return []

        groups = sorted((g for g in groups if len(g) > 1), key=lambda g: (-len(g), min(g)))
        palette = self.config.cluster_palette or [UNCATEGORIZED_COLOR]
        communities = []
        for rank, members in enumerate(groups):
            internal = touching = 0
            for link in self.graph.links:
                inside = (link.source in members) + (link.target in members)
                if inside:
                    touching += 1
                    internal += inside == 2
            communities.append(Community(
                name=f"community-{rank}",
                members=frozenset(members),
                strength=internal / touching if touching else 0.0,
                color=palette[rank % len(palette)],
            ))

        self._communities = communities
        logger.debug(f"Detected {len(communities)} communities in graph v{self.graph.version}")
        return list(communities)

    def community_of(self, node_id: str) -> Community | None:
        for community in self.detect_communities():
            if node_id in community.members:
                return community
        return None

    def node_stats(self, node_id: str) -> NodeStats | None:
        """Incoming/outgoing link counts for ``node_id`` (None if unknown)."""
        node = self.graph.get(node_id)
        if node is None:
            return None
        incoming = outgoing = 0
        for link in self.graph.incident_links(node_id):
            if link.bidirectional:
                incoming += 1
                outgoing += 1
            elif link.source == node_id:
                outgoing += 1
            else:
                incoming += 1
        return NodeStats(
            node=node,
            connected=self.get_connected_nodes(node_id),
            incoming=incoming,
            outgoing=outgoing,
        )

    def summary(self) -> dict[str, Any]:
        """Counts for CLI output and host dashboards."""
        graph = self.graph
        return {
            "version": graph.version,
            "nodes": graph.node_count,
            "links": graph.link_count,
            "clusters": len(self._clusters),
            "orphans": len(self.orphans()),
            "components": len(self.connected_components()),
        }
