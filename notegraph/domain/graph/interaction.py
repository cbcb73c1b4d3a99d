"""
Interaction Controller.

Ties the pipeline together for a host application: items go through the
builder and analytics, filters and hover produce the visible view, and
the layout simulator animates whatever is visible. All methods run on the
event loop thread; nothing here blocks or takes locks.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Iterable

from notegraph.app.config import NoteGraphConfig, get_config
from notegraph.core.event_bus import EventBus
from notegraph.core.events import (
    TOPIC_GRAPH_REBUILT,
    TOPIC_LAYOUT_SETTLED,
    TOPIC_NODE_SELECTED,
    TOPIC_VIEW_UPDATED,
    create_graph_rebuilt_event,
    create_layout_settled_event,
    create_node_selected_event,
    create_view_updated_event,
)
from notegraph.core.models import ContentItem, Graph, load_items
from notegraph.domain.graph.analytics import Cluster, GraphAnalytics
from notegraph.domain.graph.builder import GraphModelBuilder
from notegraph.domain.graph.layout import LayoutSimulator
from notegraph.domain.graph.presets import PRESETS, hierarchical_layout
from notegraph.domain.graph.view import (
    FilterState,
    GraphView,
    HoverState,
    apply_hover,
    compute_view,
    graph_to_dict,
)
from notegraph.domain.scheduling import Debouncer, FrameLoop
from notegraph.utils.logging import get_logger, log_operation

logger = get_logger("graph.interaction")


class InteractionController:
    """Filters, focus, hover, selection and drag over a live graph.

    Usage:
        controller = InteractionController(on_select=open_note)
        controller.set_items(items)
        controller.set_search("meeting")
        controller.focus("note-1")
        controller.start()  # inside a running event loop
    """

    def __init__(
        self,
        config: NoteGraphConfig | None = None,
        on_select: Callable[[str], None] | None = None,
        event_bus: EventBus | None = None,
    ):
        self.config = config or get_config()
        self.on_select = on_select
        self.event_bus = event_bus

        self.builder = GraphModelBuilder(self.config.builder)
        self.analytics = GraphAnalytics(self.config.analytics)
        self.simulator = LayoutSimulator(self.config.layout, on_settled=self._on_layout_settled)

        view_config = self.config.view
        self._items: list[ContentItem] = []
        self._graph = Graph()
        self._filters = FilterState(
            show_orphans=view_config.show_orphans,
            focus_depth=view_config.focus_depth,
        )
        self._hover = HoverState()
        self._view = GraphView(graph=Graph())
        self._debouncer = Debouncer(view_config.debounce_ms / 1000.0)
        self._frame_loop: FrameLoop | None = None
        self._in_tick = False
        self._destroyed = False

    # ========== State ==========

    @property
    def graph(self) -> Graph:
        """Annotated graph for the current items (unfiltered)."""
        return self._graph

    @property
    def view(self) -> GraphView:
        return self._view

    @property
    def filters(self) -> FilterState:
        return self._filters

    @property
    def hover(self) -> HoverState:
        return self._hover

    @property
    def clusters(self) -> list[Cluster]:
        return self.analytics.clusters

    @property
    def show_labels(self) -> bool:
        return self.config.view.show_labels

    @property
    def search_pending(self) -> bool:
        return self._debouncer.pending

    def get_connected_nodes(self, node_id: str) -> set[str]:
        if self._destroyed:
            return set()
        return self.analytics.get_connected_nodes(node_id)

    def positions(self) -> dict[str, tuple[float, float]]:
        return self.simulator.positions()

    def snapshot(self) -> dict[str, Any]:
        """Laid-out visible graph with opacities, ready for a renderer."""
        return graph_to_dict(self.simulator.graph, self._view)

    def stats(self) -> dict[str, Any]:
        summary = self.analytics.summary()
        summary.update(
            visible_nodes=self._view.graph.node_count,
            visible_links=self._view.graph.link_count,
            layout=self.simulator.state.value,
            alpha=round(self.simulator.alpha, 4),
            settled=self.simulator.is_settled,
        )
        return summary

    # ========== Items ==========

    def set_items(self, items: Iterable[ContentItem | dict[str, Any]]) -> GraphView:
        """Rebuild the graph from a new item snapshot."""
        if self._destroyed:
            return self._view
        self._items = load_items(items)
        self._graph = self.analytics.annotate(self.builder.build(self._items))
        self._publish(
            TOPIC_GRAPH_REBUILT,
            create_graph_rebuilt_event(self._graph.version, self._graph.node_count, self._graph.link_count),
        )
        return self._refresh(alpha=1.0)

    # ========== Filters ==========

    def set_search(self, text: str) -> None:
        """Update the search text; large graphs recompute after a pause in typing."""
        self._filters = replace(self._filters, search=text)
        if self._graph.node_count >= self.config.view.debounce_threshold:
            self._debouncer.schedule(self._refresh)
        else:
            self._refresh()

    def flush_search(self) -> None:
        self._debouncer.flush()

    def set_tags(self, tags: Iterable[str]) -> GraphView:
        return self._update_filters(tags=frozenset(tags))

    def toggle_tag(self, tag: str) -> GraphView:
        return self._update_filters(tags=self._filters.tags ^ {tag})

    def set_clusters(self, clusters: Iterable[str]) -> GraphView:
        return self._update_filters(clusters=frozenset(clusters))

    def toggle_cluster(self, cluster: str) -> GraphView:
        return self._update_filters(clusters=self._filters.clusters ^ {cluster})

    def set_show_orphans(self, show: bool) -> GraphView:
        return self._update_filters(show_orphans=show)

    def focus(self, node_id: str, depth: int | None = None) -> GraphView:
        """Restrict the view to the neighbourhood of ``node_id``."""
        if depth is None:
            depth = self._filters.focus_depth
        return self._update_filters(focus=node_id, focus_depth=max(depth, 0))

    def clear_focus(self) -> GraphView:
        return self._update_filters(focus=None)

    def clear_filters(self) -> GraphView:
        self._debouncer.cancel()
        self._filters = FilterState(
            show_orphans=self.config.view.show_orphans,
            focus_depth=self.config.view.focus_depth,
        )
        return self._refresh()

    def _update_filters(self, **changes: Any) -> GraphView:
        # A pending debounced search is folded into this refresh
        self._debouncer.cancel()
        self._filters = replace(self._filters, **changes)
        return self._refresh()

    def _refresh(self, alpha: float | None = None) -> GraphView:
        if self._destroyed:
            return self._view
        view_config = self.config.view
        self._view = compute_view(
            self._graph,
            self._filters,
            self._hover,
            adjacency=self.analytics.adjacency,
            dim_node_opacity=view_config.dim_node_opacity,
            dim_link_opacity=view_config.dim_link_opacity,
        )
        self.simulator.load(
            self._view.graph,
            alpha=self.config.layout.reheat_alpha if alpha is None else alpha,
        )
        self._publish(
            TOPIC_VIEW_UPDATED,
            create_view_updated_event(
                self._graph.version,
                self._view.graph.node_count,
                self._view.graph.link_count,
                self._filters.to_dict(),
            ),
        )
        logger.debug(
            f"View v{self._graph.version}: {self._view.graph.node_count}/"
            f"{self._graph.node_count} nodes visible"
        )
        return self._view

    # ========== Hover and selection ==========

    def hover_enter(self, node_id: str) -> GraphView:
        if self._destroyed:
            return self._view
        self._hover = HoverState(node_id)
        self._view = apply_hover(self._view, self._hover, self.analytics.adjacency)
        return self._view

    def hover_leave(self) -> GraphView:
        if self._destroyed:
            return self._view
        self._hover = HoverState()
        self._view = apply_hover(self._view, self._hover, self.analytics.adjacency)
        return self._view

    def select(self, node_id: str) -> bool:
        """Activate a node: notify the host callback and the event bus."""
        if self._destroyed:
            return False
        node = self._graph.get(node_id)
        if node is None:
            logger.debug(f"Ignoring selection of unknown node {node_id!r}")
            return False
        if self.on_select is not None:
            self.on_select(node_id)
        self._publish(TOPIC_NODE_SELECTED, create_node_selected_event(node_id, node.name))
        return True

    # ========== Layout ==========

    def play(self) -> None:
        self.simulator.play()

    def pause(self) -> None:
        self.simulator.pause()

    def drag_start(self, node_id: str, x: float, y: float) -> bool:
        return self.simulator.drag_start(node_id, x, y)

    def drag_move(self, node_id: str, x: float, y: float) -> bool:
        return self.simulator.drag_move(node_id, x, y)

    def drag_end(self, node_id: str, keep_pinned: bool = False) -> bool:
        return self.simulator.drag_end(node_id, keep_pinned=keep_pinned)

    def pin(self, node_id: str, x: float | None = None, y: float | None = None) -> bool:
        return self.simulator.pin(node_id, x, y)

    def unpin(self, node_id: str) -> bool:
        return self.simulator.unpin(node_id)

    def apply_preset(self, name: str) -> Graph:
        """Pin the visible nodes in a preset arrangement.

        Raises:
            ValueError: If ``name`` is not a known preset
        """
        if name not in PRESETS:
            raise ValueError(f"Unknown layout preset {name!r}; choose from {sorted(PRESETS)}")
        current = self.simulator.graph
        if name == "hierarchical":
            parents = {item.id: item.parent_id for item in self._items if item.parent_id}
            arranged = hierarchical_layout(current, self.config.layout, parents=parents)
        else:
            arranged = PRESETS[name](current, self.config.layout)
        log_operation(logger, "Applied layout preset", {"preset": name, "nodes": arranged.node_count})
        return self.simulator.load(arranged)

    def release_layout(self) -> None:
        self.simulator.release_all()

    def tick(self) -> bool:
        """Advance the simulation one frame; never re-enters itself."""
        if self._in_tick or self._destroyed:
            return False
        self._in_tick = True
        try:
            return self.simulator.step()
        finally:
            self._in_tick = False

    def start(self) -> FrameLoop:
        """Drive :meth:`tick` from a frame loop on the running event loop."""
        if self._frame_loop is None:
            self._frame_loop = FrameLoop(self.tick, fps=self.config.layout.fps)
        self._frame_loop.start()
        return self._frame_loop

    async def stop(self) -> None:
        if self._frame_loop is not None:
            await self._frame_loop.stop()

    def destroy(self) -> None:
        """Stop the frame loop, cancel pending work and release indexes."""
        if self._destroyed:
            return
        self._destroyed = True
        if self._frame_loop is not None:
            self._frame_loop.cancel()
            self._frame_loop = None
        self._debouncer.cancel()
        self.analytics.release()
        self.simulator.destroy()
        logger.debug("Interaction controller destroyed")

    # ========== Events ==========

    def _on_layout_settled(self, ticks: int) -> None:
        self._publish(TOPIC_LAYOUT_SETTLED, create_layout_settled_event(self._graph.version, ticks))

    def _publish(self, topic: str, payload: dict[str, Any]) -> None:
        if self.event_bus is not None:
            self.event_bus.publish_nowait(topic, payload)
