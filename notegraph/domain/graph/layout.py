"""
Force-Directed Layout.

``tick`` is a pure function advancing every node one integration step
under four forces (link springs, charge repulsion, centering and
collision). ``LayoutSimulator`` owns the current graph plus the cooling
schedule (alpha) and exposes play/pause, drag and pin controls.

Forces follow the d3-force model: each force adds to node velocities
scaled by alpha, velocities decay and are clamped, then positions
integrate. Pinned and dragged nodes are held at their pin coordinates.

The step works on numpy arrays. Charge is exact by default; with
``charge_distance_max`` set, only pairs found by a kd-tree radius query
interact. Collision candidates always come from a kd-tree query.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

import numpy as np
from scipy.spatial import cKDTree

from notegraph.app.config import LayoutConfig
from notegraph.core.models import FREE, Dragging, Free, Graph, Node, Pinned, PinState, Vec2
from notegraph.domain.graph.presets import release_all
from notegraph.utils.logging import get_logger

logger = get_logger("graph.layout")

GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))
INITIAL_RADIUS = 10.0
MIN_DISTANCE_SQ = 1.0
JITTER = 1e-3
CHARGE_BLOCK = 512  # rows per block of the exact charge computation


class SimulationState(str, Enum):
    """Simulator lifecycle."""
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"  # terminal, after destroy()


@dataclass(frozen=True)
class ForceParams:
    """Force constants for one tick."""

    link_distance: float = 120.0
    charge_strength: float = 400.0
    charge_distance_max: float | None = None
    centering_strength: float = 0.1
    collision_margin: float = 20.0
    velocity_decay: float = 0.4
    max_velocity: float = 50.0
    center: tuple[float, float] = (400.0, 300.0)

    @classmethod
    def from_config(cls, config: LayoutConfig) -> "ForceParams":
        return cls(
            link_distance=config.link_distance,
            charge_strength=config.charge_strength,
            charge_distance_max=config.charge_distance_max,
            centering_strength=config.centering_strength,
            collision_margin=config.collision_margin,
            velocity_decay=config.velocity_decay,
            max_velocity=config.max_velocity,
            center=config.center,
        )


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def spiral_position(index: int, center: tuple[float, float]) -> Vec2:
    """Deterministic phyllotaxis seed position for the ``index``-th node."""
    radius = INITIAL_RADIUS * math.sqrt(0.5 + index)
    angle = index * GOLDEN_ANGLE
    return Vec2(center[0] + radius * math.cos(angle), center[1] + radius * math.sin(angle))


def pin_coordinates(pin: PinState) -> tuple[float, float] | None:
    match pin:
        case Pinned(x=x, y=y) | Dragging(x=x, y=y):
            return (x, y)
        case Free():
            return None
    return None


def _jitter(seeds: np.ndarray, length: float) -> np.ndarray:
    """Deterministic offsets of ``length`` used to split coincident pairs."""
    angle = seeds * GOLDEN_ANGLE
    return np.column_stack((np.cos(angle), np.sin(angle))) * length


def _apply_links(
    graph: Graph,
    index: dict[str, int],
    pos: np.ndarray,
    vel: np.ndarray,
    alpha: float,
    link_distance: float,
) -> None:
    ends = [
        (index[link.source], index[link.target], link.strength)
        for link in graph.links
        if link.source in index and link.target in index and link.source != link.target
    ]
    if not ends:
        return
    s = np.fromiter((e[0] for e in ends), dtype=np.intp, count=len(ends))
    t = np.fromiter((e[1] for e in ends), dtype=np.intp, count=len(ends))
    strength = np.fromiter((e[2] for e in ends), dtype=float, count=len(ends))

    # Springs are split between endpoints by degree
    degree = np.bincount(np.concatenate((s, t)), minlength=len(pos))
    delta = pos[t] + vel[t] - pos[s] - vel[s]
    distance = np.hypot(delta[:, 0], delta[:, 1])
    short = distance < 1e-6
    delta[short] = (JITTER, 0.0)
    distance[short] = JITTER
    k = (distance - link_distance) / distance * alpha * strength
    delta *= k[:, None]
    bias = (degree[s] / (degree[s] + degree[t]))[:, None]
    np.add.at(vel, t, -delta * bias)
    np.add.at(vel, s, delta * (1.0 - bias))


def _apply_charge(pos: np.ndarray, vel: np.ndarray, strength: float, distance_max: float | None) -> None:
    """Inverse-square repulsion between every pair within ``distance_max``."""
    n = len(pos)
    if n < 2:
        return

    if distance_max is not None:
        pairs = cKDTree(pos).query_pairs(distance_max, output_type="ndarray")
        if not len(pairs):
            return
        i, j = pairs[:, 0], pairs[:, 1]
        delta = pos[j] - pos[i]
        d2 = np.einsum("ij,ij->i", delta, delta)
        coincident = d2 < 1e-12
        if coincident.any():
            delta[coincident] = _jitter(i[coincident] + j[coincident], JITTER)
            d2[coincident] = JITTER * JITTER
        push = delta * (strength / np.maximum(d2, MIN_DISTANCE_SQ))[:, None]
        np.add.at(vel, i, -push)
        np.add.at(vel, j, push)
        return

    # Exact all-pairs, a block of rows at a time to bound memory
    for start in range(0, n, CHARGE_BLOCK):
        rows = np.arange(start, min(start + CHARGE_BLOCK, n))
        dx = pos[None, :, 0] - pos[rows, None, 0]
        dy = pos[None, :, 1] - pos[rows, None, 1]
        d2 = dx * dx + dy * dy
        coincident = d2 < 1e-12
        coincident[np.arange(len(rows)), rows] = False
        if coincident.any():
            r, c = np.nonzero(coincident)
            i = rows[r]
            offset = _jitter(i + c, JITTER) * np.where(c > i, 1.0, -1.0)[:, None]
            dx[r, c] = offset[:, 0]
            dy[r, c] = offset[:, 1]
            d2[r, c] = JITTER * JITTER
        k = strength / np.maximum(d2, MIN_DISTANCE_SQ)
        vel[rows, 0] -= (dx * k).sum(axis=1)
        vel[rows, 1] -= (dy * k).sum(axis=1)


def _apply_collision(pos: np.ndarray, vel: np.ndarray, radius: np.ndarray, fixed: np.ndarray) -> None:
    """Push overlapping discs apart on their predicted positions."""
    if len(pos) < 2:
        return
    reach = 2.0 * float(radius.max())
    if reach <= 0.0:
        return
    predicted = pos + vel
    predicted = np.where(np.isfinite(predicted), predicted, pos)

    pairs = cKDTree(predicted).query_pairs(reach, output_type="ndarray")
    if not len(pairs):
        return
    i, j = pairs[:, 0], pairs[:, 1]
    delta = predicted[j] - predicted[i]
    distance = np.hypot(delta[:, 0], delta[:, 1])
    minimum = radius[i] + radius[j]
    hit = (distance < minimum) & ~(fixed[i] & fixed[j])
    if not hit.any():
        return
    i, j, delta, distance, minimum = i[hit], j[hit], delta[hit], distance[hit], minimum[hit]

    overlap = minimum - distance
    coincident = distance < 1e-6
    if coincident.any():
        delta[coincident] = _jitter(i[coincident] + j[coincident], 1.0)
        distance[coincident] = 1.0
        overlap[coincident] = minimum[coincident]
    unit = delta / distance[:, None]

    # A fixed endpoint does not move, so the free one takes the whole push
    share_i = np.where(fixed[i], 0.0, np.where(fixed[j], 1.0, 0.5))
    share_j = np.where(fixed[j], 0.0, np.where(fixed[i], 1.0, 0.5))
    np.add.at(vel, i, -unit * (overlap * share_i)[:, None])
    np.add.at(vel, j, unit * (overlap * share_j)[:, None])


def tick(graph: Graph, params: ForceParams, alpha: float, dt: float = 1.0) -> Graph:
    """Advance the layout by one step.

    Args:
        graph: Graph with current positions and velocities
        params: Force constants
        alpha: Current simulation heat; scales the link and charge forces
        dt: Integration time step

    Returns:
        New graph with updated positions and velocities
    """
    if graph.is_empty:
        return graph

    ids = list(graph.nodes)
    index = {node_id: i for i, node_id in enumerate(ids)}
    n = len(ids)

    pos = np.empty((n, 2))
    vel = np.zeros((n, 2))
    fixed = np.zeros(n, dtype=bool)
    radius = np.empty(n)

    for i, node_id in enumerate(ids):
        node = graph.nodes[node_id]
        radius[i] = node.size + params.collision_margin
        held = pin_coordinates(node.pin)
        if held is not None:
            pos[i] = held
            fixed[i] = True
            continue
        px, py = node.position
        if not _finite(px, py):
            px, py = spiral_position(i, params.center)
        pos[i] = (px, py)
        nvx, nvy = node.velocity
        if _finite(nvx, nvy):
            vel[i] = (nvx, nvy)

    _apply_links(graph, index, pos, vel, alpha, params.link_distance)
    if params.charge_strength:
        _apply_charge(pos, vel, params.charge_strength * alpha, params.charge_distance_max)
    vel[fixed] = 0.0
    _apply_collision(pos, vel, radius, fixed)

    # Centering: translate the free nodes so the layout mean drifts to the centre
    free = ~fixed
    if params.centering_strength and free.any():
        pos[free] -= (pos.mean(axis=0) - params.center) * params.centering_strength

    # Integrate
    vel *= 1.0 - params.velocity_decay
    vel[~np.isfinite(vel).all(axis=1)] = 0.0
    speed = np.hypot(vel[:, 0], vel[:, 1])
    fast = speed > params.max_velocity
    vel[fast] *= (params.max_velocity / speed[fast])[:, None]
    vel[fixed] = 0.0
    moved = pos + vel * dt
    pos = np.where(np.isfinite(moved).all(axis=1)[:, None], moved, pos)

    nodes = {
        node_id: replace(graph.nodes[node_id], position=Vec2(px, py), velocity=Vec2(vx, vy))
        for node_id, (px, py), (vx, vy) in zip(ids, pos.tolist(), vel.tolist())
    }
    return replace(graph, nodes=nodes)


class LayoutSimulator:
    """Runs the force-directed layout with a cooling schedule.

    Alpha moves toward ``alpha_target`` by ``alpha_decay`` per step. Once
    it drops below ``alpha_min`` the layout is settled and :meth:`step`
    does nothing until something reheats it (drag, reload, reheat).

    Usage:
        simulator = LayoutSimulator(config.layout)
        simulator.load(graph)
        while simulator.step():
            ...
        simulator.positions()
    """

    def __init__(
        self,
        config: LayoutConfig | None = None,
        on_settled: Callable[[int], None] | None = None,
    ):
        self.config = config or LayoutConfig()
        self.params = ForceParams.from_config(self.config)
        self.on_settled = on_settled
        self.state = SimulationState.RUNNING
        self.alpha = 1.0
        self.alpha_target = 0.0
        self._graph = Graph()
        self._ticks = 0

    # ========== State ==========

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def tick_count(self) -> int:
        return self._ticks

    @property
    def is_settled(self) -> bool:
        return self.alpha < self.config.alpha_min

    @property
    def is_running(self) -> bool:
        return self.state is SimulationState.RUNNING

    def play(self) -> None:
        if self.state is SimulationState.PAUSED:
            self.state = SimulationState.RUNNING

    def pause(self) -> None:
        if self.state is SimulationState.RUNNING:
            self.state = SimulationState.PAUSED

    def destroy(self) -> None:
        """Stop for good and drop the graph."""
        self.state = SimulationState.STOPPED
        self._graph = Graph()
        self.on_settled = None

    def reheat(self, alpha: float | None = None) -> None:
        """Raise alpha so a settled layout moves again."""
        target = self.config.reheat_alpha if alpha is None else alpha
        self.alpha = max(self.alpha, min(1.0, target))

    def positions(self) -> dict[str, tuple[float, float]]:
        return {node_id: (node.position.x, node.position.y) for node_id, node in self._graph.nodes.items()}

    # ========== Stepping ==========

    def step(self, dt: float = 1.0) -> bool:
        """Advance one tick; returns False when paused, stopped or settled."""
        if self.state is not SimulationState.RUNNING or self._graph.is_empty or self.is_settled:
            return False

        self.alpha += (self.alpha_target - self.alpha) * self.config.effective_alpha_decay
        self._graph = tick(self._graph, self.params, self.alpha, dt)
        self._ticks += 1

        if self.is_settled:
            logger.debug(f"Layout settled after {self._ticks} ticks")
            if self.on_settled is not None:
                self.on_settled(self._ticks)
        return True

    def run(self, max_ticks: int = 300) -> int:
        """Step until settled or ``max_ticks``; returns the number of ticks run."""
        ran = 0
        while ran < max_ticks and self.step():
            ran += 1
        return ran

    def load(self, graph: Graph, alpha: float = 1.0) -> Graph:
        """Switch to ``graph``, keeping positions and pins of surviving nodes.

        Nodes the caller already pinned keep that pin. New nodes start next
        to a neighbour that already had a position, or on a spiral around
        the centre.

        Returns:
            The seeded graph now owned by the simulator
        """
        if self.state is SimulationState.STOPPED:
            logger.debug("Ignoring load on a destroyed simulator")
            return graph

        previous = self._graph.nodes
        placed: dict[str, Vec2] = {}
        nodes: dict[str, Node] = {}
        fresh: list[str] = []

        for node_id, node in graph.nodes.items():
            if not isinstance(node.pin, Free):
                x, y = pin_coordinates(node.pin)
                nodes[node_id] = replace(node, position=Vec2(x, y), velocity=Vec2())
                placed[node_id] = nodes[node_id].position
            elif node_id in previous and _finite(*previous[node_id].position):
                old = previous[node_id]
                nodes[node_id] = replace(node, position=old.position, velocity=old.velocity, pin=old.pin)
                placed[node_id] = old.position
            else:
                nodes[node_id] = node
                fresh.append(node_id)

        if fresh:
            neighbours: dict[str, list[str]] = {node_id: [] for node_id in fresh}
            for link in graph.links:
                if link.source in neighbours:
                    neighbours[link.source].append(link.target)
                if link.target in neighbours:
                    neighbours[link.target].append(link.source)

            order = {node_id: i for i, node_id in enumerate(graph.nodes)}
            for node_id in fresh:
                i = order[node_id]
                anchor = next((placed[other] for other in neighbours[node_id] if other in placed), None)
                if anchor is not None:
                    angle = i * GOLDEN_ANGLE
                    offset = self.params.link_distance / 2.0
                    position = Vec2(anchor.x + offset * math.cos(angle), anchor.y + offset * math.sin(angle))
                else:
                    position = spiral_position(i, self.params.center)
                nodes[node_id] = replace(nodes[node_id], position=position, velocity=Vec2())

        self._graph = replace(graph, nodes=nodes)
        self.alpha = max(self.alpha, min(1.0, alpha)) if previous else 1.0
        logger.debug(
            f"Loaded graph v{graph.version} into layout: "
            f"{len(nodes) - len(fresh)} kept, {len(fresh)} seeded"
        )
        return self._graph

    # ========== Drag and pin ==========

    def _set_pin(self, node_id: str, pin: PinState) -> bool:
        node = self._graph.get(node_id)
        if node is None:
            return False
        held = pin_coordinates(pin)
        if held is not None:
            node = replace(node, pin=pin, position=Vec2(*held), velocity=Vec2())
        else:
            node = replace(node, pin=pin)
        self._graph = self._graph.with_nodes([node])
        return True

    def drag_start(self, node_id: str, x: float, y: float) -> bool:
        """Grab a node; the layout stays warm while it is held."""
        if not self._set_pin(node_id, Dragging(x, y)):
            return False
        self.alpha_target = self.config.drag_alpha_target
        self.reheat(self.alpha_target)
        return True

    def drag_move(self, node_id: str, x: float, y: float) -> bool:
        node = self._graph.get(node_id)
        if node is None or not isinstance(node.pin, Dragging):
            return False
        return self._set_pin(node_id, Dragging(x, y))

    def drag_end(self, node_id: str, keep_pinned: bool = False) -> bool:
        """Release a dragged node, optionally leaving it pinned where it was dropped."""
        node = self._graph.get(node_id)
        if node is None or not isinstance(node.pin, Dragging):
            return False
        pin = node.pin
        released = self._set_pin(node_id, Pinned(pin.x, pin.y) if keep_pinned else FREE)
        if not any(isinstance(n.pin, Dragging) for n in self._graph.nodes.values()):
            self.alpha_target = 0.0
        return released

    def pin(self, node_id: str, x: float | None = None, y: float | None = None) -> bool:
        """Hold a node at ``(x, y)``, or where it currently is."""
        node = self._graph.get(node_id)
        if node is None:
            return False
        px = node.position.x if x is None else x
        py = node.position.y if y is None else y
        return self._set_pin(node_id, Pinned(px, py))

    def unpin(self, node_id: str) -> bool:
        node = self._graph.get(node_id)
        if node is None or isinstance(node.pin, Free):
            return False
        self._set_pin(node_id, FREE)
        self.reheat()
        return True

    def release_all(self) -> None:
        """Free every pinned or dragged node and let the forces take over."""
        self._graph = release_all(self._graph)
        self.alpha_target = 0.0
        self.reheat(1.0)
