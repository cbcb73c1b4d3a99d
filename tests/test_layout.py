"""Layout Simulator Tests.

Tests for the pure force step, the cooling schedule, drag/pin handling,
warm starts and the preset arrangements.
"""

import math
import random
import time
import unittest
from dataclasses import replace

from notegraph.app.config import LayoutConfig
from notegraph.core.models import FREE, Dragging, Free, Graph, Link, Node, Pinned, Vec2
from notegraph.domain.graph.builder import GraphModelBuilder
from notegraph.domain.graph.layout import (
    ForceParams,
    LayoutSimulator,
    SimulationState,
    tick,
)
from notegraph.domain.graph.presets import (
    circular_layout,
    cluster_layout,
    hierarchical_layout,
    release_all,
)


def make_graph(positions, links=(), version=1):
    nodes = {
        node_id: Node(id=node_id, name=node_id, position=Vec2(x, y))
        for node_id, (x, y) in positions.items()
    }
    return Graph(nodes=nodes, links=tuple(links), version=version)


def distance(graph, a, b):
    pa, pb = graph.nodes[a].position, graph.nodes[b].position
    return math.hypot(pa.x - pb.x, pa.y - pb.y)


class TickTest(unittest.TestCase):
    """Test the pure integration step."""

    def setUp(self) -> None:
        self.params = ForceParams.from_config(LayoutConfig())

    def test_empty_graph_is_noop(self) -> None:
        graph = Graph()

        self.assertIs(tick(graph, self.params, 1.0), graph)

    def test_input_graph_is_not_modified(self) -> None:
        graph = make_graph({"a": (0, 300), "b": (800, 300)}, [Link("a", "b", 1.0)])

        moved = tick(graph, self.params, 1.0)

        self.assertEqual(graph.nodes["a"].position, Vec2(0, 300))
        self.assertNotEqual(moved.nodes["a"].position, Vec2(0, 300))
        self.assertEqual(moved.version, graph.version)

    def test_link_pulls_distant_nodes_together(self) -> None:
        graph = make_graph({"a": (0, 300), "b": (800, 300)}, [Link("a", "b", 1.0)])

        moved = tick(graph, self.params, 1.0)

        self.assertLess(distance(moved, "a", "b"), 800)

    def test_charge_pushes_close_nodes_apart(self) -> None:
        graph = make_graph({"a": (390, 300), "b": (410, 300)})

        moved = tick(graph, self.params, 1.0)

        self.assertGreater(distance(moved, "a", "b"), 20)

    def test_pinned_node_holds_position(self) -> None:
        graph = make_graph({"a": (0, 0), "b": (500, 500)}, [Link("a", "b", 1.0)])
        graph = graph.with_nodes([Node(id="a", name="a", pin=Pinned(100, 100))])

        moved = tick(graph, self.params, 1.0)

        self.assertEqual(moved.nodes["a"].position, Vec2(100, 100))
        self.assertEqual(moved.nodes["a"].velocity, Vec2())

    def test_velocity_is_clamped_and_finite(self) -> None:
        graph = make_graph({"a": (400, 300), "b": (400, 300), "c": (-1e6, 1e6)})
        graph = graph.with_nodes([Node(id="d", name="d", position=Vec2(math.nan, math.nan))])

        moved = tick(graph, self.params, 1.0)

        for node in moved.nodes.values():
            self.assertTrue(math.isfinite(node.position.x))
            self.assertTrue(math.isfinite(node.position.y))
            self.assertLessEqual(node.velocity.length(), self.params.max_velocity + 1e-9)
        self.assertGreater(distance(moved, "a", "b"), 0.0)

    def test_collision_separates_overlapping_nodes(self) -> None:
        params = replace(self.params, charge_strength=0.0)
        graph = make_graph({"a": (400, 300), "b": (405, 300)})

        for _ in range(5):
            graph = tick(graph, params, 1.0)

        minimum = 2 * (graph.nodes["a"].size + params.collision_margin)
        self.assertGreaterEqual(distance(graph, "a", "b"), minimum)

    def test_collision_moves_only_the_free_node(self) -> None:
        params = replace(self.params, charge_strength=0.0, centering_strength=0.0)
        graph = make_graph({"a": (400, 300), "b": (410, 300)})
        graph = graph.with_nodes([Node(id="a", name="a", pin=Pinned(400, 300))])

        moved = tick(graph, params, 1.0)

        self.assertEqual(moved.nodes["a"].position, Vec2(400, 300))
        self.assertAlmostEqual(moved.nodes["b"].position.x, 440.0)

    def test_centering_pulls_layout_mean_to_center(self) -> None:
        params = ForceParams.from_config(LayoutConfig(charge_strength=0.0))
        graph = make_graph({"a": (1000, 1000), "b": (1200, 1000), "c": (1100, 1100)})

        for _ in range(100):
            graph = tick(graph, params, 1.0)

        xs = [node.position.x for node in graph.nodes.values()]
        ys = [node.position.y for node in graph.nodes.values()]
        self.assertAlmostEqual(sum(xs) / len(xs), params.center[0], delta=0.5)
        self.assertAlmostEqual(sum(ys) / len(ys), params.center[1], delta=0.5)

    def test_charge_distance_max_ignores_far_pairs(self) -> None:
        params = replace(self.params, charge_distance_max=100.0, centering_strength=0.0)
        far = make_graph({"a": (0, 300), "b": (500, 300)})

        self.assertEqual(tick(far, params, 1.0).nodes["a"].position, Vec2(0, 300))

        near = make_graph({"a": (390, 300), "b": (410, 300)})
        exact = tick(near, replace(params, charge_distance_max=None), 1.0)
        cut = tick(near, params, 1.0)
        for node_id in ("a", "b"):
            self.assertAlmostEqual(cut.nodes[node_id].position.x, exact.nodes[node_id].position.x)
            self.assertAlmostEqual(cut.nodes[node_id].position.y, exact.nodes[node_id].position.y)

    def test_thousand_node_tick_fits_frame_budget(self) -> None:
        rng = random.Random(7)
        positions = {f"n{i}": (rng.uniform(0, 800), rng.uniform(0, 600)) for i in range(1000)}
        ids = list(positions)
        links = [Link(rng.choice(ids), rng.choice(ids), 0.8) for _ in range(1500)]
        graph = make_graph(positions, links)
        graph = tick(graph, self.params, 1.0)

        timings = []
        for _ in range(3):
            started = time.perf_counter()
            graph = tick(graph, self.params, 0.5)
            timings.append(time.perf_counter() - started)

        self.assertLess(min(timings), 0.1)


class LayoutSimulatorTest(unittest.TestCase):
    """Test LayoutSimulator state handling."""

    def setUp(self) -> None:
        self.settled_at = []
        self.simulator = LayoutSimulator(LayoutConfig(), on_settled=self.settled_at.append)
        self.graph = make_graph(
            {"a": (0, 0), "b": (0, 0), "c": (0, 0)},
            [Link("a", "b", 0.8), Link("b", "c", 0.5)],
        )

    def test_initial_state_running(self) -> None:
        self.assertEqual(self.simulator.state, SimulationState.RUNNING)
        self.assertFalse(self.simulator.step())  # nothing loaded yet

    def test_pause_and_play(self) -> None:
        self.simulator.load(self.graph)

        self.simulator.pause()
        self.assertFalse(self.simulator.step())

        self.simulator.play()
        self.assertTrue(self.simulator.step())
        self.assertEqual(self.simulator.tick_count, 1)

    def test_settles_and_stops_stepping(self) -> None:
        self.simulator.load(self.graph)

        ran = self.simulator.run(1000)

        self.assertTrue(self.simulator.is_settled)
        self.assertLessEqual(ran, 310)
        self.assertFalse(self.simulator.step())
        self.assertEqual(self.settled_at, [ran])

    def test_load_seeds_distinct_positions(self) -> None:
        seeded = self.simulator.load(self.graph)

        positions = {tuple(node.position) for node in seeded.nodes.values()}
        self.assertEqual(len(positions), 3)

    def test_seeding_is_deterministic(self) -> None:
        other = LayoutSimulator(LayoutConfig())

        self.assertEqual(self.simulator.load(self.graph), other.load(self.graph))

    def test_warm_start_keeps_positions(self) -> None:
        self.simulator.load(self.graph)
        self.simulator.run(50)
        before = self.simulator.graph.nodes["a"].position

        grown = make_graph(
            {"a": (0, 0), "b": (0, 0), "c": (0, 0), "d": (0, 0)},
            [Link("a", "b", 0.8), Link("b", "c", 0.5), Link("d", "a", 0.8)],
            version=2,
        )
        loaded = self.simulator.load(grown)

        self.assertEqual(loaded.nodes["a"].position, before)
        self.assertAlmostEqual(distance(loaded, "a", "d"), 60.0)
        self.assertEqual(self.simulator.alpha, 1.0)

    def test_drag_lifecycle(self) -> None:
        self.simulator.load(self.graph)

        self.assertTrue(self.simulator.drag_start("a", 10, 20))
        self.assertEqual(self.simulator.alpha_target, 0.3)
        self.assertTrue(self.simulator.drag_move("a", 30, 40))
        self.simulator.step()
        node = self.simulator.graph.nodes["a"]
        self.assertEqual(node.pin, Dragging(30, 40))
        self.assertEqual(node.position, Vec2(30, 40))

        self.assertTrue(self.simulator.drag_end("a"))
        self.assertIsInstance(self.simulator.graph.nodes["a"].pin, Free)
        self.assertEqual(self.simulator.alpha_target, 0.0)

    def test_drag_end_keep_pinned(self) -> None:
        self.simulator.load(self.graph)
        self.simulator.drag_start("a", 10, 20)

        self.simulator.drag_end("a", keep_pinned=True)

        self.assertEqual(self.simulator.graph.nodes["a"].pin, Pinned(10, 20))

    def test_drag_reheats_settled_layout(self) -> None:
        self.simulator.load(self.graph)
        self.simulator.run(1000)

        self.simulator.drag_start("b", 0, 0)

        self.assertFalse(self.simulator.is_settled)
        self.assertTrue(self.simulator.step())

    def test_drag_requires_known_node_and_active_drag(self) -> None:
        self.simulator.load(self.graph)

        self.assertFalse(self.simulator.drag_start("missing", 0, 0))
        self.assertFalse(self.simulator.drag_move("a", 0, 0))
        self.assertFalse(self.simulator.drag_end("a"))

    def test_pin_and_unpin(self) -> None:
        self.simulator.load(self.graph)

        self.assertTrue(self.simulator.pin("c", 5, 6))
        self.simulator.step()
        self.assertEqual(self.simulator.graph.nodes["c"].position, Vec2(5, 6))

        self.assertTrue(self.simulator.unpin("c"))
        self.assertEqual(self.simulator.graph.nodes["c"].pin, FREE)
        self.assertFalse(self.simulator.unpin("c"))

    def test_pins_survive_reload(self) -> None:
        self.simulator.load(self.graph)
        self.simulator.pin("a", 1, 2)

        reloaded = self.simulator.load(self.graph)

        self.assertEqual(reloaded.nodes["a"].pin, Pinned(1, 2))

    def test_destroy_is_terminal(self) -> None:
        self.simulator.load(self.graph)

        self.simulator.destroy()
        self.simulator.play()

        self.assertEqual(self.simulator.state, SimulationState.STOPPED)
        self.assertFalse(self.simulator.step())
        self.assertTrue(self.simulator.graph.is_empty)


class PresetLayoutTest(unittest.TestCase):
    """Test preset arrangements."""

    def setUp(self) -> None:
        self.config = LayoutConfig()

    def test_circular_pins_on_ring(self) -> None:
        graph = make_graph({name: (0, 0) for name in "abcd"})

        arranged = circular_layout(graph, self.config)

        cx, cy = self.config.center
        for node in arranged.nodes.values():
            self.assertIsInstance(node.pin, Pinned)
            radius = math.hypot(node.position.x - cx, node.position.y - cy)
            self.assertAlmostEqual(radius, 210.0)

    def test_hierarchical_levels(self) -> None:
        graph = GraphModelBuilder().build([
            {"id": "root", "name": "root", "type": "folder"},
            {"id": "c1", "name": "c1", "parentId": "root"},
            {"id": "c2", "name": "c2", "parentId": "root"},
            {"id": "g1", "name": "g1", "parentId": "c1"},
        ])

        arranged = hierarchical_layout(graph, self.config)

        ys = {node_id: node.position.y for node_id, node in arranged.nodes.items()}
        self.assertEqual(ys["root"], 50.0)
        self.assertEqual(ys["c1"], ys["c2"])
        self.assertAlmostEqual(ys["c1"], 250.0)
        self.assertAlmostEqual(ys["g1"], 450.0)
        self.assertEqual(arranged.nodes["root"].position.x, 400.0)

    def test_cluster_layout_groups_members(self) -> None:
        graph = make_graph({name: (0, 0) for name in "abcdef"})
        graph = graph.with_nodes(
            [Node(id=n, name=n, cluster="one") for n in "abc"]
            + [Node(id=n, name=n, cluster="two") for n in "def"]
        )

        arranged = cluster_layout(graph, self.config)

        def centroid(ids):
            xs = [arranged.nodes[i].position.x for i in ids]
            ys = [arranged.nodes[i].position.y for i in ids]
            return sum(xs) / len(xs), sum(ys) / len(ys)

        self.assertNotEqual(centroid("abc"), centroid("def"))
        self.assertTrue(all(isinstance(n.pin, Pinned) for n in arranged.nodes.values()))

    def test_release_all_keeps_positions(self) -> None:
        arranged = circular_layout(make_graph({"a": (0, 0), "b": (0, 0)}), self.config)

        released = release_all(arranged)

        for node_id, node in released.nodes.items():
            self.assertEqual(node.pin, FREE)
            self.assertEqual(node.position, arranged.nodes[node_id].position)

    def test_simulator_preset_then_release(self) -> None:
        simulator = LayoutSimulator(self.config)
        simulator.load(make_graph({"a": (0, 0), "b": (0, 0)}, [Link("a", "b", 1.0)]))
        simulator.load(circular_layout(simulator.graph, self.config))
        self.assertTrue(all(n.is_fixed for n in simulator.graph.nodes.values()))

        simulator.release_all()

        self.assertFalse(any(n.is_fixed for n in simulator.graph.nodes.values()))
        self.assertTrue(simulator.step())


if __name__ == "__main__":
    unittest.main()
