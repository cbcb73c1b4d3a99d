"""CLI Tests.

Runs the typer commands against a small item snapshot on disk.
"""

import json
import logging
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from notegraph import __version__
from notegraph.app.cli import app


ITEMS = [
    {"id": "a", "name": "Alpha", "content": "[[Beta]]", "tags": ["proj"]},
    {"id": "b", "name": "Beta", "content": "[[Gamma]]", "tags": ["proj"]},
    {"id": "c", "name": "Gamma", "tags": ["proj"]},
    {"id": "d", "name": "Delta", "tags": ["misc"]},
]


class CliTest(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.items = self.root / "items.json"
        self.items.write_text(json.dumps(ITEMS), encoding="utf-8")

    def tearDown(self) -> None:
        self._tmp.cleanup()
        root_logger = logging.getLogger("notegraph")
        root_logger.handlers = []
        root_logger.propagate = True

    def invoke(self, *args: str):
        return self.runner.invoke(app, [str(arg) for arg in args])

    def test_stats(self) -> None:
        result = self.invoke("stats", self.items)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Nodes: 4", result.output)
        self.assertIn("Clusters: 1", result.output)
        self.assertIn("Most connected", result.output)

    def test_clusters(self) -> None:
        result = self.invoke("clusters", self.items)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("proj", result.output)

    def test_no_clusters(self) -> None:
        self.items.write_text(json.dumps(ITEMS[:1]), encoding="utf-8")

        result = self.invoke("clusters", self.items)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("No clusters found", result.output)

    def test_communities(self) -> None:
        result = self.invoke("communities", self.items)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("community-0", result.output)
        self.assertIn("Alpha, Beta, Gamma", result.output)
        self.assertNotIn("community-1", result.output)

    def test_no_communities(self) -> None:
        self.items.write_text(json.dumps(ITEMS[-1:]), encoding="utf-8")

        result = self.invoke("communities", self.items)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("No communities found", result.output)

    def test_focus_by_name(self) -> None:
        result = self.invoke("focus", self.items, "delta", "--depth", "1")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("1 nodes, 0 links", result.output)

    def test_focus_unknown_node(self) -> None:
        result = self.invoke("focus", self.items, "Nowhere")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error", result.output)

    def test_path(self) -> None:
        result = self.invoke("path", self.items, "a", "Beta")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Alpha -> Beta", result.output)
        self.assertIn("Hops: 1", result.output)

    def test_no_path(self) -> None:
        result = self.invoke("path", self.items, "Alpha", "Delta")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("No path from", result.output)

    def test_layout_writes_positions(self) -> None:
        output = self.root / "out" / "positions.json"

        result = self.invoke("layout", self.items, "--ticks", "50", "--output", output)

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(output.read_text(encoding="utf-8"))
        self.assertEqual({node["id"] for node in data["nodes"]}, {"a", "b", "c", "d"})
        self.assertEqual(data["ticks"], 50)
        self.assertFalse(data["settled"])

    def test_layout_with_preset(self) -> None:
        output = self.root / "circle.json"

        result = self.invoke("layout", self.items, "--preset", "circular", "--output", output)

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(output.read_text(encoding="utf-8"))
        self.assertTrue(all(node["pinned"] for node in data["nodes"]))

    def test_layout_unknown_preset(self) -> None:
        result = self.invoke("layout", self.items, "--preset", "spiral")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Unknown preset", result.output)

    def test_missing_items_file(self) -> None:
        result = self.invoke("stats", self.root / "absent.json")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error", result.output)

    def test_bad_log_level(self) -> None:
        result = self.invoke("stats", self.items, "--log-level", "LOUD")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Unknown log level", result.output)

    def test_version(self) -> None:
        result = self.invoke("version")

        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)


if __name__ == "__main__":
    unittest.main()
