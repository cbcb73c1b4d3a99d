"""Content Item Tests.

Tests for validating host payloads and reading item snapshots from disk.
"""

import json
import tempfile
import unittest
from pathlib import Path

import yaml

from notegraph.core.errors import ItemLoadError
from notegraph.core.models import ContentItem, ItemKind, load_items, read_items


class ContentItemTest(unittest.TestCase):
    """Test ContentItem validation."""

    def test_camel_case_aliases(self) -> None:
        item = ContentItem.model_validate({
            "id": "n1",
            "name": "Plan",
            "type": "folder",
            "parentId": "root",
            "rawBody": "See [[Other]]",
            "updatedAt": "2024-05-01T10:00:00Z",
        })

        self.assertEqual(item.kind, ItemKind.FOLDER)
        self.assertEqual(item.parent_id, "root")
        self.assertEqual(item.content, "See [[Other]]")
        self.assertIsNotNone(item.updated_at)

    def test_field_names_accepted(self) -> None:
        item = ContentItem(id="n1", name="Plan", content="body", parent_id="p")

        self.assertEqual(item.content, "body")
        self.assertEqual(item.parent_id, "p")
        self.assertEqual(item.kind, ItemKind.FILE)

    def test_tags_are_normalized(self) -> None:
        item = ContentItem(id="n1", name="Plan", tags=["#work", " work ", "idea", ""])

        self.assertEqual(item.tags, ["work", "idea"])

    def test_unknown_kind_becomes_file(self) -> None:
        item = ContentItem.model_validate({"id": "n1", "name": "DB", "type": "database"})

        self.assertEqual(item.kind, ItemKind.FILE)

    def test_unknown_keys_ignored(self) -> None:
        item = ContentItem.model_validate({"id": "n1", "name": "Plan", "color": "red"})

        self.assertFalse(hasattr(item, "color"))


class LoadItemsTest(unittest.TestCase):
    """Test snapshot coercion and file loading."""

    def test_invalid_records_are_skipped(self) -> None:
        items = load_items([
            {"id": "a", "name": "A"},
            {"name": "no id"},
            "not a mapping",
            {"id": "", "name": "empty id"},
            ContentItem(id="b", name="B"),
        ])

        self.assertEqual([item.id for item in items], ["a", "b"])

    def test_read_json_list(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "items.json"
            path.write_text(json.dumps([{"id": "a", "name": "A"}]), encoding="utf-8")

            items = read_items(path)

        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].name, "A")

    def test_read_yaml_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "items.yaml"
            path.write_text(
                yaml.safe_dump({"items": [{"id": "a", "name": "A", "tags": ["x"]}]}),
                encoding="utf-8",
            )

            items = read_items(path)

        self.assertEqual(items[0].tags, ["x"])

    def test_missing_file_raises(self) -> None:
        with self.assertRaises(ItemLoadError):
            read_items("/nonexistent/items.json")

    def test_malformed_json_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "items.json"
            path.write_text("{not json", encoding="utf-8")

            with self.assertRaises(ItemLoadError):
                read_items(path)

    def test_non_list_payload_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "items.json"
            path.write_text(json.dumps({"count": 3}), encoding="utf-8")

            with self.assertRaises(ItemLoadError):
                read_items(path)


if __name__ == "__main__":
    unittest.main()
