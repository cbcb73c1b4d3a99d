"""
Graph Model Builder.

Turns a flat snapshot of content items into nodes and weighted links.
Relationship signals:

- ``[[Target]]`` / ``[[Target|alias]]`` cross-references in the body
- ``@target`` mentions in the body
- shared tags, weighted by Jaccard similarity
- folder hierarchy, child -> parent

Candidates for the same unordered pair are merged into a single link.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable

from notegraph.app.config import BuilderConfig
from notegraph.core.models import ContentItem, Graph, Link, LinkKind, Node, load_items
from notegraph.utils.logging import get_logger

logger = get_logger("graph.builder")

REFERENCE_PATTERN = re.compile(r"\[\[([^\[\]]+)\]\]")
MENTION_PATTERN = re.compile(r"(?<![\w@])@([\w-]+)")
HASHTAG_PATTERN = re.compile(r"(?<![\w#&])#(\w[\w/-]*)")


def extract_references(body: str) -> list[str]:
    """Return reference targets in order of appearance.

    ``[[Note|label]]`` resolves to ``Note`` and ``[[Note#Heading]]`` to
    ``Note``.
    """
    targets = []
    for match in REFERENCE_PATTERN.finditer(body):
        target = match.group(1).split("|", 1)[0].split("#", 1)[0].strip()
        if target:
            targets.append(target)
    return targets


def extract_mentions(body: str) -> list[str]:
    """Return ``@mention`` tokens, without the ``@``."""
    return MENTION_PATTERN.findall(body)


def extract_hashtags(body: str) -> list[str]:
    """Return inline ``#tags``, ignoring anything inside ``[[...]]``."""
    return HASHTAG_PATTERN.findall(REFERENCE_PATTERN.sub(" ", body))


def jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    """Jaccard index of two sets, 0 when both are empty."""
    union = len(a | b)
    return len(a & b) / union if union else 0.0


@dataclass
class _MergedLink:
    """Accumulates the candidates seen for one unordered pair."""
    source: str
    target: str
    strength: float
    directions: set[tuple[str, str]] = field(default_factory=set)
    kinds: set[LinkKind] = field(default_factory=set)

    def to_link(self) -> Link:
        bidirectional = (self.target, self.source) in self.directions
        source, target = self.source, self.target
        if bidirectional:
            # Two-way links run from the lower id whatever the input order
            source, target = sorted((source, target))
        return Link(
            source=source,
            target=target,
            strength=self.strength,
            bidirectional=bidirectional,
            kinds=frozenset(self.kinds),
        )


@dataclass
class BuildReport:
    """Counters from the most recent build."""
    items: int = 0
    duplicate_ids: int = 0
    candidates: int = 0
    unresolved_references: int = 0
    links: int = 0


class GraphModelBuilder:
    """Builds a :class:`Graph` from content items.

    Every call to :meth:`build` produces a new graph with a higher
    ``version``; nothing is patched in place.

    Usage:
        builder = GraphModelBuilder()
        graph = builder.build(items)
        graph.nodes["note-1"].connections
    """

    def __init__(self, config: BuilderConfig | None = None):
        self.config = config or BuilderConfig()
        self._version = 0
        self.last_report = BuildReport()

    @property
    def version(self) -> int:
        """Version of the most recently built graph (0 before the first build)."""
        return self._version

    def build(self, items: Iterable[ContentItem | dict[str, Any]]) -> Graph:
        """Build a graph from an item snapshot.

        Args:
            items: Content items, or host payload dicts to validate

        Returns:
            New Graph; empty when there are no items
        """
        self._version += 1
        report = BuildReport()

        unique: dict[str, ContentItem] = {}
        for item in load_items(items):
            if item.id in unique:
                report.duplicate_ids += 1
                logger.warning(f"Duplicate item id {item.id!r}, keeping the first occurrence")
                continue
            unique[item.id] = item
        report.items = len(unique)

        tags = {item_id: self._collect_tags(item) for item_id, item in unique.items()}
        name_index: dict[str, str] = {}
        for item_id, item in unique.items():
            name_index.setdefault(item.name.strip().lower(), item_id)

        candidates: list[tuple[str, str, float, LinkKind]] = []
        candidates.extend(self._reference_candidates(unique, name_index, report))
        if self.config.parse_mentions:
            candidates.extend(self._mention_candidates(unique, name_index))
        if self.config.tag_links:
            candidates.extend(self._tag_candidates(list(unique), tags))
        candidates.extend(self._parent_candidates(unique))
        report.candidates = len(candidates)

        links = self._deduplicate(candidates)
        report.links = len(links)

        degree: dict[str, int] = defaultdict(int)
        for link in links:
            degree[link.source] += 1
            degree[link.target] += 1

        nodes = {
            item_id: Node(
                id=item_id,
                name=item.name,
                kind=item.kind.value,
                tags=tags[item_id],
                connections=degree[item_id],
                size=self._node_size(degree[item_id]),
            )
            for item_id, item in unique.items()
        }

        self.last_report = report
        logger.info(
            f"Built graph v{self._version}: {len(nodes)} nodes, {len(links)} links "
            f"({report.candidates} candidates, {report.unresolved_references} unresolved)"
        )
        return Graph(nodes=nodes, links=tuple(links), version=self._version)

    # ========== Signals ==========

    def _collect_tags(self, item: ContentItem) -> frozenset[str]:
        collected = set(item.tags)
        if self.config.parse_inline_tags and item.content:
            collected.update(extract_hashtags(item.content))
        return frozenset(collected)

    @staticmethod
    def _resolve(target: str, name_index: dict[str, str], known_ids: dict[str, Any]) -> str | None:
        resolved = name_index.get(target.lower())
        if resolved is None and target in known_ids:
            resolved = target
        return resolved

    def _reference_candidates(
        self,
        items: dict[str, ContentItem],
        name_index: dict[str, str],
        report: BuildReport,
    ) -> list[tuple[str, str, float, LinkKind]]:
        found = []
        for item_id, item in items.items():
            if not item.content:
                continue
            for target in extract_references(item.content):
                resolved = self._resolve(target, name_index, items)
                if resolved is None:
                    report.unresolved_references += 1
                    logger.debug(f"Dropping reference {target!r} from {item_id}: no such item")
                    continue
                if resolved != item_id:
                    found.append((item_id, resolved, self.config.reference_strength, LinkKind.REFERENCE))
        return found

    def _mention_candidates(
        self,
        items: dict[str, ContentItem],
        name_index: dict[str, str],
    ) -> list[tuple[str, str, float, LinkKind]]:
        found = []
        for item_id, item in items.items():
            if not item.content:
                continue
            for mention in extract_mentions(item.content):
                resolved = name_index.get(mention.lower())
                if resolved is not None and resolved != item_id:
                    found.append((item_id, resolved, self.config.mention_strength, LinkKind.MENTION))
        return found

    def _tag_candidates(
        self,
        order: list[str],
        tags: dict[str, frozenset[str]],
    ) -> list[tuple[str, str, float, LinkKind]]:
        """Pairs whose tag sets overlap enough, found through an inverted index."""
        position = {item_id: index for index, item_id in enumerate(order)}
        by_tag: dict[str, list[str]] = defaultdict(list)
        for item_id in order:
            for tag in tags[item_id]:
                by_tag[tag].append(item_id)

        found = []
        for item_id in order:
            partners = {
                other
                for tag in tags[item_id]
                for other in by_tag[tag]
                if position[other] > position[item_id]
            }
            for other in sorted(partners, key=position.__getitem__):
                similarity = jaccard(tags[item_id], tags[other])
                if similarity > self.config.tag_similarity_threshold:
                    # Similarity is symmetric, so both directions are present
                    found.append((item_id, other, similarity, LinkKind.TAG))
                    found.append((other, item_id, similarity, LinkKind.TAG))
        return found

    def _parent_candidates(
        self,
        items: dict[str, ContentItem],
    ) -> list[tuple[str, str, float, LinkKind]]:
        found = []
        for item_id, item in items.items():
            parent = item.parent_id
            if not parent or parent == item_id:
                continue
            if parent not in items:
                # Parent outside the snapshot: the item is a root
                logger.debug(f"Parent {parent!r} of {item_id} not present, treating as root")
                continue
            found.append((item_id, parent, self.config.parent_strength, LinkKind.PARENT))
        return found

    # ========== Merging ==========

    @staticmethod
    def _deduplicate(candidates: list[tuple[str, str, float, LinkKind]]) -> list[Link]:
        merged: dict[frozenset[str], _MergedLink] = {}
        for source, target, strength, kind in candidates:
            key = frozenset((source, target))
            entry = merged.get(key)
            if entry is None:
                entry = _MergedLink(source=source, target=target, strength=strength)
                merged[key] = entry
            else:
                entry.strength = max(entry.strength, strength)
            entry.directions.add((source, target))
            entry.kinds.add(kind)
        return [entry.to_link() for entry in merged.values()]

    def _node_size(self, connections: int) -> float:
        cfg = self.config
        size = cfg.base_node_size + connections * cfg.size_per_connection
        return max(cfg.min_node_size, min(cfg.max_node_size, size))
