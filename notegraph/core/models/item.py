"""
Content Item Model.

Defines the input snapshot the host application hands to the graph engine:
one record per note or folder, with optional parent, tags and raw body.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from notegraph.core.errors import ItemLoadError
from notegraph.utils.logging import get_logger

logger = get_logger("models.item")


class ItemKind(str, Enum):
    """Kind of content item."""
    FILE = "file"
    FOLDER = "folder"


class ContentItem(BaseModel):
    """A note or folder as supplied by the host application.

    Field aliases accept the host's camelCase payloads (``parentId``,
    ``rawBody``/``content``, ``updatedAt``, ``type``).

    Attributes:
        id: Unique identifier
        name: Display name, also the target of ``[[Name]]`` references
        kind: File or folder
        parent_id: Containing folder, if any
        tags: Tag labels attached to the item
        content: Raw body text scanned for references, mentions and hashtags
        updated_at: Last modification time
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1, description="Unique item ID")
    name: str = Field(default="", description="Display name")
    kind: ItemKind = Field(
        default=ItemKind.FILE,
        alias="type",
        description="File or folder",
    )
    parent_id: Optional[str] = Field(
        default=None,
        alias="parentId",
        description="Parent folder ID",
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Tag labels",
    )
    content: Optional[str] = Field(
        default=None,
        alias="rawBody",
        description="Raw body text",
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        alias="updatedAt",
        description="Last modification time",
    )

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        seen: list[str] = []
        for tag in value:
            tag = str(tag).strip().lstrip("#")
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, value: Any) -> Any:
        # Hosts also send "database" and other kinds; they all render as files
        if value is None or str(value).lower() not in {k.value for k in ItemKind}:
            return ItemKind.FILE
        return str(value).lower()

    def __repr__(self) -> str:
        return f"<ContentItem id={self.id} name={self.name!r} kind={self.kind.value}>"


def load_items(records: Iterable[ContentItem | dict[str, Any]]) -> list[ContentItem]:
    """Coerce a snapshot of items, dropping records that fail validation.

    A user's note collection is expected to be partially broken at times, so a
    single bad record is logged and skipped rather than failing the snapshot.
    """
    items: list[ContentItem] = []
    for index, record in enumerate(records):
        if isinstance(record, ContentItem):
            items.append(record)
            continue
        if not isinstance(record, dict):
            logger.warning(f"Skipping item #{index}: expected a mapping, got {type(record).__name__}")
            continue
        try:
            items.append(ContentItem.model_validate(record))
        except ValidationError as e:
            logger.warning(f"Skipping invalid item #{index}: {e.error_count()} validation error(s)")
    return items


def read_items(path: str | Path) -> list[ContentItem]:
    """Read an item snapshot from a JSON or YAML file.

    The file holds either a list of items or a mapping with an ``items``
    (or ``files``) list.

    Raises:
        ItemLoadError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ItemLoadError(f"Cannot read {path}: {e}") from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ItemLoadError(f"Cannot parse {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("items", data.get("files"))
    if not isinstance(data, list):
        raise ItemLoadError(f"{path} does not contain a list of items")

    return load_items(data)
