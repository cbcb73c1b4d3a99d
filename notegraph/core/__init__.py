"""Core of notegraph: models, event bus and errors."""

from notegraph.core.errors import ConfigError, ItemLoadError, NoteGraphError
from notegraph.core.event_bus import EventBus, EventPayload

__all__ = [
    "EventBus",
    "EventPayload",
    "NoteGraphError",
    "ItemLoadError",
    "ConfigError",
]
