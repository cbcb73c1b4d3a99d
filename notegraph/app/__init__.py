"""
notegraph App - configuration and the command line entry point.
"""

from notegraph.app.config import (
    AnalyticsConfig,
    BuilderConfig,
    LayoutConfig,
    NoteGraphConfig,
    ViewConfig,
    get_config,
    reload_config,
    set_config,
)

__all__ = [
    "NoteGraphConfig",
    "BuilderConfig",
    "AnalyticsConfig",
    "LayoutConfig",
    "ViewConfig",
    "get_config",
    "set_config",
    "reload_config",
]
