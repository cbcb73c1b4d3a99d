"""Exception types raised by notegraph.

The graph engine itself never raises for data problems (dangling links,
unknown parents, missing focus nodes); those are dropped and logged.
These exceptions cover the edges of the package: reading input files and
configuration.
"""

from __future__ import annotations


class NoteGraphError(Exception):
    """Base class for notegraph errors."""


class ItemLoadError(NoteGraphError):
    """An item snapshot could not be read or parsed."""


class ConfigError(NoteGraphError):
    """A configuration file is malformed."""
