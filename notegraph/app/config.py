"""
notegraph Configuration.

Central configuration for the graph engine. Every heuristic the engine uses
(link strengths, Jaccard threshold, minimum cluster size, force constants,
debounce timing) lives here rather than in the algorithms.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv

from notegraph.core.errors import ConfigError

CONFIG_ENV_VAR = "NOTEGRAPH_CONFIG"


# ============================================================================
# Default Paths
# ============================================================================


def get_default_config_path() -> Path | None:
    """Get the config file named by ``NOTEGRAPH_CONFIG`` (also read from ``.env``)."""
    load_dotenv()
    if env_path := os.environ.get(CONFIG_ENV_VAR):
        return Path(env_path)
    return None


def _known_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


# ============================================================================
# Configuration Classes
# ============================================================================


@dataclass
class BuilderConfig:
    """Configuration for turning items into nodes and links."""

    reference_strength: float = 0.8  # [[Target]] cross-references
    mention_strength: float = 0.6  # @target mentions
    parent_strength: float = 0.5  # child -> parent folder
    tag_links: bool = True  # link items whose tag sets are similar
    tag_similarity_threshold: float = 0.2  # Jaccard must exceed this
    parse_inline_tags: bool = True  # #hashtags in the body count as tags
    parse_mentions: bool = True

    # Node sizing: base + connections * per_connection, clamped
    base_node_size: float = 10.0
    size_per_connection: float = 3.0
    min_node_size: float = 8.0
    max_node_size: float = 25.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuilderConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AnalyticsConfig:
    """Configuration for clustering and derived metrics."""

    min_cluster_size: int = 3
    coherence_scale: float = 10.0  # coherence = min(size / scale, 1)
    community_seed: int = 42  # fixed so Louvain results repeat
    cluster_palette: list[str] = field(default_factory=lambda: [
        "#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6",
        "#06b6d4", "#84cc16", "#f97316", "#ec4899", "#6366f1",
    ])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalyticsConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LayoutConfig:
    """Configuration for the force-directed simulation."""

    width: float = 800.0
    height: float = 600.0
    link_distance: float = 120.0
    charge_strength: float = 400.0
    charge_distance_max: float | None = None  # None: every pair repels
    centering_strength: float = 0.1
    collision_margin: float = 20.0
    velocity_decay: float = 0.4
    max_velocity: float = 50.0

    # Cooling
    alpha_min: float = 0.001
    alpha_decay: float | None = None  # None: settle in ~300 ticks
    drag_alpha_target: float = 0.3
    reheat_alpha: float = 0.5  # alpha after a filter change on a warm layout

    fps: int = 60

    @property
    def effective_alpha_decay(self) -> float:
        if self.alpha_decay is not None:
            return self.alpha_decay
        return 1.0 - self.alpha_min ** (1.0 / 300.0)

    @property
    def center(self) -> tuple[float, float]:
        return (self.width / 2.0, self.height / 2.0)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LayoutConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ViewConfig:
    """Configuration for filtering, focus and hover presentation."""

    focus_depth: int = 2
    show_labels: bool = True
    show_orphans: bool = True
    dim_node_opacity: float = 0.3
    dim_link_opacity: float = 0.2
    debounce_ms: int = 200
    debounce_threshold: int = 1000  # node count from which search is debounced

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ViewConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NoteGraphConfig:
    """Main configuration, aggregating all sub-configurations."""

    builder: BuilderConfig = field(default_factory=BuilderConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    view: ViewConfig = field(default_factory=ViewConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> "NoteGraphConfig":
        """Load configuration from a JSON or YAML file.

        Args:
            config_path: Path to config file. If None, uses ``NOTEGRAPH_CONFIG``.

        Returns:
            NoteGraphConfig instance (defaults when no file is found)

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        if config_path is None:
            config_path = get_default_config_path()
        if config_path is None:
            return cls()

        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                if config_path.suffix.lower() in (".yaml", ".yml"):
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot parse config {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config {config_path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NoteGraphConfig":
        """Create config from dictionary."""
        try:
            return cls(
                builder=BuilderConfig.from_dict(data.get("builder", {})),
                analytics=AnalyticsConfig.from_dict(data.get("analytics", {})),
                layout=LayoutConfig.from_dict(data.get("layout", {})),
                view=ViewConfig.from_dict(data.get("view", {})),
                log_level=data.get("log_level", "INFO"),
            )
        except (TypeError, AttributeError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "builder": self.builder.to_dict(),
            "analytics": self.analytics.to_dict(),
            "layout": self.layout.to_dict(),
            "view": self.view.to_dict(),
            "log_level": self.log_level,
        }

    def save(self, config_path: str | Path) -> Path:
        """Save configuration to a JSON or YAML file.

        Returns:
            Path to saved file
        """
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            if config_path.suffix.lower() in (".yaml", ".yml"):
                yaml.safe_dump(self.to_dict(), f, sort_keys=False)
            else:
                json.dump(self.to_dict(), f, indent=2)

        return config_path


# ============================================================================
# Global Config Instance
# ============================================================================


_global_config: NoteGraphConfig | None = None


def get_config() -> NoteGraphConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = NoteGraphConfig.load()
    return _global_config


def set_config(config: NoteGraphConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def reload_config(config_path: str | Path | None = None) -> NoteGraphConfig:
    """Reload configuration from disk.

    Args:
        config_path: Optional path to load from

    Returns:
        Newly loaded configuration
    """
    global _global_config
    _global_config = NoteGraphConfig.load(config_path)
    return _global_config
