"""
User configuration for Songline.

Settings live in ~/.songline/settings.json and are merged over the defaults
so new keys appear automatically after an upgrade.
"""
import json
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

from songline import constants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineSettings:
    """
    Tuning constants for the timeline engine.

    Attributes:
        boundary_epsilon: Tolerance when matching a time to an existing boundary
        move_min_gap: Gap kept between a moved boundary and its neighbors
        drift_epsilon: Snap tolerance towards exact tempo change instants
        min_section_beats: Minimum section length in whole beats for splits
        min_split_distance_px: Minimum on-screen distance between splits
        max_beat_walk_iterations: Cap for range beat walks
        max_cached_beats: Cap for precomputed beat caches
        base_pixels_per_second: Timeline scale at zoom 1.0
        undo_limit: Maximum number of undoable edits kept
    """
    boundary_epsilon: float = constants.BOUNDARY_EPSILON
    move_min_gap: float = constants.MOVE_MIN_GAP
    drift_epsilon: float = constants.DRIFT_EPSILON
    min_section_beats: int = constants.MIN_SECTION_BEATS
    min_split_distance_px: float = constants.MIN_SPLIT_DISTANCE_PX
    max_beat_walk_iterations: int = constants.MAX_BEAT_WALK_ITERATIONS
    max_cached_beats: int = constants.MAX_CACHED_BEATS
    base_pixels_per_second: float = constants.BASE_PIXELS_PER_SECOND
    undo_limit: int = 100

    def __post_init__(self):
        """Validate settings."""
        if self.boundary_epsilon <= 0:
            raise ValueError(f"boundary_epsilon must be positive, got {self.boundary_epsilon}")
        if self.move_min_gap < 0:
            raise ValueError(f"move_min_gap must be non-negative, got {self.move_min_gap}")
        if self.min_section_beats < 0:
            raise ValueError(f"min_section_beats must be non-negative, got {self.min_section_beats}")
        if self.max_beat_walk_iterations <= 0 or self.max_cached_beats <= 0:
            raise ValueError("Beat caps must be positive")
        if self.base_pixels_per_second <= 0:
            raise ValueError(f"base_pixels_per_second must be positive, got {self.base_pixels_per_second}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the settings file layout."""
        data = asdict(self)
        undo_limit = data.pop("undo_limit")
        return {
            "timeline": data,
            "general": {"undo_limit": undo_limit},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineSettings":
        """Create settings from the settings file layout, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for category in ("timeline", "general"):
            section = data.get(category) or {}
            if not isinstance(section, dict):
                continue
            for key, value in section.items():
                if key in known:
                    values[key] = value
        return cls(**values)


DEFAULT_SETTINGS = TimelineSettings()


def get_settings_path() -> Path:
    """Default settings file location."""
    return Path.home() / ".songline" / "settings.json"


def load_settings(path: Optional[Path] = None) -> TimelineSettings:
    """
    Load settings, creating the file with defaults if it does not exist.

    A missing or broken file never prevents startup; defaults are used.

    Args:
        path: Settings file (defaults to ~/.songline/settings.json)

    Returns:
        Merged TimelineSettings
    """
    config_path = Path(path) if path is not None else get_settings_path()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w") as f:
                json.dump(DEFAULT_SETTINGS.to_dict(), f, indent=2)
            logger.info("Created new settings file with defaults at %s", config_path)
        except OSError as e:
            logger.warning("Failed to save default settings: %s", e)
        return DEFAULT_SETTINGS

    try:
        with open(config_path, "r") as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError("settings root must be an object")
        return TimelineSettings.from_dict(loaded)
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Failed to load settings from %s: %s", config_path, e)
        return DEFAULT_SETTINGS


def save_settings(settings: TimelineSettings, path: Optional[Path] = None):
    """
    Write settings to disk.

    Raises:
        IOError: If the file cannot be written
    """
    config_path = Path(path) if path is not None else get_settings_path()
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(settings.to_dict(), f, indent=2)
    except OSError as e:
        raise IOError(f"Failed to save settings to {config_path}: {e}") from e
