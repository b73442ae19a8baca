"""
Musical constants and utilities.

Defaults, tuning constants and small conversion helpers shared by the
timeline modules.
"""
import logging
from typing import Tuple

logger = logging.getLogger(__name__)

# Defaults substituted for missing metadata
BPM_DEFAULT = 120.0
TIME_SIGNATURE_DEFAULT = (4, 4)
TIME_SIGNATURE_DEFAULT_STR = "4/4"

# Boundary matching tolerance (seconds)
BOUNDARY_EPSILON = 0.001

# Minimum gap kept on each side of a moved boundary (seconds)
MOVE_MIN_GAP = 0.01

# Drift snapping tolerance for beat caches (seconds)
DRIFT_EPSILON = 0.001

# Minimum section length for arrangement / mute splits, in beats
MIN_SECTION_BEATS = 1

# Minimum on-screen distance between a new split and an existing one
MIN_SPLIT_DISTANCE_PX = 10

# Hard caps against malformed tempo data
MAX_BEAT_WALK_ITERATIONS = 100000
MAX_CACHED_BEATS = 10000

# Timeline rendering scale at zoom 1.0
BASE_PIXELS_PER_SECOND = 100


def parse_time_signature(sig: str) -> Tuple[int, int]:
    """
    Parse an "N/D" time signature string.

    Missing, non-numeric or non-positive parts fall back to 4.

    Args:
        sig: Time signature string (e.g., "6/8")

    Returns:
        (numerator, denominator)

    Example:
        >>> parse_time_signature("6/8")
        (6, 8)
        >>> parse_time_signature("garbage")
        (4, 4)
    """
    parts = str(sig).split("/") if sig is not None else []
    values = []
    substituted = False
    for i in range(2):
        try:
            value = int(parts[i])
        except (IndexError, ValueError):
            value = 0
        if value <= 0:
            value = 4
            substituted = True
        values.append(value)

    if substituted:
        logger.warning("Unparsable time signature %r, using %d/%d", sig, values[0], values[1])

    return values[0], values[1]


def seconds_per_beat(bpm: float, denominator: int) -> float:
    """
    Length of one notated beat in seconds.

    BPM is always counted in quarter notes, so the denominator rescales it
    to the beat unit (eighth notes in 6/8 are half as long).

    Example:
        >>> seconds_per_beat(120, 4)
        0.5
        >>> seconds_per_beat(120, 8)
        0.25
    """
    return (60.0 / bpm) * (4.0 / denominator)


def pixel_to_time(pixel_x: float, zoom: float = 1.0, offset: float = 0.0,
                  base_pixels_per_second: float = BASE_PIXELS_PER_SECOND) -> float:
    """Convert a timeline pixel position to seconds (never negative)."""
    time = pixel_x / (base_pixels_per_second * zoom)
    time -= offset
    return max(0.0, time)


def time_to_pixel(time: float, zoom: float = 1.0, offset: float = 0.0,
                  scroll: float = 0.0,
                  base_pixels_per_second: float = BASE_PIXELS_PER_SECOND) -> float:
    """Convert seconds to a timeline pixel position."""
    return (time + offset) * base_pixels_per_second * zoom - scroll
