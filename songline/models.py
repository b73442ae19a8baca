"""
Immutable data models for Songline.

All models are frozen dataclasses so that:
- Segment lists can be snapshotted cheaply for undo/redo
- Derived structures never alias mutable state
- Serialization stays a plain dict round-trip
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import numpy as np

from songline.constants import parse_time_signature


@dataclass(frozen=True)
class TempoChange:
    """
    Tempo change event.

    Attributes:
        start_time: Position in seconds where the tempo takes effect
        bpm: Tempo in quarter-note beats per minute
    """
    start_time: float
    bpm: float

    def __post_init__(self):
        """Validate tempo change."""
        if self.start_time < 0:
            raise ValueError(f"Start time must be non-negative, got {self.start_time}")
        if self.bpm <= 0:
            raise ValueError(f"BPM must be positive, got {self.bpm}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to metadata document shape."""
        return {
            "start": self.start_time,
            "tempo": self.bpm,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TempoChange":
        """Create TempoChange from metadata document entry."""
        return cls(
            start_time=float(data["start"]),
            bpm=float(data["tempo"]),
        )


@dataclass(frozen=True)
class TimeSigChange:
    """
    Time signature change event.

    Attributes:
        start_time: Position in seconds where the signature takes effect
        numerator: Beats per measure
        denominator: Beat unit (4 = quarter, 8 = eighth)
    """
    start_time: float
    numerator: int
    denominator: int

    def __post_init__(self):
        """Validate time signature change."""
        if self.start_time < 0:
            raise ValueError(f"Start time must be non-negative, got {self.start_time}")
        if self.numerator <= 0 or self.denominator <= 0:
            raise ValueError(
                f"Time signature parts must be positive, got {self.numerator}/{self.denominator}"
            )

    @property
    def signature(self) -> str:
        """Signature as "N/D" string."""
        return f"{self.numerator}/{self.denominator}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to metadata document shape."""
        return {
            "start": self.start_time,
            "sig": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSigChange":
        """Create TimeSigChange from metadata document entry."""
        numerator, denominator = parse_time_signature(data.get("sig", "4/4"))
        return cls(
            start_time=float(data["start"]),
            numerator=numerator,
            denominator=denominator,
        )


@dataclass(frozen=True)
class BeatEvent:
    """
    Single beat on the musical grid.

    Attributes:
        time: Position in seconds (source or virtual timeline)
        measure: 1-based measure number
        beat: 1-based beat within the measure
        tempo: BPM in effect at this beat
    """
    time: float
    measure: int
    beat: int
    tempo: float

    @property
    def is_measure_start(self) -> bool:
        """True for the downbeat of a measure."""
        return self.beat == 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for rulers and grid rendering."""
        return {
            "time": self.time,
            "measure": self.measure,
            "beat": self.beat,
            "isMeasureStart": self.is_measure_start,
            "tempo": self.tempo,
        }


@dataclass(frozen=True)
class Segment:
    """
    One interval of a gapless partition.

    The label is the boolean carried by the partition: "enabled" for
    arrangement sections, "muted" for mute sections.

    Attributes:
        start: Start time in seconds
        end: End time in seconds
        label: Boolean state of this interval
    """
    start: float
    end: float
    label: bool

    def __post_init__(self):
        """Validate segment bounds."""
        if self.start < 0:
            raise ValueError(f"Segment start must be non-negative, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"Segment end {self.end} before start {self.start}")

    @property
    def duration(self) -> float:
        """Segment length in seconds."""
        return self.end - self.start

    def contains(self, time: float) -> bool:
        """True if start <= time < end."""
        return self.start <= time < self.end

    def to_dict(self, label_key: str = "label") -> Dict[str, Any]:
        """Convert to dictionary, naming the label field (e.g. "enabled")."""
        return {
            "start": self.start,
            "end": self.end,
            label_key: self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], label_key: str = "label",
                  default_label: bool = False) -> "Segment":
        """Create Segment from dictionary."""
        return cls(
            start=float(data["start"]),
            end=float(data["end"]),
            label=bool(data.get(label_key, default_label)),
        )


@dataclass(frozen=True)
class SourceSpan:
    """
    Reference range into a track's native duration.

    Attributes:
        source_start: Start in source seconds
        source_end: End in source seconds
    """
    source_start: float
    source_end: float

    def __post_init__(self):
        """Validate span."""
        if self.source_start < 0:
            raise ValueError(f"Span start must be non-negative, got {self.source_start}")
        if self.source_end < self.source_start:
            raise ValueError(f"Span end {self.source_end} before start {self.source_start}")

    @property
    def duration(self) -> float:
        """Span length in seconds."""
        return self.source_end - self.source_start

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "sourceStart": self.source_start,
            "sourceEnd": self.source_end,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceSpan":
        """Create SourceSpan from dictionary."""
        return cls(
            source_start=float(data["sourceStart"]),
            source_end=float(data["sourceEnd"]),
        )


@dataclass(frozen=True)
class VirtualSegment:
    """
    A source span placed on the virtual timeline.

    virtual_end - virtual_start always equals source_end - source_start.

    Attributes:
        index: Position in the virtual ordering (0-based)
        virtual_start: Start on the virtual timeline
        virtual_end: End on the virtual timeline
        source_start: Start in source seconds
        source_end: End in source seconds
    """
    index: int
    virtual_start: float
    virtual_end: float
    source_start: float
    source_end: float

    @property
    def duration(self) -> float:
        """Segment length in seconds."""
        return self.virtual_end - self.virtual_start

    @property
    def offset(self) -> float:
        """Constant added to virtual time to reach source time."""
        return self.source_start - self.virtual_start

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "virtualIndex": self.index,
            "virtualStart": self.virtual_start,
            "virtualEnd": self.virtual_end,
            "sourceStart": self.source_start,
            "sourceEnd": self.source_end,
        }


@dataclass(frozen=True)
class Marker:
    """
    Named song marker from the metadata document.

    Attributes:
        name: Marker label
        start: Position in seconds
    """
    name: str
    start: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to metadata document shape."""
        return {"name": self.name, "start": self.start}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Marker":
        """Create Marker from metadata document entry."""
        return cls(
            name=data.get("name", ""),
            start=float(data["start"]),
        )


@dataclass(frozen=True)
class MarkerSection:
    """
    Section derived from consecutive markers (legacy arrangements).

    Attributes:
        index: Marker order index
        name: Section name
        start: Start time in seconds
        end: End time in seconds
    """
    index: int
    name: str
    start: float
    end: float

    @property
    def duration(self) -> float:
        """Section length in seconds."""
        return self.end - self.start


@dataclass(frozen=True, eq=False)
class MonoPeaks:
    """
    Single-channel waveform peaks.

    Attributes:
        samples: Peak values (0.0-1.0)
    """
    samples: np.ndarray

    @property
    def is_stereo(self) -> bool:
        return False

    @property
    def max_peak(self) -> float:
        """Largest absolute peak value (0.0 for empty data)."""
        if self.samples.size == 0:
            return 0.0
        return float(np.max(np.abs(self.samples)))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored peaks shape."""
        return {
            "left": self.samples.tolist(),
            "right": None,
            "isStereo": False,
            "maxPeak": self.max_peak,
        }


@dataclass(frozen=True, eq=False)
class StereoPeaks:
    """
    Two-channel waveform peaks.

    Attributes:
        left: Left channel peak values
        right: Right channel peak values
    """
    left: np.ndarray
    right: np.ndarray

    def __post_init__(self):
        """Validate channel lengths."""
        if self.left.shape != self.right.shape:
            raise ValueError(
                f"Stereo channels must match, got {self.left.shape} and {self.right.shape}"
            )

    @property
    def is_stereo(self) -> bool:
        return True

    @property
    def max_peak(self) -> float:
        """Largest absolute peak value across both channels."""
        if self.left.size == 0:
            return 0.0
        return float(max(np.max(np.abs(self.left)), np.max(np.abs(self.right))))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored peaks shape."""
        return {
            "left": self.left.tolist(),
            "right": self.right.tolist(),
            "isStereo": True,
            "maxPeak": self.max_peak,
        }


PeaksData = Union[MonoPeaks, StereoPeaks]


def peaks_from_payload(payload: Any) -> Optional[PeaksData]:
    """
    Resolve a stored peaks payload into a tagged variant.

    Accepts the legacy flat array as well as the {left, right, isStereo}
    object. Downstream code only ever sees MonoPeaks or StereoPeaks.

    Args:
        payload: Raw peaks payload (list/array or dict) or None

    Returns:
        MonoPeaks, StereoPeaks, or None for a missing payload
    """
    if payload is None:
        return None

    if isinstance(payload, dict):
        left = payload.get("left")
        left = np.asarray(left if left is not None else [], dtype=np.float32)
        right = payload.get("right")
        if payload.get("isStereo") and right is not None:
            return StereoPeaks(left=left, right=np.asarray(right, dtype=np.float32))
        return MonoPeaks(samples=left)

    # Legacy mono format
    return MonoPeaks(samples=np.asarray(payload, dtype=np.float32))
