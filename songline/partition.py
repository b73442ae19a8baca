"""
Gapless segment partitions.

A partition divides [0, duration] into ordered, contiguous, non-overlapping
segments, each carrying a boolean label. It is edited only through
split / merge / move / toggle. Expected rejections return False or None and
never raise; callers recompute derived timelines after a successful edit.
"""
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from songline.models import Segment
from songline.settings import DEFAULT_SETTINGS, TimelineSettings
from songline.tempo import TempoTimeSignatureTrack

logger = logging.getLogger(__name__)


class SegmentPartition:
    """
    Ordered, gapless interval partition with a boolean label per segment.

    Invariants:
        segments[0].start == 0
        segments[i].end == segments[i + 1].start
        segments[-1].end == duration
    """

    # Name of the label field in persisted dictionaries
    label_key = "label"
    default_label = False

    def __init__(self, duration: float, default_label: Optional[bool] = None,
                 settings: Optional[TimelineSettings] = None):
        """
        Args:
            duration: Total length in seconds (must be positive)
            default_label: Label of the initial full-duration segment
            settings: Tuning constants (boundary epsilon, move gap)
        """
        if duration <= 0:
            raise ValueError(f"Partition duration must be positive, got {duration}")

        self.settings = settings or DEFAULT_SETTINGS
        if default_label is not None:
            self.default_label = default_label
        self._duration = float(duration)
        self._segments: List[Segment] = [Segment(0.0, self._duration, self.default_label)]

    @classmethod
    def from_segments(cls, segments: Iterable[Segment],
                      settings: Optional[TimelineSettings] = None, **kwargs) -> "SegmentPartition":
        """
        Rebuild a partition from an existing segment list.

        Raises:
            ValueError: If the segments do not form a gapless partition from 0
        """
        segments = list(segments)
        if not segments:
            raise ValueError("Cannot build a partition from an empty segment list")

        partition = cls(segments[-1].end, settings=settings, **kwargs)
        partition.restore(tuple(segments))
        return partition

    @property
    def duration(self) -> float:
        """Total partition length in seconds."""
        return self._duration

    @property
    def segments(self) -> Tuple[Segment, ...]:
        """Current segments in time order."""
        return tuple(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    def __getitem__(self, index: int) -> Segment:
        return self._segments[index]

    def snapshot(self) -> Tuple[Segment, ...]:
        """Capture the current segments for undo."""
        return tuple(self._segments)

    def restore(self, segments: Tuple[Segment, ...]):
        """
        Replace all segments with a previously captured list.

        Raises:
            ValueError: If the segments do not form a gapless partition
        """
        self._segments = self._validate(segments)
        self._duration = self._segments[-1].end

    def _validate(self, segments) -> List[Segment]:
        """
        Check a segment list and return it with shared boundaries made exact.

        A start within boundary_epsilon of the previous end is snapped onto it.
        """
        if not segments:
            raise ValueError("Partition must contain at least one segment")
        if segments[0].start != 0:
            raise ValueError(f"First segment must start at 0, got {segments[0].start}")

        result: List[Segment] = []
        for curr in segments:
            if result:
                prev_end = result[-1].end
                if abs(prev_end - curr.start) > self.settings.boundary_epsilon:
                    raise ValueError(
                        f"Segments are not contiguous: {prev_end} != {curr.start}"
                    )
                if curr.start != prev_end:
                    if curr.end <= prev_end:
                        raise ValueError(
                            f"Segment [{curr.start}, {curr.end}] is empty after joining at {prev_end}"
                        )
                    curr = Segment(prev_end, curr.end, curr.label)
            if curr.end <= curr.start:
                raise ValueError(f"Segment [{curr.start}, {curr.end}] has no length")
            result.append(curr)
        return result

    def reset(self, duration: Optional[float] = None):
        """Replace everything with one full-duration default segment."""
        if duration is not None:
            if duration <= 0:
                raise ValueError(f"Partition duration must be positive, got {duration}")
            self._duration = float(duration)
        self._segments = [Segment(0.0, self._duration, self.default_label)]

    def _find_boundary(self, time: float) -> int:
        """Index of the segment starting at time (within epsilon), or -1."""
        epsilon = self.settings.boundary_epsilon
        for i, segment in enumerate(self._segments):
            if abs(segment.start - time) < epsilon:
                return i
        return -1

    def _find_containing(self, time: float) -> int:
        """Index of the segment strictly containing time, or -1."""
        for i, segment in enumerate(self._segments):
            if segment.start < time < segment.end:
                return i
        return -1

    def _check_split(self, index: int, time: float) -> Optional[str]:
        """
        Extra split policy for specializations.

        Returns:
            Rejection reason, or None to allow the split
        """
        return None

    def split_at(self, time: float) -> bool:
        """
        Split the segment containing a time into two.

        Both halves inherit the original label. Times on an existing
        boundary, or outside the partition, are rejected.

        Args:
            time: Split position in seconds

        Returns:
            True if the partition changed
        """
        index = self._find_containing(time)
        if index == -1:
            logger.debug("Split at %.3fs rejected: not strictly inside a segment", time)
            return False

        reason = self._check_split(index, time)
        if reason:
            logger.debug("Split at %.3fs rejected: %s", time, reason)
            return False

        segment = self._segments[index]
        first = Segment(segment.start, time, segment.label)
        second = Segment(time, segment.end, segment.label)
        self._segments[index:index + 1] = [first, second]

        logger.debug("Split segment %d at %.3fs", index, time)
        return True

    def merge_at(self, time: float) -> bool:
        """
        Remove the boundary at a time, merging the two segments around it.

        The merged segment keeps the label of the earlier segment. The
        boundary at 0 is permanent.

        Args:
            time: Boundary position in seconds

        Returns:
            True if the partition changed
        """
        index = self._find_boundary(time)
        if index <= 0:
            logger.debug("Merge at %.3fs rejected: no removable boundary", time)
            return False

        prev = self._segments[index - 1]
        curr = self._segments[index]
        merged = Segment(prev.start, curr.end, prev.label)
        self._segments[index - 1:index + 1] = [merged]

        logger.debug("Merged segments %d and %d at %.3fs", index - 1, index, time)
        return True

    def move_boundary(self, time: float, new_time: float) -> bool:
        """
        Move a shared boundary to a new time.

        The boundary must stay at least move_min_gap away from the outer
        edges of its two neighboring segments.

        Args:
            time: Current boundary position
            new_time: Requested boundary position

        Returns:
            True if the partition changed
        """
        index = self._find_boundary(time)
        if index <= 0:
            logger.debug("Move from %.3fs rejected: no movable boundary", time)
            return False

        prev = self._segments[index - 1]
        curr = self._segments[index]
        gap = self.settings.move_min_gap
        if not (prev.start + gap <= new_time <= curr.end - gap):
            logger.debug(
                "Move %.3fs -> %.3fs rejected: outside [%.3f, %.3f]",
                time, new_time, prev.start + gap, curr.end - gap,
            )
            return False

        self._segments[index - 1] = Segment(prev.start, new_time, prev.label)
        self._segments[index] = Segment(new_time, curr.end, curr.label)

        logger.debug("Moved boundary %.3fs -> %.3fs", time, new_time)
        return True

    def toggle(self, index: int) -> Optional[bool]:
        """
        Flip the label of a segment.

        Returns:
            The new label, or None if index is out of range
        """
        if not 0 <= index < len(self._segments):
            logger.debug("Toggle rejected: index %d out of range", index)
            return None

        segment = self._segments[index]
        self._segments[index] = Segment(segment.start, segment.end, not segment.label)
        return not segment.label

    def index_at(self, time: float) -> int:
        """Index of the segment at a time, or -1 if outside [0, duration]."""
        for i, segment in enumerate(self._segments):
            if segment.start <= time < segment.end:
                return i

        last = self._segments[-1]
        if last.start <= time <= last.end:
            return len(self._segments) - 1
        return -1

    def segment_at(self, time: float) -> Optional[Segment]:
        """
        Get the segment with start <= time < end.

        time == duration returns the last segment.
        """
        index = self.index_at(time)
        if index == -1:
            return None
        return self._segments[index]

    def boundary_times(self) -> List[float]:
        """Interior split times (excludes 0 and duration)."""
        return [segment.start for segment in self._segments[1:]]

    def has_multiple_segments(self) -> bool:
        """True once the partition has been split."""
        return len(self._segments) > 1

    def any_labeled(self, label: bool) -> bool:
        """True if any segment carries the given label."""
        return any(segment.label == label for segment in self._segments)

    def to_list(self) -> List[Dict[str, Any]]:
        """Convert to a list of dictionaries keyed by label_key."""
        return [segment.to_dict(self.label_key) for segment in self._segments]

    @classmethod
    def segments_from_list(cls, data: Iterable[Dict[str, Any]]) -> List[Segment]:
        """Parse a list of dictionaries keyed by label_key."""
        return [Segment.from_dict(item, cls.label_key, cls.default_label) for item in data]


class BeatGuardedPartition(SegmentPartition):
    """
    Partition whose splits must leave whole-beat sections on both sides.

    The beat length is measured from the tempo track at the candidate split
    point. Without a tempo track the defaults (120 bpm, 4/4) apply.
    """

    def __init__(self, duration: float, track=None, settings: Optional[TimelineSettings] = None,
                 min_section_beats: Optional[int] = None, default_label: Optional[bool] = None):
        """
        Args:
            duration: Total length in seconds
            track: TempoTimeSignatureTrack used to measure beats
            settings: Tuning constants
            min_section_beats: Override for settings.min_section_beats
            default_label: Label of the initial segment
        """
        super().__init__(duration, default_label=default_label, settings=settings)
        if track is None:
            track = TempoTimeSignatureTrack(settings=self.settings)
        self.track = track
        self.min_section_beats = (
            self.settings.min_section_beats if min_section_beats is None else min_section_beats
        )

    def min_section_length(self, time: float) -> float:
        """Minimum section length in seconds around a time."""
        return self.track.beat_duration_at(time) * self.min_section_beats

    def _check_split(self, index: int, time: float) -> Optional[str]:
        segment = self._segments[index]
        min_length = self.min_section_length(time)
        if time - segment.start < min_length or segment.end - time < min_length:
            return f"would create a section shorter than {self.min_section_beats} beat(s)"
        return None
