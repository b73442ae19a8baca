"""
Virtual timeline.

Lays an ordered list of source spans end-to-end from 0 and converts between
virtual ("what the listener hears") time and source time. Rebuilt from
scratch whenever the span selection changes.
"""
import bisect
import logging
from typing import Iterable, List, Optional, Tuple

from songline.beats import BeatPositionCache
from songline.models import SourceSpan, VirtualSegment
from songline.settings import DEFAULT_SETTINGS, TimelineSettings

logger = logging.getLogger(__name__)


class VirtualTimeline:
    """
    Ordered source spans placed contiguously on a virtual timeline.

    Spans may skip or repeat source regions. A source time that appears in
    more than one span maps to its first occurrence unless a segment index
    hint is given.
    """

    def __init__(self, spans: Iterable[SourceSpan] = (),
                 settings: Optional[TimelineSettings] = None):
        """
        Args:
            spans: Source spans in playback order (zero-length spans are dropped)
            settings: Tuning constants (seek epsilon)
        """
        self.settings = settings or DEFAULT_SETTINGS

        segments = []
        virtual_start = 0.0
        for span in spans:
            if span.duration <= 0:
                continue
            virtual_end = virtual_start + span.duration
            segments.append(VirtualSegment(
                index=len(segments),
                virtual_start=virtual_start,
                virtual_end=virtual_end,
                source_start=span.source_start,
                source_end=span.source_end,
            ))
            virtual_start = virtual_end

        self._segments: Tuple[VirtualSegment, ...] = tuple(segments)
        self._starts = [s.virtual_start for s in self._segments]
        logger.debug("Built virtual timeline: %d segments, %.3fs", len(segments), virtual_start)

    @classmethod
    def from_partition(cls, arrangement, settings: Optional[TimelineSettings] = None) -> "VirtualTimeline":
        """Build the timeline from the enabled ranges of ArrangementSections."""
        return cls(arrangement.enabled_spans(), settings=settings or arrangement.settings)

    @property
    def segments(self) -> Tuple[VirtualSegment, ...]:
        """Virtual segments ordered by virtual start."""
        return self._segments

    def __len__(self) -> int:
        return len(self._segments)

    def __bool__(self) -> bool:
        return bool(self._segments)

    def spans(self) -> List[SourceSpan]:
        """Source spans in playback order."""
        return [SourceSpan(s.source_start, s.source_end) for s in self._segments]

    def total_duration(self) -> float:
        """Sum of span lengths."""
        if not self._segments:
            return 0.0
        return self._segments[-1].virtual_end

    def segment_at_virtual(self, virtual_time: float) -> Optional[VirtualSegment]:
        """
        Segment containing a virtual time.

        The total duration maps to the last segment; anything outside
        [0, total] gives None.
        """
        if not self._segments or virtual_time < 0:
            return None
        if virtual_time >= self._segments[-1].virtual_end:
            if virtual_time == self._segments[-1].virtual_end:
                return self._segments[-1]
            return None
        index = bisect.bisect_right(self._starts, virtual_time) - 1
        return self._segments[max(index, 0)]

    def next_segment(self, index: int) -> Optional[VirtualSegment]:
        """Segment following index, or None at the end."""
        if 0 <= index < len(self._segments) - 1:
            return self._segments[index + 1]
        return None

    def requires_seek(self, from_segment: Optional[VirtualSegment],
                      to_segment: Optional[VirtualSegment]) -> bool:
        """True if moving between two segments jumps in source time."""
        if from_segment is None or to_segment is None:
            return False
        return abs(from_segment.source_end - to_segment.source_start) > self.settings.boundary_epsilon

    def to_source_time(self, virtual_time: float) -> float:
        """
        Convert virtual time to source time.

        Out-of-range input clamps to the first / last segment edge. An empty
        timeline maps everything to 0.
        """
        if not self._segments:
            return 0.0

        first = self._segments[0]
        last = self._segments[-1]
        if virtual_time <= 0:
            return first.source_start
        if virtual_time >= last.virtual_end:
            return last.source_end

        segment = self.segment_at_virtual(virtual_time)
        return virtual_time + segment.offset

    def to_virtual_time(self, source_time: float, hint: Optional[int] = None) -> float:
        """
        Convert source time to virtual time.

        Args:
            source_time: Position in source seconds
            hint: Index of the segment to prefer when the source region repeats

        Returns:
            Virtual time; source positions outside every span clamp to the
            nearest segment edge
        """
        if not self._segments:
            return 0.0

        if hint is not None and 0 <= hint < len(self._segments):
            segment = self._segments[hint]
            if segment.source_start <= source_time < segment.source_end:
                return source_time - segment.offset

        for segment in self._segments:
            if segment.source_start <= source_time < segment.source_end:
                return source_time - segment.offset

        return self._clamp_to_edge(source_time)

    def _clamp_to_edge(self, source_time: float) -> float:
        best_distance = None
        best_virtual = 0.0
        for segment in self._segments:
            for source_edge, virtual_edge in ((segment.source_start, segment.virtual_start),
                                              (segment.source_end, segment.virtual_end)):
                distance = abs(source_time - source_edge)
                if best_distance is None or distance < best_distance:
                    best_distance = distance
                    best_virtual = virtual_edge
        return best_virtual

    def beat_positions(self, track, settings: Optional[TimelineSettings] = None):
        """Beat cache in virtual time for a tempo track."""
        return BeatPositionCache(self.total_duration(), track, timeline=self,
                                 settings=settings or self.settings)
