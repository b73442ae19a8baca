"""
Arrangement sections.

Timeline-based arrangements: the song is split into sections that can each
be enabled or disabled. The enabled ranges, in source order, form the
listener-facing virtual timeline.

Index-based arrangements over marker-derived sections are kept for
importing legacy arrangement definitions only.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from songline.models import Marker, MarkerSection, Segment, SourceSpan
from songline.partition import BeatGuardedPartition

logger = logging.getLogger(__name__)


class ArrangementSections(BeatGuardedPartition):
    """Song-wide partition into enabled / disabled sections."""

    label_key = "enabled"
    default_label = True

    def section_at_time(self, time: float) -> Optional[Segment]:
        """Section containing a time (time == duration gives the last one)."""
        return self.segment_at(time)

    def is_enabled_at(self, time: float) -> bool:
        """True if the section at a time is enabled."""
        section = self.segment_at(time)
        return section is not None and section.label

    def next_enabled_section_after(self, time: float) -> Optional[Segment]:
        """First enabled section starting strictly after a time."""
        for section in self._segments:
            if section.start > time and section.label:
                return section
        return None

    def first_enabled_section_at_or_after(self, time: float) -> Optional[Segment]:
        """
        First enabled section that contains a time or starts after it.

        Used to resume playback past disabled ranges.
        """
        for section in self._segments:
            if section.end > time and section.label:
                return section
        return None

    def has_disabled_sections(self) -> bool:
        """True if at least one section is disabled."""
        return self.any_labeled(False)

    def has_multiple_sections(self) -> bool:
        """True if the arrangement has custom splits."""
        return self.has_multiple_segments()

    def enabled_spans(self) -> List[SourceSpan]:
        """
        Enabled ranges in source order.

        Adjacent enabled sections are joined into a single span.
        """
        spans: List[SourceSpan] = []
        run_start = None
        run_end = None

        for section in self._segments:
            if section.label:
                if run_start is None:
                    run_start = section.start
                run_end = section.end
            elif run_start is not None:
                spans.append(SourceSpan(run_start, run_end))
                run_start = None

        if run_start is not None:
            spans.append(SourceSpan(run_start, run_end))

        return spans

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted arrangement shape."""
        return {"sections": self.to_list()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **kwargs) -> "ArrangementSections":
        """
        Create ArrangementSections from the persisted arrangement shape.

        Raises:
            ValueError: If sections are missing or not a gapless partition
        """
        try:
            segments = cls.segments_from_list(data["sections"])
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid arrangement document: {e}") from e
        return cls.from_segments(segments, **kwargs)


# ============================================================================
# Legacy marker sections
# ============================================================================

def derive_marker_sections(markers: Sequence[Marker], total_duration: float) -> List[MarkerSection]:
    """
    Derive sections from markers.

    Each marker starts a section that ends where the next marker begins
    (or at the end of the song for the final one).

    Args:
        markers: Markers in any order
        total_duration: Song duration in seconds

    Returns:
        Sections in time order
    """
    if not markers:
        return []

    ordered = sorted(markers, key=lambda m: m.start)
    sections = []
    for i, marker in enumerate(ordered):
        end = ordered[i + 1].start if i + 1 < len(ordered) else total_duration
        sections.append(MarkerSection(
            index=i,
            name=marker.name or f"Section {i + 1}",
            start=marker.start,
            end=end,
        ))
    return sections


def marker_section_at(sections: Sequence[MarkerSection], time: float) -> Optional[MarkerSection]:
    """Marker section containing a time (end of the last section included)."""
    if not sections:
        return None

    for section in sections:
        if section.start <= time < section.end:
            return section

    last = sections[-1]
    if last.start <= time <= last.end:
        return last
    return None


def spans_from_indices(sections: Sequence[MarkerSection],
                       indices: Optional[Sequence[int]] = None) -> List[SourceSpan]:
    """
    Convert an index-based arrangement into source spans.

    Args:
        sections: Marker-derived sections
        indices: Section indices in playback order, or None for all in order

    Returns:
        Spans in arrangement order; invalid indices are skipped
    """
    if not sections:
        return []

    if indices is None:
        indices = range(len(sections))

    spans = []
    for index in indices:
        if not isinstance(index, int) or not 0 <= index < len(sections):
            logger.warning("Invalid section index %r in arrangement", index)
            continue
        section = sections[index]
        spans.append(SourceSpan(section.start, section.end))
    return spans
