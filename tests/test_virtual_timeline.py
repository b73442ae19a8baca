"""Tests for the virtual timeline mapping."""
import pytest

from songline.models import SourceSpan
from songline.sections import ArrangementSections
from songline.virtual_timeline import VirtualTimeline


@pytest.fixture
def skipping():
    """Arrangement that skips source 10-20."""
    return VirtualTimeline([SourceSpan(0.0, 10.0), SourceSpan(20.0, 30.0)])


class TestMapping:
    """Test virtual / source conversion."""

    def test_skip_region(self, skipping):
        assert skipping.to_virtual_time(25.0) == 15.0
        assert skipping.to_source_time(15.0) == 25.0
        assert skipping.total_duration() == 20.0

    def test_segments_laid_end_to_end(self, skipping):
        first, second = skipping.segments
        assert (first.virtual_start, first.virtual_end) == (0.0, 10.0)
        assert (second.virtual_start, second.virtual_end) == (10.0, 20.0)
        assert second.index == 1

    @pytest.mark.parametrize("source_time", [0.0, 2.5, 9.99, 20.0, 21.3, 29.9])
    def test_round_trip(self, skipping, source_time):
        virtual = skipping.to_virtual_time(source_time)
        assert skipping.to_source_time(virtual) == pytest.approx(source_time)

    def test_out_of_range_clamps(self, skipping):
        assert skipping.to_source_time(-5.0) == 0.0
        assert skipping.to_source_time(100.0) == 30.0
        assert skipping.to_virtual_time(50.0) == 20.0
        assert skipping.to_virtual_time(12.0) == 10.0

    def test_reordered_spans(self):
        timeline = VirtualTimeline([SourceSpan(20.0, 30.0), SourceSpan(0.0, 10.0)])
        assert timeline.to_virtual_time(5.0) == 15.0
        assert timeline.to_source_time(5.0) == 25.0
        assert timeline.total_duration() == 20.0

    def test_repeated_span_hint(self):
        timeline = VirtualTimeline([SourceSpan(0.0, 10.0), SourceSpan(0.0, 10.0)])
        assert timeline.to_virtual_time(4.0) == 4.0
        assert timeline.to_virtual_time(4.0, hint=1) == 14.0

    def test_empty_timeline(self):
        timeline = VirtualTimeline([])
        assert not timeline
        assert timeline.total_duration() == 0.0
        assert timeline.to_source_time(3.0) == 0.0
        assert timeline.to_virtual_time(3.0) == 0.0

    def test_zero_length_spans_dropped(self):
        timeline = VirtualTimeline([SourceSpan(0.0, 0.0), SourceSpan(5.0, 8.0)])
        assert len(timeline) == 1
        assert timeline.spans() == [SourceSpan(5.0, 8.0)]


class TestSegmentNavigation:
    """Test segment lookups used by the playback scheduler."""

    def test_segment_at_virtual(self, skipping):
        assert skipping.segment_at_virtual(5.0).index == 0
        assert skipping.segment_at_virtual(10.0).index == 1
        assert skipping.segment_at_virtual(20.0).index == 1
        assert skipping.segment_at_virtual(25.0) is None
        assert skipping.segment_at_virtual(-1.0) is None

    def test_next_segment(self, skipping):
        assert skipping.next_segment(0).index == 1
        assert skipping.next_segment(1) is None

    def test_requires_seek(self, skipping):
        first, second = skipping.segments
        assert skipping.requires_seek(first, second)
        assert not skipping.requires_seek(first, None)

        contiguous = VirtualTimeline([SourceSpan(0.0, 10.0), SourceSpan(10.0, 20.0)])
        assert not contiguous.requires_seek(*contiguous.segments)

    def test_from_partition(self):
        sections = ArrangementSections(30.0)
        sections.split_at(10.0)
        sections.split_at(20.0)
        sections.toggle(1)

        timeline = VirtualTimeline.from_partition(sections)

        assert timeline.spans() == [SourceSpan(0.0, 10.0), SourceSpan(20.0, 30.0)]
        assert timeline.to_virtual_time(25.0) == 15.0
