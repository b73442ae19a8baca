"""Tests for arrangement sections and legacy marker sections."""
import pytest

from songline.models import Marker, Segment, SourceSpan
from songline.sections import (
    ArrangementSections,
    derive_marker_sections,
    marker_section_at,
    spans_from_indices,
)


@pytest.fixture
def arrangement():
    """[0-30 enabled][30-60 disabled][60-100 enabled]."""
    sections = ArrangementSections(100.0)
    sections.split_at(30.0)
    sections.split_at(60.0)
    sections.toggle(1)
    return sections


class TestArrangementSections:
    """Test the enabled/disabled arrangement partition."""

    def test_split_and_merge(self):
        sections = ArrangementSections(100.0)

        assert sections.split_at(40.0)
        assert sections.segments == (Segment(0.0, 40.0, True), Segment(40.0, 100.0, True))

        assert sections.merge_at(40.0)
        assert sections.segments == (Segment(0.0, 100.0, True),)

    def test_default_enabled(self):
        sections = ArrangementSections(10.0)
        assert sections.is_enabled_at(5.0)
        assert not sections.has_disabled_sections()
        assert not sections.has_multiple_sections()

    def test_section_queries(self, arrangement):
        assert arrangement.section_at_time(45.0) == Segment(30.0, 60.0, False)
        assert not arrangement.is_enabled_at(45.0)
        assert arrangement.has_disabled_sections()
        assert arrangement.has_multiple_sections()

    def test_next_enabled_section_after(self, arrangement):
        assert arrangement.next_enabled_section_after(10.0).start == 60.0
        assert arrangement.next_enabled_section_after(70.0) is None

    def test_first_enabled_section_at_or_after(self, arrangement):
        assert arrangement.first_enabled_section_at_or_after(10.0).start == 0.0
        assert arrangement.first_enabled_section_at_or_after(40.0).start == 60.0
        assert arrangement.first_enabled_section_at_or_after(100.0) is None

    def test_enabled_spans(self, arrangement):
        assert arrangement.enabled_spans() == [SourceSpan(0.0, 30.0), SourceSpan(60.0, 100.0)]

    def test_adjacent_enabled_sections_join(self):
        sections = ArrangementSections(100.0)
        sections.split_at(30.0)
        sections.split_at(60.0)
        assert sections.enabled_spans() == [SourceSpan(0.0, 100.0)]

    def test_all_disabled(self):
        sections = ArrangementSections(10.0)
        sections.toggle(0)
        assert sections.enabled_spans() == []

    def test_dict_round_trip(self, arrangement):
        data = arrangement.to_dict()

        assert data["sections"][1] == {"start": 30.0, "end": 60.0, "enabled": False}
        assert ArrangementSections.from_dict(data).segments == arrangement.segments

    def test_from_dict_malformed(self):
        with pytest.raises(ValueError):
            ArrangementSections.from_dict({})
        with pytest.raises(ValueError):
            ArrangementSections.from_dict({"sections": [{"start": 0, "end": 10, "enabled": True},
                                                        {"start": 12, "end": 20, "enabled": True}]})


class TestMarkerSections:
    """Test legacy marker-derived sections."""

    def setup_method(self):
        markers = [Marker("Chorus", 30.0), Marker("Intro", 0.0), Marker("", 60.0)]
        self.sections = derive_marker_sections(markers, 90.0)

    def test_derive_sorts_and_chains(self):
        assert [(s.name, s.start, s.end) for s in self.sections] == [
            ("Intro", 0.0, 30.0),
            ("Chorus", 30.0, 60.0),
            ("Section 3", 60.0, 90.0),
        ]
        assert [s.index for s in self.sections] == [0, 1, 2]

    def test_no_markers(self):
        assert derive_marker_sections([], 90.0) == []

    def test_marker_section_at(self):
        assert marker_section_at(self.sections, 45.0).name == "Chorus"
        assert marker_section_at(self.sections, 90.0).name == "Section 3"
        assert marker_section_at(self.sections, 95.0) is None

    def test_spans_from_indices(self):
        spans = spans_from_indices(self.sections, [2, 0, 7, 2])
        assert spans == [SourceSpan(60.0, 90.0), SourceSpan(0.0, 30.0), SourceSpan(60.0, 90.0)]

    def test_spans_default_order(self):
        assert len(spans_from_indices(self.sections)) == 3
        assert spans_from_indices([], [0]) == []
