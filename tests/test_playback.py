"""Tests for section skip and loop planning."""
from songline.playback import loop_target, next_skip
from songline.sections import ArrangementSections


def make_sections(splits, disabled):
    sections = ArrangementSections(100.0)
    for time in splits:
        sections.split_at(time)
    for index in disabled:
        sections.toggle(index)
    return sections


class TestNextSkip:
    """Test next_skip."""

    def test_skip_ahead_of_disabled_section(self):
        sections = make_sections([30.0, 60.0], [1])
        assert next_skip(sections, 10.0) == (30.0, 60.0)

    def test_inside_disabled_section_skips_now(self):
        sections = make_sections([30.0, 60.0], [1])
        assert next_skip(sections, 40.0) == (40.0, 60.0)

    def test_no_skip_needed(self):
        sections = make_sections([30.0, 60.0], [1])
        assert next_skip(sections, 70.0) is None
        assert next_skip(ArrangementSections(100.0), 10.0) is None

    def test_trailing_disabled_section_stops(self):
        sections = make_sections([50.0], [1])
        assert next_skip(sections, 10.0) == (50.0, None)

    def test_skips_past_enabled_runs(self):
        sections = make_sections([20.0, 40.0, 60.0], [2])
        assert next_skip(sections, 5.0) == (40.0, 60.0)


class TestLoopTarget:
    """Test loop_target."""

    def test_no_disabled_sections(self):
        assert loop_target(ArrangementSections(100.0), 12.0, 30.0) == 12.0

    def test_loop_start_in_disabled_section(self):
        sections = make_sections([30.0, 60.0], [1])
        assert loop_target(sections, 40.0, 80.0) == 60.0

    def test_no_enabled_audio_in_loop(self):
        sections = make_sections([30.0, 60.0], [1])
        assert loop_target(sections, 40.0, 55.0) is None

    def test_loop_start_enabled(self):
        sections = make_sections([30.0, 60.0], [1])
        assert loop_target(sections, 10.0, 50.0) == 10.0
