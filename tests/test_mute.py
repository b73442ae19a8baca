"""Tests for per-track mute sections."""
import pytest

from songline.models import Segment
from songline.mute import MuteSections


class TestMuteEditing:
    """Test edits on one track's mute sections."""

    def setup_method(self):
        self.mutes = MuteSections()
        self.mutes.reset("drums", 50.0)

    def test_split_toggle_move(self):
        assert self.mutes.split_at("drums", 10.0)
        assert self.mutes.toggle("drums", 1) is True
        assert self.mutes.segments("drums") == (Segment(0.0, 10.0, False), Segment(10.0, 50.0, True))
        assert self.mutes.is_muted("drums", 12.0)

        assert self.mutes.move_boundary("drums", 10.0, 15.0)

        assert self.mutes.segments("drums") == (Segment(0.0, 15.0, False), Segment(15.0, 50.0, True))
        assert not self.mutes.is_muted("drums", 12.0)

    def test_default_unmuted(self):
        assert not self.mutes.is_muted("drums", 25.0)
        assert not self.mutes.has_sections("drums")

    def test_split_times(self):
        self.mutes.split_at("drums", 10.0)
        self.mutes.split_at("drums", 20.0)
        assert self.mutes.split_times("drums") == [10.0, 20.0]
        assert self.mutes.has_sections("drums")

    def test_merge(self):
        self.mutes.split_at("drums", 10.0)
        assert self.mutes.merge_at("drums", 10.0)
        assert not self.mutes.merge_at("drums", 0.0)

    def test_min_beat_guard(self):
        assert not self.mutes.split_at("drums", 0.2)

    def test_tracks_are_independent(self):
        self.mutes.reset("bass", 50.0)
        before = self.mutes.segments("bass")

        self.mutes.split_at("drums", 10.0)
        self.mutes.toggle("drums", 0)

        assert self.mutes.segments("bass") == before
        assert not self.mutes.is_muted("bass", 5.0)

    def test_unknown_track_rejected(self):
        assert not self.mutes.split_at("keys", 10.0)
        assert not self.mutes.merge_at("keys", 10.0)
        assert not self.mutes.move_boundary("keys", 10.0, 12.0)
        assert self.mutes.toggle("keys", 0) is None
        assert self.mutes.segments("keys") == ()
        assert self.mutes.split_times("keys") == []
        assert not self.mutes.is_muted("keys", 1.0)


class TestMuteInitialization:
    """Test reset and initialize-if-missing."""

    def test_initialize_if_missing_keeps_edits(self):
        mutes = MuteSections()
        assert mutes.initialize_if_missing("drums", 50.0)
        mutes.split_at("drums", 10.0)

        assert not mutes.initialize_if_missing("drums", 52.0)
        assert mutes.split_times("drums") == [10.0]

    def test_reset_replaces_edits(self):
        mutes = MuteSections()
        mutes.reset("drums", 50.0)
        mutes.split_at("drums", 10.0)

        assert mutes.reset("drums", 52.0)
        assert mutes.segments("drums") == (Segment(0.0, 52.0, False),)

    def test_reset_rejects_bad_duration(self):
        assert not MuteSections().reset("drums", 0.0)

    def test_initialize_all(self):
        mutes = MuteSections()
        mutes.reset("drums", 50.0)
        mutes.split_at("drums", 10.0)

        assert mutes.initialize_all({"drums": 50.0, "bass": 40.0, "empty": 0.0})
        assert sorted(mutes.track_ids()) == ["bass", "drums"]
        assert mutes.split_times("drums") == [10.0]
        assert not mutes.initialize_all({"drums": 50.0})

    def test_reset_all(self):
        mutes = MuteSections()
        mutes.reset("drums", 50.0)
        mutes.split_at("drums", 10.0)

        mutes.reset_all({"bass": 40.0})

        assert mutes.track_ids() == ["bass"]

    def test_remove(self):
        mutes = MuteSections()
        mutes.reset("drums", 50.0)
        assert mutes.remove("drums")
        assert not mutes.remove("drums")
        assert "drums" not in mutes


class TestMuteSets:
    """Test the persisted mute set shape."""

    def setup_method(self):
        self.file_names = {"t1": "drums.wav", "t2": "bass.wav"}
        self.mutes = MuteSections()
        self.mutes.reset("t1", 50.0)
        self.mutes.reset("t2", 40.0)
        self.mutes.split_at("t1", 10.0)
        self.mutes.toggle("t1", 1)
        self.mutes.split_at("t2", 20.0)

    def test_only_muted_tracks_included(self):
        data = self.mutes.to_mute_set(self.file_names)
        assert data == {"tracks": {"drums.wav": [
            {"start": 0.0, "end": 10.0, "muted": False},
            {"start": 10.0, "end": 50.0, "muted": True},
        ]}}

    def test_apply_round_trip(self):
        data = self.mutes.to_mute_set(self.file_names)
        other = MuteSections()
        other.reset("t1", 50.0)
        other.reset("t2", 40.0)
        other.split_at("t2", 5.0)

        assert other.apply_mute_set(data, self.file_names) == 1

        assert other.segments("t1") == self.mutes.segments("t1")
        assert other.segments("t2") == (Segment(0.0, 40.0, False),)

    def test_unknown_file_names_ignored(self):
        other = MuteSections()
        other.reset("t1", 50.0)
        data = {"tracks": {"other.wav": [{"start": 0, "end": 5, "muted": True}]}}

        assert other.apply_mute_set(data, self.file_names) == 0
        assert other.segments("t1") == (Segment(0.0, 50.0, False),)

    def test_malformed_mute_set(self):
        with pytest.raises(ValueError):
            self.mutes.apply_mute_set({"nope": {}}, self.file_names)
        with pytest.raises(ValueError):
            self.mutes.apply_mute_set({"tracks": {"drums.wav": [{"end": 5}]}}, self.file_names)
