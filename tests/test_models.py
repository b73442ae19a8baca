"""Tests for the immutable data models and peaks variants."""
import dataclasses

import numpy as np
import pytest

from songline.models import (
    BeatEvent,
    MonoPeaks,
    Segment,
    StereoPeaks,
    TempoChange,
    TimeSigChange,
    VirtualSegment,
    peaks_from_payload,
)


class TestTempoAndTimeSig:
    """Test tempo / time signature change validation and dict shapes."""

    def test_tempo_validation(self):
        with pytest.raises(ValueError):
            TempoChange(start_time=-1.0, bpm=120)
        with pytest.raises(ValueError):
            TempoChange(start_time=0.0, bpm=0)

    def test_tempo_dict_shape(self):
        change = TempoChange.from_dict({"start": 2, "tempo": 90})
        assert change == TempoChange(2.0, 90.0)
        assert change.to_dict() == {"start": 2.0, "tempo": 90.0}

    def test_time_sig_from_dict(self):
        change = TimeSigChange.from_dict({"start": 1.0, "sig": "6/8"})
        assert (change.numerator, change.denominator) == (6, 8)
        assert change.to_dict() == {"start": 1.0, "sig": "6/8"}

    def test_immutable(self):
        change = TempoChange(0.0, 120.0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            change.bpm = 100.0


class TestSegments:
    """Test segment and span models."""

    def test_beat_event_measure_start(self):
        event = BeatEvent(time=2.0, measure=2, beat=1, tempo=120.0)
        assert event.is_measure_start
        assert event.to_dict()["isMeasureStart"] is True
        assert not BeatEvent(time=2.5, measure=2, beat=2, tempo=120.0).is_measure_start

    def test_segment_label_key(self):
        segment = Segment(0.0, 10.0, True)
        assert segment.to_dict("enabled") == {"start": 0.0, "end": 10.0, "enabled": True}
        assert segment.duration == 10.0

    def test_segment_from_dict_default_label(self):
        segment = Segment.from_dict({"start": 0, "end": 5}, "muted", default_label=False)
        assert segment == Segment(0.0, 5.0, False)

    def test_segment_validation(self):
        with pytest.raises(ValueError):
            Segment(5.0, 4.0, True)

    def test_virtual_segment_offset(self):
        segment = VirtualSegment(index=1, virtual_start=10.0, virtual_end=20.0,
                                 source_start=20.0, source_end=30.0)
        assert segment.offset == 10.0
        assert segment.duration == 10.0


class TestPeaks:
    """Test peaks payload resolution."""

    def test_legacy_array_is_mono(self):
        peaks = peaks_from_payload([0.1, -0.8, 0.5])
        assert isinstance(peaks, MonoPeaks)
        assert not peaks.is_stereo
        assert peaks.max_peak == pytest.approx(0.8)

    def test_stereo_object(self):
        peaks = peaks_from_payload({"left": [0.1, 0.2], "right": [0.3, 0.9], "isStereo": True})
        assert isinstance(peaks, StereoPeaks)
        assert peaks.is_stereo
        np.testing.assert_allclose(peaks.right, [0.3, 0.9])
        assert peaks.max_peak == pytest.approx(0.9)

    def test_stereo_flag_without_right_channel_is_mono(self):
        peaks = peaks_from_payload({"left": [0.5], "right": None, "isStereo": True})
        assert isinstance(peaks, MonoPeaks)
        np.testing.assert_allclose(peaks.samples, [0.5])

    def test_missing_payload(self):
        assert peaks_from_payload(None) is None

    def test_empty_peaks(self):
        assert MonoPeaks(samples=np.array([], dtype=np.float32)).max_peak == 0.0

    def test_stereo_channel_mismatch(self):
        with pytest.raises(ValueError):
            StereoPeaks(left=np.zeros(3), right=np.zeros(4))

    def test_to_dict(self):
        data = peaks_from_payload([0.25, 0.5]).to_dict()
        assert data["isStereo"] is False
        assert data["right"] is None
        assert data["left"] == [0.25, 0.5]
