"""Tests for the precomputed beat position cache."""
from songline.beats import BeatPositionCache
from songline.models import SourceSpan, TempoChange, TimeSigChange
from songline.settings import TimelineSettings
from songline.tempo import TempoTimeSignatureTrack
from songline.virtual_timeline import VirtualTimeline


def make_track(tempos=((0.0, 120.0),), sigs=((0.0, 4, 4),)):
    return TempoTimeSignatureTrack(
        tempos=[TempoChange(t, bpm) for t, bpm in tempos],
        time_sigs=[TimeSigChange(t, n, d) for t, n, d in sigs],
    )


class TestSourceCache:
    """Test caches over source time."""

    def test_beats_stop_before_duration(self):
        cache = BeatPositionCache(2.0, make_track())

        assert [b.time for b in cache] == [0.0, 0.5, 1.0, 1.5]
        assert [b.beat for b in cache] == [1, 2, 3, 4]
        assert not cache.is_virtual
        assert not cache.truncated

    def test_empty_duration(self):
        assert len(BeatPositionCache(0.0, make_track())) == 0

    def test_beat_cap(self):
        cache = BeatPositionCache(100.0, make_track(), settings=TimelineSettings(max_cached_beats=5))
        assert len(cache) == 5
        assert cache.truncated

    def test_drift_snaps_to_tempo_change(self):
        """Accumulated beats land exactly on the tempo change instant."""
        track = make_track(tempos=((0.0, 100.0), (3.0, 120.0)))
        cache = BeatPositionCache(6.0, track)

        assert cache.tempo_change_times() == [0.0, 3.0]
        at_change = [b for b in cache if b.time == 3.0]
        assert len(at_change) == 1
        assert at_change[0].tempo == 120.0
        assert cache[5].time == 3.0
        assert cache[6].time == 3.5

    def test_measure_numbering_follows_time_signature(self):
        cache = BeatPositionCache(3.0, make_track(sigs=((0.0, 3, 4),)))
        assert [(b.measure, b.beat) for b in cache] == [
            (1, 1), (1, 2), (1, 3), (2, 1), (2, 2), (2, 3),
        ]

    def test_time_sig_change_matches_beat_walk(self):
        for change_time, expected in (
            (2.0, [(2.0, 2, 1), (2.25, 2, 2), (2.5, 2, 3), (2.75, 3, 1), (3.0, 3, 2)]),
            (2.5, [(2.5, 2, 2), (2.75, 2, 3), (3.0, 3, 1)]),
        ):
            track = make_track(sigs=((0.0, 4, 4), (change_time, 3, 8)))
            cache = BeatPositionCache(3.1, track)

            cached = [(b.time, b.measure, b.beat) for b in cache.in_range(change_time, 3.0)]

            assert cached == expected
            assert list(cache) == track.beats_in_range(0, 3.0)

    def test_shorter_numerator_starts_new_measure(self):
        cache = BeatPositionCache(3.0, make_track(sigs=((0.0, 4, 4), (1.5, 2, 4))))
        assert [(b.time, b.measure, b.beat) for b in cache] == [
            (0.0, 1, 1), (0.5, 1, 2), (1.0, 1, 3), (1.5, 2, 1), (2.0, 2, 2), (2.5, 3, 1),
        ]

    def test_in_range_inclusive(self):
        cache = BeatPositionCache(4.0, make_track())
        assert [b.time for b in cache.in_range(1.0, 2.0)] == [1.0, 1.5, 2.0]

    def test_nearest(self):
        cache = BeatPositionCache(4.0, make_track())
        assert cache.nearest(0.74).time == 0.5
        assert cache.nearest(0.25).time == 0.0
        assert cache.nearest(100.0).time == 3.5

    def test_nearest_on_empty_cache(self):
        assert BeatPositionCache(0.0, make_track()).nearest(1.0) is None

    def test_rebuild_is_deterministic(self):
        track = make_track(tempos=((0.0, 97.0), (4.1, 133.0)))
        assert BeatPositionCache(20.0, track).events == BeatPositionCache(20.0, track).events


class TestVirtualCache:
    """Test caches over a virtual timeline."""

    def test_tempo_looked_up_in_source_time(self):
        """Skipping 10-20 puts the source tempo change at virtual 10."""
        track = make_track(tempos=((0.0, 120.0), (20.0, 60.0)))
        timeline = VirtualTimeline([SourceSpan(0.0, 10.0), SourceSpan(20.0, 30.0)])
        cache = BeatPositionCache(timeline.total_duration(), track, timeline=timeline)

        assert cache.is_virtual
        assert cache.tempo_change_times() == [0.0, 10.0]
        assert len(cache) == 30
        times = [b.time for b in cache]
        assert times[19] == 9.5
        assert times[20] == 10.0
        assert cache[20].tempo == 60.0
        assert times[-1] == 19.0

    def test_beat_positions_helper(self):
        timeline = VirtualTimeline([SourceSpan(5.0, 15.0), SourceSpan(25.0, 35.0)])
        cache = timeline.beat_positions(make_track())
        assert cache.is_virtual
        assert len(cache) == 40

    def test_empty_timeline(self):
        cache = BeatPositionCache(5.0, make_track(), timeline=VirtualTimeline([]))
        assert len(cache) == 0
