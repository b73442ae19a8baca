"""
Precomputed beat positions.

Builds the full beat list for a source or virtual timeline in one forward
walk. Caches are never patched: rebuild whenever the selection, partition or
tempo data changes.
"""
import bisect
import logging
from typing import Iterator, List, Optional, Tuple

from songline.constants import seconds_per_beat
from songline.models import BeatEvent
from songline.settings import DEFAULT_SETTINGS, TimelineSettings
from songline.tempo import TempoTimeSignatureTrack

logger = logging.getLogger(__name__)


class BeatPositionCache:
    """
    Drift-controlled beat list over a whole duration.

    When a timeline mapping is given, positions are in virtual time and tempo
    lookups go through mapping.to_source_time(). The mapping must also expose
    `segments` (VirtualSegment sequence) so that tempo change instants can be
    located on the virtual timeline.

    Before each beat is emitted, an accumulated time within drift_epsilon of
    an exact tempo change instant snaps to that instant, so long songs do not
    collect floating point error from repeated addition.
    """

    def __init__(self, duration: float, track: TempoTimeSignatureTrack,
                 timeline=None, settings: Optional[TimelineSettings] = None):
        """
        Args:
            duration: Total duration in seconds (virtual duration when mapped)
            track: Tempo / time signature data (source time)
            timeline: Optional VirtualTimeline mapping virtual to source time
            settings: Tuning constants (drift epsilon, beat cap)
        """
        self.duration = duration
        self.track = track
        self.timeline = timeline
        self.settings = settings or DEFAULT_SETTINGS
        self.truncated = False
        self._events: Tuple[BeatEvent, ...] = tuple(self._build())
        self._times: List[float] = [e.time for e in self._events]

    @property
    def is_virtual(self) -> bool:
        """True when positions are expressed in virtual time."""
        return self.timeline is not None

    @property
    def events(self) -> Tuple[BeatEvent, ...]:
        """All beats in ascending time order."""
        return self._events

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[BeatEvent]:
        return iter(self._events)

    def __getitem__(self, index: int) -> BeatEvent:
        return self._events[index]

    def tempo_change_times(self) -> List[float]:
        """
        Exact tempo change instants on this cache's timeline.

        In virtual mode each change is placed in every virtual segment whose
        source range contains it; changes outside the duration are dropped.
        """
        times = set()
        tempos = self.track.tempos

        if self.timeline is None:
            for change in tempos:
                if change.start_time < self.duration:
                    times.add(change.start_time)
        else:
            for segment in self.timeline.segments:
                for change in tempos:
                    if segment.source_start <= change.start_time < segment.source_end:
                        virtual_time = segment.virtual_start + (change.start_time - segment.source_start)
                        if virtual_time < self.duration:
                            times.add(virtual_time)

        return sorted(times)

    def _to_source(self, time: float) -> float:
        if self.timeline is None:
            return time
        return self.timeline.to_source_time(time)

    def _build(self) -> List[BeatEvent]:
        """Walk the timeline beat by beat from 0."""
        beats: List[BeatEvent] = []

        if self.duration <= 0:
            return beats
        if self.timeline is not None and not self.timeline.segments:
            return beats

        change_times = self.tempo_change_times()
        epsilon = self.settings.drift_epsilon
        max_beats = self.settings.max_cached_beats

        current_time = 0.0
        measure = 1
        beat = 1

        while current_time < self.duration and len(beats) < max_beats:
            for change_time in change_times:
                if abs(current_time - change_time) < epsilon:
                    current_time = change_time
                    break

            source_time = self._to_source(current_time)
            tempo = self.track.tempo_at(source_time)
            beats_per_measure, denominator = self.track.time_sig_at(source_time)

            if beat > beats_per_measure:
                beat = 1
                measure += 1

            beats.append(BeatEvent(time=current_time, measure=measure, beat=beat, tempo=tempo))

            current_time += seconds_per_beat(tempo, denominator)
            beat += 1
            if beat > beats_per_measure:
                beat = 1
                measure += 1

        if len(beats) >= max_beats and current_time < self.duration:
            self.truncated = True
            logger.warning(
                "Beat cache truncated at %d beats (%.3fs of %.3fs)",
                max_beats, current_time, self.duration,
            )
        else:
            logger.debug("Built beat cache: %d beats over %.3fs", len(beats), self.duration)

        return beats

    def in_range(self, start_time: float, end_time: float) -> List[BeatEvent]:
        """Beats with start_time <= time <= end_time."""
        lo = bisect.bisect_left(self._times, start_time)
        hi = bisect.bisect_right(self._times, end_time)
        return list(self._events[lo:hi])

    def nearest(self, time: float) -> Optional[BeatEvent]:
        """Closest cached beat to a time (earliest wins a tie)."""
        if not self._events:
            return None
        index = bisect.bisect_left(self._times, time)
        candidates = [i for i in (index - 1, index) if 0 <= i < len(self._events)]
        best = min(candidates, key=lambda i: (abs(self._times[i] - time), i))
        return self._events[best]
