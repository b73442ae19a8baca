"""
Tempo and time signature track.

Piecewise-constant tempo / time signature lookup plus the forward beat walk
used by timeline rulers and snap-to-beat.
"""
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from songline.constants import BPM_DEFAULT, TIME_SIGNATURE_DEFAULT, seconds_per_beat
from songline.models import BeatEvent, TempoChange, TimeSigChange
from songline.settings import DEFAULT_SETTINGS, TimelineSettings

logger = logging.getLogger(__name__)


def _normalize_changes(changes, default, kind: str) -> Tuple:
    """
    Sort changes by start time and make sure one is in effect from t=0.

    Missing or empty lists become the single default change. A list that
    starts after 0 gets the default prepended so lookups and beat walks agree
    on what is in effect before the first change.
    """
    if not changes:
        return (default,)

    changes = list(changes)
    ordered = sorted(changes, key=lambda c: c.start_time)
    if ordered != changes:
        logger.warning("%s changes were not sorted by start time; reordering", kind)

    if ordered[0].start_time > 0:
        ordered.insert(0, default)

    return tuple(ordered)


class TempoTimeSignatureTrack:
    """
    Immutable tempo / time signature map for one song.

    Replaced wholesale when song metadata is reloaded.
    """

    def __init__(self,
                 tempos: Optional[Sequence[TempoChange]] = None,
                 time_sigs: Optional[Sequence[TimeSigChange]] = None,
                 settings: Optional[TimelineSettings] = None):
        """
        Args:
            tempos: Tempo changes (ascending start times); None/empty means 120 bpm
            time_sigs: Time signature changes; None/empty means 4/4
            settings: Tuning constants (iteration cap)
        """
        self.settings = settings or DEFAULT_SETTINGS
        self._tempos = _normalize_changes(
            tempos, TempoChange(start_time=0.0, bpm=BPM_DEFAULT), "Tempo"
        )
        self._time_sigs = _normalize_changes(
            time_sigs,
            TimeSigChange(start_time=0.0,
                          numerator=TIME_SIGNATURE_DEFAULT[0],
                          denominator=TIME_SIGNATURE_DEFAULT[1]),
            "Time signature",
        )

    @property
    def tempos(self) -> Tuple[TempoChange, ...]:
        """Effective tempo changes (always starts at 0)."""
        return self._tempos

    @property
    def time_sigs(self) -> Tuple[TimeSigChange, ...]:
        """Effective time signature changes (always starts at 0)."""
        return self._time_sigs

    @classmethod
    def from_metadata(cls, metadata: Optional[Dict[str, Any]],
                      settings: Optional[TimelineSettings] = None) -> "TempoTimeSignatureTrack":
        """
        Build a track from a song metadata document.

        Expects {"tempos": [{"start", "tempo"}], "time-sigs": [{"start", "sig"}]}.
        Malformed entries are skipped; missing lists fall back to defaults.
        """
        metadata = metadata or {}
        tempos = parse_entries(metadata.get("tempos"), TempoChange.from_dict, "tempo")
        time_sigs = parse_entries(metadata.get("time-sigs"), TimeSigChange.from_dict, "time signature")
        return cls(tempos=tempos, time_sigs=time_sigs, settings=settings)

    def to_metadata(self) -> Dict[str, Any]:
        """Convert back to the metadata document shape."""
        return {
            "tempos": [t.to_dict() for t in self._tempos],
            "time-sigs": [s.to_dict() for s in self._time_sigs],
        }

    def tempo_at(self, time: float) -> float:
        """
        Get the tempo in effect at a time position.

        Args:
            time: Position in seconds

        Returns:
            BPM of the last change with start_time <= time (120 before any change)
        """
        bpm = BPM_DEFAULT
        for change in self._tempos:
            if change.start_time <= time:
                bpm = change.bpm
            else:
                break
        return bpm

    def time_sig_at(self, time: float) -> Tuple[int, int]:
        """
        Get the time signature in effect at a time position.

        Returns:
            (numerator, denominator), 4/4 before any change
        """
        signature = TIME_SIGNATURE_DEFAULT
        for change in self._time_sigs:
            if change.start_time <= time:
                signature = (change.numerator, change.denominator)
            else:
                break
        return signature

    def beat_duration_at(self, time: float) -> float:
        """Seconds per notated beat at a time position."""
        _, denominator = self.time_sig_at(time)
        return seconds_per_beat(self.tempo_at(time), denominator)

    def iter_beats(self, start_time: float, end_time: float) -> Iterator[BeatEvent]:
        """
        Walk beats forward from time 0, yielding those inside [start_time, end_time].

        Walking from 0 keeps measure / beat numbering globally correct. The
        walk stops after max_beat_walk_iterations steps regardless of input.
        """
        tempos = self._tempos
        time_sigs = self._time_sigs
        max_iterations = self.settings.max_beat_walk_iterations

        current_time = 0.0
        measure = 1
        beat = 1
        tempo_index = 0
        sig_index = 0
        beats_per_measure = time_sigs[0].numerator
        denominator = time_sigs[0].denominator
        iterations = 0

        while current_time <= end_time and iterations < max_iterations:
            iterations += 1

            while tempo_index < len(tempos) - 1 and tempos[tempo_index + 1].start_time <= current_time:
                tempo_index += 1
            tempo = tempos[tempo_index].bpm

            while sig_index < len(time_sigs) - 1 and time_sigs[sig_index + 1].start_time <= current_time:
                sig_index += 1
                beats_per_measure = time_sigs[sig_index].numerator
                denominator = time_sigs[sig_index].denominator
                # A shorter measure takes over mid-bar: start a fresh measure
                if beat > beats_per_measure:
                    beat = 1
                    measure += 1

            if current_time >= start_time:
                yield BeatEvent(time=current_time, measure=measure, beat=beat, tempo=tempo)

            current_time += seconds_per_beat(tempo, denominator)
            beat += 1
            if beat > beats_per_measure:
                beat = 1
                measure += 1

        if iterations >= max_iterations and current_time <= end_time:
            logger.warning(
                "Beat walk stopped after %d iterations at %.3fs (requested up to %.3fs)",
                max_iterations, current_time, end_time,
            )

    def beats_in_range(self, start_time: float, end_time: float) -> List[BeatEvent]:
        """
        Generate beat positions for a time range (for timeline rendering).

        Accounts for tempo and time signature changes throughout the song.

        Args:
            start_time: Start of visible range (seconds)
            end_time: End of visible range (seconds)

        Returns:
            List of BeatEvent with start_time <= time <= end_time
        """
        return list(self.iter_beats(start_time, end_time))

    def nearest_beat_info(self, time: float) -> Optional[BeatEvent]:
        """
        Find the beat closest to a time position.

        Searches a window of two beats on either side, sized from the
        tempo / time signature at the target. Earliest beat wins a tie.
        """
        time = max(0.0, time)
        margin = self.beat_duration_at(time) * 2

        closest = None
        min_diff = None
        for event in self.iter_beats(max(0.0, time - margin), time + margin):
            diff = abs(event.time - time)
            if min_diff is None or diff < min_diff:
                closest = event
                min_diff = diff
        return closest

    def nearest_beat(self, time: float) -> float:
        """
        Snap a time to the nearest beat.

        Args:
            time: Target time in seconds (negative clamps to 0)

        Returns:
            Time of the nearest beat in seconds
        """
        event = self.nearest_beat_info(time)
        if event is None:
            return max(0.0, time)
        return event.time


def parse_entries(entries, parse, kind: str) -> List:
    """Parse metadata entries, skipping malformed ones."""
    if not entries:
        return []

    parsed = []
    for entry in entries:
        try:
            parsed.append(parse(entry))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed %s entry %r: %s", kind, entry, e)
    return parsed
