"""
Per-track mute sections.

Each track owns an independent partition of its duration into muted and
unmuted sections. Edits address a track id and never touch other tracks.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from songline.models import Segment
from songline.partition import BeatGuardedPartition
from songline.settings import DEFAULT_SETTINGS, TimelineSettings

logger = logging.getLogger(__name__)


class TrackMuteSections(BeatGuardedPartition):
    """Partition of one track into muted / unmuted sections."""

    label_key = "muted"
    default_label = False


class MuteSections:
    """
    Mute sections for every track of a song, keyed by track id.

    Operations on a track without a partition are rejected like any other
    invalid edit (False / None / empty results).
    """

    def __init__(self, track=None, settings: Optional[TimelineSettings] = None):
        """
        Args:
            track: TempoTimeSignatureTrack used for the minimum-beat split policy
            settings: Tuning constants
        """
        self.track = track
        self.settings = settings or DEFAULT_SETTINGS
        self._partitions: Dict[str, TrackMuteSections] = {}

    def _new_partition(self, duration: float) -> TrackMuteSections:
        return TrackMuteSections(duration, track=self.track, settings=self.settings)

    def set_track(self, track):
        """Swap the tempo track used by every partition (metadata reload)."""
        self.track = track
        for partition in self._partitions.values():
            partition.track = track

    def track_ids(self) -> List[str]:
        """Ids of tracks that have mute sections."""
        return list(self._partitions)

    def __contains__(self, track_id: str) -> bool:
        return track_id in self._partitions

    def partition(self, track_id: str) -> Optional[TrackMuteSections]:
        """The partition for a track, or None."""
        return self._partitions.get(track_id)

    def reset(self, track_id: str, duration: float) -> bool:
        """
        Replace a track's sections with a single unmuted section.

        Returns:
            False if duration is not positive
        """
        if not track_id or duration <= 0:
            return False
        self._partitions[track_id] = self._new_partition(duration)
        logger.info("Reset mute sections for track %s (%.3fs)", track_id, duration)
        return True

    def initialize_if_missing(self, track_id: str, duration: float) -> bool:
        """
        Create a single unmuted section only if the track has none yet.

        Existing user edits survive duration re-detection.

        Returns:
            True if a partition was created
        """
        if track_id in self._partitions:
            return False
        return self.reset(track_id, duration)

    def reset_all(self, durations: Mapping[str, float]):
        """Drop all sections and reset every track with a known duration."""
        self._partitions = {}
        for track_id, duration in durations.items():
            if duration > 0:
                self._partitions[track_id] = self._new_partition(duration)

    def initialize_all(self, durations: Mapping[str, float]) -> bool:
        """
        Initialize tracks that have a duration but no sections.

        Returns:
            True if any track was initialized
        """
        initialized = False
        for track_id, duration in durations.items():
            if self.initialize_if_missing(track_id, duration):
                initialized = True
        return initialized

    def remove(self, track_id: str) -> bool:
        """Discard a track's sections (track closed)."""
        return self._partitions.pop(track_id, None) is not None

    def segments(self, track_id: str) -> Tuple[Segment, ...]:
        """A track's sections, empty if it has none."""
        partition = self._partitions.get(track_id)
        return partition.segments if partition else ()

    def split_at(self, track_id: str, time: float) -> bool:
        partition = self._partitions.get(track_id)
        return partition.split_at(time) if partition else False

    def merge_at(self, track_id: str, time: float) -> bool:
        partition = self._partitions.get(track_id)
        return partition.merge_at(time) if partition else False

    def move_boundary(self, track_id: str, time: float, new_time: float) -> bool:
        partition = self._partitions.get(track_id)
        return partition.move_boundary(time, new_time) if partition else False

    def toggle(self, track_id: str, index: int) -> Optional[bool]:
        """Flip mute on one section; returns the new state or None."""
        partition = self._partitions.get(track_id)
        return partition.toggle(index) if partition else None

    def section_at(self, track_id: str, time: float) -> Optional[Segment]:
        partition = self._partitions.get(track_id)
        return partition.segment_at(time) if partition else None

    def is_muted(self, track_id: str, time: float) -> bool:
        """True if the track is muted at a time (unknown tracks are unmuted)."""
        section = self.section_at(track_id, time)
        return section is not None and section.label

    def split_times(self, track_id: str) -> List[float]:
        partition = self._partitions.get(track_id)
        return partition.boundary_times() if partition else []

    def has_sections(self, track_id: str) -> bool:
        """True if the track has been split."""
        partition = self._partitions.get(track_id)
        return partition is not None and partition.has_multiple_segments()

    def to_mute_set(self, file_names: Mapping[str, str]) -> Dict[str, Any]:
        """
        Build the persisted mute set shape.

        Only tracks with at least one muted section are included.

        Args:
            file_names: Track id -> track file name

        Returns:
            {"tracks": {file_name: [{start, end, muted}]}}
        """
        tracks = {}
        for track_id, partition in self._partitions.items():
            if track_id not in file_names or not partition.any_labeled(True):
                continue
            tracks[file_names[track_id]] = partition.to_list()
        return {"tracks": tracks}

    def apply_mute_set(self, data: Dict[str, Any], file_names: Mapping[str, str]) -> int:
        """
        Apply a persisted mute set.

        Tracks not listed in the set are reset to a single unmuted section.
        Entries for unknown file names are ignored.

        Args:
            data: {"tracks": {file_name: [{start, end, muted}]}}
            file_names: Track id -> track file name

        Returns:
            Number of tracks that received sections from the set

        Raises:
            ValueError: If the document or a section list is malformed
        """
        tracks = data.get("tracks") if isinstance(data, dict) else None
        if not isinstance(tracks, dict):
            raise ValueError("Invalid mute set document: missing 'tracks' object")

        ids_by_name = {name: track_id for track_id, name in file_names.items()}
        parsed: Dict[str, TrackMuteSections] = {}
        for name, sections in tracks.items():
            track_id = ids_by_name.get(name)
            if track_id is None:
                logger.warning("Mute set refers to unknown track file %s", name)
                continue
            try:
                segments = TrackMuteSections.segments_from_list(sections)
            except (KeyError, TypeError) as e:
                raise ValueError(f"Invalid mute sections for {name}: {e}") from e
            parsed[track_id] = TrackMuteSections.from_segments(
                segments, settings=self.settings, track=self.track
            )

        for track_id, partition in list(self._partitions.items()):
            if track_id not in parsed:
                self._partitions[track_id] = self._new_partition(partition.duration)
        self._partitions.update(parsed)
        return len(parsed)
