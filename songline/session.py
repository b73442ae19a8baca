"""
Song timeline session.

SongTimeline owns everything the timeline engine knows about one open song:
tempo data, arrangement sections, per-track mute sections and the derived
virtual timeline and beat cache. Edits go through commands; after each
accepted edit the derived structures are rebuilt and listeners are told
what changed. The engine modules it drives know nothing about listeners.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from songline.beats import BeatPositionCache
from songline.commands import (
    CommandHistory,
    MergeSectionCommand,
    MoveBoundaryCommand,
    ResetSectionsCommand,
    SplitSectionCommand,
    ToggleSectionCommand,
)
from songline.constants import pixel_to_time, time_to_pixel
from songline.metadata import MetadataCache, SongMetadata
from songline.models import BeatEvent, Segment
from songline.mute import MuteSections
from songline.partition import SegmentPartition
from songline.playback import loop_target, next_skip
from songline.sections import ArrangementSections
from songline.settings import DEFAULT_SETTINGS, TimelineSettings
from songline.tempo import TempoTimeSignatureTrack
from songline.virtual_timeline import VirtualTimeline

logger = logging.getLogger(__name__)

# TimelineChange kinds
CHANGE_DURATION = "duration"
CHANGE_METADATA = "metadata"
CHANGE_ARRANGEMENT = "arrangement"
CHANGE_MUTE = "mute"
CHANGE_TRACKS = "tracks"
CHANGE_VIEW = "view"


@dataclass(frozen=True)
class TimelineChange:
    """
    Notification sent to listeners after the timeline changed.

    Attributes:
        kind: What changed (one of the CHANGE_* constants)
        track_id: Affected track for mute changes, else None
    """
    kind: str
    track_id: Optional[str] = None


TimelineListener = Callable[[TimelineChange], None]


class SongTimeline:
    """
    Timeline state for one song.

    Manages:
    - Tempo / time signature track built from song metadata
    - Arrangement sections over the song duration
    - Mute sections for each track
    - Derived virtual timeline and beat cache
    - Undo/redo history and unsaved-change flags
    """

    def __init__(self, settings: Optional[TimelineSettings] = None,
                 metadata_cache: Optional[MetadataCache] = None):
        """
        Args:
            settings: Tuning constants (defaults when omitted)
            metadata_cache: Application metadata cache used by load_song()
        """
        self.settings = settings or DEFAULT_SETTINGS
        self.metadata_cache = metadata_cache
        self.song_name: Optional[str] = None
        self.metadata = SongMetadata()
        self.track = TempoTimeSignatureTrack(settings=self.settings)
        self.arrangement: Optional[ArrangementSections] = None
        self.mutes = MuteSections(track=self.track, settings=self.settings)
        self.history = CommandHistory(self, max_history=self.settings.undo_limit)

        self.zoom = 1.0
        self.offset = 0.0
        self.snap_to_beat = False

        self._duration: Optional[float] = None
        self._file_names: Dict[str, str] = {}
        self._virtual_timeline = VirtualTimeline(settings=self.settings)
        self._beats: Optional[BeatPositionCache] = None
        self._arrangement_modified = False
        self._mute_set_modified = False
        self._listeners: List[TimelineListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: TimelineListener):
        """Register a callable that receives TimelineChange notifications."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: TimelineListener) -> bool:
        """Unregister a listener. Returns True if it was registered."""
        if listener in self._listeners:
            self._listeners.remove(listener)
            return True
        return False

    def _notify(self, kind: str, track_id: Optional[str] = None):
        change = TimelineChange(kind=kind, track_id=track_id)
        for listener in list(self._listeners):
            listener(change)

    # ------------------------------------------------------------------
    # Song setup
    # ------------------------------------------------------------------

    @property
    def duration(self) -> Optional[float]:
        """Source duration in seconds, None until known."""
        return self._duration

    def set_duration(self, duration: float) -> bool:
        """
        Set the song duration once decoding reports it.

        Creates a single enabled arrangement section. A changed duration
        replaces the arrangement and clears undo history.

        Returns:
            False if duration is not positive
        """
        if duration <= 0:
            logger.warning("Ignoring non-positive song duration %r", duration)
            return False
        if self._duration == duration and self.arrangement is not None:
            return True

        self._duration = float(duration)
        self.arrangement = ArrangementSections(self._duration, track=self.track, settings=self.settings)
        self.history.clear()
        self._arrangement_modified = False
        logger.info("Song duration set to %.3fs", self._duration)

        self.recompute()
        self._notify(CHANGE_DURATION)
        return True

    def load_metadata(self, metadata: Union[SongMetadata, Dict[str, Any], None]):
        """
        Replace tempo / time signature data from a metadata document.

        Existing sections are kept; only the beat grid changes.
        """
        if not isinstance(metadata, SongMetadata):
            metadata = SongMetadata.from_dict(metadata)

        self.metadata = metadata
        self.track = metadata.tempo_track(self.settings)
        if self.arrangement is not None:
            self.arrangement.track = self.track
        self.mutes.set_track(self.track)

        self.recompute()
        self._notify(CHANGE_METADATA)

    def load_song(self, song_name: str) -> bool:
        """
        Load metadata for a song through the metadata cache.

        Missing metadata is not an error; defaults apply.

        Returns:
            True if a metadata document was found
        """
        self.song_name = song_name
        metadata = self.metadata_cache.load(song_name) if self.metadata_cache else None
        self.load_metadata(metadata)
        return metadata is not None

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    def add_track(self, track_id: str, duration: float, file_name: Optional[str] = None) -> bool:
        """
        Register a track and give it mute sections if it has none yet.

        Returns:
            True if mute sections were created
        """
        self._file_names[track_id] = file_name or track_id
        created = self.mutes.initialize_if_missing(track_id, duration)
        if created:
            self._notify(CHANGE_TRACKS, track_id)
        return created

    def remove_track(self, track_id: str) -> bool:
        """Forget a closed track and its mute sections."""
        self._file_names.pop(track_id, None)
        removed = self.mutes.remove(track_id)
        if removed:
            self.history.clear()
            self._notify(CHANGE_TRACKS, track_id)
        return removed

    @property
    def file_names(self) -> Dict[str, str]:
        """Track id -> track file name."""
        return dict(self._file_names)

    # ------------------------------------------------------------------
    # Command state interface
    # ------------------------------------------------------------------

    def partition_for(self, track_id: Optional[str]) -> Optional[SegmentPartition]:
        """Arrangement sections for None, else the track's mute sections."""
        if track_id is None:
            return self.arrangement
        return self.mutes.partition(track_id)

    def mark_modified(self, track_id: Optional[str]):
        """Record an accepted edit, rebuild derived data and notify."""
        if track_id is None:
            self._arrangement_modified = True
            self.recompute()
            self._notify(CHANGE_ARRANGEMENT)
        else:
            self._mute_set_modified = True
            self._notify(CHANGE_MUTE, track_id)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _snap(self, time: float, snap: Optional[bool]) -> float:
        if snap is None:
            snap = self.snap_to_beat
        return self.track.nearest_beat(time) if snap else time

    def split(self, time: float, track_id: Optional[str] = None, snap: Optional[bool] = None) -> bool:
        """Split a section (arrangement when track_id is None)."""
        return self.history.execute(SplitSectionCommand(self._snap(time, snap), track_id))

    def merge(self, time: float, track_id: Optional[str] = None) -> bool:
        """Remove the boundary at a time."""
        return self.history.execute(MergeSectionCommand(time, track_id))

    def move(self, time: float, new_time: float, track_id: Optional[str] = None,
             snap: Optional[bool] = None) -> bool:
        """Move the boundary at time to new_time."""
        return self.history.execute(MoveBoundaryCommand(time, self._snap(new_time, snap), track_id))

    def toggle(self, index: int, track_id: Optional[str] = None) -> Optional[bool]:
        """
        Flip a section's enabled (arrangement) or muted (track) flag.

        Returns:
            The new flag, or None if the index is invalid
        """
        command = ToggleSectionCommand(index, track_id)
        if not self.history.execute(command):
            return None
        return command.new_label

    def reset_sections(self, track_id: Optional[str] = None) -> bool:
        """Clear all splits (undoable)."""
        return self.history.execute(ResetSectionsCommand(track_id))

    def split_at_pixel(self, pixel_x: float, track_id: Optional[str] = None,
                       snap: Optional[bool] = None) -> bool:
        """
        Split at an on-screen position.

        Rejected when the split would land closer than min_split_distance_px
        to an existing boundary or either end at the current zoom.
        """
        partition = self.partition_for(track_id)
        if partition is None:
            return False

        time = self._snap(self.pixel_to_time(pixel_x), snap)
        edges = [0.0, partition.duration] + partition.boundary_times()
        pixels_per_second = self.settings.base_pixels_per_second * self.zoom
        for edge in edges:
            if abs(time - edge) * pixels_per_second < self.settings.min_split_distance_px:
                logger.debug("Split at %.3fs rejected: too close to boundary %.3fs", time, edge)
                return False

        return self.history.execute(SplitSectionCommand(time, track_id))

    def undo(self) -> bool:
        return self.history.undo()

    def redo(self) -> bool:
        return self.history.redo()

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    def recompute(self):
        """Rebuild the virtual timeline and beat cache from scratch."""
        if self.arrangement is None:
            self._virtual_timeline = VirtualTimeline(settings=self.settings)
            self._beats = None
            return

        self._virtual_timeline = VirtualTimeline.from_partition(self.arrangement, self.settings)
        self._beats = self._virtual_timeline.beat_positions(self.track, self.settings)

    @property
    def virtual_timeline(self) -> VirtualTimeline:
        return self._virtual_timeline

    @property
    def beats(self) -> Optional[BeatPositionCache]:
        """Beat cache in virtual time, None until the duration is known."""
        return self._beats

    def virtual_duration(self) -> float:
        """Length of what the listener hears."""
        return self._virtual_timeline.total_duration()

    def to_virtual_time(self, source_time: float) -> float:
        return self._virtual_timeline.to_virtual_time(source_time)

    def to_source_time(self, virtual_time: float) -> float:
        return self._virtual_timeline.to_source_time(virtual_time)

    def beats_in_view(self, start_time: float, end_time: float) -> List[BeatEvent]:
        """Ruler beats for a virtual time range."""
        if self._beats is None:
            return self.track.beats_in_range(start_time, end_time)
        return self._beats.in_range(start_time, end_time)

    def sections(self, track_id: Optional[str] = None) -> List[Segment]:
        """Sections for rendering (arrangement when track_id is None)."""
        partition = self.partition_for(track_id)
        return list(partition.segments) if partition is not None else []

    # ------------------------------------------------------------------
    # Playback planning
    # ------------------------------------------------------------------

    def next_skip(self, position: float):
        """Next jump over disabled sections (see playback.next_skip)."""
        if self.arrangement is None:
            return None
        return next_skip(self.arrangement, position)

    def loop_target(self, loop_start: float, loop_end: float) -> Optional[float]:
        if self.arrangement is None:
            return loop_start
        return loop_target(self.arrangement, loop_start, loop_end)

    def is_muted(self, track_id: str, time: float) -> bool:
        return self.mutes.is_muted(track_id, time)

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def set_view(self, zoom: Optional[float] = None, offset: Optional[float] = None):
        """Update zoom / timeline offset used for pixel conversions."""
        if zoom is not None:
            if zoom <= 0:
                raise ValueError(f"Zoom must be positive, got {zoom}")
            self.zoom = zoom
        if offset is not None:
            self.offset = offset
        self._notify(CHANGE_VIEW)

    def pixel_to_time(self, pixel_x: float) -> float:
        return pixel_to_time(pixel_x, self.zoom, self.offset, self.settings.base_pixels_per_second)

    def time_to_pixel(self, time: float, scroll: float = 0.0) -> float:
        return time_to_pixel(time, self.zoom, self.offset, scroll, self.settings.base_pixels_per_second)

    # ------------------------------------------------------------------
    # Saved state
    # ------------------------------------------------------------------

    def is_arrangement_modified(self) -> bool:
        """Check if arrangement sections have unsaved changes."""
        return self._arrangement_modified

    def is_mute_set_modified(self) -> bool:
        """Check if mute sections have unsaved changes."""
        return self._mute_set_modified

    def mark_arrangement_saved(self):
        self._arrangement_modified = False

    def mark_mute_set_saved(self):
        self._mute_set_modified = False

    def arrangement_document(self) -> Optional[Dict[str, Any]]:
        """Persisted arrangement shape, None before the duration is known."""
        return self.arrangement.to_dict() if self.arrangement is not None else None

    def apply_arrangement(self, data: Dict[str, Any]):
        """
        Replace arrangement sections with a persisted arrangement.

        Raises:
            ValueError: If the document is malformed
        """
        self.arrangement = ArrangementSections.from_dict(data, track=self.track, settings=self.settings)
        self._duration = self.arrangement.duration
        self.history.clear()
        self._arrangement_modified = False
        self.recompute()
        self._notify(CHANGE_ARRANGEMENT)

    def mute_set_document(self) -> Dict[str, Any]:
        """Persisted mute set shape (only tracks with muted sections)."""
        return self.mutes.to_mute_set(self._file_names)

    def apply_mute_set(self, data: Dict[str, Any]) -> int:
        """
        Apply a persisted mute set to the open tracks.

        Raises:
            ValueError: If the document is malformed
        """
        applied = self.mutes.apply_mute_set(data, self._file_names)
        self.history.clear()
        self._mute_set_modified = False
        self._notify(CHANGE_MUTE)
        return applied
