"""
Arrangement / mute set documents and session files.

Arrangements and mute sets are exchanged as JSON documents:
- arrangement: {"sections": [{"start", "end", "enabled"}]}
- mute set:    {"tracks": {"<trackFileName>": [{"start", "end", "muted"}]}}

Whole sessions are saved to .songline files:
- MessagePack binary format (fast, compact)
- Contains: metadata document, arrangement, every track's mute sections, view
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import msgpack

from songline.mute import MuteSections, TrackMuteSections
from songline.sections import ArrangementSections
from songline.session import SongTimeline
from songline.settings import TimelineSettings

logger = logging.getLogger(__name__)

SESSION_EXTENSION = ".songline"
SESSION_VERSION = "1.0"


# ============================================================================
# Arrangement documents
# ============================================================================

def arrangement_to_dict(sections: ArrangementSections) -> Dict[str, Any]:
    """Convert arrangement sections to the persisted shape."""
    return sections.to_dict()


def arrangement_from_dict(data: Dict[str, Any], track=None,
                          settings: Optional[TimelineSettings] = None) -> ArrangementSections:
    """
    Build arrangement sections from the persisted shape.

    Raises:
        ValueError: If the document is not a gapless list of sections
    """
    if not isinstance(data, dict):
        raise ValueError(f"Arrangement document must be an object, got {type(data).__name__}")
    return ArrangementSections.from_dict(data, track=track, settings=settings)


def arrangement_to_json(sections: ArrangementSections) -> str:
    return json.dumps(arrangement_to_dict(sections))


def arrangement_from_json(text: str, track=None,
                          settings: Optional[TimelineSettings] = None) -> ArrangementSections:
    """
    Parse an arrangement JSON document.

    Raises:
        ValueError: If the text is not valid JSON or not an arrangement
    """
    return arrangement_from_dict(json.loads(text), track=track, settings=settings)


# ============================================================================
# Mute set documents
# ============================================================================

def mute_set_to_dict(mutes: MuteSections, file_names: Mapping[str, str]) -> Dict[str, Any]:
    """Convert mute sections to the persisted shape (muted tracks only)."""
    return mutes.to_mute_set(file_names)


def validate_mute_set(data: Any) -> Dict[str, Any]:
    """
    Check that a mute set document has the persisted shape.

    Returns:
        The document, unchanged

    Raises:
        ValueError: If a track entry is not a gapless section list
    """
    if not isinstance(data, dict) or not isinstance(data.get("tracks"), dict):
        raise ValueError("Mute set document must be an object with a 'tracks' object")

    for name, sections in data["tracks"].items():
        try:
            segments = TrackMuteSections.segments_from_list(sections)
            TrackMuteSections.from_segments(segments)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid mute sections for {name}: {e}") from e
    return data


def mute_set_to_json(mutes: MuteSections, file_names: Mapping[str, str]) -> str:
    return json.dumps(mute_set_to_dict(mutes, file_names))


def mute_set_from_json(text: str) -> Dict[str, Any]:
    """
    Parse and validate a mute set JSON document.

    Raises:
        ValueError: If the text is not valid JSON or not a mute set
    """
    return validate_mute_set(json.loads(text))


# ============================================================================
# Session files
# ============================================================================

def session_to_dict(timeline: SongTimeline) -> Dict[str, Any]:
    """Snapshot everything needed to reopen a session."""
    file_names = timeline.file_names
    tracks = []
    for track_id in timeline.mutes.track_ids():
        partition = timeline.mutes.partition(track_id)
        tracks.append({
            "id": track_id,
            "fileName": file_names.get(track_id, track_id),
            "sections": partition.to_list(),
        })

    return {
        "version": SESSION_VERSION,
        "songName": timeline.song_name,
        "metadata": timeline.metadata.to_dict(),
        "arrangement": timeline.arrangement_document(),
        "tracks": tracks,
        "view": {
            "zoom": timeline.zoom,
            "offset": timeline.offset,
            "snapToBeat": timeline.snap_to_beat,
        },
    }


def session_from_dict(data: Dict[str, Any],
                      settings: Optional[TimelineSettings] = None) -> SongTimeline:
    """
    Rebuild a SongTimeline from a session snapshot.

    Raises:
        ValueError: If the snapshot is malformed or from another major version
    """
    version = str(data.get("version", "unknown"))
    if not version.startswith("1."):
        raise ValueError(f"Incompatible session version: {version}. Expected 1.x")

    timeline = SongTimeline(settings=settings)
    timeline.song_name = data.get("songName")
    timeline.load_metadata(data.get("metadata"))

    if data.get("arrangement") is not None:
        timeline.apply_arrangement(data["arrangement"])

    for entry in data.get("tracks") or []:
        track_id = entry["id"]
        segments = TrackMuteSections.segments_from_list(entry["sections"])
        timeline.add_track(track_id, segments[-1].end, entry.get("fileName"))
        timeline.mutes.partition(track_id).restore(tuple(segments))

    view = data.get("view") or {}
    timeline.zoom = float(view.get("zoom", 1.0))
    timeline.offset = float(view.get("offset", 0.0))
    timeline.snap_to_beat = bool(view.get("snapToBeat", False))

    timeline.history.clear()
    timeline.mark_arrangement_saved()
    timeline.mark_mute_set_saved()
    return timeline


class SessionFile:
    """Handles .songline session file I/O."""

    @staticmethod
    def save(timeline: SongTimeline, path: Union[str, Path]) -> Path:
        """
        Save a session to a .songline file.

        Args:
            timeline: Session to save
            path: Destination file path

        Returns:
            The path written (with the .songline extension)

        Raises:
            IOError: If save fails
        """
        path = Path(path)

        # Ensure .songline extension
        if path.suffix != SESSION_EXTENSION:
            path = path.with_suffix(SESSION_EXTENSION)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            packed_data = msgpack.packb(session_to_dict(timeline), use_bin_type=True)
            with open(path, "wb") as f:
                f.write(packed_data)
        except (OSError, TypeError, ValueError) as e:
            raise IOError(f"Failed to save session to {path}: {e}") from e

        timeline.mark_arrangement_saved()
        timeline.mark_mute_set_saved()
        logger.info("Saved session to %s", path)
        return path

    @staticmethod
    def load(path: Union[str, Path], settings: Optional[TimelineSettings] = None) -> SongTimeline:
        """
        Load a session from a .songline file.

        Args:
            path: Source file path
            settings: Tuning constants for the restored session

        Returns:
            Restored SongTimeline

        Raises:
            IOError: If the file cannot be read
            ValueError: If file format invalid
        """
        path = Path(path)
        if not path.exists():
            raise IOError(f"Session file not found: {path}")

        try:
            with open(path, "rb") as f:
                packed_data = f.read()
        except OSError as e:
            raise IOError(f"Failed to load session from {path}: {e}") from e

        try:
            data = msgpack.unpackb(packed_data, raw=False)
            if not isinstance(data, dict):
                raise ValueError("session root must be a map")
            return session_from_dict(data, settings=settings)
        except (msgpack.exceptions.UnpackException, msgpack.exceptions.ExtraData,
                IndexError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid {SESSION_EXTENSION} file {path}: {e}") from e

    @staticmethod
    def auto_save(timeline: SongTimeline, session_name: str) -> Optional[Path]:
        """
        Auto-save a session to the per-user autosave folder.

        Failures are logged, never raised.
        """
        try:
            return SessionFile.save(timeline, SessionFile.get_auto_save_path(session_name))
        except IOError as e:
            logger.warning("Auto-save failed: %s", e)
            return None

    @staticmethod
    def get_auto_save_path(session_name: str, root: Optional[Path] = None) -> Path:
        """
        Get path to the auto-save file for a session.

        Args:
            session_name: Session (song) name
            root: Autosave directory (defaults to ~/.songline/autosave)
        """
        auto_save_dir = root if root is not None else Path.home() / ".songline" / "autosave"

        # Sanitize name for file system
        safe_name = "".join(c for c in session_name if c.isalnum() or c in (" ", "-", "_")).strip()
        if not safe_name:
            safe_name = "untitled"

        return auto_save_dir / f"{safe_name}{SESSION_EXTENSION}"
