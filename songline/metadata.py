"""
Song metadata documents.

Parses the per-song metadata document (tempos, time signatures, markers,
legacy named arrangements) and keeps loaded documents in an explicit cache
object owned by the application.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from songline.models import Marker, TempoChange, TimeSigChange
from songline.settings import TimelineSettings
from songline.tempo import TempoTimeSignatureTrack, parse_entries

logger = logging.getLogger(__name__)

DEFAULT_ARRANGEMENT = "Default"


@dataclass(frozen=True)
class SongMetadata:
    """
    Parsed song metadata document.

    Attributes:
        tempos: Tempo changes as found in the document
        time_sigs: Time signature changes as found in the document
        markers: Named markers
        arrangements: Legacy arrangement name -> marker section indices
    """
    tempos: Tuple[TempoChange, ...] = ()
    time_sigs: Tuple[TimeSigChange, ...] = ()
    markers: Tuple[Marker, ...] = ()
    arrangements: Dict[str, Tuple[int, ...]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SongMetadata":
        """
        Parse a metadata document.

        Malformed entries are skipped with a warning; a missing document gives
        empty metadata (defaults apply downstream).
        """
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Ignoring metadata document of type %s", type(data).__name__)
            return cls()

        arrangements = {}
        for entry in data.get("arrangements") or []:
            try:
                name = entry["name"]
                indices = tuple(entry.get("sections") or ())
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Skipping malformed arrangement entry %r: %s", entry, e)
                continue
            if name:
                arrangements[name] = indices

        return cls(
            tempos=tuple(parse_entries(data.get("tempos"), TempoChange.from_dict, "tempo")),
            time_sigs=tuple(parse_entries(data.get("time-sigs"), TimeSigChange.from_dict,
                                           "time signature")),
            markers=tuple(parse_entries(data.get("markers"), Marker.from_dict, "marker")),
            arrangements=arrangements,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the metadata document shape."""
        data: Dict[str, Any] = {}
        if self.tempos:
            data["tempos"] = [t.to_dict() for t in self.tempos]
        if self.time_sigs:
            data["time-sigs"] = [s.to_dict() for s in self.time_sigs]
        if self.markers:
            data["markers"] = [m.to_dict() for m in self.markers]
        if self.arrangements:
            data["arrangements"] = [
                {"name": name, "sections": list(indices)}
                for name, indices in self.arrangements.items()
            ]
        return data

    def tempo_track(self, settings: Optional[TimelineSettings] = None) -> TempoTimeSignatureTrack:
        """Build the tempo / time signature track for this song."""
        return TempoTimeSignatureTrack(self.tempos, self.time_sigs, settings=settings)

    def arrangement_names(self) -> List[str]:
        """Available arrangement names, always starting with Default."""
        return [DEFAULT_ARRANGEMENT] + list(self.arrangements)

    def arrangement_indices(self, name: Optional[str]) -> Optional[Tuple[int, ...]]:
        """Section indices of a named arrangement; None means all sections in order."""
        if not name or name == DEFAULT_ARRANGEMENT:
            return None
        indices = self.arrangements.get(name)
        if indices is None:
            logger.warning("Arrangement %r not found, using %s", name, DEFAULT_ARRANGEMENT)
        return indices


class MetadataCache:
    """
    Loaded metadata documents keyed by song name.

    One instance lives for the application session and is passed to the
    components that need lookups.
    """

    def __init__(self, loader: Optional[Callable[[str], Optional[Dict[str, Any]]]] = None):
        """
        Args:
            loader: Fetches the raw document for a song name (None if absent)
        """
        self.loader = loader
        self._entries: Dict[str, SongMetadata] = {}

    def __contains__(self, song_name: str) -> bool:
        return song_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, song_name: str) -> Optional[SongMetadata]:
        """Cached metadata, or None (never fetches)."""
        return self._entries.get(song_name)

    def put(self, song_name: str, metadata: SongMetadata):
        self._entries[song_name] = metadata

    def invalidate(self, song_name: str) -> bool:
        """Drop one song's metadata. Returns True if it was cached."""
        return self._entries.pop(song_name, None) is not None

    def clear(self):
        self._entries.clear()

    def load(self, song_name: str) -> Optional[SongMetadata]:
        """Cached metadata, fetching it through the loader on a miss."""
        if song_name in self._entries:
            return self._entries[song_name]
        return self.refresh(song_name)

    def refresh(self, song_name: str,
                fetch: Optional[Callable[[str], Optional[Dict[str, Any]]]] = None) -> Optional[SongMetadata]:
        """
        Fetch a song's metadata again, bypassing the cache.

        Args:
            song_name: Song to fetch
            fetch: Loader override for this call

        Returns:
            Fresh metadata, or None if the document is missing or unreadable
        """
        self.invalidate(song_name)
        fetch = fetch or self.loader
        if fetch is None:
            logger.warning("No metadata loader configured for %s", song_name)
            return None

        try:
            document = fetch(song_name)
        except (IOError, ValueError) as e:
            logger.warning("Failed to load metadata for %s: %s", song_name, e)
            return None

        if document is None:
            logger.warning("No metadata found for %s", song_name)
            return None

        metadata = SongMetadata.from_dict(document)
        self._entries[song_name] = metadata
        return metadata

    def refresh_with_retry(self, song_name: str, expected: Callable[[Optional[SongMetadata]], bool],
                           **kwargs) -> Optional[SongMetadata]:
        """Refresh until a change is visible (see refresh_with_retry)."""
        return refresh_with_retry(lambda: self.refresh(song_name), expected, **kwargs)


def refresh_with_retry(fetch: Callable[[], Any], expected: Callable[[Any], bool],
                       max_retries: int = 20, delay: float = 1.5, backoff: float = 1.0,
                       sleep: Callable[[float], None] = time.sleep) -> Any:
    """
    Poll fetch() until expected(result) holds.

    Used after publishing or deleting a document while remote caches catch
    up. Waits delay seconds between attempts, multiplying the wait by
    backoff after each one.

    Args:
        fetch: Produces the current value
        expected: Predicate that is True once the change is present
        max_retries: Number of attempts before giving up
        delay: Initial wait between attempts (seconds)
        backoff: Wait multiplier per attempt (1.0 = constant)
        sleep: Wait function

    Returns:
        The first value satisfying expected, otherwise the last value fetched
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1, got {max_retries}")

    wait = delay
    value = None
    for attempt in range(1, max_retries + 1):
        value = fetch()
        if expected(value):
            logger.debug("Expected change present after %d attempt(s)", attempt)
            return value
        if attempt < max_retries:
            sleep(wait)
            wait *= backoff

    logger.warning("Expected change not visible after %d attempts; using last result", max_retries)
    return value
