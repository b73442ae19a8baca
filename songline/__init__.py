"""
Tempo-aware timeline and arrangement engine for Songline.

Modules:
- constants: Musical defaults and tuning constants
- settings: User configuration (~/.songline/settings.json)
- models: Immutable data structures (TempoChange, Segment, BeatEvent, etc.)
- tempo: Tempo / time signature lookup and beat walking
- beats: Drift-controlled beat position cache
- partition: Gapless segment partitions with split/merge/move/toggle
- sections: Arrangement sections (enabled/disabled) and legacy marker sections
- mute: Per-track mute sections
- virtual_timeline: Source span remapping into a contiguous timeline
- playback: Section skip and loop target planning
- metadata: Song metadata documents and the metadata cache
- commands: Command pattern for undo/redo
- session: Song timeline orchestrator
- persistence: Arrangement / mute set documents and session files
"""

__version__ = "0.1.0"
