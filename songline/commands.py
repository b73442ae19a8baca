"""
Command pattern for undo/redo support.

All section edits go through commands to enable:
- Full undo/redo history
- Rejected edits that never reach the history
- One code path for arrangement and per-track mute edits

Commands operate on a timeline state object exposing
partition_for(track_id) and mark_modified(track_id). A track_id of None
addresses the song-wide arrangement sections.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from songline.models import Segment


class Command(ABC):
    """Base class for all commands."""

    @abstractmethod
    def execute(self, state) -> bool:
        """
        Execute command against a timeline state.

        Args:
            state: Timeline state (SongTimeline)

        Returns:
            True if the state changed, False if the edit was rejected
        """
        raise NotImplementedError()

    @abstractmethod
    def undo(self, state):
        """
        Undo command, restoring the state before execution.

        Args:
            state: Timeline state (SongTimeline)
        """
        raise NotImplementedError()

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable command description for UI."""
        raise NotImplementedError()


class PartitionCommand(Command):
    """Edit of one partition, undone by restoring a snapshot."""

    def __init__(self, track_id: Optional[str] = None):
        """
        Args:
            track_id: Track whose mute sections to edit, None for the arrangement
        """
        self.track_id = track_id
        self._previous: Optional[Tuple[Segment, ...]] = None

    @abstractmethod
    def apply(self, partition) -> bool:
        """Mutate the partition; return False to reject."""
        raise NotImplementedError()

    def execute(self, state) -> bool:
        partition = state.partition_for(self.track_id)
        if partition is None:
            return False

        snapshot = partition.snapshot()
        if not self.apply(partition):
            return False

        self._previous = snapshot
        state.mark_modified(self.track_id)
        return True

    def undo(self, state):
        if self._previous is None:
            raise ValueError("Command has not been executed yet")

        partition = state.partition_for(self.track_id)
        if partition is None:
            raise ValueError(f"No sections for track {self.track_id}")

        partition.restore(self._previous)
        state.mark_modified(self.track_id)

    @property
    def _target(self) -> str:
        return "Section" if self.track_id is None else "Mute Section"


class SplitSectionCommand(PartitionCommand):
    """Split the section containing a time."""

    def __init__(self, time: float, track_id: Optional[str] = None):
        super().__init__(track_id)
        self.time = time

    def apply(self, partition) -> bool:
        return partition.split_at(self.time)

    @property
    def description(self) -> str:
        return f"Split {self._target} at {self.time:.2f}s"


class MergeSectionCommand(PartitionCommand):
    """Remove the boundary at a time."""

    def __init__(self, time: float, track_id: Optional[str] = None):
        super().__init__(track_id)
        self.time = time

    def apply(self, partition) -> bool:
        return partition.merge_at(self.time)

    @property
    def description(self) -> str:
        return f"Merge {self._target}s at {self.time:.2f}s"


class MoveBoundaryCommand(PartitionCommand):
    """Move a boundary to a new time."""

    def __init__(self, time: float, new_time: float, track_id: Optional[str] = None):
        super().__init__(track_id)
        self.time = time
        self.new_time = new_time

    def apply(self, partition) -> bool:
        return partition.move_boundary(self.time, self.new_time)

    @property
    def description(self) -> str:
        return f"Move {self._target} Boundary"


class ToggleSectionCommand(PartitionCommand):
    """Flip enabled (arrangement) or muted (track) on one section."""

    def __init__(self, index: int, track_id: Optional[str] = None):
        super().__init__(track_id)
        self.index = index
        self.new_label: Optional[bool] = None

    def apply(self, partition) -> bool:
        self.new_label = partition.toggle(self.index)
        return self.new_label is not None

    @property
    def description(self) -> str:
        if self.track_id is None:
            return "Enable Section" if self.new_label else "Disable Section"
        return "Mute Section" if self.new_label else "Unmute Section"


class ResetSectionsCommand(PartitionCommand):
    """Replace every split with one full-length default section."""

    def apply(self, partition) -> bool:
        if not partition.has_multiple_segments() and partition[0].label == partition.default_label:
            return False
        partition.reset()
        return True

    @property
    def description(self) -> str:
        return f"Clear {self._target}s"


class CommandHistory:
    """Manages undo/redo command history."""

    def __init__(self, state, max_history: int = 100):
        """
        Args:
            state: Timeline state to operate on
            max_history: Maximum number of commands to keep
        """
        self.state = state
        self.max_history = max_history
        self._undo_stack: List[Command] = []
        self._redo_stack: List[Command] = []

    def execute(self, command: Command) -> bool:
        """Execute command and add it to history if it was accepted."""
        if not command.execute(self.state):
            return False

        self._undo_stack.append(command)

        # Limit history size
        if len(self._undo_stack) > self.max_history:
            self._undo_stack.pop(0)

        # Clear redo stack when new command is executed
        self._redo_stack.clear()
        return True

    def undo(self) -> bool:
        """Undo last command. Returns True if successful."""
        if not self.can_undo():
            return False

        command = self._undo_stack.pop()
        command.undo(self.state)
        self._redo_stack.append(command)
        return True

    def redo(self) -> bool:
        """Redo last undone command. Returns True if successful."""
        if not self.can_redo():
            return False

        command = self._redo_stack.pop()
        if not command.execute(self.state):
            # State diverged since the undo; the command no longer applies
            self._redo_stack.clear()
            return False

        self._undo_stack.append(command)
        return True

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    def clear(self):
        """Clear all command history."""
        self._undo_stack.clear()
        self._redo_stack.clear()

    def get_undo_description(self) -> Optional[str]:
        """Get description of command that would be undone."""
        if self.can_undo():
            return self._undo_stack[-1].description
        return None

    def get_redo_description(self) -> Optional[str]:
        """Get description of command that would be redone."""
        if self.can_redo():
            return self._redo_stack[-1].description
        return None
