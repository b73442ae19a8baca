"""
Playback planning over arrangement sections.

Pure functions that tell the audio scheduler when to jump past disabled
sections and where a loop should restart. Nothing here schedules audio.
"""
from typing import Optional, Tuple

from songline.sections import ArrangementSections

# Offset used to look just past a section end
_PROBE = 0.001


def next_skip(sections: ArrangementSections, position: float,
              duration: Optional[float] = None) -> Optional[Tuple[float, Optional[float]]]:
    """
    Find the next jump over disabled sections.

    Args:
        sections: Arrangement sections
        position: Current playback position (seconds)
        duration: Length to search up to (defaults to the arrangement duration)

    Returns:
        (skip_time, target) where target is the start of the next enabled
        section, or None to stop playback. Returns None if no skip is needed.
    """
    if duration is None:
        duration = sections.duration

    current = sections.section_at_time(position)
    if current is None:
        return None

    if not current.label:
        following = sections.next_enabled_section_after(position)
        return position, following.start if following else None

    check = current.end
    while check < duration:
        upcoming = sections.section_at_time(check + _PROBE)
        if upcoming is None:
            break
        if not upcoming.label:
            following = sections.next_enabled_section_after(check)
            return check, following.start if following else None
        check = upcoming.end

    return None


def loop_target(sections: ArrangementSections, loop_start: float, loop_end: float) -> Optional[float]:
    """
    Where a loop restarts, skipping disabled sections at the loop start.

    Returns:
        Restart position, or None if no enabled audio lies inside the loop
    """
    if not sections.has_disabled_sections():
        return loop_start

    at_start = sections.section_at_time(loop_start)
    if at_start is not None and not at_start.label:
        following = sections.first_enabled_section_at_or_after(loop_start)
        if following is not None and following.start < loop_end:
            return following.start
        return None

    return loop_start
