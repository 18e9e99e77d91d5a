"""
Velocity and section envelope model.

Velocity grows with trajectory magnitude and is scaled by the volume of the
note's preset group. A group volume of 0 silences the note entirely.
"""
from typing import Optional

from core.config import SectionEnvelope
from core.constants import (
    BASE_VELOCITY,
    TRAJECTORY_VELOCITY_GAIN,
    MIN_VELOCITY,
    MAX_VELOCITY,
)
from core.models import Note

DEFAULT_ENVELOPE = SectionEnvelope()


def _clamp(value: float) -> float:
    return max(MIN_VELOCITY, min(MAX_VELOCITY, value))


def base_velocity(note: Note) -> float:
    """Trajectory-only velocity, clamped to 0.1-1.0 (no section envelope)."""
    return _clamp(BASE_VELOCITY + note.trajectory_magnitude * TRAJECTORY_VELOCITY_GAIN)


def section_volume(note: Note, sections: Optional[SectionEnvelope] = None) -> float:
    """Envelope volume for the note's group."""
    envelope = sections if sections is not None else DEFAULT_ENVELOPE
    return envelope.volume_for(note.group)


def is_silenced(note: Note, sections: Optional[SectionEnvelope] = None) -> bool:
    """True if the note's group is muted by the envelope."""
    return section_volume(note, sections) == 0


def calculate_velocity(note: Note, sections: Optional[SectionEnvelope] = None) -> float:
    """
    Calculate playback velocity for a note.

    Args:
        note: Note to play
        sections: Section envelope (default: built-in A/U/M envelope, M2 silent)

    Returns:
        0.0 for silenced groups, otherwise a velocity in 0.1-1.0
    """
    volume = section_volume(note, sections)
    if volume == 0:
        return 0.0
    raw = BASE_VELOCITY + note.trajectory_magnitude * TRAJECTORY_VELOCITY_GAIN
    return _clamp(raw * volume)
