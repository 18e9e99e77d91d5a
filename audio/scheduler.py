"""
Note timing shared by the players.

A phrase of N notes spread over a total duration gives every note an equal
slot. The offline renderer, the offline player and the step sequencer all
read slot times, sounding lengths, velocities and the note index at a time
from one NoteTimeline.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.config import SectionEnvelope
from core.constants import DEFAULT_OVERLAP_RATIO
from core.models import Note
from core.velocity import calculate_velocity


@dataclass(frozen=True)
class NoteSlot:
    """
    One note's place in the phrase.

    Attributes:
        index: Position in the phrase
        note: The note
        start: Start time (seconds from phrase start)
        duration: Sounding length (seconds)
        velocity: Playback velocity (0.0 = silenced)
    """
    index: int
    note: Note
    start: float
    duration: float
    velocity: float

    @property
    def is_silenced(self) -> bool:
        return self.velocity == 0


class NoteTimeline:
    """Equal-slot timing for a list of notes."""

    def __init__(self, notes: Sequence[Note], total_duration: float,
                 overlap_ratio: float = DEFAULT_OVERLAP_RATIO,
                 sections: Optional[SectionEnvelope] = None):
        """
        Initialize timeline.

        Args:
            notes: Notes in play order
            total_duration: Length of the whole phrase (seconds)
            overlap_ratio: Sounding length relative to the slot (>1 blends
                neighbouring notes)
            sections: Section envelope for velocities
        """
        if total_duration < 0:
            raise ValueError(f"Total duration must be non-negative, got {total_duration}")
        if overlap_ratio <= 0:
            raise ValueError(f"Overlap ratio must be positive, got {overlap_ratio}")

        self.notes: List[Note] = list(notes)
        self.total_duration = total_duration
        self.overlap_ratio = overlap_ratio
        self.sections = sections

    def __len__(self) -> int:
        return len(self.notes)

    @property
    def note_duration(self) -> float:
        """Slot length; 0 for an empty timeline."""
        if not self.notes:
            return 0.0
        return self.total_duration / len(self.notes)

    @property
    def sound_duration(self) -> float:
        """How long each note sounds."""
        return self.note_duration * self.overlap_ratio

    def slot(self, index: int) -> NoteSlot:
        note = self.notes[index]
        return NoteSlot(
            index=index,
            note=note,
            start=index * self.note_duration,
            duration=self.sound_duration,
            velocity=calculate_velocity(note, self.sections),
        )

    def slots(self) -> List[NoteSlot]:
        """All slots in play order."""
        return [self.slot(i) for i in range(len(self.notes))]

    def index_at(self, time: float) -> int:
        """
        Note index playing at time.

        Floored and clamped to 0..len-1; 0 for an empty timeline.
        """
        return index_at(time, self.note_duration, len(self.notes))


def index_at(time: float, note_duration: float, note_count: int) -> int:
    """Floor time into a slot index clamped to the last note."""
    if note_count <= 0 or note_duration <= 0:
        return 0
    index = int(math.floor(time / note_duration))
    return max(0, min(index, note_count - 1))
