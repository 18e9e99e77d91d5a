"""
Step sequencer: plays notes one after another as live voices.

Each step releases the previous voice, voices the current note for its slot
(minus a short gap) and schedules the next step one slot later.
"""
import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence

from audio.base import SynthesisEngine, VoiceHandle
from audio.clock import Clock
from audio.scheduler import NoteTimeline
from core.config import SectionEnvelope
from core.constants import DEFAULT_VOICE_VOLUME_DB, MIN_STEP_DURATION, STEP_GAP
from core.models import Note

logger = logging.getLogger(__name__)

DEFAULT_SEQUENCE_DURATION = 12.0


class SequencerState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"


class StepSequencerPlayer:
    """
    Note-by-note live player.

    Callbacks:
        on_note_start(note, index)
        on_playback_end()
    """

    def __init__(self, engine: SynthesisEngine, clock: Clock,
                 sections: Optional[SectionEnvelope] = None):
        self.engine = engine
        self.clock = clock
        self.sections = sections

        self.state = SequencerState.STOPPED
        self.notes: List[Note] = []
        self.current_index = 0
        self.volume_db = DEFAULT_VOICE_VOLUME_DB

        self._timeline: Optional[NoteTimeline] = None
        self._voice: Optional[VoiceHandle] = None
        self._step_handle = None

        self.on_note_start: Optional[Callable[[Note, int], None]] = None
        self.on_playback_end: Optional[Callable[[], None]] = None

    @property
    def is_playing(self) -> bool:
        return self.state is SequencerState.PLAYING

    def set_volume(self, volume_db: float):
        self.volume_db = volume_db

    def set_notes(self, notes: Sequence[Note]):
        """Replace the note list and rewind."""
        self.notes = list(notes)
        self.current_index = 0

    def start(self, total_duration: float = DEFAULT_SEQUENCE_DURATION):
        """
        Play from the current index.

        No-op if already playing or there are no notes.
        """
        if self.is_playing or not self.notes:
            return
        self._timeline = NoteTimeline(self.notes, total_duration, sections=self.sections)
        self.state = SequencerState.PLAYING
        self._play_next()

    def _play_next(self):
        self._step_handle = None
        if not self.is_playing or self.current_index >= len(self.notes):
            self._finish()
            return

        timeline = self._timeline
        index = self.current_index
        slot = timeline.slot(index)

        self._release_voice()
        if not slot.is_silenced:
            step_duration = max(MIN_STEP_DURATION, timeline.note_duration - STEP_GAP)
            self._voice = self.engine.build_voice(slot.note, self.volume_db)
            self._voice.trigger_attack_release(
                slot.note.start_frequency, step_duration, None, slot.velocity
            )
        else:
            logger.debug("Step %d (%s) silenced", index, slot.note.group)

        if self.on_note_start:
            self.on_note_start(slot.note, index)

        self.current_index += 1
        self._step_handle = self.clock.after(timeline.note_duration, self._play_next)

    def _release_voice(self):
        if self._voice is None:
            return
        try:
            self._voice.dispose()
        except Exception as e:
            logger.debug("Ignoring voice disposal error: %s", e)
        self._voice = None

    def stop(self):
        """Cancel the pending step and release the sounding voice."""
        self.state = SequencerState.STOPPED
        if self._step_handle is not None:
            self.clock.cancel(self._step_handle)
            self._step_handle = None
        self._release_voice()

    def reset(self):
        """Stop and rewind to the first note."""
        self.stop()
        self.current_index = 0

    def _finish(self):
        self.state = SequencerState.STOPPED
        self._release_voice()
        if self.on_playback_end:
            self.on_playback_end()

    def seek_to(self, index: int) -> bool:
        """
        Stop and move to index (clamped to 0..len(notes)).

        Returns:
            Whether the sequencer was playing, so the caller can resume
        """
        was_playing = self.is_playing
        self.stop()
        self.current_index = max(0, min(index, len(self.notes)))
        return was_playing
