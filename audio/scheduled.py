"""
Scheduled (live) note playback.

Notes are voiced on the synthesis engine at clock times; each note gets a
glide timer (when its pitch moves) and a cleanup timer that disposes the
voice. Those timers are not exposed: to abort a note, dispose the returned
handle and the pending timers will find nothing left to do.
"""
import logging
from typing import Callable, Optional

from audio.base import SynthesisEngine, VoiceHandle
from audio.clock import Clock
from core.config import SectionEnvelope
from core.constants import (
    DEFAULT_VOICE_VOLUME_DB,
    GLIDE_LEAD_TIME,
    GLIDE_RATIO,
    ONE_SHOT_RELEASE,
    RELEASE_BUFFER,
)
from core.models import Note
from core.velocity import base_velocity, calculate_velocity

logger = logging.getLogger(__name__)


def _ramp(voice: VoiceHandle, target_frequency: float, ramp_duration: float):
    try:
        voice.ramp_frequency(target_frequency, ramp_duration)
    except Exception as e:
        logger.debug("Glide skipped, voice already released: %s", e)


def _dispose(voice: VoiceHandle):
    try:
        voice.dispose()
    except Exception as e:
        logger.debug("Ignoring voice disposal error: %s", e)


class ScheduledPlaybackEngine:
    """Schedules notes as live voices."""

    def __init__(self, engine: SynthesisEngine, clock: Clock,
                 sections: Optional[SectionEnvelope] = None):
        """
        Initialize playback engine.

        Args:
            engine: Synthesis engine that builds voices
            clock: Clock for at-times and timers
            sections: Section envelope for velocities
        """
        self.engine = engine
        self.clock = clock
        self.sections = sections

    def schedule_note(self, note: Note, duration: float, at_time: float,
                      volume_db: float = 0.0) -> Optional[VoiceHandle]:
        """
        Schedule a note to play at a clock time.

        Args:
            note: Note to play
            duration: Gate length (seconds)
            at_time: Clock time of the attack
            volume_db: Voice volume in dB

        Returns:
            The voice, or None if the note's section is silenced
        """
        velocity = calculate_velocity(note, self.sections)
        if velocity == 0:
            return None

        voice = self.engine.build_voice(note, volume_db)
        voice.trigger_attack_release(note.start_frequency, duration, at_time, velocity)

        start_delay = max(0.0, at_time - self.clock.now())
        if note.has_glide:
            end_frequency = note.end_frequency
            self.clock.after(
                start_delay + GLIDE_LEAD_TIME,
                lambda: _ramp(voice, end_frequency, duration * GLIDE_RATIO),
            )
        self.clock.after(start_delay + duration + RELEASE_BUFFER, lambda: _dispose(voice))

        logger.debug("Scheduled %s at %.3f for %.3fs (velocity %.2f)",
                     note.note_name, at_time, duration, velocity)
        return voice

    def play_note(self, note: Note, duration: float,
                  volume_db: float = DEFAULT_VOICE_VOLUME_DB,
                  on_finish: Optional[Callable[[], None]] = None) -> VoiceHandle:
        """
        Play a single note now, ignoring the section envelope.

        Args:
            note: Note to play
            duration: Gate length (seconds)
            volume_db: Voice volume in dB
            on_finish: Called once the voice has been released

        Returns:
            The voice
        """
        voice = self.engine.build_voice(note, volume_db)
        voice.trigger_attack_release(note.start_frequency, duration, None, base_velocity(note))

        if note.has_glide:
            end_frequency = note.end_frequency
            self.clock.after(
                GLIDE_LEAD_TIME,
                lambda: _ramp(voice, end_frequency, duration * GLIDE_RATIO),
            )

        def finish():
            _dispose(voice)
            if on_finish is not None:
                on_finish()

        self.clock.after(duration + ONE_SHOT_RELEASE, finish)
        return voice
