"""
Base classes for the synthesis engine.

Playback code only talks to these interfaces:
- SynthesisEngine builds voices, renders offline and creates buffer players
- VoiceHandle is one triggered note
- BufferPlayer plays back a pre-rendered buffer
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional
import numpy as np

from core.models import Note


class VoiceHandle(ABC):
    """One synthesized note."""

    @abstractmethod
    def trigger_attack_release(self, frequency: float, duration: float,
                               time: Optional[float] = None, velocity: float = 1.0):
        """
        Play the note.

        Args:
            frequency: Frequency at attack (Hz)
            duration: Gate length before release (seconds)
            time: Clock time of the attack (None = now)
            velocity: Amplitude scale (0.0-1.0)
        """
        raise NotImplementedError()

    @abstractmethod
    def ramp_frequency(self, target_frequency: float, ramp_duration: float,
                       start_time: Optional[float] = None):
        """
        Glide the pitch exponentially to target_frequency.

        Args:
            target_frequency: Frequency to reach (Hz)
            ramp_duration: Glide length (seconds)
            start_time: Clock time the glide starts (None = now)
        """
        raise NotImplementedError()

    @abstractmethod
    def dispose(self):
        """Release the voice. Safe to call more than once."""
        raise NotImplementedError()


class BufferPlayer(ABC):
    """Playback of one pre-rendered buffer."""

    @abstractmethod
    def start(self, at_time: Optional[float] = None, offset: float = 0.0):
        """Start playing from offset seconds into the buffer at clock time at_time."""
        raise NotImplementedError()

    @abstractmethod
    def stop(self):
        raise NotImplementedError()

    @abstractmethod
    def dispose(self):
        raise NotImplementedError()


@dataclass(frozen=True)
class RenderedAudio:
    """
    Result of an offline render.

    Attributes:
        samples: Mono float32 audio
        sample_rate: Sample rate in Hz
    """
    samples: np.ndarray
    sample_rate: int

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return len(self.samples) / self.sample_rate


class RenderSession(ABC):
    """Context handed to the schedule function of an offline render."""

    @abstractmethod
    def build_voice(self, note: Note, volume_db: float, simplified: bool = True) -> VoiceHandle:
        """Build a voice whose trigger times are seconds from render start."""
        raise NotImplementedError()


class SynthesisEngine(ABC):
    """Builds voices, renders offline and creates buffer players."""

    @abstractmethod
    def build_voice(self, note: Note, volume_db: float, simplified: bool = False) -> VoiceHandle:
        """
        Build a voice for note routed to the shared output limiter.

        Args:
            note: Note whose voice type, mode, register, articulation and
                section pick the signal chain
            volume_db: Voice volume in dB
            simplified: Use the cheaper offline voice

        Returns:
            Untriggered voice
        """
        raise NotImplementedError()

    @abstractmethod
    def render_to_buffer(self, schedule_fn: Callable[[RenderSession], None],
                         total_duration: float) -> RenderedAudio:
        """
        Render offline.

        schedule_fn runs once with a RenderSession to register every
        trigger; the result spans total_duration seconds.
        """
        raise NotImplementedError()

    @abstractmethod
    def create_player(self, rendered: RenderedAudio) -> BufferPlayer:
        raise NotImplementedError()
