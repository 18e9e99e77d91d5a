"""
Voice management for triggered notes.

Each Voice pre-renders its whole note (gate plus release tail) through a
voice plugin as soon as it is triggered:
1. trigger_attack_release renders the buffer and fixes its start time
2. ramp_frequency re-renders the buffer with the glide added
3. The VoiceManager mixes every voice by absolute sample position
4. Finished and disposed voices are dropped after each block
"""
import logging
import threading
import numpy as np
from typing import Any, Callable, Dict, List, Optional

from audio.dsp import mix_into
from audio.base import VoiceHandle
from plugins.base import AudioProcessor, ProcessContext, VoiceEvent

logger = logging.getLogger(__name__)


class Voice(VoiceHandle):
    """One synthesized note owned by a VoiceManager."""

    def __init__(self, plugin: AudioProcessor, params: Dict[str, Any],
                 context: ProcessContext, now: Callable[[], float],
                 manager: Optional["VoiceManager"] = None):
        """
        Initialize a voice.

        Args:
            plugin: Voice plugin used for rendering
            params: Plugin parameters for this note
            context: Audio processing context
            now: Time source used when no explicit time is given
            manager: Manager that mixes this voice (registered on trigger)
        """
        self.plugin = plugin
        self.params = params
        self.context = context
        self.sample_rate = context.sample_rate
        self._now = now
        self._manager = manager

        self.start_time: Optional[float] = None
        self.event: Optional[VoiceEvent] = None
        self.buffer = np.zeros(0, dtype=np.float32)
        self.is_disposed = False

    @property
    def end_time(self) -> Optional[float]:
        """Time the rendered buffer runs out, None before the trigger."""
        if self.start_time is None:
            return None
        return self.start_time + len(self.buffer) / self.sample_rate

    def _render(self):
        self.buffer = self.plugin.process(None, self.params, self.event, self.context)

    def trigger_attack_release(self, frequency: float, duration: float,
                               time: Optional[float] = None, velocity: float = 1.0):
        if self.is_disposed:
            raise RuntimeError("Voice has been disposed")

        self.start_time = self._now() if time is None else time
        self.event = VoiceEvent(frequency=frequency, duration=duration, velocity=velocity)
        self._render()

        if self._manager is not None:
            self._manager.add(self)

    def ramp_frequency(self, target_frequency: float, ramp_duration: float,
                       start_time: Optional[float] = None):
        if self.is_disposed:
            raise RuntimeError("Voice has been disposed")
        if self.event is None:
            raise RuntimeError("Voice has not been triggered")

        when = self._now() if start_time is None else start_time
        self.event = VoiceEvent(
            frequency=self.event.frequency,
            duration=self.event.duration,
            velocity=self.event.velocity,
            ramp_target=target_frequency,
            ramp_start=max(0.0, when - self.start_time),
            ramp_duration=ramp_duration,
        )
        # Glide only changes samples from ramp_start on, so re-rendering
        # leaves anything already mixed untouched.
        self._render()

    def dispose(self):
        if self.is_disposed:
            return
        self.is_disposed = True
        self.buffer = np.zeros(0, dtype=np.float32)
        if self._manager is not None:
            self._manager.remove(self)

    def is_complete(self, at_time: float) -> bool:
        """Check if the voice has nothing left to play at at_time."""
        end_time = self.end_time
        return self.is_disposed or (end_time is not None and at_time >= end_time)


class VoiceManager:
    """Collection of active voices, mixed block by block."""

    def __init__(self, sample_rate: int = 44100):
        """
        Initialize the voice manager.

        Args:
            sample_rate: Audio sample rate in Hz
        """
        self.sample_rate = sample_rate
        self.active_voices: List[Voice] = []
        # Output streams pull blocks from their own thread
        self._lock = threading.Lock()

    def add(self, voice: Voice):
        with self._lock:
            if voice not in self.active_voices:
                self.active_voices.append(voice)

    def remove(self, voice: Voice):
        with self._lock:
            if voice in self.active_voices:
                self.active_voices.remove(voice)

    def render_frame(self, frames: int, block_time: float) -> np.ndarray:
        """
        Mix all active voices for one block.

        Args:
            frames: Number of frames to render
            block_time: Time of the block's first sample

        Returns:
            Mono mix (frames,)
        """
        output = np.zeros(frames, dtype=np.float32)
        block_end = block_time + frames / self.sample_rate

        with self._lock:
            voices = list(self.active_voices)

        finished = []
        for voice in voices:
            if voice.start_time is None:
                continue
            offset = int(round((voice.start_time - block_time) * self.sample_rate))
            mix_into(output, voice.buffer, offset)
            if voice.is_complete(block_end):
                finished.append(voice)

        if finished:
            with self._lock:
                for voice in finished:
                    if voice in self.active_voices:
                        self.active_voices.remove(voice)

        return output

    def clear_all(self):
        """Drop every voice (engine shutdown)."""
        with self._lock:
            voices = list(self.active_voices)
            self.active_voices.clear()
        for voice in voices:
            voice.dispose()
        logger.debug("Cleared %d voices", len(voices))
