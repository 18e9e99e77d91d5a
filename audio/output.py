"""
Audio device output via sounddevice.

- LiveOutput: callback stream that pulls mixed blocks of live voices
- StreamBufferPlayer: plays a pre-rendered buffer from an offset

Both map stream sample counts onto clock time, anchored when the stream
starts.
"""
import logging
import threading
from typing import Callable, Optional
import numpy as np
import sounddevice as sd

from audio.base import BufferPlayer, RenderedAudio
from audio.clock import Clock
from audio.dsp import stereo_from_mono

logger = logging.getLogger(__name__)


class LiveOutput:
    """Stereo output stream fed by a block renderer."""

    def __init__(self, render_block: Callable[[int, float], np.ndarray],
                 clock: Clock, sample_rate: int = 44100, block_size: int = 512):
        """
        Initialize output.

        Args:
            render_block: Returns frames of mono audio starting at a clock time
            clock: Clock that block times refer to
            sample_rate: Audio sample rate in Hz
            block_size: Frames per callback
        """
        self.render_block = render_block
        self.clock = clock
        self.sample_rate = sample_rate
        self.block_size = block_size

        self._stream: Optional[sd.OutputStream] = None
        self._anchor_time = 0.0
        self._samples_written = 0

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug("Output stream status: %s", status)
        block_time = self._anchor_time + self._samples_written / self.sample_rate
        block = self.render_block(frames, block_time)
        outdata[:] = stereo_from_mono(block)
        self._samples_written += frames

    def start(self):
        if self._stream is not None:
            return
        self._anchor_time = self.clock.now()
        self._samples_written = 0
        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            blocksize=self.block_size,
            channels=2,
            dtype='float32',
            latency='low',
            callback=self._callback
        )
        self._stream.start()
        logger.debug("Live output started at %.3f", self._anchor_time)

    def stop(self):
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        logger.debug("Live output stopped")


class StreamBufferPlayer(BufferPlayer):
    """Plays one rendered buffer on its own stream."""

    def __init__(self, rendered: RenderedAudio, clock: Clock, block_size: int = 512):
        self.rendered = rendered
        self.clock = clock
        self.block_size = block_size

        self._stream: Optional[sd.OutputStream] = None
        self._position = 0       # Next sample of the buffer to play
        self._delay_samples = 0  # Silence before the first sample
        self._lock = threading.Lock()
        self._disposed = False

    def _callback(self, outdata, frames, time_info, status):
        outdata.fill(0)
        with self._lock:
            start = 0
            if self._delay_samples > 0:
                start = min(frames, self._delay_samples)
                self._delay_samples -= start
            samples = self.rendered.samples
            count = min(frames - start, len(samples) - self._position)
            if count > 0:
                chunk = samples[self._position:self._position + count]
                outdata[start:start + count] = stereo_from_mono(chunk)
                self._position += count
            finished = self._position >= len(samples)

        if finished:
            raise sd.CallbackStop()

    def start(self, at_time: Optional[float] = None, offset: float = 0.0):
        if self._disposed:
            raise RuntimeError("Player has been disposed")
        self.stop()

        sample_rate = self.rendered.sample_rate
        delay = 0.0 if at_time is None else max(0.0, at_time - self.clock.now())
        with self._lock:
            self._position = max(0, min(int(offset * sample_rate), len(self.rendered.samples)))
            self._delay_samples = int(delay * sample_rate)

        self._stream = sd.OutputStream(
            samplerate=sample_rate,
            blocksize=self.block_size,
            channels=2,
            dtype='float32',
            callback=self._callback
        )
        self._stream.start()

    def stop(self):
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self):
        if self._disposed:
            return
        self.stop()
        self._disposed = True
