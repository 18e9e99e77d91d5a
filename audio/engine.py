"""
Synthesis engine built on the voice plugins.

NumpySynthesisEngine renders every voice with numpy/scipy:
- Live voices are mixed block by block and sent through one shared
  limiter to a sounddevice output stream (opened on first use)
- Offline renders mix into a single buffer with their own limiter
- Rendered buffers play back through sounddevice streams
"""
import logging
from typing import Callable, List, Optional
import numpy as np

from audio.base import (
    BufferPlayer,
    RenderedAudio,
    RenderSession,
    SynthesisEngine,
    VoiceHandle,
)
from audio.clock import Clock
from audio.voice_manager import Voice, VoiceManager
from core.config import OMConfig
from core.models import Note
from plugins.base import AudioProcessor, ProcessContext
from plugins.registry import PluginRegistry, get_global_registry
from plugins.voicing import params_for, plugin_for

logger = logging.getLogger(__name__)

LIMITER = "LIMITER"

__all__ = [
    "BufferPlayer",
    "NumpySynthesisEngine",
    "RenderedAudio",
    "RenderSession",
    "SynthesisEngine",
    "VoiceHandle",
]


class _OfflineSession(RenderSession):
    """Voices for one offline render; time 0 is the start of the buffer."""

    def __init__(self, engine: "NumpySynthesisEngine"):
        self._engine = engine
        self.voice_manager = VoiceManager(engine.sample_rate)

    def build_voice(self, note: Note, volume_db: float, simplified: bool = True) -> Voice:
        return self._engine._create_voice(
            note, volume_db, simplified, lambda: 0.0, self.voice_manager
        )


class NumpySynthesisEngine(SynthesisEngine):
    """
    FM voice engine.

    Voice parameters come from plugins.voicing; plugins are created through
    the PluginRegistry so alternative voices can be registered.
    """

    def __init__(self, clock: Clock, config: Optional[OMConfig] = None,
                 registry: Optional[PluginRegistry] = None, live: bool = True):
        """
        Initialize engine.

        Args:
            clock: Clock that live trigger times refer to
            config: Sample rate and block size (defaults to OMConfig())
            registry: Plugin registry (defaults to the global one)
            live: Open an output stream for live voices; when False live
                voices are only mixed through render_block()
        """
        self.clock = clock
        self.config = config or OMConfig()
        self.sample_rate = self.config.sample_rate
        self.block_size = self.config.block_size
        self.registry = registry or get_global_registry()
        self.context = ProcessContext(sample_rate=self.sample_rate)
        self.voice_manager = VoiceManager(self.sample_rate)
        self.live = live

        self._limiter: Optional[AudioProcessor] = None
        self._limiter_params = {}
        self._output = None
        self._players: List[BufferPlayer] = []

    @property
    def limiter(self) -> AudioProcessor:
        """Shared output limiter, created on first use."""
        if self._limiter is None:
            self._limiter = self.registry.create_instance(LIMITER)
            self._limiter_params = self._limiter.get_metadata().defaults()
        return self._limiter

    def _create_voice(self, note: Note, volume_db: float, simplified: bool,
                      now: Callable[[], float], manager: VoiceManager) -> Voice:
        plugin = self.registry.create_instance(plugin_for(simplified))
        params = plugin.get_metadata().resolve(params_for(note, volume_db, simplified))
        return Voice(plugin, params, self.context, now, manager)

    def build_voice(self, note: Note, volume_db: float, simplified: bool = False) -> Voice:
        if self.live:
            self._ensure_output()
        return self._create_voice(note, volume_db, simplified, self.clock.now, self.voice_manager)

    def render_block(self, frames: int, block_time: float) -> np.ndarray:
        """
        Mix live voices for one output block through the shared limiter.

        Args:
            frames: Number of frames
            block_time: Clock time of the first frame

        Returns:
            Mono audio (frames,)
        """
        limiter = self.limiter
        mix = self.voice_manager.render_frame(frames, block_time)
        return limiter.process(mix, self._limiter_params, None, self.context)

    def _ensure_output(self):
        if self._output is not None:
            return
        from audio.output import LiveOutput

        self._output = LiveOutput(self.render_block, self.clock,
                                  self.sample_rate, self.block_size)
        self._output.start()

    def render_to_buffer(self, schedule_fn: Callable[[RenderSession], None],
                         total_duration: float) -> RenderedAudio:
        session = _OfflineSession(self)
        schedule_fn(session)

        voice_count = len(session.voice_manager.active_voices)
        num_samples = max(0, int(round(total_duration * self.sample_rate)))
        mix = session.voice_manager.render_frame(num_samples, 0.0)

        limiter = self.registry.create_instance(LIMITER)
        samples = limiter.process(mix, limiter.get_metadata().defaults(), None, self.context)

        logger.info("Rendered %.2fs offline (%d voices)",
                    total_duration, voice_count)
        return RenderedAudio(samples=samples, sample_rate=self.sample_rate)

    def create_player(self, rendered: RenderedAudio) -> BufferPlayer:
        from audio.output import StreamBufferPlayer

        player = StreamBufferPlayer(rendered, self.clock, self.block_size)
        # Disposed players still hold their sample buffers
        self._players = [p for p in self._players if not p.disposed]
        self._players.append(player)
        return player

    @property
    def players(self) -> List[BufferPlayer]:
        """Buffer players created here and not yet disposed."""
        return [p for p in self._players if not p.disposed]

    def close(self):
        """Stop all output and drop every voice."""
        for player in self._players:
            player.dispose()
        self._players.clear()
        self.voice_manager.clear_all()
        if self._output is not None:
            self._output.stop()
            self._output = None
