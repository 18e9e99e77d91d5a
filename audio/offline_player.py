"""
Player for pre-rendered phrases.

The phrase is rendered once (off the event loop) and then played, paused,
sought and replayed from the buffer. While playing, progress is reported
every display frame as (current time, current note index) so a
visualization can follow along.

States:
    IDLE -> RENDERING -> READY <-> PLAYING <-> PAUSED
    READY/PLAYING/PAUSED -> RENDERING (re-render replaces the buffer)
    any -> IDLE (dispose)
"""
import asyncio
import functools
import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence

from audio.base import BufferPlayer, SynthesisEngine
from audio.clock import Clock
from audio.offline import render_offline
from audio.scheduler import index_at
from core.config import SectionEnvelope
from core.constants import (
    DEFAULT_OVERLAP_RATIO,
    DEFAULT_VOICE_VOLUME_DB,
    END_DETECTION_SLACK,
)
from core.models import Note

logger = logging.getLogger(__name__)


class PlayerState(Enum):
    """Offline player states."""
    IDLE = "idle"
    RENDERING = "rendering"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"


class OfflinePlayer:
    """
    Renders a phrase, then plays it back with progress reporting.

    Callbacks (assign any of them; None = not interested):
        on_progress(current_time, note_index)
        on_render_start()
        on_render_complete()
        on_playback_end()
    """

    def __init__(self, engine: SynthesisEngine, clock: Clock,
                 sections: Optional[SectionEnvelope] = None):
        self.engine = engine
        self.clock = clock
        self.sections = sections

        self.state = PlayerState.IDLE
        self.notes: List[Note] = []
        self.duration = 0.0
        self.note_duration = 0.0

        self._player: Optional[BufferPlayer] = None
        self._start_time = 0.0   # Clock time that maps to offset 0 while playing
        self._paused_at = 0.0
        self._frame_handle = None
        self._end_handle = None
        self._disposed = False

        self.on_progress: Optional[Callable[[float, int], None]] = None
        self.on_render_start: Optional[Callable[[], None]] = None
        self.on_render_complete: Optional[Callable[[], None]] = None
        self.on_playback_end: Optional[Callable[[], None]] = None

    # -- status -------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self.state is PlayerState.PLAYING

    @property
    def is_rendering(self) -> bool:
        return self.state is PlayerState.RENDERING

    @property
    def is_finished(self) -> bool:
        """Paused at the end after playing through."""
        return (self.state is PlayerState.PAUSED and self.duration > 0
                and self._paused_at >= self.duration)

    def _idle_state(self) -> PlayerState:
        return PlayerState.READY if self._player is not None else PlayerState.IDLE

    # -- rendering ----------------------------------------------------------

    async def render(self, notes: Sequence[Note], total_duration: float,
                     volume_db: float = DEFAULT_VOICE_VOLUME_DB,
                     overlap_ratio: float = DEFAULT_OVERLAP_RATIO):
        """
        Render notes, replacing any previous buffer.

        Does nothing while a render is already running. Render errors
        propagate; the player is left IDLE.

        Args:
            notes: Notes in play order
            total_duration: Phrase length (seconds)
            volume_db: Voice volume in dB
            overlap_ratio: Sounding length relative to each note's slot
        """
        if self.state is PlayerState.RENDERING:
            logger.debug("Render already in progress, ignoring request")
            return

        self.stop()
        self.state = PlayerState.RENDERING
        self._disposed = False
        if self.on_render_start:
            self.on_render_start()

        try:
            if self._player is not None:
                self._player.dispose()
                self._player = None

            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None,
                functools.partial(render_offline, self.engine, list(notes), total_duration,
                                  volume_db, overlap_ratio, self.sections),
            )

            if self._disposed:
                logger.debug("Player disposed during render, dropping result")
                return

            if result is None:
                self.notes = []
                self.duration = 0.0
                self.note_duration = 0.0
            else:
                self._player = self.engine.create_player(result.rendered_audio)
                self.duration = result.duration
                self.notes = list(notes)
                self.note_duration = total_duration / len(self.notes)

            if self.on_render_complete:
                self.on_render_complete()
        finally:
            self.state = self._idle_state()

    # -- transport ----------------------------------------------------------

    def play(self, from_time: Optional[float] = None):
        """
        Start playback from from_time, or from where playback paused.

        No-op while rendering or before anything was rendered.
        """
        if self._player is None or self.state is PlayerState.RENDERING:
            return
        if self.state is PlayerState.PLAYING:
            self._halt()

        offset = self._paused_at if from_time is None else from_time
        offset = max(0.0, min(offset, self.duration))
        now = self.clock.now()

        self._start_time = now - offset
        self.state = PlayerState.PLAYING
        self._player.start(now, offset)

        self._animate_progress()
        remaining = self.duration - offset
        self._end_handle = self.clock.after(remaining + END_DETECTION_SLACK, self._on_end_timer)
        logger.debug("Playing from %.3fs", offset)

    def pause(self):
        """Pause playback, remembering the position."""
        if self.state is not PlayerState.PLAYING:
            return
        self._paused_at = self.get_current_time()
        self._halt()
        self.state = PlayerState.PAUSED

    def stop(self):
        """Stop playback and rewind to 0."""
        self._halt()
        self._paused_at = 0.0
        if self.state is not PlayerState.RENDERING:
            self.state = self._idle_state()

    def seek(self, time: float):
        """
        Move to time (clamped to 0..duration), keeping play/pause status.

        When not playing, reports progress at the new position.
        """
        was_playing = self.state is PlayerState.PLAYING
        was_paused = self.state is PlayerState.PAUSED

        self.stop()
        self._paused_at = max(0.0, min(time, self.duration))

        if was_playing:
            self.play()
            return

        if was_paused:
            self.state = PlayerState.PAUSED
        if self.on_progress:
            self.on_progress(self._paused_at, self.get_current_note_index())

    def seek_to_note(self, index: int):
        """Seek to the start of note index."""
        self.seek(index * self.note_duration)

    def get_current_time(self) -> float:
        if self.state is PlayerState.PLAYING:
            return min(self.clock.now() - self._start_time, self.duration)
        return self._paused_at

    def get_current_note_index(self) -> int:
        return index_at(self.get_current_time(), self.note_duration, len(self.notes))

    def dispose(self):
        """
        Release the buffer player. The player can render again afterwards.

        A render in flight keeps the RENDERING guard until it returns and its
        result is dropped.
        """
        self._halt()
        self._paused_at = 0.0
        if self._player is not None:
            self._player.dispose()
            self._player = None
        self._disposed = True
        if self.state is not PlayerState.RENDERING:
            self.state = PlayerState.IDLE

    # -- internals ----------------------------------------------------------

    def _halt(self):
        """Stop the buffer player and cancel progress and end timers."""
        if self._player is not None:
            try:
                self._player.stop()
            except Exception as e:
                logger.debug("Ignoring player stop error: %s", e)
        if self._frame_handle is not None:
            self.clock.cancel(self._frame_handle)
            self._frame_handle = None
        if self._end_handle is not None:
            self.clock.cancel(self._end_handle)
            self._end_handle = None

    def _on_end_timer(self):
        self._end_handle = None
        if self.state is PlayerState.PLAYING:
            self._finish()

    def _finish(self):
        self._halt()
        self._paused_at = self.duration
        self.state = PlayerState.PAUSED
        logger.debug("Playback finished")
        if self.on_playback_end:
            self.on_playback_end()

    def _animate_progress(self):
        self._frame_handle = None
        if self.state is not PlayerState.PLAYING:
            return
        if self.on_progress:
            self.on_progress(self.get_current_time(), self.get_current_note_index())
        self._frame_handle = self.clock.request_frame(self._animate_progress)
