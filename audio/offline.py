"""
Offline phrase rendering.

Every note is queued on a render session before anything is rendered; the
engine then produces the whole phrase (plus a release tail) in one pass.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from audio.base import RenderedAudio, RenderSession, SynthesisEngine
from audio.scheduler import NoteTimeline
from core.config import SectionEnvelope
from core.constants import (
    DEFAULT_OVERLAP_RATIO,
    DEFAULT_VOICE_VOLUME_DB,
    GLIDE_LEAD_TIME,
    GLIDE_RATIO,
    RENDER_TAIL,
)
from core.models import Note

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OfflineRender:
    """
    Rendered phrase.

    Attributes:
        rendered_audio: Audio spanning the phrase plus tail
        duration: Phrase duration without the tail (seconds)
    """
    rendered_audio: RenderedAudio
    duration: float


def schedule_timeline(session: RenderSession, timeline: NoteTimeline, volume_db: float):
    """
    Queue every audible note of a timeline on a render session.

    Silenced notes keep their slot but are not voiced.
    """
    for slot in timeline.slots():
        if slot.is_silenced:
            continue
        note = slot.note
        voice = session.build_voice(note, volume_db, simplified=True)
        voice.trigger_attack_release(note.start_frequency, slot.duration, slot.start, slot.velocity)
        if note.has_glide:
            voice.ramp_frequency(note.end_frequency, slot.duration * GLIDE_RATIO,
                                 slot.start + GLIDE_LEAD_TIME)


def render_offline(engine: SynthesisEngine, notes: Sequence[Note], total_duration: float,
                   volume_db: float = DEFAULT_VOICE_VOLUME_DB,
                   overlap_ratio: float = DEFAULT_OVERLAP_RATIO,
                   sections: Optional[SectionEnvelope] = None) -> Optional[OfflineRender]:
    """
    Render a phrase to a buffer.

    Args:
        engine: Synthesis engine
        notes: Notes in play order
        total_duration: Phrase length (seconds)
        volume_db: Voice volume in dB
        overlap_ratio: Sounding length relative to each note's slot
        sections: Section envelope for velocities

    Returns:
        OfflineRender, or None when there are no notes
    """
    if not notes:
        return None

    timeline = NoteTimeline(notes, total_duration, overlap_ratio, sections)
    logger.info("Rendering %d notes over %.2fs (overlap %.2f)",
                len(timeline), total_duration, overlap_ratio)

    rendered = engine.render_to_buffer(
        lambda session: schedule_timeline(session, timeline, volume_db),
        total_duration + RENDER_TAIL,
    )
    return OfflineRender(rendered_audio=rendered, duration=total_duration)
