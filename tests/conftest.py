"""Shared fixtures and synthesis engine test doubles."""
import numpy as np
import pytest

from audio.base import BufferPlayer, RenderedAudio, RenderSession, SynthesisEngine, VoiceHandle
from audio.clock import ManualClock
from core.parser import parse_om_input, parse_voice_spec

PLAIN_SPEC = "v/sng_opr/nrm/vbr/ol4/c1/sh1"
GLIDE_SPEC = "v/tlk_nrm/mdl/sld/ol4/e3/sl2[-0.5:1.0]"


class RecordingVoice(VoiceHandle):
    """Voice that records every call made on it."""

    def __init__(self, note, volume_db, simplified):
        self.note = note
        self.volume_db = volume_db
        self.simplified = simplified
        self.triggers = []
        self.ramps = []
        self.dispose_count = 0

    @property
    def disposed(self):
        return self.dispose_count > 0

    def trigger_attack_release(self, frequency, duration, time=None, velocity=1.0):
        self.triggers.append((frequency, duration, time, velocity))

    def ramp_frequency(self, target_frequency, ramp_duration, start_time=None):
        if self.disposed:
            raise RuntimeError("voice disposed")
        self.ramps.append((target_frequency, ramp_duration, start_time))

    def dispose(self):
        self.dispose_count += 1


class RecordingPlayer(BufferPlayer):
    def __init__(self, rendered):
        self.rendered = rendered
        self.starts = []
        self.stop_count = 0
        self.disposed = False

    def start(self, at_time=None, offset=0.0):
        self.starts.append((at_time, offset))

    def stop(self):
        self.stop_count += 1

    def dispose(self):
        self.disposed = True


class RecordingSession(RenderSession):
    def __init__(self):
        self.voices = []

    def build_voice(self, note, volume_db, simplified=True):
        voice = RecordingVoice(note, volume_db, simplified)
        self.voices.append(voice)
        return voice


class RecordingEngine(SynthesisEngine):
    """Engine double: records voices, renders silence at a low sample rate."""

    sample_rate = 100

    def __init__(self):
        self.voices = []
        self.sessions = []
        self.render_durations = []
        self.players = []
        self.fail_render = False
        # Set to a threading.Event to hold renders until it is set
        self.render_gate = None

    def build_voice(self, note, volume_db, simplified=False):
        voice = RecordingVoice(note, volume_db, simplified)
        self.voices.append(voice)
        return voice

    def render_to_buffer(self, schedule_fn, total_duration):
        if self.render_gate is not None:
            self.render_gate.wait(timeout=5.0)
        if self.fail_render:
            raise RuntimeError("render failed")
        session = RecordingSession()
        schedule_fn(session)
        self.sessions.append(session)
        self.render_durations.append(total_duration)
        samples = np.zeros(int(total_duration * self.sample_rate), dtype=np.float32)
        return RenderedAudio(samples=samples, sample_rate=self.sample_rate)

    def create_player(self, rendered):
        player = RecordingPlayer(rendered)
        self.players.append(player)
        return player


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def engine():
    return RecordingEngine()


@pytest.fixture
def plain_note():
    return parse_voice_spec(PLAIN_SPEC)


@pytest.fixture
def glide_note():
    return parse_voice_spec(GLIDE_SPEC)


@pytest.fixture
def phrase():
    """Four notes in group A1."""
    text = "A1: " + " + ".join([
        "v/sng_opr/nrm/vbr/ol4/c1/sh1",
        "v/sng_opr/nrm/nrm/ol4/d2/sh1",
        "v/tlk_nrm/mdl/sld/ol4/e3/sl2[-0.5:1.0]",
        "v/ydl_nrm/fls/nrm/ol3/g5/sl3",
    ])
    return parse_om_input(text)["A1"]
