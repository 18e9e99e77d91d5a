"""Tests for DSP helpers, voice plugins and the numpy synthesis engine."""
import numpy as np
import pytest

from audio.base import RenderedAudio
from audio.clock import ManualClock
from audio.dsp import (
    BiquadFilter,
    adsr_envelope,
    db_to_linear,
    generate_waveform,
    mix_into,
    peak_level,
)
from audio.engine import NumpySynthesisEngine
from audio.offline import render_offline
from audio.voice_manager import VoiceManager
from core.config import OMConfig
from core.parser import parse_voice_spec
from plugins.base import (
    ParameterSpec,
    ParameterType,
    PluginCategory,
    ProcessContext,
    VoiceEvent,
)
from plugins.registry import PluginRegistry
from plugins.voicing import FM_VOICE, SIMPLE_FM_VOICE, params_for, voice_params

SAMPLE_RATE = 8000
CEILING = db_to_linear(-3.0) + 1e-5

try:
    import sounddevice  # noqa: F401
    HAVE_SOUNDDEVICE = True
except (ImportError, OSError):
    # PortAudio missing on the host
    HAVE_SOUNDDEVICE = False

needs_sounddevice = pytest.mark.skipif(not HAVE_SOUNDDEVICE, reason="sounddevice unavailable")


@pytest.fixture
def registry():
    return PluginRegistry()


@pytest.fixture
def numpy_engine(registry):
    config = OMConfig(sample_rate=SAMPLE_RATE, block_size=256)
    return NumpySynthesisEngine(ManualClock(), config, registry, live=False)


class TestDSP:
    def test_adsr_shape(self):
        env = adsr_envelope(2000, 0.1, 0.1, 0.5, 0.1, 1000, 1000)
        assert env[0] == 0.0
        assert env[99] == pytest.approx(0.99, abs=0.01)
        assert env[500] == pytest.approx(0.5)
        assert env[1050] == pytest.approx(0.25, abs=0.01)
        assert np.all(env[1100:] == 0.0)

    def test_triangle_starts_at_zero_and_rises(self):
        phase = np.linspace(0, 0.2, 5)
        wave = generate_waveform("triangle", phase)
        assert wave[0] == pytest.approx(0.0, abs=1e-6)
        assert np.all(np.diff(wave) > 0)

    def test_unknown_waveform(self):
        with pytest.raises(ValueError):
            generate_waveform("noise", np.zeros(4))

    def test_mix_into_offsets(self):
        target = np.zeros(5, dtype=np.float32)
        mix_into(target, np.ones(3, dtype=np.float32), 3)
        mix_into(target, np.ones(3, dtype=np.float32), -2)
        assert target.tolist() == [1, 0, 0, 1, 1]

    def test_biquad_validation(self):
        with pytest.raises(ValueError):
            BiquadFilter("comb", SAMPLE_RATE)
        lowpass = BiquadFilter("lowpass", SAMPLE_RATE, freq=200.0)
        t = np.arange(SAMPLE_RATE) / SAMPLE_RATE
        high = np.sin(2 * np.pi * 3000 * t).astype(np.float32)
        assert peak_level(lowpass.process(high)[1000:]) < 0.1


class TestPlugins:
    def test_registry_lookup(self, registry):
        assert registry.get_voice_plugin_ids() == [FM_VOICE, SIMPLE_FM_VOICE]
        assert registry.get_effect_plugin_ids() == ["LIMITER"]
        assert registry.get_plugin_metadata(FM_VOICE).category is PluginCategory.VOICE
        assert registry.get_plugin_metadata("LIMITER").category is PluginCategory.EFFECT
        with pytest.raises(ValueError):
            registry.create_instance("NOPE")

    def test_register_duplicate(self, registry):
        with pytest.raises(ValueError):
            registry.register_plugin(FM_VOICE, "plugins.voices.fm_voice", PluginCategory.VOICE)

    def test_register_under_new_id_checks_declared_id(self, registry):
        registry.register_plugin("OTHER_LIMITER", "plugins.effects.limiter", PluginCategory.EFFECT)
        assert registry.get_effect_plugin_ids() == ["LIMITER", "OTHER_LIMITER"]
        with pytest.raises(ValueError):
            registry.create_instance("OTHER_LIMITER")

    def test_resolve_coerces_overrides(self, registry):
        metadata = registry.get_plugin_metadata(FM_VOICE)
        params = metadata.resolve({"volume_db": -90.0, "section": "X", "vibrato": 1})
        assert params["volume_db"] == -60.0
        assert params["section"] == ""
        assert params["vibrato"] is True
        assert params["harmonicity"] == metadata.defaults()["harmonicity"]
        with pytest.raises(KeyError):
            metadata.resolve({"bogus": 1.0})

    def test_parameter_spec_validation(self):
        with pytest.raises(ValueError):
            ParameterSpec("gain", ParameterType.FLOAT, 2.0, min_val=0.0, max_val=1.0)
        with pytest.raises(ValueError):
            ParameterSpec("shape", ParameterType.ENUM, "saw", enum_values=["sine"])
        assert ParameterSpec("mod_attack", ParameterType.FLOAT, 0.5, 0.0, 1.0).label == "Mod Attack"

    @pytest.mark.parametrize("plugin_id", [FM_VOICE, SIMPLE_FM_VOICE])
    def test_voice_renders_gate_plus_tail(self, registry, plugin_id):
        note = parse_voice_spec("v/sng_opr/nrm/vbr/ol4/c1/sh1").with_group("A1")
        plugin = registry.create_instance(plugin_id)
        params = plugin.get_metadata().defaults()
        params.update(params_for(note, -6.0, plugin_id == SIMPLE_FM_VOICE))
        context = ProcessContext(sample_rate=SAMPLE_RATE)

        audio = plugin.process(None, params, VoiceEvent(note.start_frequency, 0.5, 0.8), context)
        assert len(audio) == int(0.5 * SAMPLE_RATE) + plugin.get_tail_samples(params, context)
        assert audio.dtype == np.float32
        assert np.all(np.isfinite(audio))
        assert peak_level(audio) > 0.0

    def test_limiter_holds_ceiling(self, registry):
        limiter = registry.create_instance("LIMITER")
        params = limiter.get_metadata().defaults()
        loud = (2.0 * np.sin(np.linspace(0, 40 * np.pi, 4000))).astype(np.float32)
        out = limiter.process(loud, params, None, ProcessContext(SAMPLE_RATE))
        assert len(out) == len(loud)
        assert peak_level(out) <= CEILING
        limiter.reset()

    def test_frequency_curve_glide(self):
        event = VoiceEvent(220.0, 1.0, ramp_target=440.0, ramp_start=0.25, ramp_duration=0.5)
        curve = event.frequency_curve(1000, 1000)
        assert curve[0] == 220.0
        assert curve[249] == 220.0
        assert curve[500] == pytest.approx(220.0 * 2 ** 0.5)
        assert curve[999] == pytest.approx(440.0)


class TestVoicing:
    def test_falsetto_is_quieter(self):
        modal = parse_voice_spec("v/ydl_nrm/mdl/nrm/ol3/g5/sl3")
        falsetto = parse_voice_spec("v/ydl_nrm/fls/nrm/ol3/g5/sl3")
        assert voice_params(falsetto, -6.0)["volume_db"] == voice_params(modal, -6.0)["volume_db"] - 6.0

    def test_operatic_boost_and_filters(self):
        params = voice_params(parse_voice_spec("v/sng_opr/mdl/nrm/ol4/c1/sl1"), -6.0)
        assert params["operatic"] is True
        assert params["volume_db"] == -3.0

    def test_slide_removes_most_modulation(self):
        plain = voice_params(parse_voice_spec("v/sng_nrm/mdl/nrm/ol4/c1/sl1"), -6.0)
        slide = voice_params(parse_voice_spec("v/sng_nrm/mdl/sld/ol4/c1/sl1"), -6.0)
        assert slide["modulation_index"] == pytest.approx(plain["modulation_index"] * 0.05)
        assert slide["mod_sustain"] == 0.0

    def test_section_and_vibrato(self):
        note = parse_voice_spec("v/sng_opr/nrm/vbr/ol4/c1/sh1").with_group("U1")
        params = voice_params(note, -6.0)
        assert params["section"] == "U"
        assert params["vibrato"] is True


class TestNumpyEngine:
    def test_offline_render(self, numpy_engine):
        notes = [
            parse_voice_spec(spec).with_group("A1")
            for spec in ("v/sng_opr/nrm/vbr/ol4/c1/sh1", "v/tlk_nrm/mdl/sld/ol4/e3/sl2[-0.5:1.0]")
        ]
        result = render_offline(numpy_engine, notes, 1.0)
        samples = result.rendered_audio.samples
        assert result.rendered_audio.sample_rate == SAMPLE_RATE
        assert len(samples) == 4 * SAMPLE_RATE
        assert peak_level(samples) > 0.0
        assert peak_level(samples) <= CEILING

    def test_silenced_render_is_silent(self, numpy_engine):
        note = parse_voice_spec("v/sng_opr/nrm/vbr/ol4/c1/sh1").with_group("M2")
        result = render_offline(numpy_engine, [note], 1.0)
        assert peak_level(result.rendered_audio.samples) == 0.0

    def test_live_voice_mixing(self, numpy_engine):
        note = parse_voice_spec("v/sng_opr/nrm/vbr/ol4/c1/sh1")
        voice = numpy_engine.build_voice(note, -6.0)
        voice.trigger_attack_release(note.start_frequency, 0.2, 0.0, 0.8)
        assert numpy_engine.voice_manager.active_voices == [voice]

        block = numpy_engine.render_block(2000, 0.0)
        assert peak_level(block) > 0.0

        voice.dispose()
        voice.dispose()
        assert numpy_engine.voice_manager.active_voices == []
        assert peak_level(numpy_engine.render_block(256, 0.1)) == 0.0
        with pytest.raises(RuntimeError):
            voice.ramp_frequency(440.0, 0.1)

    def test_finished_voices_are_dropped(self, numpy_engine):
        note = parse_voice_spec("v/sng_opr/nrm/vbr/ol4/c1/sh1")
        voice = numpy_engine.build_voice(note, -6.0, simplified=True)
        voice.trigger_attack_release(note.start_frequency, 0.1, 0.0)
        numpy_engine.render_block(256, voice.end_time)
        assert numpy_engine.voice_manager.active_voices == []

    def test_glide_keeps_samples_before_ramp(self, numpy_engine):
        note = parse_voice_spec("v/tlk_nrm/mdl/sld/ol4/e3/sl2[-0.5:1.0]")
        voice = numpy_engine.build_voice(note, -6.0)
        voice.trigger_attack_release(note.start_frequency, 1.0, 0.0)
        before = voice.buffer.copy()

        voice.ramp_frequency(note.end_frequency, 0.5, 0.5)
        split = int(0.5 * SAMPLE_RATE)
        assert np.allclose(voice.buffer[:split], before[:split])
        assert not np.allclose(voice.buffer[split:], before[split:])

    @needs_sounddevice
    def test_disposed_players_are_released(self, numpy_engine):
        rendered = RenderedAudio(np.zeros(SAMPLE_RATE, dtype=np.float32), SAMPLE_RATE)
        for _ in range(5):
            numpy_engine.create_player(rendered).dispose()
        current = numpy_engine.create_player(rendered)
        assert numpy_engine._players == [current]
        assert numpy_engine.players == [current]

        numpy_engine.close()
        assert current.disposed
        assert numpy_engine.players == []

    def test_voice_manager_positions_by_time(self):
        manager = VoiceManager(sample_rate=10)

        class StubVoice:
            start_time = 1.0
            buffer = np.ones(10, dtype=np.float32)

            def is_complete(self, at_time):
                return at_time >= 2.0

        voice = StubVoice()
        manager.active_voices.append(voice)
        block = manager.render_frame(20, 0.0)
        assert block[:10].tolist() == [0.0] * 10
        assert block[10:].tolist() == [1.0] * 10
        assert manager.active_voices == []
