"""
FM vocal voice plugin.

Carrier oscillator phase-modulated by a modulator at a harmonicity ratio,
each with its own ADSR. The signal chain follows the note:

    FM -> mode filters -> formants -> volume

Vibrato (vbr articulation) is applied as pitch modulation before synthesis.
"""
import numpy as np
from typing import Dict, Any, Optional

from audio.dsp import (
    BiquadFilter,
    adsr_envelope,
    apply_vibrato,
    db_to_linear,
    generate_waveform,
    integrate_phase,
)
from core.constants import FORMANTS
from plugins.base import (
    AudioProcessor,
    PluginMetadata,
    PluginCategory,
    ParameterSpec,
    ParameterType,
    ProcessContext,
    VoiceEvent,
)

OSCILLATORS = ["sine", "triangle", "square", "sawtooth"]


def _float(name, default, min_val, max_val, unit=None, description=None):
    return ParameterSpec(
        name=name,
        type=ParameterType.FLOAT,
        default=default,
        min_val=min_val,
        max_val=max_val,
        unit=unit,
        description=description,
    )


class FMVoice(AudioProcessor):
    """
    Two-operator FM voice with vowel shaping.

    Features:
    - Carrier/modulator with independent envelopes
    - Operatic (singer's ring + chest warmth) or normal (thin, bright) filtering
    - A/U/M vowel formants chosen by section
    - Optional vibrato
    """

    def get_metadata(self) -> PluginMetadata:
        """Define plugin identity and parameters."""
        return PluginMetadata(
            id="FM_VOICE",
            name="FM Voice",
            category=PluginCategory.VOICE,
            version="1.0.0",
            author="omchant",
            description="FM vocal voice with mode filters, formants and vibrato",
            parameters=[
                _float("harmonicity", 3.0, 0.1, 10.0, description="Modulator/carrier frequency ratio"),
                _float("modulation_index", 10.0, 0.0, 20.0, description="Modulation depth"),
                ParameterSpec(
                    name="oscillator",
                    type=ParameterType.ENUM,
                    default="triangle",
                    enum_values=OSCILLATORS,
                    description="Carrier waveform",
                ),
                ParameterSpec(
                    name="modulation_type",
                    type=ParameterType.ENUM,
                    default="sine",
                    enum_values=OSCILLATORS,
                    description="Modulator waveform",
                ),
                _float("attack", 1.2, 0.001, 5.0, unit="s"),
                _float("decay", 0.3, 0.0, 5.0, unit="s"),
                _float("sustain", 0.85, 0.0, 1.0),
                _float("release", 0.8, 0.0, 5.0, unit="s"),
                _float("mod_attack", 1.0, 0.001, 5.0, unit="s"),
                _float("mod_decay", 0.3, 0.0, 5.0, unit="s"),
                _float("mod_sustain", 0.05, 0.0, 1.0),
                _float("mod_release", 0.6, 0.0, 5.0, unit="s"),
                _float("volume_db", -6.0, -60.0, 36.0, unit="dB"),
                ParameterSpec(name="operatic", type=ParameterType.BOOL, default=False),
                ParameterSpec(name="vibrato", type=ParameterType.BOOL, default=False),
                ParameterSpec(
                    name="section",
                    type=ParameterType.ENUM,
                    default="",
                    enum_values=["", "A", "U", "M"],
                    description="Vowel formant set",
                ),
            ]
        )

    def get_tail_samples(self, params: Dict[str, Any], context: ProcessContext) -> int:
        release = max(params.get("release", 0.8), params.get("mod_release", 0.6))
        return int(release * context.sample_rate)

    def _mode_filters(self, operatic: bool, sample_rate: int):
        if operatic:
            return [
                BiquadFilter("peaking", sample_rate, freq=2800.0, q=3.0, gain_db=8.0),  # singer's ring
                BiquadFilter("peaking", sample_rate, freq=400.0, q=1.0, gain_db=6.0),   # chest warmth
            ]
        return [
            BiquadFilter("highpass", sample_rate, freq=300.0),
            BiquadFilter("highshelf", sample_rate, freq=3000.0, gain_db=4.0),
        ]

    def _formant_filters(self, section: str, sample_rate: int):
        if not section:
            return []
        formant = FORMANTS.get(section, FORMANTS["A"])
        return [
            BiquadFilter("peaking", sample_rate, freq=formant["f1"]["freq"], q=2.0,
                         gain_db=formant["f1"]["gain"]),
            BiquadFilter("peaking", sample_rate, freq=formant["f2"]["freq"], q=2.0,
                         gain_db=formant["f2"]["gain"]),
        ]

    def process(self,
                input_buffer: Optional[np.ndarray],
                params: Dict[str, Any],
                event: Optional[VoiceEvent],
                context: ProcessContext) -> np.ndarray:
        """
        Render one triggered note.

        Args:
            input_buffer: Not used (voice plugin)
            params: Voice parameters (see plugins.voicing)
            event: Note to render
            context: Audio processing context

        Returns:
            Gate plus release tail, mono float32
        """
        if event is None:
            return np.array([], dtype=np.float32)

        sample_rate = context.sample_rate
        gate_samples = int(event.duration * sample_rate)
        num_samples = gate_samples + self.get_tail_samples(params, context)
        if num_samples <= 0:
            return np.zeros(0, dtype=np.float32)

        frequency = event.frequency_curve(num_samples, sample_rate)
        if params.get("vibrato", False):
            frequency = apply_vibrato(frequency, sample_rate)

        # Modulator
        harmonicity = params.get("harmonicity", 3.0)
        mod_envelope = adsr_envelope(
            num_samples,
            params.get("mod_attack", 1.0),
            params.get("mod_decay", 0.3),
            params.get("mod_sustain", 0.05),
            params.get("mod_release", 0.6),
            gate_samples,
            sample_rate,
        )
        mod_phase = integrate_phase(frequency * harmonicity, sample_rate)
        modulator = generate_waveform(params.get("modulation_type", "sine"), mod_phase)
        modulator = modulator * mod_envelope * params.get("modulation_index", 10.0)

        # Carrier (phase-modulated)
        carrier_phase = integrate_phase(frequency, sample_rate)
        output = generate_waveform(params.get("oscillator", "triangle"), carrier_phase + modulator)

        amp_envelope = adsr_envelope(
            num_samples,
            params.get("attack", 1.2),
            params.get("decay", 0.3),
            params.get("sustain", 0.85),
            params.get("release", 0.8),
            gate_samples,
            sample_rate,
        )
        output = output * amp_envelope

        # Chain: mode filters -> formants
        for biquad in self._mode_filters(params.get("operatic", False), sample_rate):
            output = biquad.process(output)
        for biquad in self._formant_filters(params.get("section", ""), sample_rate):
            output = biquad.process(output)

        output = output * event.velocity * db_to_linear(params.get("volume_db", -6.0))
        return output.astype(np.float32)


# For compatibility with registry discovery
__all__ = ['FMVoice']
