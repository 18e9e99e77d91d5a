"""
Simplified FM voice for offline rendering.

Only harmonicity, modulation index and waveform follow the note; envelopes
are fixed and the chain is just FM -> vibrato? -> volume, which keeps a full
phrase render fast.
"""
import numpy as np
from typing import Dict, Any, Optional

from audio.dsp import (
    adsr_envelope,
    apply_vibrato,
    db_to_linear,
    generate_waveform,
    integrate_phase,
)
from plugins.base import (
    AudioProcessor,
    PluginMetadata,
    PluginCategory,
    ParameterSpec,
    ParameterType,
    ProcessContext,
    VoiceEvent,
)

# Fixed envelopes: (attack, decay, sustain, release)
AMP_ENVELOPE = (1.0, 0.3, 0.8, 0.8)
MOD_ENVELOPE = (0.8, 0.3, 0.5, 0.5)


class SimpleFMVoice(AudioProcessor):
    """Fixed-envelope FM voice."""

    def get_metadata(self) -> PluginMetadata:
        """Define plugin identity and parameters."""
        return PluginMetadata(
            id="SIMPLE_FM_VOICE",
            name="Simple FM Voice",
            category=PluginCategory.VOICE,
            version="1.0.0",
            author="omchant",
            description="Fast FM voice for offline phrase rendering",
            parameters=[
                ParameterSpec(
                    name="harmonicity",
                    type=ParameterType.FLOAT,
                    default=2.0,
                    min_val=0.1,
                    max_val=10.0,
                ),
                ParameterSpec(
                    name="modulation_index",
                    type=ParameterType.FLOAT,
                    default=8.0,
                    min_val=0.0,
                    max_val=20.0,
                ),
                ParameterSpec(
                    name="oscillator",
                    type=ParameterType.ENUM,
                    default="sine",
                    enum_values=["sine", "triangle"],
                ),
                ParameterSpec(
                    name="volume_db",
                    type=ParameterType.FLOAT,
                    default=-6.0,
                    min_val=-60.0,
                    max_val=36.0,
                    unit="dB",
                ),
                ParameterSpec(name="vibrato", type=ParameterType.BOOL, default=False),
            ]
        )

    def get_tail_samples(self, params: Dict[str, Any], context: ProcessContext) -> int:
        return int(AMP_ENVELOPE[3] * context.sample_rate)

    def process(self,
                input_buffer: Optional[np.ndarray],
                params: Dict[str, Any],
                event: Optional[VoiceEvent],
                context: ProcessContext) -> np.ndarray:
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

        mod_envelope = adsr_envelope(num_samples, *MOD_ENVELOPE, gate_samples, sample_rate)
        mod_phase = integrate_phase(frequency * params.get("harmonicity", 2.0), sample_rate)
        modulator = np.sin(mod_phase) * mod_envelope * params.get("modulation_index", 8.0)

        carrier_phase = integrate_phase(frequency, sample_rate)
        output = generate_waveform(params.get("oscillator", "sine"), carrier_phase + modulator)
        output = output * adsr_envelope(num_samples, *AMP_ENVELOPE, gate_samples, sample_rate)

        output = output * event.velocity * db_to_linear(params.get("volume_db", -6.0))
        return output.astype(np.float32)


# For compatibility with registry discovery
__all__ = ['SimpleFMVoice']
