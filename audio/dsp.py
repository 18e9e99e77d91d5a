"""
DSP utilities and building blocks.

Biquad filters, envelopes, limiting and oscillator helpers used by the voice
plugins and the output stage.
"""
import numpy as np
from numba import jit
from scipy.signal import lfilter


class BiquadFilter:
    """
    Biquad filter (RBJ cookbook).

    The voices use it for mode colouring, vowel formants (peaking) and
    brightness shelving. Coefficients are fixed at construction.
    """

    FILTER_TYPES = ("lowpass", "highpass", "bandpass", "notch", "peaking", "highshelf", "allpass")

    def __init__(self, filter_type: str, sample_rate: int,
                 freq: float = 1000.0, q: float = 0.707, gain_db: float = 0.0):
        """freq is clamped below Nyquist and q to 0.1-20; gain_db only affects peaking and shelving."""
        if filter_type not in self.FILTER_TYPES:
            raise ValueError(f"Unknown filter type: {filter_type}")

        self.filter_type = filter_type
        self.sample_rate = sample_rate

        self.freq = max(20.0, min(freq, sample_rate / 2.0 - 1.0))
        self.q = max(0.1, min(q, 20.0))
        self.gain_db = gain_db

        self.b = np.array([1.0, 0.0, 0.0])
        self.a = np.array([1.0, 0.0, 0.0])
        self._update_coefficients()

    def _update_coefficients(self):
        w0 = 2.0 * np.pi * self.freq / self.sample_rate
        cos_w0 = np.cos(w0)
        sin_w0 = np.sin(w0)
        alpha = sin_w0 / (2.0 * self.q)
        A = 10.0 ** (self.gain_db / 40.0)

        if self.filter_type == "lowpass":
            b = [(1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0]
            a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]

        elif self.filter_type == "highpass":
            b = [(1.0 + cos_w0) / 2.0, -(1.0 + cos_w0), (1.0 + cos_w0) / 2.0]
            a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]

        elif self.filter_type == "bandpass":
            b = [alpha, 0.0, -alpha]
            a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]

        elif self.filter_type == "notch":
            b = [1.0, -2.0 * cos_w0, 1.0]
            a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]

        elif self.filter_type == "peaking":
            b = [1.0 + alpha * A, -2.0 * cos_w0, 1.0 - alpha * A]
            a = [1.0 + alpha / A, -2.0 * cos_w0, 1.0 - alpha / A]

        elif self.filter_type == "highshelf":
            sqrt_a = 2.0 * np.sqrt(A) * alpha
            b = [
                A * ((A + 1.0) + (A - 1.0) * cos_w0 + sqrt_a),
                -2.0 * A * ((A - 1.0) + (A + 1.0) * cos_w0),
                A * ((A + 1.0) + (A - 1.0) * cos_w0 - sqrt_a),
            ]
            a = [
                (A + 1.0) - (A - 1.0) * cos_w0 + sqrt_a,
                2.0 * ((A - 1.0) - (A + 1.0) * cos_w0),
                (A + 1.0) - (A - 1.0) * cos_w0 - sqrt_a,
            ]

        else:  # allpass
            b = [1.0 - alpha, -2.0 * cos_w0, 1.0 + alpha]
            a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]

        self.b = np.asarray(b) / a[0]
        self.a = np.asarray(a) / a[0]

    def process(self, input_buffer: np.ndarray) -> np.ndarray:
        """Filter a whole mono buffer from a zero state."""
        if not len(input_buffer):
            return input_buffer
        return lfilter(self.b, self.a, input_buffer).astype(np.float32)


@jit(nopython=True)
def adsr_envelope(num_samples: int,
                  attack: float,
                  decay: float,
                  sustain: float,
                  release: float,
                  gate_samples: int,
                  sample_rate: int) -> np.ndarray:
    """
    Generate an ADSR envelope (JIT-compiled for speed).

    The gate is held for gate_samples, then the envelope releases from
    whatever level it reached.

    Args:
        num_samples: Envelope length
        attack: Attack time (seconds)
        decay: Decay time (seconds)
        sustain: Sustain level (0.0-1.0)
        release: Release time (seconds)
        gate_samples: Samples before release starts
        sample_rate: Audio sample rate

    Returns:
        Envelope values (0.0-1.0)
    """
    output = np.zeros(num_samples, dtype=np.float32)

    attack_samples = int(attack * sample_rate)
    decay_samples = int(decay * sample_rate)
    release_samples = int(release * sample_rate)

    level = 0.0
    release_level = 0.0

    for i in range(num_samples):
        if i < gate_samples:
            if i < attack_samples:
                level = i / max(1, attack_samples)
            elif i < attack_samples + decay_samples:
                progress = (i - attack_samples) / max(1, decay_samples)
                level = 1.0 - progress * (1.0 - sustain)
            else:
                level = sustain
            release_level = level
        else:
            elapsed = i - gate_samples
            if elapsed < release_samples:
                level = release_level * (1.0 - elapsed / release_samples)
            else:
                level = 0.0

        output[i] = level

    return output


@jit(nopython=True)
def peak_limit(buffer: np.ndarray,
               threshold: float,
               release_coeff: float,
               gain_state: float) -> tuple:
    """
    Peak limiter with instant attack and exponential release.

    Args:
        buffer: Audio to limit
        threshold: Linear ceiling
        release_coeff: Per-sample release smoothing (0-1, closer to 1 = slower)
        gain_state: Gain carried over from the previous block

    Returns:
        (limited audio, gain at the end of the block)
    """
    output = np.empty_like(buffer)
    gain = gain_state

    for i in range(len(buffer)):
        peak = abs(buffer[i])
        target = 1.0
        if peak > threshold:
            target = threshold / peak

        if target < gain:
            gain = target
        else:
            gain = target + (gain - target) * release_coeff

        output[i] = buffer[i] * gain

    return output, gain


def generate_waveform(waveform_type: str, phase: np.ndarray) -> np.ndarray:
    """
    Generate waveform samples from an accumulated phase.

    Args:
        waveform_type: "sine", "triangle", "square" or "sawtooth"
        phase: Phase in radians (one value per sample)

    Returns:
        Waveform samples
    """
    if waveform_type == "sine":
        return np.sin(phase).astype(np.float32)

    cycles = phase / (2.0 * np.pi)
    if waveform_type == "triangle":
        return (2.0 * np.abs(2.0 * ((cycles + 0.75) % 1.0) - 1.0) - 1.0).astype(np.float32)
    elif waveform_type == "square":
        return np.sign(np.sin(phase)).astype(np.float32)
    elif waveform_type == "sawtooth":
        return (2.0 * (cycles % 1.0) - 1.0).astype(np.float32)
    else:
        raise ValueError(f"Unknown waveform: {waveform_type}")


def integrate_phase(frequency: np.ndarray, sample_rate: int) -> np.ndarray:
    """
    Accumulate phase for a (possibly time-varying) frequency curve.

    Args:
        frequency: Instantaneous frequency per sample (Hz)
        sample_rate: Audio sample rate

    Returns:
        Phase in radians, starting at 0
    """
    phase = np.cumsum(frequency) * (2.0 * np.pi / sample_rate)
    return phase - phase[0] if len(phase) else phase


def db_to_linear(db: float) -> float:
    """Amplitude factor for a level in dB (-6 dB is roughly half)."""
    return 10.0 ** (db / 20.0)


def peak_level(buffer: np.ndarray) -> float:
    """Largest absolute sample, 0.0 for an empty buffer."""
    return float(np.max(np.abs(buffer))) if len(buffer) else 0.0


def stereo_from_mono(samples: np.ndarray) -> np.ndarray:
    """Duplicate a mono block into (frames, 2) for a stereo device."""
    return np.column_stack((samples, samples))


def mix_into(target: np.ndarray, source: np.ndarray, offset: int):
    """
    Add source into target starting at sample offset (in place).

    Parts of source falling outside target are dropped.
    """
    if offset >= len(target) or offset + len(source) <= 0:
        return
    src_start = max(0, -offset)
    dst_start = max(0, offset)
    length = min(len(source) - src_start, len(target) - dst_start)
    if length > 0:
        target[dst_start:dst_start + length] += source[src_start:src_start + length]


def apply_vibrato(frequency: np.ndarray, sample_rate: int,
                  rate: float = 5.5, depth: float = 0.5) -> np.ndarray:
    """
    Apply periodic pitch modulation to a frequency curve.

    Args:
        frequency: Instantaneous frequency per sample (Hz)
        sample_rate: Audio sample rate
        rate: Vibrato rate in Hz
        depth: Peak deviation in semitones

    Returns:
        Modulated frequency curve
    """
    t = np.arange(len(frequency)) / sample_rate
    return frequency * 2.0 ** (depth * np.sin(2.0 * np.pi * rate * t) / 12.0)
