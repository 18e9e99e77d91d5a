"""
Musical constants and utilities.

Note names, white-key offsets, section envelopes, formants and engine timing.
"""
import math

# Semitone (0-11) to note name
SEMITONE_TO_NOTE = [
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"
]

# White key semitone offsets from C (1=C, 2=D, ... 7=B, 8=C one octave up)
WHITE_KEY_SEMITONES = {
    1: 0,   # C
    2: 2,   # D
    3: 4,   # E
    4: 5,   # F
    5: 7,   # G
    6: 9,   # A
    7: 11,  # B
    8: 12,  # C (next octave)
}

# Scale bands
SCALE_LOW = "sl"
SCALE_HIGH = "sh"
SCALE_BANDS = (SCALE_LOW, SCALE_HIGH)

# Register that shifts the resolved pitch up one octave
FALSETTO_REGISTER = "fls"

# Tuning reference: C4 = 261.63 Hz
REFERENCE_FREQUENCY = 261.63
REFERENCE_OCTAVE = 4

# Global tuning range in semitones
TUNING_MIN = -12
TUNING_MAX = 12

# Trajectory units are pairs of semitones
TRAJECTORY_SEMITONE_SCALE = 2.0

# Playback defaults
DEFAULT_TOTAL_DURATION = 6.0   # Total duration in seconds at 1x speed
DEFAULT_OVERLAP_RATIO = 1.0    # Note overlap for blending
DEFAULT_VOLUME_DB = 24.0       # Default master volume in dB
DEFAULT_VOICE_VOLUME_DB = -6.0  # Per-voice volume used when none is given

# Engine timing (seconds)
GLIDE_LEAD_TIME = 0.05      # Delay after note start before the glide begins
GLIDE_RATIO = 0.8           # Fraction of the note the glide covers
RELEASE_BUFFER = 0.5        # Extra time before a scheduled voice is disposed
ONE_SHOT_RELEASE = 0.8      # Extra time before a one-shot voice is disposed
RENDER_TAIL = 3.0           # Extra render window for release tails
STEP_GAP = 0.05             # Silence between sequencer steps
MIN_STEP_DURATION = 0.1
END_DETECTION_SLACK = 0.1   # Extra wait before declaring playback finished

# Velocity model
BASE_VELOCITY = 0.6
TRAJECTORY_VELOCITY_GAIN = 0.2
MIN_VELOCITY = 0.1
MAX_VELOCITY = 1.0

# Section volume envelope (M2 silent, others at full level)
SECTION_VOLUMES = {
    "A1": 1.00, "A2": 1.00, "A3": 1.00, "A4": 1.00,
    "U1": 1.00, "U2": 1.00, "M1": 1.00, "M2": 0.00,
}

# Vowel formants per section letter (A = "aah", U = "ooh", M = "mmm")
FORMANTS = {
    "A": {"f1": {"freq": 500.0, "gain": 6.0}, "f2": {"freq": 1000.0, "gain": 4.0}},
    "U": {"f1": {"freq": 500.0, "gain": 6.0}, "f2": {"freq": 1200.0, "gain": -2.0}},
    "M": {"f1": {"freq": 300.0, "gain": 4.0}, "f2": {"freq": 800.0, "gain": -6.0}},
}

# Master limiter threshold
LIMITER_THRESHOLD_DB = -3.0


def semitone_to_name(semitone: int, octave: int) -> str:
    """
    Convert a semitone within the octave plus an octave to a note name.

    Example:
        >>> semitone_to_name(0, 5)
        'C5'
        >>> semitone_to_name(10, 3)
        'A#3'
    """
    return f"{SEMITONE_TO_NOTE[semitone % 12]}{octave}"


def white_key_offset(degree: int) -> int:
    """
    Semitone distance from C for a diatonic degree 1-8.

    Unknown degrees map to 0.
    """
    return WHITE_KEY_SEMITONES.get(degree, 0)


def semitones_to_frequency(semitones_from_c4: float) -> float:
    """
    Convert a semitone distance from C4 to a frequency in Hz.

    Equal temperament referenced to C4 = 261.63 Hz.

    Example:
        >>> semitones_to_frequency(0)
        261.63
        >>> round(semitones_to_frequency(12), 2)
        523.26
    """
    return REFERENCE_FREQUENCY * math.pow(2.0, semitones_from_c4 / 12.0)
