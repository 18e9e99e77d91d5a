"""
Immutable data models for OM notation.

All models are frozen dataclasses:
- A parsed voice spec never changes once built
- Group/section tagging returns a new Note (dataclasses.replace)
- Safe to share between the parser, the players and the render thread
"""
import dataclasses
from dataclasses import dataclass
from typing import Optional, Dict, Any

from core.constants import SCALE_BANDS


@dataclass(frozen=True)
class VoiceToken:
    """
    Grammar-level parse of a single voice spec.

    Attributes:
        raw: Original spec text
        voice_type: Voice family (sng, ydl, tlk, rap, ...)
        mode: Voice mode (opr = operatic, nrm = normal)
        register: Register (mdl = modal, fls = falsetto, ...)
        articulation: Articulation (vbr = vibrato, sld = slide, ...)
        octave_layer: Base octave
        pitch_class: Pitch letter (uppercased)
        pitch_num: Diatonic degree of the key (1-8)
        scale_type: Scale band ("sl" low, "sh" high)
        scale_num: Scale degree (1-8)
        trajectory: Raw trajectory argument ("-0.5" or "-0.5:1.0"), if any
    """
    raw: str
    voice_type: str
    mode: str
    register: str
    articulation: str
    octave_layer: int
    pitch_class: str
    pitch_num: int
    scale_type: str
    scale_num: int
    trajectory: Optional[str] = None

    def __post_init__(self):
        """Validate scale band."""
        if self.scale_type not in SCALE_BANDS:
            raise ValueError(f"Scale type must be one of {SCALE_BANDS}, got {self.scale_type}")


@dataclass(frozen=True)
class Note:
    """
    Pitched note event built from a VoiceToken.

    Attributes:
        raw .. scale_num: Copied from the VoiceToken
        key_note: Key name + octave before scale-degree and register offsets
        scale_index: Combined band/degree index (sl1=0 .. sh8=15)
        traj_start: Trajectory start (bend units)
        traj_end: Trajectory end (bend units)
        traj_start_semitones: traj_start * 2
        traj_end_semitones: traj_end * 2
        note_name: Resolved note name + octave (e.g. "C5")
        octave: Resolved octave
        start_frequency: Frequency at note start (Hz)
        end_frequency: Frequency at note end (Hz)
        tuning_offset: Tuning offset (semitones) baked into the frequencies
        group: Preset group name (e.g. "A1"), None until tagged
        section: First letter of group, uppercased, None until tagged
    """
    raw: str
    voice_type: str
    mode: str
    register: str
    articulation: str
    octave_layer: int
    pitch_class: str
    pitch_num: int
    scale_type: str
    scale_num: int
    key_note: str
    scale_index: int
    traj_start: float
    traj_end: float
    traj_start_semitones: float
    traj_end_semitones: float
    note_name: str
    octave: int
    start_frequency: float
    end_frequency: float
    tuning_offset: int = 0
    group: Optional[str] = None
    section: Optional[str] = None

    def __post_init__(self):
        """Validate note values."""
        if not 0 <= self.scale_index <= 15:
            raise ValueError(f"Scale index must be 0-15, got {self.scale_index}")
        if self.start_frequency <= 0 or self.end_frequency <= 0:
            raise ValueError(
                f"Frequencies must be positive, got {self.start_frequency}/{self.end_frequency}"
            )

    @property
    def frequency(self) -> float:
        """Playback frequency (the start frequency)."""
        return self.start_frequency

    @property
    def has_glide(self) -> bool:
        """True if the note ramps between two frequencies."""
        return self.start_frequency != self.end_frequency

    @property
    def trajectory_magnitude(self) -> float:
        """Largest absolute trajectory value."""
        return max(abs(self.traj_start), abs(self.traj_end))

    def with_group(self, group: str) -> "Note":
        """Return a copy tagged with a preset group and its section letter."""
        section = group[:1].upper() or None
        return dataclasses.replace(self, group=group, section=section)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        """Create Note from dictionary."""
        return cls(
            raw=data["raw"],
            voice_type=data["voice_type"],
            mode=data["mode"],
            register=data["register"],
            articulation=data["articulation"],
            octave_layer=data["octave_layer"],
            pitch_class=data["pitch_class"],
            pitch_num=data["pitch_num"],
            scale_type=data["scale_type"],
            scale_num=data["scale_num"],
            key_note=data["key_note"],
            scale_index=data["scale_index"],
            traj_start=data.get("traj_start", 0.0),
            traj_end=data.get("traj_end", 0.0),
            traj_start_semitones=data.get("traj_start_semitones", 0.0),
            traj_end_semitones=data.get("traj_end_semitones", 0.0),
            note_name=data["note_name"],
            octave=data["octave"],
            start_frequency=data["start_frequency"],
            end_frequency=data["end_frequency"],
            tuning_offset=data.get("tuning_offset", 0),
            group=data.get("group"),
            section=data.get("section"),
        )
