"""
Configuration dataclasses for OM playback.

Replaces the process-wide tuning and section-volume globals with explicit
values that callers pass down to the parser and players.
"""
from dataclasses import dataclass, field
from typing import Dict, Any, Mapping, Optional

from core.constants import (
    TUNING_MIN,
    TUNING_MAX,
    SECTION_VOLUMES,
    DEFAULT_TOTAL_DURATION,
    DEFAULT_OVERLAP_RATIO,
    DEFAULT_VOLUME_DB,
    DEFAULT_VOICE_VOLUME_DB,
)


def validate_tuning_offset(semitones: int) -> int:
    """
    Check a tuning offset is within -12..+12 semitones.

    Returns:
        The offset, unchanged

    Raises:
        ValueError: If out of range
    """
    if not TUNING_MIN <= semitones <= TUNING_MAX:
        raise ValueError(
            f"Tuning offset must be {TUNING_MIN} to {TUNING_MAX} semitones, got {semitones}"
        )
    return semitones


@dataclass(frozen=True)
class SectionEnvelope:
    """
    Per-group volume envelope.

    Keys are exact group names ("A1", "M2"); groups not listed play at
    default_volume. A volume of 0.0 silences the group.
    """
    volumes: Mapping[str, float] = field(default_factory=lambda: dict(SECTION_VOLUMES))
    default_volume: float = 1.0

    def __post_init__(self):
        """Validate volumes are within 0.0-1.0."""
        for group, volume in self.volumes.items():
            if not 0.0 <= volume <= 1.0:
                raise ValueError(f"Section volume for {group} must be 0.0-1.0, got {volume}")
        if not 0.0 <= self.default_volume <= 1.0:
            raise ValueError(f"Default volume must be 0.0-1.0, got {self.default_volume}")

    def volume_for(self, group: Optional[str]) -> float:
        """Volume scalar for a group name."""
        if group is None:
            return self.default_volume
        return self.volumes.get(group, self.default_volume)

    def to_dict(self) -> Dict[str, Any]:
        return {"volumes": dict(self.volumes), "default_volume": self.default_volume}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SectionEnvelope":
        return cls(
            volumes=dict(data.get("volumes", SECTION_VOLUMES)),
            default_volume=data.get("default_volume", 1.0),
        )


@dataclass(frozen=True)
class PlaybackDefaults:
    """
    Default playback parameters.

    Attributes:
        duration: Total phrase duration in seconds at 1x speed
        overlap_ratio: Sounding length relative to the note slot (>1 blends)
        default_volume_db: Master volume in dB
        voice_volume_db: Per-voice volume in dB
    """
    duration: float = DEFAULT_TOTAL_DURATION
    overlap_ratio: float = DEFAULT_OVERLAP_RATIO
    default_volume_db: float = DEFAULT_VOLUME_DB
    voice_volume_db: float = DEFAULT_VOICE_VOLUME_DB

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Duration must be positive, got {self.duration}")
        if self.overlap_ratio <= 0:
            raise ValueError(f"Overlap ratio must be positive, got {self.overlap_ratio}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration": self.duration,
            "overlap_ratio": self.overlap_ratio,
            "default_volume_db": self.default_volume_db,
            "voice_volume_db": self.voice_volume_db,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaybackDefaults":
        return cls(
            duration=data.get("duration", DEFAULT_TOTAL_DURATION),
            overlap_ratio=data.get("overlap_ratio", DEFAULT_OVERLAP_RATIO),
            default_volume_db=data.get("default_volume_db", DEFAULT_VOLUME_DB),
            voice_volume_db=data.get("voice_volume_db", DEFAULT_VOICE_VOLUME_DB),
        )


@dataclass(frozen=True)
class OMConfig:
    """
    Top-level configuration.

    Attributes:
        tuning_offset: Semitones applied to every note built (-12..+12)
        sample_rate: Audio sample rate in Hz
        block_size: Output stream block size in frames
        playback: Playback defaults
        sections: Section volume envelope
    """
    tuning_offset: int = 0
    sample_rate: int = 44100
    block_size: int = 512
    playback: PlaybackDefaults = field(default_factory=PlaybackDefaults)
    sections: SectionEnvelope = field(default_factory=SectionEnvelope)

    def __post_init__(self):
        """Validate configuration."""
        validate_tuning_offset(self.tuning_offset)
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.block_size <= 0:
            raise ValueError(f"Block size must be positive, got {self.block_size}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "tuning_offset": self.tuning_offset,
            "sample_rate": self.sample_rate,
            "block_size": self.block_size,
            "playback": self.playback.to_dict(),
            "sections": self.sections.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OMConfig":
        """Create OMConfig from dictionary."""
        return cls(
            tuning_offset=data.get("tuning_offset", 0),
            sample_rate=data.get("sample_rate", 44100),
            block_size=data.get("block_size", 512),
            playback=PlaybackDefaults.from_dict(data.get("playback", {})),
            sections=SectionEnvelope.from_dict(data.get("sections", {})),
        )
