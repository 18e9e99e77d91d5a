"""
Plugin contract for voices and effects.

A plugin describes its parameters up front (PluginMetadata) and renders
audio through a single process() call. Voices render one VoiceEvent into a
fresh mono buffer; effects transform a buffer they are handed. Scheduling,
clocks and devices stay outside plugins.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional
import numpy as np


class ParameterType(Enum):
    FLOAT = "float"
    INT = "int"
    BOOL = "bool"
    ENUM = "enum"


class PluginCategory(Enum):
    VOICE = "voice"    # renders notes
    EFFECT = "effect"  # transforms a mix


@dataclass(frozen=True)
class ParameterSpec:
    """
    One tweakable plugin parameter.

    Numeric parameters carry an inclusive [min_val, max_val] range and enum
    parameters their allowed choices. ``unit`` and ``description`` are
    informational only.
    """
    name: str
    type: ParameterType
    default: Any
    min_val: Optional[float] = None
    max_val: Optional[float] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    enum_values: Optional[List[str]] = None
    unit: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("ParameterSpec needs a name")

        if self.type is ParameterType.ENUM:
            if not self.enum_values:
                raise ValueError(f"{self.name}: enum parameter without choices")
            if self.default not in self.enum_values:
                raise ValueError(f"{self.name}: default {self.default!r} is not a choice")
        elif self.is_numeric:
            if self.min_val is None or self.max_val is None:
                raise ValueError(f"{self.name}: numeric parameter needs a range")
            if self.max_val <= self.min_val:
                raise ValueError(f"{self.name}: empty range [{self.min_val}, {self.max_val}]")
            if self.default < self.min_val or self.default > self.max_val:
                raise ValueError(f"{self.name}: default {self.default} outside range")

    @property
    def is_numeric(self) -> bool:
        return self.type in (ParameterType.FLOAT, ParameterType.INT)

    @property
    def label(self) -> str:
        """Human readable name, derived from ``name`` when not given."""
        return self.display_name or self.name.replace("_", " ").title()

    def coerce(self, value: Any) -> Any:
        """
        Bring a value into this parameter's domain.

        Numbers are clamped to the range, enum values outside the choices fall
        back to the default.
        """
        if self.is_numeric:
            value = min(max(value, self.min_val), self.max_val)
            return int(round(value)) if self.type is ParameterType.INT else float(value)
        if self.type is ParameterType.BOOL:
            return bool(value)
        if value not in self.enum_values:
            return self.default
        return value


@dataclass(frozen=True)
class PluginMetadata:
    """Identity of a plugin plus its parameter list."""
    id: str
    name: str
    category: PluginCategory
    version: str
    author: str
    description: str
    parameters: List[ParameterSpec] = field(default_factory=list)

    def __post_init__(self):
        if not self.id or not self.id.isupper():
            raise ValueError(f"Plugin ID must be non-empty UPPER_CASE, got {self.id!r}")
        if not self.name:
            raise ValueError(f"Plugin {self.id} has no name")
        if not _is_semver(self.version):
            raise ValueError(f"Plugin {self.id}: version {self.version!r} is not X.Y.Z")

        seen = set()
        for spec in self.parameters:
            if spec.name in seen:
                raise ValueError(f"Plugin {self.id}: parameter {spec.name} declared twice")
            seen.add(spec.name)

    def spec(self, name: str) -> ParameterSpec:
        for candidate in self.parameters:
            if candidate.name == name:
                return candidate
        raise KeyError(f"Plugin {self.id} has no parameter {name!r}")

    def defaults(self) -> Dict[str, Any]:
        """Default value for every parameter."""
        return {p.name: p.default for p in self.parameters}

    def resolve(self, overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Full parameter dict: defaults with ``overrides`` applied and coerced.

        Raises:
            KeyError: an override names an unknown parameter
        """
        params = self.defaults()
        for name, value in overrides.items():
            params[name] = self.spec(name).coerce(value)
        return params


def _is_semver(version: str) -> bool:
    parts = version.split(".")
    return len(parts) == 3 and all(part.isdigit() for part in parts)


@dataclass
class ProcessContext:
    sample_rate: int


@dataclass(frozen=True)
class VoiceEvent:
    """
    One triggered note for a voice plugin to render.

    Times are seconds relative to the note's attack.

    Attributes:
        frequency: Frequency at attack (Hz)
        duration: Gate length before release (seconds)
        velocity: Amplitude scale (0.0-1.0)
        ramp_target: Frequency to glide to, or None for a steady pitch
        ramp_start: When the glide begins
        ramp_duration: How long the glide takes
    """
    frequency: float
    duration: float
    velocity: float = 1.0
    ramp_target: Optional[float] = None
    ramp_start: float = 0.0
    ramp_duration: float = 0.0

    def __post_init__(self):
        """Validate event."""
        if self.frequency <= 0:
            raise ValueError(f"Frequency must be positive, got {self.frequency}")
        if self.duration < 0:
            raise ValueError(f"Duration must be non-negative, got {self.duration}")
        if not 0.0 <= self.velocity <= 1.0:
            raise ValueError(f"Velocity must be 0.0-1.0, got {self.velocity}")

    def frequency_curve(self, num_samples: int, sample_rate: int) -> np.ndarray:
        """
        Instantaneous frequency per sample.

        Glides are exponential (equal steps in pitch).
        """
        curve = np.full(num_samples, self.frequency, dtype=np.float64)
        if self.ramp_target is None or self.ramp_target <= 0:
            return curve

        start = max(0, int(self.ramp_start * sample_rate))
        if start >= num_samples:
            return curve

        ramp_samples = int(self.ramp_duration * sample_rate)
        ratio = self.ramp_target / self.frequency
        if ramp_samples > 0:
            progress = np.minimum(np.arange(num_samples - start) / ramp_samples, 1.0)
        else:
            progress = np.ones(num_samples - start)
        curve[start:] = self.frequency * ratio ** progress
        return curve


class AudioProcessor(ABC):
    """
    A voice or effect.

    Subclasses declare themselves through get_metadata() and do their work in
    process(). Voices with a release tail report its length through
    get_tail_samples(); stateful effects clear themselves in reset().
    """

    @abstractmethod
    def get_metadata(self) -> PluginMetadata:
        raise NotImplementedError()

    @abstractmethod
    def process(self,
                input_buffer: Optional[np.ndarray],
                params: Dict[str, Any],
                event: Optional[VoiceEvent],
                context: ProcessContext) -> np.ndarray:
        """
        Render or transform one mono float32 buffer.

        Voices get ``input_buffer=None`` and an event, and return the gate
        followed by the release tail. A voice must be deterministic in its
        inputs and causal: re-rendering the same note with a glide added later
        leaves every sample before the glide untouched.

        Effects get the buffer to transform and ``event=None``, and return a
        buffer of the same length.
        """
        raise NotImplementedError()

    def get_tail_samples(self, params: Dict[str, Any], context: ProcessContext) -> int:
        """Samples rendered after the gate closes."""
        return 0

    def reset(self):
        pass
