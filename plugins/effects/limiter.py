"""
Master limiter effect plugin.

Peak limiter with instant attack and exponential release. Keeps summed
voices from clipping; one instance sits at the end of every output path.
"""
import math
import numpy as np
from typing import Dict, Any, Optional

from audio.dsp import db_to_linear, peak_limit
from core.constants import LIMITER_THRESHOLD_DB
from plugins.base import (
    AudioProcessor,
    PluginMetadata,
    PluginCategory,
    ParameterSpec,
    ParameterType,
    ProcessContext,
)


class Limiter(AudioProcessor):
    """
    Peak limiter.

    Stateful: the gain reduction carries across blocks so streamed output
    releases smoothly. Call reset() between unrelated renders.
    """

    def __init__(self):
        self._gain = 1.0

    def get_metadata(self) -> PluginMetadata:
        """Define plugin identity and parameters."""
        return PluginMetadata(
            id="LIMITER",
            name="Limiter",
            category=PluginCategory.EFFECT,
            version="1.0.0",
            author="omchant",
            description="Master peak limiter",
            parameters=[
                ParameterSpec(
                    name="threshold_db",
                    type=ParameterType.FLOAT,
                    default=LIMITER_THRESHOLD_DB,
                    min_val=-24.0,
                    max_val=0.0,
                    display_name="Threshold",
                    unit="dB",
                ),
                ParameterSpec(
                    name="release",
                    type=ParameterType.FLOAT,
                    default=0.05,
                    min_val=0.001,
                    max_val=1.0,
                    display_name="Release",
                    unit="s",
                ),
            ]
        )

    def process(self,
                input_buffer: Optional[np.ndarray],
                params: Dict[str, Any],
                event: None,
                context: ProcessContext) -> np.ndarray:
        """
        Limit a block of audio.

        Args:
            input_buffer: Mono audio
            params: Limiter parameters
            event: Not used (effect plugin)
            context: Audio processing context

        Returns:
            Limited audio, same length as input
        """
        if input_buffer is None or len(input_buffer) == 0:
            return np.array([], dtype=np.float32)

        threshold = db_to_linear(params.get("threshold_db", LIMITER_THRESHOLD_DB))
        release = params.get("release", 0.05)
        release_coeff = math.exp(-1.0 / (release * context.sample_rate))

        output, self._gain = peak_limit(
            input_buffer.astype(np.float32), threshold, release_coeff, self._gain
        )
        return output

    def reset(self):
        """Release all gain reduction."""
        self._gain = 1.0


# For compatibility with registry discovery
__all__ = ['Limiter']
