"""Inference layer - Musical understanding and classification.

This layer builds higher-level results from pitch and spectrum:
- Key detection (tonal center) from chroma
- Vocal range, tessitura and voice type
- Vocal register (chest / mixed / head)

Pipeline: Frames → [Chroma → Key, Pitch histogram → Range → Voice type]
"""

from .key import (
    KeyEstimator,
    KeyEstimate,
    KeyCandidate,
    LiveKeyTracker,
    ChromaStrategy,
    HistogramChroma,
    SpectralChroma,
    Mode,
    correlate_key,
    goertzel,
)
from .voice import (
    VoiceRangeAnalyzer,
    VoiceRangeResult,
    Register,
    classify_voice_type,
    classify_register,
)

__all__ = [
    # Key detection
    "KeyEstimator",
    "KeyEstimate",
    "KeyCandidate",
    "LiveKeyTracker",
    "ChromaStrategy",
    "HistogramChroma",
    "SpectralChroma",
    "Mode",
    "correlate_key",
    "goertzel",
    # Voice classification
    "VoiceRangeAnalyzer",
    "VoiceRangeResult",
    "Register",
    "classify_voice_type",
    "classify_register",
]
