"""Vocal Analyzer - Pitch, key, tempo and vocal range analysis for singers.

Architecture Layers:
    1. core/       - Note mapping, sample buffers, configuration, errors, checkpoints
    2. input/      - Audio file decoding
    3. analysis/   - Frame-level signal analysis (pitch, vibrato, tempo, filters)
    4. inference/  - Musical understanding (key, vocal range, voice type, register)
    5. engine/     - Live and offline orchestration
"""

__version__ = "0.3.0"

# Core types
from .core import (
    Note,
    note_from_frequency,
    frequency_from_midi,
    SampleBuffer,
    AnalysisConfig,
    PitchAlgorithm,
    AnalysisError,
    InvalidInputError,
    AnalysisTimeout,
    AnalysisCancelled,
    CancellationToken,
)

# Input layer
from .input import AudioLoader

# Analysis layer
from .analysis import (
    AutocorrelationEstimator,
    YinEstimator,
    PitchEstimate,
    VibratoDetector,
    TempoAnalyzer,
)

# Inference layer
from .inference import (
    KeyEstimator,
    KeyEstimate,
    LiveKeyTracker,
    VoiceRangeAnalyzer,
    classify_voice_type,
)

# Engine layer
from .engine import LiveSession, OfflineAnalyzer, AnalysisReport

__all__ = [
    # Core
    "Note",
    "note_from_frequency",
    "frequency_from_midi",
    "SampleBuffer",
    "AnalysisConfig",
    "PitchAlgorithm",
    "AnalysisError",
    "InvalidInputError",
    "AnalysisTimeout",
    "AnalysisCancelled",
    "CancellationToken",
    # Input
    "AudioLoader",
    # Analysis
    "AutocorrelationEstimator",
    "YinEstimator",
    "PitchEstimate",
    "VibratoDetector",
    "TempoAnalyzer",
    # Inference
    "KeyEstimator",
    "KeyEstimate",
    "LiveKeyTracker",
    "VoiceRangeAnalyzer",
    "classify_voice_type",
    # Engine
    "LiveSession",
    "OfflineAnalyzer",
    "AnalysisReport",
]
