"""Core types and constants for Vocal Analyzer."""

from .note import (
    Note,
    note_from_frequency,
    frequency_from_midi,
    midi_from_frequency,
    note_name,
)
from .buffer import SampleBuffer
from .config import AnalysisConfig, PitchAlgorithm
from .checkpoint import (
    Checkpoint,
    CancellationToken,
    Deadline,
    Steps,
    run_steps,
    run_steps_async,
)
from .errors import (
    AnalysisError,
    InvalidInputError,
    AnalysisTimeout,
    AnalysisCancelled,
)
from .constants import (
    PITCH_NAMES,
    DEFAULT_SR,
    DEFAULT_WINDOW_SIZE,
    DEFAULT_HOP_LENGTH,
    SILENCE_RMS,
)

__all__ = [
    "Note",
    "note_from_frequency",
    "frequency_from_midi",
    "midi_from_frequency",
    "note_name",
    "SampleBuffer",
    "AnalysisConfig",
    "PitchAlgorithm",
    "AnalysisError",
    "InvalidInputError",
    "AnalysisTimeout",
    "AnalysisCancelled",
    "Checkpoint",
    "CancellationToken",
    "Deadline",
    "Steps",
    "run_steps",
    "run_steps_async",
    "PITCH_NAMES",
    "DEFAULT_SR",
    "DEFAULT_WINDOW_SIZE",
    "DEFAULT_HOP_LENGTH",
    "SILENCE_RMS",
]
