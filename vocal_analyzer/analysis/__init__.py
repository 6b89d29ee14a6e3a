"""Analysis layer - Low-level signal analysis.

This layer extracts frame-level measurements from raw audio:
- Pitch detection (autocorrelation, YIN, CREPE)
- Vibrato rate and depth
- Tempo from onset periodicity
- Band-pass filtering
"""

from .pitch import (
    PitchEstimate,
    PitchEstimator,
    AutocorrelationEstimator,
    YinEstimator,
    CrepeEstimator,
    create_estimator,
)
from .vibrato import VibratoDetector, VibratoState, VibratoQuality
from .tempo import TempoAnalyzer, TempoResult
from .filters import bandpass, bandpass_steps, tempo_band, vocal_band

__all__ = [
    # Pitch
    "PitchEstimate",
    "PitchEstimator",
    "AutocorrelationEstimator",
    "YinEstimator",
    "CrepeEstimator",
    "create_estimator",
    # Vibrato
    "VibratoDetector",
    "VibratoState",
    "VibratoQuality",
    # Tempo
    "TempoAnalyzer",
    "TempoResult",
    # Filters
    "bandpass",
    "bandpass_steps",
    "tempo_band",
    "vocal_band",
]
