"""Analysis configuration shared by the live and offline engines."""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict

from .constants import DEFAULT_WINDOW_SIZE, MAX_PITCH_HZ, MIN_PITCH_HZ, NOISE_GATE_RMS
from .errors import InvalidInputError


class PitchAlgorithm(Enum):
    """Pitch estimation algorithms."""
    AUTOCORRELATION = "autocorrelation"
    YIN = "yin"
    CREPE = "crepe"


@dataclass
class AnalysisConfig:
    """Configuration for live and offline analysis.

    Attributes:
        input_gain: Multiplier applied to samples before analysis (default: 1.0)
        noise_gate_threshold: RMS below which a live frame is treated as silence (default: 0.01)
        analysis_window_seconds: Seconds of audio analysed offline, 0 = full buffer (default: 0)
        pitch_algorithm: Estimator used by the live loop (default: autocorrelation)
        key_pitch_algorithm: Estimator behind the offline histogram key strategy (default: yin)
        use_spectral_key_detection: Goertzel chroma instead of pitch histogram offline (default: True)
        live_window_size: Samples per live analysis window (default: 2048)
        ui_update_hz: Maximum live snapshot rate (default: 20)
        min_frequency: Lowest plausible pitch in Hz (default: 50)
        max_frequency: Highest plausible pitch in Hz (default: 1400)
        vocal_bandpass: Band-pass the buffer to 150-1200 Hz before the range scan (default: True)
        key_timeout_seconds: Wall-clock cap for offline key detection (default: 30)
        tempo_timeout_seconds: Wall-clock cap for offline tempo detection (default: 30)
        checkpoint_frames: Frames processed between forced checkpoints (default: 200)
        checkpoint_slice_seconds: Work allowed between checkpoints (default: 0.016)
        register_gender: Threshold preset for chest/mix/head classification (default: "male")
    """

    input_gain: float = 1.0
    noise_gate_threshold: float = NOISE_GATE_RMS
    analysis_window_seconds: float = 0.0
    pitch_algorithm: PitchAlgorithm = PitchAlgorithm.AUTOCORRELATION
    key_pitch_algorithm: PitchAlgorithm = PitchAlgorithm.YIN
    use_spectral_key_detection: bool = True
    live_window_size: int = DEFAULT_WINDOW_SIZE
    ui_update_hz: float = 20.0
    min_frequency: float = MIN_PITCH_HZ
    max_frequency: float = MAX_PITCH_HZ
    vocal_bandpass: bool = True
    key_timeout_seconds: float = 30.0
    tempo_timeout_seconds: float = 30.0
    checkpoint_frames: int = 200
    checkpoint_slice_seconds: float = 0.016
    register_gender: str = "male"

    def __post_init__(self):
        self.pitch_algorithm = self._algorithm(self.pitch_algorithm)
        self.key_pitch_algorithm = self._algorithm(self.key_pitch_algorithm)

        if self.input_gain < 0:
            raise InvalidInputError(f"input_gain must be >= 0, got {self.input_gain}")
        if self.noise_gate_threshold < 0:
            raise InvalidInputError(
                f"noise_gate_threshold must be >= 0, got {self.noise_gate_threshold}"
            )
        if self.analysis_window_seconds < 0:
            raise InvalidInputError(
                f"analysis_window_seconds must be >= 0, got {self.analysis_window_seconds}"
            )
        if self.live_window_size < 64:
            raise InvalidInputError(
                f"live_window_size must be at least 64 samples, got {self.live_window_size}"
            )
        if self.ui_update_hz <= 0:
            raise InvalidInputError(f"ui_update_hz must be positive, got {self.ui_update_hz}")
        if not 0 < self.min_frequency < self.max_frequency:
            raise InvalidInputError(
                f"Invalid frequency bounds: {self.min_frequency}-{self.max_frequency} Hz"
            )
        if self.key_timeout_seconds <= 0 or self.tempo_timeout_seconds <= 0:
            raise InvalidInputError("Stage timeouts must be positive")
        if self.checkpoint_frames < 1:
            raise InvalidInputError(
                f"checkpoint_frames must be >= 1, got {self.checkpoint_frames}"
            )
        if self.register_gender not in ("male", "female"):
            raise InvalidInputError(
                f"register_gender must be 'male' or 'female', got {self.register_gender!r}"
            )

    @staticmethod
    def _algorithm(value) -> PitchAlgorithm:
        if isinstance(value, PitchAlgorithm):
            return value
        try:
            return PitchAlgorithm(str(value).lower())
        except ValueError:
            raise InvalidInputError(
                f"Unknown pitch algorithm: {value}. "
                f"Supported: {[a.value for a in PitchAlgorithm]}"
            ) from None

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "AnalysisConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["pitch_algorithm"] = self.pitch_algorithm.value
        result["key_pitch_algorithm"] = self.key_pitch_algorithm.value
        return result
