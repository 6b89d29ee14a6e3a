"""Key detection - Identify the tonal center of a performance.

Implements chroma-based key detection with:
- Krumhansl-Schmuckler key profiles
- Two chroma accumulation strategies (pitch histogram, Goertzel spectrum)
- Bounded confidence scoring
- A stabilized tracker for live input
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
import numpy as np
from scipy.signal import lfilter

from ..core import (
    Checkpoint,
    PitchAlgorithm,
    PITCH_NAMES,
    Steps,
    frequency_from_midi,
    note_from_frequency,
    run_steps,
)
from ..analysis.pitch import PitchEstimator, create_estimator, rms


class Mode(Enum):
    """Musical modes."""
    MAJOR = "major"
    MINOR = "minor"


class ChromaStrategy(Enum):
    """How pitch-class energy is accumulated."""
    HISTOGRAM = "histogram"
    SPECTRAL = "spectral"


# Krumhansl-Schmuckler key profiles (cognitive-based)
KRUMHANSL_MAJOR = np.array(
    [6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88]
)
KRUMHANSL_MINOR = np.array(
    [6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17]
)

KEY_PROFILES = {
    Mode.MAJOR: KRUMHANSL_MAJOR,
    Mode.MINOR: KRUMHANSL_MINOR,
}

# Correlation that maps to 100% confidence
CONFIDENCE_SCALE = 50.0

# Scale intervals from root
SCALE_INTERVALS = {
    Mode.MAJOR: [0, 2, 4, 5, 7, 9, 11],
    Mode.MINOR: [0, 2, 3, 5, 7, 8, 10],  # Natural minor
}


@dataclass
class KeyCandidate:
    """A candidate key with its score."""
    tonic: str
    mode: Mode
    correlation: float

    @property
    def name(self) -> str:
        return f"{self.tonic} {self.mode.value}"


@dataclass
class KeyEstimate:
    """Container for key detection results."""

    tonic: Optional[str]  # Key root note (e.g., "C", "F#"), None when unknown
    mode: Optional[Mode]
    confidence: int = 0  # 0 - 100, ordinal only
    correlation: float = 0.0  # Winning correlation score
    chroma: np.ndarray = field(default_factory=lambda: np.zeros(12))
    alternatives: List[KeyCandidate] = field(default_factory=list)  # Next best keys

    @property
    def is_known(self) -> bool:
        return self.tonic is not None and self.mode is not None

    @property
    def name(self) -> str:
        if not self.is_known:
            return "Unknown"
        return f"{self.tonic} {self.mode.value.capitalize()}"

    @property
    def relative_key(self) -> Optional[str]:
        """
        Get the relative major/minor key.

        Relative minor is 3 semitones down from major.
        Relative major is 3 semitones up from minor.
        """
        if not self.is_known:
            return None
        root_idx = PITCH_NAMES.index(self.tonic)
        if self.mode == Mode.MAJOR:
            return f"{PITCH_NAMES[(root_idx - 3) % 12]} Minor"
        return f"{PITCH_NAMES[(root_idx + 3) % 12]} Major"

    @property
    def parallel_key(self) -> Optional[str]:
        """Get the parallel major/minor key (same root, different mode)."""
        if not self.is_known:
            return None
        other = Mode.MINOR if self.mode == Mode.MAJOR else Mode.MAJOR
        return f"{self.tonic} {other.value.capitalize()}"

    def scale_notes(self) -> List[str]:
        """Get the note names of the key's scale."""
        if not self.is_known:
            return []
        root_idx = PITCH_NAMES.index(self.tonic)
        return [PITCH_NAMES[(root_idx + i) % 12] for i in SCALE_INTERVALS[self.mode]]

    def same_key(self, other: Optional["KeyEstimate"]) -> bool:
        return other is not None and (self.tonic, self.mode) == (other.tonic, other.mode)

    @classmethod
    def unknown(cls, chroma: Optional[np.ndarray] = None) -> "KeyEstimate":
        return cls(None, None, 0, 0.0, np.zeros(12) if chroma is None else chroma)

    def to_dict(self) -> Dict:
        return {
            "key": self.name,
            "tonic": self.tonic,
            "mode": self.mode.value if self.mode else None,
            "confidence": self.confidence,
            "correlation": round(self.correlation, 4),
            "relative_key": self.relative_key,
            "chroma": [round(float(v), 4) for v in self.chroma],
            "alternatives": [c.name for c in self.alternatives],
        }


def normalize_chroma(chroma: np.ndarray) -> np.ndarray:
    """Scale a chroma vector so its maximum is 1 (all-zero stays all-zero)."""
    chroma = np.asarray(chroma, dtype=np.float64)
    peak = chroma.max() if len(chroma) else 0.0
    if peak <= 0:
        return np.zeros(12)
    return chroma / peak


def key_candidates(chroma: np.ndarray) -> List[KeyCandidate]:
    """
    Score all 24 keys against a chroma vector.

    Each score is sum(chroma[(i + j) % 12] * profile[j]) against the raw
    Krumhansl-Schmuckler profiles.

    Returns:
        Candidates in scan order: major then minor, tonic ascending
    """
    candidates = []
    for mode, profile in KEY_PROFILES.items():
        for shift in range(12):
            rotated = np.roll(chroma, -shift)
            candidates.append(
                KeyCandidate(PITCH_NAMES[shift], mode, float(np.dot(rotated, profile)))
            )
    return candidates


def correlate_key(chroma: np.ndarray) -> KeyEstimate:
    """
    Find the best matching key for a chroma vector.

    Args:
        chroma: 12-element pitch class energy (any scale)

    Returns:
        KeyEstimate, Unknown when the chroma is empty
    """
    normalized = normalize_chroma(chroma)
    if not normalized.any():
        return KeyEstimate.unknown(normalized)

    candidates = key_candidates(normalized)

    # First maximum in scan order wins ties
    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate.correlation > best.correlation:
            best = candidate

    confidence = int(np.clip(round(best.correlation / CONFIDENCE_SCALE * 100), 0, 100))

    ranked = sorted(
        (c for c in candidates if c is not best),
        key=lambda c: c.correlation,
        reverse=True,
    )

    return KeyEstimate(
        tonic=best.tonic,
        mode=best.mode,
        confidence=confidence,
        correlation=best.correlation,
        chroma=normalized,
        alternatives=ranked[:3],
    )


def goertzel(samples: np.ndarray, target_freq: float, sr: int) -> float:
    """
    Goertzel algorithm - magnitude of a single frequency component.

    Runs the second-order Goertzel recurrence s[n] = x[n] + 2cos(w)s[n-1] - s[n-2]
    and combines its last two states.
    """
    w = 2 * np.pi * target_freq / sr
    cos_w, sin_w = np.cos(w), np.sin(w)
    states = lfilter([1.0], [1.0, -2 * cos_w, 1.0], np.asarray(samples, dtype=np.float64))
    if len(states) < 2:
        return 0.0
    s1, s2 = states[-1], states[-2]
    real = s1 - s2 * cos_w
    imag = s2 * sin_w
    return float(np.sqrt(real * real + imag * imag))


class ChromaAccumulator(ABC):
    """Accumulates pitch-class energy from analysis frames."""

    def __init__(self):
        self._bins = np.zeros(12)
        self.frames = 0

    @abstractmethod
    def accumulate(self, frame: np.ndarray) -> None:
        """Add one frame of samples."""
        pass

    def chroma(self) -> np.ndarray:
        """Normalized chroma vector (max = 1, or all zeros)."""
        return normalize_chroma(self._bins)

    @property
    def raw(self) -> np.ndarray:
        return self._bins.copy()

    def reset(self) -> None:
        self._bins = np.zeros(12)
        self.frames = 0


class HistogramChroma(ChromaAccumulator):
    """Counts detected pitch classes, optionally forgetting old ones."""

    def __init__(
        self,
        estimator: Optional[PitchEstimator] = None,
        decay: float = 1.0,
        min_rms: float = 0.005,
        fmin: float = 60.0,
        fmax: float = 2000.0,
    ):
        """
        Initialize HistogramChroma.

        Args:
            estimator: Pitch estimator used by `accumulate` (not needed when
                pitch classes are fed directly)
            decay: Factor applied to every bin before each increment (1 = none)
            min_rms: Frames quieter than this are skipped
            fmin: Lowest accepted pitch
            fmax: Highest accepted pitch
        """
        super().__init__()
        self.estimator = estimator
        self.decay = decay
        self.min_rms = min_rms
        self.fmin = fmin
        self.fmax = fmax
        self.notes = 0

    def accumulate(self, frame: np.ndarray) -> None:
        if self.estimator is None:
            raise ValueError("HistogramChroma needs a pitch estimator to accumulate frames")
        self.frames += 1
        if rms(frame) <= self.min_rms:
            return

        estimate = self.estimator.estimate(frame)
        if not estimate.within(self.fmin, self.fmax):
            return

        note = note_from_frequency(estimate.frequency)
        if note is not None:
            self.add_pitch_class(note.pitch_class)

    def add_pitch_class(self, index: int) -> None:
        """Count one detected note (0=C, 1=C#, ...)."""
        if index is None or not 0 <= index <= 11:
            return
        if self.decay != 1.0:
            self._bins *= self.decay
        self._bins[index] += 1.0
        self.notes += 1

    def reset(self) -> None:
        super().reset()
        self.notes = 0


class SpectralChroma(ChromaAccumulator):
    """Sums Goertzel magnitudes of every pitch class over several octaves."""

    def __init__(self, sr: int, octaves: Tuple[int, ...] = (2, 3, 4, 5)):
        super().__init__()
        self.sr = sr
        self.octaves = octaves

        # Pitch class of every bank frequency, in bank order
        midis = [12 * (octave + 1) + pc for pc in range(12) for octave in octaves]
        self.frequencies = np.array([frequency_from_midi(m) for m in midis])
        self.classes = np.array([m % 12 for m in midis])
        self._basis: Dict[int, np.ndarray] = {}

    def accumulate(self, frame: np.ndarray) -> None:
        magnitudes = self.magnitudes(frame)
        np.add.at(self._bins, self.classes, magnitudes)
        self.frames += 1

    def magnitudes(self, frame: np.ndarray) -> np.ndarray:
        """
        Goertzel magnitude of every bank frequency.

        Evaluated as one matrix product; each row gives the same value as
        `goertzel(frame, f, sr)`.
        """
        frame = np.asarray(frame, dtype=np.float64)
        basis = self._basis.get(len(frame))
        if basis is None:
            n = np.arange(len(frame))
            w = 2 * np.pi * self.frequencies / self.sr
            basis = np.exp(-1j * np.outer(w, n))
            self._basis[len(frame)] = basis
        return np.abs(basis @ frame)


class KeyEstimator:
    """Estimate the key of a complete buffer."""

    def __init__(
        self,
        strategy: ChromaStrategy = ChromaStrategy.SPECTRAL,
        frame_size: int = 4096,
        hop_length: Optional[int] = None,
        pitch_algorithm: PitchAlgorithm = PitchAlgorithm.YIN,
    ):
        """
        Initialize KeyEstimator.

        Args:
            strategy: Chroma accumulation strategy
            frame_size: Samples per analysis frame
            hop_length: Samples between frames (default: frame_size / 2 for
                spectral, frame_size * 2 for histogram)
            pitch_algorithm: Estimator used by the histogram strategy
        """
        self.strategy = strategy
        self.frame_size = frame_size
        if hop_length is None:
            hop_length = frame_size // 2 if strategy == ChromaStrategy.SPECTRAL else frame_size * 2
        self.hop_length = hop_length
        self.pitch_algorithm = pitch_algorithm

    def create_accumulator(self, sr: int) -> ChromaAccumulator:
        if self.strategy == ChromaStrategy.SPECTRAL:
            return SpectralChroma(sr)
        return HistogramChroma(create_estimator(self.pitch_algorithm, sr))

    def estimate(self, audio: np.ndarray, sr: int) -> KeyEstimate:
        """
        Detect key from audio.

        Args:
            audio: Mono audio array
            sr: Sample rate

        Returns:
            KeyEstimate (Unknown when no pitch-class energy was found)
        """
        return run_steps(self.estimate_steps(audio, sr, Checkpoint()))

    def estimate_steps(self, audio: np.ndarray, sr: int, checkpoint: Checkpoint) -> Steps:
        """Checkpointed version of `estimate`."""
        accumulator = self.create_accumulator(sr)
        audio = np.asarray(audio, dtype=np.float32)

        for start in range(0, len(audio) - self.frame_size + 1, self.hop_length):
            accumulator.accumulate(audio[start:start + self.frame_size])
            if checkpoint.due():
                yield

        if isinstance(accumulator, HistogramChroma) and accumulator.notes < LiveKeyTracker.MIN_NOTES:
            return KeyEstimate.unknown(accumulator.chroma())

        return correlate_key(accumulator.chroma())


class LiveKeyTracker:
    """Decaying pitch histogram with a flicker filter for live input.

    A new key is only reported after winning `stable_updates` consecutive
    updates; until then the previous stable key (or None) is returned.
    """

    MIN_NOTES = 10

    def __init__(self, decay: float = 0.995, stable_updates: int = 15, min_notes: int = MIN_NOTES):
        self.histogram = HistogramChroma(decay=decay)
        self.stable_updates = stable_updates
        self.min_notes = min_notes

        self._candidate: Optional[KeyEstimate] = None
        self._consistency = 0
        self._stable: Optional[KeyEstimate] = None

    @property
    def stable_key(self) -> Optional[KeyEstimate]:
        return self._stable

    def add_note(self, pitch_class: int) -> None:
        self.histogram.add_pitch_class(pitch_class)

    def current(self) -> Optional[KeyEstimate]:
        """Unfiltered best key for the current histogram."""
        if self.histogram.notes < self.min_notes:
            return None
        estimate = correlate_key(self.histogram.chroma())
        return estimate if estimate.is_known else None

    def update(self) -> Optional[KeyEstimate]:
        """
        Re-estimate and apply the stability filter.

        Returns:
            The committed key, or None while still detecting
        """
        candidate = self.current()
        if candidate is None:
            return self._stable

        if candidate.same_key(self._candidate):
            self._consistency += 1
        else:
            self._consistency = 1
        self._candidate = candidate

        if self._consistency >= self.stable_updates:
            self._stable = candidate

        return self._stable

    def reset(self) -> None:
        self.histogram.reset()
        self._candidate = None
        self._consistency = 0
        self._stable = None
