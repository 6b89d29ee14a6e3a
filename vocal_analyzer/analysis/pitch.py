"""Pitch estimation on short windows of time-domain samples.

Interchangeable estimators:
- Autocorrelation: fast, used by the live loop on short windows
- YIN: cumulative mean normalized difference, used for offline scans
- CREPE: neural tracker, needs the optional crepe extra
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import numpy as np
import librosa
from scipy.signal import correlate, fftconvolve

from ..core import InvalidInputError, PitchAlgorithm, SILENCE_RMS


def rms(frame: np.ndarray) -> float:
    """Root mean square level of a frame."""
    if len(frame) == 0:
        return 0.0
    frame = np.asarray(frame, dtype=np.float64)
    return float(np.sqrt(np.mean(frame * frame)))


@dataclass(frozen=True)
class PitchEstimate:
    """Result of a pitch estimate. `frequency` is None when unvoiced."""

    frequency: Optional[float]
    confidence: float = 0.0

    @property
    def is_voiced(self) -> bool:
        return self.frequency is not None

    def within(self, fmin: float, fmax: float) -> bool:
        """Check the estimate is voiced and inside a plausible range."""
        return self.frequency is not None and fmin <= self.frequency <= fmax

    @classmethod
    def unvoiced(cls) -> "PitchEstimate":
        return cls(None, 0.0)


class PitchEstimator(ABC):
    """Base class for window-level pitch estimators."""

    def __init__(self, sample_rate: int, silence_threshold: float = SILENCE_RMS):
        self.sample_rate = sample_rate
        self.silence_threshold = silence_threshold

    @abstractmethod
    def estimate(self, window: np.ndarray) -> PitchEstimate:
        """
        Estimate the fundamental frequency of a window.

        Args:
            window: Mono samples

        Returns:
            PitchEstimate (unvoiced for silence or no periodicity)
        """
        pass


class AutocorrelationEstimator(PitchEstimator):
    """Unnormalized autocorrelation with parabolic peak refinement.

    Cost grows with the square of the window length, so this is only meant
    for short live windows (2048 samples or less).
    """

    def __init__(
        self,
        sample_rate: int,
        silence_threshold: float = SILENCE_RMS,
        trim_threshold: float = 0.2,
    ):
        super().__init__(sample_rate, silence_threshold)
        self.trim_threshold = trim_threshold

    def estimate(self, window: np.ndarray) -> PitchEstimate:
        buf = np.asarray(window, dtype=np.float64)
        if len(buf) < 4 or rms(buf) < self.silence_threshold:
            return PitchEstimate.unvoiced()

        buf = self._trim(buf)
        n = len(buf)
        if n < 4:
            return PitchEstimate.unvoiced()

        # c[i] = sum(buf[j] * buf[j + i])
        c = correlate(buf, buf, mode="full")[n - 1:]
        if c[0] <= 0:
            return PitchEstimate.unvoiced()

        # Skip the initial downward slope from lag 0
        d = 0
        while d < n - 1 and c[d] > c[d + 1]:
            d += 1
        if d >= n - 1:
            return PitchEstimate.unvoiced()

        t0 = d + int(np.argmax(c[d:]))
        if t0 <= 0:
            return PitchEstimate.unvoiced()

        lag = float(t0)
        if 0 < t0 < n - 1:
            x1, x2, x3 = c[t0 - 1], c[t0], c[t0 + 1]
            a = (x1 + x3 - 2 * x2) / 2
            b = (x3 - x1) / 2
            if a:
                lag = t0 - b / (2 * a)

        if lag <= 0:
            return PitchEstimate.unvoiced()

        confidence = float(np.clip(c[t0] / c[0], 0.0, 1.0))
        return PitchEstimate(self.sample_rate / lag, confidence)

    def _trim(self, buf: np.ndarray) -> np.ndarray:
        """Drop edge regions up to the first quiet sample on each side."""
        size = len(buf)
        half = size // 2
        r1, r2 = 0, size - 1

        quiet = np.flatnonzero(np.abs(buf[:half]) < self.trim_threshold)
        if len(quiet):
            r1 = int(quiet[0])

        tail = np.abs(buf[size - np.arange(1, half)]) < self.trim_threshold
        quiet = np.flatnonzero(tail)
        if len(quiet):
            r2 = size - 1 - int(quiet[0])

        return buf[r1:r2]


class YinEstimator(PitchEstimator):
    """YIN estimator (de Cheveigne & Kawahara) with parabolic interpolation."""

    def __init__(
        self,
        sample_rate: int,
        silence_threshold: float = SILENCE_RMS,
        threshold: float = 0.15,
        interpolate: bool = True,
    ):
        super().__init__(sample_rate, silence_threshold)
        self.threshold = threshold
        self.interpolate = interpolate

    def estimate(self, window: np.ndarray) -> PitchEstimate:
        x = np.asarray(window, dtype=np.float64)
        half = len(x) // 2
        if half < 4 or rms(x) < self.silence_threshold:
            return PitchEstimate.unvoiced()

        cmndf = self.cmndf(x)

        below = np.flatnonzero(cmndf[2:] < self.threshold)
        if len(below) == 0:
            return PitchEstimate.unvoiced()

        # Absolute threshold, then walk down to the local minimum
        tau = int(below[0]) + 2
        while tau + 1 < half and cmndf[tau + 1] < cmndf[tau]:
            tau += 1

        better_tau = float(tau)
        if self.interpolate and 0 < tau < half - 1:
            s0, s1, s2 = cmndf[tau - 1], cmndf[tau], cmndf[tau + 1]
            denom = 2 * (2 * s1 - s2 - s0)
            if denom != 0:
                adjustment = (s2 - s0) / denom
                if abs(adjustment) < 1:
                    better_tau = tau + adjustment

        confidence = float(np.clip(1.0 - cmndf[tau], 0.0, 1.0))
        return PitchEstimate(self.sample_rate / better_tau, confidence)

    @staticmethod
    def difference(x: np.ndarray) -> np.ndarray:
        """d[tau] = sum_{i < N/2} (x[i] - x[i + tau])^2 for tau in [0, N/2)."""
        half = len(x) // 2
        x = x[: 2 * half]
        energy = np.concatenate(([0.0], np.cumsum(x * x)))

        taus = np.arange(half)
        head = energy[half]
        shifted = energy[taus + half] - energy[taus]
        cross = fftconvolve(x, x[:half][::-1], mode="full")[half - 1: 2 * half - 1]

        return np.maximum(head + shifted - 2.0 * cross, 0.0)

    @classmethod
    def cmndf(cls, x: np.ndarray) -> np.ndarray:
        """Cumulative mean normalized difference function, d'[0] = 1."""
        d = cls.difference(x)
        running = np.cumsum(d[1:])

        result = np.ones_like(d)
        with np.errstate(divide="ignore", invalid="ignore"):
            normalized = d[1:] * np.arange(1, len(d)) / running
        result[1:] = np.where(running > 0, normalized, 1.0)
        return result


class CrepeEstimator(PitchEstimator):
    """CREPE neural pitch tracker applied to a single window.

    Requires the optional `crepe` package (and TensorFlow). The window is
    resampled to 16 kHz, CREPE runs in 10 ms steps, and the median frequency
    of the confident steps is reported.
    """

    MODEL_SR = 16000

    def __init__(
        self,
        sample_rate: int,
        silence_threshold: float = SILENCE_RMS,
        model_capacity: str = "tiny",
        confidence_threshold: float = 0.5,
        step_size: int = 10,
    ):
        """
        Initialize CrepeEstimator.

        Args:
            sample_rate: Sample rate of incoming windows
            silence_threshold: RMS below which a window is unvoiced
            model_capacity: CREPE model size ('tiny', 'small', 'medium', 'large', 'full')
            confidence_threshold: Minimum CREPE confidence for a step to count
            step_size: Milliseconds between CREPE steps
        """
        super().__init__(sample_rate, silence_threshold)
        try:
            import crepe
        except ImportError:
            raise InvalidInputError(
                "The crepe pitch algorithm needs the optional crepe package "
                "(pip install 'vocal-analyzer[crepe]')"
            ) from None

        self._crepe = crepe
        self.model_capacity = model_capacity
        self.confidence_threshold = confidence_threshold
        self.step_size = step_size

    def estimate(self, window: np.ndarray) -> PitchEstimate:
        buf = np.asarray(window, dtype=np.float32)
        if len(buf) < 4 or rms(buf) < self.silence_threshold:
            return PitchEstimate.unvoiced()

        # CREPE expects 16kHz audio
        if self.sample_rate != self.MODEL_SR:
            buf = librosa.resample(buf, orig_sr=self.sample_rate, target_sr=self.MODEL_SR)

        _, frequency, confidence, _ = self._crepe.predict(
            buf,
            self.MODEL_SR,
            model_capacity=self.model_capacity,
            viterbi=False,
            step_size=self.step_size,
            verbose=0,
        )

        confident = np.asarray(confidence) >= self.confidence_threshold
        if not confident.any():
            return PitchEstimate.unvoiced()

        frequency = np.asarray(frequency)[confident]
        return PitchEstimate(
            float(np.median(frequency)),
            float(np.mean(np.asarray(confidence)[confident])),
        )


def create_estimator(
    algorithm: PitchAlgorithm,
    sample_rate: int,
    silence_threshold: float = SILENCE_RMS,
) -> PitchEstimator:
    """Build the estimator for a configured algorithm."""
    if algorithm == PitchAlgorithm.YIN:
        return YinEstimator(sample_rate, silence_threshold)
    if algorithm == PitchAlgorithm.CREPE:
        return CrepeEstimator(sample_rate, silence_threshold)
    return AutocorrelationEstimator(sample_rate, silence_threshold)
