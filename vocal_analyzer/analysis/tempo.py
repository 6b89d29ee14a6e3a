"""Tempo analysis from an onset-strength envelope."""

import warnings
from dataclasses import dataclass
from typing import List, Optional, Tuple
import numpy as np

from ..core import Checkpoint, Steps, run_steps
from ..core.constants import MAX_BPM, MIN_BPM
from .filters import tempo_band_steps


@dataclass(frozen=True)
class TempoResult:
    """Container for tempo analysis results. `bpm` is 0 when unknown."""

    bpm: int
    confidence: float = 0.0

    @property
    def is_known(self) -> bool:
        return self.bpm > 0

    @classmethod
    def unknown(cls) -> "TempoResult":
        return cls(0, 0.0)

    def to_dict(self) -> dict:
        return {"bpm": self.bpm, "confidence": round(self.confidence, 4)}


@dataclass(frozen=True)
class _Peak:
    lag: int
    value: float


class TempoAnalyzer:
    """Detect tempo from periodicity of energy onsets.

    Pipeline: band-limit -> frame RMS -> rectified energy flux ->
    autocorrelation over the 60-200 BPM lag range -> harmonic
    disambiguation -> parabolic refinement.
    """

    MIN_ENVELOPE_FRAMES = 100
    TOP_CANDIDATES = 5

    def __init__(
        self,
        frame_size: int = 1024,
        hop_length: int = 512,
        min_bpm: int = MIN_BPM,
        max_bpm: int = MAX_BPM,
        band_limit: bool = True,
        fallback: Optional[Tuple[int, int]] = (2048, 1024),
    ):
        """
        Initialize TempoAnalyzer.

        Args:
            frame_size: Samples per energy frame
            hop_length: Samples between frames
            min_bpm: Slowest tempo reported
            max_bpm: Fastest tempo reported
            band_limit: Filter to 30-200 Hz first to follow kick and bass
            fallback: (frame_size, hop_length) retried when the first pass fails
        """
        self.frame_size = frame_size
        self.hop_length = hop_length
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm
        self.band_limit = band_limit
        self.fallback = fallback

    def detect(self, audio: np.ndarray, sr: int) -> TempoResult:
        """
        Detect tempo.

        Args:
            audio: Mono audio array
            sr: Sample rate

        Returns:
            TempoResult (bpm 0 when the clip is too short or aperiodic)
        """
        return run_steps(self.detect_steps(audio, sr, Checkpoint()))

    def detect_steps(self, audio: np.ndarray, sr: int, checkpoint: Checkpoint) -> Steps:
        """Checkpointed version of `detect`."""
        if self.band_limit:
            audio = yield from tempo_band_steps(audio, sr, checkpoint)
        else:
            audio = np.asarray(audio, dtype=np.float32)
        yield

        passes = [(self.frame_size, self.hop_length)]
        if self.fallback and self.fallback != passes[0]:
            passes.append(self.fallback)

        for frame_size, hop_length in passes:
            envelope = yield from self.onset_envelope_steps(
                audio, frame_size, hop_length, checkpoint
            )
            if len(envelope) < self.MIN_ENVELOPE_FRAMES:
                continue

            result = yield from self.tempo_from_envelope_steps(
                envelope, hop_length, sr, checkpoint
            )
            if result.is_known:
                return result

        warnings.warn("Audio too short or aperiodic for reliable BPM detection")
        return TempoResult.unknown()

    def onset_envelope(self, audio: np.ndarray, frame_size: int, hop_length: int) -> np.ndarray:
        """Half-wave rectified RMS flux per frame, normalized to [0, 1]."""
        return run_steps(self.onset_envelope_steps(audio, frame_size, hop_length, Checkpoint()))

    def onset_envelope_steps(
        self,
        audio: np.ndarray,
        frame_size: int,
        hop_length: int,
        checkpoint: Checkpoint,
    ) -> Steps:
        n_frames = (len(audio) - frame_size) // hop_length
        if n_frames <= 0:
            return np.zeros(0)

        audio = np.asarray(audio, dtype=np.float64)
        energy = np.empty(n_frames)
        for frame in range(n_frames):
            start = frame * hop_length
            chunk = audio[start:start + frame_size]
            energy[frame] = np.sqrt(np.mean(chunk * chunk))
            if checkpoint.due():
                yield

        previous = np.concatenate(([0.0], energy[:-1]))
        envelope = np.maximum(0.0, energy - previous)

        peak = envelope.max()
        if peak > 0:
            envelope = envelope / peak
        return envelope

    def tempo_from_envelope(self, envelope: np.ndarray, hop_length: int, sr: int) -> TempoResult:
        """Find tempo from an onset envelope by autocorrelation."""
        return run_steps(self.tempo_from_envelope_steps(envelope, hop_length, sr, Checkpoint()))

    def tempo_from_envelope_steps(
        self,
        envelope: np.ndarray,
        hop_length: int,
        sr: int,
        checkpoint: Checkpoint,
    ) -> Steps:
        seconds_per_frame = hop_length / sr
        min_lag = int(np.floor(60.0 / (self.max_bpm * seconds_per_frame)))
        max_lag = int(np.ceil(60.0 / (self.min_bpm * seconds_per_frame)))
        min_lag = max(min_lag, 1)

        n = len(envelope)
        if n < max_lag * 2:
            return TempoResult.unknown()

        # Extended range for harmonic checks
        extended = max_lag * 2
        correlation = np.zeros(extended + 1)
        for lag in range(min_lag, min(extended, n - 1) + 1):
            correlation[lag] = float(np.mean(envelope[:n - lag] * envelope[lag:]))
            if checkpoint.due():
                yield

        peaks = self._find_peaks(correlation, min_lag, max_lag)
        if not peaks:
            return TempoResult.unknown()

        best, best_score = self._disambiguate(peaks, correlation, min_lag, seconds_per_frame)
        if best is None:
            return TempoResult.unknown()

        lag = self._refine_lag(correlation, best.lag)
        bpm = self._fold(60.0 / (lag * seconds_per_frame))
        return TempoResult(int(round(bpm)), float(best_score))

    def _find_peaks(self, correlation: np.ndarray, min_lag: int, max_lag: int) -> List[_Peak]:
        peaks = [
            _Peak(lag, float(correlation[lag]))
            for lag in range(min_lag + 1, max_lag - 1)
            if correlation[lag] > correlation[lag - 1] and correlation[lag] > correlation[lag + 1]
        ]
        # Stable sort keeps shorter lags first on ties
        peaks.sort(key=lambda p: p.value, reverse=True)
        return peaks

    def _disambiguate(
        self,
        peaks: List[_Peak],
        correlation: np.ndarray,
        min_lag: int,
        seconds_per_frame: float,
    ) -> Tuple[Optional[_Peak], float]:
        """Resolve half/double tempo confusions among the strongest peaks."""
        best: Optional[_Peak] = None
        best_score = -1.0

        for peak in peaks[:self.TOP_CANDIDATES]:
            half_lag = int(round(peak.lag / 2))
            double_lag = peak.lag * 2

            half_corr = float(correlation[half_lag]) if half_lag >= min_lag else 0.0
            double_corr = float(correlation[double_lag]) if double_lag < len(correlation) else 0.0

            score = peak.value

            # Strong sub-beat: prefer the faster tempo
            if half_corr > peak.value * 0.5:
                half_bpm = 60.0 / (half_lag * seconds_per_frame)
                if self.min_bpm <= half_bpm <= self.max_bpm:
                    score = half_corr * 1.5
                    if score > best_score:
                        best_score = score
                        best = _Peak(half_lag, half_corr)
                    continue

            # Likely a half-time detection
            if double_corr > peak.value * 0.8:
                score *= 0.7

            if score > best_score:
                best_score = score
                best = peak

        return best, best_score

    @staticmethod
    def _refine_lag(correlation: np.ndarray, lag: int) -> float:
        """Parabolic interpolation around a correlation peak."""
        if not 1 < lag < len(correlation) - 1:
            return float(lag)

        y0, y1, y2 = correlation[lag - 1], correlation[lag], correlation[lag + 1]
        denom = 2 * (y0 - 2 * y1 + y2)
        if abs(denom) > 1e-4 * max(abs(y1), 1e-12):
            adjustment = (y0 - y2) / denom
            if abs(adjustment) < 1:
                return lag + adjustment
        return float(lag)

    def _fold(self, bpm: float) -> float:
        """Fold a tempo into [min_bpm, max_bpm] by octave doubling/halving."""
        if bpm <= 0:
            return 0.0
        while bpm < self.min_bpm:
            bpm *= 2
        while bpm > self.max_bpm:
            bpm /= 2
        return bpm
