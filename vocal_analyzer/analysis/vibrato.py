"""Vibrato detection from a stream of pitch samples."""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Optional, Tuple
import numpy as np

from ..core import midi_from_frequency


class VibratoQuality(Enum):
    """Vibrato quality grades."""
    EXCELLENT = "Excellent"
    GOOD = "Good"
    WEAK = "Weak"


@dataclass(frozen=True)
class VibratoState:
    """Current vibrato reading."""

    is_vibrato: bool = False
    rate_hz: float = 0.0
    depth_cents: float = 0.0
    quality: Optional[VibratoQuality] = None

    def to_dict(self) -> dict:
        return {
            "is_vibrato": self.is_vibrato,
            "rate_hz": round(self.rate_hz, 2),
            "depth_cents": round(self.depth_cents, 1),
            "quality": self.quality.value if self.quality else None,
        }


class VibratoDetector:
    """Streaming vibrato analyzer.

    Each voiced frame is converted to a deviation in cents from the semitone
    center of the note being held, passed through a one-pole low-pass, and kept in a sliding time
    window. Rate comes from zero-crossings of the mean-removed deviation,
    depth from its peak-to-peak spread.
    """

    # Rate bands (Hz)
    IDEAL_RATE = (4.5, 7.5)
    GOOD_RATE = (3.5, 8.5)
    DETECT_RATE = (3.0, 10.0)

    # Depth bands (peak-to-peak cents of the smoothed deviation)
    IDEAL_DEPTH = 20.0
    GOOD_DEPTH = 10.0
    MIN_DEPTH = 4.0
    MAX_DEPTH = 300.0

    # Cycle period coefficient of variation allowed for "Excellent"
    MAX_PERIOD_VARIATION = 0.2

    # Deviation (cents) that counts as a new note rather than vibrato
    NOTE_CHANGE_CENTS = 150.0

    def __init__(
        self,
        window_seconds: float = 1.5,
        smoothing: float = 0.15,
        max_samples: int = 512,
    ):
        """
        Initialize VibratoDetector.

        Args:
            window_seconds: Length of the analysed pitch history
            smoothing: Fraction of each new deviation blended into the smoothed value (1 = none)
            max_samples: Hard cap on stored samples
        """
        self.window_seconds = window_seconds
        self.smoothing = smoothing
        self.max_samples = max_samples

        self._history: Deque[Tuple[float, float]] = deque(maxlen=max_samples)
        self._anchor: Optional[int] = None
        self._smoothed = 0.0
        self._state = VibratoState()

    @property
    def is_tracking(self) -> bool:
        return self._anchor is not None

    @property
    def state(self) -> VibratoState:
        return self._state

    def reset(self) -> None:
        """Clear all history (silence or session end)."""
        self._history.clear()
        self._anchor = None
        self._smoothed = 0.0
        self._state = VibratoState()

    def update(self, frequency: float, timestamp: float) -> VibratoState:
        """
        Add a voiced pitch sample.

        Args:
            frequency: Pitch in Hz
            timestamp: Sample time in seconds

        Returns:
            Updated VibratoState
        """
        if frequency is None or frequency <= 0:
            self.reset()
            return self._state

        # Clock went backwards: start over
        if self._history and timestamp < self._history[-1][0]:
            self.reset()

        cents = midi_from_frequency(frequency) * 100.0
        if self._anchor is None or abs(cents - self._anchor) > self.NOTE_CHANGE_CENTS:
            self.reset()
            self._anchor = int(round(cents / 100.0)) * 100

        deviation = cents - self._anchor
        self._smoothed += (deviation - self._smoothed) * self.smoothing

        self._history.append((timestamp, self._smoothed))
        while self._history and timestamp - self._history[0][0] > self.window_seconds:
            self._history.popleft()

        self._state = self._analyze()
        return self._state

    def _analyze(self) -> VibratoState:
        if len(self._history) < 8:
            return VibratoState()

        times = np.array([t for t, _ in self._history])
        values = np.array([v for _, v in self._history])
        values = values - values.mean()

        crossings = self._zero_crossings(times, values)
        if len(crossings) < 4:  # fewer than 2 full cycles
            return VibratoState()

        span = crossings[-1] - crossings[0]
        if span <= 0:
            return VibratoState()

        rate = (len(crossings) - 1) / (2.0 * span)
        depth = float(np.percentile(values, 95) - np.percentile(values, 5))

        if not (self.DETECT_RATE[0] <= rate <= self.DETECT_RATE[1]):
            return VibratoState(False, rate, depth, None)
        if not (self.MIN_DEPTH <= depth <= self.MAX_DEPTH):
            return VibratoState(False, rate, depth, None)

        quality = self._grade(rate, depth, crossings)
        return VibratoState(True, rate, depth, quality)

    def _grade(self, rate: float, depth: float, crossings: np.ndarray) -> VibratoQuality:
        # Full periods between every other crossing
        periods = crossings[2:] - crossings[:-2]
        variation = float(np.std(periods) / np.mean(periods)) if len(periods) else 1.0
        cycles = (len(crossings) - 1) / 2.0

        ideal_rate = self.IDEAL_RATE[0] <= rate <= self.IDEAL_RATE[1]
        if ideal_rate and depth >= self.IDEAL_DEPTH and cycles >= 3 and (
            variation <= self.MAX_PERIOD_VARIATION
        ):
            return VibratoQuality.EXCELLENT

        if self.GOOD_RATE[0] <= rate <= self.GOOD_RATE[1] and depth >= self.GOOD_DEPTH:
            return VibratoQuality.GOOD

        return VibratoQuality.WEAK

    @staticmethod
    def _zero_crossings(times: np.ndarray, values: np.ndarray) -> np.ndarray:
        """Linearly interpolated sign-change times."""
        signs = values >= 0
        idx = np.flatnonzero(signs[1:] != signs[:-1])
        if len(idx) == 0:
            return idx.astype(float)

        v0, v1 = values[idx], values[idx + 1]
        t0, t1 = times[idx], times[idx + 1]
        fraction = v0 / (v0 - v1)
        return t0 + fraction * (t1 - t0)
