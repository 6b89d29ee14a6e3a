"""Live mode: per-frame pitch, note, vibrato and key from a PCM stream.

The capture side pushes raw blocks into a ring buffer; the display side calls
`LiveSession.tick()` once per frame. Every tick analyses the newest window,
but a snapshot is only returned at the configured UI rate.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional
import numpy as np

from ..core import AnalysisConfig, InvalidInputError, Note, note_from_frequency
from ..analysis.pitch import create_estimator, rms
from ..analysis.vibrato import VibratoDetector, VibratoState
from ..inference.key import KeyEstimate, LiveKeyTracker
from ..inference.voice import classify_register


class RingBuffer:
    """Fixed-capacity FIFO of float32 samples."""

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise InvalidInputError(f"Ring buffer capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._data = np.zeros(capacity, dtype=np.float32)
        self._write = 0
        self._filled = 0

    def __len__(self) -> int:
        return self._filled

    def push(self, samples: np.ndarray) -> None:
        samples = np.asarray(samples, dtype=np.float32).ravel()
        if len(samples) >= self.capacity:
            self._data[:] = samples[-self.capacity:]
            self._write = 0
            self._filled = self.capacity
            return

        end = self._write + len(samples)
        if end <= self.capacity:
            self._data[self._write:end] = samples
        else:
            split = self.capacity - self._write
            self._data[self._write:] = samples[:split]
            self._data[:end - self.capacity] = samples[split:]
        self._write = end % self.capacity
        self._filled = min(self.capacity, self._filled + len(samples))

    def latest(self, n: int) -> Optional[np.ndarray]:
        """Copy of the newest `n` samples in time order, or None if not filled yet."""
        if n > self._filled:
            return None
        start = (self._write - n) % self.capacity
        if start + n <= self.capacity:
            return self._data[start:start + n].copy()
        return np.concatenate((self._data[start:], self._data[:self._write]))

    def clear(self) -> None:
        self._data[:] = 0.0
        self._write = 0
        self._filled = 0


@dataclass(frozen=True)
class LiveSnapshot:
    """What the display shows for one throttled update."""

    timestamp: float
    frequency: Optional[float]
    stable_frequency: Optional[float]
    note: Optional[Note]
    cents: int
    volume: float
    voice_type: str
    key: Optional[KeyEstimate] = None
    vibrato: VibratoState = field(default_factory=VibratoState)

    @property
    def is_voiced(self) -> bool:
        return self.frequency is not None

    def to_dict(self) -> dict:
        return {
            "timestamp": round(self.timestamp, 3),
            "frequency": round(self.frequency, 2) if self.frequency else None,
            "stable_frequency": round(self.stable_frequency, 2) if self.stable_frequency else None,
            "note": self.note.full_name if self.note else None,
            "cents": self.cents,
            "volume": round(self.volume, 4),
            "voice_type": self.voice_type,
            "key": self.key.name if self.key else None,
            "vibrato": self.vibrato.to_dict(),
        }


class NoteStabilizer:
    """Holds the displayed pitch until the raw pitch settles.

    The raw pitch must stay within `tolerance_hz` of the last jump for more
    than `frames` consecutive frames before it replaces the displayed value.
    """

    def __init__(self, tolerance_hz: float = 2.0, frames: int = 3):
        self.tolerance_hz = tolerance_hz
        self.frames = frames
        self.reset()

    def update(self, frequency: float) -> Optional[float]:
        if abs(frequency - self._reference) < self.tolerance_hz:
            self._steady += 1
            if self._steady > self.frames:
                self.stable = frequency
        else:
            self._steady = 0
            self._reference = frequency
        return self.stable

    def reset(self) -> None:
        self._reference = 0.0
        self._steady = 0
        self.stable: Optional[float] = None


class LiveSession:
    """Streaming analysis for a microphone-like source."""

    def __init__(
        self,
        sample_rate: int,
        config: Optional[AnalysisConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize LiveSession.

        Args:
            sample_rate: Rate of the pushed samples
            config: Analysis configuration (default: AnalysisConfig())
            clock: Time source used when `tick` gets no timestamp
        """
        if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, np.integer)) \
                or sample_rate <= 0:
            raise InvalidInputError(f"Sample rate must be a positive integer, got {sample_rate!r}")

        self.sample_rate = int(sample_rate)
        self.config = config or AnalysisConfig()
        self._clock = clock

        self.window_size = self.config.live_window_size
        self.estimator = create_estimator(self.config.pitch_algorithm, self.sample_rate)
        self.ring = RingBuffer(max(self.window_size * 2, self.sample_rate))
        self.vibrato = VibratoDetector()
        self.key_tracker = LiveKeyTracker()
        self.stabilizer = NoteStabilizer()

        self._last_emit: Optional[float] = None
        self.frames_analyzed = 0

    @property
    def update_interval(self) -> float:
        return 1.0 / self.config.ui_update_hz

    def start(self) -> None:
        """Begin a new stream with no carried-over state."""
        self.reset()

    def reset(self) -> None:
        """Discard buffered audio and all tracker state."""
        self.ring.clear()
        self.vibrato.reset()
        self.key_tracker.reset()
        self.stabilizer.reset()
        self._last_emit = None
        self.frames_analyzed = 0

    def push(self, samples: np.ndarray) -> None:
        """Append a block of mono samples from the capture source."""
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim != 1:
            raise InvalidInputError(f"Expected a 1-D block of samples, got shape {samples.shape}")
        if not np.all(np.isfinite(samples)):
            raise InvalidInputError("Sample block contains NaN or infinite values")
        self.ring.push(samples)

    def tick(self, now: Optional[float] = None) -> Optional[LiveSnapshot]:
        """
        Analyse the newest window.

        Args:
            now: Frame timestamp in seconds (default: the session clock)

        Returns:
            LiveSnapshot, or None while the buffer is filling or the UI is throttled
        """
        if now is None:
            now = self._clock()

        window = self.ring.latest(self.window_size)
        if window is None:
            return None

        snapshot = self.process(window, now)
        if self._last_emit is not None and now - self._last_emit < self.update_interval:
            return None
        self._last_emit = now
        return snapshot

    def process(self, window: np.ndarray, now: float) -> LiveSnapshot:
        """Run one frame of analysis, updating vibrato, key and stabilizer state."""
        config = self.config
        self.frames_analyzed += 1

        window = np.asarray(window, dtype=np.float32) * config.input_gain
        volume = rms(window)

        frequency = None
        if volume > config.noise_gate_threshold:
            estimate = self.estimator.estimate(window)
            if estimate.within(config.min_frequency, config.max_frequency):
                frequency = estimate.frequency

        note = note_from_frequency(frequency)
        if note is None:
            self.vibrato.reset()
            return LiveSnapshot(
                timestamp=now,
                frequency=None,
                stable_frequency=self.stabilizer.stable,
                note=None,
                cents=0,
                volume=volume,
                voice_type=classify_register(None).name,
                key=self.key_tracker.stable_key,
                vibrato=self.vibrato.state,
            )

        vibrato = self.vibrato.update(frequency, now)
        stable = self.stabilizer.update(frequency)

        self.key_tracker.add_note(note.pitch_class)
        key = self.key_tracker.update()

        return LiveSnapshot(
            timestamp=now,
            frequency=frequency,
            stable_frequency=stable,
            note=note,
            cents=note.cents,
            volume=volume,
            voice_type=classify_register(frequency, config.register_gender).name,
            key=key,
            vibrato=vibrato,
        )
