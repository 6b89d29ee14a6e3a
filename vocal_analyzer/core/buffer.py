"""Sample buffer - decoded PCM handed to the core by a capture source."""

from dataclasses import dataclass
import numpy as np
import librosa

from .errors import InvalidInputError


@dataclass(frozen=True)
class SampleBuffer:
    """Float PCM samples with their sample rate.

    Samples are shaped ``(n,)`` for mono or ``(channels, n)`` for
    multi-channel audio. The buffer is never modified by the core.
    """

    samples: np.ndarray
    sample_rate: int
    channels: int = 1

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float32)

        if isinstance(self.sample_rate, bool) or not isinstance(
            self.sample_rate, (int, np.integer)
        ):
            raise InvalidInputError(
                f"Sample rate must be an integer, got {self.sample_rate!r}"
            )
        if self.sample_rate <= 0:
            raise InvalidInputError(f"Sample rate must be positive, got {self.sample_rate}")
        if samples.ndim not in (1, 2):
            raise InvalidInputError(
                f"Expected a 1-D or 2-D sample array, got {samples.ndim} dimensions"
            )
        if samples.size == 0:
            raise InvalidInputError("Sample buffer is empty")

        channels = 1 if samples.ndim == 1 else samples.shape[0]
        if self.channels != channels:
            raise InvalidInputError(
                f"Channel count {self.channels} does not match sample array ({channels})"
            )
        if not np.all(np.isfinite(samples)):
            raise InvalidInputError("Sample buffer contains NaN or infinite values")

        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "sample_rate", int(self.sample_rate))

    @classmethod
    def from_array(cls, samples, sample_rate: int) -> "SampleBuffer":
        """Build a buffer, inferring the channel count from the array shape."""
        array = np.asarray(samples, dtype=np.float32)
        channels = array.shape[0] if array.ndim == 2 else 1
        return cls(array, sample_rate, channels)

    @property
    def frames(self) -> int:
        """Number of samples per channel."""
        return self.samples.shape[-1]

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.frames / self.sample_rate

    def mono(self) -> np.ndarray:
        """Get a mono view of the samples (downmixed when multi-channel)."""
        if self.samples.ndim == 1:
            return self.samples
        return librosa.to_mono(np.ascontiguousarray(self.samples))
