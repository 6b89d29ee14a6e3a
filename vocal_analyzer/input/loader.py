"""Decode audio files into SampleBuffers for the offline and replay commands."""

from pathlib import Path
from typing import Optional, Union

import librosa

from ..core import DEFAULT_SR, InvalidInputError, SampleBuffer

PathLike = Union[str, Path]


class AudioLoader:
    """Turns an audio file into a validated SampleBuffer.

    Decoding and resampling are left to librosa; the loader only checks the
    path up front and hands the core a buffer it can trust.
    """

    SUPPORTED_FORMATS = frozenset({".wav", ".mp3", ".flac", ".ogg", ".m4a", ".mp4"})

    def __init__(self, target_sr: Optional[int] = DEFAULT_SR, mono: bool = True):
        """
        Initialize AudioLoader.

        Args:
            target_sr: Sample rate to resample to (None keeps the file's rate)
            mono: Downmix to one channel while decoding
        """
        self.target_sr = target_sr
        self.mono = mono

    def load(self, path: PathLike, duration: Optional[float] = None) -> SampleBuffer:
        """
        Decode a file.

        Args:
            path: Path to audio file
            duration: Only decode this many seconds from the start (None = whole file)

        Returns:
            SampleBuffer shaped (n,) or (channels, n)

        Raises:
            FileNotFoundError: If the file doesn't exist
            InvalidInputError: If the format is unsupported or nothing was decoded
        """
        path = self.check_path(path)

        samples, sr = librosa.load(
            str(path),
            sr=self.target_sr,
            mono=self.mono,
            duration=duration,
        )
        if samples.size == 0:
            raise InvalidInputError(f"{path.name} contains no audio")

        return SampleBuffer.from_array(samples, int(sr))

    @classmethod
    def check_path(cls, path: PathLike) -> Path:
        """Validate that a path exists and has a decodable extension."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        if path.suffix.lower() not in cls.SUPPORTED_FORMATS:
            raise InvalidInputError(
                f"Unsupported format: {path.suffix}. "
                f"Supported: {sorted(cls.SUPPORTED_FORMATS)}"
            )
        return path

    @staticmethod
    def non_silent_duration(buffer: SampleBuffer, top_db: float = 30.0) -> float:
        """Seconds left after trimming leading and trailing silence."""
        _, (start, end) = librosa.effects.trim(buffer.samples, top_db=top_db)
        return (end - start) / buffer.sample_rate
