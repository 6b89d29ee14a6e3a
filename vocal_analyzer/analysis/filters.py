"""Band-limiting filters applied before tempo and range analysis."""

from typing import Optional
import numpy as np
from scipy import signal

from ..core import Checkpoint, Steps, run_steps

# Kick/bass band used for tempo detection
TEMPO_BAND = (30.0, 200.0)

# Vocal band used before range detection (cuts kick/bass and cymbals)
VOCAL_BAND = (150.0, 1200.0)

# Samples filtered between checkpoints
CHUNK_SIZE = 65536


def design_bandpass(
    sr: int,
    low_hz: Optional[float],
    high_hz: Optional[float],
    order: int = 2,
) -> Optional[np.ndarray]:
    """
    Second-order sections for a high-pass followed by a low-pass Butterworth.

    Either corner may be None to skip that side. Corners at or beyond
    Nyquist are ignored.

    Returns:
        Stacked sections, or None when neither side applies
    """
    nyquist = sr / 2.0
    sections = []

    if low_hz is not None and 0 < low_hz < nyquist:
        sections.append(signal.butter(order, low_hz, btype="highpass", fs=sr, output="sos"))

    if high_hz is not None and 0 < high_hz < nyquist:
        sections.append(signal.butter(order, high_hz, btype="lowpass", fs=sr, output="sos"))

    if not sections:
        return None
    return np.vstack(sections)


def bandpass(
    audio: np.ndarray,
    sr: int,
    low_hz: Optional[float],
    high_hz: Optional[float],
    order: int = 2,
) -> np.ndarray:
    """
    Apply a high-pass followed by a low-pass Butterworth filter.

    Args:
        audio: Mono samples
        sr: Sample rate
        low_hz: High-pass corner frequency
        high_hz: Low-pass corner frequency
        order: Filter order per side

    Returns:
        Filtered copy of the audio (float32)
    """
    return run_steps(bandpass_steps(audio, sr, low_hz, high_hz, Checkpoint(), order))


def bandpass_steps(
    audio: np.ndarray,
    sr: int,
    low_hz: Optional[float],
    high_hz: Optional[float],
    checkpoint: Checkpoint,
    order: int = 2,
    chunk_size: int = CHUNK_SIZE,
) -> Steps:
    """Checkpointed version of `bandpass`, filtering `chunk_size` samples at a time.

    The filter state is carried across chunks, so the output matches a
    single pass over the whole buffer.
    """
    audio = np.asarray(audio, dtype=np.float64)
    sos = design_bandpass(sr, low_hz, high_hz, order)
    if sos is None:
        return audio.astype(np.float32)

    out = np.empty_like(audio)
    zi = np.zeros((sos.shape[0], 2))
    for start in range(0, len(audio), chunk_size):
        stop = start + chunk_size
        out[start:stop], zi = signal.sosfilt(sos, audio[start:stop], zi=zi)
        if checkpoint.due():
            yield

    return out.astype(np.float32)


def tempo_band(audio: np.ndarray, sr: int) -> np.ndarray:
    """Isolate kick/bass-driven rhythm."""
    return bandpass(audio, sr, *TEMPO_BAND)


def tempo_band_steps(audio: np.ndarray, sr: int, checkpoint: Checkpoint) -> Steps:
    return (yield from bandpass_steps(audio, sr, *TEMPO_BAND, checkpoint))


def vocal_band(audio: np.ndarray, sr: int) -> np.ndarray:
    """Reduce instrument energy outside the singing range."""
    return bandpass(audio, sr, *VOCAL_BAND)


def vocal_band_steps(audio: np.ndarray, sr: int, checkpoint: Checkpoint) -> Steps:
    return (yield from bandpass_steps(audio, sr, *VOCAL_BAND, checkpoint))
