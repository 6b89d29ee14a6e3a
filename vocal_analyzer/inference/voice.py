"""Vocal range and voice type classification.

The range scan is a coarse monophonic pitch histogram over a whole buffer:
voiced frames are binned by MIDI note, sparse bins are discarded, and the
heaviest contiguous cluster of notes is taken as the singer's range. The
cluster's weighted mean pitch (tessitura) decides the voice type.

NOTE: This is an approximation. Real voice classification needs timbre
analysis, and register thresholds really should be calibrated per singer.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional
import numpy as np

from ..core import (
    DEFAULT_HOP_LENGTH,
    DEFAULT_WINDOW_SIZE,
    Checkpoint,
    Note,
    Steps,
    frequency_from_midi,
    note_from_frequency,
    run_steps,
)
from ..analysis.pitch import PitchEstimator, YinEstimator, rms

INSTRUMENTAL = "Instrumental"

# Upper MIDI bound (exclusive) of each voice type, by tessitura
VOICE_TYPE_BANDS = [
    (48, "Bass"),
    (55, "Baritone"),
    (63, "Tenor"),
    (69, "Alto / Countertenor"),
]
HIGHEST_VOICE_TYPE = "Soprano"

# Register thresholds (Hz): chest below the first, mix below the second
REGISTER_THRESHOLDS = {
    "male": (330.0, 440.0),  # E4, A4
    "female": (440.0, 587.0),  # A4, D5
}


@dataclass(frozen=True)
class VoiceRangeResult:
    """Container for range / voice type analysis."""

    min_note: Optional[Note]
    max_note: Optional[Note]
    tessitura_midi: float
    voice_type: str
    is_instrumental: bool
    voiced_frames: int = 0

    @property
    def min_frequency(self) -> float:
        return self.min_note.target_frequency if self.min_note else 0.0

    @property
    def max_frequency(self) -> float:
        return self.max_note.target_frequency if self.max_note else 0.0

    @property
    def range_label(self) -> str:
        if self.min_note is None or self.max_note is None:
            return "-"
        return f"{self.min_note.full_name} - {self.max_note.full_name}"

    @classmethod
    def instrumental(cls, voiced_frames: int = 0) -> "VoiceRangeResult":
        return cls(None, None, 0.0, INSTRUMENTAL, True, voiced_frames)

    def to_dict(self) -> dict:
        return {
            "voice_type": self.voice_type,
            "is_instrumental": self.is_instrumental,
            "range": self.range_label,
            "min_note": self.min_note.full_name if self.min_note else None,
            "max_note": self.max_note.full_name if self.max_note else None,
            "min_frequency": round(self.min_frequency, 2),
            "max_frequency": round(self.max_frequency, 2),
            "tessitura_midi": round(self.tessitura_midi, 2),
            "voiced_frames": self.voiced_frames,
        }


@dataclass(frozen=True)
class Register:
    """Vocal register estimate for a single pitch."""
    name: str
    confidence: float


def classify_voice_type(tessitura_midi: float) -> str:
    """Map a tessitura (mean MIDI pitch) to a single voice type label."""
    for upper, label in VOICE_TYPE_BANDS:
        if tessitura_midi < upper:
            return label
    return HIGHEST_VOICE_TYPE


def classify_register(frequency: Optional[float], gender: str = "male") -> Register:
    """
    Estimate chest / mixed / head register from pitch alone.

    Args:
        frequency: Pitch in Hz (None or below 50 Hz counts as silence)
        gender: Threshold preset, "male" or "female"

    Returns:
        Register with a rough confidence
    """
    if not frequency or frequency < 50:
        return Register("Silence", 0.0)

    chest_high, mix_high = REGISTER_THRESHOLDS.get(gender, REGISTER_THRESHOLDS["male"])
    if frequency < chest_high:
        return Register("Chest Voice", 0.8)
    if frequency < mix_high:
        return Register("Mixed Voice", 0.6)
    return Register("Head Voice", 0.8)


def cluster_notes(midis: List[int], max_gap: int = 3) -> List[List[int]]:
    """Group sorted MIDI values into runs whose neighbours are at most `max_gap` apart."""
    if not midis:
        return []

    clusters = [[midis[0]]]
    for midi in midis[1:]:
        if midi - clusters[-1][-1] <= max_gap:
            clusters[-1].append(midi)
        else:
            clusters.append([midi])
    return clusters


class VoiceRangeAnalyzer:
    """Scan a buffer for the singer's range, tessitura and voice type."""

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        hop_length: int = DEFAULT_HOP_LENGTH,
        fmin: float = 80.0,  # ~E2
        fmax: float = 1100.0,  # ~C6
        min_rms: float = 0.005,
        relative_rms: float = 0.1,
        min_voiced_frames: int = 10,
        noise_floor: float = 0.01,
        max_gap: int = 3,
        tail_energy_ratio: Optional[float] = None,
        estimator: Optional[PitchEstimator] = None,
    ):
        """
        Initialize VoiceRangeAnalyzer.

        Args:
            window_size: Samples per analysis window
            hop_length: Samples between windows
            fmin: Lowest accepted vocal pitch
            fmax: Highest accepted vocal pitch
            min_rms: Absolute floor of the silence gate
            relative_rms: Gate as a fraction of the whole buffer's RMS
            min_voiced_frames: Fewer voiced frames than this means instrumental
            noise_floor: Fraction of voiced frames a MIDI bin must exceed
            max_gap: Largest semitone gap inside one cluster
            tail_energy_ratio: Trim cluster edge notes whose mean energy is
                below this fraction of the cluster's strongest note (None = off)
            estimator: Pitch estimator (default: YIN at the buffer's rate)
        """
        self.window_size = window_size
        self.hop_length = hop_length
        self.fmin = fmin
        self.fmax = fmax
        self.min_rms = min_rms
        self.relative_rms = relative_rms
        self.min_voiced_frames = min_voiced_frames
        self.noise_floor = noise_floor
        self.max_gap = max_gap
        self.tail_energy_ratio = tail_energy_ratio
        self.estimator = estimator

    def analyze(self, audio: np.ndarray, sr: int) -> VoiceRangeResult:
        """
        Detect vocal range and voice type.

        Args:
            audio: Mono audio array (ideally vocal-band filtered)
            sr: Sample rate

        Returns:
            VoiceRangeResult
        """
        return run_steps(self.analyze_steps(audio, sr, Checkpoint()))

    def analyze_steps(self, audio: np.ndarray, sr: int, checkpoint: Checkpoint) -> Steps:
        """Checkpointed version of `analyze`."""
        counts: Dict[int, int] = defaultdict(int)
        energy: Dict[int, float] = defaultdict(float)
        estimator = self.estimator or YinEstimator(sr)

        audio = np.asarray(audio, dtype=np.float32)
        threshold = max(self.min_rms, rms(audio) * self.relative_rms)

        voiced = 0
        for start in range(0, len(audio) - self.window_size, self.hop_length):
            if checkpoint.due():
                yield

            frame = audio[start:start + self.window_size]
            level = rms(frame)
            if level < threshold:
                continue

            estimate = estimator.estimate(frame)
            if not estimate.within(self.fmin, self.fmax):
                continue

            note = note_from_frequency(estimate.frequency)
            if note is None:
                continue

            counts[note.midi] += 1
            energy[note.midi] += level
            voiced += 1

        return self.summarize(counts, energy, voiced)

    def summarize(
        self,
        counts: Dict[int, int],
        energy: Dict[int, float],
        voiced: int,
    ) -> VoiceRangeResult:
        """Turn a MIDI histogram into a range result."""
        if voiced < self.min_voiced_frames:
            return VoiceRangeResult.instrumental(voiced)

        floor = voiced * self.noise_floor
        valid = sorted(m for m, c in counts.items() if c > floor)
        if not valid:
            return VoiceRangeResult.instrumental(voiced)

        clusters = cluster_notes(valid, self.max_gap)
        # First heaviest cluster wins (lowest on ties)
        best = max(clusters, key=lambda cluster: sum(counts[m] for m in cluster))

        if self.tail_energy_ratio:
            best = self._trim_tails(best, counts, energy)

        weights = np.array([counts[m] for m in best], dtype=float)
        tessitura = float(np.average(best, weights=weights))

        return VoiceRangeResult(
            min_note=note_from_frequency(frequency_from_midi(best[0])),
            max_note=note_from_frequency(frequency_from_midi(best[-1])),
            tessitura_midi=tessitura,
            voice_type=classify_voice_type(tessitura),
            is_instrumental=False,
            voiced_frames=voiced,
        )

    def _trim_tails(
        self,
        cluster: List[int],
        counts: Dict[int, int],
        energy: Dict[int, float],
    ) -> List[int]:
        """Drop weak notes from both ends of a cluster."""
        mean_energy = {m: energy[m] / counts[m] for m in cluster}
        cutoff = max(mean_energy.values()) * self.tail_energy_ratio

        lo, hi = 0, len(cluster) - 1
        while lo < hi and mean_energy[cluster[lo]] < cutoff:
            lo += 1
        while hi > lo and mean_energy[cluster[hi]] < cutoff:
            hi -= 1
        return cluster[lo:hi + 1]
