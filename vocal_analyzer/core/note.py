"""Note mapping - frequency to equal-tempered note and back."""

from dataclasses import dataclass
from typing import Optional
import numpy as np

from .constants import A4_FREQUENCY, A4_MIDI, MIN_NOTE_FREQUENCY, PITCH_NAMES


@dataclass(frozen=True)
class Note:
    """A frequency resolved to the nearest equal-tempered note."""

    name: str  # Pitch class name (e.g., "C#")
    octave: int
    midi: int  # MIDI pitch of the nearest note
    cents: int  # Deviation from the nearest note, [-50, 50]
    frequency: float  # Measured frequency in Hz
    target_frequency: float  # Equal-tempered frequency of `midi`

    @property
    def full_name(self) -> str:
        """Get note name with octave (e.g., 'C4', 'A#3')."""
        return f"{self.name}{self.octave}"

    @property
    def pitch_class(self) -> int:
        """Get pitch class (0-11, where 0=C)."""
        return self.midi % 12

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "octave": self.octave,
            "full_name": self.full_name,
            "midi": self.midi,
            "cents": self.cents,
            "frequency": self.frequency,
            "target_frequency": self.target_frequency,
        }


def midi_from_frequency(frequency: float) -> float:
    """Convert frequency (Hz) to a fractional MIDI pitch."""
    return A4_MIDI + 12.0 * float(np.log2(frequency / A4_FREQUENCY))


def frequency_from_midi(midi: float) -> float:
    """Convert MIDI pitch to frequency (Hz)."""
    return A4_FREQUENCY * (2.0 ** ((midi - A4_MIDI) / 12.0))


def note_name(midi: int) -> str:
    """Get note name for a MIDI pitch (e.g., 60 -> 'C4')."""
    return f"{PITCH_NAMES[midi % 12]}{midi // 12 - 1}"


def note_from_frequency(frequency: Optional[float]) -> Optional[Note]:
    """
    Map a frequency to the nearest note of the A4=440 Hz equal temperament.

    Args:
        frequency: Frequency in Hz

    Returns:
        Note, or None when the frequency is missing, non-positive or below 20 Hz
    """
    if frequency is None or not np.isfinite(frequency) or frequency < MIN_NOTE_FREQUENCY:
        return None

    exact = midi_from_frequency(frequency)
    midi = int(round(exact))
    cents = int(round((exact - midi) * 100))

    return Note(
        name=PITCH_NAMES[midi % 12],
        octave=midi // 12 - 1,
        midi=midi,
        cents=max(-50, min(50, cents)),
        frequency=float(frequency),
        target_frequency=frequency_from_midi(midi),
    )
