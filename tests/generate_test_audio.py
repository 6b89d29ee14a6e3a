"""Generate sample WAV files for testing."""

import os
import numpy as np
from scipy.io import wavfile

EXAMPLES_DIR = os.path.join(os.path.dirname(__file__), "..", "examples")
SR = 44100


def generate_sine_wave(freq: float, duration: float, sr: int = SR, amplitude: float = 0.5) -> np.ndarray:
    """Generate a sine wave at given frequency."""
    t = np.arange(int(sr * duration)) / sr
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def generate_vibrato_tone(
    freq: float,
    duration: float,
    rate_hz: float = 6.0,
    depth_cents: float = 30.0,
    sr: int = SR,
    amplitude: float = 0.5,
) -> np.ndarray:
    """Generate a tone whose pitch oscillates +/- depth_cents around freq."""
    t = np.arange(int(sr * duration)) / sr
    inst_freq = freq * 2 ** (depth_cents * np.sin(2 * np.pi * rate_hz * t) / 1200)
    phase = 2 * np.pi * np.cumsum(inst_freq) / sr
    return (amplitude * np.sin(phase)).astype(np.float32)


def generate_note_sequence(
    frequencies: list, durations: list, sr: int = SR, amplitude: float = 0.5
) -> np.ndarray:
    """Generate a sequence of notes."""
    audio = []
    for freq, dur in zip(frequencies, durations):
        note = generate_sine_wave(freq, dur, sr, amplitude)
        # Apply simple envelope to avoid clicks
        envelope = np.ones_like(note)
        attack = int(0.01 * sr)
        release = int(0.01 * sr)
        envelope[:attack] = np.linspace(0, 1, attack)
        envelope[-release:] = np.linspace(1, 0, release)
        audio.append(note * envelope)
    return np.concatenate(audio)


def generate_chord(frequencies: list, duration: float, sr: int = SR) -> np.ndarray:
    """Generate a chord by summing sine waves, normalized to 0.8 peak."""
    chord = np.sum([generate_sine_wave(f, duration, sr, 1.0) for f in frequencies], axis=0)
    max_abs = np.max(np.abs(chord)) or 1.0
    return (0.8 * chord / max_abs).astype(np.float32)


def generate_click_track(bpm: float, duration: float, sr: int = SR) -> np.ndarray:
    """Generate decaying 100 Hz bursts on every beat."""
    audio = np.zeros(int(sr * duration), dtype=np.float32)
    burst_len = int(0.05 * sr)
    t = np.arange(burst_len) / sr
    burst = (0.8 * np.sin(2 * np.pi * 100 * t) * np.exp(-t * 60)).astype(np.float32)

    period = 60.0 / bpm
    beat = 0
    while True:
        start = int(round(beat * period * sr))
        if start + burst_len > len(audio):
            break
        audio[start:start + burst_len] += burst
        beat += 1
    return audio


def save_wav(filename: str, audio: np.ndarray, sr: int = SR, directory: str = EXAMPLES_DIR) -> str:
    """Save audio as 16-bit WAV file."""
    os.makedirs(directory, exist_ok=True)
    audio_16bit = (np.clip(audio, -1.0, 1.0) * 32767).astype(np.int16)
    filepath = os.path.join(directory, filename)
    wavfile.write(filepath, sr, audio_16bit)
    return filepath


def main():
    # 1. Single A4 note (440 Hz) - 2 seconds
    print("Created:", save_wav("single_a4.wav", generate_sine_wave(440.0, 2.0)))

    # 2. Chromatic run C4 -> C5, 0.5 seconds per note
    freqs = [261.63 * 2 ** (i / 12) for i in range(13)]
    scale = generate_note_sequence(freqs, [0.5] * len(freqs))
    print("Created:", save_wav("chromatic_c4_c5.wav", scale))

    # 3. A3 with a 6 Hz, +/-30 cent vibrato
    print("Created:", save_wav("vibrato_a3.wav", generate_vibrato_tone(220.0, 3.0)))

    # 4. C major triad with octave doublings (C4 E4 G4 C5 E5 G5)
    triad = generate_chord([261.63, 329.63, 392.00, 523.25, 659.26, 783.99], 4.0)
    print("Created:", save_wav("c_major_triad.wav", triad))

    # 5. Click track at 120 BPM
    print("Created:", save_wav("click_120bpm.wav", generate_click_track(120, 10.0)))

    # 6. Silence (for edge case testing)
    print("Created:", save_wav("silence.wav", np.zeros(SR * 2, dtype=np.float32)))

    print("\nAll test audio files generated!")


if __name__ == "__main__":
    main()
