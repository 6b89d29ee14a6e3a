"""Global constants for Vocal Analyzer."""

# Pitch names
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Tuning reference
A4_FREQUENCY = 440.0
A4_MIDI = 69
MIN_NOTE_FREQUENCY = 20.0

# Audio processing defaults
DEFAULT_SR = 44100
DEFAULT_WINDOW_SIZE = 2048
DEFAULT_HOP_LENGTH = 1024

# Silence gates (RMS)
SILENCE_RMS = 0.001
NOISE_GATE_RMS = 0.01

# Plausible vocal/instrumental pitch bounds (Hz)
MIN_PITCH_HZ = 50.0
MAX_PITCH_HZ = 1400.0

# Tempo range
MIN_BPM = 60
MAX_BPM = 200
