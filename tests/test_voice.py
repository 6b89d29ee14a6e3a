"""Tests for vocal range, voice type and register classification."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from vocal_analyzer.core import frequency_from_midi
from vocal_analyzer.inference.voice import (
    INSTRUMENTAL,
    VoiceRangeAnalyzer,
    VoiceRangeResult,
    classify_register,
    classify_voice_type,
    cluster_notes,
)


def generate_midi_run(midis: list, seconds_per_note: float, sr: int) -> np.ndarray:
    """Pure tones for each MIDI note in turn, uniform amplitude."""
    n = int(seconds_per_note * sr)
    t = np.arange(n) / sr
    return np.concatenate([
        0.5 * np.sin(2 * np.pi * frequency_from_midi(m) * t) for m in midis
    ]).astype(np.float32)


class TestVoiceType:
    """Test tessitura to voice type mapping."""

    @pytest.mark.parametrize(
        "tessitura,expected",
        [
            (40.0, "Bass"),
            (47.9, "Bass"),
            (48.0, "Baritone"),
            (54.9, "Baritone"),
            (55.0, "Tenor"),
            (62.5, "Tenor"),
            (63.0, "Alto / Countertenor"),
            (66.0, "Alto / Countertenor"),
            (69.0, "Soprano"),
            (80.0, "Soprano"),
        ],
    )
    def test_bands(self, tessitura, expected):
        assert classify_voice_type(tessitura) == expected


class TestRegister:
    """Test chest / mixed / head classification."""

    @pytest.mark.parametrize(
        "frequency,gender,expected",
        [
            (None, "male", "Silence"),
            (30.0, "male", "Silence"),
            (200.0, "male", "Chest Voice"),
            (400.0, "male", "Mixed Voice"),
            (500.0, "male", "Head Voice"),
            (400.0, "female", "Chest Voice"),
            (500.0, "female", "Mixed Voice"),
            (700.0, "female", "Head Voice"),
        ],
    )
    def test_registers(self, frequency, gender, expected):
        assert classify_register(frequency, gender).name == expected

    def test_silence_has_no_confidence(self):
        assert classify_register(0.0).confidence == 0.0
        assert classify_register(220.0).confidence > 0.0


class TestClustering:
    """Test contiguous note clustering."""

    def test_gaps(self):
        assert cluster_notes([40, 41, 45, 50, 52]) == [[40, 41], [45], [50, 52]]

    def test_gap_of_three_is_contiguous(self):
        assert cluster_notes([60, 63, 66]) == [[60, 63, 66]]

    def test_empty(self):
        assert cluster_notes([]) == []


class TestVoiceRangeAnalyzer:
    """Test range scanning."""

    @pytest.fixture
    def sample_rate(self):
        return 44100

    def test_c4_to_c5_run(self, sample_rate):
        audio = generate_midi_run(list(range(60, 73)), 0.5, sample_rate)
        result = VoiceRangeAnalyzer().analyze(audio, sample_rate)

        assert not result.is_instrumental
        assert result.min_note.full_name == "C4"
        assert result.max_note.full_name == "C5"
        assert result.range_label == "C4 - C5"
        assert 65.0 <= result.tessitura_midi <= 67.0
        assert result.voice_type == "Alto / Countertenor"
        assert result.min_frequency == pytest.approx(261.63, rel=1e-3)

    def test_low_voice(self, sample_rate):
        audio = generate_midi_run([43, 45, 47, 48], 0.5, sample_rate)
        result = VoiceRangeAnalyzer().analyze(audio, sample_rate)
        assert result.voice_type == "Bass"
        assert result.min_note.full_name == "G2"

    def test_silence_is_instrumental(self, sample_rate):
        result = VoiceRangeAnalyzer().analyze(np.zeros(sample_rate * 2, dtype=np.float32), sample_rate)
        assert result.is_instrumental
        assert result.voice_type == INSTRUMENTAL
        assert result.range_label == "-"
        assert result.voiced_frames == 0

    def test_out_of_range_pitch_is_ignored(self, sample_rate):
        # 1500 Hz is above the vocal ceiling
        audio = generate_midi_run([90], 2.0, sample_rate)
        assert VoiceRangeAnalyzer().analyze(audio, sample_rate).is_instrumental

    def test_heaviest_cluster_wins(self):
        analyzer = VoiceRangeAnalyzer()
        counts = {48: 12, 49: 12, 60: 50, 61: 50, 62: 50}
        energy = {m: c * 0.1 for m, c in counts.items()}
        result = analyzer.summarize(counts, energy, sum(counts.values()))

        assert result.min_note.full_name == "C4"
        assert result.max_note.full_name == "D4"
        assert result.tessitura_midi == pytest.approx(61.0)

    def test_sparse_bins_are_dropped(self):
        analyzer = VoiceRangeAnalyzer()
        counts = {57: 1, 60: 100, 62: 100, 64: 100}
        energy = {m: 0.1 * c for m, c in counts.items()}
        result = analyzer.summarize(counts, energy, sum(counts.values()))
        assert result.min_note.full_name == "C4"

    def test_tail_energy_trimming(self):
        counts = {60: 20, 61: 20, 62: 20}
        energy = {60: 20 * 0.01, 61: 20 * 0.5, 62: 20 * 0.5}

        untrimmed = VoiceRangeAnalyzer().summarize(counts, energy, 60)
        assert untrimmed.min_note.full_name == "C4"

        trimmed = VoiceRangeAnalyzer(tail_energy_ratio=0.1).summarize(counts, energy, 60)
        assert trimmed.min_note.full_name == "C#4"
        assert trimmed.max_note.full_name == "D4"

    def test_too_few_voiced_frames(self):
        result = VoiceRangeAnalyzer().summarize({60: 5}, {60: 0.5}, 5)
        assert result == VoiceRangeResult.instrumental(5)

    def test_to_dict(self, sample_rate):
        audio = generate_midi_run([57, 59, 60], 0.5, sample_rate)
        data = VoiceRangeAnalyzer().analyze(audio, sample_rate).to_dict()
        assert data["min_note"] == "A3"
        assert data["max_note"] == "C4"
        assert data["is_instrumental"] is False
