"""Tests for the core layer: note mapping, buffers, configuration, checkpoints."""

import asyncio
import itertools
import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from vocal_analyzer.core import (
    AnalysisCancelled,
    AnalysisConfig,
    AnalysisTimeout,
    CancellationToken,
    Checkpoint,
    DEFAULT_HOP_LENGTH,
    DEFAULT_WINDOW_SIZE,
    Deadline,
    InvalidInputError,
    PitchAlgorithm,
    SampleBuffer,
    frequency_from_midi,
    midi_from_frequency,
    note_from_frequency,
    note_name,
    run_steps,
    run_steps_async,
)
from vocal_analyzer.inference.voice import VoiceRangeAnalyzer


class TestNoteMapping:
    """Test frequency <-> note conversion."""

    def test_a4(self):
        note = note_from_frequency(440.0)
        assert note.full_name == "A4"
        assert note.midi == 69
        assert note.cents == 0
        assert note.target_frequency == pytest.approx(440.0)

    def test_middle_c(self):
        note = note_from_frequency(261.63)
        assert note.name == "C"
        assert note.octave == 4
        assert note.pitch_class == 0

    def test_cents_are_rounded(self):
        # 1200 * log2(445 / 440) = 19.56 cents
        note = note_from_frequency(445.0)
        assert note.full_name == "A4"
        assert note.cents == 20
        assert note.frequency == 445.0

    def test_flat_side(self):
        # Quarter-tone below A4 minus a little rounds to G#4
        note = note_from_frequency(440.0 * 2 ** (-0.6 / 12))
        assert note.full_name == "G#4"
        assert note.cents == 40

    @pytest.mark.parametrize("frequency", [None, 0.0, -10.0, 19.9, float("nan"), float("inf")])
    def test_invalid_frequencies(self, frequency):
        assert note_from_frequency(frequency) is None

    def test_piano_range_round_trip(self):
        """Every piano frequency maps to a note within a semitone, cents in range."""
        for f in np.geomspace(27.5, 4186.0, 500):
            note = note_from_frequency(f)
            assert -50 <= note.cents <= 50
            target = frequency_from_midi(note.midi)
            assert abs(midi_from_frequency(f) - midi_from_frequency(target)) <= 0.5 + 1e-9

            # midi + cents reproduces the input to rounding precision
            rebuilt = frequency_from_midi(note.midi + note.cents / 100.0)
            assert abs(1200 * np.log2(rebuilt / f)) <= 0.5 + 1e-9

    def test_frequency_from_midi(self):
        assert frequency_from_midi(69) == pytest.approx(440.0)
        assert frequency_from_midi(57) == pytest.approx(220.0)
        assert frequency_from_midi(60) == pytest.approx(261.6256, rel=1e-5)

    def test_note_name(self):
        assert note_name(60) == "C4"
        assert note_name(61) == "C#4"
        assert note_name(21) == "A0"

    def test_to_dict(self):
        data = note_from_frequency(440.0).to_dict()
        assert data["full_name"] == "A4"
        assert data["midi"] == 69


class TestSampleBuffer:
    """Test buffer validation and channel handling."""

    def test_mono_buffer(self):
        buffer = SampleBuffer(np.zeros(4410), 44100)
        assert buffer.channels == 1
        assert buffer.frames == 4410
        assert buffer.duration == pytest.approx(0.1)
        assert buffer.samples.dtype == np.float32

    def test_samples_are_read_only(self):
        source = np.ones(100, dtype=np.float32)
        buffer = SampleBuffer(source, 44100)
        assert not buffer.samples.flags.writeable
        with pytest.raises(ValueError):
            buffer.samples[0] = 2.0
        # Caller's array is untouched
        assert source.flags.writeable
        assert source[0] == 1.0

    def test_stereo_downmix(self):
        left = np.full(1000, 0.5, dtype=np.float32)
        right = np.full(1000, -0.5, dtype=np.float32)
        buffer = SampleBuffer.from_array(np.stack([left, right]), 22050)
        assert buffer.channels == 2
        assert buffer.frames == 1000

        mono = buffer.mono()
        assert mono.shape == (1000,)
        assert np.allclose(mono, 0.0)

    def test_mono_returns_samples_for_single_channel(self):
        buffer = SampleBuffer(np.linspace(-1, 1, 50), 8000)
        assert np.array_equal(buffer.mono(), buffer.samples)

    def test_empty_buffer(self):
        with pytest.raises(InvalidInputError):
            SampleBuffer(np.zeros(0), 44100)

    def test_too_many_dimensions(self):
        with pytest.raises(InvalidInputError):
            SampleBuffer(np.zeros((2, 2, 10)), 44100)

    def test_non_finite_samples(self):
        samples = np.zeros(100)
        samples[10] = np.nan
        with pytest.raises(InvalidInputError):
            SampleBuffer(samples, 44100)

    @pytest.mark.parametrize("sample_rate", [0, -44100, 44100.0, True, "44100"])
    def test_bad_sample_rate(self, sample_rate):
        with pytest.raises(InvalidInputError):
            SampleBuffer(np.zeros(100), sample_rate)

    def test_channel_mismatch(self):
        with pytest.raises(InvalidInputError):
            SampleBuffer(np.zeros((2, 100)), 44100, channels=1)

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            SampleBuffer(np.zeros(0), 44100)


class TestAnalysisConfig:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        config = AnalysisConfig()
        assert config.input_gain == 1.0
        assert config.noise_gate_threshold == 0.01
        assert config.analysis_window_seconds == 0.0
        assert config.pitch_algorithm == PitchAlgorithm.AUTOCORRELATION
        assert config.use_spectral_key_detection is True
        assert config.live_window_size == 2048
        assert config.ui_update_hz == 20.0
        assert config.key_pitch_algorithm == PitchAlgorithm.YIN

    def test_window_defaults_follow_constants(self):
        assert AnalysisConfig().live_window_size == DEFAULT_WINDOW_SIZE
        analyzer = VoiceRangeAnalyzer()
        assert analyzer.window_size == DEFAULT_WINDOW_SIZE
        assert analyzer.hop_length == DEFAULT_HOP_LENGTH

    def test_algorithm_from_string(self):
        assert AnalysisConfig(pitch_algorithm="YIN").pitch_algorithm == PitchAlgorithm.YIN
        assert AnalysisConfig(pitch_algorithm="autocorrelation").pitch_algorithm == (
            PitchAlgorithm.AUTOCORRELATION
        )

    def test_unknown_algorithm(self):
        with pytest.raises(InvalidInputError, match="Unknown pitch algorithm"):
            AnalysisConfig(pitch_algorithm="pyin")
        with pytest.raises(InvalidInputError, match="Unknown pitch algorithm"):
            AnalysisConfig(key_pitch_algorithm="pyin")

    def test_crepe_is_a_known_algorithm(self):
        config = AnalysisConfig(pitch_algorithm="crepe", key_pitch_algorithm="CREPE")
        assert config.pitch_algorithm == config.key_pitch_algorithm == PitchAlgorithm.CREPE

    @pytest.mark.parametrize(
        "values",
        [
            {"input_gain": -1.0},
            {"noise_gate_threshold": -0.1},
            {"analysis_window_seconds": -5},
            {"live_window_size": 16},
            {"ui_update_hz": 0},
            {"min_frequency": 500, "max_frequency": 100},
            {"key_timeout_seconds": 0},
            {"checkpoint_frames": 0},
            {"register_gender": "robot"},
        ],
    )
    def test_invalid_values(self, values):
        with pytest.raises(InvalidInputError):
            AnalysisConfig(**values)

    def test_from_dict_ignores_unknown_keys(self):
        config = AnalysisConfig.from_dict(
            {"input_gain": 2.0, "pitch_algorithm": "yin", "theme": "dark"}
        )
        assert config.input_gain == 2.0
        assert config.pitch_algorithm == PitchAlgorithm.YIN

    def test_to_dict(self):
        data = AnalysisConfig(pitch_algorithm="yin").to_dict()
        assert data["pitch_algorithm"] == "yin"
        assert data["key_pitch_algorithm"] == "yin"
        assert data["input_gain"] == 1.0
        assert AnalysisConfig.from_dict(data) == AnalysisConfig(pitch_algorithm="yin")


class TestCheckpoint:
    """Test cooperative scheduling, cancellation and deadlines."""

    def test_due_every_n_frames(self):
        checkpoint = Checkpoint(every_frames=3, slice_seconds=100.0, clock=lambda: 0.0)
        pattern = [checkpoint.due() for _ in range(9)]
        assert pattern == [False, False, True] * 3
        assert checkpoint.yields == 3

    def test_due_after_time_slice(self):
        times = iter([0.0, 0.001, 0.002, 0.05, 0.051])
        checkpoint = Checkpoint(every_frames=1000, slice_seconds=0.016, clock=lambda: next(times))
        assert checkpoint.due() is False
        assert checkpoint.due() is False
        assert checkpoint.due() is True
        assert checkpoint.due() is False

    def test_cancellation(self):
        token = CancellationToken()
        checkpoint = Checkpoint(token=token)
        checkpoint.due()

        token.cancel()
        assert token.cancelled
        with pytest.raises(AnalysisCancelled):
            checkpoint.due()

    def test_deadline(self):
        counter = itertools.count()
        deadline = Deadline(2.5, clock=lambda: float(next(counter)))
        assert deadline.expired() is False  # elapsed 1
        assert deadline.expired() is False  # elapsed 2
        assert deadline.expired() is True  # elapsed 3

    def test_limit_raises_timeout_and_restores(self):
        counter = itertools.count()
        checkpoint = Checkpoint(clock=lambda: float(next(counter)))

        with pytest.raises(AnalysisTimeout, match="Key detection"):
            with checkpoint.limit(3.0, "Key detection"):
                for _ in range(10):
                    checkpoint.due()

        # Outside the block there is no deadline any more
        for _ in range(10):
            checkpoint.due()

    def test_run_steps(self):
        checkpoint = Checkpoint(every_frames=2, clock=lambda: 0.0)

        def steps():
            total = 0
            for i in range(10):
                total += i
                if checkpoint.due():
                    yield
            return total

        assert run_steps(steps()) == 45
        assert checkpoint.yields == 5

    def test_run_steps_async_interleaves(self):
        order = []

        def steps(name):
            for i in range(3):
                order.append((name, i))
                yield
            return name

        async def main():
            return await asyncio.gather(
                run_steps_async(steps("a")),
                run_steps_async(steps("b")),
            )

        assert asyncio.run(main()) == ["a", "b"]
        # Each scan gave the loop a turn, so the two interleave
        assert order[:2] == [("a", 0), ("b", 0)]
