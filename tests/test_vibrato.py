"""Tests for streaming vibrato detection."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from vocal_analyzer.analysis.vibrato import VibratoDetector, VibratoQuality, VibratoState


def feed(detector, center: float, rate: float, depth_cents: float, seconds: float, fps: float = 60.0):
    """Feed a pitch track oscillating +/- depth_cents around center."""
    state = None
    for i in range(int(seconds * fps)):
        t = i / fps
        cents = depth_cents * np.sin(2 * np.pi * rate * t)
        state = detector.update(center * 2 ** (cents / 1200), t)
    return state


class TestVibratoDetector:
    """Test vibrato rate, depth and quality."""

    @pytest.fixture
    def detector(self):
        return VibratoDetector()

    def test_classic_vibrato(self, detector):
        """+/-30 cents at 6 Hz, seen through the 0.15 low-pass at 60 fps."""
        state = feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=2.0)

        assert state.is_vibrato
        assert 5.0 <= state.rate_hz <= 7.0
        assert 12.0 <= state.depth_cents <= 18.0
        assert state.quality == VibratoQuality.GOOD

    def test_wide_regular_vibrato_is_excellent(self, detector):
        state = feed(detector, 220.0, rate=6.0, depth_cents=50.0, seconds=2.0)

        assert state.is_vibrato
        assert state.depth_cents >= VibratoDetector.IDEAL_DEPTH
        assert state.quality == VibratoQuality.EXCELLENT

    def test_smoothing_moves_toward_new_deviation(self, detector):
        detector.update(440.0, 0.0)
        detector.update(440.0 * 2 ** (40 / 1200), 0.01)

        # 0 + (40 - 0) * 0.15
        assert detector._history[0][1] == pytest.approx(0.0)
        assert detector._history[-1][1] == pytest.approx(6.0, abs=1e-6)

    def test_no_smoothing_keeps_raw_deviation(self):
        detector = VibratoDetector(smoothing=1.0)
        detector.update(440.0 * 2 ** (25 / 1200), 0.0)
        assert detector._history[-1][1] == pytest.approx(25.0, abs=1e-6)

    def test_steady_tone_is_not_vibrato(self, detector):
        state = feed(detector, 330.0, rate=6.0, depth_cents=0.0, seconds=2.0)
        assert not state.is_vibrato
        assert state.quality is None

    def test_slow_drift_is_not_vibrato(self, detector):
        state = feed(detector, 220.0, rate=1.0, depth_cents=30.0, seconds=2.0)
        assert not state.is_vibrato

    def test_shallow_wobble_is_not_vibrato(self, detector):
        state = feed(detector, 220.0, rate=6.0, depth_cents=2.0, seconds=2.0)
        assert not state.is_vibrato

    def test_fast_narrow_vibrato_is_weak(self, detector):
        state = feed(detector, 220.0, rate=9.0, depth_cents=15.0, seconds=2.0, fps=100.0)
        assert state.is_vibrato
        assert state.quality == VibratoQuality.WEAK

    def test_needs_history(self, detector):
        state = feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=0.05)
        assert state == VibratoState()

    def test_note_change_restarts_tracking(self, detector):
        feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=2.0)
        assert detector.is_tracking

        # A fifth up is a new note, not a huge vibrato swing
        state = detector.update(330.0, 2.1)
        assert not state.is_vibrato
        assert len(detector._history) == 1

    def test_unvoiced_sample_resets(self, detector):
        feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=2.0)
        state = detector.update(None, 2.1)
        assert state == VibratoState()
        assert not detector.is_tracking

    def test_clock_going_backwards_resets(self, detector):
        feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=2.0)
        detector.update(220.0, 0.5)
        assert len(detector._history) == 1

    def test_reset_matches_fresh_instance(self, detector):
        feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=2.0)
        detector.reset()

        fresh = VibratoDetector()
        assert detector.state == fresh.state == VibratoState()
        assert detector.is_tracking == fresh.is_tracking
        assert len(detector._history) == 0

    def test_history_window_is_bounded(self):
        detector = VibratoDetector(window_seconds=1.0, max_samples=32)
        feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=3.0, fps=100.0)
        assert len(detector._history) <= 32

    def test_state_to_dict(self, detector):
        state = feed(detector, 220.0, rate=6.0, depth_cents=30.0, seconds=2.0)
        data = state.to_dict()
        assert data["is_vibrato"] is True
        assert data["quality"] == "Good"
