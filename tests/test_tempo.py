"""Tests for tempo estimation pure functions."""

import numpy as np
import pytest

from rhythmscope.tempo import (
    beat_intervals,
    beat_phase,
    estimate_tempo,
    interval_confidence,
    round_half_up,
)


class TestEstimateTempo:
    def test_regular_500ms_is_120_bpm(self):
        bpm, confidence = estimate_tempo([1000.0, 1500.0, 2000.0, 2500.0, 3000.0])
        assert bpm == 120
        assert confidence == 1.0

    def test_too_few_beats(self):
        assert estimate_tempo([1000.0, 1500.0, 2000.0]) == (0, 0.0)
        assert estimate_tempo([]) == (0, 0.0)

    def test_exactly_four_beats(self):
        bpm, _ = estimate_tempo([0.0, 600.0, 1200.0, 1800.0])
        assert bpm == 100

    def test_clamped_high(self):
        # 100 ms intervals would be 600 BPM
        bpm, _ = estimate_tempo([0.0, 100.0, 200.0, 300.0, 400.0])
        assert bpm == 200

    def test_clamped_low(self):
        # 2 s intervals would be 30 BPM
        bpm, _ = estimate_tempo([0.0, 2000.0, 4000.0, 6000.0])
        assert bpm == 60

    def test_jitter_lowers_confidence(self):
        bpm, confidence = estimate_tempo([0.0, 400.0, 1000.0, 1400.0, 2000.0])
        assert 60 <= bpm <= 200
        assert 0.0 <= confidence < 1.0

    def test_wild_jitter_confidence_floors_at_zero(self):
        _, confidence = estimate_tempo([0.0, 10.0, 20.0, 2000.0])
        assert confidence == 0.0

    def test_non_increasing_history_keeps_previous(self):
        assert estimate_tempo([1000.0, 1000.0, 1000.0, 1000.0]) is None

    def test_custom_limits(self):
        bpm, _ = estimate_tempo([0.0, 250.0, 500.0], min_beats=3, max_bpm=180)
        assert bpm == 180

    def test_rounds_half_up(self):
        # 60000 / 480 = 125.0, 60000 / 472 = 127.118
        assert estimate_tempo([0.0, 480.0, 960.0, 1440.0])[0] == 125
        assert estimate_tempo([0.0, 472.0, 944.0, 1416.0])[0] == 127


class TestHelpers:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_beat_intervals(self):
        np.testing.assert_allclose(beat_intervals([0.0, 500.0, 1100.0]), [500.0, 600.0])

    def test_interval_confidence_equal_spacing(self):
        assert interval_confidence(np.array([500.0, 500.0, 500.0])) == 1.0

    def test_interval_confidence_empty(self):
        assert interval_confidence(np.array([])) == 0.0

    def test_interval_confidence_value(self):
        # mean 500, population std 100
        assert interval_confidence(np.array([400.0, 600.0])) == pytest.approx(0.8)


class TestBeatPhase:
    def test_unknown_tempo(self):
        assert beat_phase(250.0, 0) == 0.0

    def test_half_beat(self):
        assert beat_phase(250.0, 120) == pytest.approx(0.5)

    def test_wraps_past_one_beat(self):
        assert beat_phase(750.0, 120) == pytest.approx(0.5)

    def test_on_the_beat(self):
        assert beat_phase(1000.0, 120) == 0.0
