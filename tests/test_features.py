"""Tests for per-frame feature functions and the ring buffer."""

import math

import numpy as np
import pytest

from rhythmscope.features import band_bin_range, band_level, normalize_db, rms_energy, smooth
from rhythmscope.ring_buffer import RingBuffer

# --- Bin mapping ---


class TestBandBinRange:
    def test_bass_at_44100(self):
        # 60/22050*1024 = 2.79 -> 2, 250/22050*1024 = 11.6 -> 12
        assert band_bin_range(60, 250, 22050.0, 1024) == (2, 12)

    def test_sub_bass_at_44100(self):
        assert band_bin_range(20, 60, 22050.0, 1024) == (0, 3)

    def test_max_bin_clamped_to_last_bin(self):
        # Treble reaches past Nyquist at low sample rates
        assert band_bin_range(4000, 20000, 11025.0, 256) == (92, 255)

    def test_empty_band_when_range_collapses(self):
        """Narrow range above Nyquist collapses onto the last bin."""
        min_bin, max_bin = band_bin_range(30000, 40000, 22050.0, 1024)
        assert min_bin >= max_bin

    def test_exact_bin_edges(self):
        assert band_bin_range(0, 22050, 22050.0, 1024) == (0, 1023)


# --- dB normalization and band levels ---


class TestBandLevel:
    def test_normalize_floor_and_ceiling(self):
        values = normalize_db(np.array([-150.0, -100.0, -50.0, 0.0, 12.0]))
        np.testing.assert_allclose(values, [0.0, 0.0, 0.5, 1.0, 1.0])

    def test_normalize_non_finite(self):
        values = normalize_db(np.array([np.nan, -np.inf, np.inf]))
        np.testing.assert_allclose(values, [0.0, 0.0, 1.0])

    def test_band_level_mean_over_inclusive_range(self):
        data = np.full(16, -100.0)
        data[2:5] = [-50.0, 0.0, -100.0]
        # bins 2..4 inclusive -> (0.5 + 1.0 + 0.0) / 3
        assert band_level(data, 2, 4) == pytest.approx(0.5)

    def test_band_level_above_zero_db_is_capped(self):
        data = np.full(8, 6.0)
        assert band_level(data, 0, 7) == 1.0

    def test_empty_band_is_zero(self):
        data = np.zeros(8)
        assert band_level(data, 5, 5) == 0.0
        assert band_level(data, 6, 2) == 0.0

    def test_smooth_step(self):
        assert smooth(0.0, 1.0, 0.8) == pytest.approx(0.2)
        assert smooth(0.5, 1.0, 0.0) == 1.0
        assert smooth(0.5, 1.0, 1.0) == 0.5


# --- Energy ---


class TestRmsEnergy:
    def test_silence(self):
        assert rms_energy(np.zeros(512)) == 0.0

    def test_empty_waveform(self):
        assert rms_energy(np.array([])) == 0.0

    def test_scaled_rms(self):
        # Constant 0.25 -> rms 0.25 -> energy 0.5
        assert rms_energy(np.full(256, 0.25)) == pytest.approx(0.5)

    def test_sine_rms(self):
        t = np.arange(4096) / 4096
        wave = 0.2 * np.sin(2 * np.pi * 8 * t)
        assert rms_energy(wave) == pytest.approx(2 * 0.2 / math.sqrt(2), rel=1e-3)

    def test_capped_at_one(self):
        assert rms_energy(np.ones(128)) == 1.0

    def test_nan_waveform(self):
        assert rms_energy(np.full(16, np.nan)) == 0.0


# --- Ring buffer ---


class TestRingBuffer:
    def test_fills_oldest_first(self):
        buf = RingBuffer(4)
        for v in (1.0, 2.0, 3.0):
            buf.push(v)
        assert len(buf) == 3
        assert list(buf) == [1.0, 2.0, 3.0]

    def test_evicts_oldest_when_full(self):
        buf = RingBuffer(3)
        for v in range(1, 6):
            buf.push(float(v))
        assert len(buf) == 3
        assert list(buf) == [3.0, 4.0, 5.0]
        assert buf.latest() == 5.0
        assert buf.mean() == pytest.approx(4.0)

    def test_length_never_exceeds_capacity(self):
        buf = RingBuffer(60)
        for i in range(1000):
            buf.push(float(i))
            assert len(buf) <= 60

    def test_empty_defaults(self):
        buf = RingBuffer(5)
        assert not buf
        assert buf.mean() == 0.0
        assert buf.latest(default=-1.0) == -1.0
        assert len(buf.values()) == 0

    def test_clear(self):
        buf = RingBuffer(2)
        buf.push(1.0)
        buf.push(2.0)
        buf.clear()
        assert len(buf) == 0
        assert buf.mean() == 0.0

    def test_values_is_a_copy(self):
        buf = RingBuffer(2)
        buf.push(1.0)
        values = buf.values()
        values[0] = 99.0
        assert list(buf) == [1.0]

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            RingBuffer(0)
