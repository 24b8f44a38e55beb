"""Pure per-frame feature functions for spectral analysis."""

import math
from typing import Tuple

import numpy as np

# RMS scale applied before capping energy at 1.0
ENERGY_GAIN = 2.0


def band_bin_range(
    min_freq: float, max_freq: float, nyquist: float, bin_count: int
) -> Tuple[int, int]:
    """Map a frequency range onto inclusive FFT bin indices.

    Returns:
        (min_bin, max_bin). The band is empty when min_bin >= max_bin.
    """
    min_bin = int(math.floor(min_freq / nyquist * bin_count))
    max_bin = min(bin_count - 1, int(math.ceil(max_freq / nyquist * bin_count)))
    return min_bin, max_bin


def normalize_db(
    values: np.ndarray, db_floor: float = -100.0, db_range: float = 100.0
) -> np.ndarray:
    """Map dB magnitudes onto 0-1, clamping below the floor and above 0 dB."""
    values = np.nan_to_num(
        np.asarray(values, dtype=np.float64),
        nan=db_floor,
        posinf=db_floor + db_range,
        neginf=db_floor,
    )
    return np.clip((values - db_floor) / db_range, 0.0, 1.0)


def band_level(
    frequency_data: np.ndarray,
    min_bin: int,
    max_bin: int,
    db_floor: float = -100.0,
    db_range: float = 100.0,
) -> float:
    """Average normalized level over bins [min_bin, max_bin]; 0 for an empty band."""
    if min_bin >= max_bin:
        return 0.0
    window = frequency_data[min_bin : max_bin + 1]
    if len(window) == 0:
        return 0.0
    return float(np.mean(normalize_db(window, db_floor, db_range)))


def smooth(previous: float, raw: float, smoothing: float) -> float:
    """One-pole exponential smoothing step."""
    return previous + (raw - previous) * (1.0 - smoothing)


def rms_energy(waveform: np.ndarray, gain: float = ENERGY_GAIN) -> float:
    """Scaled RMS of a waveform block, capped at 1.0."""
    if len(waveform) == 0:
        return 0.0
    samples = np.asarray(waveform, dtype=np.float64)
    rms = math.sqrt(float(np.mean(samples * samples)))
    if math.isnan(rms):
        return 0.0
    return min(1.0, rms * gain)
