"""Pure tempo estimation functions over beat timestamps."""

import math
from typing import Optional, Sequence, Tuple

import numpy as np


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def beat_intervals(timestamps: Sequence[float]) -> np.ndarray:
    """Consecutive differences between beat timestamps (ms)."""
    return np.diff(np.asarray(timestamps, dtype=np.float64))


def interval_confidence(intervals: np.ndarray) -> float:
    """Regularity score: 1.0 for equal spacing, falling as jitter nears the mean interval."""
    if len(intervals) == 0:
        return 0.0
    avg = float(np.mean(intervals))
    if avg <= 0:
        return 0.0
    std = math.sqrt(float(np.mean((intervals - avg) ** 2)))
    return max(0.0, min(1.0, 1.0 - std / avg))


def estimate_tempo(
    timestamps: Sequence[float],
    min_beats: int = 4,
    min_bpm: int = 60,
    max_bpm: int = 200,
) -> Optional[Tuple[int, float]]:
    """Estimate (bpm, confidence) from beat timestamps in ms.

    Args:
        timestamps: Beat times, oldest first.
        min_beats: Beats required before a tempo is reported.
        min_bpm: Lower tempo clamp.
        max_bpm: Upper tempo clamp.

    Returns:
        (0, 0.0) with too few beats, otherwise a clamped integer BPM and a
        confidence in [0, 1]. None when the timestamps do not move forward,
        in which case the previous estimate should be kept.
    """
    if len(timestamps) < min_beats:
        return 0, 0.0

    intervals = beat_intervals(timestamps)
    avg_interval = float(np.mean(intervals))
    if avg_interval <= 0:
        return None

    bpm = round_half_up(60000.0 / avg_interval)
    bpm = max(min_bpm, min(max_bpm, bpm))
    return bpm, interval_confidence(intervals)


def beat_phase(elapsed: float, bpm: float) -> float:
    """Position within the current beat as a value in [0, 1).

    Args:
        elapsed: Milliseconds since the last detected beat.
        bpm: Current tempo; 0 means unknown.
    """
    if bpm <= 0:
        return 0.0
    beat_duration = 60000.0 / bpm
    phase = (elapsed % beat_duration) / beat_duration
    return phase if phase < 1.0 else 0.0
