"""Domain models for rhythmscope."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

import numpy as np


class FrequencyBand(Enum):
    """The six analysis bands, in declaration (low to high) order."""

    SUB_BASS = "sub_bass"
    BASS = "bass"
    LOW_MID = "low_mid"
    MID = "mid"
    HIGH_MID = "high_mid"
    TREBLE = "treble"

    @classmethod
    def coerce(cls, value) -> "FrequencyBand":
        """Accept a member or its name ("bass", "BASS") and return the member."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls[str(value).upper()]


class OnsetKind(Enum):
    """Kinds of rhythmic events a detector can emit."""

    BEAT = "beat"
    KICK = "kick"
    SNARE = "snare"
    HIHAT = "hihat"


@dataclass(frozen=True)
class FrequencyRange:
    """A band's frequency range in Hz, lower bound inclusive."""

    min_freq: float
    max_freq: float


@dataclass
class AnalysisFrame:
    """One frame of bounded spectral features."""

    frequency_data: np.ndarray  # dB magnitudes, length fft_size / 2
    waveform_data: np.ndarray  # samples in [-1, 1], length fft_size
    band_levels: Dict[str, float]  # band name -> 0-1, declaration order
    energy: float  # 0-1, scaled RMS of the waveform
    average_energy: float  # 0-1, mean of the recent energy history


@dataclass
class DetectionResult:
    """Onset flags and tempo estimate for one frame."""

    beat_detected: bool = False
    kick_detected: bool = False
    snare_detected: bool = False
    hihat_detected: bool = False
    bpm: int = 0  # 0 until enough beats, otherwise 60-200
    confidence: float = 0.0  # 0-1 regularity of recent beat intervals
    time_since_last_beat: float = 0.0  # ms

    @property
    def any_onset(self) -> bool:
        """True when any detector fired this frame."""
        return (
            self.beat_detected or self.kick_detected or self.snare_detected or self.hihat_detected
        )


@dataclass(frozen=True)
class OnsetEvent:
    """Payload handed to onset listeners."""

    kind: OnsetKind
    time: float  # ms timestamp of the frame that fired
    energy: float  # energy that crossed the threshold
    bpm: int  # tempo estimate at the time of firing


@dataclass
class SessionSummary:
    """Aggregate of an offline analysis run over a whole signal."""

    frame_count: int
    duration: float  # seconds
    bpm: int
    confidence: float
    mean_energy: float
    band_means: Dict[str, float]
    onsets: Dict[str, List[float]] = field(default_factory=dict)  # kind -> times in ms

    @property
    def bpm_str(self) -> str:
        """Human-readable BPM string."""
        return str(self.bpm) if self.bpm else "Unknown"

    def onset_count(self, kind: OnsetKind) -> int:
        """Number of recorded onsets of the given kind."""
        return len(self.onsets.get(kind.value, []))

    def to_dict(self) -> dict:
        """JSON-serializable representation."""
        return {
            "frames": self.frame_count,
            "duration": round(self.duration, 3),
            "bpm": self.bpm,
            "confidence": round(self.confidence, 3),
            "mean_energy": round(self.mean_energy, 4),
            "bands": {name: round(level, 4) for name, level in self.band_means.items()},
            "onsets": {kind: [round(t, 1) for t in times] for kind, times in self.onsets.items()},
        }
