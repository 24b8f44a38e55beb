"""Configuration for rhythmscope analysis parameters."""

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from .exceptions import ConfigurationError
from .models import FrequencyBand, FrequencyRange

# Typical distribution of musical content across the spectrum
DEFAULT_FREQUENCY_RANGES: Mapping[FrequencyBand, FrequencyRange] = MappingProxyType(
    {
        FrequencyBand.SUB_BASS: FrequencyRange(20, 60),  # rumble
        FrequencyBand.BASS: FrequencyRange(60, 250),  # kick drums, bass guitar
        FrequencyBand.LOW_MID: FrequencyRange(250, 500),  # warmth, lower vocals
        FrequencyBand.MID: FrequencyRange(500, 2000),  # vocals, snare body
        FrequencyBand.HIGH_MID: FrequencyRange(2000, 4000),  # presence
        FrequencyBand.TREBLE: FrequencyRange(4000, 20000),  # cymbals, air
    }
)


@dataclass
class AnalyzerConfig:
    """Configuration for the spectral analyzer."""

    # FFT window length in samples (power of two)
    fft_size: int = 2048

    # One-pole smoothing of band levels; 0 = none, 1 = frozen
    smoothing: float = 0.8

    # Partial overrides are merged onto DEFAULT_FREQUENCY_RANGES
    frequency_ranges: Optional[Dict[FrequencyBand, FrequencyRange]] = None

    # Assumed until a connected source reports its own rate
    sample_rate: float = 44100.0

    # About one second at 60 frames per second
    energy_history_size: int = 60

    # dB floor and span mapped onto 0-1 band levels
    db_floor: float = -100.0
    db_range: float = 100.0

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2


@dataclass
class DetectorConfig:
    """Configuration for the rhythm detector."""

    # Minimum frame-to-frame energy rise that counts as a beat
    threshold: float = 0.15

    # Per-frame geometric decay of the adaptive beat threshold
    decay_rate: float = 0.95

    # Refractory window shared by beat, kick and snare (ms)
    min_beat_interval: float = 200.0

    # Instrument thresholds on band levels
    kick_threshold: float = 0.2
    snare_threshold: float = 0.15
    hihat_threshold: float = 0.1

    # Hi-hats repeat faster than the other onsets (ms)
    hihat_min_interval: float = 100.0

    # Beat timestamps kept for tempo estimation
    beat_history_size: int = 30

    # Per-frame decay of the pulse envelopes
    hit_decay: float = 0.85

    # Tempo clamp (BPM)
    min_bpm: int = 60
    max_bpm: int = 200

    # Beats required before a tempo is reported
    min_beats_for_tempo: int = 4


def resolve_frequency_ranges(
    overrides: Optional[Mapping] = None,
) -> Dict[FrequencyBand, FrequencyRange]:
    """Merge band range overrides onto the defaults.

    Args:
        overrides: Mapping of band (member or name) to a FrequencyRange or a
            (min_freq, max_freq) pair.

    Returns:
        A complete mapping with one entry per band, in declaration order.

    Raises:
        ConfigurationError: On unknown band names or inverted/negative ranges.
    """
    ranges = dict(DEFAULT_FREQUENCY_RANGES)
    for key, value in (overrides or {}).items():
        try:
            band = FrequencyBand.coerce(key)
        except (KeyError, ValueError):
            raise ConfigurationError(f"Unknown frequency band: {key!r}")
        if not isinstance(value, FrequencyRange):
            try:
                low, high = value
            except (TypeError, ValueError):
                raise ConfigurationError(f"Invalid range for {band.value}: {value!r}")
            value = FrequencyRange(float(low), float(high))
        if value.min_freq < 0 or value.min_freq >= value.max_freq:
            raise ConfigurationError(
                f"Invalid range for {band.value}: {value.min_freq}-{value.max_freq} Hz"
            )
        ranges[band] = value
    return {band: ranges[band] for band in FrequencyBand}


def validate_analyzer_config(config: AnalyzerConfig) -> AnalyzerConfig:
    """Check construction-time invariants of an analyzer config.

    Returns a copy whose frequency_ranges is fully resolved.
    """
    size = config.fft_size
    if not isinstance(size, int) or size < 32 or size & (size - 1):
        raise ConfigurationError(f"fft_size must be a power of two >= 32, got {size!r}")
    if config.sample_rate <= 0:
        raise ConfigurationError(f"sample_rate must be positive, got {config.sample_rate!r}")
    if config.energy_history_size < 1:
        raise ConfigurationError("energy_history_size must be at least 1")
    if config.db_range <= 0:
        raise ConfigurationError("db_range must be positive")
    return replace(
        config,
        smoothing=clamp(config.smoothing, 0.0, 1.0),
        frequency_ranges=resolve_frequency_ranges(config.frequency_ranges),
    )


def validate_detector_config(config: DetectorConfig) -> DetectorConfig:
    """Check construction-time invariants of a detector config.

    Threshold and decay rate are clamped the same way their setters clamp.
    """
    if config.beat_history_size < 2:
        raise ConfigurationError("beat_history_size must be at least 2")
    if config.min_beats_for_tempo < 2:
        raise ConfigurationError("min_beats_for_tempo must be at least 2")
    if config.min_bpm <= 0 or config.min_bpm > config.max_bpm:
        raise ConfigurationError(f"Invalid tempo range: {config.min_bpm}-{config.max_bpm} BPM")
    if config.min_beat_interval < 0 or config.hihat_min_interval < 0:
        raise ConfigurationError("Refractory intervals must not be negative")
    return replace(
        config,
        threshold=clamp(config.threshold, 0.0, 1.0),
        decay_rate=clamp(config.decay_rate, 0.5, 0.99),
        hit_decay=clamp(config.hit_decay, 0.0, 0.99),
    )


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


# Default configuration instances
DEFAULT_ANALYZER_CONFIG = AnalyzerConfig()
DEFAULT_DETECTOR_CONFIG = DetectorConfig()
