"""Spectral analysis: raw FFT magnitudes and waveforms to bounded band features."""

from dataclasses import replace
from typing import Dict, List, Optional, Tuple

import numpy as np

from .config import DEFAULT_ANALYZER_CONFIG, AnalyzerConfig, clamp, validate_analyzer_config
from .features import band_bin_range, band_level, rms_energy, smooth
from .logging_config import get_logger
from .models import AnalysisFrame, FrequencyBand
from .ring_buffer import RingBuffer
from .sources import SampleSource

logger = get_logger(__name__)

BANDS: Tuple[FrequencyBand, ...] = tuple(FrequencyBand)
_BAND_INDEX: Dict[FrequencyBand, int] = {band: i for i, band in enumerate(BANDS)}


class SpectralAnalyzer:
    """Produces stable, bounded loudness features from raw spectral samples.

    The analyzer owns all smoothing state carried between frames: previous
    band levels and the energy history. Call ``update()`` once per tick.
    """

    def __init__(self, config: AnalyzerConfig = None, **overrides):
        """Initialize analyzer with configuration.

        Args:
            config: Analyzer configuration. Uses DEFAULT_ANALYZER_CONFIG if not provided.
            **overrides: Individual AnalyzerConfig fields to replace.

        Raises:
            ConfigurationError: If the configuration is unusable.
        """
        config = config or DEFAULT_ANALYZER_CONFIG
        if overrides:
            config = replace(config, **overrides)
        self.config = validate_analyzer_config(config)

        self.fft_size = self.config.fft_size
        self.smoothing = self.config.smoothing
        self.sample_rate = float(self.config.sample_rate)
        self.frequency_ranges = self.config.frequency_ranges

        self.frequency_data = np.zeros(self.fft_size // 2, dtype=np.float32)
        self.waveform_data = np.zeros(self.fft_size, dtype=np.float32)

        self._levels = np.zeros(len(BANDS), dtype=np.float64)
        self._energy_history = RingBuffer(self.config.energy_history_size)
        self._bin_ranges = self._compute_bin_ranges()

        self.source: Optional[SampleSource] = None
        self.is_connected = False

        logger.debug(
            "Spectral analyzer: fft_size=%d, smoothing=%.2f, sample_rate=%.0f",
            self.fft_size,
            self.smoothing,
            self.sample_rate,
        )

    # --- Source lifecycle ---

    def connect(self, source: SampleSource) -> "SpectralAnalyzer":
        """Attach a sample source. Returns self for chaining."""
        self.source = source
        rate = getattr(source, "sample_rate", None)
        if rate:
            self.set_sample_rate(rate)
        if hasattr(source, "smoothing"):
            source.smoothing = self.smoothing
        self.is_connected = True
        logger.debug("Connected source %s", type(source).__name__)
        return self

    def disconnect(self) -> "SpectralAnalyzer":
        """Detach the current source. Returns self for chaining."""
        if self.is_connected:
            logger.debug("Disconnected source %s", type(self.source).__name__)
        self.source = None
        self.is_connected = False
        return self

    # --- Per-frame analysis ---

    def update(self) -> AnalysisFrame:
        """Analyze the source's current frame.

        Returns:
            AnalysisFrame with band levels, energy and average energy. A
            disconnected analyzer returns the empty analysis and leaves its
            state untouched.
        """
        if not self.is_connected or self.source is None:
            return self._empty_analysis()

        self._copy_into(self.frequency_data, self.source.get_frequency_data())
        self._copy_into(self.waveform_data, self.source.get_waveform_data())

        self._calculate_band_levels()
        energy = rms_energy(self.waveform_data)
        self._energy_history.push(energy)

        return AnalysisFrame(
            frequency_data=self.frequency_data.copy(),
            waveform_data=self.waveform_data.copy(),
            band_levels=self.get_all_band_levels(),
            energy=energy,
            average_energy=self._energy_history.mean(),
        )

    @staticmethod
    def _copy_into(buffer: np.ndarray, raw) -> None:
        """Copy at most len(buffer) values; a short source leaves the tail stale."""
        if raw is None:
            return
        raw = np.asarray(raw, dtype=np.float32).ravel()
        count = min(len(raw), len(buffer))
        buffer[:count] = raw[:count]

    def _compute_bin_ranges(self) -> List[Tuple[int, int]]:
        nyquist = self.sample_rate / 2
        bin_count = len(self.frequency_data)
        return [
            band_bin_range(
                self.frequency_ranges[band].min_freq,
                self.frequency_ranges[band].max_freq,
                nyquist,
                bin_count,
            )
            for band in BANDS
        ]

    def _calculate_band_levels(self) -> None:
        for i, (min_bin, max_bin) in enumerate(self._bin_ranges):
            raw = band_level(
                self.frequency_data,
                min_bin,
                max_bin,
                self.config.db_floor,
                self.config.db_range,
            )
            self._levels[i] = smooth(self._levels[i], raw, self.smoothing)

    def _empty_analysis(self) -> AnalysisFrame:
        return AnalysisFrame(
            frequency_data=np.zeros(self.fft_size // 2, dtype=np.float32),
            waveform_data=np.zeros(self.fft_size, dtype=np.float32),
            band_levels={band.value: 0.0 for band in BANDS},
            energy=0.0,
            average_energy=0.0,
        )

    # --- Accessors ---

    def get_band_level(self, band) -> float:
        """Smoothed level (0-1) of a band given as a member or its name."""
        return float(self._levels[_BAND_INDEX[FrequencyBand.coerce(band)]])

    def get_sub_bass_level(self) -> float:
        return float(self._levels[_BAND_INDEX[FrequencyBand.SUB_BASS]])

    def get_bass_level(self) -> float:
        return float(self._levels[_BAND_INDEX[FrequencyBand.BASS]])

    def get_low_mid_level(self) -> float:
        return float(self._levels[_BAND_INDEX[FrequencyBand.LOW_MID]])

    def get_mid_level(self) -> float:
        return float(self._levels[_BAND_INDEX[FrequencyBand.MID]])

    def get_high_mid_level(self) -> float:
        return float(self._levels[_BAND_INDEX[FrequencyBand.HIGH_MID]])

    def get_treble_level(self) -> float:
        return float(self._levels[_BAND_INDEX[FrequencyBand.TREBLE]])

    def get_all_band_levels(self) -> Dict[str, float]:
        """All band levels keyed by band name, low to high."""
        return {band.value: float(self._levels[i]) for i, band in enumerate(BANDS)}

    def get_combined_bass_level(self) -> float:
        """Sub-bass and bass compressed into one 0-1 signal."""
        return min(1.0, (self.get_sub_bass_level() + self.get_bass_level()) / 1.5)

    def get_combined_mid_level(self) -> float:
        """Low-mid, mid and high-mid compressed into one 0-1 signal."""
        total = self.get_low_mid_level() + self.get_mid_level() + self.get_high_mid_level()
        return min(1.0, total / 2)

    def get_energy(self) -> float:
        """Energy of the waveform currently held in the buffer."""
        if not self.is_connected:
            return 0.0
        return rms_energy(self.waveform_data)

    def get_average_energy(self) -> float:
        return self._energy_history.mean()

    @property
    def energy_history(self) -> Tuple[float, ...]:
        """Recent energy values, oldest first."""
        return tuple(self._energy_history)

    def get_frequency_data(self) -> np.ndarray:
        """Copy of the frequency buffer; zeros when disconnected."""
        if not self.is_connected:
            return np.zeros(self.fft_size // 2, dtype=np.float32)
        return self.frequency_data.copy()

    def get_waveform_data(self) -> np.ndarray:
        """Copy of the waveform buffer; zeros when disconnected."""
        if not self.is_connected:
            return np.zeros(self.fft_size, dtype=np.float32)
        return self.waveform_data.copy()

    # --- Settings and lifecycle ---

    def set_smoothing(self, smoothing: float) -> None:
        """Set the smoothing factor, clamped to [0, 1]."""
        self.smoothing = clamp(smoothing, 0.0, 1.0)
        if self.source is not None and hasattr(self.source, "smoothing"):
            self.source.smoothing = self.smoothing

    def set_sample_rate(self, sample_rate: float) -> None:
        """Adopt the host's real sample rate; non-positive values are ignored."""
        if sample_rate <= 0:
            logger.warning("Ignoring invalid sample rate: %s", sample_rate)
            return
        if float(sample_rate) != self.sample_rate:
            self.sample_rate = float(sample_rate)
            self._bin_ranges = self._compute_bin_ranges()
            logger.debug("Sample rate set to %.0f Hz", self.sample_rate)

    def reset(self) -> None:
        """Clear smoothing memory, energy history and buffers; keep config and source."""
        self._levels.fill(0.0)
        self._energy_history.clear()
        self.frequency_data.fill(0.0)
        self.waveform_data.fill(0.0)
        logger.debug("Spectral analyzer reset")

    def dispose(self) -> None:
        """Disconnect and release all carried state."""
        self.disconnect()
        self.reset()
