"""Sample providers that feed raw spectra and waveforms to the analyzer."""

from typing import Optional, Protocol

import librosa
import numpy as np

from .logging_config import get_logger

logger = get_logger(__name__)

# Floor for silent bins when converting magnitudes to dB (-200 dB)
MIN_AMPLITUDE = 1e-10


class SampleSource(Protocol):
    """Anything the analyzer can pull one frame of raw data from."""

    sample_rate: float

    def get_frequency_data(self) -> np.ndarray:
        """FFT magnitudes in dB, conventionally -100..0, length fft_size / 2."""
        ...

    def get_waveform_data(self) -> np.ndarray:
        """Time-domain samples in [-1, 1], length fft_size."""
        ...


class BufferSource:
    """Source fed by the host, e.g. from an audio callback or another analyser.

    Getters return whatever was last written; arrays of the wrong length are
    passed through and the analyzer's bounded copy deals with them.
    """

    def __init__(self, sample_rate: float = 44100.0, fft_size: int = 2048):
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self._frequency_data = np.full(fft_size // 2, -100.0, dtype=np.float32)
        self._waveform_data = np.zeros(fft_size, dtype=np.float32)

    def write(
        self,
        frequency_data: Optional[np.ndarray] = None,
        waveform_data: Optional[np.ndarray] = None,
    ) -> None:
        """Store the next frame; either array may be omitted to keep the previous one."""
        if frequency_data is not None:
            self._frequency_data = np.array(frequency_data, dtype=np.float32)
        if waveform_data is not None:
            self._waveform_data = np.array(waveform_data, dtype=np.float32)

    def get_frequency_data(self) -> np.ndarray:
        return self._frequency_data

    def get_waveform_data(self) -> np.ndarray:
        return self._waveform_data


class SignalSource:
    """Analyser-style source that reads a decoded signal at a movable position.

    Each frame looks at the ``fft_size`` samples ending at the read position
    (zero-padded before the start of the signal), applies a Blackman window,
    smooths magnitudes over time and reports them in dB.
    """

    def __init__(
        self,
        signal: np.ndarray,
        sample_rate: float,
        fft_size: int = 2048,
        smoothing: float = 0.8,
    ):
        """Initialize the source.

        Args:
            signal: Audio samples. Multi-channel input (channels first) is
                downmixed to mono.
            sample_rate: Sample rate of the signal in Hz.
            fft_size: Analysis window length in samples.
            smoothing: Temporal smoothing of spectral magnitudes (0-1).
        """
        signal = np.asarray(signal, dtype=np.float32)
        if signal.ndim > 1:
            signal = librosa.to_mono(signal)
        self.signal = signal
        self.sample_rate = float(sample_rate)
        self.fft_size = fft_size
        self.smoothing = smoothing
        self._window = librosa.filters.get_window("blackman", fft_size, fftbins=True)
        self._magnitudes = np.zeros(fft_size // 2 + 1, dtype=np.float64)
        self._position = 0
        logger.debug(
            "Signal source: %d samples at %.0f Hz, fft_size=%d",
            len(self.signal),
            self.sample_rate,
            fft_size,
        )

    @property
    def position(self) -> int:
        """Read position in samples."""
        return self._position

    @property
    def duration(self) -> float:
        """Signal duration in seconds."""
        return len(self.signal) / self.sample_rate

    @property
    def exhausted(self) -> bool:
        return self._position >= len(self.signal)

    def seek(self, position: int) -> None:
        """Move the read position, clamped to the signal bounds."""
        self._position = max(0, min(len(self.signal), int(position)))

    def advance(self, samples: int) -> None:
        self.seek(self._position + samples)

    def _block(self) -> np.ndarray:
        end = self._position
        start = end - self.fft_size
        block = self.signal[max(0, start) : end]
        if len(block) < self.fft_size:
            block = np.pad(block, (self.fft_size - len(block), 0))
        return block

    def get_waveform_data(self) -> np.ndarray:
        return self._block().astype(np.float32)

    def get_frequency_data(self) -> np.ndarray:
        windowed = self._block() * self._window
        magnitudes = np.abs(np.fft.rfft(windowed)) / self.fft_size
        self._magnitudes = self.smoothing * self._magnitudes + (1.0 - self.smoothing) * magnitudes
        db = librosa.amplitude_to_db(self._magnitudes, ref=1.0, amin=MIN_AMPLITUDE, top_db=None)
        return db[: self.fft_size // 2].astype(np.float32)
