"""Wiring of analyzer and detector, plus an offline driver for whole signals."""

from typing import Optional, Tuple

import librosa
import numpy as np

from .config import AnalyzerConfig, DetectorConfig
from .exceptions import AudioLoadError, AudioTooShortError, ConfigurationError
from .logging_config import get_logger
from .models import AnalysisFrame, DetectionResult, OnsetKind, SessionSummary
from .rhythm import RhythmDetector
from .sources import SignalSource
from .spectral import BANDS, SpectralAnalyzer

logger = get_logger(__name__)


class RhythmPipeline:
    """Runs one analyzer tick and feeds the resulting frame to the detector."""

    def __init__(self, analyzer: SpectralAnalyzer, detector: RhythmDetector):
        self.analyzer = analyzer
        self.detector = detector

    def process(self, now: Optional[float] = None) -> Tuple[AnalysisFrame, DetectionResult]:
        """Analyze the current source frame and detect onsets in it.

        Args:
            now: Timestamp in ms for the detector. Defaults to the monotonic clock.

        Returns:
            (frame, result) for this tick.
        """
        frame = self.analyzer.update()
        result = self.detector.update(frame, now)
        return frame, result

    def reset(self) -> None:
        self.analyzer.reset()
        self.detector.reset()

    def dispose(self) -> None:
        self.analyzer.dispose()
        self.detector.dispose()


def analyze_signal(
    signal: np.ndarray,
    sample_rate: float,
    frame_rate: float = 60.0,
    analyzer_config: AnalyzerConfig = None,
    detector_config: DetectorConfig = None,
) -> SessionSummary:
    """Step through a decoded signal the way a render loop would and summarize it.

    Frame ``i`` reads the analysis window ending at sample ``i * hop`` and is
    timestamped at ``i * 1000 / frame_rate`` ms.

    Args:
        signal: Audio samples; multi-channel input is downmixed.
        sample_rate: Sample rate of the signal in Hz.
        frame_rate: Analysis ticks per second of audio.
        analyzer_config: Optional analyzer configuration.
        detector_config: Optional detector configuration.

    Returns:
        SessionSummary of the run.

    Raises:
        ConfigurationError: If frame_rate or sample_rate is not positive.
        AudioTooShortError: If the signal is shorter than one analysis window.
    """
    if frame_rate <= 0:
        raise ConfigurationError(f"frame_rate must be positive, got {frame_rate!r}")
    if sample_rate <= 0:
        raise ConfigurationError(f"sample_rate must be positive, got {sample_rate!r}")

    analyzer = SpectralAnalyzer(analyzer_config)
    detector = RhythmDetector(detector_config)
    source = SignalSource(signal, sample_rate, fft_size=analyzer.fft_size)

    if len(source.signal) < analyzer.fft_size:
        raise AudioTooShortError(
            f"Signal has {len(source.signal)} samples, need at least {analyzer.fft_size}"
        )

    analyzer.connect(source)
    pipeline = RhythmPipeline(analyzer, detector)

    hop = sample_rate / frame_rate
    frame_count = int(len(source.signal) // hop)
    onsets = {kind.value: [] for kind in OnsetKind}
    band_sums = np.zeros(len(BANDS), dtype=np.float64)
    energy_sum = 0.0

    logger.debug(
        "Analyzing %.1fs of audio: %d frames at %.1f fps", source.duration, frame_count, frame_rate
    )

    for index in range(1, frame_count + 1):
        source.seek(int(round(index * hop)))
        now = index * 1000.0 / frame_rate
        frame, result = pipeline.process(now)

        energy_sum += frame.energy
        band_sums += [frame.band_levels[band.value] for band in BANDS]

        if result.beat_detected:
            onsets[OnsetKind.BEAT.value].append(now)
        if result.kick_detected:
            onsets[OnsetKind.KICK.value].append(now)
        if result.snare_detected:
            onsets[OnsetKind.SNARE.value].append(now)
        if result.hihat_detected:
            onsets[OnsetKind.HIHAT.value].append(now)

    divisor = max(frame_count, 1)
    summary = SessionSummary(
        frame_count=frame_count,
        duration=source.duration,
        bpm=detector.get_bpm(),
        confidence=detector.get_confidence(),
        mean_energy=energy_sum / divisor,
        band_means={band.value: float(band_sums[i] / divisor) for i, band in enumerate(BANDS)},
        onsets=onsets,
    )
    pipeline.dispose()

    logger.debug(
        "Detected %d beats, %d kicks, %d snares, %d hi-hats; tempo %s BPM",
        summary.onset_count(OnsetKind.BEAT),
        summary.onset_count(OnsetKind.KICK),
        summary.onset_count(OnsetKind.SNARE),
        summary.onset_count(OnsetKind.HIHAT),
        summary.bpm_str,
    )
    return summary


def analyze_file(
    file_path: str,
    frame_rate: float = 60.0,
    analyzer_config: AnalyzerConfig = None,
    detector_config: DetectorConfig = None,
) -> SessionSummary:
    """Load an audio file at its native rate and run analyze_signal over it.

    Raises:
        AudioLoadError: If the audio file cannot be loaded.
        AudioTooShortError: If the audio is shorter than one analysis window.
    """
    logger.debug("Loading audio file: %s", file_path)
    try:
        y, sr = librosa.load(file_path, sr=None, mono=True)
    except Exception as e:
        logger.error("Failed to load audio file: %s", e)
        raise AudioLoadError("Unable to load audio file")

    logger.debug("Audio duration: %.1fs at %d Hz", librosa.get_duration(y=y, sr=sr), sr)
    return analyze_signal(
        y,
        sr,
        frame_rate=frame_rate,
        analyzer_config=analyzer_config,
        detector_config=detector_config,
    )
