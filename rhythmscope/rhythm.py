"""Rhythm detection: onset state machines and tempo estimation over analysis frames."""

import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from .config import DEFAULT_DETECTOR_CONFIG, DetectorConfig, clamp, validate_detector_config
from .logging_config import get_logger
from .models import DetectionResult, FrequencyBand, OnsetEvent, OnsetKind
from .ring_buffer import RingBuffer
from .tempo import beat_phase, estimate_tempo

logger = get_logger(__name__)

OnsetCallback = Callable[[OnsetEvent], None]

# Pulse envelopes below this snap to zero
_HIT_FLOOR = 0.01


def _now_ms() -> float:
    return time.monotonic() * 1000.0


def _level(band_levels, band: FrequencyBand) -> float:
    return float(band_levels.get(band.value) or 0.0)


class RhythmDetector:
    """Turns a stream of analysis frames into onset events and a tempo estimate.

    A general beat fires on a sharp rise in overall energy that also clears an
    adaptive threshold. The threshold jumps to the energy of each beat and
    decays geometrically every frame, so a single decaying transient cannot
    re-trigger. Kick, snare and hi-hat detectors are independent fixed
    thresholds on band levels, each gated only by its own refractory timer.
    """

    def __init__(
        self,
        config: DetectorConfig = None,
        *,
        on_beat: Optional[OnsetCallback] = None,
        on_kick: Optional[OnsetCallback] = None,
        on_snare: Optional[OnsetCallback] = None,
        on_hihat: Optional[OnsetCallback] = None,
        **overrides,
    ):
        """Initialize detector with configuration.

        Args:
            config: Detector configuration. Uses DEFAULT_DETECTOR_CONFIG if not provided.
            on_beat: Optional hook fired before beat listeners.
            on_kick: Optional hook fired before kick listeners.
            on_snare: Optional hook fired before snare listeners.
            on_hihat: Optional hook fired before hi-hat listeners.
            **overrides: Individual DetectorConfig fields to replace.

        Raises:
            ConfigurationError: If the configuration is unusable.
        """
        config = config or DEFAULT_DETECTOR_CONFIG
        if overrides:
            config = replace(config, **overrides)
        self.config = validate_detector_config(config)

        self.threshold = self.config.threshold
        self.decay_rate = self.config.decay_rate
        self.min_beat_interval = self.config.min_beat_interval
        self.kick_threshold = self.config.kick_threshold
        self.snare_threshold = self.config.snare_threshold
        self.hihat_threshold = self.config.hihat_threshold
        self.hihat_min_interval = self.config.hihat_min_interval
        self.hit_decay = self.config.hit_decay

        self.on_beat = on_beat
        self.on_kick = on_kick
        self.on_snare = on_snare
        self.on_hihat = on_hihat

        self._beat_callbacks: List[OnsetCallback] = []
        self._kick_callbacks: List[OnsetCallback] = []
        self._snare_callbacks: List[OnsetCallback] = []
        self._hihat_callbacks: List[OnsetCallback] = []

        self._beat_history = RingBuffer(self.config.beat_history_size)
        self._clear_state()

        logger.debug(
            "Rhythm detector: threshold=%.2f, decay_rate=%.2f, min_beat_interval=%.0fms",
            self.threshold,
            self.decay_rate,
            self.min_beat_interval,
        )

    def _clear_state(self) -> None:
        self.current_energy = 0.0
        self.previous_energy = 0.0
        self.energy_threshold = 0.0

        self.last_beat_time = 0.0
        self.last_kick_time = 0.0
        self.last_snare_time = 0.0
        self.last_hihat_time = 0.0

        self._beat_history.clear()
        self.bpm = 0
        self.confidence = 0.0

        self.beat_hit = 0.0
        self.kick_hit = 0.0
        self.snare_hit = 0.0
        self.hihat_hit = 0.0

    # --- Per-frame detection ---

    def update(self, frame, now: Optional[float] = None) -> DetectionResult:
        """Run all onset detectors on one frame.

        Args:
            frame: An AnalysisFrame, or anything with ``band_levels`` and
                ``energy`` attributes. None is allowed.
            now: Monotonic timestamp in ms. Defaults to the monotonic clock.

        Returns:
            DetectionResult for this frame. A missing frame or one without
            band levels reports the previous tempo and no onsets.
        """
        if now is None:
            now = _now_ms()

        band_levels = getattr(frame, "band_levels", None) if frame is not None else None
        if not band_levels:
            return self.get_state(now)

        self.previous_energy = self.current_energy
        self.current_energy = float(getattr(frame, "energy", 0.0) or 0.0)

        self.energy_threshold *= self.decay_rate
        self._decay_hits()

        beat_detected = self._detect_beat(now)

        kick_energy = _level(band_levels, FrequencyBand.SUB_BASS) + _level(
            band_levels, FrequencyBand.BASS
        )
        kick_detected = False
        if kick_energy > self.kick_threshold and now - self.last_kick_time > self.min_beat_interval:
            kick_detected = True
            self.last_kick_time = now
            self.kick_hit = 1.0
            self._fire(self.on_kick, self._kick_callbacks, OnsetKind.KICK, now, kick_energy)

        snare_energy = _level(band_levels, FrequencyBand.MID)
        snare_detected = False
        if (
            snare_energy > self.snare_threshold
            and now - self.last_snare_time > self.min_beat_interval
        ):
            snare_detected = True
            self.last_snare_time = now
            self.snare_hit = 1.0
            self._fire(self.on_snare, self._snare_callbacks, OnsetKind.SNARE, now, snare_energy)

        hihat_energy = _level(band_levels, FrequencyBand.TREBLE)
        hihat_detected = False
        if (
            hihat_energy > self.hihat_threshold
            and now - self.last_hihat_time > self.hihat_min_interval
        ):
            hihat_detected = True
            self.last_hihat_time = now
            self.hihat_hit = 1.0
            self._fire(self.on_hihat, self._hihat_callbacks, OnsetKind.HIHAT, now, hihat_energy)

        return DetectionResult(
            beat_detected=beat_detected,
            kick_detected=kick_detected,
            snare_detected=snare_detected,
            hihat_detected=hihat_detected,
            bpm=self.bpm,
            confidence=self.confidence,
            time_since_last_beat=max(0.0, now - self.last_beat_time),
        )

    def _detect_beat(self, now: float) -> bool:
        energy_delta = self.current_energy - self.previous_energy
        if not (
            energy_delta > self.threshold
            and self.current_energy > self.energy_threshold
            and now - self.last_beat_time > self.min_beat_interval
        ):
            return False

        self.last_beat_time = now
        # The next transient has to be louder than this one until the threshold decays
        self.energy_threshold = self.current_energy
        self._beat_history.push(now)
        self._update_tempo()
        self.beat_hit = 1.0
        self._fire(self.on_beat, self._beat_callbacks, OnsetKind.BEAT, now, self.current_energy)
        return True

    def _update_tempo(self) -> None:
        estimate = estimate_tempo(
            self._beat_history.values(),
            min_beats=self.config.min_beats_for_tempo,
            min_bpm=self.config.min_bpm,
            max_bpm=self.config.max_bpm,
        )
        if estimate is None:
            logger.debug("Beat history not increasing, keeping %d BPM", self.bpm)
            return
        self.bpm, self.confidence = estimate
        if self.bpm:
            logger.debug("Tempo: %d BPM (confidence %.2f)", self.bpm, self.confidence)

    def _decay_hits(self) -> None:
        for name in ("beat_hit", "kick_hit", "snare_hit", "hihat_hit"):
            value = getattr(self, name) * self.hit_decay
            setattr(self, name, value if value >= _HIT_FLOOR else 0.0)

    def _fire(
        self,
        hook: Optional[OnsetCallback],
        callbacks: List[OnsetCallback],
        kind: OnsetKind,
        now: float,
        energy: float,
    ) -> None:
        """Call the hook, then each listener in registration order."""
        event = OnsetEvent(kind=kind, time=now, energy=energy, bpm=self.bpm)
        targets = [hook] if hook is not None else []
        # Copy so a listener may unsubscribe itself while firing
        targets.extend(list(callbacks))
        for callback in targets:
            try:
                callback(event)
            except Exception:
                logger.exception("%s listener failed", kind.value)

    # --- Listener registration ---

    @staticmethod
    def _subscribe(callbacks: List[OnsetCallback], callback: OnsetCallback) -> Callable[[], None]:
        callbacks.append(callback)

        def unsubscribe() -> None:
            try:
                callbacks.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def on_beat_detected(self, callback: OnsetCallback) -> Callable[[], None]:
        """Register a beat listener. Returns a function that removes it."""
        return self._subscribe(self._beat_callbacks, callback)

    def on_kick_detected(self, callback: OnsetCallback) -> Callable[[], None]:
        """Register a kick listener. Returns a function that removes it."""
        return self._subscribe(self._kick_callbacks, callback)

    def on_snare_detected(self, callback: OnsetCallback) -> Callable[[], None]:
        """Register a snare listener. Returns a function that removes it."""
        return self._subscribe(self._snare_callbacks, callback)

    def on_hihat_detected(self, callback: OnsetCallback) -> Callable[[], None]:
        """Register a hi-hat listener. Returns a function that removes it."""
        return self._subscribe(self._hihat_callbacks, callback)

    # --- Accessors ---

    def get_bpm(self) -> int:
        return self.bpm

    def get_confidence(self) -> float:
        return self.confidence

    def get_time_since_last_beat(self, now: Optional[float] = None) -> float:
        if now is None:
            now = _now_ms()
        return max(0.0, now - self.last_beat_time)

    def get_beat_phase(self, now: Optional[float] = None) -> float:
        """Position within the current beat in [0, 1); 0 while the tempo is unknown."""
        if self.bpm <= 0:
            return 0.0
        return beat_phase(self.get_time_since_last_beat(now), self.bpm)

    def get_state(self, now: Optional[float] = None) -> DetectionResult:
        """Snapshot of tempo and timing with no onsets flagged."""
        return DetectionResult(
            bpm=self.bpm,
            confidence=self.confidence,
            time_since_last_beat=self.get_time_since_last_beat(now),
        )

    def get_hits(self) -> Dict[str, float]:
        """Decaying pulse levels (1.0 on an onset) for driving visual effects."""
        return {
            OnsetKind.BEAT.value: self.beat_hit,
            OnsetKind.KICK.value: self.kick_hit,
            OnsetKind.SNARE.value: self.snare_hit,
            OnsetKind.HIHAT.value: self.hihat_hit,
        }

    @property
    def beat_history(self) -> Tuple[float, ...]:
        """Recent beat timestamps in ms, oldest first."""
        return tuple(self._beat_history)

    def listener_count(self, kind: OnsetKind) -> int:
        lists = {
            OnsetKind.BEAT: self._beat_callbacks,
            OnsetKind.KICK: self._kick_callbacks,
            OnsetKind.SNARE: self._snare_callbacks,
            OnsetKind.HIHAT: self._hihat_callbacks,
        }
        return len(lists[kind])

    # --- Settings and lifecycle ---

    def set_threshold(self, threshold: float) -> None:
        """Set the beat energy-rise threshold, clamped to [0, 1]."""
        self.threshold = clamp(threshold, 0.0, 1.0)

    def set_decay_rate(self, rate: float) -> None:
        """Set the adaptive threshold decay rate, clamped to [0.5, 0.99]."""
        self.decay_rate = clamp(rate, 0.5, 0.99)

    def set_hit_decay(self, decay: float) -> None:
        """Set the pulse envelope decay, clamped to [0, 0.99]."""
        self.hit_decay = clamp(decay, 0.0, 0.99)

    def reset(self) -> None:
        """Zero timers, histories, energies and tempo; keep config and listeners."""
        self._clear_state()
        logger.debug("Rhythm detector reset")

    def dispose(self) -> None:
        """Reset and drop every listener and hook."""
        self.reset()
        self._beat_callbacks.clear()
        self._kick_callbacks.clear()
        self._snare_callbacks.clear()
        self._hihat_callbacks.clear()
        self.on_beat = self.on_kick = self.on_snare = self.on_hihat = None
