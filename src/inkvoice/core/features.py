"""
Real-time audio feature extraction.

Turns one analyser frame (normalized frequency magnitudes plus
time-domain samples) into the five smoothed drive scalars that steer the
brush: low/mid/high band energies, RMS loudness and a transient peak.

Smoothing is a one-pole low-pass per value, so a value moves a fixed
fraction of the way toward each new sample and never overshoots it.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

import numpy as np

from inkvoice.core.mathutil import clamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriveSignal:
    """Snapshot of the five drive scalars."""
    energy: float = 0.0
    low: float = 0.0
    mid: float = 0.0
    high: float = 0.0
    peak: float = 0.0

    @property
    def total(self) -> float:
        """Summed band and loudness level, used for silence gating."""
        return self.low + self.mid + self.high + self.energy

    def as_dict(self) -> dict:
        return {
            "energy": self.energy,
            "low": self.low,
            "mid": self.mid,
            "high": self.high,
            "peak": self.peak,
        }


SILENT = DriveSignal()


@dataclass(frozen=True)
class BandSpec:
    """Shaping parameters for one frequency band."""
    gain: float
    power: float
    smoothing: float


@dataclass
class ExtractorConfig:
    """Constants for band partitioning, shaping and peak detection."""
    target_fps: float = 30.0

    low_cutoff: float = 0.08
    mid_cutoff: float = 0.45

    low: BandSpec = BandSpec(gain=3.0, power=0.85, smoothing=0.35)
    mid: BandSpec = BandSpec(gain=3.6, power=0.8, smoothing=0.35)
    high: BandSpec = BandSpec(gain=6.6, power=0.75, smoothing=0.28)

    noise_floor: float = 0.012
    rms_range: float = 0.2
    rms_smoothing: float = 0.36

    peak_threshold: float = 0.22
    peak_refractory_ms: float = 110.0
    peak_decay: float = 0.14


class AudioFeatureExtractor:
    """
    Long-lived per-session analyser state.

    ``update`` is the analysis tick; ``snapshot`` hands the render side an
    immutable copy so it never sees a half-updated set of scalars.
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cfg = config or ExtractorConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._drive = SILENT
        self._last_tick_ms: Optional[float] = None
        self._last_peak_ms = -math.inf

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.cfg.target_fps

    def reset(self):
        with self._lock:
            self._drive = SILENT
            self._last_tick_ms = None
            self._last_peak_ms = -math.inf

    def snapshot(self) -> DriveSignal:
        with self._lock:
            return self._drive

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    @staticmethod
    def _as_vector(values) -> Optional[np.ndarray]:
        if values is None:
            return None
        try:
            arr = np.asarray(values, dtype=np.float64)
        except (TypeError, ValueError):
            return None
        if arr.ndim != 1 or arr.size == 0 or not np.all(np.isfinite(arr)):
            return None
        return arr

    def _band_levels(self, spectrum: np.ndarray) -> Optional[Tuple[float, float, float]]:
        n = spectrum.size
        low_end = int(math.floor(n * self.cfg.low_cutoff))
        mid_end = int(math.floor(n * self.cfg.mid_cutoff))
        if low_end < 1 or mid_end <= low_end or mid_end >= n:
            return None

        spectrum = np.clip(spectrum, 0.0, 1.0)
        means = (
            spectrum[:low_end].mean(),
            spectrum[low_end:mid_end].mean(),
            spectrum[mid_end:].mean(),
        )
        specs = (self.cfg.low, self.cfg.mid, self.cfg.high)
        return tuple(
            clamp(clamp(m * s.gain, 0.0, 1.0) ** s.power, 0.0, 1.0)
            for m, s in zip(means, specs)
        )

    def normalized_rms(self, samples: np.ndarray) -> float:
        rms = math.sqrt(float(np.mean(np.square(np.clip(samples, -1.0, 1.0)))))
        return clamp((rms - self.cfg.noise_floor) / self.cfg.rms_range, 0.0, 1.0)

    def update(
        self,
        frequency_magnitudes,
        time_domain_samples,
        now_ms: Optional[float] = None,
    ) -> bool:
        """
        Run one analysis tick.

        Args:
            frequency_magnitudes: Per-bin magnitudes normalized to [0, 1].
            time_domain_samples: Waveform samples normalized to [-1, 1].
            now_ms: Tick timestamp in milliseconds (defaults to the clock).

        Returns:
            True if the drive was updated, False if the call was skipped
            (too soon after the last tick, or unusable buffers).
        """
        if now_ms is None:
            now_ms = self._now_ms()

        if (
            self._last_tick_ms is not None
            and now_ms - self._last_tick_ms < self.frame_interval_ms
        ):
            return False

        spectrum = self._as_vector(frequency_magnitudes)
        samples = self._as_vector(time_domain_samples)
        levels = self._band_levels(spectrum) if spectrum is not None else None
        if levels is None or samples is None:
            logger.debug("Dropping malformed analyser frame; holding previous drive")
            return False

        self._last_tick_ms = now_ms
        cfg = self.cfg
        normalized = self.normalized_rms(samples)

        with self._lock:
            prev = self._drive
            low = prev.low + (levels[0] - prev.low) * cfg.low.smoothing
            mid = prev.mid + (levels[1] - prev.mid) * cfg.mid.smoothing
            high = prev.high + (levels[2] - prev.high) * cfg.high.smoothing
            energy = prev.energy + (normalized - prev.energy) * cfg.rms_smoothing

            if (
                normalized > cfg.peak_threshold
                and now_ms - self._last_peak_ms >= cfg.peak_refractory_ms
            ):
                peak = 1.0
                self._last_peak_ms = now_ms
            else:
                peak = max(0.0, prev.peak - cfg.peak_decay)

            self._drive = replace(prev, energy=energy, low=low, mid=mid, high=high, peak=peak)
        return True
