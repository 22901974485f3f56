"""YIN fundamental frequency estimation."""

from __future__ import annotations
import math
from typing import ClassVar, Optional

import numpy as np

from ..logger import get_logger
from ..note_types import PitchEstimate

logger = get_logger(__name__)


class PitchDetector:
    """YIN-style pitch detector for a single mono window.

    The detector is stateless between calls; ``detect`` is a pure function of
    the window, the sample rate and the threshold.
    """

    DEFAULT_THRESHOLD: ClassVar[float] = 0.1
    LOWEST_FREQUENCY: ClassVar[float] = 27.5  # Hz - A0, bounds the longest lag
    MIN_FREQUENCY: ClassVar[float] = 20.0  # Hz - below this is not an instrument pitch
    MAX_FREQUENCY: ClassVar[float] = 5000.0  # Hz
    SILENCE_LEVEL: ClassVar[float] = 1e-6  # Peak amplitude treated as silence
    EPSILON: ClassVar[float] = 1e-12

    def __init__(self, sample_rate: int, threshold: float = DEFAULT_THRESHOLD) -> None:
        """Initialize the detector.

        Args:
            sample_rate: Sample rate of the analysed windows in Hz
            threshold: Absolute threshold on the normalized difference function
        """
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {sample_rate}")
        self._sample_rate = int(sample_rate)
        self._threshold = float(threshold)
        self._longest_lag = int(math.ceil(self._sample_rate / self.LOWEST_FREQUENCY))
        self._shortest_lag = self._sample_rate // int(self.MAX_FREQUENCY)
        self._min_window = 2 * (self._shortest_lag + 2)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def min_window(self) -> int:
        """Shortest window that can produce an estimate."""
        return self._min_window

    def detect(self, samples) -> Optional[PitchEstimate]:
        """Estimate the fundamental frequency of a window.

        Args:
            samples: 1-D array of mono samples

        Returns:
            PitchEstimate, or None for silent, too short or out-of-range windows
        """
        x = np.asarray(samples, dtype=np.float64)
        if x.ndim != 1 or x.size < self._min_window:
            return None
        if not np.all(np.isfinite(x)) or np.max(np.abs(x)) < self.SILENCE_LEVEL:
            return None

        tau_max = min(self._longest_lag, x.size // 2)
        cmnd = self._normalized_difference(x, tau_max)

        tau = self._pick_lag(cmnd, tau_max)
        if tau is None:
            return None

        refined = self._parabolic_interpolation(cmnd, tau)
        if refined <= 0:
            return None

        frequency = self._sample_rate / refined
        confidence = float(min(1.0, max(0.0, 1.0 - cmnd[tau])))

        if not self.MIN_FREQUENCY <= frequency <= self.MAX_FREQUENCY:
            logger.debug(f"Rejected out-of-range estimate: {frequency:.1f}Hz")
            return None

        return PitchEstimate(frequency=float(frequency), confidence=confidence)

    @classmethod
    def _normalized_difference(cls, x: np.ndarray, tau_max: int) -> np.ndarray:
        """Cumulative mean normalized difference d'(tau) for tau in [0, tau_max]."""
        n = x.size
        diff = np.zeros(tau_max + 1, dtype=np.float64)
        for tau in range(1, tau_max + 1):
            delta = x[: n - tau] - x[tau:]
            diff[tau] = np.dot(delta, delta)

        cmnd = np.ones(tau_max + 1, dtype=np.float64)
        running = np.cumsum(diff[1:])
        taus = np.arange(1, tau_max + 1, dtype=np.float64)
        valid = running > cls.EPSILON
        cmnd[1:][valid] = diff[1:][valid] * taus[valid] / running[valid]
        return cmnd

    def _pick_lag(self, cmnd: np.ndarray, tau_max: int) -> Optional[int]:
        """First local minimum under the threshold, else the global minimum."""
        if tau_max < 2:
            return None

        for tau in range(1, tau_max):
            if cmnd[tau] < self._threshold and cmnd[tau] <= cmnd[tau + 1]:
                return tau

        tau = int(np.argmin(cmnd[1 : tau_max + 1])) + 1
        if cmnd[tau] >= 1.0:
            # Flat difference function: no periodicity at all
            return None
        return tau

    @staticmethod
    def _parabolic_interpolation(cmnd: np.ndarray, tau: int) -> float:
        if tau < 1 or tau + 1 >= cmnd.size:
            return float(tau)
        a, b, c = cmnd[tau - 1], cmnd[tau], cmnd[tau + 1]
        denominator = a - 2.0 * b + c
        if abs(denominator) < 1e-12:
            return float(tau)
        shift = 0.5 * (a - c) / denominator
        if abs(shift) > 1.0:
            return float(tau)
        return tau + shift


def detect(
    samples, sample_rate: int, threshold: float = PitchDetector.DEFAULT_THRESHOLD
) -> Optional[PitchEstimate]:
    """Convenience wrapper around ``PitchDetector(sample_rate, threshold).detect``."""
    return PitchDetector(sample_rate, threshold).detect(samples)
