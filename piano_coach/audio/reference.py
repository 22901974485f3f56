"""Reference tone generation."""

import numpy as np


class ReferenceTone:
    """Pure sine tone generator."""

    FADE_SECONDS = 0.01

    def __init__(self, sample_rate: int = 44100) -> None:
        self._sample_rate = sample_rate

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def generate(self, frequency: float, duration: float, amplitude: float = 0.5) -> np.ndarray:
        """Sine wave at ``frequency`` with short linear fades at both ends."""
        n = int(self._sample_rate * duration)
        t = np.arange(n, dtype=np.float32) / self._sample_rate
        tone = (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)

        fade = min(int(self._sample_rate * self.FADE_SECONDS), n // 2)
        if fade > 0:
            ramp = np.linspace(0.0, 1.0, fade, dtype=np.float32)
            tone[:fade] *= ramp
            tone[-fade:] *= ramp[::-1]
        return tone
