"""Equal temperament calculations."""

import numpy as np

DEFAULT_A4 = 440.0
A4_MIDI = 69


class Temperament:
    """Converts between MIDI notes, frequencies and cents for a given A4."""

    def __init__(self, a4: float = DEFAULT_A4) -> None:
        if a4 <= 0:
            raise ValueError(f"A4 reference must be positive, got {a4}")
        self._a4 = float(a4)

    @property
    def a4(self) -> float:
        return self._a4

    def frequency(self, midi: int) -> float:
        """Frequency in Hz of a MIDI note: a4 * 2^((midi - 69) / 12)."""
        return self._a4 * 2.0 ** ((midi - A4_MIDI) / 12.0)

    @staticmethod
    def cents_from_target(frequency: float, target: float) -> float:
        """Deviation of ``frequency`` from ``target`` in cents."""
        return float(1200.0 * np.log2(frequency / target))

    @staticmethod
    def cents_to_ratio(cents: float) -> float:
        return 2.0 ** (cents / 1200.0)

    def nearest_midi(self, frequency: float) -> int:
        """Nearest equal-tempered MIDI note for a frequency."""
        if frequency <= 0:
            raise ValueError(f"Frequency must be positive, got {frequency}")
        return int(round(A4_MIDI + 12.0 * np.log2(frequency / self._a4)))

    def __repr__(self):
        return f"Temperament(a4={self._a4:.2f})"
