"""Stretch tuning offsets (Railsback curve) for piano inharmonicity."""

from typing import ClassVar, Dict

import numpy as np


class StretchCurve:
    """Per-note cents offsets approximating the Railsback curve.

    Offsets are interpolated linearly between anchor notes and are zero at A4.
    """

    # MIDI note -> cents offset
    ANCHORS: ClassVar[Dict[int, float]] = {
        21: -30.0,  # A0
        33: -12.0,  # A1
        45: -4.0,  # A2
        57: -1.0,  # A3
        69: 0.0,  # A4
        81: 3.0,  # A5
        93: 10.0,  # A6
        100: 18.0,  # E7
        108: 30.0,  # C8
    }

    def __init__(self, anchors: Dict[int, float] = None) -> None:
        points = sorted((anchors or self.ANCHORS).items())
        self._midi = np.array([p[0] for p in points], dtype=float)
        self._cents = np.array([p[1] for p in points], dtype=float)

    def offset_cents(self, midi: int) -> float:
        """Stretch offset in cents for a MIDI note (clamped at the ends)."""
        return float(np.interp(midi, self._midi, self._cents))
