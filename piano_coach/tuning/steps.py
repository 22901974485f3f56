"""Unison sub-steps for keys strung with more than one string."""

from enum import Enum
from typing import Optional


class TuningStep(Enum):
    """Step in the tuning process for multi-string notes."""

    # Bichord (2 strings)
    MUTE_BICHORD = "mute_bichord"
    TUNE_BICHORD = "tune_bichord"
    # Trichord (3 strings)
    MUTE_OUTER = "mute_outer"
    TUNE_CENTER = "tune_center"
    TUNE_LEFT = "tune_left"
    TUNE_RIGHT = "tune_right"

    @classmethod
    def first_for_strings(cls, strings: int) -> Optional["TuningStep"]:
        """First step for a key, or None for single-string keys."""
        sequence = _SEQUENCES.get(strings)
        return sequence[0] if sequence else None

    @classmethod
    def last_for_strings(cls, strings: int) -> Optional["TuningStep"]:
        sequence = _SEQUENCES.get(strings)
        return sequence[-1] if sequence else None

    @property
    def _sequence(self):
        if self in (TuningStep.MUTE_BICHORD, TuningStep.TUNE_BICHORD):
            return _SEQUENCES[2]
        return _SEQUENCES[3]

    @property
    def is_muting(self) -> bool:
        """Muting steps carry no deviation feedback."""
        return self in (TuningStep.MUTE_BICHORD, TuningStep.MUTE_OUTER)

    @property
    def number(self) -> int:
        """1-based position of the step."""
        return self._sequence.index(self) + 1

    @property
    def total_steps(self) -> int:
        return len(self._sequence)

    def next(self) -> Optional["TuningStep"]:
        sequence = self._sequence
        position = sequence.index(self)
        return sequence[position + 1] if position + 1 < len(sequence) else None

    def prev(self) -> Optional["TuningStep"]:
        sequence = self._sequence
        position = sequence.index(self)
        return sequence[position - 1] if position > 0 else None

    @property
    def title(self) -> str:
        return _TITLES[self]

    @property
    def instruction(self) -> str:
        return _INSTRUCTIONS[self]


_SEQUENCES = {
    2: (TuningStep.MUTE_BICHORD, TuningStep.TUNE_BICHORD),
    3: (
        TuningStep.MUTE_OUTER,
        TuningStep.TUNE_CENTER,
        TuningStep.TUNE_LEFT,
        TuningStep.TUNE_RIGHT,
    ),
}

_TITLES = {
    TuningStep.MUTE_BICHORD: "Mute right string",
    TuningStep.TUNE_BICHORD: "Tune left string",
    TuningStep.MUTE_OUTER: "Mute outer strings",
    TuningStep.TUNE_CENTER: "Tune center string",
    TuningStep.TUNE_LEFT: "Tune left string",
    TuningStep.TUNE_RIGHT: "Tune right string",
}

_INSTRUCTIONS = {
    TuningStep.MUTE_BICHORD: "Mute the right string with a felt wedge. Only the left string should sound.",
    TuningStep.TUNE_BICHORD: "Tune the left string to pitch, then remove the mute and tune the right string to match.",
    TuningStep.MUTE_OUTER: "Mute both outer strings with a felt strip. Only the center string should sound.",
    TuningStep.TUNE_CENTER: "Tune the center string to the target pitch using the meter.",
    TuningStep.TUNE_LEFT: "Unmute the left string and tune it to the center string until the beats stop.",
    TuningStep.TUNE_RIGHT: "Unmute the right string and tune it to the center string until the beats stop.",
}
