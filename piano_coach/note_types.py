"""Type definitions for the Piano Coach project."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Note:
    """A key on the 88-key piano."""

    midi: int  # MIDI note number (21 = A0, 108 = C8)
    name: str  # Pitch class name (e.g., 'A', 'C#')
    octave: int  # Scientific pitch notation octave
    strings: int  # Strings per key (1, 2 or 3)

    @property
    def display_name(self) -> str:
        return f"{self.name}{self.octave}"

    @property
    def is_trichord(self) -> bool:
        return self.strings == 3

    def __str__(self):
        return self.display_name


@dataclass(frozen=True)
class PitchEstimate:
    """A fundamental frequency estimate for one analysis window."""

    frequency: float  # Frequency in Hz
    confidence: float  # Detection confidence (0-1)
