"""Order in which the 88 keys are visited during a tuning session."""

from typing import ClassVar, Dict, Iterator, Optional, Tuple

from ..notes import NOTE_COUNT, NOTES, note_at
from ..note_types import Note
from .profile import PianoProfile

# Chromatic indices (0 = A0) of the temperament octave F3..F4
TEMPERAMENT_START = 32
TEMPERAMENT_END = 44  # inclusive
TEMPERAMENT_LENGTH = TEMPERAMENT_END - TEMPERAMENT_START + 1

PHASE_TEMPERAMENT = "Temperament Octave"
PHASE_UP = "Octaves Up"
PHASE_DOWN = "Octaves Down"
PHASE_BY_DEVIATION = "By Deviation"


class TuningOrder:
    """An immutable permutation of the 88 chromatic indices.

    The traditional order tunes the temperament octave (F3-F4) first, then
    works up to C8 and finally down from E3 to A0. A profile-driven order keeps
    the temperament octave first and visits the remaining keys worst-first.
    """

    TRADITIONAL_UP_END: ClassVar[int] = TEMPERAMENT_LENGTH + (NOTE_COUNT - 1 - TEMPERAMENT_END)

    def __init__(self, indices, profile_driven: bool = False) -> None:
        indices = tuple(int(i) for i in indices)
        if sorted(indices) != list(range(NOTE_COUNT)):
            raise ValueError("A tuning order must visit each of the 88 keys exactly once")
        self._indices: Tuple[int, ...] = indices
        self._positions: Dict[int, int] = {idx: pos for pos, idx in enumerate(indices)}
        self._profile_driven = profile_driven

    @classmethod
    def traditional(cls) -> "TuningOrder":
        temperament = range(TEMPERAMENT_START, TEMPERAMENT_END + 1)
        upward = range(TEMPERAMENT_END + 1, NOTE_COUNT)
        downward = range(TEMPERAMENT_START - 1, -1, -1)
        return cls([*temperament, *upward, *downward])

    @classmethod
    def from_profile(cls, profile: PianoProfile) -> "TuningOrder":
        """Temperament octave first, then the rest by descending |cents|.

        Unmeasured keys count as zero deviation and sort after measured keys
        with the same deviation. Remaining ties keep chromatic order.
        """
        temperament = list(range(TEMPERAMENT_START, TEMPERAMENT_END + 1))
        rest = [i for i in range(NOTE_COUNT) if i not in temperament]

        def deviation_key(index: int):
            cents = profile.cents_at(index)
            if cents is None:
                return (0.0, 1, index)
            return (-abs(cents), 0, index)

        rest.sort(key=deviation_key)
        return cls(temperament + rest, profile_driven=True)

    @property
    def is_profile_driven(self) -> bool:
        return self._profile_driven

    @property
    def indices(self) -> Tuple[int, ...]:
        return self._indices

    def __len__(self) -> int:
        return len(self._indices)

    def __iter__(self) -> Iterator[Note]:
        return (NOTES[i] for i in self._indices)

    def index_at(self, position: int) -> int:
        """Chromatic index of the key visited at ``position``."""
        return self._indices[position]

    def note_at(self, position: int) -> Note:
        return note_at(self._indices[position])

    def position_of(self, index: int) -> Optional[int]:
        """Position at which a chromatic index is visited."""
        return self._positions.get(index)

    def phase(self, position: int) -> str:
        if not 0 <= position < len(self._indices):
            raise IndexError(f"Position out of range: {position}")
        if position < TEMPERAMENT_LENGTH:
            return PHASE_TEMPERAMENT
        if self._profile_driven:
            return PHASE_BY_DEVIATION
        if position < self.TRADITIONAL_UP_END:
            return PHASE_UP
        return PHASE_DOWN

    def __repr__(self):
        kind = "profile" if self._profile_driven else "traditional"
        return f"TuningOrder({kind}, {len(self)} keys)"
