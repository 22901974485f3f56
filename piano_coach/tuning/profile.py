"""Piano profiling: per-key deviation measurements."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..notes import NOTE_COUNT, midi_to_index


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO timestamp; naive values are taken to be UTC."""
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class ProfiledNote:
    """One measurement taken during a profiling pass."""

    midi: int
    frequency: float
    cents: float
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "midi": self.midi,
            "frequency": self.frequency,
            "cents": self.cents,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfiledNote":
        return cls(
            midi=int(data["midi"]),
            frequency=float(data["frequency"]),
            cents=float(data["cents"]),
            timestamp=parse_timestamp(data["timestamp"]),
        )


@dataclass
class PianoProfile:
    """Deviation measurements for all 88 keys, indexed by midi - 21."""

    id: str
    created_at: datetime
    notes: List[Optional[ProfiledNote]]

    @classmethod
    def new(cls) -> "PianoProfile":
        now = utc_now()
        return cls(id=now.isoformat(), created_at=now, notes=[None] * NOTE_COUNT)

    def record_note(self, midi: int, frequency: float, cents: float) -> None:
        """Record a measurement. MIDI numbers outside the piano are ignored."""
        index = midi_to_index(midi)
        if index is None:
            return
        self.notes[index] = ProfiledNote(midi, frequency, cents)

    def cents_at(self, index: int) -> Optional[float]:
        note = self.notes[index]
        return note.cents if note is not None else None

    def is_complete(self) -> bool:
        return all(n is not None for n in self.notes)

    def progress(self) -> Tuple[int, int]:
        """(profiled, total)"""
        return sum(1 for n in self.notes if n is not None), NOTE_COUNT

    def average_deviation(self) -> float:
        """Mean absolute deviation in cents of the profiled notes."""
        measured = [abs(n.cents) for n in self.notes if n is not None]
        if not measured:
            return 0.0
        return sum(measured) / len(measured)

    def notes_by_deviation(self) -> List[Tuple[int, ProfiledNote]]:
        """(chromatic index, note) pairs, worst deviation first."""
        indexed = [(i, n) for i, n in enumerate(self.notes) if n is not None]
        indexed.sort(key=lambda pair: abs(pair[1].cents), reverse=True)
        return indexed

    def worst_notes(self, n: int) -> List[ProfiledNote]:
        return [note for _, note in self.notes_by_deviation()[:n]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "notes": [n.to_dict() if n is not None else None for n in self.notes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PianoProfile":
        notes = [
            ProfiledNote.from_dict(n) if n is not None else None
            for n in data.get("notes", [])
        ]
        # Pad or trim so that the profile always covers the full keyboard
        notes = (notes + [None] * NOTE_COUNT)[:NOTE_COUNT]
        return cls(
            id=data["id"],
            created_at=parse_timestamp(data["created_at"]),
            notes=notes,
        )
