"""Tuning session state."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..notes import NOTE_COUNT
from .profile import parse_timestamp, utc_now
from .temperament import DEFAULT_A4, Temperament


class TuningMode(Enum):
    """Tuning mode."""

    QUICK = "quick"  # Tune relative to the piano's current pitch center
    CONCERT = "concert"  # Tune to A4 = 440 Hz (or a custom reference)
    PROFILE = "profile"  # Measure all keys first, then tune worst-first


class NoteStatus(Enum):
    """How a completed note's final deviation was obtained."""

    MEASURED = "measured"
    SKIPPED = "skipped"
    UNMEASURED = "unmeasured"  # Confirmed without any confident reading


@dataclass
class CompletedNote:
    note_name: str
    final_cents: float
    timestamp: datetime = field(default_factory=utc_now)
    status: NoteStatus = NoteStatus.MEASURED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "note": self.note_name,
            "final_cents": self.final_cents,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletedNote":
        return cls(
            note_name=data["note"],
            final_cents=float(data["final_cents"]),
            timestamp=parse_timestamp(data["timestamp"]),
            status=NoteStatus(data.get("status", NoteStatus.MEASURED.value)),
        )


@dataclass
class Session:
    """A tuning session. ``current_note_index`` is the resumption cursor."""

    id: str
    mode: TuningMode
    a4_reference: float
    piano_offset_cents: float = 0.0
    current_note_index: int = 0
    completed_notes: List[CompletedNote] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    profile_id: Optional[str] = None

    @classmethod
    def new(cls, mode: TuningMode, a4_reference: float = DEFAULT_A4) -> "Session":
        now = utc_now()
        return cls(
            id=now.isoformat(),
            mode=mode,
            a4_reference=a4_reference,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def quick_tune(
        cls, piano_offset_cents: float, a4_reference: float = DEFAULT_A4
    ) -> "Session":
        session = cls.new(TuningMode.QUICK, a4_reference)
        session.piano_offset_cents = piano_offset_cents
        return session

    @classmethod
    def concert_pitch(cls, a4_reference: float = DEFAULT_A4) -> "Session":
        return cls.new(TuningMode.CONCERT, a4_reference)

    @classmethod
    def profile_session(
        cls, profile_id: str, a4_reference: float = DEFAULT_A4
    ) -> "Session":
        session = cls.new(TuningMode.PROFILE, a4_reference)
        session.profile_id = profile_id
        return session

    @property
    def effective_a4(self) -> float:
        """The A4 that targets are computed from, including the piano offset."""
        return self.a4_reference * Temperament.cents_to_ratio(self.piano_offset_cents)

    def is_complete(self, total: int = NOTE_COUNT) -> bool:
        return self.current_note_index >= total

    def complete_note(
        self,
        note_name: str,
        final_cents: float,
        status: NoteStatus = NoteStatus.MEASURED,
    ) -> None:
        """Record a finished note and advance the cursor."""
        self.completed_notes.append(CompletedNote(note_name, final_cents, status=status))
        self.current_note_index += 1
        self.touch()

    def rewind_to(self, index: int) -> None:
        """Move the cursor back, dropping completions at or after ``index``."""
        index = max(0, index)
        del self.completed_notes[index:]
        self.current_note_index = index
        self.touch()

    def touch(self) -> None:
        self.updated_at = utc_now()

    def average_deviation(self) -> float:
        """Mean absolute final deviation of measured notes."""
        measured = [
            abs(n.final_cents)
            for n in self.completed_notes
            if n.status is NoteStatus.MEASURED
        ]
        if not measured:
            return 0.0
        return sum(measured) / len(measured)

    def progress_percent(self, total: int = NOTE_COUNT) -> float:
        return min(100.0, self.current_note_index / total * 100.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "mode": self.mode.value,
            "a4_reference": self.a4_reference,
            "piano_offset_cents": self.piano_offset_cents,
            "current_note_index": self.current_note_index,
            "completed_notes": [n.to_dict() for n in self.completed_notes],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "profile_id": self.profile_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=data["id"],
            mode=TuningMode(data["mode"]),
            a4_reference=float(data["a4_reference"]),
            piano_offset_cents=float(data.get("piano_offset_cents", 0.0)),
            current_note_index=int(data.get("current_note_index", 0)),
            completed_notes=[
                CompletedNote.from_dict(n) for n in data.get("completed_notes", [])
            ],
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
            profile_id=data.get("profile_id"),
        )
