"""The 88-key note table and note name utilities."""

import re
from typing import Dict, List, Optional, Tuple

from .logger import get_logger
from .note_types import Note

# Get logger for this module
logger = get_logger(__name__)

# Compile regex to extract note name and octave
# This pattern matches:
# - Note name (A-G, case insensitive)
# - Optional accidental (# or b)
# - Octave number, possibly negative
NOTE_PATTERN = re.compile(r"^([A-Ga-g][#b]?)(-?[0-9]+)$")

SHARP_NOTES: List[str] = [
    "C",
    "C#",
    "D",
    "D#",
    "E",
    "F",
    "F#",
    "G",
    "G#",
    "A",
    "A#",
    "B",
]

FLAT_TO_SHARP: Dict[str, str] = {
    "Ab": "G#",
    "Bb": "A#",
    "Db": "C#",
    "Eb": "D#",
    "Gb": "F#",
}

LOWEST_MIDI = 21  # A0
HIGHEST_MIDI = 108  # C8
NOTE_COUNT = HIGHEST_MIDI - LOWEST_MIDI + 1

# Highest MIDI note of each stringing band. Everything above the bichord band
# is strung as a trichord.
MONOCHORD_TOP = 34  # A#1
BICHORD_TOP = 47  # B2


def _strings_for_midi(midi: int) -> int:
    if midi <= MONOCHORD_TOP:
        return 1
    if midi <= BICHORD_TOP:
        return 2
    return 3


def _build_notes() -> Tuple[Note, ...]:
    notes = []
    for midi in range(LOWEST_MIDI, HIGHEST_MIDI + 1):
        notes.append(
            Note(
                midi=midi,
                name=SHARP_NOTES[midi % 12],
                octave=(midi // 12) - 1,
                strings=_strings_for_midi(midi),
            )
        )
    return tuple(notes)


# All 88 piano notes, index 0 = A0 ... 87 = C8
NOTES: Tuple[Note, ...] = _build_notes()

_INDEX_BY_NAME: Dict[str, int] = {
    note.display_name: index for index, note in enumerate(NOTES)
}


def note_at(index: int) -> Note:
    """Return the note at a chromatic index (0 = A0)."""
    if not 0 <= index < NOTE_COUNT:
        raise IndexError(f"Chromatic index out of range: {index}")
    return NOTES[index]


def note_for_midi(midi: int) -> Optional[Note]:
    """Return the piano note for a MIDI number, or None outside A0-C8."""
    if LOWEST_MIDI <= midi <= HIGHEST_MIDI:
        return NOTES[midi - LOWEST_MIDI]
    return None


def normalize_to_sharp(note_name: str) -> str:
    """Rewrite a flat spelling ('Bb3') to its sharp equivalent ('A#3')."""
    if len(note_name) > 1 and note_name[1] == "b":
        return FLAT_TO_SHARP.get(note_name[:2], note_name[:2]) + note_name[2:]
    return note_name


def parse_note_name(note_name: str) -> Optional[int]:
    """Convert a note name in scientific pitch notation to a MIDI number.

    Args:
        note_name: Note with octave (e.g., 'A4', 'C#5', 'Bb2')

    Returns:
        The MIDI number, or None if the name cannot be parsed

    Note:
        Cb/Fb/E#/B# spellings are not accepted.
    """
    if not note_name or not isinstance(note_name, str):
        return None

    match = NOTE_PATTERN.match(note_name.strip())
    if not match:
        return None

    pitch_class = match.group(1)
    pitch_class = pitch_class[0].upper() + pitch_class[1:]
    pitch_class = FLAT_TO_SHARP.get(pitch_class, pitch_class)
    if pitch_class not in SHARP_NOTES:
        return None

    octave = int(match.group(2))
    return (octave + 1) * 12 + SHARP_NOTES.index(pitch_class)


def index_for_name(note_name: str) -> Optional[int]:
    """Map a display name back to its chromatic index, or None if unknown."""
    if note_name in _INDEX_BY_NAME:
        return _INDEX_BY_NAME[note_name]

    midi = parse_note_name(note_name)
    if midi is None or note_for_midi(midi) is None:
        logger.debug(f"Unknown piano note name: {note_name!r}")
        return None
    return midi - LOWEST_MIDI


def midi_to_index(midi: int) -> Optional[int]:
    if LOWEST_MIDI <= midi <= HIGHEST_MIDI:
        return midi - LOWEST_MIDI
    return None
