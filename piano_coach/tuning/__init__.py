"""Tuning logic: temperament, key order, sessions and profiles."""

from .order import TuningOrder
from .profile import PianoProfile, ProfiledNote
from .session import CompletedNote, NoteStatus, Session, TuningMode
from .steps import TuningStep
from .stretch import StretchCurve
from .temperament import Temperament

__all__ = [
    "CompletedNote",
    "NoteStatus",
    "PianoProfile",
    "ProfiledNote",
    "Session",
    "StretchCurve",
    "Temperament",
    "TuningMode",
    "TuningOrder",
    "TuningStep",
]
