"""Tuning coordinator: the state machine that drives a tuning session."""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Set, Tuple

import numpy as np

from .core.events import CoordinatorEventType, EventEmitter
from .core.interfaces import Intent
from .logger import get_logger
from .note_types import Note, PitchEstimate
from .notes import NOTE_COUNT, NOTES, index_for_name, note_for_midi
from .tuning.order import TuningOrder
from .tuning.profile import PianoProfile
from .tuning.session import NoteStatus, Session, TuningMode
from .tuning.steps import TuningStep
from .tuning.stretch import StretchCurve
from .tuning.temperament import A4_MIDI, DEFAULT_A4, Temperament

# Get logger for this module
logger = get_logger(__name__)


class CoordinatorState(Enum):
    MODE_SELECT = "mode_select"
    CALIBRATION = "calibration"
    PROFILING = "profiling"
    TUNING = "tuning"
    COMPLETE = "complete"


@dataclass(frozen=True)
class CoordinatorSnapshot:
    """Read-only view of the coordinator for presentation."""

    state: CoordinatorState
    mode: Optional[TuningMode] = None
    note: Optional[Note] = None
    position: int = 0
    total: int = 0
    phase: str = ""
    step: Optional[TuningStep] = None
    target_frequency: Optional[float] = None
    frequency: Optional[float] = None
    cents: Optional[float] = None
    in_tune: bool = False
    completed: int = 0
    completed_indices: FrozenSet[int] = frozenset()
    calibration_collected: int = 0
    calibration_target: int = 0
    profiled: int = 0
    average_deviation: float = 0.0
    a4: float = DEFAULT_A4


class TuningCoordinator:
    """Coordinates live pitch estimates and user commands into a tuning session.

    States::

        MODE_SELECT -> CALIBRATION -> TUNING   (quick)
        MODE_SELECT -> TUNING                  (concert)
        MODE_SELECT -> PROFILING -> TUNING     (profile)
        TUNING -> COMPLETE -> MODE_SELECT      (restart)

    Only the control thread may call into the coordinator.
    """

    CALIBRATION_RANGE_CENTS = 200.0  # Readings further than this from A4 are ignored

    def __init__(
        self,
        store=None,
        a4: float = DEFAULT_A4,
        tolerance_cents: float = 5.0,
        tuning_confidence: float = 0.6,
        calibration_confidence: float = 0.8,
        calibration_samples: int = 10,
        stretch: Optional[StretchCurve] = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Persistence collaborator (see SessionStore), or None to keep
                everything in memory
            a4: Reference pitch for concert and profile modes
            tolerance_cents: Deviation shown as "in tune"
            tuning_confidence: Confidence floor while tuning or profiling
            calibration_confidence: Confidence floor while calibrating
            calibration_samples: Confident readings needed to calibrate
            stretch: Optional stretch curve applied to every target
        """
        self._store = store
        self._a4 = a4
        self._tolerance_cents = tolerance_cents
        self._tuning_confidence = tuning_confidence
        self._calibration_confidence = calibration_confidence
        self._calibration_target = calibration_samples
        self._stretch = stretch

        self.events = EventEmitter()
        self._reset()

    def _reset(self) -> None:
        self._state = CoordinatorState.MODE_SELECT
        self._session: Optional[Session] = None
        self._order: Optional[TuningOrder] = None
        self._temperament = Temperament(self._a4)
        self._step: Optional[TuningStep] = None
        self._completed_indices: Set[int] = set()
        self._calibration: List[float] = []
        self._profile: Optional[PianoProfile] = None
        self._profile_index = 0
        self._clear_reading()

    def _clear_reading(self) -> None:
        self._frequency: Optional[float] = None
        self._cents: Optional[float] = None
        # Last confident (frequency, cents) of the current step; survives silence
        self._last_reading: Optional[Tuple[float, float]] = None

    # -- accessors ---------------------------------------------------------

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def order(self) -> Optional[TuningOrder]:
        return self._order

    @property
    def step(self) -> Optional[TuningStep]:
        return self._step

    @property
    def profile(self) -> Optional[PianoProfile]:
        """The profile being measured while in PROFILING."""
        return self._profile

    @property
    def temperament(self) -> Temperament:
        return self._temperament

    @property
    def cents(self) -> Optional[float]:
        return self._cents

    @property
    def completed_indices(self) -> FrozenSet[int]:
        return frozenset(self._completed_indices)

    @property
    def current_note(self) -> Optional[Note]:
        if self._state is CoordinatorState.TUNING:
            return self._order.note_at(self._session.current_note_index)
        if self._state is CoordinatorState.PROFILING:
            return NOTES[self._profile_index]
        if self._state is CoordinatorState.CALIBRATION:
            return note_for_midi(A4_MIDI)
        return None

    def target_frequency(self, note: Note) -> float:
        frequency = self._temperament.frequency(note.midi)
        if self._stretch is not None:
            frequency *= Temperament.cents_to_ratio(self._stretch.offset_cents(note.midi))
        return frequency

    # -- transitions -------------------------------------------------------

    def _set_state(self, state: CoordinatorState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info(f"State {previous.value} -> {state.value}")
        self.events.emit(CoordinatorEventType.STATE_CHANGED, previous, state)

    def select_mode(self, mode: TuningMode) -> None:
        """Leave MODE_SELECT for the given tuning mode."""
        if self._state is not CoordinatorState.MODE_SELECT:
            logger.warning(f"Ignoring mode selection in state {self._state.value}")
            return

        logger.info(f"Selected {mode.value} mode")
        if mode is TuningMode.QUICK:
            self._calibration = []
            self._clear_reading()
            self._set_state(CoordinatorState.CALIBRATION)
        elif mode is TuningMode.PROFILE:
            self._profile = PianoProfile.new()
            self._profile_index = 0
            self._temperament = Temperament(self._a4)
            self._clear_reading()
            self._set_state(CoordinatorState.PROFILING)
        else:
            self.start_session(Session.concert_pitch(self._a4), TuningOrder.traditional())

    def start_session(self, session: Session, order: TuningOrder) -> None:
        """Begin tuning a fresh session at its current cursor."""
        self._session = session
        self._order = order
        self._temperament = Temperament(session.effective_a4)
        self._rebuild_completed()
        self._persist()
        if session.is_complete(len(order)):
            self._set_state(CoordinatorState.COMPLETE)
            return
        self._enter_note()
        self._set_state(CoordinatorState.TUNING)

    def resume(self, session: Session) -> None:
        """Continue a previously persisted session.

        The tuning order is rebuilt (from the stored profile for profile
        sessions), completed keys are recovered from the recorded note names
        and tuning restarts at the first sub-step of the cursor's note.
        """
        order = self._order_for(session)
        session.current_note_index = max(0, session.current_note_index)

        self._session = session
        self._order = order
        self._temperament = Temperament(session.effective_a4)
        self._rebuild_completed()
        logger.info(
            f"Resuming {session.mode.value} session {session.id} at note "
            f"{session.current_note_index + 1}/{len(order)}"
        )

        if session.is_complete(len(order)):
            self._set_state(CoordinatorState.COMPLETE)
            return
        self._enter_note()
        self._set_state(CoordinatorState.TUNING)

    def restart(self) -> None:
        """Return from COMPLETE to mode selection."""
        if self._state is not CoordinatorState.COMPLETE:
            return
        self._reset()
        self.events.emit(
            CoordinatorEventType.STATE_CHANGED,
            CoordinatorState.COMPLETE,
            CoordinatorState.MODE_SELECT,
        )

    def _order_for(self, session: Session) -> TuningOrder:
        if session.mode is TuningMode.PROFILE and session.profile_id:
            if self._store is None:
                logger.warning("No store to load the session profile; using traditional order")
                return TuningOrder.traditional()
            try:
                return TuningOrder.from_profile(self._store.load_profile(session.profile_id))
            except (OSError, ValueError) as e:
                logger.warning(
                    f"Could not load profile {session.profile_id}: {e}; using traditional order"
                )
        return TuningOrder.traditional()

    def _rebuild_completed(self) -> None:
        self._completed_indices = set()
        for completed in self._session.completed_notes:
            index = index_for_name(completed.note_name)
            if index is None:
                logger.warning(f"Unknown note {completed.note_name!r} in session; ignoring")
                continue
            self._completed_indices.add(index)

    def _enter_note(self, at_last_step: bool = False) -> None:
        """Start the session cursor's note at its first (or last) sub-step."""
        note = self._order.note_at(self._session.current_note_index)
        if at_last_step:
            self._step = TuningStep.last_for_strings(note.strings)
        else:
            self._step = TuningStep.first_for_strings(note.strings)
        self._clear_reading()

    # -- pitch feed --------------------------------------------------------

    def feed(self, estimate: Optional[PitchEstimate]) -> None:
        """Update the live reading from the latest pitch estimate.

        Estimates under the confidence floor count as no signal and clear the
        displayed deviation.
        """
        if self._state is CoordinatorState.CALIBRATION:
            self._feed_calibration(estimate)
            return
        if self._state not in (CoordinatorState.TUNING, CoordinatorState.PROFILING):
            return

        if estimate is None or estimate.confidence < self._tuning_confidence:
            self._frequency = None
            self._cents = None
            return

        self._frequency = estimate.frequency
        if self._step is not None and self._step.is_muting:
            self._cents = None
            return

        target = self.target_frequency(self.current_note)
        self._cents = Temperament.cents_from_target(estimate.frequency, target)
        self._last_reading = (estimate.frequency, self._cents)

    def _feed_calibration(self, estimate: Optional[PitchEstimate]) -> None:
        if estimate is None or estimate.confidence < self._calibration_confidence:
            self._frequency = None
            self._cents = None
            return

        cents = Temperament.cents_from_target(estimate.frequency, self._a4)
        self._frequency = estimate.frequency
        self._cents = cents
        if abs(cents) > self.CALIBRATION_RANGE_CENTS:
            return

        self._calibration.append(estimate.frequency)
        if len(self._calibration) >= self._calibration_target:
            self._finish_calibration()

    def _finish_calibration(self, offset_cents: Optional[float] = None) -> None:
        if offset_cents is None:
            mean_frequency = float(np.mean(self._calibration))
            offset_cents = Temperament.cents_from_target(mean_frequency, self._a4)
            logger.info(
                f"Calibrated from {len(self._calibration)} readings: "
                f"A4 = {mean_frequency:.2f}Hz ({offset_cents:+.1f} cents)"
            )
        self.events.emit(CoordinatorEventType.CALIBRATED, offset_cents)
        self._calibration = []
        self.start_session(Session.quick_tune(offset_cents, self._a4), TuningOrder.traditional())

    # -- user intents ------------------------------------------------------

    def handle(self, intent: Intent) -> None:
        """Dispatch a user command."""
        if intent is Intent.CONFIRM:
            self.confirm()
        elif intent is Intent.SKIP:
            self.skip()
        elif intent is Intent.BACK:
            self.back()
        elif intent is Intent.SELECT_QUICK:
            self.select_mode(TuningMode.QUICK)
        elif intent is Intent.SELECT_CONCERT:
            self.select_mode(TuningMode.CONCERT)
        elif intent is Intent.SELECT_PROFILE:
            self.select_mode(TuningMode.PROFILE)
        elif intent is Intent.RESTART:
            self.restart()

    def confirm(self) -> None:
        if self._state is CoordinatorState.CALIBRATION:
            if self._calibration:
                self._finish_calibration()
        elif self._state is CoordinatorState.PROFILING:
            if self._last_reading is not None:
                frequency, cents = self._last_reading
                self._profile.record_note(self.current_note.midi, frequency, cents)
            self._advance_profile()
        elif self._state is CoordinatorState.TUNING:
            if self._step is not None and self._step.next() is not None:
                self._step = self._step.next()
                self._clear_reading()
                return
            if self._last_reading is not None:
                self._complete_current(self._last_reading[1], NoteStatus.MEASURED)
            else:
                self._complete_current(0.0, NoteStatus.UNMEASURED)

    def skip(self) -> None:
        if self._state is CoordinatorState.CALIBRATION:
            logger.info("Calibration skipped; tuning without a piano offset")
            self._finish_calibration(offset_cents=0.0)
        elif self._state is CoordinatorState.PROFILING:
            self._advance_profile()
        elif self._state is CoordinatorState.TUNING:
            self._complete_current(0.0, NoteStatus.SKIPPED)

    def back(self) -> None:
        if self._state is CoordinatorState.CALIBRATION:
            self._calibration = []
            self._clear_reading()
            self._set_state(CoordinatorState.MODE_SELECT)
        elif self._state is CoordinatorState.PROFILING:
            if self._profile_index > 0:
                self._profile_index -= 1
                self._clear_reading()
        elif self._state is CoordinatorState.TUNING:
            if self._step is not None and self._step.prev() is not None:
                self._step = self._step.prev()
                self._clear_reading()
                return
            if self._session.current_note_index == 0:
                return
            self._session.rewind_to(self._session.current_note_index - 1)
            self._rebuild_completed()
            self._enter_note(at_last_step=True)
            self._persist()

    def _complete_current(self, final_cents: float, status: NoteStatus) -> None:
        note = self.current_note
        position = self._session.current_note_index
        self._session.complete_note(note.display_name, final_cents, status)
        self._completed_indices.add(self._order.index_at(position))
        logger.info(f"Completed {note.display_name}: {final_cents:+.1f} cents ({status.value})")
        self.events.emit(
            CoordinatorEventType.NOTE_COMPLETED, note, self._session.completed_notes[-1]
        )
        self._persist()

        if self._session.is_complete(len(self._order)):
            self._step = None
            self._clear_reading()
            self._set_state(CoordinatorState.COMPLETE)
        else:
            self._enter_note()

    def _advance_profile(self) -> None:
        self._profile_index += 1
        self._clear_reading()
        if self._profile_index >= NOTE_COUNT:
            self._finish_profiling()

    def _finish_profiling(self) -> None:
        profile = self._profile
        completed, total = profile.progress()
        logger.info(
            f"Profile {profile.id} finished: {completed}/{total} keys, "
            f"average deviation {profile.average_deviation():.1f} cents"
        )
        if self._store is not None:
            try:
                self._store.save(profile)
            except (OSError, ValueError) as e:
                logger.error(f"Could not save profile {profile.id}: {e}")
        self.events.emit(CoordinatorEventType.PROFILE_COMPLETED, profile)

        self._profile = None
        self._profile_index = 0
        self.start_session(
            Session.profile_session(profile.id, self._a4), TuningOrder.from_profile(profile)
        )

    # -- persistence -------------------------------------------------------

    def _persist(self) -> None:
        """Save the session; failures are logged and never stop tuning."""
        if self._store is None or self._session is None:
            return
        try:
            self._store.save(self._session)
        except (OSError, ValueError) as e:
            logger.error(f"Could not save session {self._session.id}: {e}")
            return
        self.events.emit(CoordinatorEventType.SESSION_SAVED, self._session)

    def flush(self) -> None:
        """Synchronously save the active session (on exit)."""
        self._persist()

    # -- presentation ------------------------------------------------------

    def snapshot(self) -> CoordinatorSnapshot:
        state = self._state
        if state is CoordinatorState.MODE_SELECT:
            return CoordinatorSnapshot(state=state, a4=self._a4)

        note = self.current_note
        target = self.target_frequency(note) if note is not None else None
        in_tune = self._cents is not None and abs(self._cents) <= self._tolerance_cents

        if state is CoordinatorState.CALIBRATION:
            return CoordinatorSnapshot(
                state=state,
                mode=TuningMode.QUICK,
                note=note,
                phase="Calibration",
                target_frequency=self._a4,
                frequency=self._frequency,
                cents=self._cents,
                calibration_collected=len(self._calibration),
                calibration_target=self._calibration_target,
                a4=self._a4,
            )

        if state is CoordinatorState.PROFILING:
            profiled, total = self._profile.progress()
            return CoordinatorSnapshot(
                state=state,
                mode=TuningMode.PROFILE,
                note=note,
                position=self._profile_index,
                total=total,
                phase="Profiling",
                target_frequency=target,
                frequency=self._frequency,
                cents=self._cents,
                in_tune=in_tune,
                profiled=profiled,
                completed_indices=frozenset(
                    i for i, n in enumerate(self._profile.notes) if n is not None
                ),
                average_deviation=self._profile.average_deviation(),
                a4=self._a4,
            )

        session = self._session
        total = len(self._order)
        position = session.current_note_index
        return CoordinatorSnapshot(
            state=state,
            mode=session.mode,
            note=note,
            position=position,
            total=total,
            phase=self._order.phase(position) if position < total else "Complete",
            step=self._step,
            target_frequency=target,
            frequency=self._frequency,
            cents=self._cents,
            in_tune=in_tune,
            completed=len(session.completed_notes),
            completed_indices=frozenset(self._completed_indices),
            average_deviation=session.average_deviation(),
            a4=self._temperament.a4,
        )
