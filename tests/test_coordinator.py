import unittest

from piano_coach.coordinator import CoordinatorState, TuningCoordinator
from piano_coach.core.events import CoordinatorEventType
from piano_coach.core.interfaces import Intent
from piano_coach.note_types import PitchEstimate
from piano_coach.notes import index_for_name
from piano_coach.tuning.profile import PianoProfile
from piano_coach.tuning.session import NoteStatus, Session, TuningMode
from piano_coach.tuning.steps import TuningStep
from piano_coach.tuning.stretch import StretchCurve
from piano_coach.tuning.temperament import Temperament


class MemoryStore:
    """In-memory stand-in for SessionStore."""

    def __init__(self):
        self.sessions = {}
        self.profiles = {}
        self.saves = 0

    def save(self, record):
        self.saves += 1
        if isinstance(record, Session):
            self.sessions[record.id] = record.to_dict()
        else:
            self.profiles[record.id] = record.to_dict()

    def load_profile(self, profile_id):
        if profile_id not in self.profiles:
            raise FileNotFoundError(profile_id)
        return PianoProfile.from_dict(self.profiles[profile_id])


class BrokenStore:
    def save(self, record):
        raise OSError("disk full")

    def load_profile(self, profile_id):
        raise OSError("disk gone")


def confident(frequency, confidence=0.95):
    return PitchEstimate(frequency=frequency, confidence=confidence)


def offset(frequency, cents):
    return frequency * Temperament.cents_to_ratio(cents)


class CoordinatorTestCase(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore()
        self.coordinator = TuningCoordinator(store=self.store)
        self.states = []
        self.coordinator.events.on(
            CoordinatorEventType.STATE_CHANGED, lambda old, new: self.states.append(new)
        )


class TestModeSelection(CoordinatorTestCase):
    def test_starts_in_mode_select(self):
        self.assertEqual(self.coordinator.state, CoordinatorState.MODE_SELECT)
        snapshot = self.coordinator.snapshot()
        self.assertEqual(snapshot.state, CoordinatorState.MODE_SELECT)
        self.assertIsNone(snapshot.note)

    def test_concert_goes_straight_to_tuning(self):
        self.coordinator.handle(Intent.SELECT_CONCERT)
        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        session = self.coordinator.session
        self.assertEqual(session.mode, TuningMode.CONCERT)
        self.assertEqual(session.a4_reference, 440.0)
        self.assertIn(session.id, self.store.sessions)
        self.assertEqual(self.coordinator.snapshot().note.display_name, "F3")
        self.assertEqual(self.coordinator.step, TuningStep.MUTE_OUTER)

    def test_selection_ignored_outside_mode_select(self):
        self.coordinator.select_mode(TuningMode.CONCERT)
        session = self.coordinator.session
        self.coordinator.select_mode(TuningMode.PROFILE)
        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        self.assertIs(self.coordinator.session, session)

    def test_commands_ignored_in_mode_select(self):
        self.coordinator.confirm()
        self.coordinator.skip()
        self.coordinator.back()
        self.coordinator.feed(confident(440.0))
        self.assertEqual(self.coordinator.state, CoordinatorState.MODE_SELECT)


class TestTuning(CoordinatorTestCase):
    def setUp(self):
        super().setUp()
        self.coordinator.select_mode(TuningMode.CONCERT)

    def test_confirming_every_note_completes_once(self):
        for _ in range(1000):
            if self.coordinator.state is not CoordinatorState.TUNING:
                break
            self.coordinator.confirm()

        self.assertEqual(self.coordinator.state, CoordinatorState.COMPLETE)
        self.assertEqual(self.states.count(CoordinatorState.COMPLETE), 1)
        session = self.coordinator.session
        self.assertEqual(len(session.completed_notes), 88)
        self.assertEqual(session.current_note_index, 88)
        self.assertEqual(len(self.coordinator.completed_indices), 88)
        self.assertTrue(
            all(n.status is NoteStatus.UNMEASURED for n in session.completed_notes)
        )

        self.coordinator.confirm()
        self.assertEqual(len(session.completed_notes), 88)
        self.assertEqual(self.coordinator.snapshot().phase, "Complete")

    def test_back_at_start_is_noop(self):
        self.coordinator.back()
        self.assertEqual(self.coordinator.session.current_note_index, 0)
        self.assertEqual(self.coordinator.step, TuningStep.MUTE_OUTER)
        self.assertEqual(self.coordinator.session.completed_notes, [])

    def test_trichord_needs_four_confirms(self):
        session = self.coordinator.session
        updated_at = session.updated_at

        self.coordinator.confirm()
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.step, TuningStep.TUNE_LEFT)
        self.assertEqual(session.completed_notes, [])
        self.assertEqual(session.current_note_index, 0)
        self.assertEqual(session.updated_at, updated_at)

        self.coordinator.confirm()
        self.assertEqual(session.completed_notes, [])
        self.coordinator.confirm()
        self.assertEqual(len(session.completed_notes), 1)
        self.assertEqual(session.current_note_index, 1)

    def test_end_to_end_f3(self):
        snapshot = self.coordinator.snapshot()
        self.assertEqual(snapshot.note.display_name, "F3")
        self.assertEqual(snapshot.position, 0)
        self.assertAlmostEqual(snapshot.target_frequency, 174.6, delta=0.05)

        self.coordinator.confirm()  # mute outer -> tune center
        self.coordinator.feed(confident(175.0))
        self.assertAlmostEqual(self.coordinator.cents, 4.0, delta=0.25)

        self.coordinator.confirm()
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.step, TuningStep.TUNE_RIGHT)
        self.coordinator.feed(confident(175.0))
        self.coordinator.confirm()

        session = self.coordinator.session
        self.assertEqual(session.current_note_index, 1)
        completed = session.completed_notes[0]
        self.assertEqual(completed.note_name, "F3")
        self.assertAlmostEqual(completed.final_cents, 4.0, delta=0.25)
        self.assertEqual(completed.status, NoteStatus.MEASURED)
        self.assertEqual(self.coordinator.snapshot().note.display_name, "F#3")

    def test_muting_step_shows_frequency_without_cents(self):
        self.coordinator.feed(confident(175.0))
        snapshot = self.coordinator.snapshot()
        self.assertEqual(snapshot.frequency, 175.0)
        self.assertIsNone(snapshot.cents)
        self.assertFalse(snapshot.in_tune)

    def test_low_confidence_clears_display_but_keeps_last_reading(self):
        for _ in range(3):
            self.coordinator.confirm()
        self.coordinator.feed(confident(174.7))
        self.assertTrue(self.coordinator.snapshot().in_tune)

        self.coordinator.feed(confident(180.0, confidence=0.3))
        self.assertIsNone(self.coordinator.snapshot().cents)
        self.coordinator.feed(None)
        self.assertIsNone(self.coordinator.snapshot().frequency)

        self.coordinator.confirm()
        completed = self.coordinator.session.completed_notes[0]
        self.assertEqual(completed.status, NoteStatus.MEASURED)
        self.assertAlmostEqual(
            completed.final_cents,
            Temperament.cents_from_target(174.7, Temperament().frequency(53)),
            places=6,
        )

    def test_reading_does_not_carry_over_between_steps(self):
        self.coordinator.confirm()
        self.coordinator.feed(confident(175.0))
        self.coordinator.confirm()
        self.coordinator.confirm()
        self.coordinator.confirm()
        completed = self.coordinator.session.completed_notes[0]
        self.assertEqual(completed.status, NoteStatus.UNMEASURED)
        self.assertEqual(completed.final_cents, 0.0)

    def test_skip(self):
        self.coordinator.skip()
        session = self.coordinator.session
        completed = session.completed_notes[0]
        self.assertEqual(completed.note_name, "F3")
        self.assertEqual(completed.final_cents, 0.0)
        self.assertEqual(completed.status, NoteStatus.SKIPPED)
        self.assertEqual(session.current_note_index, 1)
        self.assertEqual(self.coordinator.step, TuningStep.MUTE_OUTER)

    def test_back_within_note(self):
        self.coordinator.confirm()
        self.coordinator.confirm()
        self.coordinator.back()
        self.assertEqual(self.coordinator.step, TuningStep.TUNE_CENTER)

    def test_back_across_note_boundary(self):
        self.coordinator.skip()
        saves = self.store.saves
        self.coordinator.back()

        session = self.coordinator.session
        self.assertEqual(session.current_note_index, 0)
        self.assertEqual(session.completed_notes, [])
        self.assertEqual(self.coordinator.completed_indices, frozenset())
        self.assertEqual(self.coordinator.step, TuningStep.TUNE_RIGHT)
        self.assertEqual(self.coordinator.snapshot().note.display_name, "F3")
        self.assertGreater(self.store.saves, saves)

    def test_position_matches_completions(self):
        for _ in range(20):
            self.coordinator.skip()
        for _ in range(7):
            self.coordinator.back()
        session = self.coordinator.session
        self.assertEqual(session.current_note_index, len(session.completed_notes))

    def test_single_string_note_needs_one_confirm(self):
        # Positions 56.. descend from E3; A#1 (one string) is at position 74
        for _ in range(74):
            self.coordinator.skip()
        self.assertEqual(self.coordinator.snapshot().note.display_name, "A#1")
        self.assertIsNone(self.coordinator.step)
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.session.current_note_index, 75)

    def test_bichord_steps(self):
        # B2 (two strings) is at position 61
        for _ in range(61):
            self.coordinator.skip()
        self.assertEqual(self.coordinator.snapshot().note.display_name, "B2")
        self.assertEqual(self.coordinator.step, TuningStep.MUTE_BICHORD)
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.step, TuningStep.TUNE_BICHORD)
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.session.current_note_index, 62)

    def test_note_completed_event(self):
        received = []
        self.coordinator.events.on(
            CoordinatorEventType.NOTE_COMPLETED, lambda note, completed: received.append(note)
        )
        self.coordinator.skip()
        self.assertEqual([n.display_name for n in received], ["F3"])

    def test_every_completion_is_persisted(self):
        self.coordinator.skip()
        self.coordinator.skip()
        stored = self.store.sessions[self.coordinator.session.id]
        self.assertEqual(stored["current_note_index"], 2)

    def test_restart_after_complete(self):
        self.coordinator.restart()
        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)

        for _ in range(88):
            self.coordinator.skip()
        self.assertEqual(self.coordinator.state, CoordinatorState.COMPLETE)
        self.coordinator.handle(Intent.RESTART)
        self.assertEqual(self.coordinator.state, CoordinatorState.MODE_SELECT)
        self.assertIsNone(self.coordinator.session)
        self.assertEqual(self.states[-1], CoordinatorState.MODE_SELECT)


class TestTargets(unittest.TestCase):
    def test_custom_reference(self):
        coordinator = TuningCoordinator(a4=442.0)
        coordinator.select_mode(TuningMode.CONCERT)
        self.assertAlmostEqual(
            coordinator.snapshot().target_frequency, Temperament(442.0).frequency(53)
        )

    def test_stretch_is_applied(self):
        curve = StretchCurve()
        coordinator = TuningCoordinator(stretch=curve)
        coordinator.select_mode(TuningMode.CONCERT)
        expected = Temperament().frequency(53) * Temperament.cents_to_ratio(curve.offset_cents(53))
        self.assertAlmostEqual(coordinator.snapshot().target_frequency, expected)

    def test_tolerance(self):
        coordinator = TuningCoordinator(tolerance_cents=1.0)
        coordinator.select_mode(TuningMode.CONCERT)
        for _ in range(3):
            coordinator.confirm()
        coordinator.feed(confident(offset(174.614, 2.0)))
        self.assertFalse(coordinator.snapshot().in_tune)
        coordinator.feed(confident(offset(174.614, 0.5)))
        self.assertTrue(coordinator.snapshot().in_tune)


class TestCalibration(CoordinatorTestCase):
    def setUp(self):
        super().setUp()
        self.calibrated = []
        self.coordinator.events.on(CoordinatorEventType.CALIBRATED, self.calibrated.append)
        self.coordinator.select_mode(TuningMode.QUICK)

    def test_enters_calibration(self):
        self.assertEqual(self.coordinator.state, CoordinatorState.CALIBRATION)
        snapshot = self.coordinator.snapshot()
        self.assertEqual(snapshot.note.display_name, "A4")
        self.assertEqual(snapshot.calibration_target, 10)

    def test_collects_confident_readings_near_a4(self):
        sharp_a4 = offset(440.0, 10.0)
        for _ in range(5):
            self.coordinator.feed(confident(sharp_a4, confidence=0.7))
        self.coordinator.feed(confident(500.0))  # too far from A4
        self.coordinator.feed(None)
        self.assertEqual(self.coordinator.snapshot().calibration_collected, 0)

        for _ in range(9):
            self.coordinator.feed(confident(sharp_a4))
        self.assertEqual(self.coordinator.state, CoordinatorState.CALIBRATION)
        self.coordinator.feed(confident(sharp_a4))

        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        session = self.coordinator.session
        self.assertEqual(session.mode, TuningMode.QUICK)
        self.assertAlmostEqual(session.piano_offset_cents, 10.0, places=3)
        self.assertAlmostEqual(session.effective_a4, sharp_a4, places=3)
        self.assertAlmostEqual(self.calibrated[0], 10.0, places=3)
        self.assertAlmostEqual(
            self.coordinator.snapshot().target_frequency,
            offset(Temperament().frequency(53), 10.0),
            places=3,
        )

    def test_confirm_uses_readings_so_far(self):
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.state, CoordinatorState.CALIBRATION)
        self.coordinator.feed(confident(offset(440.0, -6.0)))
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        self.assertAlmostEqual(self.coordinator.session.piano_offset_cents, -6.0, places=3)

    def test_skip_keeps_zero_offset(self):
        self.coordinator.skip()
        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        self.assertEqual(self.coordinator.session.piano_offset_cents, 0.0)
        self.assertEqual(self.calibrated, [0.0])

    def test_back_returns_to_mode_select(self):
        self.coordinator.feed(confident(440.0))
        self.coordinator.back()
        self.assertEqual(self.coordinator.state, CoordinatorState.MODE_SELECT)
        self.assertIsNone(self.coordinator.session)


class TestProfiling(CoordinatorTestCase):
    def setUp(self):
        super().setUp()
        self.profiles = []
        self.coordinator.events.on(CoordinatorEventType.PROFILE_COMPLETED, self.profiles.append)
        self.coordinator.select_mode(TuningMode.PROFILE)

    def measure(self, cents):
        target = self.coordinator.target_frequency(self.coordinator.current_note)
        self.coordinator.feed(confident(offset(target, cents)))
        self.coordinator.confirm()

    def test_walks_the_keyboard_chromatically(self):
        self.assertEqual(self.coordinator.state, CoordinatorState.PROFILING)
        self.assertEqual(self.coordinator.snapshot().note.display_name, "A0")
        self.measure(3.0)
        self.assertEqual(self.coordinator.snapshot().note.display_name, "A#0")
        self.assertEqual(self.coordinator.snapshot().profiled, 1)

    def test_confirm_without_reading_leaves_key_unmeasured(self):
        self.coordinator.confirm()
        self.assertEqual(self.coordinator.profile.progress(), (0, 88))

    def test_back(self):
        self.coordinator.back()
        self.assertEqual(self.coordinator.snapshot().position, 0)
        self.coordinator.skip()
        self.coordinator.back()
        self.assertEqual(self.coordinator.snapshot().note.display_name, "A0")

    def test_profiling_leads_to_worst_first_tuning(self):
        for index in range(88):
            if index == 5:
                self.measure(25.0)
            elif index == 70:
                self.measure(-40.0)
            elif index == 40:
                self.measure(60.0)  # inside the temperament octave
            else:
                self.coordinator.skip()

        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        profile = self.profiles[0]
        self.assertEqual(profile.progress(), (3, 88))
        self.assertAlmostEqual(profile.cents_at(70), -40.0, places=3)
        self.assertIn(profile.id, self.store.profiles)

        session = self.coordinator.session
        self.assertEqual(session.mode, TuningMode.PROFILE)
        self.assertEqual(session.profile_id, profile.id)
        order = self.coordinator.order
        self.assertTrue(order.is_profile_driven)
        self.assertEqual(order.index_at(0), 32)
        self.assertEqual(order.index_at(13), 70)
        self.assertEqual(order.index_at(14), 5)
        self.assertEqual(self.coordinator.snapshot().phase, "Temperament Octave")
        self.assertEqual(self.coordinator.snapshot().note.display_name, "F3")
        self.assertEqual(self.coordinator.step, TuningStep.MUTE_OUTER)
        self.assertEqual(self.coordinator.snapshot().step, TuningStep.MUTE_OUTER)


class TestResume(CoordinatorTestCase):
    def test_resume_at_cursor(self):
        session = Session.concert_pitch()
        session.complete_note("F3", 1.0)
        session.complete_note("Q9", 2.0)  # unknown names are ignored
        self.coordinator.resume(session)

        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        snapshot = self.coordinator.snapshot()
        self.assertEqual(snapshot.note.display_name, "G3")
        self.assertEqual(snapshot.position, 2)
        self.assertEqual(snapshot.step, TuningStep.MUTE_OUTER)
        self.assertEqual(self.coordinator.completed_indices, frozenset({index_for_name("F3")}))

    def test_resume_quick_session_keeps_offset(self):
        session = Session.quick_tune(12.0)
        self.coordinator.resume(session)
        self.assertAlmostEqual(self.coordinator.temperament.a4, offset(440.0, 12.0))

    def test_resume_complete_session(self):
        session = Session.concert_pitch()
        for _ in range(88):
            session.complete_note("A0", 0.0)
        self.coordinator.resume(session)
        self.assertEqual(self.coordinator.state, CoordinatorState.COMPLETE)

    def test_resume_profile_session(self):
        profile = PianoProfile.new()
        profile.record_note(100, 2637.0, -30.0)  # E7
        self.store.save(profile)
        self.coordinator.resume(Session.profile_session(profile.id))
        self.assertTrue(self.coordinator.order.is_profile_driven)
        self.assertEqual(self.coordinator.order.note_at(13).display_name, "E7")
        self.assertEqual(self.coordinator.snapshot().note.display_name, "F3")
        self.assertEqual(self.coordinator.step, TuningStep.MUTE_OUTER)

    def test_resume_while_profiling_starts_at_first_step(self):
        self.coordinator.select_mode(TuningMode.PROFILE)
        self.coordinator.skip()
        self.coordinator.resume(Session.concert_pitch())
        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        self.assertEqual(self.coordinator.snapshot().note.display_name, "F3")
        self.assertEqual(self.coordinator.step, TuningStep.MUTE_OUTER)

    def test_resume_with_missing_profile_uses_traditional_order(self):
        self.coordinator.resume(Session.profile_session("missing"))
        self.assertEqual(self.coordinator.state, CoordinatorState.TUNING)
        self.assertFalse(self.coordinator.order.is_profile_driven)


class TestPersistenceFailures(unittest.TestCase):
    def test_save_errors_do_not_block_tuning(self):
        coordinator = TuningCoordinator(store=BrokenStore())
        saved = []
        coordinator.events.on(CoordinatorEventType.SESSION_SAVED, saved.append)
        coordinator.select_mode(TuningMode.CONCERT)
        coordinator.skip()
        coordinator.flush()
        self.assertEqual(coordinator.session.current_note_index, 1)
        self.assertEqual(saved, [])

    def test_profile_load_error_falls_back(self):
        coordinator = TuningCoordinator(store=BrokenStore())
        coordinator.resume(Session.profile_session("p"))
        self.assertFalse(coordinator.order.is_profile_driven)

    def test_profile_save_error_still_starts_tuning(self):
        coordinator = TuningCoordinator(store=BrokenStore())
        coordinator.select_mode(TuningMode.PROFILE)
        for _ in range(88):
            coordinator.skip()
        self.assertEqual(coordinator.state, CoordinatorState.TUNING)

    def test_without_store(self):
        coordinator = TuningCoordinator()
        coordinator.select_mode(TuningMode.CONCERT)
        coordinator.skip()
        coordinator.flush()
        self.assertEqual(coordinator.session.current_note_index, 1)


if __name__ == "__main__":
    unittest.main()
