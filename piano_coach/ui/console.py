"""Curses front end for the tuner."""

import curses
from typing import Optional

import pyfiglet

from ..coordinator import CoordinatorSnapshot, CoordinatorState
from ..core.interfaces import Intent, IPresenter
from ..logger import get_logger

logger = get_logger(__name__)

KEY_INTENTS = {
    ord("1"): Intent.SELECT_QUICK,
    ord("2"): Intent.SELECT_CONCERT,
    ord("3"): Intent.SELECT_PROFILE,
    ord(" "): Intent.CONFIRM,
    ord("\n"): Intent.CONFIRM,
    curses.KEY_ENTER: Intent.CONFIRM,
    ord("s"): Intent.SKIP,
    ord("b"): Intent.BACK,
    curses.KEY_BACKSPACE: Intent.BACK,
    127: Intent.BACK,
    ord("r"): Intent.RESTART,
    ord("q"): Intent.QUIT,
}

METER_RANGE_CENTS = 50.0
METER_WIDTH = 41


def key_to_intent(key: int) -> Optional[Intent]:
    """Map a curses key code to a user intent."""
    return KEY_INTENTS.get(key)


def cents_meter(cents: Optional[float], width: int = METER_WIDTH) -> str:
    """Horizontal needle meter spanning -50..+50 cents."""
    cells = ["-"] * width
    center = width // 2
    cells[center] = "|"
    if cents is not None:
        clamped = max(-METER_RANGE_CENTS, min(METER_RANGE_CENTS, cents))
        position = int(round(center + clamped / METER_RANGE_CENTS * center))
        cells[position] = "#"
    return "[" + "".join(cells) + "]"


class CursesPresenter(IPresenter):
    """Draws coordinator snapshots on a curses screen and reads keys."""

    def __init__(self):
        self.screen = None

    def start(self) -> None:
        self.screen = curses.initscr()
        curses.noecho()
        curses.cbreak()
        self.screen.keypad(True)
        self.screen.nodelay(True)
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        self.screen.clear()

    def stop(self) -> None:
        if self.screen:
            self.screen.keypad(False)
            curses.nocbreak()
            curses.echo()
            curses.endwin()
            self.screen = None

    def poll_intent(self) -> Optional[Intent]:
        if not self.screen:
            return None
        while True:
            key = self.screen.getch()
            if key == -1:
                return None
            intent = key_to_intent(key)
            if intent is not None:
                return intent

    def _put(self, y: int, x: int, text: str) -> None:
        height, width = self.screen.getmaxyx()
        if 0 <= y < height:
            try:
                self.screen.addstr(y, x, text[: max(0, width - x - 1)])
            except curses.error:
                pass

    def _big(self, text: str, start_y: int) -> int:
        """Draw ``text`` in figlet letters, centered. Returns the next free row."""
        lines = pyfiglet.figlet_format(text).splitlines()
        _, width = self.screen.getmaxyx()
        for i, line in enumerate(lines):
            self._put(start_y + i, max(0, (width // 2) - (len(line) // 2)), line)
        return start_y + len(lines)

    def render(self, snapshot: CoordinatorSnapshot) -> None:
        if not self.screen:
            return
        self.screen.erase()
        state = snapshot.state
        if state is CoordinatorState.MODE_SELECT:
            self._render_mode_select(snapshot)
        elif state is CoordinatorState.CALIBRATION:
            self._render_calibration(snapshot)
        elif state is CoordinatorState.COMPLETE:
            self._render_complete(snapshot)
        else:
            self._render_tuning(snapshot)
        self.screen.refresh()

    def _render_mode_select(self, snapshot: CoordinatorSnapshot) -> None:
        row = self._big("Piano Coach", 0)
        self._put(row + 1, 2, f"Reference: A4 = {snapshot.a4:.1f} Hz")
        self._put(row + 3, 2, "1  Quick tune    (follow the piano's current pitch)")
        self._put(row + 4, 2, "2  Concert pitch (tune to the reference A4)")
        self._put(row + 5, 2, "3  Profile       (measure every key, then tune worst first)")
        self._put(row + 7, 2, "q  Quit")

    def _render_calibration(self, snapshot: CoordinatorSnapshot) -> None:
        self._put(0, 0, "Calibration: play A4 a few times")
        row = self._big("A4", 2)
        if snapshot.frequency is not None:
            self._put(row + 1, 2, f"Heard {snapshot.frequency:.2f} Hz ({snapshot.cents:+.1f} cents)")
        else:
            self._put(row + 1, 2, "Listening...")
        self._put(
            row + 3,
            2,
            f"Samples: {snapshot.calibration_collected} / {snapshot.calibration_target}",
        )
        self._put(row + 5, 2, "space: use samples so far   s: skip   b: back   q: quit")

    def _render_tuning(self, snapshot: CoordinatorSnapshot) -> None:
        height, _ = self.screen.getmaxyx()
        note = snapshot.note
        self._put(
            0, 0, f"{snapshot.phase}  -  key {snapshot.position + 1} of {snapshot.total}"
        )
        row = self._big(note.display_name if note else "---", 2)

        if snapshot.target_frequency is not None:
            self._put(row, 2, f"Target: {snapshot.target_frequency:.2f} Hz")
        if snapshot.step is not None:
            step = snapshot.step
            self._put(row + 1, 2, f"Step {step.number}/{step.total_steps}: {step.title}")
            self._put(row + 2, 2, step.instruction)

        if snapshot.frequency is None:
            self._put(row + 4, 2, "Listening...")
        elif snapshot.cents is None:
            self._put(row + 4, 2, f"Heard {snapshot.frequency:.2f} Hz")
        else:
            verdict = "IN TUNE" if snapshot.in_tune else ("sharp" if snapshot.cents > 0 else "flat")
            self._put(
                row + 4,
                2,
                f"Heard {snapshot.frequency:.2f} Hz  {snapshot.cents:+.1f} cents  {verdict}",
            )
        self._put(row + 5, 2, cents_meter(snapshot.cents))

        if snapshot.state is CoordinatorState.PROFILING:
            progress = f"Measured: {snapshot.profiled} / {snapshot.total}"
        else:
            progress = f"Completed: {snapshot.completed} / {snapshot.total}"
        self._put(height - 3, 0, f"{progress}   Avg deviation: {snapshot.average_deviation:.1f} cents")
        self._put(height - 2, 0, "space: confirm   s: skip   b: back   q: quit")

    def _render_complete(self, snapshot: CoordinatorSnapshot) -> None:
        row = self._big("Done!", 0)
        self._put(row + 1, 2, f"Tuned {snapshot.completed} of {snapshot.total} keys")
        self._put(row + 2, 2, f"Average deviation: {snapshot.average_deviation:.1f} cents")
        self._put(row + 4, 2, "r: start again   q: quit")
