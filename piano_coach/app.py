"""Control loop tying audio, pitch detection, the coordinator and a presenter together."""

import time
from typing import Callable, Optional

import numpy as np

from .audio.pitch import PitchDetector
from .coordinator import TuningCoordinator
from .core.events import CoordinatorEventType
from .core.interfaces import IAudioSource, Intent, IPresenter
from .logger import get_logger

logger = get_logger(__name__)


class TuningApp:
    """Polls the audio source and the presenter until the user quits.

    Each iteration reads the latest analysis window, feeds its pitch estimate
    to the coordinator, applies pending user intents and renders a snapshot.
    All coordinator calls happen on the thread that calls ``run``.
    """

    def __init__(
        self,
        source: IAudioSource,
        coordinator: TuningCoordinator,
        presenter: IPresenter,
        detector: Optional[PitchDetector] = None,
        window_size: int = 4096,
        poll_interval: float = 0.02,
        on_note_completed: Optional[Callable[[], None]] = None,
    ):
        """Initialize the app.

        Args:
            source: Where analysis windows come from
            coordinator: Session state machine
            presenter: Display and input front end
            detector: Pitch detector, created for the source's sample rate if None
            window_size: Samples per analysis window
            poll_interval: Seconds to sleep between iterations
            on_note_completed: Called (e.g. to beep) whenever a note is recorded
        """
        self._source = source
        self._coordinator = coordinator
        self._presenter = presenter
        self._detector = detector or PitchDetector(source.sample_rate)
        self._window = np.zeros(window_size, dtype=np.float32)
        self._poll_interval = poll_interval
        self._running = False

        if on_note_completed is not None:
            coordinator.events.on(
                CoordinatorEventType.NOTE_COMPLETED, lambda *_: on_note_completed()
            )

    @property
    def running(self) -> bool:
        return self._running

    def tick(self) -> bool:
        """Run one poll iteration. Returns False once the user has quit."""
        n = self._source.read_samples(self._window)
        if n > 0:
            self._coordinator.feed(self._detector.detect(self._window[:n]))

        intent = self._presenter.poll_intent()
        while intent is not None:
            if intent is Intent.QUIT:
                logger.info("Quit requested")
                self._running = False
                return False
            self._coordinator.handle(intent)
            intent = self._presenter.poll_intent()

        self._presenter.render(self._coordinator.snapshot())
        return True

    def run(self) -> None:
        """Run until QUIT; the session is flushed to storage on the way out."""
        self._source.start()
        self._presenter.start()
        self._running = True
        logger.info("Tuning loop started")
        try:
            while self._running:
                if not self.tick():
                    break
                time.sleep(self._poll_interval)
        finally:
            self._running = False
            self._coordinator.flush()
            self._presenter.stop()
            self._source.stop()
            logger.info("Tuning loop stopped")

    def stop(self) -> None:
        self._running = False
