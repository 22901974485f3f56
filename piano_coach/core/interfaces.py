"""Defines the core interfaces for the Piano Coach application."""

from __future__ import annotations
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ..coordinator import CoordinatorSnapshot


class Intent(Enum):
    """User commands understood by the application loop."""

    CONFIRM = "confirm"
    SKIP = "skip"
    BACK = "back"
    SELECT_QUICK = "select_quick"
    SELECT_CONCERT = "select_concert"
    SELECT_PROFILE = "select_profile"
    RESTART = "restart"
    QUIT = "quit"


class IAudioSource(ABC):
    """Interface for anything that can hand out mono sample windows."""

    @abstractmethod
    def read_samples(self, buffer: np.ndarray) -> int:
        """Fill ``buffer`` with samples and return how many were written."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """The sample rate of the audio stream."""
        pass

    def start(self) -> None:
        """Start producing samples."""
        pass

    def stop(self) -> None:
        """Stop producing samples."""
        pass


class IPresenter(ABC):
    """Interface for presentation front ends."""

    @abstractmethod
    def start(self) -> None:
        """Take over the display."""
        pass

    @abstractmethod
    def render(self, snapshot: "CoordinatorSnapshot") -> None:
        """Draw a read-only snapshot of the coordinator."""
        pass

    @abstractmethod
    def poll_intent(self) -> Optional[Intent]:
        """Return the next pending user command without blocking."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release the display."""
        pass
