"""Playback of reference tones and confirmation beeps."""

import numpy as np
import sounddevice as sd

from ..logger import get_logger
from .reference import ReferenceTone

logger = get_logger(__name__)

BEEP_FREQUENCY = 1760.0  # Hz
BEEP_DURATION = 0.08  # seconds


def play_samples(samples: np.ndarray, sample_rate: int, wait: bool = True) -> None:
    """Play mono float samples on the default output device."""
    sd.play(samples, samplerate=sample_rate)
    if wait:
        sd.wait()


def play_reference(frequency: float, duration: float, sample_rate: int = 44100) -> None:
    """Play a reference tone and wait for it to finish."""
    tone = ReferenceTone(sample_rate).generate(frequency, duration)
    logger.info(f"Playing reference tone {frequency:.2f}Hz for {duration:.1f}s")
    play_samples(tone, sample_rate)


def beep(sample_rate: int = 44100) -> None:
    """Short confirmation blip. Does not wait; playback errors are logged."""
    tone = ReferenceTone(sample_rate).generate(BEEP_FREQUENCY, BEEP_DURATION, amplitude=0.3)
    try:
        play_samples(tone, sample_rate, wait=False)
    except sd.PortAudioError as e:
        logger.warning(f"Could not play confirmation beep: {e}")
