import soundfile as sf
import numpy as np
from typing import Iterator, Optional

from piano_coach.core.interfaces import IAudioSource
from piano_coach.audio.capture_buffer import CaptureBuffer


class WavFileAudioSource(IAudioSource):
    """Provides mono windows read sequentially from an audio file."""

    def __init__(self, file_path: str, gain: float = 1.0):
        self._file_path = file_path
        self._gain = gain
        self._position = 0

        data, self._sample_rate = sf.read(file_path, dtype="float32", always_2d=True)
        self._samples = CaptureBuffer.downmix(data)
        if self._gain != 1.0:
            self._samples = self._samples * np.float32(self._gain)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def duration(self) -> float:
        return len(self._samples) / self._sample_rate

    def rewind(self) -> None:
        self._position = 0

    def read_samples(self, buffer: np.ndarray) -> int:
        """Copy the next ``len(buffer)`` samples; returns 0 at end of file."""
        chunk = self._samples[self._position : self._position + len(buffer)]
        n = len(chunk)
        buffer[:n] = chunk
        self._position += n
        return n

    def frames(self, window_size: int, hop_size: Optional[int] = None) -> Iterator[np.ndarray]:
        """Yield overlapping full-length windows over the whole file."""
        hop_size = hop_size or window_size
        for start in range(0, len(self._samples) - window_size + 1, hop_size):
            yield self._samples[start : start + window_size]


class ArrayAudioSource(IAudioSource):
    """Serves an in-memory signal through a capture buffer.

    Every ``read_samples`` call first feeds the next ``chunk_size`` samples,
    imitating one audio callback per poll. Useful for synthetic input.
    """

    def __init__(self, samples, sample_rate: int, chunk_size: int = 1024, loop: bool = False):
        self._samples = np.asarray(samples, dtype=np.float32)
        self._sample_rate = sample_rate
        self._chunk_size = chunk_size
        self._loop = loop
        self._position = 0
        self._buffer = CaptureBuffer(sample_rate)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    def _feed(self) -> None:
        if self._position >= len(self._samples):
            if not self._loop or len(self._samples) == 0:
                return
            self._position = 0
        chunk = self._samples[self._position : self._position + self._chunk_size]
        self._position += len(chunk)
        self._buffer.push(chunk)

    def read_samples(self, buffer: np.ndarray) -> int:
        self._feed()
        return self._buffer.read(buffer)
