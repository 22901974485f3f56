"""Hand-off of captured audio from the audio thread to the control thread."""

from __future__ import annotations
import threading
from typing import Optional

import numpy as np


class CaptureBuffer:
    """Bounded single-producer/single-consumer sample buffer.

    The audio callback pushes frames; the control thread reads the most recent
    window. Samples older than ``retention`` are dropped so the buffer never
    grows, and a read only succeeds once per push.

    Note:
        ``push`` runs on the audio thread. The critical section only copies
        into a preallocated ring and never blocks on I/O.
    """

    def __init__(self, sample_rate: int, retention: Optional[int] = None) -> None:
        """Initialize the buffer.

        Args:
            sample_rate: Sample rate of the incoming stream in Hz
            retention: Maximum number of mono samples kept, or None for half a
                second of audio (``sample_rate // 2``)
        """
        self._sample_rate = sample_rate
        self._capacity = retention or max(1, sample_rate // 2)
        self._ring = np.zeros(self._capacity, dtype=np.float32)
        self._write_pos = 0
        self._count = 0
        self._fresh = False
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @staticmethod
    def downmix(samples, channels: int = 1) -> np.ndarray:
        """Average channels into a mono float32 array.

        Args:
            samples: (frames, channels) array, or interleaved 1-D samples
            channels: Channel count of interleaved input
        """
        data = np.asarray(samples, dtype=np.float32)
        if data.ndim == 2:
            return data.mean(axis=1, dtype=np.float32) if data.shape[1] > 1 else data[:, 0]
        if channels > 1:
            usable = (data.size // channels) * channels
            return data[:usable].reshape(-1, channels).mean(axis=1, dtype=np.float32)
        return data

    def push(self, samples, channels: int = 1) -> None:
        """Append captured frames, dropping the oldest samples beyond retention."""
        mono = self.downmix(samples, channels)
        if mono.size == 0:
            return
        if mono.size > self._capacity:
            mono = mono[-self._capacity:]

        n = mono.size
        with self._lock:
            end = self._write_pos + n
            if end <= self._capacity:
                self._ring[self._write_pos:end] = mono
            else:
                first = self._capacity - self._write_pos
                self._ring[self._write_pos:] = mono[:first]
                self._ring[: n - first] = mono[first:]
            self._write_pos = end % self._capacity
            self._count = min(self._capacity, self._count + n)
            self._fresh = True

    def read(self, out: np.ndarray) -> int:
        """Copy the most recent samples into ``out``.

        Returns:
            Number of samples written to ``out[:k]`` in chronological order, or
            0 if nothing was pushed since the previous read
        """
        with self._lock:
            if not self._fresh:
                return 0
            k = min(len(out), self._count)
            start = (self._write_pos - k) % self._capacity
            end = start + k
            if end <= self._capacity:
                out[:k] = self._ring[start:end]
            else:
                first = self._capacity - start
                out[:first] = self._ring[start:]
                out[first:k] = self._ring[: k - first]
            self._fresh = False
            return k

    def clear(self) -> None:
        with self._lock:
            self._write_pos = 0
            self._count = 0
            self._fresh = False

    def __len__(self) -> int:
        with self._lock:
            return self._count
