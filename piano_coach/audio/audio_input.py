"""Live microphone input for pitch detection."""

from __future__ import annotations
import numpy as np
import sounddevice as sd
from typing import Optional, ClassVar

from ..logger import get_logger
from ..core.interfaces import IAudioSource
from .capture_buffer import CaptureBuffer

logger = get_logger(__name__)


class AudioDeviceError(RuntimeError):
    """No usable input device, or the stream configuration is unsupported."""


class MicrophoneSource(IAudioSource):
    """Audio source backed by a sounddevice input stream.

    The stream callback runs on the audio thread and only pushes into the
    capture buffer; ``read_samples`` is called from the control thread.
    """

    SAMPLE_RATE: ClassVar[int] = 44100  # Hz
    FRAMES_PER_BUFFER: ClassVar[int] = 1024
    CHANNELS: ClassVar[int] = 1

    def __init__(
        self,
        device_id: Optional[int] = None,
        sample_rate: Optional[int] = None,
        frames_per_buffer: Optional[int] = None,
        channels: Optional[int] = None,
    ) -> None:
        """Initialize the microphone source.

        Args:
            device_id: Audio input device ID, or None for the default input
            sample_rate: Sample rate in Hz, or None for default (44100)
            frames_per_buffer: Callback block size, or None for default (1024)
            channels: Number of channels to capture, or None for default (1)

        Raises:
            AudioDeviceError: If no input device accepts the configuration
        """
        self._device_id = device_id
        self._sample_rate = sample_rate or self.SAMPLE_RATE
        self._frames_per_buffer = frames_per_buffer or self.FRAMES_PER_BUFFER
        self._channels = channels or self.CHANNELS

        self._stream: Optional[sd.InputStream] = None
        self._running = False

        self._check_device()
        self._buffer = CaptureBuffer(self._sample_rate)

    def _check_device(self) -> None:
        """Verify that the device accepts the stream settings."""
        try:
            devices = sd.query_devices()
        except Exception as e:
            raise AudioDeviceError(f"Could not query audio devices: {e}") from e

        if not any(d["max_input_channels"] > 0 for d in devices):
            raise AudioDeviceError("No audio input device found")

        try:
            sd.check_input_settings(
                device=self._device_id,
                channels=self._channels,
                samplerate=self._sample_rate,
                dtype="float32",
            )
        except Exception as e:
            raise AudioDeviceError(
                f"Input device {self._device_id if self._device_id is not None else '(default)'} "
                f"does not support {self._channels} channel(s) at {self._sample_rate} Hz: {e}"
            ) from e

        logger.info(
            f"Audio device ready: ID={self._device_id}, Rate={self._sample_rate}Hz, "
            f"Channels={self._channels}"
        )

    def _audio_callback(
        self,
        indata: np.ndarray,
        _frames: int,
        _time_info,
        status: sd.CallbackFlags,
    ) -> None:
        """Push captured frames into the capture buffer.

        Note:
            This is called from the audio thread; it must not block.
        """
        if status:
            logger.debug(f"Audio callback status: {status}")
        self._buffer.push(indata, self._channels)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Open and start the input stream.

        Raises:
            AudioDeviceError: If the stream cannot be opened
        """
        if self._running:
            logger.warning("Audio input already running")
            return

        try:
            self._stream = sd.InputStream(
                device=self._device_id,
                samplerate=self._sample_rate,
                blocksize=self._frames_per_buffer,
                channels=self._channels,
                dtype="float32",
                callback=self._audio_callback,
            )
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise AudioDeviceError(f"Could not start audio input: {e}") from e

        self._running = True
        logger.info(f"Audio input started with sample rate {self._sample_rate} Hz")

    def stop(self) -> None:
        """Stop capturing audio."""
        if not self._running:
            return

        try:
            if self._stream:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            logger.info("Audio input stopped")
        except Exception as e:
            logger.error(f"Error stopping audio input: {e}")
        finally:
            self._running = False

    def read_samples(self, buffer: np.ndarray) -> int:
        return self._buffer.read(buffer)


def list_input_devices():
    """(device_id, name, default sample rate) for each input-capable device."""
    devices = sd.query_devices()
    return [
        (i, d["name"], d["default_samplerate"])
        for i, d in enumerate(devices)
        if d["max_input_channels"] > 0
    ]
