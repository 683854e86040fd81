"""
Capture device capability.

Defines the structural contract callsum expects from an audio input
(``CaptureDevice`` / ``CaptureStream``) and a PortAudio implementation on
top of sounddevice.

The sounddevice import is deferred to ``SoundDeviceInput.open`` so the
rest of the package works on hosts without PortAudio.
"""

import logging
import queue
import threading
from typing import Protocol, Sequence

import numpy as np

from callsum.audio import byte_frequency_data
from callsum.config import Settings
from callsum.errors import DeviceError, StreamClosedError

logger = logging.getLogger(__name__)


class CaptureStream(Protocol):
    """An open audio input stream."""

    sample_rate: int
    channels: int

    def read(self) -> bytes:
        """Return the next chunk of interleaved PCM-16 bytes (may be empty)."""
        ...

    def energy_spectrum(self) -> Sequence[float]:
        """Return the current frequency bins, byte-scaled (0..255)."""
        ...

    def close(self) -> None:
        ...


class CaptureDevice(Protocol):
    """Something that can open a CaptureStream."""

    def open(self) -> CaptureStream:
        """Open a stream, raising DeviceError if denied or unavailable."""
        ...


class SoundDeviceStream:
    """CaptureStream backed by a callback-driven sounddevice.InputStream."""

    def __init__(self, sd, settings: Settings, device: int | str | None = None, read_timeout: float = 0.1):
        self.sample_rate = settings.sample_rate
        self.channels = settings.channels
        self._fft_size = settings.fft_size
        self._read_timeout = read_timeout

        self._chunks: queue.Queue = queue.Queue()
        self._window = np.zeros(self._fft_size, dtype=np.float32)
        self._window_lock = threading.Lock()
        self._closed = False

        self._stream = sd.InputStream(
            device=device,
            samplerate=settings.sample_rate,
            channels=settings.channels,
            dtype="int16",
            blocksize=settings.chunk_frames,
            callback=self._callback,
        )
        self._stream.start()

    def _callback(self, indata, frames, time_info, status):
        if status:
            logger.debug("Input stream status: %s", status)
        self._chunks.put(indata.tobytes())

        # Mono downmix scaled to [-1, 1] for the analysis window
        mono = indata.astype(np.float32).mean(axis=1) / 32768.0
        with self._window_lock:
            if len(mono) >= self._fft_size:
                self._window[:] = mono[-self._fft_size:]
            else:
                self._window = np.concatenate([self._window[len(mono):], mono])

    def read(self) -> bytes:
        if self._closed:
            raise StreamClosedError("Capture stream is closed")
        try:
            return self._chunks.get(timeout=self._read_timeout)
        except queue.Empty:
            return b""

    def energy_spectrum(self) -> np.ndarray:
        if self._closed:
            raise StreamClosedError("Capture stream is closed")
        with self._window_lock:
            window = self._window.copy()
        return byte_frequency_data(window, self._fft_size)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.stop()
        self._stream.close()


class SoundDeviceInput:
    """
    CaptureDevice for the default (or a named) PortAudio input.

    Args:
        settings: Sample rate, channels, chunk and FFT sizes
        device: sounddevice device index or name; None for the default input
    """

    def __init__(self, settings: Settings | None = None, device: int | str | None = None):
        self.settings = settings or Settings()
        self.device = device

    def open(self) -> SoundDeviceStream:
        try:
            import sounddevice as sd
        except OSError as e:
            raise DeviceError(f"PortAudio library not available: {e}") from e

        try:
            return SoundDeviceStream(sd, self.settings, device=self.device)
        except (sd.PortAudioError, ValueError) as e:
            raise DeviceError(f"Cannot open audio input: {e}") from e
