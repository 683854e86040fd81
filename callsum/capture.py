"""
Capture Session

Responsibilities:
    - Own the lifecycle of one recording: idle → recording → stopped
    - Buffer raw PCM chunks from the capture stream
    - Count elapsed seconds while recording
    - Drive the LevelSampler on the same stream
    - Finalize the buffer into one AudioArtifact on stop

Invariants:
    - At most one session is recording process-wide
    - `elapsed` restarts from 0 on every start()
    - stop() emits at most one artifact per recording
    - Reader, ticker and sampler share one stop token per recording
"""

import logging
import threading
from enum import Enum
from typing import Callable

from callsum.audio import WAV_CONTENT_TYPE, encode_wav, format_duration
from callsum.config import Settings
from callsum.device import CaptureDevice, CaptureStream
from callsum.errors import BusyError
from callsum.models import AudioArtifact
from callsum.sampler import LevelSampler

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"


class CaptureSession:
    """
    One recording from a capture device.

    Args:
        device: CaptureDevice to open on start()
        settings: Tick interval and sampler configuration
        sampler: LevelSampler to drive (one is created from settings if omitted)
        on_complete: Called with the AudioArtifact after a successful stop()
    """

    # Process-wide recording slot
    _active: "CaptureSession | None" = None
    _active_lock = threading.Lock()

    def __init__(
        self,
        device: CaptureDevice,
        settings: Settings | None = None,
        sampler: LevelSampler | None = None,
        on_complete: Callable[[AudioArtifact], None] | None = None,
    ):
        self.device = device
        self.settings = settings or Settings()
        self.sampler = sampler or LevelSampler(self.settings.level_bins, self.settings.sample_interval)
        self.on_complete = on_complete

        self._state = SessionState.IDLE
        self._lock = threading.Lock()
        self._elapsed = 0
        self._chunks: list[bytes] = []
        self._stream: CaptureStream | None = None
        self._stop_token: threading.Event | None = None
        self._threads: list[threading.Thread] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def elapsed(self) -> int:
        """Whole seconds recorded so far."""
        return self._elapsed

    def start(self) -> None:
        """
        Open the device and begin recording.

        Raises:
            BusyError: If this or another session is already recording.
            DeviceError: If the device is unavailable or access is denied.
        """
        with self._lock:
            if self._state is SessionState.RECORDING:
                raise BusyError("Capture session is already recording")
            self._claim_slot()

            try:
                stream = self.device.open()
            except BaseException:
                self._release_slot()
                raise

            self._stream = stream
            self._elapsed = 0
            self._chunks = []
            self._stop_token = threading.Event()
            self._threads = [
                threading.Thread(
                    target=self._read_chunks,
                    args=(stream, self._stop_token),
                    name="callsum-capture-reader",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._count_seconds,
                    args=(self._stop_token,),
                    name="callsum-capture-ticker",
                    daemon=True,
                ),
            ]
            for thread in self._threads:
                thread.start()
            self.sampler.start(stream)
            self._state = SessionState.RECORDING

        logger.info("Recording started")

    def stop(self) -> AudioArtifact | None:
        """
        Finish the recording and return its AudioArtifact.

        Returns:
            The artifact, or None if the session was not recording.
        """
        with self._lock:
            if self._state is not SessionState.RECORDING:
                return None

            self._stop_token.set()
            for thread in self._threads:
                thread.join()
            self.sampler.stop()

            stream = self._stream
            try:
                stream.close()
            except Exception:
                logger.warning("Closing capture stream failed", exc_info=True)

            artifact = AudioArtifact(
                data=encode_wav(self._chunks, stream.sample_rate, stream.channels),
                content_type=WAV_CONTENT_TYPE,
                duration=self._elapsed,
            )

            self._chunks = []
            self._stream = None
            self._stop_token = None
            self._threads = []
            self._state = SessionState.STOPPED
            self._release_slot()

        logger.info("Recording stopped after %s (%d bytes)", format_duration(artifact.duration), artifact.size)
        if self.on_complete is not None:
            self.on_complete(artifact)
        return artifact

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # -------------------------------------------------------------------------
    # Background tasks
    # -------------------------------------------------------------------------

    def _read_chunks(self, stream: CaptureStream, stop_token: threading.Event) -> None:
        while not stop_token.is_set():
            try:
                chunk = stream.read()
            except Exception:
                logger.warning("Capture stream read failed, buffering stopped", exc_info=True)
                return
            if chunk:
                self._chunks.append(chunk)

    def _count_seconds(self, stop_token: threading.Event) -> None:
        while not stop_token.wait(self.settings.tick_seconds):
            self._elapsed += 1

    # -------------------------------------------------------------------------
    # Recording slot
    # -------------------------------------------------------------------------

    def _claim_slot(self) -> None:
        with CaptureSession._active_lock:
            if CaptureSession._active is not None:
                raise BusyError("Another capture session is recording")
            CaptureSession._active = self

    def _release_slot(self) -> None:
        with CaptureSession._active_lock:
            if CaptureSession._active is self:
                CaptureSession._active = None
