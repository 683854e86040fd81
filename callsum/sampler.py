"""
Level Sampler

Responsibilities:
    - Periodically read a capture stream's energy spectrum
    - Reduce it to a fixed-size LevelFrame of magnitudes in [0, 1]
    - Publish every frame to subscribed listeners

Invariants:
    - Runs on its own thread; never waits on the pipeline
    - Stream failures degrade to all-zero frames, never raise
    - No frame history is kept (only `latest`)
"""

import logging
import math
import threading
from typing import Callable, Sequence

from callsum.audio import BYTE_FULL_SCALE
from callsum.device import CaptureStream
from callsum.models import LevelFrame

logger = logging.getLogger(__name__)

LevelListener = Callable[[LevelFrame], None]


def bucket_levels(spectrum: Sequence[float], bins: int, full_scale: float = BYTE_FULL_SCALE) -> LevelFrame:
    """
    Sample `bins` evenly spaced indices of a spectrum and normalize them.

    Args:
        spectrum: Frequency bins, scaled 0..full_scale
        bins: Number of magnitudes in the resulting frame
        full_scale: Value mapped to 1.0

    Returns:
        LevelFrame whose i-th level is spectrum[floor(i / bins * len)].
    """
    length = len(spectrum)
    if length == 0:
        return LevelFrame.zeros(bins)

    levels = []
    for i in range(bins):
        value = float(spectrum[math.floor(i / bins * length)]) / full_scale
        if not math.isfinite(value):
            value = 0.0
        levels.append(min(1.0, max(0.0, value)))
    return LevelFrame(tuple(levels))


class LevelSampler:
    """
    Tick loop turning a live stream into LevelFrames.

    Args:
        bins: Magnitudes per frame
        interval: Seconds between ticks
    """

    def __init__(self, bins: int = 20, interval: float = 1 / 30):
        self.bins = bins
        self.interval = interval

        self._listeners: list[LevelListener] = []
        self._stream: CaptureStream | None = None
        self._stop_token: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._latest = LevelFrame.zeros(bins)

    @property
    def latest(self) -> LevelFrame:
        return self._latest

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, listener: LevelListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self, stream: CaptureStream) -> None:
        """Begin sampling `stream`; restarts if already running."""
        self.stop()
        with self._lock:
            self._stream = stream
            self._stop_token = threading.Event()
            self._thread = threading.Thread(
                target=self._loop,
                args=(self._stop_token,),
                name="callsum-level-sampler",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Halt the loop and release the stream. Safe to call repeatedly."""
        with self._lock:
            token, thread = self._stop_token, self._thread
            self._stop_token = None
            self._thread = None
            self._stream = None
        if token is None:
            return
        token.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._publish(LevelFrame.zeros(self.bins))

    def tick(self) -> LevelFrame:
        """
        Take one sample of the bound stream and publish it.

        Returns:
            The published frame; all zeros when no stream is bound or the
            stream failed (the sampler then stops itself).
        """
        stream = self._stream
        if stream is None:
            frame = LevelFrame.zeros(self.bins)
            self._publish(frame)
            return frame

        try:
            frame = bucket_levels(stream.energy_spectrum(), self.bins)
        except Exception:
            logger.debug("Level stream unavailable, sampler stopping", exc_info=True)
            self._detach()
            frame = LevelFrame.zeros(self.bins)

        self._publish(frame)
        return frame

    def _detach(self) -> None:
        with self._lock:
            if self._stop_token is not None:
                self._stop_token.set()
            self._stop_token = None
            self._thread = None
            self._stream = None

    def _loop(self, stop_token: threading.Event) -> None:
        while not stop_token.is_set():
            self.tick()
            stop_token.wait(self.interval)

    def _publish(self, frame: LevelFrame) -> None:
        self._latest = frame
        for listener in list(self._listeners):
            try:
                listener(frame)
            except Exception:
                logger.exception("Level listener failed")
