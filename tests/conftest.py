"""
callsum Test Configuration

Provides fake capture devices, scripted stage executors and audio fixtures.
"""

import threading
import time
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from callsum.capture import CaptureSession
from callsum.contracts import StageDefinition
from callsum.errors import DeviceError, StreamClosedError
from callsum.models import AudioArtifact
from callsum.pipeline import StagePipeline
from callsum.stages.base import StageFailure
from callsum.store import ResultStore


STAGE_IDS = ["upload", "transcribe", "analyze", "summarize", "finalize"]


# =============================================================================
# Fake capture device
# =============================================================================


class FakeStream:
    """In-memory CaptureStream producing silent PCM chunks and a fixed spectrum."""

    def __init__(self, spectrum=None, chunk: bytes = b"\x00\x00" * 160, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        self.spectrum = list(spectrum) if spectrum is not None else [128] * 1024
        self.chunk = chunk
        self.closed = False
        self.close_calls = 0

    def read(self) -> bytes:
        if self.closed:
            raise StreamClosedError("closed")
        time.sleep(0.001)
        return self.chunk

    def energy_spectrum(self):
        if self.closed:
            raise StreamClosedError("closed")
        return self.spectrum

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


class FakeDevice:
    """CaptureDevice handing out FakeStreams, or failing with DeviceError."""

    def __init__(self, error: str | None = None, **stream_kwargs):
        self.error = error
        self.stream_kwargs = stream_kwargs
        self.streams: list[FakeStream] = []

    def open(self) -> FakeStream:
        if self.error is not None:
            raise DeviceError(self.error)
        stream = FakeStream(**self.stream_kwargs)
        self.streams.append(stream)
        return stream


# =============================================================================
# Scripted executors
# =============================================================================


def scripted(payload=None, steps=(0, 25, 50, 75, 100), fail: str | None = None, gate: threading.Event | None = None):
    """
    Build an executor that yields `steps`, then returns `payload`.

    Args:
        payload: Mapping returned on success
        steps: Progress values yielded in order
        fail: If set, raise StageFailure(None, fail) after the steps
        gate: If set, wait for it before every step after the first
    """
    def executor(artifact, prior_outputs):
        for i, step in enumerate(steps):
            if gate is not None and i > 0:
                gate.wait(5)
            yield step
        if fail is not None:
            raise StageFailure(None, fail)
        return payload

    return executor


def five_stages(overrides: dict | None = None) -> list[StageDefinition]:
    """Default five stage ids with scripted executors; overrides map id → executor."""
    overrides = overrides or {}
    payloads = {
        "transcribe": {"transcript": "Hello there.", "participants": ["You", "Sam"]},
        "analyze": {"sentiment": "positive", "key_points": ["Greeting exchanged"]},
        "summarize": {"summary": "A short greeting.", "action_items": ["Reply to Sam"]},
    }
    return [
        StageDefinition(
            id=stage_id,
            label=stage_id.title(),
            executor=overrides.get(stage_id, scripted(payloads.get(stage_id))),
        )
        for stage_id in STAGE_IDS
    ]


# =============================================================================
# Audio fixtures
# =============================================================================


def create_test_wav(path: Path, duration_sec: float = 1.0, sr: int = 16000) -> None:
    """Write a deterministic speech-like WAV (sum of sines in the middle third)."""
    num_samples = int(sr * duration_sec)
    samples = np.zeros(num_samples, dtype=np.float32)

    start, end = num_samples // 3, 2 * num_samples // 3
    t = np.arange(end - start) / sr
    samples[start:end] = (
        0.3 * np.sin(2 * np.pi * 200 * t) +
        0.2 * np.sin(2 * np.pi * 400 * t)
    ).astype(np.float32)

    sf.write(path, samples, sr, subtype="PCM_16")


@pytest.fixture
def wav_path(tmp_path) -> Path:
    path = tmp_path / "call.wav"
    create_test_wav(path, duration_sec=2.5)
    return path


@pytest.fixture
def artifact() -> AudioArtifact:
    return AudioArtifact(data=b"\x1a\x45\xdf\xa3" * 4096, content_type="audio/webm", duration=1847)


@pytest.fixture
def store() -> ResultStore:
    return ResultStore()


@pytest.fixture
def pipeline(store) -> StagePipeline:
    return StagePipeline(store)


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture(autouse=True)
def release_capture_slot():
    """Make sure a failing capture test never blocks the next one."""
    yield
    CaptureSession._active = None


def wait_for(predicate, timeout: float = 5.0) -> bool:
    """Poll predicate until it is true or timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.002)
    return predicate()
