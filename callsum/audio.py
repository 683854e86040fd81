"""
callsum Audio Utilities

Audio primitives shared by capture, upload ingestion and level sampling.

Library Stack:
    - soundfile: WAV encode / file probing (libsndfile-backed)
    - numpy: Array operations and FFT
    - scipy.signal.get_window: Analysis window for the energy spectrum

INVARIANTS:
    - Captured audio is PCM 16-bit little-endian, interleaved
    - Durations are floored to whole seconds
    - Byte spectra follow the browser AnalyserNode scale (0..255)
"""

import io
from pathlib import Path
from typing import Iterable

import numpy as np
import soundfile as sf
from scipy.signal import get_window

from callsum.models import AudioArtifact


# =============================================================================
# Constants (FROZEN)
# =============================================================================

PCM_DTYPE = "<i2"
WAV_CONTENT_TYPE = "audio/wav"

# AnalyserNode defaults: decibel range mapped onto 0..255
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0
BYTE_FULL_SCALE = 255
EPS = 1e-10

# libsndfile container names → MIME tags
CONTENT_TYPES = {
    "WAV": "audio/wav",
    "FLAC": "audio/flac",
    "OGG": "audio/ogg",
    "MP3": "audio/mpeg",
    "AIFF": "audio/aiff",
}


# =============================================================================
# Encoding / Probing
# =============================================================================


def encode_wav(chunks: Iterable[bytes], sample_rate: int, channels: int = 1) -> bytes:
    """
    Join raw PCM-16 chunks and encode them as one WAV payload.

    Args:
        chunks: Interleaved little-endian int16 byte chunks, in capture order
        sample_rate: Sample rate in Hz
        channels: Interleaved channel count

    Returns:
        WAV file bytes (PCM 16-bit).

    Note:
        A trailing partial frame (fewer bytes than one sample per channel)
        is dropped.
    """
    raw = b"".join(chunks)
    frame_bytes = 2 * channels
    raw = raw[: len(raw) - (len(raw) % frame_bytes)]

    samples = np.frombuffer(raw, dtype=PCM_DTYPE)
    if channels > 1:
        samples = samples.reshape(-1, channels)

    buffer = io.BytesIO()
    sf.write(buffer, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def probe_duration(data: bytes) -> int:
    """
    Measure the duration of an encoded audio payload.

    Raises:
        RuntimeError: If libsndfile cannot decode the payload
    """
    with sf.SoundFile(io.BytesIO(data)) as f:
        return int(f.frames // f.samplerate)


def load_artifact(path: Path | str) -> AudioArtifact:
    """
    Build an AudioArtifact from an uploaded audio file.

    Args:
        path: Path to an audio file libsndfile can read

    Returns:
        AudioArtifact with the file bytes, its MIME tag and floored duration.

    Raises:
        FileNotFoundError: If path does not exist
        RuntimeError: If the file is not decodable audio
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Audio file not found: {path}")

    info = sf.info(str(path))
    return AudioArtifact(
        data=path.read_bytes(),
        content_type=CONTENT_TYPES.get(info.format, "application/octet-stream"),
        duration=int(info.frames // info.samplerate),
        name=path.name,
    )


# =============================================================================
# Spectrum
# =============================================================================


def byte_frequency_data(samples: np.ndarray, fft_size: int = 2048) -> np.ndarray:
    """
    Compute an AnalyserNode-style byte spectrum of the latest samples.

    Args:
        samples: Mono float samples in [-1, 1]; only the last fft_size are used
        fft_size: Analysis window length (power of two)

    Returns:
        uint8 array of fft_size // 2 bins.

    Note:
        Shorter inputs are left-padded with silence.
    """
    samples = np.asarray(samples, dtype=np.float32).ravel()[-fft_size:]
    if len(samples) < fft_size:
        samples = np.concatenate([np.zeros(fft_size - len(samples), dtype=np.float32), samples])

    window = get_window("hann", fft_size)
    magnitude = np.abs(np.fft.rfft(samples * window))[: fft_size // 2] / fft_size
    decibels = 20.0 * np.log10(np.maximum(magnitude, EPS))

    scaled = (decibels - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS) * BYTE_FULL_SCALE
    return np.clip(np.floor(scaled), 0, BYTE_FULL_SCALE).astype(np.uint8)


# =============================================================================
# Display helpers
# =============================================================================


def format_duration(seconds: int) -> str:
    """Format seconds as "1h 2m 3s", or "30m 47s" under one hour."""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"
