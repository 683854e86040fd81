"""
callsum Settings - Capture and sampling configuration.

Responsibilities:
- Hold tunables for capture, level sampling and spectrum analysis
- Serialization to/from plain dicts and environment variables

Invariants:
- Immutable once constructed
- Unknown keys are rejected, never silently ignored
"""

import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings shared by CaptureSession and LevelSampler.

    Attributes:
        level_bins: Number of magnitudes per LevelFrame
        sample_interval: Seconds between level sampler ticks
        tick_seconds: Seconds between elapsed-time increments
        sample_rate: Capture sample rate in Hz
        channels: Capture channel count
        chunk_frames: Frames per buffered chunk
        fft_size: Analysis window length for the energy spectrum
    """

    level_bins: int = 20
    sample_interval: float = 1 / 30
    tick_seconds: float = 1.0
    sample_rate: int = 16000
    channels: int = 1
    chunk_frames: int = 1024
    fft_size: int = 2048

    def __post_init__(self):
        if self.level_bins <= 0:
            raise ValueError(f"level_bins must be positive, got {self.level_bins}")
        if self.sample_interval <= 0 or self.tick_seconds <= 0:
            raise ValueError("sample_interval and tick_seconds must be positive")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        """
        Deserialize from dictionary.

        Raises:
            ValueError: If data contains keys that are not settings.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_env(cls, prefix: str = "CALLSUM_", environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Each field is read from ``<prefix><FIELD_NAME>`` and coerced to the
        type of its default; missing variables keep the default.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(prefix + f.name.upper())
            if raw is None:
                continue
            values[f.name] = type(f.default)(raw)
        return cls(**values)
