from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal
import time

import numpy as np


AudioDtype = Literal["float32", "int16", "float64"]


@dataclass(frozen=True, slots=True)
class AudioFormat:
    """Describes audio stream parameters. Single source of truth for frame config."""

    sample_rate: int
    channels: int
    blocksize: int
    dtype: AudioDtype

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.channels <= 0:
            raise ValueError(f"channels must be positive, got {self.channels}")
        if self.blocksize <= 0:
            raise ValueError(f"blocksize must be positive, got {self.blocksize}")


@dataclass(slots=True)
class AudioFrame:
    """A single chunk of captured audio. Canonical unit pushed through a session."""

    data: np.ndarray
    format: AudioFormat
    timestamp_ns: int = field(default_factory=lambda: time.monotonic_ns())
    sequence: int = 0

    def to_mono_float32(self) -> np.ndarray:
        """Convert to normalized mono float32."""
        arr = self.data
        if arr.ndim == 2:
            arr = arr.mean(axis=1)
        if arr.dtype == np.int16:
            arr = arr.astype(np.float32) / 32768.0
        elif arr.dtype != np.float32:
            arr = arr.astype(np.float32, copy=False)
        return arr

    def to_mono_int16(self) -> np.ndarray:
        """Convert to mono 16-bit PCM, the wire format of the network detector."""
        if self.data.ndim == 1 and self.data.dtype == np.int16:
            return self.data
        mono = self.to_mono_float32()
        return (np.clip(mono, -1.0, 1.0) * 32767).astype(np.int16)

    @property
    def num_samples(self) -> int:
        return self.data.shape[0]


class ServiceState(str, Enum):
    """Background service lifecycle states."""

    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    STOPPING = "STOPPING"


@dataclass(frozen=True, slots=True)
class DetectorConfig:
    """Validated detector selection. Variants add their own parameters."""

    kind: str


@dataclass(frozen=True, slots=True)
class NetworkDetectorConfig(DetectorConfig):
    """Forward audio to a remote wake-word recognizer over datagrams."""

    address: str = ""
    port: int = 0

    @property
    def endpoint(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass(frozen=True, slots=True)
class ServiceStatus:
    """Point-in-time snapshot of the controller, safe to hand to any caller."""

    state: ServiceState
    detector: str | None = None
    endpoint: str | None = None
    paused: bool = False
    frames_sent: int = 0
    frames_dropped: int = 0
    send_errors: int = 0
    consecutive_send_errors: int = 0
    degraded: bool = False
    started_at: datetime | None = None
