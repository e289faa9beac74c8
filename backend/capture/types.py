"""Types for capture sessions."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, runtime_checkable

import numpy as np


class SamplerState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    SAMPLING = "sampling"
    DRAINING = "draining"
    DONE = "done"
    FAILED = "failed"


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@runtime_checkable
class DisplaySurface(Protocol):
    """Anything that can render its live state to an RGBA bitmap."""

    def render_snapshot(self, width: int, height: int) -> np.ndarray:
        ...


@dataclass
class RecordingCallbacks:
    """Lifecycle notifications; outcomes are still returned to the caller."""

    on_start: Optional[Callable[[], None]] = None
    on_finish: Optional[Callable[[bytes], None]] = None
    on_error: Optional[Callable[[str], None]] = None


@dataclass
class RecordingOutcome:
    """Result of one capture session: either an artifact or an error kind."""

    session_id: str
    frame_count: int
    artifact: bytes | None = None
    filename: str | None = None
    error_kind: str | None = None
    error: str | None = None
    codec: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.artifact is not None and self.error_kind is None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "frame_count": self.frame_count,
            "filename": self.filename,
            "size_bytes": len(self.artifact) if self.artifact is not None else 0,
            "error_kind": self.error_kind,
            "error": self.error,
            "codec": self.codec,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }
