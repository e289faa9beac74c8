"""Frame capture and video encoding package."""

from .compositor import Compositor
from .encoder import MIME_TYPE, StreamEncoder, ffmpeg_available
from .exceptions import (
    CaptureAborted,
    CaptureAlreadyRunningError,
    CaptureError,
    CaptureStateError,
    CaptureUnsupported,
    EncodingFault,
    EncodingTooSmallError,
)
from .manager import CaptureManager
from .sampler import FrameSampler
from .session import CaptureSession
from .types import (
    DisplaySurface,
    RecordingCallbacks,
    RecordingOutcome,
    SamplerState,
    SessionState,
)

__all__ = [
    "CaptureAborted",
    "CaptureAlreadyRunningError",
    "CaptureError",
    "CaptureManager",
    "CaptureSession",
    "CaptureStateError",
    "CaptureUnsupported",
    "Compositor",
    "DisplaySurface",
    "EncodingFault",
    "EncodingTooSmallError",
    "FrameSampler",
    "MIME_TYPE",
    "RecordingCallbacks",
    "RecordingOutcome",
    "SamplerState",
    "SessionState",
    "StreamEncoder",
    "ffmpeg_available",
]
