"""Custom exceptions for frame capture and encoding."""


class CaptureError(Exception):
    """Base capture exception."""

    kind = "capture_error"


class CaptureUnsupported(CaptureError):
    """Raised when snapshotting or stream encoding is unavailable in this environment."""

    kind = "capture_unsupported"


class CaptureStateError(CaptureError):
    """Raised on an invalid state transition (a programming error)."""

    kind = "invalid_state"


class CaptureAlreadyRunningError(CaptureStateError):
    """Raised when a capture is requested while another one is in flight."""

    kind = "capture_already_running"


class CaptureAborted(CaptureError):
    """Raised inside a session when the caller aborts it."""

    kind = "capture_aborted"


class EncodingFault(CaptureError):
    """Raised on a mid-capture fault: snapshot failure, encoder crash or broken stream."""

    kind = "encoding_fault"


class EncodingTooSmallError(CaptureError):
    """Raised when a completed capture produced an implausibly small artifact."""

    kind = "encoding_too_small"
