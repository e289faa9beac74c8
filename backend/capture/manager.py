"""Single-flight owner of capture sessions."""
from __future__ import annotations

import logging
import threading
from typing import Callable

from common.settings import CaptureSettings
from capture.exceptions import CaptureAlreadyRunningError
from capture.session import CaptureSession
from capture.types import DisplaySurface, RecordingCallbacks, RecordingOutcome

logger = logging.getLogger(__name__)


class CaptureManager:
    """Runs at most one capture session at a time.

    A second ``record()`` while one is in flight is rejected rather than
    queued. The last outcome is kept for status reporting.
    """

    def __init__(self, session_factory: Callable[..., CaptureSession] = CaptureSession):
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._active: CaptureSession | None = None
        self._last_outcome: RecordingOutcome | None = None
        self._closed = False

    def record(
        self,
        surface: DisplaySurface,
        settings: CaptureSettings | None = None,
        callbacks: RecordingCallbacks | None = None,
    ) -> RecordingOutcome:
        with self._lock:
            if self._closed:
                raise CaptureAlreadyRunningError("Capture manager is shutting down")
            if self._active is not None:
                raise CaptureAlreadyRunningError(
                    f"Recording '{self._active.session_id}' is already in progress"
                )
            session = self._session_factory(surface, settings=settings, callbacks=callbacks)
            self._active = session
            logger.info("Accepted recording '%s'", session.session_id)

        try:
            outcome = session.run()
        finally:
            with self._lock:
                self._active = None
        with self._lock:
            self._last_outcome = outcome
        return outcome

    def abort(self) -> bool:
        with self._lock:
            session = self._active
        if session is None:
            return False
        logger.info("Aborting recording '%s'", session.session_id)
        session.abort()
        return True

    def status(self) -> dict:
        with self._lock:
            session = self._active
            last = self._last_outcome
        return {
            "recording": session is not None,
            "session_id": session.session_id if session else None,
            "state": session.state.value if session else None,
            "frame_count": session.frame_count if session else 0,
            "last_outcome": last.to_dict() if last else None,
        }

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            session = self._active
        if session is not None:
            session.abort()
        logger.info("Capture manager shut down")
