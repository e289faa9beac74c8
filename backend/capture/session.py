"""One recording: sampler, compositor and encoder run as a single synchronized loop."""
from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Callable

from common.config.paths import ARTIFACT_PREFIX, VIDEO_EXTENSION
from common.settings import CaptureSettings, capture_settings
from capture.compositor import Compositor, parse_hex_color
from capture.encoder import StreamEncoder, ffmpeg_available
from capture.exceptions import (
    CaptureAborted,
    CaptureError,
    CaptureStateError,
    CaptureUnsupported,
    EncodingFault,
)
from capture.sampler import FrameSampler
from capture.types import (
    DisplaySurface,
    RecordingCallbacks,
    RecordingOutcome,
    SamplerState,
    SessionState,
)

logger = logging.getLogger(__name__)


def artifact_filename(created_at: float) -> str:
    return f"{ARTIFACT_PREFIX}-{int(created_at * 1000)}.{VIDEO_EXTENSION}"


class CaptureSession:
    """Owns every resource of one recording from creation to cleanup.

    ``run()`` never raises for capture failures: it returns a
    RecordingOutcome and notifies the callbacks after cleanup has run.
    Cleanup is idempotent and may be triggered by failure, by ``abort()``
    or by the owner.
    """

    def __init__(
        self,
        surface: DisplaySurface,
        settings: CaptureSettings | None = None,
        callbacks: RecordingCallbacks | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        wall_clock: Callable[[], float] = time.time,
        encoder_factory: Callable[..., StreamEncoder] | None = None,
        support_check: Callable[[], bool] | None = None,
    ):
        self.session_id = uuid.uuid4().hex[:8]
        self.surface = surface
        self.settings = settings or capture_settings
        self.callbacks = callbacks or RecordingCallbacks()
        self.clock = clock
        self.sleep = sleep
        self.wall_clock = wall_clock
        self.encoder_factory = encoder_factory or StreamEncoder
        self.support_check = support_check or ffmpeg_available

        self.state = SessionState.IDLE
        self.frame_count = 0
        self.start_timestamp: float | None = None
        self.sampler: FrameSampler | None = None
        self.compositor: Compositor | None = None
        self.encoder: StreamEncoder | None = None
        self.cleanup_count = 0
        self._cleaned = False
        self._cleanup_lock = threading.Lock()
        self._abort = threading.Event()

    @property
    def accumulated_chunks(self) -> list[bytes]:
        return self.encoder.chunks if self.encoder is not None else []

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.RECORDING, SessionState.FINALIZING)

    def _check_support(self) -> None:
        render = getattr(self.surface, "render_snapshot", None)
        if not callable(render):
            raise CaptureUnsupported("Display surface cannot render snapshots")
        if not self.support_check():
            raise CaptureUnsupported("Stream encoding is not available in this environment")

    def _allocate(self) -> None:
        s = self.settings
        self.sampler = FrameSampler(
            surface=self.surface,
            width=s.width,
            height=s.height,
            fps=s.fps,
            duration=s.duration,
            clock=self.clock,
            sleep=self.sleep,
            max_consecutive_failures=s.max_consecutive_failures,
        )
        self.compositor = Compositor(
            width=s.width,
            height=s.height,
            preserve_transparency=s.preserve_transparency,
            background=parse_hex_color(s.background),
        )
        self.encoder = self.encoder_factory(
            width=s.width,
            height=s.height,
            fps=s.fps,
            preserve_transparency=s.preserve_transparency,
            min_artifact_bytes=s.min_artifact_bytes,
            session_id=self.session_id,
        )

    def _notify(self, callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("[%s] Recording callback %s failed", self.session_id, callback)

    def _check_aborted(self) -> None:
        if self._abort.is_set():
            raise CaptureAborted("Recording aborted by caller")

    def _begin(self) -> None:
        with self._cleanup_lock:
            if self.state is not SessionState.IDLE:
                raise CaptureStateError(f"Session {self.session_id} already ran ({self.state.value})")
            # Claimed under the lock: abort() only tears down sessions that never started.
            self.state = SessionState.RECORDING

    def run(self) -> RecordingOutcome:
        self._begin()

        started = self.clock()
        try:
            self._check_support()
            self._check_aborted()
            self._allocate()
            self.encoder.start()
            self._check_aborted()

            self.start_timestamp = self.wall_clock()
            logger.info(
                "[%s] Recording %dx%d at %g fps for %gs",
                self.session_id, self.settings.width, self.settings.height,
                self.settings.fps, self.settings.duration,
            )
            self._notify(self.callbacks.on_start)

            for snapshot in self.sampler.frames():
                self._check_aborted()
                frame = self.compositor.draw(snapshot)
                self.encoder.write(frame)
                self.frame_count += 1
            self._check_aborted()

            self.state = SessionState.FINALIZING
            artifact = self.encoder.finalize()
            self._check_aborted()
            self.sampler.finish()
            self.state = SessionState.DONE
        except CaptureError as exc:
            if self._abort.is_set() and not isinstance(exc, CaptureAborted):
                logger.info("[%s] %s after abort: %s", self.session_id, type(exc).__name__, exc)
                exc = CaptureAborted("Recording aborted by caller")
            return self._fail(exc, started)
        except Exception as exc:
            if self._abort.is_set():
                return self._fail(CaptureAborted("Recording aborted by caller"), started)
            logger.exception("[%s] Unexpected capture failure", self.session_id)
            return self._fail(EncodingFault(str(exc)), started)
        finally:
            self.cleanup()

        outcome = RecordingOutcome(
            session_id=self.session_id,
            frame_count=self.frame_count,
            artifact=artifact,
            filename=artifact_filename(self.start_timestamp),
            codec=self.encoder.codec,
            elapsed_seconds=self.clock() - started,
        )
        logger.info(
            "[%s] Recording finished: %d frames, %d bytes",
            self.session_id, self.frame_count, len(artifact),
        )
        self._notify(self.callbacks.on_finish, artifact)
        return outcome

    def _fail(self, exc: CaptureError, started: float) -> RecordingOutcome:
        self.state = SessionState.FAILED
        if self.sampler is not None and self.sampler.state not in (SamplerState.DONE, SamplerState.FAILED):
            self.sampler.fail()
        self.cleanup()
        logger.warning("[%s] Recording failed (%s): %s", self.session_id, exc.kind, exc)
        self._notify(self.callbacks.on_error, exc.kind)
        return RecordingOutcome(
            session_id=self.session_id,
            frame_count=self.frame_count,
            error_kind=exc.kind,
            error=str(exc),
            codec=self.encoder.codec if self.encoder is not None else None,
            elapsed_seconds=self.clock() - started,
        )

    def abort(self) -> None:
        """Stop the session.

        An idle session is torn down immediately and can no longer run. A
        running one has its encoder stopped, which also cancels a pending
        finalize; ``run()`` then reports ``capture_aborted``.
        """
        with self._cleanup_lock:
            self._abort.set()
            idle = self.state is SessionState.IDLE
            if idle:
                self.state = SessionState.FAILED
            encoder = self.encoder

        if idle:
            self.cleanup()
        elif encoder is not None and self.is_active:
            logger.info("[%s] Abort requested; stopping encoder", self.session_id)
            encoder.close()

    def cleanup(self) -> bool:
        """Release encoder, pipes and the accumulation surface.

        Returns True only for the first call. Releasing is idempotent per
        resource, so anything allocated after the first call is still freed
        by a later one.
        """
        with self._cleanup_lock:
            first = not self._cleaned
            self._cleaned = True
            encoder, compositor = self.encoder, self.compositor
        if first:
            self.cleanup_count += 1

        if encoder is not None:
            encoder.close()
        if compositor is not None:
            compositor.release()
        if first:
            logger.debug("[%s] Capture resources released", self.session_id)
        return first
