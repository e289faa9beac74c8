"""Fixed-rate snapshot loop gated on a wall-clock deadline."""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterator

import numpy as np

from capture.exceptions import CaptureStateError, EncodingFault
from capture.types import DisplaySurface, SamplerState

logger = logging.getLogger(__name__)

_TERMINAL = {SamplerState.DONE, SamplerState.FAILED}


class FrameSampler:
    """Captures the Display Surface once per tick until ``duration`` seconds have elapsed.

    Elapsed time is the source of truth: a slow snapshot just means fewer
    frames, never a longer recording. Ticks are strictly sequential, so a
    capture only starts after the previous one has returned.
    """

    def __init__(
        self,
        surface: DisplaySurface,
        width: int,
        height: int,
        fps: float,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        max_consecutive_failures: int = 0,
    ):
        if fps <= 0:
            raise ValueError("fps must be positive")
        if duration <= 0:
            raise ValueError("duration must be positive")
        self.surface = surface
        self.width = width
        self.height = height
        self.fps = fps
        self.duration = duration
        self.clock = clock
        self.sleep = sleep
        self.max_consecutive_failures = max_consecutive_failures
        self.state = SamplerState.IDLE
        self.frame_count = 0
        self.started_at: float | None = None
        self._capturing = False
        self._consecutive_failures = 0

    @property
    def interval(self) -> float:
        return 1.0 / self.fps

    def _transition(self, expected: SamplerState, target: SamplerState) -> None:
        if self.state is not expected:
            raise CaptureStateError(
                f"Cannot move sampler to {target.value} from {self.state.value}"
            )
        logger.debug("Sampler %s -> %s", self.state.value, target.value)
        self.state = target

    def arm(self) -> None:
        self._transition(SamplerState.IDLE, SamplerState.ARMED)

    def start(self) -> None:
        self._transition(SamplerState.ARMED, SamplerState.SAMPLING)
        self.started_at = self.clock()

    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self.clock() - self.started_at

    def tick(self) -> np.ndarray | None:
        """Run one tick. Returns a snapshot, or None when no frame was produced.

        Reaching the deadline moves the sampler to DRAINING. A snapshot
        failure beyond the tolerated streak moves it to FAILED and raises
        EncodingFault.
        """
        if self.state is not SamplerState.SAMPLING:
            raise CaptureStateError(f"Cannot tick sampler in state {self.state.value}")
        if self.elapsed() >= self.duration:
            self.state = SamplerState.DRAINING
            logger.info(
                "Capture deadline reached after %.2fs with %d frames",
                self.elapsed(), self.frame_count,
            )
            return None
        if self._capturing:
            raise CaptureStateError("Snapshot requested while the previous one is still running")

        self._capturing = True
        try:
            snapshot = self.surface.render_snapshot(self.width, self.height)
        except Exception as exc:
            self._consecutive_failures += 1
            if self._consecutive_failures > self.max_consecutive_failures:
                self.fail()
                raise EncodingFault(
                    f"Snapshot capture failed after {self._consecutive_failures} attempt(s): {exc}"
                ) from exc
            logger.warning(
                "Snapshot capture failed (%d/%d tolerated): %s",
                self._consecutive_failures, self.max_consecutive_failures, exc,
            )
            return None
        finally:
            self._capturing = False

        self._consecutive_failures = 0
        self.frame_count += 1
        return snapshot

    def frames(self) -> Iterator[np.ndarray]:
        """Self-rescheduling tick loop; yields each snapshot until the deadline."""
        if self.state is SamplerState.IDLE:
            self.arm()
        if self.state is SamplerState.ARMED:
            self.start()

        next_tick = self.started_at if self.started_at is not None else self.clock()
        while self.state is SamplerState.SAMPLING:
            snapshot = self.tick()
            if snapshot is not None:
                yield snapshot
            if self.state is not SamplerState.SAMPLING:
                break

            next_tick += self.interval
            delay = next_tick - self.clock()
            if delay > 0:
                self.sleep(delay)
            elif delay < -(self.interval * 3):
                # Reset schedule if heavily behind to avoid unbounded drift accumulation.
                next_tick = self.clock()

    def finish(self) -> None:
        self._transition(SamplerState.DRAINING, SamplerState.DONE)

    def fail(self) -> None:
        if self.state in _TERMINAL:
            return
        logger.debug("Sampler %s -> failed", self.state.value)
        self.state = SamplerState.FAILED
