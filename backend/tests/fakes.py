"""Shared test doubles for capture tests.

Provides FakePopen (mimics subprocess.Popen for ffmpeg), FakeFFmpeg (a
spawner that hands out FakePopens), FakeClock (manual monotonic clock)
and FakeSurface (a display surface) so tests run without an FFmpeg
binary and without waiting on the wall clock.
"""
from __future__ import annotations

import io

import cv2
import numpy as np


def encode_png(image: np.ndarray) -> bytes:
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()


# EBML magic followed by padding: large enough to clear the artifact floor.
FAKE_WEBM = b"\x1a\x45\xdf\xa3" + b"\x00" * 4092


class FakeStdin:
    """Writable pipe that keeps everything written to it."""

    def __init__(self, broken: bool = False):
        self.chunks: list[bytes] = []
        self.closed = False
        self.broken = broken

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed pipe")
        if self.broken:
            raise BrokenPipeError("Broken pipe")
        self.chunks.append(data)
        return len(data)

    def close(self):
        self.closed = True

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)


class FakePopen:
    """Mimics subprocess.Popen for FFmpeg processes."""

    _next_pid = 60000

    def __init__(
        self,
        output: bytes = FAKE_WEBM,
        stderr: bytes = b"",
        returncode: int = 0,
        broken_stdin: bool = False,
    ):
        type(self)._next_pid += 1
        self.pid = type(self)._next_pid
        self.stdin = FakeStdin(broken=broken_stdin)
        self.stdout = io.BytesIO(output)
        self.stderr = io.BytesIO(stderr)
        self._final_returncode = returncode
        self._alive = True
        self.returncode: int | None = None
        self.terminate_calls = 0
        self.kill_calls = 0

    def poll(self) -> int | None:
        if self._alive:
            return None
        return self.returncode

    def wait(self, timeout=None):
        if self._alive:
            self._alive = False
            self.returncode = self._final_returncode
        return self.returncode

    def terminate(self):
        self.terminate_calls += 1
        if self._alive:
            self._alive = False
            self.returncode = -15

    def kill(self):
        self.kill_calls += 1
        self._alive = False
        self.returncode = -9

    def die(self, returncode: int = 1):
        """Simulate FFmpeg crash."""
        self._alive = False
        self.returncode = returncode


class FakeFFmpeg:
    """Stands in for StreamEncoder._spawn_process; records every command."""

    def __init__(self):
        self.popens: list[FakePopen] = []
        self.commands: list[list[str]] = []
        self.output = FAKE_WEBM
        self.stderr = b""
        self.returncode = 0
        self.broken_stdin = False

    def spawn(self, cmd: list[str]) -> FakePopen:
        popen = FakePopen(
            output=self.output,
            stderr=self.stderr,
            returncode=self.returncode,
            broken_stdin=self.broken_stdin,
        )
        self.commands.append(list(cmd))
        self.popens.append(popen)
        return popen

    @property
    def last(self) -> FakePopen:
        return self.popens[-1]


class FakeClock:
    """Manual monotonic clock. ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSurface:
    """Display surface returning a solid RGBA frame.

    ``cost`` advances the clock on every snapshot to simulate slow rendering.
    ``fail_on`` holds 1-based call numbers that raise.
    """

    def __init__(
        self,
        clock: FakeClock | None = None,
        cost: float = 0.0,
        color: tuple[int, int, int, int] = (10, 20, 30, 255),
        fail_on: set[int] | None = None,
    ):
        self.clock = clock
        self.cost = cost
        self.color = color
        self.fail_on = fail_on or set()
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    def render_snapshot(self, width: int, height: int) -> np.ndarray:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.clock is not None and self.cost:
                self.clock.advance(self.cost)
            if self.calls in self.fail_on:
                raise RuntimeError(f"snapshot {self.calls} failed")
            frame = np.empty((height, width, 4), dtype=np.uint8)
            frame[...] = self.color
            return frame
        finally:
            self.in_flight -= 1
