"""Shared test fixtures for backend tests.

Provides capture fixtures (fake FFmpeg, manual clock, display surface)
so tests run without an FFmpeg binary and without real-time waits, plus
small synthetic images for shape extraction.
"""
from __future__ import annotations

import functools

import numpy as np
import pytest
from fastapi.testclient import TestClient

from common.settings import CaptureSettings
from tests.fakes import encode_png


# ---------- Image fixtures ----------

@pytest.fixture()
def black_png() -> bytes:
    return encode_png(np.zeros((100, 100, 3), dtype=np.uint8))


@pytest.fixture()
def white_png() -> bytes:
    return encode_png(np.full((100, 100, 3), 255, dtype=np.uint8))


@pytest.fixture()
def square_png() -> bytes:
    """White 100x100 image with a black square covering x, y in [10, 90)."""
    image = np.full((100, 100, 3), 255, dtype=np.uint8)
    image[10:90, 10:90] = 0
    return encode_png(image)


# ---------- Capture fixtures ----------

@pytest.fixture()
def fake_ffmpeg(monkeypatch):
    """Patch StreamEncoder._spawn_process so no real FFmpeg subprocess is spawned."""
    from tests.fakes import FakeFFmpeg

    ffmpeg = FakeFFmpeg()
    monkeypatch.setattr(
        "capture.encoder.StreamEncoder._spawn_process",
        staticmethod(ffmpeg.spawn),
    )
    monkeypatch.setattr("capture.encoder.ffmpeg_available", lambda: True)
    monkeypatch.setattr("capture.session.ffmpeg_available", lambda: True)
    monkeypatch.setattr("capture.encoder._list_encoders", lambda: {"libvpx-vp9", "libvpx"})
    return ffmpeg


@pytest.fixture()
def clock():
    from tests.fakes import FakeClock

    return FakeClock()


@pytest.fixture()
def small_settings() -> CaptureSettings:
    return CaptureSettings(width=32, height=24, fps=4, duration=2, background="#ffffff")


@pytest.fixture()
def session_factory(fake_ffmpeg, clock, small_settings):
    """Build CaptureSessions on the manual clock with FFmpeg faked."""
    from capture import CaptureSession

    def _factory(surface, settings=None, **kwargs) -> CaptureSession:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("sleep", clock.sleep)
        kwargs.setdefault("wall_clock", lambda: 1700000000.0)
        return CaptureSession(surface, settings=settings or small_settings, **kwargs)

    return _factory


@pytest.fixture()
def api_client(fake_ffmpeg, clock):
    """TestClient for the full api.app with FFmpeg mocked and capture on the manual clock."""
    import api
    from capture import CaptureSession

    with TestClient(api.app) as c:
        api.capture_manager._session_factory = functools.partial(
            CaptureSession, clock=clock, sleep=clock.sleep
        )
        yield c
