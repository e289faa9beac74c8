"""Tests for compositing snapshots onto the session surface."""
from __future__ import annotations

import numpy as np
import pytest

from capture.compositor import Compositor, parse_hex_color
from capture.exceptions import CaptureStateError


def _frame(rgba, width=4, height=3) -> np.ndarray:
    frame = np.empty((height, width, 4), dtype=np.uint8)
    frame[...] = rgba
    return frame


class TestParseHexColor:
    def test_parse(self):
        assert parse_hex_color("#ff8000") == (255, 128, 0)
        assert parse_hex_color("00FF00") == (0, 255, 0)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_hex_color("#fff")


# ---------- Flattened output ----------

class TestFlatten:
    def test_transparent_snapshot_shows_background(self):
        comp = Compositor(4, 3, background=(10, 20, 30))
        out = comp.draw(_frame((200, 0, 0, 0)))
        assert np.all(out[..., :3] == (10, 20, 30))
        assert np.all(out[..., 3] == 255)

    def test_opaque_snapshot_copied(self):
        comp = Compositor(4, 3)
        out = comp.draw(_frame((1, 2, 3, 255)))
        assert np.all(out == (1, 2, 3, 255))

    def test_half_alpha_blends(self):
        comp = Compositor(4, 3, background=(255, 255, 255))
        out = comp.draw(_frame((0, 0, 0, 128)))
        assert np.all(np.abs(out[..., :3].astype(int) - 127) <= 1)

    def test_no_bleed_between_frames(self):
        comp = Compositor(4, 3, background=(255, 255, 255))
        comp.draw(_frame((255, 0, 0, 255)))
        out = comp.draw(_frame((0, 0, 0, 0)))
        assert np.all(out == 255)


# ---------- Preserved transparency ----------

class TestPreserveTransparency:
    def test_alpha_kept(self):
        comp = Compositor(4, 3, preserve_transparency=True)
        out = comp.draw(_frame((5, 6, 7, 40)))
        assert np.all(out == (5, 6, 7, 40))

    def test_cleared_between_frames(self):
        comp = Compositor(4, 3, preserve_transparency=True)
        comp.draw(_frame((255, 0, 0, 255)))
        out = comp.draw(_frame((0, 0, 0, 0)))
        assert np.all(out == 0)


# ---------- Input normalization ----------

class TestNormalize:
    def test_resizes_snapshot(self):
        comp = Compositor(8, 6)
        out = comp.draw(_frame((9, 9, 9, 255), width=16, height=12))
        assert out.shape == (6, 8, 4)
        assert np.all(out[..., :3] == 9)

    def test_rgb_snapshot_is_opaque(self):
        comp = Compositor(4, 3, preserve_transparency=True)
        out = comp.draw(np.full((3, 4, 3), 50, dtype=np.uint8))
        assert np.all(out[..., 3] == 255)

    def test_grayscale_snapshot(self):
        comp = Compositor(4, 3)
        out = comp.draw(np.full((3, 4), 70, dtype=np.uint8))
        assert np.all(out[..., :3] == 70)


# ---------- Release ----------

class TestRelease:
    def test_release_once(self):
        comp = Compositor(4, 3)
        assert comp.release() is True
        assert comp.released
        assert comp.release() is False

    def test_draw_after_release(self):
        comp = Compositor(4, 3)
        comp.release()
        with pytest.raises(CaptureStateError):
            comp.draw(_frame((0, 0, 0, 255)))
