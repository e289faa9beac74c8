"""Draws captured snapshots onto the session's accumulation surface."""
from __future__ import annotations

import logging

import cv2
import numpy as np

from capture.exceptions import CaptureStateError

logger = logging.getLogger(__name__)


def parse_hex_color(value: str) -> tuple[int, int, int]:
    raw = value.strip().lstrip("#")
    if len(raw) != 6:
        raise ValueError(f"Expected #rrggbb colour, got '{value}'")
    return int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16)


class Compositor:
    """Owns one RGBA surface for the lifetime of a capture session.

    The surface is reset before every draw. With ``preserve_transparency``
    it is cleared to fully transparent and the snapshot is copied as is;
    otherwise it is flattened onto an opaque background colour.
    """

    def __init__(
        self,
        width: int,
        height: int,
        preserve_transparency: bool = False,
        background: tuple[int, int, int] = (255, 255, 255),
    ):
        self.width = width
        self.height = height
        self.preserve_transparency = preserve_transparency
        self.background = background
        self._surface: np.ndarray | None = np.zeros((height, width, 4), dtype=np.uint8)

    @property
    def released(self) -> bool:
        return self._surface is None

    def _normalize(self, snapshot: np.ndarray) -> np.ndarray:
        if snapshot.ndim == 2:
            snapshot = cv2.cvtColor(snapshot, cv2.COLOR_GRAY2RGBA)
        elif snapshot.shape[2] == 3:
            snapshot = cv2.cvtColor(snapshot, cv2.COLOR_RGB2RGBA)
        if snapshot.shape[:2] != (self.height, self.width):
            snapshot = cv2.resize(snapshot, (self.width, self.height), interpolation=cv2.INTER_LINEAR)
        return snapshot.astype(np.uint8, copy=False)

    def draw(self, snapshot: np.ndarray) -> np.ndarray:
        """Composite one snapshot and return the surface (valid until the next draw)."""
        if self._surface is None:
            raise CaptureStateError("Compositor surface already released")
        frame = self._normalize(snapshot)
        surface = self._surface

        if self.preserve_transparency:
            surface.fill(0)
            surface[...] = frame
            return surface

        surface[..., :3] = self.background
        surface[..., 3] = 255
        alpha = frame[..., 3:4].astype(np.float32) / 255.0
        blended = frame[..., :3].astype(np.float32) * alpha + surface[..., :3].astype(np.float32) * (1.0 - alpha)
        surface[..., :3] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
        return surface

    def release(self) -> bool:
        """Drop the surface. Returns False if it was already released."""
        if self._surface is None:
            return False
        self._surface = None
        logger.debug("Compositor surface %dx%d released", self.width, self.height)
        return True
