"""
Luminance conversion stage.
"""
from __future__ import annotations

import numpy as np

from shape.config import LUMA_WEIGHTS, OPAQUE
from shape.types import PixelBuffer


def luminance(buffer: PixelBuffer) -> np.ndarray:
    """Return the (height, width) float luminance of an RGBA buffer."""
    rgb = buffer.data[..., :3].astype(np.float32)
    r_w, g_w, b_w = LUMA_WEIGHTS
    return r_w * rgb[..., 0] + g_w * rgb[..., 1] + b_w * rgb[..., 2]


def to_grayscale(buffer: PixelBuffer) -> PixelBuffer:
    """New buffer with R=G=B=luminance and A=255. The input is not modified."""
    gray = np.clip(np.rint(luminance(buffer)), 0, 255).astype(np.uint8)
    out = np.empty_like(buffer.data)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = OPAQUE
    return PixelBuffer(width=buffer.width, height=buffer.height, data=out)
