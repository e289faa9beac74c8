"""
Binary shape mask from a grayscale raster.

Two interchangeable strategies:
- threshold: dark pixels (luminance below the threshold) are shape.
- gradient: Sobel gradient magnitude above the threshold is shape; the
  one-pixel border has no defined gradient and stays background.
"""
from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from shape.config import GRADIENT_THRESHOLD, LUMINANCE_THRESHOLD
from shape.types import BinaryMask, PixelBuffer


def threshold_mask(gray: PixelBuffer, threshold: float = LUMINANCE_THRESHOLD) -> BinaryMask:
    values = gray.data[..., 0]
    return BinaryMask.from_bool(values < threshold)


def sobel_magnitude(values: np.ndarray) -> np.ndarray:
    """Gradient magnitude for interior pixels; border entries are zero."""
    p = values.astype(np.float32)
    height, width = p.shape
    magnitude = np.zeros((height, width), dtype=np.float32)
    if height < 3 or width < 3:
        return magnitude

    top_left, top, top_right = p[:-2, :-2], p[:-2, 1:-1], p[:-2, 2:]
    left, right = p[1:-1, :-2], p[1:-1, 2:]
    bottom_left, bottom, bottom_right = p[2:, :-2], p[2:, 1:-1], p[2:, 2:]

    gx = (top_right + 2.0 * right + bottom_right) - (top_left + 2.0 * left + bottom_left)
    gy = (bottom_left + 2.0 * bottom + bottom_right) - (top_left + 2.0 * top + top_right)
    magnitude[1:-1, 1:-1] = np.sqrt(gx * gx + gy * gy)
    return magnitude


def gradient_mask(gray: PixelBuffer, threshold: float = GRADIENT_THRESHOLD) -> BinaryMask:
    magnitude = sobel_magnitude(gray.data[..., 0])
    return BinaryMask.from_bool(magnitude > threshold)


EDGE_MODES: Dict[str, Callable[..., BinaryMask]] = {
    "threshold": threshold_mask,
    "gradient": gradient_mask,
}


def detect_edges(gray: PixelBuffer, mode: str = "threshold", threshold: float | None = None) -> BinaryMask:
    try:
        strategy = EDGE_MODES[mode]
    except KeyError:
        raise ValueError(f"Unknown edge mode '{mode}' (expected one of {sorted(EDGE_MODES)})") from None
    if threshold is None:
        return strategy(gray)
    return strategy(gray, threshold)
