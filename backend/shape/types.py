"""
Internal data structures for the shape extraction pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from shape.config import BACKGROUND_VALUE, COORD_MAX, COORD_MIN, OPAQUE, SHAPE_VALUE


@dataclass(frozen=True)
class Point:
    """Position within the source raster, each axis normalized to [0, 100]."""
    x: float
    y: float

    @classmethod
    def from_pixel(cls, px: float, py: float, width: int, height: int) -> "Point":
        x = px / width * COORD_MAX
        y = py / height * COORD_MAX
        return cls(x=_clamp(x), y=_clamp(y))

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


Polygon = List[Point]


def _clamp(value: float) -> float:
    return min(COORD_MAX, max(COORD_MIN, float(value)))


@dataclass
class PixelBuffer:
    """Dense row-major RGBA raster, 8 bits per channel."""
    width: int
    height: int
    data: np.ndarray  # (height, width, 4) uint8

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("PixelBuffer dimensions must be positive")
        if self.data.shape != (self.height, self.width, 4):
            raise ValueError(
                f"PixelBuffer data shape {self.data.shape} does not match "
                f"{self.width}x{self.height}x4"
            )
        if self.data.dtype != np.uint8:
            raise ValueError("PixelBuffer data must be uint8")

    @classmethod
    def from_array(cls, rgba: np.ndarray) -> "PixelBuffer":
        height, width = rgba.shape[:2]
        return cls(width=width, height=height, data=np.ascontiguousarray(rgba, dtype=np.uint8))

    @classmethod
    def filled(cls, width: int, height: int, rgba: Tuple[int, int, int, int]) -> "PixelBuffer":
        data = np.empty((height, width, 4), dtype=np.uint8)
        data[:, :] = rgba
        return cls(width=width, height=height, data=data)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(width=self.width, height=self.height, data=self.data.copy())


class BinaryMask(PixelBuffer):
    """PixelBuffer whose pixels are exactly shape (0,0,0,255) or background (255,255,255,255)."""

    @classmethod
    def from_bool(cls, shape: np.ndarray) -> "BinaryMask":
        height, width = shape.shape
        data = np.full((height, width, 4), BACKGROUND_VALUE, dtype=np.uint8)
        data[shape, :3] = SHAPE_VALUE
        data[..., 3] = OPAQUE
        return cls(width=width, height=height, data=data)

    @property
    def shape_pixels(self) -> np.ndarray:
        """Boolean (height, width) view: True where the pixel is shape."""
        return self.data[..., 0] == SHAPE_VALUE

    def is_empty(self) -> bool:
        return not bool(self.shape_pixels.any())


@dataclass(frozen=True)
class ShapeExtractionResult:
    """Outcome of one pipeline run; superseded as a whole by the next upload."""
    internal_points: Tuple[Point, ...]
    contour_points: Tuple[Point, ...]
    visualization_png: bytes
    width: int
    height: int
    edge_mode: str = "threshold"
    sampler: str = "direct"
    stats: dict = field(default_factory=dict, compare=False)

    @property
    def no_shape_detected(self) -> bool:
        return len(self.internal_points) == 0
