"""
Point samplers that turn a shape mask into target positions.

Both samplers are deterministic in *where* they may place points and
stochastic in *which* positions they pick; the random source is injected
so callers can seed it.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List

import numpy as np

from shape.config import ATTEMPT_FACTOR, COORD_MAX, COORD_MIN, PAD_FRACTION
from shape.contour import bounding_box, point_in_polygon
from shape.types import BinaryMask, Point, Polygon

logger = logging.getLogger(__name__)


def grid_stride(width: int, height: int, target_count: int) -> int:
    return max(1, int(math.floor(math.sqrt(width * height / target_count))))


def random_points(count: int, rng: np.random.Generator) -> List[Point]:
    coords = rng.uniform(COORD_MIN, COORD_MAX, size=(count, 2))
    return [Point(x=float(x), y=float(y)) for x, y in coords]


@dataclass
class DirectSampler:
    """Grid-stride scan of shape pixels.

    Pads with uniform random points when fewer than half the requested
    count were found (but at least one), so the animation keeps enough
    tokens for thin shapes.
    """
    pad_fraction: float = PAD_FRACTION
    requires_polygon = False

    def sample(self, mask: BinaryMask, target_count: int, rng: np.random.Generator) -> List[Point]:
        if target_count <= 0:
            return []
        stride = grid_stride(mask.width, mask.height, target_count)
        grid = mask.shape_pixels[::stride, ::stride]
        rows, cols = np.nonzero(grid)
        found = rows.size

        if found > target_count:
            keep = np.sort(rng.choice(found, size=target_count, replace=False))
            rows, cols = rows[keep], cols[keep]

        points = [
            Point.from_pixel(int(c) * stride, int(r) * stride, mask.width, mask.height)
            for r, c in zip(rows, cols)
        ]

        if 0 < len(points) < target_count * self.pad_fraction:
            missing = target_count - len(points)
            logger.warning(
                "Only %d/%d shape points found (stride %d); padding with %d random points",
                len(points), target_count, stride, missing,
            )
            points.extend(random_points(missing, rng))
        return points


@dataclass
class RejectionSampler:
    """Uniform sampling inside the contour's bounding box, kept when inside the contour."""
    attempt_factor: int = ATTEMPT_FACTOR
    requires_polygon = True

    def __post_init__(self) -> None:
        self.last_attempts = 0

    def sample_polygon(self, polygon: Polygon, target_count: int, rng: np.random.Generator) -> List[Point]:
        self.last_attempts = 0
        if target_count <= 0 or not polygon:
            return []

        min_x, min_y, max_x, max_y = bounding_box(polygon)
        max_attempts = self.attempt_factor * target_count
        accepted: List[Point] = []

        while len(accepted) < target_count and self.last_attempts < max_attempts:
            self.last_attempts += 1
            x = float(rng.uniform(min_x, max_x))
            y = float(rng.uniform(min_y, max_y))
            if point_in_polygon(x, y, polygon):
                accepted.append(Point(x=x, y=y))

        if len(accepted) < target_count:
            logger.info(
                "Rejection sampling accepted %d/%d points after %d attempts",
                len(accepted), target_count, self.last_attempts,
            )
        return accepted


SAMPLERS = {
    "direct": DirectSampler,
    "rejection": RejectionSampler,
}


def get_sampler(name: str, **kwargs):
    try:
        return SAMPLERS[name](**kwargs)
    except KeyError:
        raise ValueError(f"Unknown sampler '{name}' (expected one of {sorted(SAMPLERS)})") from None
