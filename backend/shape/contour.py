"""
Moore-neighbour boundary tracing and polygon helpers.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

import numpy as np

from shape.config import DIRECTIONS, EAST, SCAN_OFFSET
from shape.types import BinaryMask, Point, Polygon

logger = logging.getLogger(__name__)


def _first_shape_pixel(shape: np.ndarray) -> Tuple[int, int] | None:
    flat = np.flatnonzero(shape)
    if flat.size == 0:
        return None
    y, x = divmod(int(flat[0]), shape.shape[1])
    return x, y


def trace_boundary(mask: BinaryMask) -> List[Tuple[int, int]]:
    """Walk the outer boundary of the first shape found in row-major order.

    Returns pixel coordinates in visiting order, each at most once. The walk
    stops when it returns to the start, when the current pixel has no shape
    neighbour, or when a (position, heading) state repeats.
    """
    shape = mask.shape_pixels
    start = _first_shape_pixel(shape)
    if start is None:
        return []

    height, width = shape.shape
    x, y = start
    heading = EAST
    path = [start]
    seen_pixels = {start}
    seen_states = {(start, heading)}

    while True:
        next_step = None
        # Moore backtrack: the clockwise scan starts 90 degrees left of the
        # heading, not straight ahead, so the walk hugs the outer boundary.
        for i in range(8):
            direction = (heading + SCAN_OFFSET + i) % 8
            dx, dy = DIRECTIONS[direction]
            nx, ny = x + dx, y + dy
            if 0 <= nx < width and 0 <= ny < height and shape[ny, nx]:
                next_step = (nx, ny, direction)
                break

        if next_step is None:
            break  # isolated pixel

        x, y, heading = next_step
        position = (x, y)
        if position == start:
            break
        state = (position, heading)
        if state in seen_states:
            logger.debug("Boundary walk revisited state %s; stopping", state)
            break
        seen_states.add(state)
        if position not in seen_pixels:
            seen_pixels.add(position)
            path.append(position)

    return path


def trace_contour(mask: BinaryMask) -> Polygon:
    """Ordered boundary polygon, normalized to [0, 100]. Empty when no shape exists."""
    return [Point.from_pixel(px, py, mask.width, mask.height) for px, py in trace_boundary(mask)]


def bounding_box(polygon: Iterable[Point]) -> Tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) of a non-empty polygon."""
    xs = [p.x for p in polygon]
    ys = [p.y for p in polygon]
    if not xs:
        raise ValueError("bounding_box requires at least one point")
    return min(xs), min(ys), max(xs), max(ys)


def point_in_polygon(x: float, y: float, polygon: Polygon) -> bool:
    """Ray casting: odd number of edge crossings along a horizontal ray means inside."""
    inside = False
    n = len(polygon)
    if n < 3:
        return False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i].x, polygon[i].y
        xj, yj = polygon[j].x, polygon[j].y
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside
