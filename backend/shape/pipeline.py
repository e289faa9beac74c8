"""
Shape extraction pipeline.

decode -> resize -> grayscale -> binary mask -> (contour) -> point sampling

Each run builds its own buffers; a pipeline instance only holds
configuration and can be reused for any number of images.
"""
from __future__ import annotations

import logging
import time
from typing import Optional

import cv2
import numpy as np

from common.settings import ShapeSettings, shape_settings
from shape.contour import trace_contour
from shape.edges import detect_edges
from shape.exceptions import ImageDecodeError
from shape.grayscale import to_grayscale
from shape.sampling import RejectionSampler, get_sampler
from shape.types import BinaryMask, PixelBuffer, ShapeExtractionResult

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> PixelBuffer:
    """Decode any OpenCV-readable image into an RGBA buffer.

    Transparent pixels are flattened onto white so they read as background.
    """
    if not data:
        raise ImageDecodeError("Empty image payload")
    try:
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    except cv2.error as exc:
        raise ImageDecodeError(f"Failed to decode image: {exc}") from exc
    if image is None or image.size == 0:
        raise ImageDecodeError("Failed to decode image: unsupported or corrupt data")

    if image.dtype == np.uint16:
        image = (image >> 8).astype(np.uint8)
    elif image.dtype != np.uint8:
        raise ImageDecodeError(f"Unsupported image depth: {image.dtype}")

    if image.ndim == 2:
        rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
    elif image.shape[2] == 3:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    elif image.shape[2] == 4:
        rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    else:
        raise ImageDecodeError(f"Unsupported channel count: {image.shape[2]}")

    return PixelBuffer.from_array(_flatten_alpha(rgba))


def _flatten_alpha(rgba: np.ndarray) -> np.ndarray:
    alpha = rgba[..., 3:4].astype(np.float32) / 255.0
    if np.all(alpha == 1.0):
        return rgba
    rgb = rgba[..., :3].astype(np.float32) * alpha + 255.0 * (1.0 - alpha)
    out = np.empty_like(rgba)
    out[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    out[..., 3] = 255
    return out


def fit_within(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Scale (width, height) so the longer side is at most max_dimension, keeping aspect ratio."""
    if width > height and width > max_dimension:
        height = max(1, int(height * (max_dimension / width)))
        width = max_dimension
    elif height > max_dimension:
        width = max(1, int(width * (max_dimension / height)))
        height = max_dimension
    return width, height


def resize_buffer(buffer: PixelBuffer, max_dimension: int) -> PixelBuffer:
    width, height = fit_within(buffer.width, buffer.height, max_dimension)
    if (width, height) == buffer.size:
        return buffer
    resized = cv2.resize(buffer.data, (width, height), interpolation=cv2.INTER_AREA)
    return PixelBuffer.from_array(resized)


def render_mask_png(mask: BinaryMask) -> bytes:
    """Encode the full binary mask as PNG for diagnostic display."""
    ok, encoded = cv2.imencode(".png", cv2.cvtColor(mask.data, cv2.COLOR_RGBA2BGRA))
    if not ok:
        raise RuntimeError("PNG encoding of mask preview failed")
    return encoded.tobytes()


class ShapeExtractionPipeline:
    """Turns an image into a bounded set of normalized points inside its dark shape."""

    def __init__(
        self,
        settings: ShapeSettings | None = None,
        edge_mode: str | None = None,
        sampler: str | None = None,
    ):
        self.settings = settings or shape_settings
        self.edge_mode = edge_mode or self.settings.edge_mode
        self.sampler_name = sampler or self.settings.sampler
        # Fail fast on unknown names.
        get_sampler(self.sampler_name)
        if self.edge_mode not in ("threshold", "gradient"):
            raise ValueError(f"Unknown edge mode '{self.edge_mode}'")

    def _build_sampler(self):
        if self.sampler_name == "rejection":
            return RejectionSampler(attempt_factor=self.settings.attempt_factor)
        return get_sampler(self.sampler_name)

    def _edge_threshold(self) -> float:
        if self.edge_mode == "gradient":
            return self.settings.gradient_threshold
        return self.settings.luminance_threshold

    def run(
        self,
        image_bytes: bytes,
        target_count: int | None = None,
        rng: Optional[np.random.Generator] = None,
    ) -> ShapeExtractionResult:
        buffer = decode_image(image_bytes)
        return self.run_buffer(buffer, target_count=target_count, rng=rng)

    def run_buffer(
        self,
        buffer: PixelBuffer,
        target_count: int | None = None,
        rng: Optional[np.random.Generator] = None,
    ) -> ShapeExtractionResult:
        start = time.perf_counter()
        count = target_count if target_count is not None else self.settings.target_count
        if count <= 0:
            raise ValueError("target_count must be positive")
        rng = rng if rng is not None else np.random.default_rng()

        working = resize_buffer(buffer, self.settings.max_dimension)
        gray = to_grayscale(working)
        mask = detect_edges(gray, self.edge_mode, self._edge_threshold())

        sampler = self._build_sampler()

        contour = []
        if sampler.requires_polygon:
            contour = trace_contour(mask)
            points = sampler.sample_polygon(contour, count, rng)
        else:
            points = sampler.sample(mask, count, rng)

        preview = render_mask_png(mask)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Shape extraction (%s/%s) on %dx%d: %d points, %d contour points in %.0fms",
            self.edge_mode, self.sampler_name, working.width, working.height,
            len(points), len(contour), elapsed_ms,
        )
        if not points:
            logger.info("No shape detected in %dx%d image", working.width, working.height)

        return ShapeExtractionResult(
            internal_points=tuple(points),
            contour_points=tuple(contour),
            visualization_png=preview,
            width=working.width,
            height=working.height,
            edge_mode=self.edge_mode,
            sampler=self.sampler_name,
            stats={
                "elapsed_ms": round(elapsed_ms, 1),
                "target_count": count,
                "source_width": buffer.width,
                "source_height": buffer.height,
                "attempts": getattr(sampler, "last_attempts", None),
            },
        )


def extract_shape(
    image_bytes: bytes,
    target_count: int | None = None,
    edge_mode: str | None = None,
    sampler: str | None = None,
    seed: int | None = None,
) -> ShapeExtractionResult:
    """Convenience wrapper: one pipeline, one run, optional seed."""
    pipeline = ShapeExtractionPipeline(edge_mode=edge_mode, sampler=sampler)
    return pipeline.run(image_bytes, target_count=target_count, rng=np.random.default_rng(seed))
