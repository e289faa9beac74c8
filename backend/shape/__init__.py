"""Shape extraction pipeline: image in, normalized point field out."""

from .exceptions import ImageDecodeError, ShapeExtractionError
from .pipeline import ShapeExtractionPipeline, extract_shape
from .types import BinaryMask, PixelBuffer, Point, Polygon, ShapeExtractionResult

__all__ = [
    "BinaryMask",
    "ImageDecodeError",
    "PixelBuffer",
    "Point",
    "Polygon",
    "ShapeExtractionError",
    "ShapeExtractionPipeline",
    "ShapeExtractionResult",
    "extract_shape",
]
