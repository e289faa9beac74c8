"""Custom exceptions for shape extraction."""


class ShapeExtractionError(Exception):
    """Base shape extraction exception."""


class ImageDecodeError(ShapeExtractionError):
    """Raised when the input bytes cannot be decoded into a raster image."""
