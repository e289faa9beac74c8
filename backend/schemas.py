"""
Pydantic models for API request/response validation.

Shape extraction returns normalized points; recordings take those points
back together with the styling of the word garden.
"""
from __future__ import annotations

import re
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

from common.settings import MAX_DURATION_SEC, MAX_TARGET_COUNT, MIN_DURATION_SEC, MIN_FPS
from scene.word_garden import DEFAULT_COLOR, DEFAULT_CUSTOM_COLORS, DEFAULT_WORDS

HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class PointModel(BaseModel):
    """A position inside the image, both axes in [0, 100]."""
    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)


class ShapeResponse(BaseModel):
    """Result of one shape extraction run."""
    internal_points: List[PointModel]
    contour_points: List[PointModel]
    width: int                     # Processed (resized) width in pixels
    height: int                    # Processed (resized) height in pixels
    edge_mode: str
    sampler: str
    visualization_png: str         # Base64 PNG of the binary mask
    no_shape_detected: bool
    stats: dict = Field(default_factory=dict)


class RecordingRequest(BaseModel):
    """Everything needed to lay out and record one word garden animation."""
    points: List[PointModel] = Field(min_length=1, max_length=MAX_TARGET_COUNT)
    words: List[str] = Field(default_factory=lambda: list(DEFAULT_WORDS))
    color_mode: Literal["single", "rainbow", "custom"] = "single"
    color: str = Field(default=DEFAULT_COLOR, pattern=HEX_COLOR)
    custom_colors: List[str] = Field(default_factory=lambda: list(DEFAULT_CUSTOM_COLORS))
    duration: float = Field(default=5.0, ge=MIN_DURATION_SEC, le=MAX_DURATION_SEC)
    fps: float = Field(default=30.0, ge=MIN_FPS, le=60)
    width: int = Field(default=800, gt=0, le=1920)
    height: int = Field(default=600, gt=0, le=1080)
    preserve_transparency: bool = False
    background: str = Field(default="#ffffff", pattern=HEX_COLOR)
    seed: int | None = None

    @field_validator("custom_colors")
    @classmethod
    def _colors_are_hex(cls, value: List[str]) -> List[str]:
        for color in value:
            if not re.fullmatch(HEX_COLOR, color):
                raise ValueError(f"Invalid colour '{color}', expected #rrggbb")
        return value
