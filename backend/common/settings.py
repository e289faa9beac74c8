"""
Shared runtime settings for shape extraction and capture.
"""
from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from common.config import paths  # noqa: F401  (loads .env before the defaults below are read)

EdgeMode = Literal["threshold", "gradient"]
SamplerName = Literal["direct", "rejection"]

MIN_TARGET_COUNT = 1
MAX_TARGET_COUNT = 2000
MIN_DURATION_SEC = 2.0
MAX_DURATION_SEC = 10.0
MIN_FPS = 1.0
MAX_FPS = 120.0


class ShapeSettings(BaseModel):
    max_dimension: int = Field(default_factory=lambda: int(os.getenv("SHAPE_MAX_DIMENSION", "800")), gt=0)
    target_count: int = Field(
        default_factory=lambda: int(os.getenv("SHAPE_TARGET_COUNT", "500")),
        ge=MIN_TARGET_COUNT,
        le=MAX_TARGET_COUNT,
    )
    edge_mode: EdgeMode = Field(default_factory=lambda: os.getenv("SHAPE_EDGE_MODE", "threshold").strip().lower())
    sampler: SamplerName = Field(default_factory=lambda: os.getenv("SHAPE_SAMPLER", "direct").strip().lower())
    luminance_threshold: int = 128
    gradient_threshold: float = 40.0
    attempt_factor: int = 10


class CaptureSettings(BaseModel):
    width: int = Field(default_factory=lambda: int(os.getenv("CAPTURE_WIDTH", "800")), gt=0)
    height: int = Field(default_factory=lambda: int(os.getenv("CAPTURE_HEIGHT", "600")), gt=0)
    fps: float = Field(default_factory=lambda: float(os.getenv("CAPTURE_FPS", "30")), ge=MIN_FPS, le=MAX_FPS)
    duration: float = Field(default_factory=lambda: float(os.getenv("CAPTURE_DURATION", "5")))
    preserve_transparency: bool = False
    background: str = Field(default="#ffffff", pattern=r"^#[0-9a-fA-F]{6}$")
    min_artifact_bytes: int = Field(default_factory=lambda: int(os.getenv("CAPTURE_MIN_ARTIFACT_BYTES", "1024")))
    max_consecutive_failures: int = Field(default=0, ge=0)

    @field_validator("duration")
    @classmethod
    def _duration_in_range(cls, value: float) -> float:
        if not MIN_DURATION_SEC <= value <= MAX_DURATION_SEC:
            raise ValueError(
                f"duration must be between {MIN_DURATION_SEC:g} and {MAX_DURATION_SEC:g} seconds"
            )
        return value

    @property
    def frame_budget(self) -> int:
        """Soft target for the number of frames; wall-clock time stays authoritative."""
        return int(round(self.fps * self.duration))


shape_settings = ShapeSettings()
capture_settings = CaptureSettings()
