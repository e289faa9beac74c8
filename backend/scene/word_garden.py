"""
Word Garden scene.

Each word flies in from a ring outside the canvas and settles on one of the
extracted shape points. The scene renders its live state to an RGBA bitmap,
so it can be used directly as the display surface of a capture session.
"""
from __future__ import annotations

import colorsys
import logging
import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional, Sequence

import cv2
import numpy as np

from shape.types import Point

logger = logging.getLogger(__name__)

ColorMode = Literal["single", "rainbow", "custom"]

# Hershey fonts are ASCII only.
DEFAULT_WORDS = [
    "health", "serenity", "happiness", "love", "success", "joy", "abundance",
    "wisdom", "strength", "creativity", "generosity", "smile", "hope",
    "patience", "faith", "lightness", "harmony", "fulfillment", "confidence",
    "calm", "friendship", "family", "truth", "learning", "curiosity",
    "freedom", "pleasure", "humility",
]
DEFAULT_CUSTOM_COLORS = ["#FF5733", "#33FF57", "#3357FF", "#FF33F5", "#F5FF33"]
DEFAULT_COLOR = "#90ee90"

FONT = cv2.FONT_HERSHEY_SIMPLEX
FONT_BASE_PX = 22.0  # cap height of FONT at scale 1.0
EDGE_MARGIN_PX = 5.0
JITTER_PX = 5.0
START_SCALE = 0.1
PEAK_OPACITY = 0.85
DELAY_FRACTION = 0.6
FADE_FRACTION = 0.6
GOLDEN_ANGLE_DEG = 137.508


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    raw = value.strip().lstrip("#")
    try:
        return int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16)
    except ValueError:
        logger.warning("Invalid colour '%s', using default", value)
        return hex_to_rgb(DEFAULT_COLOR)


def ease_out_quart(t: float) -> float:
    t = min(max(t, 0.0), 1.0)
    return 1.0 - (1.0 - t) ** 4


@dataclass
class WordToken:
    word: str
    initial_x: float
    initial_y: float
    target_x: float
    target_y: float
    delay: float
    font_px: float
    final_scale: float
    color: tuple[int, int, int]
    alpha: float

    def progress(self, elapsed: float, duration: float) -> float:
        return ease_out_quart((elapsed - self.delay) / duration)

    def position(self, elapsed: float, duration: float) -> tuple[float, float]:
        p = self.progress(elapsed, duration)
        return (
            self.initial_x + (self.target_x - self.initial_x) * p,
            self.initial_y + (self.target_y - self.initial_y) * p,
        )

    def scale(self, elapsed: float, duration: float) -> float:
        p = self.progress(elapsed, duration)
        return START_SCALE + (self.final_scale - START_SCALE) * p

    def opacity(self, elapsed: float, duration: float) -> float:
        fade = ease_out_quart((elapsed - self.delay) / (duration * FADE_FRACTION))
        return PEAK_OPACITY * fade * self.alpha


class WordGardenScene:
    """Animated word cloud that converges onto a point set."""

    def __init__(
        self,
        points: Sequence[Point],
        width: int,
        height: int,
        duration: float,
        words: Sequence[str] | None = None,
        color_mode: ColorMode = "single",
        color: str = DEFAULT_COLOR,
        custom_colors: Sequence[str] | None = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if width <= 0 or height <= 0:
            raise ValueError("Scene size must be positive")
        if duration <= 0:
            raise ValueError("duration must be positive")
        self.points = list(points)
        self.width = width
        self.height = height
        self.duration = duration
        self.words = [w for w in (words or DEFAULT_WORDS) if w.strip()] or list(DEFAULT_WORDS)
        self.color_mode = color_mode
        self.color = color
        self.custom_colors = list(custom_colors) if custom_colors is not None else list(DEFAULT_CUSTOM_COLORS)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.clock = clock
        self.started_at = clock()
        self.tokens = self._layout()

    def _color_for(self, index: int) -> tuple[tuple[int, int, int], float]:
        alpha = 0.7 + self.rng.random() * 0.3
        if self.color_mode == "rainbow":
            hue = (index * GOLDEN_ANGLE_DEG) % 360
            r, g, b = colorsys.hls_to_rgb(hue / 360.0, 0.6, 0.7)
            return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255))), alpha
        if self.color_mode == "custom" and self.custom_colors:
            return hex_to_rgb(self.custom_colors[index % len(self.custom_colors)]), alpha
        return hex_to_rgb(self.color), alpha

    def _layout(self) -> list[WordToken]:
        w, h = self.width, self.height
        tokens = []
        for i, point in enumerate(self.points):
            angle = self.rng.random() * np.pi * 2
            radius = max(w, h) * (0.6 + self.rng.random() * 0.3)
            jitter_x = (self.rng.random() - 0.5) * JITTER_PX
            jitter_y = (self.rng.random() - 0.5) * JITTER_PX
            target_x = min(max(point.x / 100 * w + jitter_x, EDGE_MARGIN_PX), w - EDGE_MARGIN_PX)
            target_y = min(max(point.y / 100 * h + jitter_y, EDGE_MARGIN_PX), h - EDGE_MARGIN_PX)
            font_px = 9 + self.rng.random() * 8
            final_scale = 0.65 + self.rng.random() * 0.3
            delay = self.rng.random() * self.duration * DELAY_FRACTION
            color, alpha = self._color_for(i)
            tokens.append(WordToken(
                word=self.words[i % len(self.words)],
                initial_x=w / 2 + np.cos(angle) * radius,
                initial_y=h / 2 + np.sin(angle) * radius,
                target_x=target_x,
                target_y=target_y,
                delay=delay,
                font_px=font_px,
                final_scale=final_scale,
                color=color,
                alpha=alpha,
            ))
        logger.info("Laid out %d words on %dx%d canvas", len(tokens), w, h)
        return tokens

    def restart(self) -> None:
        self.started_at = self.clock()

    def elapsed(self) -> float:
        return self.clock() - self.started_at

    def render_snapshot(self, width: int, height: int) -> np.ndarray:
        """Render the current frame as an RGBA array of shape (height, width, 4)."""
        elapsed = self.elapsed()
        sx = width / self.width
        sy = height / self.height
        # Premultiplied colour and coverage, composited back to front.
        color = np.zeros((height, width, 3), dtype=np.float32)
        alpha = np.zeros((height, width), dtype=np.float32)

        for token in self.tokens:
            opacity = token.opacity(elapsed, self.duration)
            if opacity <= 0:
                continue
            x, y = token.position(elapsed, self.duration)
            font_scale = token.font_px * token.scale(elapsed, self.duration) * min(sx, sy) / FONT_BASE_PX
            self._draw_word(color, alpha, token, x * sx, y * sy, font_scale, opacity)

        out = np.zeros((height, width, 4), dtype=np.uint8)
        covered = alpha > 0
        out[..., :3][covered] = np.clip(
            np.rint(color[covered] / alpha[covered, None]), 0, 255
        ).astype(np.uint8)
        out[..., 3] = np.clip(np.rint(alpha * 255), 0, 255).astype(np.uint8)
        return out

    @staticmethod
    def _draw_word(
        color: np.ndarray,
        alpha: np.ndarray,
        token: WordToken,
        cx: float,
        cy: float,
        font_scale: float,
        opacity: float,
    ) -> None:
        height, width = alpha.shape
        thickness = 1
        (tw, th), baseline = cv2.getTextSize(token.word, FONT, font_scale, thickness)
        # Text is centred on its point.
        x0 = int(round(cx - tw / 2))
        y0 = int(round(cy - (th + baseline) / 2))
        x1, y1 = x0 + tw + 2, y0 + th + baseline + 2
        cx0, cy0 = max(x0, 0), max(y0, 0)
        cx1, cy1 = min(x1, width), min(y1, height)
        if cx0 >= cx1 or cy0 >= cy1:
            return

        layer = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
        cv2.putText(layer, token.word, (1, th + 1), FONT, font_scale, 255, thickness, cv2.LINE_AA)
        coverage = layer[cy0 - y0:cy1 - y0, cx0 - x0:cx1 - x0].astype(np.float32) / 255.0 * opacity

        region_alpha = alpha[cy0:cy1, cx0:cx1]
        region_color = color[cy0:cy1, cx0:cx1]
        rgb = np.asarray(token.color, dtype=np.float32)
        region_color *= (1.0 - coverage)[..., None]
        region_color += coverage[..., None] * rgb
        region_alpha *= 1.0 - coverage
        region_alpha += coverage
