"""Animated scenes that can be recorded by a capture session."""

from .word_garden import (
    DEFAULT_COLOR,
    DEFAULT_CUSTOM_COLORS,
    DEFAULT_WORDS,
    WordGardenScene,
    WordToken,
    ease_out_quart,
)

__all__ = [
    "DEFAULT_COLOR",
    "DEFAULT_CUSTOM_COLORS",
    "DEFAULT_WORDS",
    "WordGardenScene",
    "WordToken",
    "ease_out_quart",
]
