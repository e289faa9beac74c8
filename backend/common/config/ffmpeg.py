"""FFmpeg encoding configuration for recorded animations."""
from __future__ import annotations

import os


def _truthy(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


CAPTURE_ENABLED = _truthy(os.getenv("CAPTURE_ENABLED"), default=True)

FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")
FFMPEG_CODEC = os.getenv("FFMPEG_CODEC", "auto").strip().lower()
FFMPEG_VIDEO_BITRATE = os.getenv("FFMPEG_VIDEO_BITRATE", "2M").strip()
FFMPEG_DEADLINE = os.getenv("FFMPEG_DEADLINE", "realtime").strip()
FFMPEG_CPU_USED = int(os.getenv("FFMPEG_CPU_USED", "8"))
FFMPEG_FINALIZE_TIMEOUT_SEC = float(os.getenv("FFMPEG_FINALIZE_TIMEOUT_SEC", "30"))
FFMPEG_READ_CHUNK_BYTES = int(os.getenv("FFMPEG_READ_CHUNK_BYTES", "65536"))
