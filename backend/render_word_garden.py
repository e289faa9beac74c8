"""
Render a word garden video from an image, without the HTTP server.

    python render_word_garden.py heart.png --points 800 --duration 6 --seed 7
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np

from capture import CaptureManager, RecordingCallbacks
from common.config import ARTIFACT_PREFIX, OUTPUT_DIR, PREVIEW_EXTENSION
from common.settings import (
    MAX_DURATION_SEC,
    MAX_FPS,
    MAX_TARGET_COUNT,
    MIN_DURATION_SEC,
    MIN_FPS,
    MIN_TARGET_COUNT,
    CaptureSettings,
    capture_settings,
    shape_settings,
)
from scene import WordGardenScene
from shape import ImageDecodeError, ShapeExtractionPipeline

logger = logging.getLogger("render_word_garden")


def _bounded(kind, low, high):
    def parse(raw: str):
        value = kind(raw)
        if not low <= value <= high:
            raise argparse.ArgumentTypeError(f"must be between {low:g} and {high:g}")
        return value
    return parse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract the dark shape of an image and record a word garden animation of it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Defaults: threshold edges, direct sampling, 500 words, 5 seconds
  python render_word_garden.py logo.png

  # Outline-based sampling on a photo, with the edge preview written next to it
  python render_word_garden.py photo.jpg --edge-mode gradient --sampler rejection --preview mask.png
        """,
    )
    parser.add_argument("image", help="Input image path")
    parser.add_argument("--out", default=None,
                        help=f"Output video path (default: {OUTPUT_DIR}/{ARTIFACT_PREFIX}-<ms>.webm)")
    parser.add_argument("--points", type=_bounded(int, MIN_TARGET_COUNT, MAX_TARGET_COUNT),
                        default=shape_settings.target_count,
                        help=f"Number of words to place (default: {shape_settings.target_count})")
    parser.add_argument("--duration", type=_bounded(float, MIN_DURATION_SEC, MAX_DURATION_SEC),
                        default=capture_settings.duration,
                        help=f"Animation length in seconds (default: {capture_settings.duration:g})")
    parser.add_argument("--fps", type=_bounded(float, MIN_FPS, MAX_FPS), default=capture_settings.fps,
                        help=f"Frame rate (default: {capture_settings.fps:g})")
    parser.add_argument("--edge-mode", choices=["threshold", "gradient"], default=shape_settings.edge_mode,
                        help=f"Edge detector (default: {shape_settings.edge_mode})")
    parser.add_argument("--sampler", choices=["direct", "rejection"], default=shape_settings.sampler,
                        help=f"Point sampler (default: {shape_settings.sampler})")
    parser.add_argument("--color-mode", choices=["single", "rainbow", "custom"], default="single",
                        help="Word colouring (default: single)")
    parser.add_argument("--transparent", action="store_true",
                        help="Keep the background transparent instead of flattening onto white")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")
    parser.add_argument("--preview", default=None,
                        help=f"Also write the edge mask as .{PREVIEW_EXTENSION} to this path")
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)

    image_path = Path(args.image)
    if not image_path.is_file():
        logger.error("Image not found: %s", image_path)
        return 1

    rng = np.random.default_rng(args.seed)
    pipeline = ShapeExtractionPipeline(edge_mode=args.edge_mode, sampler=args.sampler)
    try:
        result = pipeline.run(image_path.read_bytes(), target_count=args.points, rng=rng)
    except ImageDecodeError as exc:
        logger.error("Cannot read %s: %s", image_path, exc)
        return 1

    if args.preview:
        preview_path = Path(args.preview)
        preview_path.parent.mkdir(parents=True, exist_ok=True)
        preview_path.write_bytes(result.visualization_png)
        logger.info("Edge preview written to %s", preview_path)

    if result.no_shape_detected:
        logger.error("No shape detected in %s; nothing to record", image_path)
        return 2

    settings = CaptureSettings(
        width=capture_settings.width,
        height=capture_settings.height,
        fps=args.fps,
        duration=args.duration,
        preserve_transparency=args.transparent,
    )
    scene = WordGardenScene(
        points=result.internal_points,
        width=settings.width,
        height=settings.height,
        duration=settings.duration,
        color_mode=args.color_mode,
        rng=rng,
    )
    outcome = CaptureManager().record(scene, settings, RecordingCallbacks(on_start=scene.restart))
    if not outcome.ok:
        logger.error("Recording failed (%s): %s", outcome.error_kind, outcome.error)
        return 3

    out_path = Path(args.out) if args.out else OUTPUT_DIR / outcome.filename
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(outcome.artifact)

    print(f"\nImage:     {image_path} ({result.width}x{result.height} processed)")
    print(f"Points:    {len(result.internal_points)} ({result.edge_mode}/{result.sampler})")
    print(f"Frames:    {outcome.frame_count} in {outcome.elapsed_seconds:.1f}s ({outcome.codec})")
    print(f"Video:     {out_path} ({len(outcome.artifact)} bytes)")
    print(f"Finished:  {time.strftime('%Y-%m-%d %H:%M:%S')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
