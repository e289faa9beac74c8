"""FastAPI backend for shape extraction and word garden recordings."""
from __future__ import annotations

import asyncio
import base64
import logging
import threading
from contextlib import asynccontextmanager
from typing import Literal

import numpy as np
from fastapi import FastAPI, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from capture import (
    MIME_TYPE,
    CaptureAlreadyRunningError,
    CaptureManager,
    RecordingCallbacks,
    ffmpeg_available,
)
from common.config import CORS_ORIGINS, MAX_UPLOAD_BYTES
from common.settings import MAX_TARGET_COUNT, MIN_TARGET_COUNT, CaptureSettings
from scene import WordGardenScene
from schemas import PointModel, RecordingRequest, ShapeResponse
from shape import ImageDecodeError, Point, ShapeExtractionPipeline

logger = logging.getLogger(__name__)

# RecordingOutcome.error_kind -> HTTP status
ERROR_STATUS = {
    "capture_unsupported": 503,
    "encoding_fault": 502,
    "encoding_too_small": 502,
    "capture_aborted": 409,
    "invalid_state": 500,
}

capture_manager: CaptureManager | None = None
shape_lock = threading.Lock()


@asynccontextmanager
async def lifespan(_: FastAPI):
    global capture_manager

    capture_manager = CaptureManager()
    logger.info("Capture manager ready (ffmpeg available: %s)", ffmpeg_available())

    yield

    if capture_manager:
        capture_manager.shutdown()
        capture_manager = None


app = FastAPI(
    title="Word Garden API",
    description="Shape extraction from images and recorded word garden animations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    expose_headers=["Content-Disposition"],
)


@app.get("/")
def read_root():
    return {
        "status": "ok",
        "message": "Word Garden API is running",
        "endpoints": {
            "shape": "/api/shape",
            "recordings": "/api/recordings",
            "recordings_status": "/api/recordings/status",
            "recordings_abort": "/api/recordings/abort",
            "health": "/health",
        },
    }


@app.get("/health")
def health_check():
    return {
        "status": "ok",
        "ffmpeg": ffmpeg_available(),
        "recording": bool(capture_manager and capture_manager.status()["recording"]),
    }


def _to_models(points) -> list[PointModel]:
    return [PointModel(x=p.x, y=p.y) for p in points]


def _run_serialized(pipeline, data, target_count, rng):
    # One extraction at a time; later uploads wait their turn.
    with shape_lock:
        return pipeline.run(data, target_count=target_count, rng=rng)


@app.post("/api/shape", response_model=ShapeResponse)
async def extract_shape_endpoint(
    file: UploadFile,
    target_count: int | None = Query(default=None, ge=MIN_TARGET_COUNT, le=MAX_TARGET_COUNT),
    edge_mode: Literal["threshold", "gradient"] | None = None,
    sampler: Literal["direct", "rejection"] | None = None,
    seed: int | None = None,
):
    """Upload an image and get back the points inside its dominant dark shape."""
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file provided")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"Image exceeds {MAX_UPLOAD_BYTES} bytes")

    pipeline = ShapeExtractionPipeline(edge_mode=edge_mode, sampler=sampler)
    rng = np.random.default_rng(seed)
    try:
        result = await asyncio.to_thread(_run_serialized, pipeline, data, target_count, rng)
    except ImageDecodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return ShapeResponse(
        internal_points=_to_models(result.internal_points),
        contour_points=_to_models(result.contour_points),
        width=result.width,
        height=result.height,
        edge_mode=result.edge_mode,
        sampler=result.sampler,
        visualization_png=base64.b64encode(result.visualization_png).decode("ascii"),
        no_shape_detected=result.no_shape_detected,
        stats=result.stats,
    )


@app.post("/api/recordings")
async def create_recording(request: RecordingRequest):
    """Record the word garden for the given points and return the WebM file."""
    if not capture_manager:
        raise HTTPException(status_code=503, detail="Capture manager not initialized")

    settings = CaptureSettings(
        width=request.width,
        height=request.height,
        fps=request.fps,
        duration=request.duration,
        preserve_transparency=request.preserve_transparency,
        background=request.background,
    )
    scene = WordGardenScene(
        points=[Point(p.x, p.y) for p in request.points],
        width=request.width,
        height=request.height,
        duration=request.duration,
        words=request.words,
        color_mode=request.color_mode,
        color=request.color,
        custom_colors=request.custom_colors,
        rng=np.random.default_rng(request.seed),
    )
    callbacks = RecordingCallbacks(on_start=scene.restart)

    try:
        outcome = await asyncio.to_thread(capture_manager.record, scene, settings, callbacks)
    except CaptureAlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    if not outcome.ok:
        status = ERROR_STATUS.get(outcome.error_kind, 500)
        raise HTTPException(
            status_code=status,
            detail={"error_kind": outcome.error_kind, "message": outcome.error},
        )

    return Response(
        content=outcome.artifact,
        media_type=MIME_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{outcome.filename}"',
            "X-Frame-Count": str(outcome.frame_count),
        },
    )


@app.get("/api/recordings/status")
def recording_status():
    if not capture_manager:
        raise HTTPException(status_code=503, detail="Capture manager not initialized")
    return capture_manager.status()


@app.post("/api/recordings/abort")
def abort_recording():
    if not capture_manager:
        raise HTTPException(status_code=503, detail="Capture manager not initialized")
    if not capture_manager.abort():
        raise HTTPException(status_code=404, detail="No recording in progress")
    return {"status": "aborting"}


if __name__ == "__main__":
    import uvicorn

    from common.config import API_HOST, API_PORT

    uvicorn.run(app, host=API_HOST, port=API_PORT, workers=1, loop="asyncio")
