"""FFmpeg subprocess that encodes composited RGBA frames into a WebM stream."""
from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from typing import IO, List

import numpy as np

from common.config.ffmpeg import (
    CAPTURE_ENABLED,
    FFMPEG_BIN,
    FFMPEG_CODEC,
    FFMPEG_CPU_USED,
    FFMPEG_DEADLINE,
    FFMPEG_FINALIZE_TIMEOUT_SEC,
    FFMPEG_READ_CHUNK_BYTES,
    FFMPEG_VIDEO_BITRATE,
)
from capture.exceptions import CaptureUnsupported, EncodingFault, EncodingTooSmallError

logger = logging.getLogger(__name__)

CONTAINER_FORMAT = "webm"
MIME_TYPE = "video/webm"


def ffmpeg_available() -> bool:
    return CAPTURE_ENABLED and shutil.which(FFMPEG_BIN) is not None


def _list_encoders() -> set[str] | None:
    """Ask ffmpeg which video encoders it was built with. None if it cannot tell."""
    try:
        result = subprocess.run(
            [FFMPEG_BIN, "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as exc:
        logger.debug("ffmpeg -encoders failed: %s", exc)
        return None
    if result.returncode != 0:
        return None

    encoders: set[str] = set()
    for line in result.stdout.splitlines():
        parts = line.split()
        # " V....D libvpx-vp9           libvpx VP9 (codec vp9)"
        if len(parts) >= 2 and parts[0].startswith("V"):
            encoders.add(parts[1])
    return encoders


def _codec_order() -> list[str]:
    """Build the ordered list of codecs to try."""
    configured = FFMPEG_CODEC.strip().lower()
    if configured in {"auto", "", "libvpx-vp9"}:
        return ["libvpx-vp9", "libvpx"]
    if configured == "libvpx":
        return ["libvpx"]
    return [configured, "libvpx-vp9", "libvpx"]


def _encode_args(codec: str, preserve_alpha: bool) -> list[str]:
    """Return codec-specific encoding arguments."""
    pix_fmt = "yuva420p" if preserve_alpha else "yuv420p"
    if codec == "libvpx-vp9":
        return [
            "-c:v", "libvpx-vp9",
            "-b:v", FFMPEG_VIDEO_BITRATE,
            "-deadline", FFMPEG_DEADLINE,
            "-cpu-used", str(FFMPEG_CPU_USED),
            "-row-mt", "1",
            "-pix_fmt", pix_fmt,
        ]
    if codec == "libvpx":
        args = [
            "-c:v", "libvpx",
            "-b:v", FFMPEG_VIDEO_BITRATE,
            "-deadline", FFMPEG_DEADLINE,
            "-cpu-used", str(FFMPEG_CPU_USED),
        ]
        if preserve_alpha:
            # VP8 alpha needs alt-ref frames disabled.
            args.extend(["-auto-alt-ref", "0"])
        return args + ["-pix_fmt", pix_fmt]
    return ["-c:v", codec, "-b:v", FFMPEG_VIDEO_BITRATE, "-pix_fmt", pix_fmt]


def _pump(stream: IO[bytes], sink: List[bytes], chunk_size: int) -> None:
    """Copy a pipe into ``sink`` in arrival order until EOF."""
    try:
        for chunk in iter(lambda: stream.read(chunk_size), b""):
            sink.append(chunk)
    except (OSError, ValueError) as exc:
        logger.debug("Encoder pipe reader stopped: %s", exc)


class StreamEncoder:
    """Streams raw RGBA frames into ffmpeg and collects the encoded WebM bytes.

    Frames go to ffmpeg's stdin; encoded chunks are read from its stdout by a
    reader thread and kept in order. ``close()`` releases the process and
    pipes and is safe to call any number of times.
    """

    def __init__(
        self,
        width: int,
        height: int,
        fps: float,
        preserve_transparency: bool = False,
        min_artifact_bytes: int = 1024,
        session_id: str = "capture",
    ):
        self.width = width
        self.height = height
        self.fps = fps
        self.preserve_transparency = preserve_transparency
        self.min_artifact_bytes = min_artifact_bytes
        self.session_id = session_id
        self.process: subprocess.Popen | None = None
        self.codec: str | None = None
        self.chunks: List[bytes] = []
        self.frames_written = 0
        self._stderr_chunks: List[bytes] = []
        self._readers: List[threading.Thread] = []
        self._closed = False

    @property
    def frame_bytes(self) -> int:
        return self.width * self.height * 4

    def _select_codec(self) -> str:
        candidates = _codec_order()
        available = _list_encoders()
        if available is None:
            logger.info("[%s] Could not list ffmpeg encoders; trying %s", self.session_id, candidates[0])
            return candidates[0]
        for codec in candidates:
            if codec in available:
                return codec
        raise CaptureUnsupported(
            f"ffmpeg has none of the required encoders: {', '.join(candidates)}"
        )

    def _build_command(self, codec: str) -> list[str]:
        cmd = [FFMPEG_BIN, "-loglevel", "error"]
        cmd.extend([
            "-f", "rawvideo",
            "-pix_fmt", "rgba",
            "-s", f"{self.width}x{self.height}",
            "-r", f"{self.fps:g}",
            "-i", "pipe:0",
        ])
        # No audio
        cmd.append("-an")
        cmd.extend(_encode_args(codec, self.preserve_transparency))
        cmd.extend(["-f", CONTAINER_FORMAT, "pipe:1"])
        return cmd

    @staticmethod
    def _spawn_process(cmd: list[str]) -> subprocess.Popen:
        return subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

    def start(self) -> None:
        """Start the ffmpeg subprocess and the pipe readers."""
        if self._closed:
            raise EncodingFault("Encoder already closed")
        if self.process is not None:
            return
        if not ffmpeg_available():
            raise CaptureUnsupported(f"FFmpeg binary not available: {FFMPEG_BIN}")

        self.codec = self._select_codec()
        cmd = self._build_command(self.codec)
        logger.info("[%s] FFmpeg command: %s", self.session_id, " ".join(cmd))
        try:
            self.process = self._spawn_process(cmd)
        except FileNotFoundError as exc:
            raise CaptureUnsupported(f"FFmpeg binary not found: {FFMPEG_BIN}") from exc
        except OSError as exc:
            raise EncodingFault(f"Failed to start FFmpeg: {exc}") from exc
        if self._closed:
            # close() ran while the process was spawning.
            self._closed = False
            self.close()
            raise EncodingFault("Encoder closed during start")

        for stream, sink in ((self.process.stdout, self.chunks), (self.process.stderr, self._stderr_chunks)):
            if stream is None:
                continue
            reader = threading.Thread(
                target=_pump,
                args=(stream, sink, FFMPEG_READ_CHUNK_BYTES),
                daemon=True,
            )
            reader.start()
            self._readers.append(reader)
        logger.info("[%s] Encoder started (%s, pid=%s)", self.session_id, self.codec, self.process.pid)

    def _stderr_tail(self) -> str:
        text = b"".join(self._stderr_chunks).decode("utf-8", errors="replace").strip()
        return text[-500:]

    def write(self, frame: np.ndarray) -> None:
        """Append one composited frame; frames are encoded in call order."""
        if self.process is None or self._closed:
            raise EncodingFault("Encoder is not running")
        if frame.shape != (self.height, self.width, 4):
            raise EncodingFault(
                f"Frame shape {frame.shape} does not match encoder {self.width}x{self.height}"
            )
        returncode = self.process.poll()
        if returncode is not None:
            raise EncodingFault(f"FFmpeg exited early (code {returncode}): {self._stderr_tail()}")
        try:
            self.process.stdin.write(np.ascontiguousarray(frame, dtype=np.uint8).tobytes())
        except (BrokenPipeError, OSError, ValueError) as exc:
            raise EncodingFault(f"Failed to write frame {self.frames_written}: {exc}") from exc
        self.frames_written += 1

    def _join_readers(self, timeout: float) -> None:
        for reader in self._readers:
            reader.join(timeout=timeout)
        self._readers = []

    def finalize(self) -> bytes:
        """Flush ffmpeg and return the complete artifact."""
        if self.process is None or self._closed:
            raise EncodingFault("Encoder is not running")
        try:
            self.process.stdin.close()
        except (BrokenPipeError, OSError) as exc:
            raise EncodingFault(f"Failed to flush encoder input: {exc}") from exc
        try:
            returncode = self.process.wait(timeout=FFMPEG_FINALIZE_TIMEOUT_SEC)
        except subprocess.TimeoutExpired as exc:
            raise EncodingFault(
                f"FFmpeg did not finish within {FFMPEG_FINALIZE_TIMEOUT_SEC:g}s"
            ) from exc
        self._join_readers(timeout=FFMPEG_FINALIZE_TIMEOUT_SEC)

        if returncode != 0:
            raise EncodingFault(f"FFmpeg failed (code {returncode}): {self._stderr_tail()}")

        artifact = b"".join(self.chunks)
        logger.info(
            "[%s] Encoded %d frames into %d bytes (%d chunks)",
            self.session_id, self.frames_written, len(artifact), len(self.chunks),
        )
        if len(artifact) < self.min_artifact_bytes:
            raise EncodingTooSmallError(
                f"Encoded artifact is {len(artifact)} bytes (minimum {self.min_artifact_bytes})"
            )
        return artifact

    def is_alive(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def close(self) -> bool:
        """Release the process and pipes. Returns False if already closed."""
        if self._closed:
            return False
        self._closed = True
        process = self.process
        if process is None:
            return True
        try:
            if process.poll() is None:
                process.terminate()
                process.wait(timeout=2)
        except Exception:
            try:
                process.kill()
            except Exception:
                pass
        finally:
            for stream in (process.stdin, process.stdout, process.stderr):
                if stream is None:
                    continue
                try:
                    stream.close()
                except (OSError, ValueError):
                    pass
            self._join_readers(timeout=1)
            self.process = None
        logger.info("[%s] Encoder released", self.session_id)
        return True
