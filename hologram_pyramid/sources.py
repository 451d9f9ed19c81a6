"""Decoding helpers and frame sources feeding the compositor."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

import cv2
import numpy as np

from hologram_pyramid.compositing import ensure_bgr
from hologram_pyramid.errors import CaptureDenied, DecodeError
from hologram_pyramid.models import Raster

SourceLike = Union[np.ndarray, bytes, bytearray, str, Path]

# Offset used when picking a representative frame; frame 0 is often black.
REPRESENTATIVE_FRAME_SECONDS = 0.1


def decode_image_bytes(data: bytes) -> Raster:
    buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    if buffer.size == 0:
        raise DecodeError("Image data is empty")
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise DecodeError("Image data could not be decoded")
    return ensure_bgr(image)


def load_raster(source: SourceLike) -> Raster:
    """Return ``source`` as a BGR raster, decoding bytes or files as needed."""
    if isinstance(source, np.ndarray):
        if source.ndim not in (2, 3) or source.shape[0] == 0 or source.shape[1] == 0:
            raise DecodeError(f"Unsupported raster shape {source.shape}")
        return ensure_bgr(source)
    if isinstance(source, (bytes, bytearray)):
        return decode_image_bytes(source)

    path = Path(source)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Could not read image file {path}: {exc}") from exc
    try:
        return decode_image_bytes(data)
    except DecodeError as exc:
        raise DecodeError(f"Could not decode image file {path}") from exc


def encode_png(raster: Raster) -> bytes:
    success, buffer = cv2.imencode(".png", raster)
    if not success:
        raise RuntimeError("Failed to encode raster as PNG")
    return buffer.tobytes()


class FrameSource(Protocol):
    """Minimal playback control the preview and video loops rely on."""

    @property
    def fps(self) -> Optional[float]:
        ...

    def read(self) -> Optional[Raster]:
        """Return the next frame, or ``None`` once the source has ended."""
        ...

    def rewind(self) -> None:
        ...

    def pause(self) -> None:
        ...

    def release(self) -> None:
        ...


class StillSource:
    """A single image presented as an endless source."""

    def __init__(self, raster: Raster) -> None:
        self.raster = ensure_bgr(raster)
        self.paused = False

    @property
    def fps(self) -> Optional[float]:
        return None

    def read(self) -> Optional[Raster]:
        return self.raster

    def rewind(self) -> None:
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def release(self) -> None:
        pass


class FrameSequenceSource:
    """Plays back an ordered list of rasters, e.g. an exported fade."""

    def __init__(self, frames: Sequence[Raster], fps: Optional[float] = None) -> None:
        self.frames = list(frames)
        self._fps = fps
        self.position = 0
        self.paused = False

    @property
    def fps(self) -> Optional[float]:
        return self._fps

    def read(self) -> Optional[Raster]:
        if self.position >= len(self.frames):
            return None
        frame = self.frames[self.position]
        self.position += 1
        return frame

    def rewind(self) -> None:
        self.position = 0
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def release(self) -> None:
        self.frames = []


class VideoCaptureSource:
    """OpenCV-backed source for a video file or a camera index."""

    def __init__(
        self,
        target: Union[str, Path, int],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.target = target
        self.logger = logger or logging.getLogger(__name__)
        self.is_camera = isinstance(target, int)
        capture_target = target if self.is_camera else str(target)
        self.capture = cv2.VideoCapture(capture_target)
        self.paused = False
        if not self.capture.isOpened():
            self.capture.release()
            if self.is_camera:
                raise CaptureDenied(f"Could not open camera index {target}")
            raise DecodeError(f"Could not open video {target}")

    @property
    def fps(self) -> Optional[float]:
        value = self.capture.get(cv2.CAP_PROP_FPS)
        return float(value) if value and value > 0 else None

    @property
    def width(self) -> int:
        return int(self.capture.get(cv2.CAP_PROP_FRAME_WIDTH))

    @property
    def height(self) -> int:
        return int(self.capture.get(cv2.CAP_PROP_FRAME_HEIGHT))

    def read(self) -> Optional[Raster]:
        success, frame = self.capture.read()
        if not success or frame is None:
            return None
        return ensure_bgr(frame)

    def seek_seconds(self, seconds: float) -> None:
        self.capture.set(cv2.CAP_PROP_POS_MSEC, max(0.0, seconds) * 1000.0)

    def rewind(self) -> None:
        if self.is_camera:
            return
        self.capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def release(self) -> None:
        self.capture.release()


class TemporaryVideoFile:
    """Context manager exposing in-memory video bytes as a file OpenCV can open."""

    def __init__(self, data: bytes, suffix: str = ".mp4") -> None:
        self.data = data
        self.suffix = suffix
        self._tempdir: Optional[tempfile.TemporaryDirectory] = None
        self.path: Optional[Path] = None

    def __enter__(self) -> Path:
        if not self.data:
            raise DecodeError("Video data is empty")
        self._tempdir = tempfile.TemporaryDirectory(prefix="hologram_src_")
        self.path = Path(self._tempdir.name) / f"source{self.suffix}"
        self.path.write_bytes(self.data)
        return self.path

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._tempdir is not None:
            self._tempdir.cleanup()
            self._tempdir = None


def read_representative_frame(source: VideoCaptureSource) -> Raster:
    """Grab a frame slightly after the start, falling back to the first frame."""
    source.seek_seconds(REPRESENTATIVE_FRAME_SECONDS)
    frame = source.read()
    if frame is None:
        source.rewind()
        frame = source.read()
    if frame is None:
        raise DecodeError(f"Video {source.target} contains no decodable frames")
    return frame


__all__ = [
    "FrameSequenceSource",
    "FrameSource",
    "SourceLike",
    "StillSource",
    "TemporaryVideoFile",
    "VideoCaptureSource",
    "decode_image_bytes",
    "encode_png",
    "load_raster",
    "read_representative_frame",
]
