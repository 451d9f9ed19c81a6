"""Data models used across the hologram pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

# BGR uint8 image of shape (height, width, 3), as produced by OpenCV.
Raster = np.ndarray


class Direction(str, Enum):
    """Playback order of a fade animation."""

    FORWARD = "forward"
    REVERSE = "reverse"
    PINGPONG = "pingpong"

    @classmethod
    def parse(cls, value: "Direction | str") -> "Direction":
        if isinstance(value, Direction):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(
                f"Unknown animation direction {value!r}; expected forward, reverse or pingpong"
            ) from exc


class CapabilityClass(str, Enum):
    """Coarse device class used to pick a resource budget."""

    CONSTRAINED = "constrained"
    NORMAL = "normal"


class OutputFormat(str, Enum):
    VIDEO = "video"
    GIF = "gif"


class ResultKind(str, Enum):
    """Kind of output returned by the source-video conversion."""

    VIDEO = "video"
    STILL_IMAGE = "still_image"


@dataclass(frozen=True)
class AnimationSpec:
    """Requested fade animation parameters."""

    duration_seconds: float = 2.0
    fps: int = 24
    direction: Direction = Direction.PINGPONG
    loop: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "direction", Direction.parse(self.direction))


@dataclass(frozen=True)
class ResourceBudget:
    """Frame count and resolution limits held fixed for one operation."""

    max_raster_dimension: int
    max_frames: int
    max_fps: Optional[int] = None


@dataclass(frozen=True)
class EncodedMedia:
    """Encoded output held in memory."""

    data: bytes
    mime_type: str
    extension: str
    frame_count: int
    fps: Optional[float] = None


@dataclass(frozen=True)
class HologramResult:
    """Outcome of converting a source video.

    ``kind`` is ``STILL_IMAGE`` when recording was unavailable and a single
    representative frame was exported instead; ``fallback_reason`` then says
    why.
    """

    kind: ResultKind
    media: EncodedMedia
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.kind is ResultKind.STILL_IMAGE


__all__ = [
    "AnimationSpec",
    "CapabilityClass",
    "Direction",
    "EncodedMedia",
    "HologramResult",
    "OutputFormat",
    "Raster",
    "ResourceBudget",
    "ResultKind",
]
